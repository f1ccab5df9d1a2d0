# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Retrieval-augmented context assembly.

Turns a natural-language query into a block of prompt context: the query is
embedded, the most similar workspace files are found, and their (truncated)
contents are formatted as markdown sections.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

from victor_index.codebase.index_store import IndexStore
from victor_index.codebase.similarity import SimilarityMatch, find_similar
from victor_index.config import RetrievalConfig

if TYPE_CHECKING:
    from victor_index.codebase.embeddings.base import BaseEmbeddingModel

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n…truncated"


@dataclass
class ContextChunk:
    """One file's contribution to the assembled context."""

    path: str
    score: float
    content: str
    language: Optional[str] = None
    truncated: bool = False

    def to_markdown(self) -> str:
        fence = self.language or ""
        return f"### File: {self.path}\n```{fence}\n{self.content}\n```"


@dataclass
class RetrievalResult:
    """Chunks selected for a query, most similar first."""

    chunks: List[ContextChunk] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.chunks

    @property
    def context(self) -> str:
        return "\n\n".join(chunk.to_markdown() for chunk in self.chunks)


def truncate_content(content: str, max_chars: int) -> str:
    """Cut content to ``max_chars`` characters, marking the cut."""
    if len(content) <= max_chars:
        return content
    return content[:max_chars] + TRUNCATION_MARKER


class ContextAssembler:
    """Builds prompt context from the most relevant indexed files.

    Retrieval settings can be changed at runtime through the setters; every
    update is validated and rejected with ``ValueError`` when out of range.
    """

    def __init__(
        self,
        store: IndexStore,
        embedding_model: Optional["BaseEmbeddingModel"] = None,
        config: Optional[RetrievalConfig] = None,
    ):
        self.store = store
        self.embedding_model = embedding_model
        self.config = config or RetrievalConfig()

    def set_enabled(self, enabled: bool) -> None:
        self.config.enabled = enabled

    def set_max_chunks(self, max_chunks: int) -> None:
        self.config.max_chunks = max_chunks

    def set_max_chunk_size(self, max_chunk_size: int) -> None:
        self.config.max_chunk_size = max_chunk_size

    def set_min_similarity(self, min_similarity: float) -> None:
        self.config.min_similarity = min_similarity

    def update_config(self, **changes: Any) -> RetrievalConfig:
        """Apply several setting changes at once; nothing changes if any is invalid."""
        merged = {**self.config.model_dump(), **changes}
        self.config = RetrievalConfig.model_validate(merged)
        return self.config

    def _assemble(self, matches: Sequence[SimilarityMatch]) -> RetrievalResult:
        result = RetrievalResult()
        for match in matches:
            entry = self.store.get(match.path)
            if entry is None:
                continue
            content = truncate_content(entry.content, self.config.max_chunk_size)
            result.chunks.append(
                ContextChunk(
                    path=entry.path,
                    score=match.score,
                    content=content,
                    language=entry.language,
                    truncated=len(entry.content) > self.config.max_chunk_size,
                )
            )
        return result

    def retrieve_for_embedding(self, query_embedding: Sequence[float]) -> RetrievalResult:
        """Assemble context for a query the caller has already embedded."""
        if not self.config.enabled:
            return RetrievalResult()
        identity = self.embedding_model.identity if self.embedding_model else None
        matches = find_similar(
            self.store.entries(),
            query_embedding,
            top_n=self.config.max_chunks,
            min_similarity=self.config.min_similarity,
            model=identity,
        )
        return self._assemble(matches)

    async def retrieve(self, query_text: str) -> RetrievalResult:
        """Embed a query and assemble context from the most similar files.

        Returns an empty result when retrieval is disabled, no embedding
        model is configured, or embedding the query fails.
        """
        if not self.config.enabled:
            return RetrievalResult()
        if self.embedding_model is None:
            logger.debug("No embedding model configured, skipping retrieval")
            return RetrievalResult()
        if not query_text.strip():
            return RetrievalResult()

        try:
            query_embedding = await self.embedding_model.embed_text(query_text)
        except Exception as e:
            logger.warning(f"Failed to embed retrieval query: {e}")
            return RetrievalResult()

        result = self.retrieve_for_embedding(query_embedding)
        logger.debug(f"Retrieved {len(result.chunks)} chunks for query")
        return result

    async def build_context(self, query_text: str) -> str:
        return (await self.retrieve(query_text)).context
