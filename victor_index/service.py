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

"""Workspace index service.

``WorkspaceIndexService`` is the single entry point editor integrations talk
to. It wires the index store, the batch indexer, the retrieval assembler and
the optional file watcher, all sharing one embedding model.

Usage:
    settings = load_settings("victor-index.yaml")
    service = create_index_service(settings, ["/path/to/project"])
    await service.index_workspace(on_progress=print)
    symbol = service.find_symbol_at_position("src/util.ts", 4, 2)
    context = await service.build_context("how are totals added up?")
    await service.close()
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from victor_index.codebase.embeddings import BaseEmbeddingModel, create_embedding_model
from victor_index.codebase.index_store import IndexStore
from victor_index.codebase.indexer import IndexingReport, ProgressCallback, WorkspaceIndexer
from victor_index.codebase.models import FileIndexEntry, SymbolInfo
from victor_index.codebase.similarity import find_similar
from victor_index.codebase.symbol_extractor import SymbolExtractor
from victor_index.codebase.watcher import WorkspaceWatcher
from victor_index.config import IndexSettings
from victor_index.languages import LanguageRegistry
from victor_index.retrieval import ContextAssembler, RetrievalResult

logger = logging.getLogger(__name__)


class WorkspaceIndexService:
    """Facade over indexing, symbol lookup and context retrieval."""

    def __init__(
        self,
        roots: Sequence[Union[str, Path]],
        settings: Optional[IndexSettings] = None,
        embedding_model: Optional[BaseEmbeddingModel] = None,
        registry: Optional[LanguageRegistry] = None,
    ):
        self.settings = settings or IndexSettings()
        self.embedding_model = embedding_model
        self.store = IndexStore()
        extractor = SymbolExtractor(
            registry=registry,
            tolerate_syntax_errors=self.settings.indexing.tolerate_syntax_errors,
        )
        self.indexer = WorkspaceIndexer(
            roots,
            store=self.store,
            extractor=extractor,
            embedding_model=embedding_model,
            config=self.settings.indexing,
        )
        self.retriever = ContextAssembler(
            self.store,
            embedding_model=embedding_model,
            config=self.settings.retrieval,
        )
        self._watcher: Optional[WorkspaceWatcher] = None

    # Indexing

    async def index_workspace(
        self,
        batch_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> IndexingReport:
        """Run a full scan; with ``indexing.watch`` set, start watching once it completes."""
        report = await self.indexer.index_workspace(batch_size=batch_size, on_progress=on_progress)
        if self.settings.indexing.watch and not report.skipped and not self.is_watching:
            self.start_watching()
        return report

    async def attach_file(self, path: Union[str, Path]) -> Optional[FileIndexEntry]:
        return await self.indexer.attach_file(path)

    async def attach_folder(self, path: Union[str, Path]) -> IndexingReport:
        return await self.indexer.attach_folder(path)

    def remove_file(self, path: Union[str, Path]) -> bool:
        return self.indexer.remove_file(path)

    def cancel_indexing(self) -> bool:
        return self.indexer.cancel()

    async def reembed_mismatched(self) -> int:
        return await self.indexer.reembed_mismatched()

    # Queries

    def find_symbol_at_position(
        self, path: Union[str, Path], line: int, char: int
    ) -> Optional[SymbolInfo]:
        """Find the innermost symbol whose span covers a position.

        Args:
            path: Absolute path or workspace-relative key
            line: 1-based line
            char: 0-based character column
        """
        return self.store.find_at_position(self.indexer.key_for(path), line, char)

    def find_symbol_by_name(self, name: str) -> List[SymbolInfo]:
        return self.store.find_by_name(name)

    def find_similar_symbols(
        self,
        query_embedding: Sequence[float],
        top_n: int = 5,
        min_similarity: float = 0.0,
    ) -> List[Dict[str, Any]]:
        """Rank indexed files against a query vector.

        Returns:
            One dict per match: ``path``, ``score`` and ``symbol`` (the first
            symbol declared in the file, None if it has none)
        """
        identity = self.embedding_model.identity if self.embedding_model else None
        matches = find_similar(
            self.store.entries(), query_embedding, top_n, min_similarity, model=identity
        )
        return [{"path": m.path, "score": m.score, "symbol": m.symbol} for m in matches]

    def find_relevant_files(self, text: str, limit: int = 10) -> List[FileIndexEntry]:
        return self.store.find_relevant_files(text, limit)

    def search_files(self, query: str) -> List[FileIndexEntry]:
        return self.store.search_files(query)

    def get_file(self, path: Union[str, Path]) -> Optional[FileIndexEntry]:
        return self.store.get(self.indexer.key_for(path))

    # Retrieval

    async def retrieve(self, query: str) -> RetrievalResult:
        return await self.retriever.retrieve(query)

    async def build_context(self, query: str) -> str:
        return await self.retriever.build_context(query)

    def set_enabled(self, enabled: bool) -> None:
        self.retriever.set_enabled(enabled)

    def set_max_chunks(self, max_chunks: int) -> None:
        self.retriever.set_max_chunks(max_chunks)

    def set_max_chunk_size(self, max_chunk_size: int) -> None:
        self.retriever.set_max_chunk_size(max_chunk_size)

    def set_min_similarity(self, min_similarity: float) -> None:
        self.retriever.set_min_similarity(min_similarity)

    # Watching

    def start_watching(self) -> None:
        """Re-index files as they change on disk. Call from the event loop."""
        if self._watcher is None:
            self._watcher = WorkspaceWatcher(self.indexer)
        self._watcher.start()

    def stop_watching(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()

    @property
    def is_watching(self) -> bool:
        return self._watcher is not None and self._watcher.is_running

    # Lifecycle

    def get_stats(self) -> Dict[str, Any]:
        stats = self.indexer.get_stats()
        stats["retrieval"] = self.retriever.config.model_dump()
        stats["watching"] = self.is_watching
        return stats

    async def close(self) -> None:
        """Stop watching, cancel any running scan and release the embedding model."""
        self.stop_watching()
        self.indexer.cancel()
        if self.embedding_model is not None:
            await self.embedding_model.close()
        logger.debug("Workspace index service closed")


def create_index_service(
    settings: Optional[IndexSettings],
    roots: Sequence[Union[str, Path]],
    embedding_model: Optional[BaseEmbeddingModel] = None,
) -> WorkspaceIndexService:
    """Build a service from settings.

    Args:
        settings: Settings (defaults if None)
        roots: Workspace root directories
        embedding_model: Embedding model to use; when None one is created from
            ``settings.embedding`` if configured, otherwise embeddings are off

    Returns:
        A ready service; nothing is indexed until ``index_workspace`` runs
    """
    settings = settings or IndexSettings()
    if embedding_model is None and settings.embedding is not None:
        embedding_model = create_embedding_model(settings.embedding)
    if embedding_model is None:
        logger.info("No embedding provider configured; similarity search is disabled")
    return WorkspaceIndexService(roots, settings=settings, embedding_model=embedding_model)
