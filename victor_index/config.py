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

"""Configuration for the workspace index and retrieval service.

Settings are pydantic models so every value is validated at load time and,
for retrieval settings, on every runtime update. A YAML file maps onto
``IndexSettings``:

```yaml
indexing:
  batch_size: 20
  extra_ignore_patterns: ["fixtures/"]
retrieval:
  enabled: true
  max_chunks: 5
  max_chunk_size: 2000
  min_similarity: 0.7
embedding:
  provider: ollama
  model: nomic-embed-text
  base_url: http://localhost:11434
```
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

from victor_index.codebase.embeddings.models import EmbeddingSettings

logger = logging.getLogger(__name__)


class IndexingConfig(BaseModel):
    """Workspace scan settings."""

    model_config = ConfigDict(extra="forbid")

    batch_size: int = Field(default=20, gt=0, description="Files processed concurrently per batch")
    ignore_file: str = Field(default=".smileignore", description="Project-local ignore file")
    extra_ignore_patterns: List[str] = Field(
        default_factory=list, description="Additional gitignore-style patterns"
    )
    max_file_bytes: int = Field(
        default=1_048_576, gt=0, description="Files larger than this are not indexed"
    )
    gc_hint_threshold: int = Field(
        default=5000, ge=0, description="Hint gc between batches above this many files (0: never)"
    )
    yield_seconds: float = Field(default=0.01, ge=0, description="Pause between batches")
    tolerate_syntax_errors: bool = Field(
        default=False, description="Keep symbols from partially parsed files"
    )
    max_embedding_chars: int = Field(
        default=8000, gt=0, description="File text beyond this is not sent to the embedder"
    )
    watch: bool = Field(default=False, description="Re-index files as they change on disk")
    watch_debounce: float = Field(default=0.5, ge=0, description="Watcher debounce in seconds")


class RetrievalConfig(BaseModel):
    """Retrieval-augmented context settings, mutable at runtime."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    enabled: bool = Field(default=True, description="Kill switch for context retrieval")
    max_chunks: int = Field(default=5, gt=0, description="Maximum files in the context")
    max_chunk_size: int = Field(default=2000, gt=0, description="Characters kept per file")
    min_similarity: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Minimum cosine similarity of a match"
    )


class IndexSettings(BaseModel):
    """Root settings object."""

    model_config = ConfigDict(extra="forbid")

    indexing: IndexingConfig = Field(default_factory=IndexingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    embedding: Optional[EmbeddingSettings] = Field(
        default=None, description="Embedding provider; None disables embeddings"
    )


def load_settings(path: Optional[Union[str, Path]] = None) -> IndexSettings:
    """Load settings from a YAML file.

    Args:
        path: YAML file. A missing path or file yields the defaults.

    Returns:
        Validated settings

    Raises:
        pydantic.ValidationError: If the file content is invalid
        ValueError: If the file is not a YAML mapping
    """
    if path is None:
        return IndexSettings()

    settings_path = Path(path)
    if not settings_path.is_file():
        logger.debug(f"No settings file at {settings_path}, using defaults")
        return IndexSettings()

    with open(settings_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return IndexSettings()
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {settings_path} must contain a mapping")

    settings = IndexSettings.model_validate(data)
    logger.debug(f"Loaded settings from {settings_path}")
    return settings
