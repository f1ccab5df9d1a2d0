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

"""Workspace code index and retrieval engine.

Keeps an in-memory index of a workspace's source files, answering
"which symbol is at this cursor position" and "which files are most
relevant to this question" for an editor-embedded coding assistant.

Package Structure:
    config.py                    - Pydantic settings and YAML loading
    service.py                   - WorkspaceIndexService facade
    retrieval.py                 - Retrieval-augmented context assembly
    codebase/ignore_patterns.py  - Default and project ignore rules
    codebase/symbol_extractor.py - Tree-sitter declaration extraction
    codebase/index_store.py      - In-memory index store and lookups
    codebase/similarity.py       - Cosine similarity ranking
    codebase/indexer.py          - Batch indexing scheduler
    codebase/watcher.py          - File watching
    codebase/embeddings/         - Embedding model interface and HTTP providers
    languages/                   - Language plugins and registry

Usage:
    from victor_index import create_index_service, load_settings

    service = create_index_service(load_settings("victor-index.yaml"), ["."])
    await service.index_workspace()
"""

from victor_index.codebase.embeddings import BaseEmbeddingModel, EmbeddingError
from victor_index.codebase.indexer import IndexingReport, WorkspaceIndexer
from victor_index.codebase.models import FileIndexEntry, SymbolInfo, SymbolKind, SymbolSpan
from victor_index.config import IndexingConfig, IndexSettings, RetrievalConfig, load_settings
from victor_index.retrieval import ContextAssembler, RetrievalResult
from victor_index.service import WorkspaceIndexService, create_index_service

__version__ = "0.1.0"

__all__ = [
    "BaseEmbeddingModel",
    "ContextAssembler",
    "EmbeddingError",
    "FileIndexEntry",
    "IndexSettings",
    "IndexingConfig",
    "IndexingReport",
    "RetrievalConfig",
    "RetrievalResult",
    "SymbolInfo",
    "SymbolKind",
    "SymbolSpan",
    "WorkspaceIndexService",
    "WorkspaceIndexer",
    "create_index_service",
    "load_settings",
]
