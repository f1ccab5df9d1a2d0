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

"""Workspace scanning and batch indexing.

Features:
- Full workspace scans in bounded batches with progress reporting
- Single-file and folder attach for incremental updates
- Per-file failure containment: one bad file never aborts a scan
- One full scan at a time; single-file updates are skipped while it runs
- Cancellation checked at every batch boundary

Everything runs on one asyncio event loop. Files within a batch are processed
concurrently (reads in worker threads, embedding requests in flight
together); batch N+1 starts only after batch N has completed.
"""

import asyncio
import gc
import inspect
import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)

from victor_index.codebase.ignore_patterns import IgnoreFilter, normalize_relative_path
from victor_index.codebase.index_store import IndexStore
from victor_index.codebase.models import FileIndexEntry
from victor_index.codebase.symbol_extractor import SymbolExtractor
from victor_index.config import IndexingConfig
from victor_index.languages.registry import guess_language

if TYPE_CHECKING:
    from victor_index.codebase.embeddings.base import BaseEmbeddingModel

logger = logging.getLogger(__name__)

# (batch_index, files_processed_so_far, total_files); may be sync or async
ProgressCallback = Callable[[int, int, int], Union[None, Awaitable[None]]]

# Bytes sniffed for NUL when deciding a file is binary
_BINARY_SNIFF_BYTES = 8192


class IndexingState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    FAILED = "failed"


class FileOutcome(str, Enum):
    INDEXED = "indexed"
    SKIPPED = "skipped"  # oversized or binary content
    FAILED = "failed"  # read error or unexpected pipeline error


@dataclass
class IndexingSession:
    """State of the scheduler across scans."""

    state: IndexingState = IndexingState.IDLE
    cancel_requested: bool = False
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    last_error: Optional[str] = None
    processed_files: int = 0
    failed_files: int = 0

    @property
    def failed(self) -> bool:
        return self.state == IndexingState.FAILED

    @property
    def in_progress(self) -> bool:
        return self.state == IndexingState.SCANNING

    def begin(self) -> None:
        self.state = IndexingState.SCANNING
        self.cancel_requested = False
        self.started_at = time.time()
        self.finished_at = None
        self.last_error = None
        self.processed_files = 0
        self.failed_files = 0

    def fail(self, error: BaseException) -> None:
        self.state = IndexingState.FAILED
        self.last_error = str(error) or type(error).__name__

    def end(self) -> None:
        """Leave the scanning state; a failed scan stays FAILED until the next begin()."""
        if self.state == IndexingState.SCANNING:
            self.state = IndexingState.IDLE
        self.cancel_requested = False
        self.finished_at = time.time()


@dataclass
class IndexingReport:
    """Summary of one scan."""

    total_files: int = 0
    indexed_files: int = 0
    skipped_files: int = 0
    failed_files: int = 0
    removed_files: int = 0
    batches: int = 0
    elapsed: float = 0.0
    skipped: bool = False  # another scan was already running
    cancelled: bool = False


def _root_prefixes(roots: Sequence[Path]) -> Dict[Path, str]:
    """Key prefix per root: the directory name, suffixed -2, -3, ... on clashes."""
    prefixes: Dict[Path, str] = {}
    used: Set[str] = set()
    for root in roots:
        base = root.name or "root"
        prefix, n = base, 1
        while prefix in used:
            n += 1
            prefix = f"{base}-{n}"
        used.add(prefix)
        prefixes[root] = prefix
    return prefixes


@dataclass(frozen=True)
class _Located:
    """A file resolved against one workspace root."""

    root: Path
    absolute: Path
    root_relative: str  # relative to its root; what ignore rules see
    key: str  # index store key


@dataclass
class _ScanState:
    report: IndexingReport = field(default_factory=IndexingReport)
    processed: int = 0


class WorkspaceIndexer:
    """Scans workspace roots and keeps the index store current.

    Usage:
        indexer = WorkspaceIndexer(["/path/to/project"], embedding_model=model)
        await indexer.index_workspace(batch_size=20, on_progress=report)
        await indexer.attach_file("src/util.ts")
    """

    def __init__(
        self,
        roots: Sequence[Union[str, Path]],
        store: Optional[IndexStore] = None,
        extractor: Optional[SymbolExtractor] = None,
        embedding_model: Optional["BaseEmbeddingModel"] = None,
        config: Optional[IndexingConfig] = None,
    ):
        """Initialize the indexer.

        Args:
            roots: Workspace root directories. With several roots, store keys
                are prefixed with the root directory name.
            store: Index store to populate (a new one if None)
            extractor: Symbol extractor (a new one with built-in languages if None)
            embedding_model: Embedding model; None stores files without vectors
            config: Indexing settings
        """
        if not roots:
            raise ValueError("At least one workspace root is required")
        self.roots: List[Path] = list(dict.fromkeys(Path(os.path.abspath(root)) for root in roots))
        self._prefixes: Dict[Path, str] = _root_prefixes(self.roots)
        self.config = config or IndexingConfig()
        self.store = store if store is not None else IndexStore()
        self.extractor = extractor or SymbolExtractor(
            tolerate_syntax_errors=self.config.tolerate_syntax_errors
        )
        self.embedding_model = embedding_model
        self.session = IndexingSession()
        self.attached_files: Set[str] = set()
        self.attached_folders: Set[str] = set()
        self._filters: Dict[Path, IgnoreFilter] = {}

    # ------------------------------------------------------------------
    # Path handling
    # ------------------------------------------------------------------

    def _load_filter(self, root: Path) -> IgnoreFilter:
        ignore_filter = IgnoreFilter.load(
            root,
            ignore_file=self.config.ignore_file,
            extra_patterns=self.config.extra_ignore_patterns,
        )
        self._filters[root] = ignore_filter
        return ignore_filter

    def _filter_for(self, root: Path) -> IgnoreFilter:
        return self._filters.get(root) or self._load_filter(root)

    def _make_key(self, root: Path, root_relative: str) -> str:
        if len(self.roots) == 1:
            return root_relative
        return f"{self._prefixes[root]}/{root_relative}"

    def _locate(self, path: Union[str, Path]) -> Optional[_Located]:
        """Resolve an absolute path or a store key against the workspace roots."""
        candidate = Path(path)
        if not candidate.is_absolute():
            key = normalize_relative_path(candidate)
            if len(self.roots) == 1:
                candidate = self.roots[0] / key
            else:
                head, _, rest = key.partition("/")
                root = next((r for r, p in self._prefixes.items() if p == head), None)
                if root is None or not rest:
                    return None
                candidate = root / rest

        absolute = Path(os.path.abspath(candidate))
        for root in self.roots:
            try:
                rel = absolute.relative_to(root).as_posix()
            except ValueError:
                continue
            if rel in ("", "."):
                return None
            return _Located(root, absolute, rel, self._make_key(root, rel))
        return None

    def key_for(self, path: Union[str, Path]) -> str:
        """Store key for an absolute path or a workspace-relative key."""
        located = self._locate(path)
        return located.key if located is not None else normalize_relative_path(path)

    def is_indexable(self, path: Union[str, Path]) -> bool:
        """Check whether a path lies in the workspace and passes the ignore rules."""
        located = self._locate(path)
        if located is None:
            return False
        return self._filter_for(located.root).should_index(located.root_relative)

    def _collect_candidates(self, start: Optional[_Located] = None) -> List[_Located]:
        """Enumerate every indexable file, under one folder or under all roots."""
        candidates: List[_Located] = []
        if start is not None:
            walks: List[Tuple[Path, Path]] = [(start.root, start.absolute)]
        else:
            walks = [(root, root) for root in self.roots]

        for root, top in walks:
            ignore_filter = self._load_filter(root)
            for dirpath, dirnames, filenames in os.walk(top):
                rel_dir = Path(dirpath).relative_to(root)
                dirnames[:] = sorted(
                    d for d in dirnames if ignore_filter.should_descend((rel_dir / d).as_posix())
                )
                for name in sorted(filenames):
                    rel = (rel_dir / name).as_posix()
                    if ignore_filter.is_ignored(rel):
                        continue
                    absolute = Path(dirpath) / name
                    if not absolute.is_file():
                        continue
                    candidates.append(_Located(root, absolute, rel, self._make_key(root, rel)))
        return candidates

    # ------------------------------------------------------------------
    # Per-file pipeline
    # ------------------------------------------------------------------

    async def _embed(self, key: str, text: str) -> Tuple[List[float], Optional[str]]:
        """Embed file text; failures degrade to an empty vector."""
        if self.embedding_model is None:
            return [], None
        snippet = text[: self.config.max_embedding_chars]
        if not snippet.strip():
            return [], None
        try:
            vector = await self.embedding_model.embed_text(snippet)
        except Exception as e:
            logger.warning(f"Embedding failed for {key}, storing without vector: {e}")
            return [], None
        return list(vector), self.embedding_model.identity

    async def _build_entry(self, located: _Located) -> Optional[FileIndexEntry]:
        """Read, extract and embed one file. None means the file is not indexable."""
        stat = await asyncio.to_thread(located.absolute.stat)
        if stat.st_size > self.config.max_file_bytes:
            logger.debug(f"Skipping {located.key}: {stat.st_size} bytes exceeds size limit")
            return None

        data = await asyncio.to_thread(located.absolute.read_bytes)
        if b"\x00" in data[:_BINARY_SNIFF_BYTES]:
            logger.debug(f"Skipping {located.key}: binary content")
            return None
        text = data.decode("utf-8", errors="replace")

        result = self.extractor.extract(located.key, text)
        if result.error:
            logger.debug(f"Indexed {located.key} without symbols: {result.error}")

        embedding, embedding_model = await self._embed(located.key, text)

        return FileIndexEntry(
            path=located.key,
            content=text,
            language=(
                result.language
                or self.extractor.detect_language(located.key)
                or guess_language(located.key)
            ),
            symbols=result.symbols,
            imports=result.imports,
            embedding=embedding,
            embedding_model=embedding_model,
            last_modified=stat.st_mtime,
            parse_error=result.error,
        )

    async def _index_one(self, located: _Located) -> FileOutcome:
        """Index one file, containing every failure to this file."""
        try:
            entry = await self._build_entry(located)
        except Exception as e:
            logger.warning(f"Failed to index {located.key}: {e}")
            return FileOutcome.FAILED

        if entry is None:
            self.store.remove(located.key)
            return FileOutcome.SKIPPED
        self.store.put(entry)
        return FileOutcome.INDEXED

    # ------------------------------------------------------------------
    # Batch scheduling
    # ------------------------------------------------------------------

    async def _notify(self, on_progress: Optional[ProgressCallback], *args: int) -> None:
        if on_progress is None:
            return
        try:
            result = on_progress(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

    async def _run_batches(
        self,
        candidates: List[_Located],
        batch_size: int,
        on_progress: Optional[ProgressCallback],
    ) -> IndexingReport:
        state = _ScanState()
        report = state.report
        total = len(candidates)
        report.total_files = total
        batches = [candidates[i : i + batch_size] for i in range(0, total, batch_size)]

        for batch_index, batch in enumerate(batches, start=1):
            if self.session.cancel_requested:
                report.cancelled = True
                logger.info(f"Indexing cancelled after {state.processed}/{total} files")
                break

            outcomes = await asyncio.gather(*(self._index_one(item) for item in batch))
            for outcome in outcomes:
                if outcome == FileOutcome.INDEXED:
                    report.indexed_files += 1
                elif outcome == FileOutcome.SKIPPED:
                    report.skipped_files += 1
                else:
                    report.failed_files += 1
            state.processed += len(batch)
            self.session.processed_files = state.processed
            self.session.failed_files = report.failed_files
            report.batches = batch_index
            logger.debug(f"Batch {batch_index}/{len(batches)}: {state.processed}/{total} files")
            await self._notify(on_progress, batch_index, state.processed, total)

            if batch_index < len(batches):
                threshold = self.config.gc_hint_threshold
                if threshold and total >= threshold:
                    gc.collect()
                await asyncio.sleep(self.config.yield_seconds)

        return report

    def _prune(self, keep: Set[str], prefix: str = "") -> int:
        """Remove entries under ``prefix`` that are not in ``keep``."""
        removed = 0
        for key in self.store.paths():
            if key.startswith(prefix) and key not in keep:
                self.store.remove(key)
                self.attached_files.discard(key)
                removed += 1
        return removed

    async def _scan(
        self,
        start: Optional[_Located],
        batch_size: Optional[int],
        on_progress: Optional[ProgressCallback],
    ) -> IndexingReport:
        size = batch_size if batch_size is not None else self.config.batch_size
        if size <= 0:
            raise ValueError(f"batch_size must be positive, got {size}")
        if self.session.in_progress:
            logger.info("Indexing is already in progress, ignoring new scan request")
            return IndexingReport(skipped=True)

        self.session.begin()
        started = time.time()
        try:
            candidates = await asyncio.to_thread(self._collect_candidates, start)
            target = start.key if start is not None else "workspace"
            logger.info(f"Indexing {len(candidates)} files in {target} (batch size {size})")

            report = await self._run_batches(candidates, size, on_progress)
            if not report.cancelled:
                prefix = f"{start.key}/" if start is not None else ""
                report.removed_files = self._prune({c.key for c in candidates}, prefix)
        except Exception as e:
            self.session.fail(e)
            logger.error(f"Indexing failed: {e}")
            raise
        finally:
            self.session.end()

        report.elapsed = time.time() - started
        logger.info(
            f"Indexed {report.indexed_files}/{report.total_files} files in {report.elapsed:.2f}s "
            f"({report.failed_files} failed, {report.skipped_files} skipped, "
            f"{report.removed_files} removed)"
        )
        return report

    async def index_workspace(
        self,
        batch_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> IndexingReport:
        """Index every eligible file under all workspace roots.

        Entries are replaced file by file, so the index stays queryable during
        the scan; entries for files that disappeared or became excluded are
        removed once the scan completes.

        Args:
            batch_size: Files per batch (default from config)
            on_progress: Called after every batch with
                (batch_index, files_processed_so_far, total_files); batch_index
                starts at 1

        Returns:
            Scan report; ``skipped`` is set when a scan was already running
        """
        return await self._scan(None, batch_size, on_progress)

    async def attach_folder(
        self,
        path: Union[str, Path],
        batch_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> IndexingReport:
        """Index every eligible file below one workspace folder."""
        located = self._locate(path)
        if located is None or not located.absolute.is_dir():
            raise ValueError(f"Not a folder inside the workspace: {path}")
        report = await self._scan(located, batch_size, on_progress)
        if not report.skipped:
            self.attached_folders.add(located.key)
        return report

    async def attach_file(self, path: Union[str, Path]) -> Optional[FileIndexEntry]:
        """Re-index a single file, replacing its entry wholesale.

        Skipped (with a warning) while a full scan runs; the scan picks the
        file up. A deleted file is removed from the index and an excluded
        file is not indexed.

        Args:
            path: Absolute path or workspace-relative key

        Returns:
            The new entry, or None when nothing was indexed
        """
        if self.session.in_progress:
            logger.warning(f"Skipping update of {path}: full indexing in progress")
            return None

        located = self._locate(path)
        if located is None:
            logger.warning(f"Ignoring {path}: not inside a workspace root")
            return None

        if not located.absolute.is_file():
            self.remove_file(located.key)
            return None

        if self._filter_for(located.root).is_ignored(located.root_relative):
            logger.debug(f"Not indexing {located.key}: excluded by ignore rules")
            self.remove_file(located.key)
            return None

        outcome = await self._index_one(located)
        if outcome != FileOutcome.INDEXED:
            return None
        self.attached_files.add(located.key)
        logger.debug(f"Index updated for {located.key}")
        return self.store.get(located.key)

    def remove_file(self, path: Union[str, Path]) -> bool:
        """Drop a deleted file from the index."""
        key = self.key_for(path)
        self.attached_files.discard(key)
        removed = self.store.remove(key)
        if removed:
            logger.debug(f"Removed {key} from index")
        return removed

    def cancel(self) -> bool:
        """Request cancellation of the running scan at the next batch boundary."""
        if not self.session.in_progress:
            return False
        self.session.cancel_requested = True
        return True

    async def reembed_mismatched(self, batch_size: Optional[int] = None) -> int:
        """Re-embed entries whose vector came from a different model.

        Returns:
            Number of entries that now carry a vector from the active model
        """
        if self.embedding_model is None:
            return 0
        if self.session.in_progress:
            logger.warning("Skipping re-embedding: full indexing in progress")
            return 0

        identity = self.embedding_model.identity
        stale = [e for e in self.store.entries() if e.embedding_model != identity]
        size = batch_size or self.config.batch_size
        updated = 0

        async def reembed(entry: FileIndexEntry) -> bool:
            embedding, model = await self._embed(entry.path, entry.content)
            current = self.store.get(entry.path)
            if current is None or current.content != entry.content:
                return False
            self.store.put(current.model_copy(update={"embedding": embedding, "embedding_model": model}))
            return model is not None

        for i in range(0, len(stale), size):
            results = await asyncio.gather(*(reembed(e) for e in stale[i : i + size]))
            updated += sum(1 for ok in results if ok)
            await asyncio.sleep(self.config.yield_seconds)

        logger.info(f"Re-embedded {updated}/{len(stale)} files with {identity}")
        return updated

    def get_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = dict(self.store.get_stats())
        stats.update(
            {
                "state": self.session.state.value,
                "roots": [str(root) for root in self.roots],
                "embedding_model": self.embedding_model.identity if self.embedding_model else None,
                "attached_files": len(self.attached_files),
                "attached_folders": len(self.attached_folders),
                "last_indexed": self.session.finished_at,
                "last_error": self.session.last_error,
            }
        )
        return stats
