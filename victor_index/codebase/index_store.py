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

"""In-memory store of indexed workspace files.

The store owns every ``FileIndexEntry``: one entry per workspace-relative
path, replaced wholesale on re-index. A derived ``name -> symbols`` view is
kept in sync on every put/remove for exact-name lookups.

The store is accessed only from the event loop thread and holds no lock.
"""

import logging
import re
from collections import Counter
from typing import Dict, Iterator, List, Optional

from victor_index.codebase.ignore_patterns import normalize_relative_path
from victor_index.codebase.models import FileIndexEntry, SymbolInfo

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\W+")


class IndexStore:
    """Authoritative map from file path to its current index entry."""

    def __init__(self) -> None:
        self._entries: Dict[str, FileIndexEntry] = {}
        self._by_name: Dict[str, List[SymbolInfo]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and normalize_relative_path(path) in self._entries

    def __iter__(self) -> Iterator[FileIndexEntry]:
        return iter(list(self._entries.values()))

    def put(self, entry: FileIndexEntry) -> None:
        """Insert or replace the entry for ``entry.path``."""
        path = normalize_relative_path(entry.path)
        if path != entry.path or any(s.file_path != path for s in entry.symbols):
            symbols = [
                s if s.file_path == path else s.model_copy(update={"file_path": path})
                for s in entry.symbols
            ]
            entry = entry.model_copy(update={"path": path, "symbols": symbols})
        if path in self._entries:
            self._unlink_symbols(self._entries[path])
        self._entries[path] = entry
        for symbol in entry.symbols:
            self._by_name.setdefault(symbol.name, []).append(symbol)

    def remove(self, path: str) -> bool:
        """Delete the entry for a path.

        Returns:
            True if an entry was removed, False if the path was not indexed
        """
        entry = self._entries.pop(normalize_relative_path(path), None)
        if entry is None:
            return False
        self._unlink_symbols(entry)
        return True

    def get(self, path: str) -> Optional[FileIndexEntry]:
        return self._entries.get(normalize_relative_path(path))

    def paths(self) -> List[str]:
        return list(self._entries)

    def entries(self) -> List[FileIndexEntry]:
        return list(self._entries.values())

    def clear(self) -> None:
        self._entries.clear()
        self._by_name.clear()

    def _unlink_symbols(self, entry: FileIndexEntry) -> None:
        for symbol in entry.symbols:
            bucket = self._by_name.get(symbol.name)
            if not bucket:
                continue
            remaining = [s for s in bucket if s.file_path != entry.path]
            if remaining:
                self._by_name[symbol.name] = remaining
            else:
                del self._by_name[symbol.name]

    def find_by_name(self, name: str) -> List[SymbolInfo]:
        """Find symbols with exactly this name across all files."""
        return list(self._by_name.get(name, []))

    def find_at_position(self, path: str, line: int, char: int) -> Optional[SymbolInfo]:
        """Find the innermost symbol whose span contains a position.

        Among all symbols of the file containing (line, char), the one with the
        tightest span wins; on equal extent the later-starting symbol wins.

        Args:
            path: Workspace-relative file path
            line: 1-based line
            char: 0-based character column

        Returns:
            The symbol, or None when the file is not indexed or no span
            contains the position
        """
        entry = self.get(path)
        if entry is None:
            return None

        best: Optional[SymbolInfo] = None
        for symbol in entry.symbols:
            if not symbol.span.contains(line, char):
                continue
            if best is None or _is_tighter(symbol, best):
                best = symbol
        return best

    def find_relevant_files(self, text: str, limit: int = 10) -> List[FileIndexEntry]:
        """Rank files by how many distinct query words their content contains.

        Words shorter than four characters are ignored. Matching is
        case-insensitive; ties keep indexing order.
        """
        words = {w for w in _WORD_RE.split(text.lower()) if len(w) > 3}
        if not words or limit <= 0:
            return []

        scored = []
        for entry in self._entries.values():
            content = entry.content.lower()
            score = sum(1 for word in words if word in content)
            if score > 0:
                scored.append((score, entry))
        scored.sort(key=lambda item: item[0], reverse=True)
        return [entry for _, entry in scored[:limit]]

    def search_files(self, query: str) -> List[FileIndexEntry]:
        """Files whose content contains ``query``, case-insensitively, in indexing order."""
        needle = query.lower()
        if not needle:
            return []
        return [entry for entry in self._entries.values() if needle in entry.content.lower()]

    def get_stats(self) -> Dict[str, object]:
        languages = Counter(entry.language or "plaintext" for entry in self._entries.values())
        return {
            "total_files": len(self._entries),
            "total_symbols": sum(len(e.symbols) for e in self._entries.values()),
            "embedded_files": sum(1 for e in self._entries.values() if e.has_embedding),
            "parse_failures": sum(1 for e in self._entries.values() if e.parse_error),
            "unique_symbol_names": len(self._by_name),
            "languages": dict(languages),
        }


def _is_tighter(candidate: SymbolInfo, current: SymbolInfo) -> bool:
    if candidate.span.extent != current.span.extent:
        return candidate.span.extent < current.span.extent
    return (candidate.span.start_line, candidate.span.start_char) >= (
        current.span.start_line,
        current.span.start_char,
    )
