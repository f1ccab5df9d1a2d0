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

"""Syntax-tree symbol extraction.

The extractor walks a tree-sitter syntax tree in pre-order and records every
declaration the file's language plugin knows about, plus the module
specifiers of its import declarations. It never raises: a file that cannot
be parsed yields an empty result carrying an error message, and the caller
stores the file with empty symbol data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple, Union

from victor_index.codebase.models import SymbolInfo, SymbolSpan
from victor_index.languages.base import BaseLanguagePlugin, DeclarationRule, node_text
from victor_index.languages.registry import LanguageRegistry, create_default_registry

if TYPE_CHECKING:
    from tree_sitter import Node, Parser

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Symbols and imports extracted from one file."""

    symbols: List[SymbolInfo] = field(default_factory=list)
    imports: List[str] = field(default_factory=list)
    language: Optional[str] = None
    error: Optional[str] = None  # set when the file could not be parsed

    @property
    def ok(self) -> bool:
        return self.error is None


class SymbolExtractor:
    """Extract declared symbols and imports using registered language plugins."""

    def __init__(
        self,
        registry: Optional[LanguageRegistry] = None,
        tolerate_syntax_errors: bool = False,
    ):
        """Initialize extractor.

        Args:
            registry: Language registry to use. If None, the built-in plugins
                are registered in a new registry.
            tolerate_syntax_errors: Keep symbols from a partially parsed tree
                instead of treating any syntax error as a parse failure.
        """
        self.registry = registry or create_default_registry()
        self.tolerate_syntax_errors = tolerate_syntax_errors
        self._parsers: Dict[str, "Parser"] = {}

    def _get_parser(self, grammar: str) -> "Parser":
        if grammar not in self._parsers:
            from victor_index.codebase.tree_sitter_manager import get_parser

            self._parsers[grammar] = get_parser(grammar)
        return self._parsers[grammar]

    def detect_language(self, path: Union[str, PurePath]) -> Optional[str]:
        return self.registry.detect_language(path)

    def extract(self, path: Union[str, PurePath], text: str) -> ExtractionResult:
        """Extract symbols and imports from file text.

        Args:
            path: Workspace-relative path (used for language detection and
                recorded on each symbol)
            text: File content

        Returns:
            Extraction result; empty with ``error`` set on parse failure,
            empty without error for languages that have no plugin
        """
        rel_path = str(path).replace("\\", "/")
        plugin = self.registry.get_for_path(rel_path)
        if plugin is None or not plugin.config.tree_sitter_language:
            return ExtractionResult()

        try:
            return self._extract(plugin, rel_path, text)
        except Exception as e:
            logger.debug(f"Failed to extract symbols from {rel_path}: {e}")
            return ExtractionResult(language=plugin.name, error=str(e) or type(e).__name__)

    def _extract(self, plugin: BaseLanguagePlugin, rel_path: str, text: str) -> ExtractionResult:
        parser = self._get_parser(plugin.config.tree_sitter_language)
        source = text.encode("utf-8")
        tree = parser.parse(source)
        root = tree.root_node

        if root.has_error and not self.tolerate_syntax_errors:
            logger.debug(f"Syntax errors in {rel_path}, recording without symbols")
            return ExtractionResult(language=plugin.name, error="syntax error")

        lines = source.split(b"\n")
        symbols: List[SymbolInfo] = []
        imports: List[str] = []

        # Pre-order, document order; children are always visited so nested
        # declarations (methods, local variables) are recorded too
        stack: List["Node"] = [root]
        while stack:
            node = stack.pop()
            rule = plugin.declarations.get(node.type)
            if rule is not None:
                symbol = self._make_symbol(plugin, node, rule, rel_path, lines)
                if symbol is not None:
                    symbols.append(symbol)
            imports.extend(plugin.import_specifiers(node))
            stack.extend(reversed(node.named_children))

        return ExtractionResult(symbols=symbols, imports=imports, language=plugin.name)

    def _make_symbol(
        self,
        plugin: BaseLanguagePlugin,
        node: "Node",
        rule: DeclarationRule,
        rel_path: str,
        lines: List[bytes],
    ) -> Optional[SymbolInfo]:
        name_node = node.child_by_field_name(rule.name_field)
        # Destructuring patterns and computed names have no single name
        if name_node is None or name_node.type not in rule.name_types:
            return None
        name = node_text(name_node).strip()
        if not name:
            return None

        span_node = name_node if rule.span_from_name else node
        start_line, start_char = _to_position(span_node.start_point, lines)
        end_line, end_char = _to_position(span_node.end_point, lines)

        return SymbolInfo(
            name=name,
            kind=plugin.resolve_kind(node, rule),
            file_path=rel_path,
            span=SymbolSpan(
                start_line=start_line,
                start_char=start_char,
                end_line=end_line,
                end_char=end_char,
            ),
        )


def _to_position(point: Tuple[int, int], lines: List[bytes]) -> Tuple[int, int]:
    """Convert a tree-sitter (row, byte column) point to (1-based line, char column)."""
    row, column = point[0], point[1]
    if row < len(lines):
        char = len(lines[row][:column].decode("utf-8", errors="replace"))
    else:
        char = column
    return row + 1, char
