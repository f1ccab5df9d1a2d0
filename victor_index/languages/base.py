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

"""Base types for language plugins.

A language plugin tells the symbol extractor which syntax-tree node types
are declarations, how to name them, and how to read import specifiers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from victor_index.codebase.models import SymbolKind

if TYPE_CHECKING:
    from tree_sitter import Node


@dataclass
class DeclarationRule:
    """How to turn one declaration node type into a symbol.

    Attributes:
        kind: Symbol kind recorded for the declaration
        name_field: Field of the node holding the name
        name_types: Accepted node types for the name; anything else (e.g. a
            destructuring pattern) produces no symbol
        span_from_name: Use the name node's span instead of the whole
            declaration (tight spans for variables)
    """

    kind: SymbolKind
    name_field: str = "name"
    name_types: Tuple[str, ...] = ("identifier",)
    span_from_name: bool = False


@dataclass
class LanguageConfig:
    """Identity and file mapping of a language."""

    name: str  # Canonical name (e.g., "typescript")
    display_name: str
    extensions: List[str] = field(default_factory=list)
    aliases: List[str] = field(default_factory=list)
    tree_sitter_language: Optional[str] = None  # grammar name in tree_sitter_manager


def node_text(node: "Node") -> str:
    """Decode a node's source text."""
    if node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def unquote(text: str) -> str:
    """Strip one pair of matching string delimiters."""
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'`":
        return text[1:-1]
    return text


class BaseLanguagePlugin(ABC):
    """Base class for language plugins.

    Subclasses provide the language config and the declaration table;
    languages with context-dependent kinds or imports override
    ``resolve_kind`` and ``import_specifiers``.
    """

    def __init__(self) -> None:
        self._config: Optional[LanguageConfig] = None
        self._declarations: Optional[Dict[str, DeclarationRule]] = None

    @property
    def config(self) -> LanguageConfig:
        if self._config is None:
            self._config = self._create_config()
        return self._config

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def declarations(self) -> Dict[str, DeclarationRule]:
        """Declaration rules keyed by tree-sitter node type."""
        if self._declarations is None:
            self._declarations = self._create_declaration_rules()
        return self._declarations

    @abstractmethod
    def _create_config(self) -> LanguageConfig:
        """Create the language configuration."""

    @abstractmethod
    def _create_declaration_rules(self) -> Dict[str, DeclarationRule]:
        """Create the declaration table."""

    def resolve_kind(self, node: "Node", rule: DeclarationRule) -> SymbolKind:
        """Return the symbol kind for a declaration node."""
        return rule.kind

    def import_specifiers(self, node: "Node") -> List[str]:
        """Return module specifiers if the node is an import declaration."""
        return []

    def detect_from_file(self, path: PurePath) -> bool:
        return path.suffix.lower() in self.config.extensions
