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

"""JavaScript language plugin."""

from typing import TYPE_CHECKING, Dict, List

from victor_index.codebase.models import SymbolKind
from victor_index.languages.base import (
    BaseLanguagePlugin,
    DeclarationRule,
    LanguageConfig,
    node_text,
    unquote,
)

if TYPE_CHECKING:
    from tree_sitter import Node

# Method names that are plain identifiers; computed names like [Symbol.iterator] are skipped
METHOD_NAME_TYPES = ("property_identifier", "private_property_identifier", "identifier")


class JavaScriptPlugin(BaseLanguagePlugin):
    """JavaScript (ES modules, JSX) plugin."""

    def _create_config(self) -> LanguageConfig:
        return LanguageConfig(
            name="javascript",
            display_name="JavaScript",
            extensions=[".js", ".jsx", ".mjs", ".cjs"],
            aliases=["js", "jsx"],
            tree_sitter_language="javascript",
        )

    def _create_declaration_rules(self) -> Dict[str, DeclarationRule]:
        return {
            "function_declaration": DeclarationRule(SymbolKind.FUNCTION),
            "generator_function_declaration": DeclarationRule(SymbolKind.FUNCTION),
            "class_declaration": DeclarationRule(SymbolKind.CLASS),
            "method_definition": DeclarationRule(SymbolKind.METHOD, name_types=METHOD_NAME_TYPES),
            "variable_declarator": DeclarationRule(SymbolKind.VARIABLE, span_from_name=True),
        }

    def import_specifiers(self, node: "Node") -> List[str]:
        if node.type != "import_statement":
            return []
        source = node.child_by_field_name("source")
        if source is None:
            return []
        specifier = unquote(node_text(source))
        return [specifier] if specifier else []
