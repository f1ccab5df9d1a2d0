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

"""Python language plugin."""

from typing import TYPE_CHECKING, Dict, List

from victor_index.codebase.models import SymbolKind
from victor_index.languages.base import (
    BaseLanguagePlugin,
    DeclarationRule,
    LanguageConfig,
    node_text,
)

if TYPE_CHECKING:
    from tree_sitter import Node


class PythonPlugin(BaseLanguagePlugin):
    """Python plugin.

    Functions defined directly in a class body (decorated or not) are
    recorded as methods. Assignments to a plain name are variables; tuple
    and attribute targets are skipped.
    """

    def _create_config(self) -> LanguageConfig:
        return LanguageConfig(
            name="python",
            display_name="Python",
            extensions=[".py", ".pyi"],
            aliases=["py"],
            tree_sitter_language="python",
        )

    def _create_declaration_rules(self) -> Dict[str, DeclarationRule]:
        return {
            "class_definition": DeclarationRule(SymbolKind.CLASS),
            "function_definition": DeclarationRule(SymbolKind.FUNCTION),
            # PEP 695: type Alias = ...
            "type_alias_statement": DeclarationRule(
                SymbolKind.TYPE_ALIAS, name_field="left", name_types=("type", "identifier")
            ),
            "assignment": DeclarationRule(
                SymbolKind.VARIABLE, name_field="left", span_from_name=True
            ),
        }

    def resolve_kind(self, node: "Node", rule: DeclarationRule) -> SymbolKind:
        if node.type != "function_definition":
            return rule.kind
        parent = node.parent
        if parent is not None and parent.type == "decorated_definition":
            parent = parent.parent
        if (
            parent is not None
            and parent.type == "block"
            and parent.parent is not None
            and parent.parent.type == "class_definition"
        ):
            return SymbolKind.METHOD
        return rule.kind

    def import_specifiers(self, node: "Node") -> List[str]:
        if node.type == "import_statement":
            specifiers = []
            for name_node in node.children_by_field_name("name"):
                if name_node.type == "aliased_import":
                    name_node = name_node.child_by_field_name("name") or name_node
                text = node_text(name_node)
                if text:
                    specifiers.append(text)
            return specifiers
        if node.type == "import_from_statement":
            module = node.child_by_field_name("module_name")
            if module is not None:
                text = node_text(module)
                return [text] if text else []
        return []
