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

"""TypeScript language plugins (.ts and .tsx grammars)."""

from typing import Dict

from victor_index.codebase.models import SymbolKind
from victor_index.languages.base import DeclarationRule, LanguageConfig
from victor_index.languages.plugins.javascript import METHOD_NAME_TYPES, JavaScriptPlugin

# Class and type names are type_identifier nodes in the TypeScript grammar
TYPE_NAME_TYPES = ("type_identifier", "identifier")


class TypeScriptPlugin(JavaScriptPlugin):
    """TypeScript plugin.

    Extends the JavaScript table with interfaces, enums, type aliases and
    abstract classes.
    """

    def _create_config(self) -> LanguageConfig:
        return LanguageConfig(
            name="typescript",
            display_name="TypeScript",
            extensions=[".ts", ".mts", ".cts"],
            aliases=["ts"],
            tree_sitter_language="typescript",
        )

    def _create_declaration_rules(self) -> Dict[str, DeclarationRule]:
        rules = super()._create_declaration_rules()
        rules.update(
            {
                "class_declaration": DeclarationRule(SymbolKind.CLASS, name_types=TYPE_NAME_TYPES),
                "abstract_class_declaration": DeclarationRule(
                    SymbolKind.CLASS, name_types=TYPE_NAME_TYPES
                ),
                "method_definition": DeclarationRule(
                    SymbolKind.METHOD, name_types=METHOD_NAME_TYPES
                ),
                "interface_declaration": DeclarationRule(
                    SymbolKind.INTERFACE, name_types=TYPE_NAME_TYPES
                ),
                # Overload signatures without a body
                "function_signature": DeclarationRule(SymbolKind.FUNCTION),
                "enum_declaration": DeclarationRule(SymbolKind.ENUM),
                "type_alias_declaration": DeclarationRule(
                    SymbolKind.TYPE_ALIAS, name_types=TYPE_NAME_TYPES
                ),
            }
        )
        return rules


class TsxPlugin(TypeScriptPlugin):
    """TypeScript with JSX, parsed with the tsx grammar."""

    def _create_config(self) -> LanguageConfig:
        return LanguageConfig(
            name="tsx",
            display_name="TypeScript JSX",
            extensions=[".tsx"],
            tree_sitter_language="tsx",
        )
