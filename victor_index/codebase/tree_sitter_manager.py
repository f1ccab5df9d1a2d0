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

"""Tree-sitter grammar loading and parser caching."""

import importlib
from typing import Dict, Tuple

from tree_sitter import Language, Parser

# Pre-compiled grammar packages for tree-sitter 0.25+
# Format: "language_name": ("module_name", "function_name")
# function_name returns the grammar capsule (usually "language")
LANGUAGE_MODULES: Dict[str, Tuple[str, str]] = {
    "python": ("tree_sitter_python", "language"),
    "javascript": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx"),
}

_language_cache: Dict[str, Language] = {}
_parser_cache: Dict[str, Parser] = {}


def get_language(language: str) -> Language:
    """Load a tree-sitter Language from its pre-compiled grammar package."""
    if language in _language_cache:
        return _language_cache[language]

    module_info = LANGUAGE_MODULES.get(language)
    if not module_info:
        raise ValueError(f"Unsupported language for tree-sitter: {language}")

    module_name, func_name = module_info

    try:
        language_module = importlib.import_module(module_name)
        lang_func = getattr(language_module, func_name)
    except ImportError:
        raise ImportError(
            f"Language package '{module_name}' not installed. "
            f"Install it with: pip install {module_name.replace('_', '-')}"
        )
    except AttributeError:
        raise AttributeError(
            f"Language module '{module_name}' does not have function '{func_name}'. "
            f"Check the tree-sitter package version and update LANGUAGE_MODULES."
        )

    lang_obj = lang_func()
    lang = lang_obj if isinstance(lang_obj, Language) else Language(lang_obj)
    _language_cache[language] = lang
    return lang


def get_parser(language: str) -> Parser:
    """Return a cached Parser for the language.

    Parsers are reused across files. Parsing is synchronous and runs on the
    event loop thread, so a single instance per language is never shared
    between threads.
    """
    if language in _parser_cache:
        return _parser_cache[language]

    parser = Parser(get_language(language))
    _parser_cache[language] = parser
    return parser
