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

"""Language plugin registry.

Maps file extensions and aliases to plugins so the extractor never
branches on language names.
"""

from __future__ import annotations

import logging
from pathlib import PurePath
from typing import Dict, List, Optional, Type, Union

from victor_index.languages.base import BaseLanguagePlugin

logger = logging.getLogger(__name__)


class LanguageRegistry:
    """Registry for language plugins."""

    def __init__(self) -> None:
        self._plugins: Dict[str, BaseLanguagePlugin] = {}
        self._extension_map: Dict[str, str] = {}  # .py -> python
        self._alias_map: Dict[str, str] = {}  # py -> python

    def register(self, plugin: Union[BaseLanguagePlugin, Type[BaseLanguagePlugin]]) -> None:
        """Register a plugin instance or class under its canonical name."""
        instance = plugin() if isinstance(plugin, type) else plugin
        name = instance.name.lower()
        self._plugins[name] = instance

        for ext in instance.config.extensions:
            ext = ext.lower()
            if not ext.startswith("."):
                ext = "." + ext
            self._extension_map[ext] = name
        for alias in instance.config.aliases:
            self._alias_map[alias.lower()] = name
        logger.debug(f"Registered language plugin: {name}")

    def get(self, name: str) -> BaseLanguagePlugin:
        """Get a plugin by name or alias.

        Raises:
            KeyError: If no plugin is registered under that name
        """
        key = name.lower()
        key = self._alias_map.get(key, key)
        if key not in self._plugins:
            available = ", ".join(sorted(self._plugins)) or "none"
            raise KeyError(f"Unknown language: {name}. Available: {available}")
        return self._plugins[key]

    def detect_language(self, path: Union[str, PurePath]) -> Optional[str]:
        """Detect the language of a file from its extension."""
        suffix = PurePath(str(path)).suffix.lower()
        return self._extension_map.get(suffix)

    def get_for_path(self, path: Union[str, PurePath]) -> Optional[BaseLanguagePlugin]:
        language = self.detect_language(path)
        return self._plugins.get(language) if language else None

    def list_languages(self) -> List[str]:
        return sorted(self._plugins)

    def discover_plugins(self) -> int:
        """Register the built-in plugins.

        Returns:
            Number of plugins registered
        """
        from victor_index.languages.plugins import (
            JavaScriptPlugin,
            PythonPlugin,
            TsxPlugin,
            TypeScriptPlugin,
        )

        count = 0
        for plugin_class in (PythonPlugin, JavaScriptPlugin, TypeScriptPlugin, TsxPlugin):
            try:
                self.register(plugin_class)
                count += 1
            except Exception as e:
                logger.warning(f"Failed to register {plugin_class.__name__}: {e}")

        logger.debug(f"Discovered {count} language plugins")
        return count


def create_default_registry() -> LanguageRegistry:
    """Create a registry populated with the built-in plugins."""
    registry = LanguageRegistry()
    registry.discover_plugins()
    return registry


# Display languages for files without a plugin (code fences, stats)
EXTENSION_LANGUAGES: Dict[str, str] = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
    ".pyi": "python",
    ".java": "java",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".go": "go",
    ".rs": "rust",
    ".php": "php",
    ".rb": "ruby",
    ".swift": "swift",
    ".kt": "kotlin",
    ".scala": "scala",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".json": "json",
    ".xml": "xml",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".md": "markdown",
    ".sql": "sql",
    ".sh": "shell",
}


def guess_language(path: Union[str, PurePath]) -> Optional[str]:
    """Language name from the file extension alone, None when unknown."""
    return EXTENSION_LANGUAGES.get(PurePath(str(path)).suffix.lower())
