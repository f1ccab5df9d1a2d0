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

"""Ignore rules deciding which workspace files are eligible for indexing.

This module centralizes the logic for determining which files and directories
should be excluded from indexing, so the workspace scanner, the single-file
attach path and the file watcher all agree.

Rules:
- Built-in defaults exclude VCS metadata, build output, dependency folders,
  lockfiles, minified assets and IDE folders
- A project-local ignore file (``.smileignore``) adds one glob per line;
  ``!pattern`` lines re-include paths
- Patterns use gitignore semantics: the last matching rule wins
- Binary extensions are rejected before any glob is evaluated
"""

import logging
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Union

import pathspec

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_FILE = ".smileignore"

DEFAULT_EXCLUDE_PATTERNS: List[str] = [
    # VCS
    ".git/",
    ".hg/",
    ".svn/",
    # Dependencies
    "node_modules/",
    "bower_components/",
    "vendor/",
    "venv/",
    ".venv/",
    "__pycache__/",
    "*.egg-info/",
    # Build outputs
    "dist/",
    "build/",
    "out/",
    "target/",
    # Coverage
    "coverage/",
    "htmlcov/",
    ".nyc_output/",
    # Scratch
    "tmp/",
    "temp/",
    # IDE folders
    ".idea/",
    ".vscode/",
    ".vs/",
    # Lockfiles
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "poetry.lock",
    "Pipfile.lock",
    "Cargo.lock",
    "composer.lock",
    "Gemfile.lock",
    # Minified and generated assets
    "*.min.js",
    "*.min.css",
    "*.map",
    # OS litter and logs
    ".DS_Store",
    "Thumbs.db",
    "*.log",
]

# Checked before any read; include rules cannot re-admit these
BINARY_EXTENSIONS = frozenset(
    {
        # Images
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".icns", ".webp", ".tif", ".tiff", ".psd",
        # Archives
        ".zip", ".tar", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".rar", ".jar", ".war", ".whl",
        # Executables and compiled objects
        ".exe", ".dll", ".so", ".dylib", ".bin", ".o", ".a", ".lib", ".obj", ".class",
        ".pyc", ".pyo", ".pyd", ".wasm", ".node",
        # Documents
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        # Media
        ".mp3", ".mp4", ".wav", ".ogg", ".flac", ".avi", ".mov", ".mkv", ".webm",
        # Fonts
        ".ttf", ".otf", ".woff", ".woff2", ".eot",
        # Data blobs
        ".db", ".sqlite", ".sqlite3", ".pkl", ".npy", ".npz", ".parquet",
    }
)


def normalize_relative_path(path: Union[str, Path]) -> str:
    """Normalize a workspace-relative path to POSIX form without a leading './'."""
    text = str(path).replace("\\", "/")
    while text.startswith("./"):
        text = text[2:]
    return text.lstrip("/")


def is_binary_path(path: Union[str, Path]) -> bool:
    """Check the extension against the binary blocklist (no file access)."""
    return PurePosixPath(normalize_relative_path(path)).suffix.lower() in BINARY_EXTENSIONS


class IgnoreFilter:
    """Compiled exclude/include rules for one workspace root.

    Example:
        >>> f = IgnoreFilter()
        >>> f.is_ignored("src/main.ts")
        False
        >>> f.is_ignored("node_modules/lodash/index.js")
        True
        >>> f.is_ignored("assets/logo.png")
        True
    """

    def __init__(self, patterns: Optional[Iterable[str]] = None):
        """Initialize the filter.

        Args:
            patterns: Gitignore-style lines evaluated after the defaults.
                Lines starting with '!' are include patterns.
        """
        self.patterns: List[str] = list(DEFAULT_EXCLUDE_PATTERNS)
        for line in patterns or []:
            line = line.strip()
            if line and not line.startswith("#"):
                self.patterns.append(line)
        self._spec = pathspec.GitIgnoreSpec.from_lines(self.patterns)

    @property
    def include_patterns(self) -> List[str]:
        return [p[1:] for p in self.patterns if p.startswith("!")]

    @property
    def exclude_patterns(self) -> List[str]:
        return [p for p in self.patterns if not p.startswith("!")]

    @classmethod
    def load(
        cls,
        workspace_root: Union[str, Path],
        ignore_file: str = DEFAULT_IGNORE_FILE,
        extra_patterns: Optional[Iterable[str]] = None,
    ) -> "IgnoreFilter":
        """Build a filter from the defaults plus the project's ignore file.

        Args:
            workspace_root: Workspace root directory
            ignore_file: Name of the project-local override file
            extra_patterns: Additional patterns from configuration, applied
                before the ignore file so the project file has the last word

        Returns:
            Compiled filter
        """
        lines: List[str] = list(extra_patterns or [])
        ignore_path = Path(workspace_root) / ignore_file
        if ignore_path.is_file():
            try:
                lines.extend(ignore_path.read_text(encoding="utf-8").splitlines())
                logger.debug(f"Loaded ignore rules from {ignore_path}")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Failed to read {ignore_path}, using default ignore rules: {e}")
        return cls(lines)

    def is_ignored(self, relative_path: Union[str, Path]) -> bool:
        """Check if a workspace-relative file path must not be indexed."""
        rel = normalize_relative_path(relative_path)
        if not rel or is_binary_path(rel):
            return True
        return self._spec.match_file(rel)

    def should_index(self, relative_path: Union[str, Path]) -> bool:
        return not self.is_ignored(relative_path)

    def should_descend(self, relative_dir: Union[str, Path]) -> bool:
        """Check whether the scanner needs to walk into a directory.

        Directories are pruned only when no include rule exists, since an
        include rule may re-admit a file below an excluded directory.
        """
        if self.include_patterns:
            return True
        rel = normalize_relative_path(relative_dir).rstrip("/")
        if not rel:
            return True
        return not self._spec.match_file(rel + "/")
