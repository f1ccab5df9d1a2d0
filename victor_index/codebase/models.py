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

"""Data model for the workspace code index.

Symbols and file entries are immutable pydantic models. The index store
replaces an entry wholesale whenever a file is re-indexed, so nothing ever
edits an entry in place.
"""

import time
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SymbolKind(str, Enum):
    """Kinds of declarations the extractor records."""

    FUNCTION = "function"
    METHOD = "method"
    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"
    TYPE_ALIAS = "type_alias"
    VARIABLE = "variable"


class SymbolSpan(BaseModel):
    """Source region of a declaration.

    Lines are 1-based, characters are 0-based columns counted in code points.
    """

    model_config = ConfigDict(frozen=True)

    start_line: int = Field(ge=1)
    start_char: int = Field(ge=0)
    end_line: int = Field(ge=1)
    end_char: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_not_inverted(self) -> "SymbolSpan":
        if (self.end_line, self.end_char) < (self.start_line, self.start_char):
            raise ValueError(
                f"span ends before it starts: "
                f"{self.start_line}:{self.start_char} > {self.end_line}:{self.end_char}"
            )
        return self

    def contains(self, line: int, char: int) -> bool:
        """Check whether a position falls inside the span.

        Character bounds only apply on the first and last line of the span.
        """
        if line < self.start_line or line > self.end_line:
            return False
        if line == self.start_line and char < self.start_char:
            return False
        if line == self.end_line and char > self.end_char:
            return False
        return True

    @property
    def extent(self) -> Tuple[int, int]:
        """(line delta, char delta), smaller means tighter."""
        return (self.end_line - self.start_line, self.end_char - self.start_char)


class SymbolInfo(BaseModel):
    """A named, locatable declaration in a workspace file."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    kind: SymbolKind
    file_path: str  # workspace relative, POSIX separators
    span: SymbolSpan

    @property
    def start_line(self) -> int:
        return self.span.start_line

    @property
    def end_line(self) -> int:
        return self.span.end_line


class FileIndexEntry(BaseModel):
    """Indexed state of one workspace file."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: str
    language: Optional[str] = None
    symbols: List[SymbolInfo] = Field(default_factory=list)
    imports: List[str] = Field(default_factory=list)
    embedding: List[float] = Field(default_factory=list)
    embedding_model: Optional[str] = None  # "provider:model" that produced the vector
    last_modified: float = 0.0  # file mtime when indexed
    indexed_at: float = Field(default_factory=time.time)
    parse_error: Optional[str] = None

    @field_validator("imports")
    @classmethod
    def _normalize_imports(cls, value: List[str]) -> List[str]:
        return sorted(set(value))

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding) and any(v != 0.0 for v in self.embedding)
