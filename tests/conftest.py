# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Shared fixtures for the workspace index tests."""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pytest

from victor_index.codebase.embeddings.base import (
    BaseEmbeddingModel,
    EmbeddingError,
    EmbeddingModelConfig,
)


class FakeEmbeddingModel(BaseEmbeddingModel):
    """Deterministic embedding model.

    Returns the vector of the first marker found in the text, the default
    vector otherwise, and raises for texts containing a failure marker.
    """

    def __init__(
        self,
        vectors: Optional[Dict[str, Sequence[float]]] = None,
        default: Sequence[float] = (1.0, 0.0, 0.0),
        fail_on: Iterable[str] = (),
        model: str = "fake-model",
    ):
        super().__init__(EmbeddingModelConfig(provider="fake", model=model))
        self.vectors = dict(vectors or {})
        self.default = list(default)
        self.fail_on = list(fail_on)
        self.calls: List[str] = []
        self.closed = False

    async def initialize(self) -> None:
        self._initialized = True

    async def embed_text(self, text: str) -> List[float]:
        self.calls.append(text)
        for marker in self.fail_on:
            if marker in text:
                raise EmbeddingError(f"cannot embed text containing {marker!r}")
        for marker, vector in self.vectors.items():
            if marker in text:
                return list(vector)
        return list(self.default)

    async def close(self) -> None:
        self.closed = True


def _write_files(root: Path, files: Dict[str, str]) -> None:
    """Create files (and parent folders) below root."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


UTIL_TS = """import { round } from "./math";

export function add(a: number, b: number): number {
  return round(a + b);
}

export const zero = 0;
"""


@pytest.fixture
def make_model():
    """Factory for fake embedding models."""
    return FakeEmbeddingModel


@pytest.fixture
def fake_model() -> FakeEmbeddingModel:
    return FakeEmbeddingModel()


@pytest.fixture
def write_files():
    return _write_files


@pytest.fixture
def util_ts() -> str:
    return UTIL_TS


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root
