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

"""Base embedding model interface.

An embedding model turns text into a fixed-length vector. It is a remote,
fallible collaborator: implementations raise ``EmbeddingError`` and callers
decide how to degrade.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, Field


class EmbeddingError(RuntimeError):
    """Raised when an embedding model fails to produce a vector."""


class EmbeddingModelConfig(BaseModel):
    """Settings shared by every embedding model."""

    provider: str = Field(description="Provider kind (ollama, openai, ...)")
    model: str = Field(description="Embedding model name")
    dimension: Optional[int] = Field(
        default=None, gt=0, description="Expected vector length, checked when set"
    )
    timeout: float = Field(default=60.0, gt=0, description="Request timeout in seconds")


class BaseEmbeddingModel(ABC):
    """Abstract base for embedding models.

    Handles converting text -> vectors. Storage and search belong to the
    index store and the similarity module.
    """

    def __init__(self, config: EmbeddingModelConfig):
        self.config = config
        self._initialized = False

    @property
    def identity(self) -> str:
        """Identity stored next to every vector this model produced."""
        return f"{self.config.provider}:{self.config.model}"

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the model (connect to API, etc.). Idempotent."""

    @abstractmethod
    async def embed_text(self, text: str) -> List[float]:
        """Generate embedding for a single text.

        Raises:
            EmbeddingError: If the provider fails or returns no vector
        """

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts with concurrent requests."""
        return list(await asyncio.gather(*(self.embed_text(text) for text in texts)))

    def get_dimension(self) -> Optional[int]:
        return self.config.dimension

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""

    def _check_vector(self, vector: object) -> List[float]:
        if not isinstance(vector, list) or not vector:
            raise EmbeddingError(f"{self.identity} returned an empty embedding")
        try:
            values = [float(v) for v in vector]
        except (TypeError, ValueError) as e:
            raise EmbeddingError(f"{self.identity} returned a non-numeric embedding: {e}")
        expected = self.config.dimension
        if expected is not None and len(values) != expected:
            raise EmbeddingError(
                f"{self.identity} returned {len(values)} dimensions, expected {expected}"
            )
        return values

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(identity={self.identity})"
