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

"""HTTP embedding models.

Each provider kind has its own typed settings model; ``EmbeddingSettings`` is
the discriminated union the configuration layer accepts.

- Ollama: ``POST /api/embeddings`` with ``{"model", "prompt"}``
- OpenAI compatible (OpenAI, LM Studio, LocalAI, ...): ``POST /embeddings``
  with ``{"model", "input"}``
"""

import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Type, Union

import httpx
from pydantic import Field

from victor_index.codebase.embeddings.base import (
    BaseEmbeddingModel,
    EmbeddingError,
    EmbeddingModelConfig,
)

logger = logging.getLogger(__name__)


class OllamaEmbeddingSettings(EmbeddingModelConfig):
    """Settings for a local Ollama server."""

    provider: Literal["ollama"] = "ollama"
    model: str = Field(default="nomic-embed-text", description="Ollama embedding model")
    base_url: str = Field(default="http://localhost:11434", description="Ollama server URL")
    timeout: float = Field(default=120.0, gt=0, description="Longer timeout for large models")


class OpenAIEmbeddingSettings(EmbeddingModelConfig):
    """Settings for an OpenAI compatible embeddings endpoint."""

    provider: Literal["openai"] = "openai"
    model: str = Field(default="text-embedding-3-small", description="Embedding model name")
    base_url: str = Field(default="https://api.openai.com/v1", description="API base URL")
    api_key: Optional[str] = Field(default=None, description="Bearer token, if required")


EmbeddingSettings = Annotated[
    Union[OllamaEmbeddingSettings, OpenAIEmbeddingSettings],
    Field(discriminator="provider"),
]


class _HttpEmbeddingModel(BaseEmbeddingModel):
    """Shared httpx client handling for HTTP embedding models."""

    def __init__(self, config: EmbeddingModelConfig, client: Optional[httpx.AsyncClient] = None):
        super().__init__(config)
        self.client = client
        self._owns_client = client is None

    def _client_kwargs(self) -> Dict[str, Any]:
        return {"base_url": self.config.base_url, "timeout": self.config.timeout}

    async def initialize(self) -> None:
        if self._initialized:
            return
        if self.client is None:
            self.client = httpx.AsyncClient(**self._client_kwargs())
        self._initialized = True
        logger.debug(f"Embedding model ready: {self.identity} at {self.config.base_url}")

    async def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        if not self._initialized:
            await self.initialize()
        try:
            response = await self.client.post(path, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise EmbeddingError(
                f"{self.identity} request failed with HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise EmbeddingError(f"{self.identity} request failed: {e}") from e
        except ValueError as e:
            raise EmbeddingError(f"{self.identity} returned invalid JSON: {e}") from e

    async def close(self) -> None:
        """Close the HTTP client if this model created it."""
        if self.client is not None and self._owns_client:
            await self.client.aclose()
            self.client = None
        self._initialized = False


class OllamaEmbeddingModel(_HttpEmbeddingModel):
    """Ollama embedding model (local server).

    Ollama has no batch endpoint for this API, so ``embed_batch`` falls back
    to concurrent single requests.
    """

    async def embed_text(self, text: str) -> List[float]:
        result = await self._post("/api/embeddings", {"model": self.config.model, "prompt": text})
        if not isinstance(result, dict):
            raise EmbeddingError(f"{self.identity} returned an unexpected payload")
        return self._check_vector(result.get("embedding"))


class OpenAIEmbeddingModel(_HttpEmbeddingModel):
    """OpenAI compatible embedding model."""

    def _client_kwargs(self) -> Dict[str, Any]:
        kwargs = super()._client_kwargs()
        if self.config.api_key:
            kwargs["headers"] = {"Authorization": f"Bearer {self.config.api_key}"}
        return kwargs

    async def embed_text(self, text: str) -> List[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed several texts in one request; results follow input order."""
        if not texts:
            return []
        result = await self._post("embeddings", {"model": self.config.model, "input": texts})
        try:
            data = sorted(result["data"], key=lambda item: item.get("index", 0))
            vectors = [self._check_vector(item["embedding"]) for item in data]
        except (KeyError, TypeError, AttributeError) as e:
            raise EmbeddingError(f"{self.identity} returned an unexpected payload: {e}") from e
        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"{self.identity} returned {len(vectors)} embeddings for {len(texts)} inputs"
            )
        return vectors


# Model Registry
_embedding_models: Dict[str, Type[_HttpEmbeddingModel]] = {
    "ollama": OllamaEmbeddingModel,
    "openai": OpenAIEmbeddingModel,
}


def create_embedding_model(
    settings: EmbeddingModelConfig, client: Optional[httpx.AsyncClient] = None
) -> BaseEmbeddingModel:
    """Factory function to create an embedding model from its settings.

    Args:
        settings: Provider settings (one of the ``EmbeddingSettings`` variants)
        client: Optional pre-built HTTP client (shared pools, tests)

    Raises:
        ValueError: If the provider kind is not recognized
    """
    model_class = _embedding_models.get(settings.provider)
    if not model_class:
        available = ", ".join(_embedding_models.keys())
        raise ValueError(
            f"Unknown embedding provider: {settings.provider}. Available: {available}"
        )
    return model_class(settings, client=client)
