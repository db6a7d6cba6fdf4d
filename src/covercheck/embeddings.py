"""Embedding providers — turn query text into a vector.

Three providers are supported, selected by ``EmbeddingConfig.provider``:
a local Ollama server, the Hugging Face inference router, and OpenAI.
Every provider raises :class:`~covercheck.errors.EmbeddingError` with a
classified ``kind``; retrying is left to the retrieval engine.
"""

import logging
from typing import Protocol

import httpx
import ollama
import openai

from covercheck.config import EmbeddingConfig
from covercheck.errors import EmbeddingError, ErrorKind, classify_exception, classify_status

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    name: str
    dimensions: int

    async def embed(self, text: str) -> list[float]: ...


def _wrap(exc: Exception, provider: str) -> EmbeddingError:
    kind, status = classify_exception(exc)
    return EmbeddingError(f"{provider} embedding failed: {exc}", kind=kind, status_code=status)


def _check_vector(vector: object, provider: str) -> list[float]:
    if not isinstance(vector, list) or not vector:
        raise EmbeddingError(
            f"Unexpected response format from {provider}", kind=ErrorKind.OTHER
        )
    return [float(x) for x in vector]


class OllamaEmbeddingProvider:
    """Local embeddings served by Ollama (``nomic-embed-text``)."""

    name = "ollama"
    dimensions = 768

    def __init__(
        self,
        model: str = "nomic-embed-text",
        host: str | None = None,
        client: ollama.AsyncClient | None = None,
    ) -> None:
        self.model = model
        self.client = client or ollama.AsyncClient(host=host)

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self.client.embeddings(model=self.model, prompt=text)
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as exc:
            raise _wrap(exc, "Ollama") from exc
        return _check_vector(response["embedding"], "Ollama")


class HuggingFaceEmbeddingProvider:
    """Hugging Face inference router (``BAAI/bge-small-en-v1.5``)."""

    name = "huggingface"
    dimensions = 384
    base_url = "https://router.huggingface.co/hf-inference/models"

    def __init__(
        self,
        api_key: str,
        model: str = "BAAI/bge-small-en-v1.5",
        timeout_s: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model = model
        self.client = client or httpx.AsyncClient(timeout=timeout_s)
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self.client.post(
                f"{self.base_url}/{self.model}",
                headers=self._headers,
                json={"inputs": [text], "options": {"wait_for_model": True}},
            )
        except httpx.HTTPError as exc:
            raise _wrap(exc, "Hugging Face") from exc

        if response.is_error:
            raise EmbeddingError(
                f"Hugging Face API error: {response.status_code} - {response.text[:200]}",
                kind=classify_status(response.status_code),
                status_code=response.status_code,
            )

        result = response.json()
        # The router returns either [[...]] for batched input or [...].
        if isinstance(result, list) and result and isinstance(result[0], list):
            result = result[0]
        return _check_vector(result, "Hugging Face")


class OpenAIEmbeddingProvider:
    """OpenAI embeddings (``text-embedding-3-small``)."""

    name = "openai"
    dimensions = 1536

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "text-embedding-3-small",
        client: openai.AsyncOpenAI | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model = model
        # Retries belong to RetrievalEngine, so the SDK must not add its own.
        self.client = client or openai.AsyncOpenAI(
            api_key=api_key, max_retries=0, http_client=http_client
        )

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self.client.embeddings.create(model=self.model, input=text)
        except openai.OpenAIError as exc:
            raise _wrap(exc, "OpenAI") from exc
        return _check_vector(list(response.data[0].embedding), "OpenAI")


def get_embedding_provider(config: EmbeddingConfig | None = None) -> EmbeddingProvider:
    """Build the embedding provider named in the configuration.

    Raises:
        ValueError: If a cloud provider is selected without an API key.
    """
    cfg = config or EmbeddingConfig()

    if cfg.provider == "huggingface":
        if not cfg.api_key:
            raise ValueError("EMBED_API_KEY is required for the Hugging Face provider")
        logger.info("Using Hugging Face embeddings")
        return HuggingFaceEmbeddingProvider(
            cfg.api_key,
            model=cfg.model or "BAAI/bge-small-en-v1.5",
            timeout_s=cfg.timeout_s,
        )

    if cfg.provider == "openai":
        if not cfg.api_key:
            raise ValueError("EMBED_API_KEY is required for the OpenAI provider")
        logger.info("Using OpenAI embeddings")
        return OpenAIEmbeddingProvider(cfg.api_key, model=cfg.model or "text-embedding-3-small")

    logger.info("Using Ollama embeddings (local)")
    return OllamaEmbeddingProvider(model=cfg.model or "nomic-embed-text", host=cfg.host)
