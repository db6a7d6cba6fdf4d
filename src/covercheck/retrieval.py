"""Retrieval engine — embeds the expanded query and over-fetches
candidate passages from the vector store."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import chromadb

from covercheck import vector_store as vs
from covercheck.config import EmbeddingConfig, VectorStoreConfig
from covercheck.embeddings import EmbeddingProvider
from covercheck.errors import ProviderError, RetrievalUnavailableError
from covercheck.models import Candidate, ExpandedQuery

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetrievalEngine:
    """Fetch ``overfetch_factor * N`` candidates for a query.

    Embedding and vector-store calls are retried with exponential backoff
    when they fail with a transient or rate-limit error. Authentication
    and malformed-input errors are raised immediately.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        collection: chromadb.Collection,
        config: VectorStoreConfig | None = None,
        embedding_config: EmbeddingConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.embedder = embedder
        self.collection = collection
        self.config = config or VectorStoreConfig()
        embed_cfg = embedding_config or EmbeddingConfig()
        self.max_retries = embed_cfg.max_retries
        self.backoff_base_s = embed_cfg.backoff_base_s
        self._sleep = sleep

    async def _with_retries(self, label: str, operation: Callable[[], Awaitable[T]]) -> T:
        last_error: ProviderError | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                return await operation()
            except ProviderError as exc:
                if not exc.retryable:
                    raise
                last_error = exc
                if attempt == self.max_retries:
                    break
                wait = self.backoff_base_s * 2 ** (attempt - 1)
                logger.warning(
                    "%s failed (%s), retrying in %.1fs (attempt %d/%d)",
                    label,
                    exc.kind.value,
                    wait,
                    attempt,
                    self.max_retries,
                )
                await self._sleep(wait)

        raise RetrievalUnavailableError(
            f"{label} unavailable after {self.max_retries} attempts",
            last_error=last_error,
        )

    async def embed(self, text: str) -> list[float]:
        return await self._with_retries("Embedding", lambda: self.embedder.embed(text))

    async def retrieve(self, expanded: ExpandedQuery, limit: int | None = None) -> list[Candidate]:
        """Return candidates ordered by descending similarity.

        Args:
            expanded: The interpreted query; its expanded text is embedded
                and its partition, if any, filters the search.
            limit: N, the number of passages the caller finally wants.
                Defaults to ``VectorStoreConfig.query_results``.

        Raises:
            RetrievalUnavailableError: If retries are exhausted.
            ProviderError: For non-retryable provider failures.
        """
        n = limit or self.config.query_results
        fetch = n * self.config.overfetch_factor
        text = expanded.expanded_text or expanded.query.text

        vector = await self.embed(text)
        candidates = await self._with_retries(
            "Vector search",
            lambda: asyncio.to_thread(
                vs.search, self.collection, vector, fetch, expanded.partition
            ),
        )
        logger.debug(
            "Retrieved %d candidates (requested %d, partition=%s)",
            len(candidates),
            fetch,
            expanded.partition,
        )
        return candidates
