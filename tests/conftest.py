"""Shared fixtures and fakes for the test suite."""

import hashlib
import re

import pytest

from covercheck.config import AppConfig, EmbeddingConfig, GenerationConfig, VectorStoreConfig
from covercheck.errors import BackendError, ErrorKind
from covercheck.models import Candidate, GenerationRequest


async def collect(agen) -> list:
    """Drain an async iterator into a list."""
    return [item async for item in agen]


def make_candidate(
    url: str = "https://example.co.za/doc",
    similarity: float = 0.5,
    content: str = "Some passage.",
    title: str | None = None,
    partition: str = "Discovery Health",
) -> Candidate:
    return Candidate(
        content=content,
        title=title or f"Title for {url.rsplit('/', 1)[-1]}",
        url=url,
        partition=partition,
        similarity=similarity,
    )


class FakeEmbedder:
    """Deterministic bag-of-words embedder; can be scripted to fail."""

    name = "fake"
    dimensions = 32

    def __init__(self, failures: list[Exception] | None = None) -> None:
        self.failures = list(failures or [])
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.failures:
            raise self.failures.pop(0)
        return bag_of_words(text, self.dimensions)


def bag_of_words(text: str, dimensions: int = 32) -> list[float]:
    vector = [0.0] * dimensions
    vector[0] = 0.01
    for word in re.findall(r"\w+", text.lower()):
        bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % (dimensions - 1) + 1
        vector[bucket] += 1.0
    return vector


class FakeBackend:
    """A generation backend that yields scripted deltas or raises."""

    def __init__(
        self,
        name: str,
        deltas: list[str] | None = None,
        error: BackendError | None = None,
        fail_after: int | None = None,
    ) -> None:
        self.name = name
        self.deltas = deltas if deltas is not None else [f"answer from {name}"]
        self.error = error
        self.fail_after = fail_after
        self.attempts = 0
        self.closed = False
        self.requests: list[GenerationRequest] = []

    async def stream(self, request: GenerationRequest):
        self.attempts += 1
        self.requests.append(request)
        try:
            if self.error is not None and self.fail_after is None:
                raise self.error
            for i, delta in enumerate(self.deltas):
                if self.fail_after is not None and i == self.fail_after:
                    raise self.error
                yield delta
        finally:
            self.closed = True


def rate_limited(name: str = "b") -> FakeBackend:
    return FakeBackend(
        name, error=BackendError("429 Too Many Requests", ErrorKind.RATE_LIMITED, 429)
    )


class FakeRetrieval:
    """Stands in for RetrievalEngine: returns fixed candidates or raises."""

    def __init__(self, candidates: list[Candidate] | None = None, error: Exception | None = None):
        self.candidates = candidates or []
        self.error = error
        self.calls: list[tuple] = []
        self.embedder = FakeEmbedder()

    async def retrieve(self, expanded, limit=None):
        self.calls.append((expanded, limit))
        if self.error is not None:
            raise self.error
        return list(self.candidates)


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    return AppConfig(
        embedding=EmbeddingConfig(backoff_base_s=0.0),
        vector_store=VectorStoreConfig(db_path=str(tmp_path / "chroma_db")),
        generation=GenerationConfig(backends=["b1", "b2", "b3"], api_key="test-key"),
    )


@pytest.fixture
def sample_candidates() -> list[Candidate]:
    return [
        make_candidate(
            "https://discovery.co.za/chronic",
            0.82,
            "Chronic medication for CDL conditions is paid from risk.",
            title="Discovery Chronic Illness Benefit",
        ),
        make_candidate(
            "https://bonitas.co.za/chronic",
            0.78,
            "Bonitas covers chronic conditions on the CDL.",
            title="Bonitas Chronic Benefits",
            partition="Bonitas Medical Fund",
        ),
        make_candidate(
            "https://discovery.co.za/chronic",
            0.75,
            "Register your chronic condition before claiming.",
            title="Discovery Chronic Illness Benefit",
        ),
    ]
