"""Classified errors raised at the provider boundary."""

from enum import Enum

import httpx
import ollama
import openai


class ErrorKind(str, Enum):
    """How a provider failure should be handled by the caller."""

    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    AUTH = "auth"
    MALFORMED = "malformed"
    OTHER = "other"


RETRYABLE_KINDS = frozenset({ErrorKind.TRANSIENT, ErrorKind.RATE_LIMITED})


def classify_status(status_code: int | None) -> ErrorKind:
    """Map an HTTP status code onto an ErrorKind."""
    if status_code is None:
        return ErrorKind.OTHER
    if status_code in (401, 403):
        return ErrorKind.AUTH
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code == 408 or status_code >= 500:
        return ErrorKind.TRANSIENT
    if 400 <= status_code < 500:
        return ErrorKind.MALFORMED
    return ErrorKind.OTHER


class CoverCheckError(Exception):
    """Base class for all pipeline errors."""


class ProviderError(CoverCheckError):
    """A failure reported by an external provider, with its classification."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.OTHER,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({str(self)!r}, kind={self.kind.value}, "
            f"status_code={self.status_code})"
        )


class EmbeddingError(ProviderError):
    """The embedding provider failed."""


class VectorStoreError(ProviderError):
    """The vector store query failed."""


class BackendError(ProviderError):
    """A generation backend failed."""


class RetrievalUnavailableError(CoverCheckError):
    """Retrieval could not complete after all retry attempts."""

    def __init__(self, message: str, last_error: ProviderError | None = None) -> None:
        super().__init__(message)
        self.last_error = last_error


def classify_exception(exc: BaseException) -> tuple[ErrorKind, int | None]:
    """Classify a third-party client exception.

    Understands the exception types raised by ``openai``, ``ollama`` and
    ``httpx``; anything else is ``ErrorKind.OTHER``.
    """
    if isinstance(exc, openai.APIStatusError):
        return classify_status(exc.status_code), exc.status_code
    if isinstance(exc, (openai.APIConnectionError, openai.APITimeoutError)):
        return ErrorKind.TRANSIENT, None
    if isinstance(exc, ollama.ResponseError):
        status = exc.status_code if exc.status_code and exc.status_code > 0 else None
        return classify_status(status), status
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return classify_status(status), status
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return ErrorKind.TRANSIENT, None
    return ErrorKind.OTHER, None


class AnswerFailedError(CoverCheckError):
    """The pipeline ended a request with an error event."""
