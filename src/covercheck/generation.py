"""Generation backends and the orchestrator that falls back across them.

A backend streams text deltas for a prompt and raises
:class:`~covercheck.errors.BackendError` with a classified ``kind`` when
it fails. The orchestrator tries backends in priority order:

- rate limited before any text arrived: move on to the next backend;
- authentication failure: stop with an error event;
- any other failure: stop with an error event;
- success: stream every delta, then a done event, and stop.

If every backend is rate limited the caller receives a single
"high demand" chunk followed by done.
"""

import contextlib
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from typing import Protocol

import httpx
import ollama
import openai

from covercheck.config import GenerationConfig
from covercheck.errors import BackendError, ErrorKind, classify_exception
from covercheck.models import (
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    GenerationRequest,
    StreamEvent,
)

logger = logging.getLogger(__name__)

HIGH_DEMAND_MESSAGE = (
    "I'm experiencing high demand right now. Please try again in a moment, "
    "or consider adding your own API key for guaranteed access."
)
AUTH_ERROR_MESSAGE = (
    "The answer service is not configured correctly. Please try again later."
)
GENERATION_ERROR_MESSAGE = "An error occurred while processing your request"


class GenerationBackend(Protocol):
    name: str

    def stream(self, request: GenerationRequest) -> AsyncGenerator[str, None]: ...


def _wrap(exc: Exception, backend: str) -> BackendError:
    kind, status = classify_exception(exc)
    return BackendError(f"{backend} failed: {exc}", kind=kind, status_code=status)


class OpenRouterBackend:
    """One model behind an OpenAI-compatible chat completions API."""

    def __init__(self, model: str, client: openai.AsyncOpenAI) -> None:
        self.name = model
        self.model = model
        self.client = client

    async def stream(self, request: GenerationRequest) -> AsyncGenerator[str, None]:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": request.prompt}],
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                stream=True,
            )
            async with response:
                async for chunk in response:
                    if not chunk.choices:
                        continue
                    content = chunk.choices[0].delta.content
                    if content:
                        yield content
        except openai.OpenAIError as exc:
            raise _wrap(exc, self.name) from exc


class OllamaChatBackend:
    """A local model served by Ollama, usable as a last-resort backend."""

    def __init__(self, model: str, client: ollama.AsyncClient | None = None) -> None:
        self.name = f"ollama/{model}"
        self.model = model
        self.client = client or ollama.AsyncClient()

    async def stream(self, request: GenerationRequest) -> AsyncGenerator[str, None]:
        try:
            response = await self.client.chat(
                model=self.model,
                messages=[{"role": "user", "content": request.prompt}],
                options={"temperature": request.temperature, "num_predict": request.max_tokens},
                stream=True,
            )
            async with contextlib.aclosing(response):
                async for part in response:
                    content = part["message"]["content"]
                    if content:
                        yield content
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as exc:
            raise _wrap(exc, self.name) from exc


def build_backends(
    config: GenerationConfig | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> list[GenerationBackend]:
    """Create one backend per configured model, sharing one HTTP client.

    The SDK client never retries on its own; a rate-limited model is
    attempted once and the orchestrator moves on to the next one.
    """
    cfg = config or GenerationConfig()
    if not cfg.api_key:
        logger.warning("LLM_API_KEY is not set; hosted backends will reject requests")

    client = openai.AsyncOpenAI(
        base_url=cfg.base_url,
        api_key=cfg.api_key or "",
        default_headers={"HTTP-Referer": cfg.referer, "X-Title": cfg.app_title},
        max_retries=0,
        http_client=http_client,
    )
    backends: list[GenerationBackend] = [OpenRouterBackend(m, client) for m in cfg.backends]
    if cfg.ollama_fallback:
        backends.append(OllamaChatBackend(cfg.ollama_fallback))
    return backends


class GenerationOrchestrator:
    """Drive an ordered list of backends for one request at a time.

    The orchestrator holds no per-request state and can be shared by
    concurrent requests.
    """

    def __init__(
        self,
        backends: list[GenerationBackend],
        config: GenerationConfig | None = None,
    ) -> None:
        if not backends:
            raise ValueError("at least one generation backend is required")
        self.config = config or GenerationConfig()
        self.backends = {backend.name: backend for backend in backends}
        self.priority = [backend.name for backend in backends]

    def build_request(self, prompt: str) -> GenerationRequest:
        return GenerationRequest(
            prompt=prompt,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            backends=tuple(self.priority),
        )

    def _resolve(self, request: GenerationRequest) -> list[GenerationBackend]:
        names = request.backends or tuple(self.priority)
        unknown = [n for n in names if n not in self.backends]
        if unknown:
            raise ValueError(f"unknown generation backends: {', '.join(unknown)}")
        return [self.backends[n] for n in names]

    async def generate(self, request: GenerationRequest) -> AsyncIterator[StreamEvent]:
        """Yield Chunk events then exactly one Done or Error event.

        Closing this generator early closes the in-flight backend stream.
        """
        for backend in self._resolve(request):
            started = False
            deltas = backend.stream(request)
            try:
                async for text in deltas:
                    started = True
                    yield ChunkEvent(text)
            except BackendError as exc:
                if started:
                    logger.error("Backend %s failed mid-stream: %s", backend.name, exc)
                    yield ErrorEvent(GENERATION_ERROR_MESSAGE)
                    return
                if exc.kind is ErrorKind.RATE_LIMITED:
                    logger.info("Backend %s is rate-limited, trying next backend...", backend.name)
                    continue
                if exc.kind is ErrorKind.AUTH:
                    logger.error("Backend %s rejected our credentials: %s", backend.name, exc)
                    yield ErrorEvent(AUTH_ERROR_MESSAGE)
                    return
                logger.error("Backend %s failed: %r", backend.name, exc)
                yield ErrorEvent(GENERATION_ERROR_MESSAGE)
                return
            finally:
                await deltas.aclose()

            logger.debug("Backend %s completed the answer", backend.name)
            yield DoneEvent()
            return

        logger.warning("All %d backends are rate-limited", len(request.backends or self.priority))
        yield ChunkEvent(HIGH_DEMAND_MESSAGE)
        yield DoneEvent()
