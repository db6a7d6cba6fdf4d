"""Query pipeline — interpret, retrieve, re-rank, cite, compose and
generate, emitting a stream of events for one question."""

import logging
from collections.abc import AsyncGenerator

import chromadb

from covercheck import vector_store as vs
from covercheck.citations import assemble
from covercheck.config import AppConfig
from covercheck.embeddings import EmbeddingProvider, get_embedding_provider
from covercheck.errors import AnswerFailedError, ProviderError, RetrievalUnavailableError
from covercheck.generation import GenerationOrchestrator, build_backends
from covercheck.models import (
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    Query,
    RAGResponse,
    SourcesEvent,
    StreamEvent,
)
from covercheck.prompts import STYLE_DIRECTIVE_SA, compose_prompt
from covercheck.query import interpret, normalize
from covercheck.reranker import rerank
from covercheck.retrieval import RetrievalEngine

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = (
    "I couldn't find information about that in our medical aid documents. "
    "Can you rephrase your question or ask about a specific plan?"
)
RETRIEVAL_UNAVAILABLE_MESSAGE = (
    "Our medical aid document search is temporarily unavailable. "
    "Please try again in a moment."
)
PIPELINE_ERROR_MESSAGE = "An error occurred while processing your request"


class QueryPipeline:
    """Answer medical-aid questions from the document corpus.

    One instance serves many concurrent requests; it only holds pooled
    clients and configuration.
    """

    def __init__(
        self,
        retrieval: RetrievalEngine,
        orchestrator: GenerationOrchestrator,
        config: AppConfig | None = None,
        style_directive: str = STYLE_DIRECTIVE_SA,
    ) -> None:
        self.retrieval = retrieval
        self.orchestrator = orchestrator
        self.config = config or AppConfig()
        self.style_directive = style_directive

    async def stream(
        self,
        question: str,
        partition: str | None = None,
        limit: int | None = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        """Yield one Sources event, any Chunk events, then Done or Error.

        Args:
            question: The user's question. Must not be blank.
            partition: Explicit partition filter; overrides inference.
            limit: Number of passages to cite (N).

        Raises:
            ValueError: If the question is blank.
        """
        query = Query(text=question, partition=partition or None)
        question = normalize(question)
        if not question:
            raise ValueError("Message is required")

        expanded = interpret(query, self.config.default_partition)
        n = limit or self.config.vector_store.query_results

        try:
            candidates = await self.retrieval.retrieve(expanded, n)
        except RetrievalUnavailableError as exc:
            logger.error("Retrieval unavailable for %r: %s", question[:80], exc)
            yield SourcesEvent([])
            yield ErrorEvent(RETRIEVAL_UNAVAILABLE_MESSAGE)
            return
        except ProviderError as exc:
            logger.error("Retrieval failed for %r: %r", question[:80], exc)
            yield SourcesEvent([])
            yield ErrorEvent(PIPELINE_ERROR_MESSAGE)
            return

        ranked = rerank(candidates, expanded.intent, n)
        citations = assemble(ranked)
        yield SourcesEvent(citations.sources)

        if not ranked:
            logger.info("No candidates for %r", question[:80])
            yield ChunkEvent(NO_RESULTS_MESSAGE)
            yield DoneEvent()
            return

        prompt = compose_prompt(
            citations,
            expanded.intent,
            expanded.partition,
            question,
            style_directive=self.style_directive,
        )
        request = self.orchestrator.build_request(prompt)

        events = self.orchestrator.generate(request)
        try:
            async for event in events:
                yield event
        finally:
            await events.aclose()

    async def ask(self, question: str, partition: str | None = None) -> RAGResponse:
        """Drain the event stream into a single response.

        Raises:
            AnswerFailedError: If the stream ended with an error event.
        """
        sources = []
        parts: list[str] = []
        async for event in self.stream(question, partition):
            match event:
                case SourcesEvent():
                    sources = event.sources
                case ChunkEvent():
                    parts.append(event.text)
                case ErrorEvent():
                    raise AnswerFailedError(event.message)
                case DoneEvent():
                    pass
        return RAGResponse(response="".join(parts), sources=sources)


def build_pipeline(
    config: AppConfig | None = None,
    collection: chromadb.Collection | None = None,
    embedder: EmbeddingProvider | None = None,
) -> QueryPipeline:
    """Wire the production pipeline from configuration.

    ``collection`` and ``embedder`` may be supplied to reuse existing
    clients; otherwise they are created from ``config``.
    """
    cfg = config or AppConfig()
    if collection is None:
        client = vs.get_client(cfg.vector_store)
        collection = vs.get_or_create_collection(client, cfg.vector_store)
    retrieval = RetrievalEngine(
        embedder or get_embedding_provider(cfg.embedding),
        collection,
        config=cfg.vector_store,
        embedding_config=cfg.embedding,
    )
    orchestrator = GenerationOrchestrator(build_backends(cfg.generation), cfg.generation)
    return QueryPipeline(retrieval, orchestrator, config=cfg)
