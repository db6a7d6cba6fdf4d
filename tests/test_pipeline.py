"""Tests for the end-to-end query pipeline with fake providers."""

from unittest.mock import MagicMock

import pytest
from conftest import (
    FakeBackend,
    FakeEmbedder,
    FakeRetrieval,
    collect,
    make_candidate,
    rate_limited,
)

from covercheck.errors import (
    AnswerFailedError,
    BackendError,
    EmbeddingError,
    ErrorKind,
    RetrievalUnavailableError,
)
from covercheck.generation import (
    GENERATION_ERROR_MESSAGE,
    HIGH_DEMAND_MESSAGE,
    GenerationOrchestrator,
)
from covercheck.models import ChunkEvent, DoneEvent, ErrorEvent, Intent, SourcesEvent
from covercheck.pipeline import (
    NO_RESULTS_MESSAGE,
    PIPELINE_ERROR_MESSAGE,
    RETRIEVAL_UNAVAILABLE_MESSAGE,
    QueryPipeline,
    build_pipeline,
)


def _pipeline(app_config, retrieval, *backends) -> QueryPipeline:
    backends = backends or (FakeBackend("b1"),)
    orchestrator = GenerationOrchestrator(list(backends), app_config.generation)
    return QueryPipeline(retrieval, orchestrator, config=app_config)


def _assert_well_formed(events: list) -> None:
    assert isinstance(events[0], SourcesEvent)
    assert sum(isinstance(e, SourcesEvent) for e in events) == 1
    terminal = [e for e in events if isinstance(e, (DoneEvent, ErrorEvent))]
    assert len(terminal) == 1
    assert events[-1] is terminal[0]


class TestStream:
    @pytest.mark.asyncio
    async def test_chronic_question_across_two_schemes(self, app_config, sample_candidates) -> None:
        backend = FakeBackend("b1", ["Both schemes ", "cover CDL conditions."])
        retrieval = FakeRetrieval(sample_candidates)
        pipeline = _pipeline(app_config, retrieval, backend)

        events = await collect(pipeline.stream("What chronic conditions are covered?"))

        _assert_well_formed(events)
        sources = events[0].sources
        assert [s.partition for s in sources] == ["Discovery Health", "Bonitas Medical Fund"]
        # Keyword boosts push both schemes to the cap.
        assert [s.relevance for s in sources] == [1.0, 1.0]
        assert events[1:] == [
            ChunkEvent("Both schemes "),
            ChunkEvent("cover CDL conditions."),
            DoneEvent(),
        ]

        expanded, limit = retrieval.calls[0]
        assert expanded.intent is Intent.CHRONIC
        assert expanded.partition is None
        assert limit == app_config.vector_store.query_results

        prompt = backend.requests[0].prompt
        assert "FOCUS: This is a chronic-condition question." in prompt
        assert "Discovery Health and Bonitas Medical Fund" in prompt
        assert "which medical aid" in prompt
        assert "[Source 2: Bonitas Chronic Benefits (Bonitas Medical Fund)]" in prompt
        assert prompt.count("[Source 1: Discovery Chronic Illness Benefit") == 2
        assert "USER'S QUESTION: What chronic conditions are covered?" in prompt

    @pytest.mark.asyncio
    async def test_three_mentions_boost_by_three_tenths(self, app_config) -> None:
        text = "Chronic benefit, chronic authorisation and chronic pharmacy rules."
        candidates = [
            make_candidate("https://discovery.co.za/c", 0.6, text),
            make_candidate("https://momentum.co.za/c", 0.5, text, partition="Momentum Health"),
        ]
        backend = FakeBackend("b1")
        pipeline = _pipeline(app_config, FakeRetrieval(candidates), backend)

        events = await collect(pipeline.stream("What chronic conditions are covered?"))

        assert [s.relevance for s in events[0].sources] == [0.9, 0.8]
        assert "SCHEMES: The documents cover Discovery Health and Momentum Health." in (
            backend.requests[0].prompt
        )

    @pytest.mark.asyncio
    async def test_explicit_partition(self, app_config, sample_candidates) -> None:
        backend = FakeBackend("b1")
        retrieval = FakeRetrieval(sample_candidates[1:2])
        pipeline = _pipeline(app_config, retrieval, backend)

        await collect(pipeline.stream("Is diabetes covered?", partition="Bonitas Medical Fund"))

        assert retrieval.calls[0][0].partition == "Bonitas Medical Fund"
        assert "SCHEME: Focus your answer on Bonitas Medical Fund." in backend.requests[0].prompt

    @pytest.mark.asyncio
    async def test_query_keeps_raw_text(self, app_config, sample_candidates) -> None:
        backend = FakeBackend("b1")
        retrieval = FakeRetrieval(sample_candidates)
        raw = "  What chronic\n conditions   are covered? "

        await collect(_pipeline(app_config, retrieval, backend).stream(raw))

        expanded = retrieval.calls[0][0]
        assert expanded.query.text == raw
        assert expanded.expanded_text.startswith("What chronic conditions are covered?")
        assert "USER'S QUESTION: What chronic conditions are covered?" in (
            backend.requests[0].prompt
        )

    @pytest.mark.asyncio
    async def test_no_results(self, app_config) -> None:
        backend = FakeBackend("b1")
        pipeline = _pipeline(app_config, FakeRetrieval([]), backend)
        events = await collect(pipeline.stream("Is IVF covered?"))

        assert events == [SourcesEvent([]), ChunkEvent(NO_RESULTS_MESSAGE), DoneEvent()]
        assert backend.attempts == 0

    @pytest.mark.asyncio
    async def test_retrieval_unavailable(self, app_config) -> None:
        retrieval = FakeRetrieval(error=RetrievalUnavailableError("gave up"))
        backend = FakeBackend("b1")
        events = await collect(_pipeline(app_config, retrieval, backend).stream("Is IVF covered?"))

        assert events == [SourcesEvent([]), ErrorEvent(RETRIEVAL_UNAVAILABLE_MESSAGE)]
        assert backend.attempts == 0

    @pytest.mark.asyncio
    async def test_non_retryable_retrieval_error(self, app_config) -> None:
        retrieval = FakeRetrieval(error=EmbeddingError("bad key", ErrorKind.AUTH, 401))
        events = await collect(_pipeline(app_config, retrieval).stream("Is IVF covered?"))
        assert events == [SourcesEvent([]), ErrorEvent(PIPELINE_ERROR_MESSAGE)]

    @pytest.mark.asyncio
    async def test_truncates_to_limit(self, app_config) -> None:
        candidates = [make_candidate(f"https://x.co.za/{i}", 0.9 - i / 100) for i in range(9)]
        events = await collect(
            _pipeline(app_config, FakeRetrieval(candidates)).stream("gap cover?", limit=3)
        )
        assert len(events[0].sources) == 3

    @pytest.mark.asyncio
    async def test_all_backends_rate_limited(self, app_config, sample_candidates) -> None:
        pipeline = _pipeline(
            app_config, FakeRetrieval(sample_candidates), rate_limited("b1"), rate_limited("b2")
        )
        events = await collect(pipeline.stream("What chronic conditions are covered?"))

        _assert_well_formed(events)
        assert events[1:] == [ChunkEvent(HIGH_DEMAND_MESSAGE), DoneEvent()]

    @pytest.mark.asyncio
    async def test_generation_error_after_sources(self, app_config, sample_candidates) -> None:
        backend = FakeBackend("b1", error=BackendError("boom", ErrorKind.OTHER))
        events = await collect(
            _pipeline(app_config, FakeRetrieval(sample_candidates), backend).stream("chronic?")
        )

        _assert_well_formed(events)
        assert events[-1] == ErrorEvent(GENERATION_ERROR_MESSAGE)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("question", ["", "   ", "\n\t"])
    async def test_blank_question_rejected(self, app_config, question: str) -> None:
        retrieval = FakeRetrieval([])
        with pytest.raises(ValueError, match="Message is required"):
            await collect(_pipeline(app_config, retrieval).stream(question))
        assert retrieval.calls == []

    @pytest.mark.asyncio
    async def test_closing_stream_closes_backend(self, app_config, sample_candidates) -> None:
        backend = FakeBackend("b1", ["one", "two", "three"])
        pipeline = _pipeline(app_config, FakeRetrieval(sample_candidates), backend)

        events = pipeline.stream("chronic?")
        seen = [await events.__anext__(), await events.__anext__()]
        await events.aclose()

        assert seen[1] == ChunkEvent("one")
        assert backend.closed


class TestAsk:
    @pytest.mark.asyncio
    async def test_drains_answer(self, app_config, sample_candidates) -> None:
        backend = FakeBackend("b1", ["Yes, ", "from risk."])
        pipeline = _pipeline(app_config, FakeRetrieval(sample_candidates), backend)

        result = await pipeline.ask("Is chronic medication covered?")

        assert result.response == "Yes, from risk."
        assert [s.url for s in result.sources] == [
            "https://discovery.co.za/chronic",
            "https://bonitas.co.za/chronic",
        ]

    @pytest.mark.asyncio
    async def test_error_event_raises(self, app_config) -> None:
        retrieval = FakeRetrieval(error=RetrievalUnavailableError("gave up"))
        with pytest.raises(AnswerFailedError, match="temporarily unavailable"):
            await _pipeline(app_config, retrieval).ask("Is IVF covered?")


class TestBuildPipeline:
    def test_wires_configured_backends(self, app_config) -> None:
        pipeline = build_pipeline(app_config, collection=MagicMock(), embedder=FakeEmbedder())
        assert pipeline.orchestrator.priority == ["b1", "b2", "b3"]
        assert pipeline.config is app_config
        assert isinstance(pipeline.retrieval.embedder, FakeEmbedder)
