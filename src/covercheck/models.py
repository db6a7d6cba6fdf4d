"""Domain models for the CoverCheck query pipeline."""

from dataclasses import dataclass, field
from enum import Enum


class Intent(str, Enum):
    """Topical category of a question, used to bias ranking and prompting."""

    PREGNANCY = "pregnancy"
    CHRONIC = "chronic"
    EMERGENCY = "emergency"
    HOSPITAL = "hospital"
    GENERAL = "general"

    @property
    def keywords(self) -> tuple[str, ...]:
        """Lower-case keywords counted by the re-ranker for this intent."""
        match self:
            case Intent.PREGNANCY:
                return ("maternity", "pregnancy", "antenatal", "birth", "baby")
            case Intent.CHRONIC:
                return ("chronic", "cdl", "medication", "condition")
            case Intent.EMERGENCY:
                return ("emergency", "casualty", "ambulance", "trauma")
            case Intent.HOSPITAL:
                return ("hospital", "procedure", "surgery", "admission", "theatre")
            case Intent.GENERAL:
                return ()


@dataclass(frozen=True)
class Query:
    """A raw user question with an optional explicit partition filter."""

    text: str
    partition: str | None = None


@dataclass(frozen=True)
class ExpandedQuery:
    """A query after normalisation, expansion, intent and partition detection.

    ``partition`` is the resolved filter: the explicit one when given,
    otherwise whatever was inferred from the question text (or None).
    """

    query: Query
    expanded_text: str
    intent: Intent = Intent.GENERAL
    partition: str | None = None

    @property
    def keywords(self) -> tuple[str, ...]:
        return self.intent.keywords


@dataclass(frozen=True)
class Candidate:
    """A retrieved passage before deduplication and citation numbering."""

    content: str
    title: str
    url: str
    partition: str
    similarity: float


@dataclass(frozen=True)
class Source:
    """A deduplicated citation shown to the end user."""

    title: str
    url: str
    partition: str
    relevance: float
    first_index: int

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "url": self.url,
            "partition": self.partition,
            "relevance": round(self.relevance, 4),
        }


@dataclass(frozen=True)
class Passage:
    """A pre-chunked passage ready to be embedded and stored."""

    content: str
    title: str
    url: str
    partition: str


@dataclass(frozen=True)
class GenerationRequest:
    """Everything a generation backend needs to produce an answer."""

    prompt: str
    temperature: float
    max_tokens: int
    backends: tuple[str, ...] = ()


@dataclass(frozen=True)
class SourcesEvent:
    sources: list[Source] = field(default_factory=list)

    def to_record(self) -> dict:
        return {"type": "sources", "data": [s.to_dict() for s in self.sources]}


@dataclass(frozen=True)
class ChunkEvent:
    text: str

    def to_record(self) -> dict:
        return {"type": "chunk", "data": self.text}


@dataclass(frozen=True)
class DoneEvent:
    def to_record(self) -> dict:
        return {"type": "done", "data": None}


@dataclass(frozen=True)
class ErrorEvent:
    message: str

    def to_record(self) -> dict:
        return {"type": "error", "data": self.message}


StreamEvent = SourcesEvent | ChunkEvent | DoneEvent | ErrorEvent

TERMINAL_EVENTS = (DoneEvent, ErrorEvent)


@dataclass(frozen=True)
class RAGResponse:
    """A fully drained answer, for callers that do not stream."""

    response: str
    sources: list[Source] = field(default_factory=list)
