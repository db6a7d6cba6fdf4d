"""FastAPI web interface — streaming chat endpoint and helpers."""

import asyncio
import logging
from contextlib import asynccontextmanager

import ollama
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from covercheck import vector_store as vs
from covercheck.config import AppConfig
from covercheck.errors import AnswerFailedError
from covercheck.glossary import GLOSSARY, explain_term
from covercheck.pipeline import QueryPipeline, build_pipeline
from covercheck.streaming import bounded, guarded, ndjson

logger = logging.getLogger(__name__)

_config = AppConfig()


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Build the shared query pipeline on startup."""
    client = vs.get_client(_config.vector_store)
    collection = vs.get_or_create_collection(client, _config.vector_store)
    application.state.chroma_collection = collection
    application.state.pipeline = build_pipeline(_config, collection=collection)
    logger.info("CoverCheck ready (%d chunks indexed)", collection.count())
    yield


app = FastAPI(
    title="CoverCheck",
    lifespan=lifespan,
    docs_url="/api/docs",
    openapi_url="/api/openapi.json",
)

router = APIRouter(prefix="/api/v1")


def get_collection(request: Request):
    """FastAPI dependency — return the ChromaDB collection from app state."""
    return getattr(request.app.state, "chroma_collection", None)


def get_pipeline(request: Request) -> QueryPipeline | None:
    """FastAPI dependency — return the query pipeline from app state."""
    return getattr(request.app.state, "pipeline", None)


class ChatRequest(BaseModel):
    message: str | None = None
    provider: str | None = None


class SourceResponse(BaseModel):
    title: str
    url: str
    partition: str
    relevance: float


class AskResponse(BaseModel):
    response: str
    sources: list[SourceResponse]


class HealthResponse(BaseModel):
    status: str
    ollama_connected: bool
    documents: int


class StatusResponse(BaseModel):
    documents: int
    partitions: dict[str, int]
    backends: list[str]
    embedding_provider: str


class GlossaryEntry(BaseModel):
    term: str
    category: str
    technical_definition: str
    simple_explanation: str
    analogy: str | None = None
    example: str | None = None


class GlossaryResponse(BaseModel):
    terms: list[GlossaryEntry]


def _require_pipeline(pipeline: QueryPipeline | None) -> QueryPipeline:
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Query pipeline not initialized.")
    return pipeline


def _require_message(body: ChatRequest) -> str:
    if not body.message or not body.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")
    return body.message


@router.get("/health", response_model=HealthResponse)
async def api_health(collection=Depends(get_collection)):
    connected = True
    try:
        ollama.list()
    except Exception:
        connected = False

    doc_count = collection.count() if collection else 0
    status = "healthy" if connected else "degraded"

    return HealthResponse(status=status, ollama_connected=connected, documents=doc_count)


@router.get("/status", response_model=StatusResponse)
async def api_status(
    collection=Depends(get_collection),
    pipeline: QueryPipeline | None = Depends(get_pipeline),
):
    pipeline = _require_pipeline(pipeline)
    partitions = await asyncio.to_thread(vs.partition_counts, collection) if collection else {}
    return StatusResponse(
        documents=collection.count() if collection else 0,
        partitions=partitions,
        backends=list(pipeline.orchestrator.priority),
        embedding_provider=pipeline.retrieval.embedder.name,
    )


@router.post("/chat")
async def api_chat(body: ChatRequest, pipeline: QueryPipeline | None = Depends(get_pipeline)):
    """Stream the answer as newline-delimited JSON records."""
    pipeline = _require_pipeline(pipeline)
    message = _require_message(body)

    events = guarded(pipeline.stream(message, body.provider))
    channel = bounded(events, _config.generation.channel_size)
    return StreamingResponse(
        ndjson(channel),
        media_type="application/x-ndjson",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/ask", response_model=AskResponse)
async def api_ask(body: ChatRequest, pipeline: QueryPipeline | None = Depends(get_pipeline)):
    """Non-streaming variant of /chat."""
    pipeline = _require_pipeline(pipeline)
    message = _require_message(body)

    try:
        result = await pipeline.ask(message, body.provider)
    except AnswerFailedError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return AskResponse(
        response=result.response,
        sources=[SourceResponse(**s.to_dict()) for s in result.sources],
    )


@router.get("/glossary", response_model=GlossaryResponse)
async def api_glossary(term: str | None = None):
    if term is None:
        entries = list(GLOSSARY)
    else:
        found = explain_term(term)
        entries = [found] if found else []
    return GlossaryResponse(terms=[GlossaryEntry(**e.to_dict()) for e in entries])


app.include_router(router)
