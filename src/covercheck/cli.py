"""CLI interface for CoverCheck."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import uvicorn

from covercheck import vector_store as vs
from covercheck.config import AppConfig
from covercheck.embeddings import get_embedding_provider
from covercheck.models import ChunkEvent, ErrorEvent, Passage, SourcesEvent
from covercheck.pipeline import QueryPipeline, build_pipeline
from covercheck.retrieval import RetrievalEngine

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("content", "title", "url", "partition")


def _setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def read_passages(path: str) -> list[Passage]:
    """Read pre-chunked passages from a JSON Lines file.

    Each line must be an object with ``content``, ``title``, ``url`` and
    ``partition``. Blank lines are skipped.

    Raises:
        ValueError: If a line is not valid JSON or lacks a field.
    """
    passages: list[Passage] = []
    with Path(path).open(encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}:{lineno}: invalid JSON ({exc.msg})") from exc
            missing = [k for k in _REQUIRED_FIELDS if not record.get(k)]
            if missing:
                raise ValueError(f"{path}:{lineno}: missing {', '.join(missing)}")
            passages.append(Passage(**{k: str(record[k]) for k in _REQUIRED_FIELDS}))
    return passages


async def _embed_all(engine: RetrievalEngine, passages: list[Passage]) -> list[list[float]]:
    return [await engine.embed(p.content) for p in passages]


def load(path: str, config: AppConfig | None = None, reset: bool = False) -> int:
    """Embed passages from a JSONL file and add them to the vector store.

    Args:
        path: JSON Lines file of passages.
        config: Application configuration. Uses defaults if not provided.
        reset: Drop the existing collection first.

    Returns:
        Number of passages stored.
    """
    cfg = config or AppConfig()

    print(f"\n📂 Reading passages from: {path}")
    passages = read_passages(path)
    if not passages:
        print("No passages found.")
        return 0

    client = vs.get_client(cfg.vector_store)
    if reset:
        collection = vs.reset_collection(client, cfg.vector_store)
    else:
        collection = vs.get_or_create_collection(client, cfg.vector_store)

    print(f"\n🧮 Embedding {len(passages)} passage(s)...")
    engine = RetrievalEngine(
        get_embedding_provider(cfg.embedding),
        collection,
        config=cfg.vector_store,
        embedding_config=cfg.embedding,
    )
    embeddings = asyncio.run(_embed_all(engine, passages))

    added = vs.add_passages(collection, passages, embeddings, cfg.vector_store.batch_size)
    print(f"\n✅ Load complete! ({added} passages stored)")
    return added


def stats(config: AppConfig | None = None) -> dict[str, int]:
    """Print the number of stored passages per partition."""
    cfg = config or AppConfig()
    client = vs.get_client(cfg.vector_store)
    collection = vs.get_or_create_collection(client, cfg.vector_store)

    counts = vs.partition_counts(collection)
    print(f"\n📊 {collection.count()} passages indexed")
    for partition, count in counts.items():
        print(f"  {partition}: {count}")
    return counts


async def answer(pipeline: QueryPipeline, question: str, provider: str | None = None) -> None:
    """Stream one answer to stdout, followed by its sources."""
    sources = []
    async for event in pipeline.stream(question, provider):
        match event:
            case SourcesEvent():
                sources = event.sources
            case ChunkEvent():
                print(event.text, end="", flush=True)
            case ErrorEvent():
                print(f"\n⚠️  {event.message}")
    print()
    if sources:
        print("\nSources:")
        for k, source in enumerate(sources, start=1):
            print(f"  {k}. {source.title} ({source.partition}) {source.url}")
    print()


async def _chat_loop(pipeline: QueryPipeline, provider: str | None) -> None:
    while True:
        try:
            query = (await asyncio.to_thread(input, "You: ")).strip()
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye!")
            break

        if not query:
            continue
        if query.lower() in ("quit", "exit", "q"):
            print("Goodbye!")
            break

        print("\nAssistant:")
        await answer(pipeline, query, provider)


def chat(config: AppConfig | None = None, provider: str | None = None) -> None:
    """Start an interactive chat session.

    Exits on 'quit', 'exit', 'q', EOF, or KeyboardInterrupt.

    Args:
        config: Application configuration. Uses defaults if not provided.
        provider: Restrict answers to one medical aid (partition).
    """
    cfg = config or AppConfig()

    client = vs.get_client(cfg.vector_store)
    collection = vs.get_or_create_collection(client, cfg.vector_store)

    if collection.count() == 0:
        print("No passages in the vector store. Load some first:")
        print("  python -m covercheck load passages.jsonl")
        return

    pipeline = build_pipeline(cfg, collection=collection)
    print(f"\n🩺 CoverCheck ({collection.count()} passages indexed)")
    print(f"🤖 Backends: {', '.join(pipeline.orchestrator.priority)}")
    print("\nType your question (or 'quit' to exit):\n")

    asyncio.run(_chat_loop(pipeline, provider))


def serve(config: AppConfig | None = None) -> None:
    cfg = config or AppConfig()
    uvicorn.run("covercheck.web:app", host=cfg.server.host, port=cfg.server.port)


def main() -> None:
    """CLI entry point — parse arguments and dispatch to a command."""
    parser = argparse.ArgumentParser(
        description="CoverCheck — medical aid questions answered from plan documents",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # chat
    chat_p = subparsers.add_parser("chat", help="Start interactive chat")
    chat_p.add_argument(
        "--provider", type=str, default=None, help="Only answer from this medical aid"
    )

    # load
    load_p = subparsers.add_parser("load", help="Load passages from a JSONL file")
    load_p.add_argument("file", type=str, help="JSON Lines file of passages")
    load_p.add_argument(
        "--reset", action="store_true", help="Clear the collection before loading"
    )

    # stats
    subparsers.add_parser("stats", help="Show passage counts per partition")

    # serve
    subparsers.add_parser("serve", help="Run the HTTP API")

    args = parser.parse_args()
    _setup_logging(args.verbose)

    if args.command == "chat":
        chat(provider=args.provider)
    elif args.command == "load":
        load(args.file, reset=args.reset)
    elif args.command == "stats":
        stats()
    elif args.command == "serve":
        serve()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
