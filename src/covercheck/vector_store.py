"""Vector store — ChromaDB collection of embedded passages and
partition-filtered similarity search."""

import logging

import chromadb
import httpx
from chromadb.errors import ChromaError

from covercheck.config import VectorStoreConfig
from covercheck.errors import ErrorKind, VectorStoreError, classify_exception, classify_status
from covercheck.models import Candidate, Passage

logger = logging.getLogger(__name__)


def get_client(config: VectorStoreConfig | None = None) -> chromadb.ClientAPI:
    """Return a ChromaDB persistent client.

    Args:
        config: Vector store settings (db path, etc.).
            Uses defaults if not provided.

    Returns:
        A ChromaDB client connected to the configured path.
    """
    cfg = config or VectorStoreConfig()
    return chromadb.PersistentClient(path=cfg.db_path)


def get_or_create_collection(
    client: chromadb.ClientAPI,
    config: VectorStoreConfig | None = None,
) -> chromadb.Collection:
    """Get or create the passage collection with cosine distance.

    Embeddings are always supplied by the caller, so the collection is
    created without an embedding function.
    """
    cfg = config or VectorStoreConfig()
    return client.get_or_create_collection(
        name=cfg.collection_name,
        embedding_function=None,
        metadata={"hnsw:space": "cosine"},
    )


def reset_collection(
    client: chromadb.ClientAPI,
    config: VectorStoreConfig | None = None,
) -> chromadb.Collection:
    """Delete and recreate the collection.

    If the collection does not exist yet, the delete is ignored.
    """
    cfg = config or VectorStoreConfig()
    try:
        client.delete_collection(cfg.collection_name)
    except (ValueError, ChromaError):
        logger.debug("Collection %s did not exist", cfg.collection_name)
    return get_or_create_collection(client, cfg)


def add_passages(
    collection: chromadb.Collection,
    passages: list[Passage],
    embeddings: list[list[float]],
    batch_size: int = 100,
) -> int:
    """Add embedded passages to the collection in batches.

    IDs are generated sequentially from the current collection size, so
    new passages never overwrite existing ones.

    Returns:
        Number of passages added (0 if the list is empty).
    """
    if len(passages) != len(embeddings):
        raise ValueError(
            f"got {len(passages)} passages but {len(embeddings)} embeddings"
        )
    if not passages:
        return 0

    offset = collection.count()
    ids = [f"chunk_{offset + i}" for i in range(len(passages))]
    documents = [p.content for p in passages]
    metadatas = [
        {"title": p.title, "url": p.url, "partition": p.partition} for p in passages
    ]

    for start in range(0, len(passages), batch_size):
        end = start + batch_size
        collection.add(
            ids=ids[start:end],
            documents=documents[start:end],
            metadatas=metadatas[start:end],
            embeddings=embeddings[start:end],
        )

    logger.info("Added %d passages to the vector store.", len(passages))
    return len(passages)


def _parse_results(results: dict) -> list[Candidate]:
    """Convert a raw ChromaDB query result into Candidates.

    Cosine distances become similarities (1 - distance), clamped to [0, 1].
    """
    documents = (results.get("documents") or [[]])[0]
    metadatas = (results.get("metadatas") or [[]])[0]
    distances = (results.get("distances") or [[]])[0]

    candidates: list[Candidate] = []
    for doc, meta, dist in zip(documents, metadatas, distances):
        meta = meta or {}
        similarity = min(1.0, max(0.0, 1.0 - float(dist)))
        candidates.append(
            Candidate(
                content=doc or "",
                title=meta.get("title", "Untitled"),
                url=meta.get("url", ""),
                partition=meta.get("partition", "unknown"),
                similarity=round(similarity, 4),
            )
        )
    return candidates


def search(
    collection: chromadb.Collection,
    vector: list[float],
    limit: int,
    partition: str | None = None,
) -> list[Candidate]:
    """Return up to ``limit`` nearest passages, most similar first.

    Args:
        collection: The ChromaDB collection to search.
        vector: Query embedding.
        limit: Maximum number of passages to return.
        partition: Restrict the search to this partition when given.

    Raises:
        VectorStoreError: If the store cannot be queried.
    """
    try:
        if collection.count() == 0:
            return []
        results = collection.query(
            query_embeddings=[vector],
            n_results=limit,
            where={"partition": partition} if partition else None,
            include=["documents", "metadatas", "distances"],
        )
    except ChromaError as exc:
        raise VectorStoreError(
            f"Vector store query failed: {exc}", kind=classify_status(exc.code())
        ) from exc
    except (httpx.HTTPError, ConnectionError) as exc:
        kind, status = classify_exception(exc)
        raise VectorStoreError(
            f"Vector store unavailable: {exc}", kind=kind, status_code=status
        ) from exc
    except ValueError as exc:
        raise VectorStoreError(
            f"Invalid vector store query: {exc}", kind=ErrorKind.MALFORMED
        ) from exc

    candidates = _parse_results(results)
    # The store orders by distance; keep that contract explicit.
    candidates.sort(key=lambda c: c.similarity, reverse=True)
    return candidates


def partition_counts(collection: chromadb.Collection) -> dict[str, int]:
    """Count stored passages per partition."""
    if collection.count() == 0:
        return {}
    result = collection.get(include=["metadatas"])
    counts: dict[str, int] = {}
    for meta in result.get("metadatas") or []:
        partition = (meta or {}).get("partition", "unknown")
        counts[partition] = counts.get(partition, 0) + 1
    return dict(sorted(counts.items()))
