"""Intent-keyword boosting for retrieved candidates."""

import dataclasses

from covercheck.models import Candidate, Intent

BOOST_PER_MATCH = 0.1
MAX_SCORE = 1.0


def keyword_matches(content: str, keywords: tuple[str, ...]) -> int:
    """Count case-insensitive occurrences of every keyword in ``content``."""
    lower = content.lower()
    return sum(lower.count(keyword) for keyword in keywords)


def boosted_score(similarity: float, matches: int) -> float:
    return round(min(MAX_SCORE, similarity + BOOST_PER_MATCH * matches), 4)


def rerank(
    candidates: list[Candidate],
    intent: Intent,
    limit: int | None = None,
) -> list[Candidate]:
    """Boost, re-sort and truncate candidates.

    Each candidate gains ``0.1`` per keyword occurrence, capped at 1.0.
    The sort is stable, so equal scores keep their retrieval order. A
    general intent has no keywords and leaves the order untouched.

    Args:
        candidates: Retrieved candidates, most similar first.
        intent: Detected intent of the question.
        limit: Keep only the first ``limit`` candidates after boosting.
    """
    keywords = intent.keywords
    if keywords:
        boosted = [
            dataclasses.replace(
                c, similarity=boosted_score(c.similarity, keyword_matches(c.content, keywords))
            )
            for c in candidates
        ]
        boosted.sort(key=lambda c: c.similarity, reverse=True)
    else:
        boosted = list(candidates)

    if limit is not None:
        boosted = boosted[:limit]
    return boosted
