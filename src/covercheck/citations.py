"""Deduplicate candidates into numbered sources and build the context block."""

import dataclasses
from dataclasses import dataclass, field

from covercheck.models import Candidate, Source

SEPARATOR = "\n\n---\n\n"


@dataclass(frozen=True)
class CitationContext:
    sources: list[Source] = field(default_factory=list)
    context_block: str = ""

    @property
    def partitions(self) -> list[str]:
        """Distinct partitions among the sources, in citation order."""
        seen: list[str] = []
        for source in self.sources:
            if source.partition not in seen:
                seen.append(source.partition)
        return seen


def build_sources(candidates: list[Candidate]) -> list[Source]:
    """One Source per distinct URL, ordered by first appearance.

    A source's relevance is the best score among the candidates that
    share its URL; its position never depends on that score.
    """
    by_url: dict[str, Source] = {}
    for index, candidate in enumerate(candidates):
        existing = by_url.get(candidate.url)
        if existing is None:
            by_url[candidate.url] = Source(
                title=candidate.title,
                url=candidate.url,
                partition=candidate.partition,
                relevance=candidate.similarity,
                first_index=index,
            )
        elif candidate.similarity > existing.relevance:
            by_url[candidate.url] = dataclasses.replace(existing, relevance=candidate.similarity)
    return sorted(by_url.values(), key=lambda s: s.first_index)


def assemble(candidates: list[Candidate]) -> CitationContext:
    """Build the source list and a context block labelled by source number.

    Each passage is prefixed ``[Source k: title (partition)]`` where ``k``
    is the 1-based position of its URL's Source, so two passages from one
    document carry the same number.
    """
    sources = build_sources(candidates)
    number_by_url = {source.url: k for k, source in enumerate(sources, start=1)}

    parts = []
    for candidate in candidates:
        k = number_by_url[candidate.url]
        source = sources[k - 1]
        parts.append(f"[Source {k}: {source.title} ({source.partition})]\n{candidate.content}")

    return CitationContext(sources=sources, context_block=SEPARATOR.join(parts))
