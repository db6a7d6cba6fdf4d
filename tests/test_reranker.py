"""Tests for the re-ranker."""

import pytest
from conftest import make_candidate

from covercheck.models import Intent
from covercheck.reranker import boosted_score, keyword_matches, rerank


class TestKeywordMatches:
    def test_counts_every_occurrence(self) -> None:
        assert keyword_matches("Chronic chronic CHRONIC", ("chronic",)) == 3

    def test_sums_across_keywords(self) -> None:
        assert keyword_matches("ambulance to casualty", ("casualty", "ambulance")) == 2

    def test_no_keywords(self) -> None:
        assert keyword_matches("anything", ()) == 0


class TestBoostedScore:
    def test_adds_a_tenth_per_match(self) -> None:
        assert boosted_score(0.5, 2) == pytest.approx(0.7)

    def test_capped_at_one(self) -> None:
        assert boosted_score(0.95, 3) == 1.0

    @pytest.mark.parametrize("similarity", [0.0, 0.31, 0.77, 1.0])
    def test_bounded_and_monotonic(self, similarity: float) -> None:
        scores = [boosted_score(similarity, m) for m in range(8)]
        assert all(similarity <= s <= 1.0 for s in scores)
        assert scores == sorted(scores)


class TestRerank:
    def test_general_intent_leaves_order(self) -> None:
        candidates = [
            make_candidate("a", 0.9, "hospital hospital"),
            make_candidate("b", 0.8, "chronic"),
        ]
        assert rerank(candidates, Intent.GENERAL) == candidates

    def test_keyword_rich_candidate_moves_up(self) -> None:
        candidates = [
            make_candidate("a", 0.80, "Plan contributions for 2025."),
            make_candidate("b", 0.70, "Maternity benefits cover antenatal visits and birth."),
        ]
        ranked = rerank(candidates, Intent.PREGNANCY)
        assert [c.url for c in ranked] == ["b", "a"]
        assert ranked[0].similarity == pytest.approx(1.0)
        assert ranked[1].similarity == pytest.approx(0.80)

    def test_truncates_after_boosting(self) -> None:
        candidates = [make_candidate(str(i), 0.9 - i * 0.1) for i in range(6)]
        candidates.append(make_candidate("late", 0.2, "casualty " * 9))
        ranked = rerank(candidates, Intent.EMERGENCY, limit=2)
        assert [c.url for c in ranked] == ["late", "0"]
        assert ranked[0].similarity == 1.0

    def test_identity_preserved(self) -> None:
        original = make_candidate("a", 0.4, "hospital admission", title="T", partition="P")
        (ranked,) = rerank([original], Intent.HOSPITAL)
        assert (ranked.content, ranked.title, ranked.url, ranked.partition) == (
            original.content,
            original.title,
            original.url,
            original.partition,
        )
        assert ranked.similarity == pytest.approx(0.6)

    def test_input_not_mutated(self) -> None:
        candidates = [make_candidate("a", 0.4, "chronic")]
        rerank(candidates, Intent.CHRONIC)
        assert candidates[0].similarity == 0.4

    def test_ties_keep_retrieval_order(self) -> None:
        candidates = [make_candidate("a", 0.5), make_candidate("b", 0.5)]
        assert [c.url for c in rerank(candidates, Intent.CHRONIC)] == ["a", "b"]

    def test_empty(self) -> None:
        assert rerank([], Intent.CHRONIC, limit=5) == []
