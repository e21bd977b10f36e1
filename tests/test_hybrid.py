from datetime import timedelta

import pytest

from nav_recommender.algorithms.hybrid import HybridCombiner
from nav_recommender.models import (
    NavigationSuggestion, RecommendationReasoning, ScoredSuggestion, UserNavigationProfile
)
from nav_recommender.utils.config import HybridConfig, PerformanceConfig


def scored(url, score, factors=("x",), collaborative=None, content=None):
    return ScoredSuggestion(
        NavigationSuggestion(url, url.upper()),
        score,
        RecommendationReasoning(list(factors), collaborative_score=collaborative, content_score=content),
    )


def test_sources_are_summed_with_weights(store, clock):
    combiner = HybridCombiner(store)
    collab = [scored("/reports", 1.0, ("similar_user_behavior",), collaborative=1.0)]
    content = [scored("/reports", 0.5, ("content_similarity",), content=0.5)]

    merged = combiner.combine(collab, content, clock.now)

    assert len(merged) == 1
    item = merged[0]
    assert item.score == pytest.approx(0.4 * 1.0 + 0.3 * 0.5)
    assert item.reasoning.primary_factors == ["hybrid_collaborative", "similar_user_behavior", "hybrid_content"]
    assert item.reasoning.collaborative_score == 1.0
    assert item.reasoning.content_score == 0.5
    assert item.reasoning.popularity_score == 0.0
    assert item.reasoning.recency_score == 0.0


def test_inputs_are_not_mutated(store, clock):
    combiner = HybridCombiner(store)
    collab = [scored("/reports", 1.0)]
    content = [scored("/reports", 0.5)]

    combiner.combine(collab, content, clock.now)

    assert collab[0].score == 1.0
    assert collab[0].reasoning.primary_factors == ["x"]
    assert content[0].reasoning.primary_factors == ["x"]


def test_popularity_and_recency_are_added(store, clock):
    store.record_interaction("alice", "/reports", "click")
    combiner = HybridCombiner(store)

    merged = combiner.combine([], [scored("/reports", 0.0)], clock.now)

    # popularity 0.1 * 0.2 + recency 1.0 * 0.1
    assert merged[0].score == pytest.approx(0.12)
    assert merged[0].reasoning.primary_factors == ["hybrid_content", "x"]


def test_recency_decays_over_the_window(store, clock):
    store.record_interaction("alice", "/reports", "click", timestamp=clock.now - timedelta(hours=12))
    combiner = HybridCombiner(store)
    assert combiner.recency_score("/reports", clock.now) == pytest.approx(0.5)
    assert combiner.recency_score("/never-seen", clock.now) == 0.0


def test_disabled_hybrid_concatenates_without_scaling(store, clock):
    combiner = HybridCombiner(store, HybridConfig(enabled=False))
    merged = combiner.combine([scored("/a", 2.0)], [scored("/a", 0.9), scored("/b", 0.5)], clock.now)
    assert [(s.url, s.score) for s in merged] == [("/a", 2.0), ("/b", 0.5)]


def test_business_rules_drop_low_scores_and_visited(store):
    combiner = HybridCombiner(store)
    kept = combiner.apply_business_rules(
        [scored("/a", 0.9), scored("/b", 0.3), scored("/c", 0.31), scored("/d", 2.0)],
        previous_pages=["/d"],
    )
    assert [s.url for s in kept] == ["/a", "/c"]


def test_rank_truncates_and_breaks_ties_on_favorites(store):
    combiner = HybridCombiner(store, performance=PerformanceConfig(max_suggestions=3))
    profile = UserNavigationProfile("alice", favorite_pages=["/z"])
    ranked = combiner.rank(
        [scored("/a", 0.5), scored("/z", 0.5), scored("/m", 0.9), scored("/b", 0.5)],
        profile,
    )
    assert [s.url for s in ranked] == ["/m", "/z", "/a"]


def test_algorithm_labels():
    a = [scored("/a", 1.0)]
    assert HybridCombiner.determine_algorithm(a, a) == "hybrid"
    assert HybridCombiner.determine_algorithm(a, []) == "collaborative"
    assert HybridCombiner.determine_algorithm([], a) == "content_based"
    assert HybridCombiner.determine_algorithm([], []) == "fallback"


def test_confidence_and_explanations():
    items = [scored("/a", 1.0, collaborative=1.0), scored("/b", 0.5)]
    assert HybridCombiner.calculate_confidence(items) == pytest.approx(0.75)
    assert HybridCombiner.calculate_confidence([]) == 0.0

    explanations = HybridCombiner.generate_explanations(items)
    assert explanations[0] == "Generated 2 recommendations based on your behavior patterns"
    assert "Using collaborative filtering based on similar users" in explanations
    assert "Using content-based filtering based on page features" not in explanations
