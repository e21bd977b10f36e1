import pytest

from nav_recommender.models import Interaction, UserNavigationProfile
from nav_recommender.services.feature_index import ContentFeatureIndex
from nav_recommender.services.recommendation_cache import RecommendationCache
from nav_recommender.services.recommender import NavigationRecommender
from nav_recommender.utils.exceptions import ConfigurationError
from nav_recommender.utils.config import PerformanceConfig, RecommendationConfig

from conftest import make_request, seed_neighbors


def test_fallback_when_there_is_no_signal(recommender):
    result = recommender.generate_recommendations(make_request(None, []))

    assert result.algorithm == "fallback"
    assert result.suggestions == []
    assert result.confidence == 0.0
    assert result.metadata["low_confidence"] is True
    assert result.explanations == ["Using fallback recommendations due to insufficient data"]


def test_hybrid_result(recommender, store):
    seed_neighbors(store)
    store.set_baseline_popularity({"/forecasting": 1.0})

    result = recommender.generate_recommendations(make_request("alice", ["/revenue"]))

    assert result.algorithm == "hybrid"
    assert result.urls == ["/reports", "/forecasting"]
    reports, forecasting = result.suggestions
    # 8.55 * 0.4 + popularity 0.9 * 0.2 + recency 1.0 * 0.1
    assert reports.score == pytest.approx(3.7)
    # 0.5833 * 0.3 + popularity 1.0 * 0.2
    assert forecasting.score == pytest.approx((0.3 + 0.25 / 3 + 0.2) * 0.3 + 0.2)
    assert result.confidence == pytest.approx((reports.score + forecasting.score) / 2)
    assert result.metadata["model_version"] == "1.0.0"
    assert result.metadata["data_points"] == 1
    assert result.metadata["candidates"] == {"collaborative": 1, "content_based": 1}


def test_low_scoring_candidates_are_filtered(recommender, store):
    seed_neighbors(store)
    result = recommender.generate_recommendations(make_request("alice", ["/revenue"]))
    # /forecasting only reaches 0.175 without popularity
    assert result.algorithm == "hybrid"
    assert result.urls == ["/reports"]


def test_results_never_contain_visited_pages(recommender, store):
    seed_neighbors(store)
    for name in ("bob", "carol", "dave"):
        store.record_interaction(name, "/analytics", "bookmark")
        store.record_interaction(name, "/customers", "search")

    previous = ["/revenue", "/analytics"]
    result = recommender.generate_recommendations(make_request("alice", previous))

    assert result.suggestions
    assert not set(result.urls) & set(previous)
    scores = [s.score for s in result.suggestions]
    assert scores == sorted(scores, reverse=True)
    assert all(score >= 0 for score in scores)
    assert len(set(result.urls)) == len(result.urls)


def test_results_are_truncated(feature_index, store, clock):
    config = RecommendationConfig(performance=PerformanceConfig(max_suggestions=1))
    recommender = NavigationRecommender(config=config, feature_index=feature_index, store=store, clock=clock)
    seed_neighbors(store)
    for name in ("bob", "carol", "dave"):
        store.record_interaction(name, "/customers", "bookmark")

    result = recommender.generate_recommendations(make_request("alice", ["/revenue"]))
    assert len(result.suggestions) == 1


def test_favorite_pages_win_ties(recommender, store):
    seed_neighbors(store)
    for name in ("bob", "carol", "dave"):
        store.record_interaction(name, "/customers", "export")
    store.set_baseline_popularity({"/reports": 0.5, "/customers": 0.5})

    plain = recommender.generate_recommendations(make_request("alice", ["/revenue"], session_id="a"))
    favored = recommender.generate_recommendations(make_request(
        "alice", ["/revenue"], session_id="b",
        profile=UserNavigationProfile("alice", favorite_pages=["/reports"])))

    assert plain.urls[:2] == ["/customers", "/reports"]
    assert favored.urls[:2] == ["/reports", "/customers"]


def test_repeated_requests_are_served_from_cache(recommender, store):
    seed_neighbors(store)
    request = make_request("alice", ["/revenue"])

    first = recommender.generate_recommendations(request)
    second = recommender.generate_recommendations(request)

    assert len(recommender.cache) == 1
    assert second.urls == first.urls
    assert second.suggestions[0] is first.suggestions[0]
    assert second.metadata == first.metadata


def test_mutating_a_result_does_not_touch_the_cache(recommender, store):
    seed_neighbors(store)
    request = make_request("alice", ["/revenue"])

    first = recommender.generate_recommendations(request)
    first.suggestions.clear()
    first.metadata["model_version"] = "edited"

    second = recommender.generate_recommendations(request)
    assert second.urls == ["/reports"]
    assert second.metadata["model_version"] == "1.0.0"


def test_cached_result_respects_newly_visited_pages(recommender, store):
    seed_neighbors(store)
    first = recommender.generate_recommendations(make_request("alice", ["/revenue"], current_page="/revenue"))
    assert first.urls == ["/reports"]

    later = make_request("alice", ["/reports", "/revenue"], current_page="/revenue")
    second = recommender.generate_recommendations(later)

    assert second.urls == []
    assert second.algorithm == "hybrid"
    assert second.confidence == 0.0
    assert recommender.cache.get(later.cache_key()).urls == ["/reports"]


def test_anonymous_visitors_sharing_a_cache_slot(recommender, store):
    store.set_baseline_popularity({"/forecasting": 1.0})
    first = recommender.generate_recommendations(make_request(None, ["/revenue"], current_page="/revenue"))
    assert first.urls == ["/forecasting"]

    second = recommender.generate_recommendations(
        make_request(None, ["/forecasting", "/revenue"], current_page="/revenue"))
    assert "/forecasting" not in second.urls


def test_identical_results_without_cache(feature_index, store, clock):
    recommender = NavigationRecommender(feature_index=feature_index, store=store,
                                        cache=RecommendationCache(0), clock=clock)
    seed_neighbors(store)
    request = make_request("alice", ["/revenue"])

    first = recommender.generate_recommendations(request)
    second = recommender.generate_recommendations(request)

    assert second.suggestions[0] is not first.suggestions[0]
    assert [(s.url, s.score) for s in second.suggestions] == [(s.url, s.score) for s in first.suggestions]


def test_tracking_invalidates_cached_results(recommender, store, clock):
    seed_neighbors(store)
    request = make_request("alice", ["/revenue"])
    first = recommender.generate_recommendations(request)

    recommender.track_interaction("alice", Interaction("bookmark", "/reports", timestamp=clock.now))

    assert recommender.cache.get(request.cache_key()) is None
    second = recommender.generate_recommendations(request)
    assert second.suggestions[0] is not first.suggestions[0]
    assert store.get_user_matrix("alice")["/reports"] == 4.0


def test_cache_entries_expire(recommender, store, clock):
    seed_neighbors(store)
    request = make_request("alice", ["/revenue"])
    first = recommender.generate_recommendations(request)

    clock.advance(15 * 60)

    assert recommender.cache.get(request.cache_key()) is None
    assert recommender.generate_recommendations(request).suggestions[0] is not first.suggestions[0]


def test_cleanup_cache_sweeps_expired_entries(recommender, store, clock):
    seed_neighbors(store)
    recommender.generate_recommendations(make_request("alice", ["/revenue"], session_id="a"))
    recommender.generate_recommendations(make_request("bob", ["/revenue"], session_id="b"))
    assert recommender.cleanup_cache() == 0

    clock.advance(15 * 60 + 1)

    assert recommender.cleanup_cache() == 2
    assert len(recommender.cache) == 0


def test_tracking_bad_input_does_not_raise(recommender):
    recommender.track_interaction("", Interaction("click", "/revenue"))
    recommender.track_interaction("alice", Interaction("teleport", "/revenue"))
    assert recommender.store.get_user_matrix("alice") == {"/revenue": 1.0}


def test_unloaded_feature_index_degrades_to_collaborative(store, clock):
    recommender = NavigationRecommender(feature_index=ContentFeatureIndex(), store=store, clock=clock)
    seed_neighbors(store)

    result = recommender.generate_recommendations(make_request("alice", ["/revenue"]))

    assert result.algorithm == "collaborative"
    assert result.urls == ["/reports"]
    assert result.suggestions[0].suggestion.title == "REPORTS"


def test_failing_scorer_degrades_to_the_other(recommender, monkeypatch):
    def broken(user_id, previous_pages):
        raise RuntimeError("boom")

    monkeypatch.setattr(recommender.collaborative, "recommend", broken)
    recommender.store.set_baseline_popularity({"/forecasting": 1.0})

    result = recommender.generate_recommendations(make_request("alice", ["/revenue"]))

    assert result.algorithm == "content_based"
    assert result.urls == ["/forecasting"]


def test_unexpected_failure_returns_fallback(recommender, store, monkeypatch):
    seed_neighbors(store)

    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(recommender.combiner, "combine", broken)
    result = recommender.generate_recommendations(make_request("alice", ["/revenue"]))

    assert result.is_fallback
    assert result.suggestions == []


def test_profile_source_failure_is_ignored(feature_index, store, clock):
    def profile_source(user_id):
        raise KeyError(user_id)

    recommender = NavigationRecommender(feature_index=feature_index, store=store,
                                        profile_source=profile_source, clock=clock)
    seed_neighbors(store)
    result = recommender.generate_recommendations(make_request("alice", ["/revenue"]))
    assert result.urls == ["/reports"]


def test_baseline_popularity_is_applied(store, clock, feature_index):
    index = ContentFeatureIndex(list(dict(feature_index.items()).values()), {"/reports": 0.4})
    NavigationRecommender(feature_index=index, store=store, clock=clock)
    assert store.get_popularity("/reports") == 0.4


def test_invalid_config_is_rejected():
    config = RecommendationConfig(performance=PerformanceConfig(max_suggestions=0))
    with pytest.raises(ConfigurationError):
        NavigationRecommender(config=config)


def test_refresh_features_keeps_old_index_on_failure(recommender, feature_index):
    assert recommender.refresh_features() is False
    assert "/revenue" in feature_index
