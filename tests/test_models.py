from datetime import datetime, timezone

import pandas as pd
import pytest

from nav_recommender.models import (
    ContentFeatures, NavigationContext, RecommendationRequest, RecommendationResult, SessionData,
    Interaction, normalize_timestamp
)
from nav_recommender.models.recommendation import title_from_url
from nav_recommender.services.recommendation_cache import RecommendationCache

from conftest import FrozenClock


def test_normalize_timestamp_variants():
    expected = datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert normalize_timestamp(expected.timestamp()) == expected
    assert normalize_timestamp(datetime(2026, 1, 1)) == expected
    assert normalize_timestamp(pd.Timestamp("2026-01-01", tz="UTC")) == expected
    assert normalize_timestamp(None).tzinfo is not None
    with pytest.raises(TypeError):
        normalize_timestamp("yesterday")


def test_title_from_url():
    assert title_from_url("/customer-intelligence") == "CUSTOMER INTELLIGENCE"
    assert title_from_url("/") == "HOME"


def test_content_features_normalization():
    features = ContentFeatures("/a", "financial", "extreme", ["revenue", "revenue", "trends"])
    assert features.complexity == "medium"
    assert features.data_types == ["revenue", "trends"]


def test_request_cache_key_and_data_points():
    context = NavigationContext("/revenue", ["/", "/customers"], session_id="s1")
    session = SessionData("s1", interactions=[Interaction("click", "/")])
    request = RecommendationRequest(context, session_data=session)

    assert request.cache_key() == ("anonymous", "/revenue", "s1")
    assert request.data_points() == 3


def test_result_rejects_unknown_algorithm():
    with pytest.raises(ValueError):
        RecommendationResult([], "popular", 0.0)


def test_cache_expiry_and_invalidation():
    clock = FrozenClock()
    cache = RecommendationCache(60, clock=clock.monotonic)
    result = RecommendationResult([], "fallback", 0.0)
    cache.set(("alice", "/", "s1"), result)
    cache.set(("alice", "/revenue", "s1"), result)
    cache.set(("bob", "/", "s1"), result)

    cached = cache.get(("alice", "/", "s1"))
    assert cached is not result
    assert cached.algorithm == "fallback"
    assert cache.invalidate_user("alice") == 2
    assert cache.get(("alice", "/", "s1")) is None

    clock.advance(61)
    assert cache.cleanup_expired() == 1
    assert len(cache) == 0


def test_zero_ttl_disables_cache():
    cache = RecommendationCache(0)
    cache.set(("alice", "/", None), RecommendationResult([], "fallback", 0.0))
    assert len(cache) == 0
