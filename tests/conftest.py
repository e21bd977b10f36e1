import os
from datetime import datetime, timedelta, timezone

import pytest

os.environ.setdefault("NAV_RECOMMENDER_LOG_DIR", "")

from nav_recommender.models import ContentFeatures, NavigationContext, RecommendationRequest  # noqa: E402
from nav_recommender.services.feature_index import ContentFeatureIndex  # noqa: E402
from nav_recommender.services.interaction_store import InteractionStore  # noqa: E402
from nav_recommender.services.recommendation_cache import RecommendationCache  # noqa: E402
from nav_recommender.services.recommender import NavigationRecommender  # noqa: E402
from nav_recommender.utils.config import RecommendationConfig  # noqa: E402

START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Wall clock for the store plus a monotonic view for the cache."""

    def __init__(self, now: datetime = START):
        self.now = now
        self._start = now

    def __call__(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return (self.now - self._start).total_seconds()

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def default_features():
    return [
        ContentFeatures("/", "overview", "low", ["summary"], "monitoring", title="Dashboard Overview"),
        ContentFeatures("/revenue", "financial", "medium", ["revenue", "trends"], "analytics",
                        title="Revenue Analytics"),
        ContentFeatures("/customers", "customer", "medium", ["customer", "behavior"], "analysis",
                        title="Customer Intelligence"),
        ContentFeatures("/reports", "reporting", "high", ["reports", "exports"], "reporting",
                        title="Reports & Exports"),
        ContentFeatures("/analytics", "analytics", "high", ["data", "insights"], "analysis",
                        title="Advanced Analytics"),
        ContentFeatures("/customer-intelligence", "intelligence", "high", ["ai", "predictions"],
                        "intelligence"),
        ContentFeatures("/forecasting", "financial", "medium", ["revenue", "forecast"], "planning",
                        title="Forecasting"),
    ]


def make_request(user_id, previous_pages, current_page=None, session_id="s1", profile=None):
    current_page = current_page or (previous_pages[-1] if previous_pages else "/")
    return RecommendationRequest(
        context=NavigationContext(current_page=current_page, previous_pages=previous_pages,
                                  session_id=session_id, timestamp=START),
        user_id=user_id,
        user_profile=profile,
        timestamp=START,
    )


def seed_neighbors(store, requester="alice", neighbors=("bob", "carol", "dave")):
    """requester clicked /revenue; every neighbor clicked /revenue and exported /reports."""
    store.record_interaction(requester, "/revenue", "click")
    for name in neighbors:
        store.record_interaction(name, "/revenue", "click")
        store.record_interaction(name, "/reports", "export")


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def feature_index():
    return ContentFeatureIndex(default_features())


@pytest.fixture
def store(clock):
    return InteractionStore(clock=clock)


@pytest.fixture
def config():
    return RecommendationConfig()


@pytest.fixture
def recommender(config, feature_index, store, clock):
    cache = RecommendationCache(config.performance.cache_timeout_seconds, clock=clock.monotonic)
    return NavigationRecommender(config=config, feature_index=feature_index, store=store,
                                 cache=cache, clock=clock)
