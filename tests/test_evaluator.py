from datetime import timedelta

import pandas as pd
import pytest

from nav_recommender.main import enable_neighbor_precompute, main, run_offline_evaluation
from nav_recommender.models import NavigationSuggestion, RecommendationResult, ScoredSuggestion
from nav_recommender.services.evaluator import Evaluator
from nav_recommender.utils.config import (
    CONTENT_FEATURES_PATH, DEFAULT_NEIGHBOR_REFRESH_SECONDS, INTERACTION_LOG_PATH, RecommendationConfig
)
from nav_recommender.utils.exceptions import EvaluationError
from nav_recommender.utils.metrics import (
    calculate_coverage, calculate_fallback_rate, calculate_hit_rate, calculate_mrr,
    calculate_precision_at_k, hit_ranks
)


def result(urls, algorithm="hybrid"):
    return RecommendationResult(
        [ScoredSuggestion(NavigationSuggestion(u, u), 1.0) for u in urls], algorithm, 1.0 if urls else 0.0)


def test_hit_ranks():
    results = {"u1": result(["/a", "/b"]), "u2": result(["/b", "/a"]), "u3": result([], "fallback")}
    truth = {"u1": "/a", "u2": "/a", "u3": "/a"}
    assert hit_ranks(results, truth).tolist() == [1, 2, 0]


def test_mrr():
    results = {"u1": result(["/a", "/b"]), "u2": result(["/b", "/a"]), "u3": result(["/c"])}
    truth = {"u1": "/a", "u2": "/a", "u3": "/z"}
    assert calculate_mrr(results, truth) == pytest.approx((1 + 0.5 + 0) / 3)


def test_mrr_rejects_bad_input():
    with pytest.raises(EvaluationError):
        calculate_mrr({}, {})
    with pytest.raises(EvaluationError):
        calculate_mrr({"u1": result([], "fallback")}, {"u2": "/a"})


def test_hit_rate_and_precision():
    results = {"u1": result(["/a", "/b"]), "u2": result(["/c"])}
    truth = {"u1": "/b", "u2": "/a"}
    assert calculate_hit_rate(results, truth) == 0.5
    assert calculate_hit_rate(results, truth, k=1) == 0.0
    assert calculate_precision_at_k(results, truth, k=1) == 0.0
    assert calculate_precision_at_k(results, truth, k=2) == pytest.approx(0.25)
    with pytest.raises(EvaluationError):
        calculate_precision_at_k(results, truth, k=0)


def test_coverage_and_fallback_rate():
    results = {"u1": result(["/a", "/b"]), "u2": result(["/b", "/external"]), "u3": result([], "fallback")}
    assert calculate_coverage(results, ["/a", "/b", "/c", "/d"]) == 0.5
    assert calculate_coverage(results, []) == 0.0
    assert calculate_fallback_rate(results) == pytest.approx(1 / 3)
    assert calculate_fallback_rate({}) == 0.0


def test_build_requests_uses_recent_distinct_pages(clock):
    history = pd.DataFrame({
        "user_id": ["u1"] * 4,
        "target": ["/a", "/b", "/a", "/c"],
        "interaction_type": ["click"] * 4,
        "timestamp": [clock.now + timedelta(minutes=i) for i in range(4)],
    })
    request = Evaluator(history_window=2).build_requests(history, ["u1", "missing"])["u1"]

    assert request.previous_pages == ["/a", "/c"]
    assert request.context.current_page == "/c"
    assert request.context.session_id == "eval-u1"


def test_evaluate_counts_algorithms():
    metrics = Evaluator(top_k=1).evaluate(
        {"u1": result(["/a"], "hybrid"), "u2": result([], "fallback"), "u9": result(["/b"])},
        {"u1": "/a", "u2": "/b"},
        destinations=["/a", "/b", "/c", "/d"],
    )
    assert metrics["mrr"] == 0.5
    assert metrics["total_users"] == 2
    assert metrics["total_recommendations"] == 1
    assert metrics["algorithms"] == {"hybrid": 1, "fallback": 1}
    assert metrics["hit_rate_at_k"] == 0.5
    assert metrics["fallback_rate"] == 0.5
    assert metrics["coverage"] == 0.25


def test_evaluate_without_destinations_skips_coverage():
    metrics = Evaluator().evaluate({"u1": result(["/a"])}, {"u1": "/a"})
    assert "coverage" not in metrics
    assert metrics["precision_at_k"] == pytest.approx(0.2)


def test_offline_evaluation_on_sample_data(tmp_path):
    output = tmp_path / "recommendations.csv"
    metrics = run_offline_evaluation(
        features_path=CONTENT_FEATURES_PATH,
        interaction_log_path=INTERACTION_LOG_PATH,
        output_path=str(output),
    )

    assert 0.0 <= metrics["mrr"] <= 1.0
    assert metrics["total_users"] == 10
    written = pd.read_csv(output)
    assert set(written["user_id"]) == {f"u{i}" for i in range(1, 11)}


def test_cli_reports_failure(tmp_path):
    assert main(["--log", str(tmp_path / "missing.csv"), "--output", str(tmp_path / "out.csv")]) == 1


def test_neighbor_precompute_sets_a_refresh_window():
    config = enable_neighbor_precompute(RecommendationConfig())
    assert config.collaborative.neighbor_refresh_seconds == DEFAULT_NEIGHBOR_REFRESH_SECONDS

    config.collaborative.neighbor_refresh_seconds = 120
    assert enable_neighbor_precompute(config).collaborative.neighbor_refresh_seconds == 120


def test_offline_evaluation_with_precomputed_neighbors(tmp_path):
    baseline = run_offline_evaluation(output_path=str(tmp_path / "plain.csv"))
    metrics = run_offline_evaluation(output_path=str(tmp_path / "precomputed.csv"), precompute_neighbors=True)

    assert metrics["mrr"] == pytest.approx(baseline["mrr"])
    assert metrics["algorithms"] == baseline["algorithms"]
    assert 0.0 <= metrics["coverage"] <= 1.0
