"""
导航推荐离线评估指标

指标直接基于 RecommendationResult 计算，ground_truth 为每个用户下一次访问的页面。
"""

from typing import Dict, Iterable

import numpy as np

from ..models.recommendation import RecommendationResult
from .exceptions import EvaluationError


def hit_ranks(results: Dict[str, RecommendationResult], ground_truth: Dict[str, str]) -> np.ndarray:
    """
    真实页面在每个用户推荐列表中的名次

    Args:
        results: 用户ID -> 推荐结果
        ground_truth: 用户ID -> 真实的下一个页面

    Returns:
        名次数组（从1开始），未命中为0，顺序与 results 一致

    Raises:
        EvaluationError: 结果为空或有用户缺少真实页面
    """
    if not results:
        raise EvaluationError("No recommendation results to evaluate")
    missing = [uid for uid in results if uid not in ground_truth]
    if missing:
        raise EvaluationError(f"Missing ground truth for {len(missing)} users, e.g. {missing[0]}")

    ranks = []
    for user_id, result in results.items():
        urls = result.urls
        target = ground_truth[user_id]
        ranks.append(urls.index(target) + 1 if target in urls else 0)
    return np.asarray(ranks, dtype=np.int64)


def calculate_mrr(results: Dict[str, RecommendationResult], ground_truth: Dict[str, str]) -> float:
    """
    MRR（平均倒数排名）；fallback 的空结果按未命中计入

    Returns:
        MRR值，范围[0, 1]
    """
    ranks = hit_ranks(results, ground_truth)
    reciprocal = np.where(ranks > 0, 1.0 / np.maximum(ranks, 1), 0.0)
    return float(reciprocal.mean())


def calculate_hit_rate(results: Dict[str, RecommendationResult],
                       ground_truth: Dict[str, str],
                       k: int = None) -> float:
    """
    命中率：真实页面出现在前k个推荐中的用户比例

    Args:
        k: 截断位置（None表示整个列表）
    """
    ranks = hit_ranks(results, ground_truth)
    hits = ranks > 0
    if k is not None:
        hits &= ranks <= k
    return float(hits.mean())


def calculate_precision_at_k(results: Dict[str, RecommendationResult],
                             ground_truth: Dict[str, str],
                             k: int = 5) -> float:
    """每个用户只有一个真实页面，命中时精确率为 1/k"""
    if k < 1:
        raise EvaluationError(f"k must be >= 1, got {k}")
    return calculate_hit_rate(results, ground_truth, k) / k


def calculate_coverage(results: Dict[str, RecommendationResult], destinations: Iterable[str]) -> float:
    """
    目录覆盖率：至少被推荐给一个用户的页面占全部页面的比例

    Args:
        results: 用户ID -> 推荐结果
        destinations: 全部可推荐页面

    Returns:
        覆盖率，没有页面时为0
    """
    catalog = set(destinations)
    if not catalog:
        return 0.0
    suggested = {url for result in results.values() for url in result.urls}
    return len(suggested & catalog) / len(catalog)


def calculate_fallback_rate(results: Dict[str, RecommendationResult]) -> float:
    if not results:
        return 0.0
    return float(np.mean([result.is_fallback for result in results.values()]))
