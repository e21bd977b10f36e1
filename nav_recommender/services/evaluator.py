"""
离线评估服务模块
"""

from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd
from tqdm import tqdm

from ..models.navigation import NavigationContext, RecommendationRequest
from ..models.recommendation import RecommendationResult
from ..utils.metrics import (
    calculate_coverage, calculate_fallback_rate, calculate_hit_rate, calculate_mrr, calculate_precision_at_k
)
from ..utils.exceptions import EvaluationError
from ..utils.logger import logger


class Evaluator:
    """评估器类：用留出的最后一次访问评估推荐效果"""

    def __init__(self, history_window: int = 10, top_k: int = 5):
        """
        Args:
            history_window: 构造请求时使用的最近访问页面数
            top_k: Precision@K 的K
        """
        self.history_window = history_window
        self.top_k = top_k

    def build_requests(self, history: pd.DataFrame, user_ids: List[str]) -> Dict[str, RecommendationRequest]:
        """
        根据历史交互为每个用户构造推荐请求

        最近访问页面按时间排序并去重（保留最后一次出现），当前页面为最后访问的页面。

        Args:
            history: 历史交互日志
            user_ids: 需要构造请求的用户

        Returns:
            用户ID -> 推荐请求
        """
        requests = {}
        ordered = history.sort_values('timestamp', kind='stable')
        grouped = {uid: group for uid, group in ordered.groupby('user_id', sort=False)}

        for user_id in user_ids:
            group = grouped.get(user_id)
            if group is None or group.empty:
                continue
            pages = list(dict.fromkeys(reversed(group['target'].tolist())))
            previous_pages = list(reversed(pages[:self.history_window]))
            requests[user_id] = RecommendationRequest(
                context=NavigationContext(
                    current_page=previous_pages[-1],
                    previous_pages=previous_pages,
                    session_id=f"eval-{user_id}",
                    timestamp=group['timestamp'].iloc[-1],
                ),
                user_id=user_id,
                timestamp=group['timestamp'].iloc[-1],
            )
        return requests

    def evaluate(self,
                 results: Dict[str, RecommendationResult],
                 ground_truth: Dict[str, str],
                 destinations: Optional[Iterable[str]] = None) -> Dict:
        """
        评估推荐效果

        Args:
            results: 用户ID -> 推荐结果
            ground_truth: 用户ID -> 真实的下一个页面
            destinations: 全部可推荐页面（可选，用于计算覆盖率）

        Returns:
            评估结果字典，包含MRR、命中率、Precision@K、fallback比例、覆盖率和算法分布

        Raises:
            EvaluationError: 评估错误
        """
        try:
            logger.info("Evaluating recommendations...")

            scored = {uid: result for uid, result in results.items() if uid in ground_truth}
            mrr = calculate_mrr(scored, ground_truth)
            algorithms = pd.Series([result.algorithm for result in scored.values()]).value_counts().to_dict()

            metrics = {
                'mrr': mrr,
                'hit_rate': calculate_hit_rate(scored, ground_truth),
                'hit_rate_at_k': calculate_hit_rate(scored, ground_truth, self.top_k),
                'precision_at_k': calculate_precision_at_k(scored, ground_truth, self.top_k),
                'fallback_rate': calculate_fallback_rate(scored),
                'total_users': len(scored),
                'total_recommendations': sum(len(result.suggestions) for result in scored.values()),
                'algorithms': algorithms,
            }
            if destinations is not None:
                metrics['coverage'] = calculate_coverage(scored, destinations)

            logger.info(f"Evaluation completed: MRR = {mrr:.4f}, Total users = {len(scored)}")
            return metrics

        except EvaluationError:
            raise
        except Exception as e:
            raise EvaluationError(f"Error evaluating recommendations: {str(e)}")

    def run(self,
            recommender,
            history: pd.DataFrame,
            ground_truth: Dict[str, str],
            user_limit: Optional[int] = None) -> Tuple[Dict[str, RecommendationResult], Dict]:
        """
        为留出用户生成推荐并评估

        Args:
            recommender: NavigationRecommender（交互历史已回放）
            history: 历史交互日志
            ground_truth: 用户ID -> 真实的下一个页面
            user_limit: 只评估前N个用户（None表示全部）

        Returns:
            (results, metrics)
        """
        user_ids = list(ground_truth.keys())
        if user_limit is not None and user_limit > 0:
            user_ids = user_ids[:user_limit]
            logger.info(f"TEST MODE: limited to {len(user_ids)} users")

        requests = self.build_requests(history, user_ids)
        results = {}
        for user_id, request in tqdm(requests.items(), desc="Generating recommendations", total=len(requests)):
            results[user_id] = recommender.generate_recommendations(request)

        if not results:
            raise EvaluationError("No users with history to evaluate")

        destinations = recommender.feature_index.destinations() if recommender.feature_index.is_loaded else None
        return results, self.evaluate(results, ground_truth, destinations)
