"""
混合打分：融合协同过滤、内容相似度、热度和新近度
"""

from datetime import datetime
from typing import Dict, List, Optional

from ..models.navigation import UserNavigationProfile
from ..models.recommendation import RecommendationReasoning, ScoredSuggestion
from ..services.interaction_store import InteractionStore
from ..utils.config import HybridConfig, PerformanceConfig
from ..utils.logger import logger


class HybridCombiner:
    """多路候选融合与业务规则过滤"""

    def __init__(self,
                 store: InteractionStore,
                 config: Optional[HybridConfig] = None,
                 performance: Optional[PerformanceConfig] = None):
        """
        初始化混合打分器

        Args:
            store: 交互存储（提供热度和最近交互时间）
            config: 混合打分配置
            performance: 性能配置（最大推荐数、新近度窗口）
        """
        self.store = store
        self.config = config or HybridConfig()
        self.performance = performance or PerformanceConfig()

    def recency_score(self, url: str, now: datetime) -> float:
        """
        新近度：max(0, 1 - 距最近一次交互的时长 / 保留窗口)

        Args:
            url: 页面路径
            now: 当前时间

        Returns:
            新近度，范围[0, 1]；窗口内没有交互时为0
        """
        last_seen = self.store.last_interaction_time(url)
        if last_seen is None:
            return 0.0
        age = max((now - last_seen).total_seconds(), 0.0)
        return max(0.0, 1.0 - age / self.performance.retention_seconds)

    def combine(self,
                collaborative: List[ScoredSuggestion],
                content_based: List[ScoredSuggestion],
                now: datetime) -> List[ScoredSuggestion]:
        """
        融合两路候选

        同一页面在两路中都出现时按权重累加分数，并保留两路子分数。
        输入的候选对象不会被修改。

        Args:
            collaborative: 协同过滤候选
            content_based: 内容候选
            now: 当前时间（计算新近度）

        Returns:
            融合后的候选，按分数降序
        """
        if not self.config.enabled:
            merged: Dict[str, ScoredSuggestion] = {}
            for item in list(collaborative) + list(content_based):
                if item.url not in merged:
                    merged[item.url] = ScoredSuggestion(item.suggestion, item.score, item.reasoning.copy())
            return sorted(merged.values(), key=lambda s: (-s.score, s.url))

        combined: Dict[str, ScoredSuggestion] = {}

        for item in collaborative:
            reasoning = item.reasoning.copy()
            reasoning.primary_factors = ['hybrid_collaborative'] + reasoning.primary_factors
            combined[item.url] = ScoredSuggestion(
                item.suggestion, item.score * self.config.collaborative_weight, reasoning)

        for item in content_based:
            weighted = item.score * self.config.content_weight
            existing = combined.get(item.url)
            if existing is not None:
                existing.score += weighted
                existing.reasoning.primary_factors.append('hybrid_content')
                existing.reasoning.content_score = item.score
            else:
                reasoning = item.reasoning.copy()
                reasoning.primary_factors = ['hybrid_content'] + reasoning.primary_factors
                combined[item.url] = ScoredSuggestion(item.suggestion, weighted, reasoning)

        for url, item in combined.items():
            popularity = self.store.get_popularity(url)
            recency = self.recency_score(url, now)
            item.score += popularity * self.config.popularity_weight
            item.score += recency * self.config.recency_weight
            item.reasoning.popularity_score = popularity
            item.reasoning.recency_score = recency

        return sorted(combined.values(), key=lambda s: (-s.score, s.url))

    def apply_business_rules(self,
                             suggestions: List[ScoredSuggestion],
                             previous_pages: List[str]) -> List[ScoredSuggestion]:
        """
        过滤低分候选和最近访问过的页面

        Args:
            suggestions: 候选列表
            previous_pages: 最近访问过的页面

        Returns:
            过滤后的候选
        """
        visited = set(previous_pages)
        kept = [
            s for s in suggestions
            if s.score > self.config.min_score_threshold and s.url not in visited
        ]
        dropped = len(suggestions) - len(kept)
        if dropped:
            logger.debug(f"Business rules dropped {dropped} of {len(suggestions)} candidates")
        return kept

    def rank(self,
             suggestions: List[ScoredSuggestion],
             profile: Optional[UserNavigationProfile] = None) -> List[ScoredSuggestion]:
        """
        按分数降序排序并截断；同分时收藏页面优先，再按路径

        Args:
            suggestions: 候选列表
            profile: 用户画像（可选，只用于同分排序）

        Returns:
            最多 max_suggestions 个推荐项
        """
        favorites = set(profile.favorite_pages) if profile is not None else set()
        ordered = sorted(suggestions, key=lambda s: (-s.score, s.url not in favorites, s.url))
        return ordered[:self.performance.max_suggestions]

    @staticmethod
    def determine_algorithm(collaborative: List[ScoredSuggestion],
                            content_based: List[ScoredSuggestion]) -> str:
        if collaborative and content_based:
            return 'hybrid'
        if collaborative:
            return 'collaborative'
        if content_based:
            return 'content_based'
        return 'fallback'

    @staticmethod
    def calculate_confidence(suggestions: List[ScoredSuggestion]) -> float:
        if not suggestions:
            return 0.0
        return sum(s.score for s in suggestions) / len(suggestions)

    @staticmethod
    def generate_explanations(suggestions: List[ScoredSuggestion]) -> List[str]:
        explanations = [f"Generated {len(suggestions)} recommendations based on your behavior patterns"]
        if any(s.reasoning.collaborative_score for s in suggestions):
            explanations.append("Using collaborative filtering based on similar users")
        if any(s.reasoning.content_score for s in suggestions):
            explanations.append("Using content-based filtering based on page features")
        return explanations
