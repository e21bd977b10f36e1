"""
基于用户的协同过滤打分
"""

import time
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..models.recommendation import NavigationSuggestion, RecommendationReasoning, ScoredSuggestion
from ..services.feature_index import ContentFeatureIndex
from ..services.interaction_store import InteractionStore
from ..utils.config import CollaborativeConfig
from ..utils.exceptions import RecommendationError, UpstreamUnavailableError
from ..utils.similarity import intersection_cosine_sparse, validate_similarity_scores
from ..utils.logger import logger

COLLABORATIVE_FACTORS = ['similar_user_behavior', 'collaborative_filtering']


class CollaborativeScorer:
    """UserCF：把相似用户偏好的页面按相似度加权传播给当前用户"""

    def __init__(self,
                 store: InteractionStore,
                 feature_index: Optional[ContentFeatureIndex] = None,
                 config: Optional[CollaborativeConfig] = None):
        """
        初始化协同过滤打分器

        Args:
            store: 交互存储
            feature_index: 特征索引（只用于生成推荐描述）
            config: 协同过滤配置
        """
        self.store = store
        self.feature_index = feature_index
        self.config = config or CollaborativeConfig()
        # 预计算的邻居：用户ID -> (计算时间, [(邻居ID, 相似度)])
        self._neighbors: Dict[str, Tuple[float, List[Tuple[str, float]]]] = {}

    def _compute_user_similarity_on_demand(self, user_id: str) -> List[Tuple[str, float]]:
        """
        按需计算用户与所有其他用户的相似度，返回满足阈值的邻居

        Args:
            user_id: 用户ID

        Returns:
            [(邻居ID, 相似度)]，按相似度降序，最多 max_similar_users 个
        """
        if not self.store.has_user(user_id):
            return []

        matrix, user_id_to_index, _ = self.store.build_matrix()
        if user_id not in user_id_to_index or matrix.shape[0] < 2:
            return []

        user_ids = list(user_id_to_index.keys())
        similarities = intersection_cosine_sparse(matrix, user_id_to_index[user_id])
        validate_similarity_scores(similarities)

        # 没有共同目标的用户相似度为0，无论阈值如何都不作为邻居
        candidate_mask = (similarities > 0) & (similarities >= self.config.similarity_threshold)
        candidate_indices = np.where(candidate_mask)[0]
        if len(candidate_indices) == 0:
            return []

        # 相似度降序，相同相似度按用户ID排序保证结果稳定
        ordered = sorted(candidate_indices,
                         key=lambda idx: (-similarities[idx], user_ids[idx]))
        top_k = ordered[:self.config.max_similar_users]
        return [(user_ids[idx], float(similarities[idx])) for idx in top_k]

    def precompute_neighbors(self, user_ids: Optional[List[str]] = None) -> int:
        """
        离线预计算邻居列表（neighbor_refresh_seconds > 0 时在有效期内复用）

        Args:
            user_ids: 需要预计算的用户（可选，默认全部用户）

        Returns:
            预计算的用户数
        """
        if user_ids is None:
            user_ids = self.store.user_ids()
        computed_at = time.monotonic()
        for user_id in user_ids:
            self._neighbors[user_id] = (computed_at, self._compute_user_similarity_on_demand(user_id))
        logger.info(f"Precomputed neighbor lists for {len(user_ids)} users")
        if self.config.neighbor_refresh_seconds <= 0:
            logger.warning("neighbor_refresh_seconds is 0, precomputed neighbor lists will not be reused")
        return len(user_ids)

    def find_similar_users(self, user_id: str) -> List[Tuple[str, float]]:
        """
        查找相似用户

        Args:
            user_id: 用户ID

        Returns:
            [(邻居ID, 相似度)]，按相似度降序
        """
        refresh = self.config.neighbor_refresh_seconds
        if refresh > 0 and user_id in self._neighbors:
            computed_at, neighbors = self._neighbors[user_id]
            if time.monotonic() - computed_at < refresh:
                return list(neighbors)
        return self._compute_user_similarity_on_demand(user_id)

    def _describe(self, url: str) -> NavigationSuggestion:
        features = None
        if self.feature_index is not None:
            try:
                features = self.feature_index.get_features(url)
            except UpstreamUnavailableError:
                logger.debug(f"Feature index unavailable while describing {url}")
        return NavigationSuggestion.from_features(
            url, features, description='Recommended based on similar users')

    def recommend(self, user_id: Optional[str], previous_pages: List[str]) -> List[ScoredSuggestion]:
        """
        使用UserCF算法为用户生成候选

        Args:
            user_id: 用户ID（匿名用户返回空列表）
            previous_pages: 用户最近访问过的页面（不会被推荐）

        Returns:
            按协同分数降序的候选列表；相似用户不足 min_similar_users 时为空

        Raises:
            RecommendationError: 推荐生成错误
        """
        if not self.config.enabled or not user_id:
            return []

        try:
            similar_users = self.find_similar_users(user_id)
            if len(similar_users) < self.config.min_similar_users:
                logger.debug(f"Only {len(similar_users)} similar users for user {user_id}, "
                             f"need {self.config.min_similar_users}")
                return []

            visited = set(previous_pages)
            scores: Dict[str, float] = {}
            for neighbor_id, similarity in similar_users:
                for target, weight in self.store.get_user_matrix(neighbor_id).items():
                    if target in visited:
                        continue
                    scores[target] = scores.get(target, 0.0) + weight * similarity * self.config.decay_factor

            suggestions = [
                ScoredSuggestion(
                    suggestion=self._describe(target),
                    score=score,
                    reasoning=RecommendationReasoning(
                        primary_factors=COLLABORATIVE_FACTORS,
                        collaborative_score=score,
                    ),
                )
                for target, score in scores.items()
            ]
            return sorted(suggestions, key=lambda s: (-s.score, s.url))

        except Exception as e:
            raise RecommendationError(f"Error generating collaborative recommendations: {str(e)}")
