"""
基于内容特征的推荐打分
"""

from collections import Counter
from typing import Dict, List, Optional

from ..models.content_features import ContentFeatures
from ..models.recommendation import NavigationSuggestion, RecommendationReasoning, ScoredSuggestion
from ..services.feature_index import ContentFeatureIndex
from ..services.interaction_store import InteractionStore
from ..utils.config import (
    ContentBasedConfig, DEFAULT_COMPLEXITY, DEFAULT_PROFILE_CATEGORY, DEFAULT_PROFILE_BUSINESS_FUNCTION
)
from ..utils.exceptions import RecommendationError, UpstreamUnavailableError
from ..utils.similarity import jaccard_similarity, complexity_closeness
from ..utils.logger import logger

CONTENT_FACTORS = ['content_similarity', 'user_preferences']


def _mode(counts: Counter, tie_weights: Dict[str, float], default: str) -> str:
    """
    取出现次数最多的标签；次数相同时按交互权重，再按首次出现顺序

    Counter 保留插入顺序，sorted 是稳定排序。
    """
    if not counts:
        return default
    ranked = sorted(counts.items(), key=lambda item: (-item[1], -tie_weights.get(item[0], 0.0)))
    return ranked[0][0]


class ContentBasedScorer:
    """根据用户访问过页面的特征画像，推荐内容相似的未访问页面"""

    def __init__(self,
                 feature_index: ContentFeatureIndex,
                 store: Optional[InteractionStore] = None,
                 config: Optional[ContentBasedConfig] = None):
        """
        初始化内容打分器

        Args:
            feature_index: 特征索引
            store: 交互存储（可选，用于画像的同频标签排序）
            config: 内容推荐配置
        """
        self.feature_index = feature_index
        self.store = store
        self.config = config or ContentBasedConfig()

    def build_user_profile(self, previous_pages: List[str], user_id: Optional[str] = None) -> ContentFeatures:
        """
        根据最近访问的页面构建用户内容画像

        主类别、业务职能和复杂度取出现次数最多的值，数据类型取并集。
        没有可用特征时使用 general/medium 默认画像。

        Args:
            previous_pages: 最近访问的页面
            user_id: 用户ID（可选）

        Returns:
            url为None的 ContentFeatures
        """
        user_weights = self.store.get_user_matrix(user_id) if (self.store is not None and user_id) else {}

        categories = Counter()
        functions = Counter()
        complexities = Counter()
        category_weights: Dict[str, float] = {}
        function_weights: Dict[str, float] = {}
        complexity_weights: Dict[str, float] = {}
        data_types = []

        for page in previous_pages:
            features = self.feature_index.get_features(page)
            if features is None:
                continue
            weight = user_weights.get(page, 0.0)

            categories[features.category] += 1
            category_weights[features.category] = category_weights.get(features.category, 0.0) + weight
            functions[features.business_function] += 1
            function_weights[features.business_function] = \
                function_weights.get(features.business_function, 0.0) + weight
            complexities[features.complexity] += 1
            complexity_weights[features.complexity] = complexity_weights.get(features.complexity, 0.0) + weight
            data_types.extend(features.data_types)

        return ContentFeatures(
            url=None,
            category=_mode(categories, category_weights, DEFAULT_PROFILE_CATEGORY),
            complexity=_mode(complexities, complexity_weights, DEFAULT_COMPLEXITY),
            data_types=data_types,
            business_function=_mode(functions, function_weights, DEFAULT_PROFILE_BUSINESS_FUNCTION),
        )

    def compute_similarity(self, profile: ContentFeatures, features: ContentFeatures) -> float:
        """
        计算画像与页面特征的加权相似度

        Args:
            profile: 用户内容画像
            features: 页面特征

        Returns:
            相似度，范围[0, 1]
        """
        cfg = self.config
        similarity = 0.0
        similarity += (1.0 if profile.category == features.category else 0.0) * cfg.category_weight
        similarity += jaccard_similarity(profile.data_types, features.data_types) * cfg.data_types_weight
        similarity += (1.0 if profile.business_function == features.business_function else 0.0) \
            * cfg.business_function_weight
        similarity += complexity_closeness(profile.complexity, features.complexity) * cfg.complexity_weight
        return min(max(similarity, 0.0), 1.0)

    def recommend(self, user_id: Optional[str], previous_pages: List[str]) -> List[ScoredSuggestion]:
        """
        生成基于内容的候选

        Args:
            user_id: 用户ID（可选）
            previous_pages: 用户最近访问过的页面（不会被推荐）

        Returns:
            按内容相似度降序的候选列表

        Raises:
            UpstreamUnavailableError: 特征索引不可用
            RecommendationError: 推荐生成错误
        """
        if not self.config.enabled:
            return []

        try:
            profile = self.build_user_profile(previous_pages, user_id)
            visited = set(previous_pages)

            suggestions = []
            for url, features in self.feature_index.items():
                if url in visited:
                    continue
                similarity = self.compute_similarity(profile, features)
                if similarity < self.config.min_content_score:
                    continue
                suggestions.append(ScoredSuggestion(
                    suggestion=NavigationSuggestion.from_features(
                        url, features, description='Recommended based on pages you use'),
                    score=similarity,
                    reasoning=RecommendationReasoning(
                        primary_factors=CONTENT_FACTORS,
                        content_score=similarity,
                    ),
                ))

            logger.debug(f"Content-based scorer kept {len(suggestions)} candidates "
                         f"(profile category: {profile.category})")
            return sorted(suggestions, key=lambda s: (-s.score, s.url))

        except UpstreamUnavailableError:
            raise
        except Exception as e:
            raise RecommendationError(f"Error generating content-based recommendations: {str(e)}")
