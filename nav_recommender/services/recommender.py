"""
导航推荐服务模块
"""

import time
from datetime import datetime
from typing import Callable, List, Optional

from ..algorithms.collaborative import CollaborativeScorer
from ..algorithms.content_based import ContentBasedScorer
from ..algorithms.hybrid import HybridCombiner
from ..models.interaction import Interaction
from ..models.navigation import RecommendationRequest, UserNavigationProfile
from ..models.recommendation import RecommendationResult, ScoredSuggestion
from .feature_index import ContentFeatureIndex
from .interaction_store import InteractionStore, utc_now
from .recommendation_cache import RecommendationCache
from ..utils.config import RecommendationConfig, MODEL_VERSION
from ..utils.exceptions import NavigationRecommenderError, UpstreamUnavailableError
from ..utils.logger import logger

ProfileSource = Callable[[str], Optional[UserNavigationProfile]]


class NavigationRecommender:
    """
    导航推荐系统主类

    由宿主应用显式构建并注入依赖；正常请求不会向调用方抛出异常，
    任何失败都降级为空的 fallback 结果。
    """

    def __init__(self,
                 config: Optional[RecommendationConfig] = None,
                 feature_index: Optional[ContentFeatureIndex] = None,
                 store: Optional[InteractionStore] = None,
                 profile_source: Optional[ProfileSource] = None,
                 cache: Optional[RecommendationCache] = None,
                 clock: Callable[[], datetime] = utc_now):
        """
        初始化推荐系统

        Args:
            config: 推荐配置（默认配置）
            feature_index: 内容特征索引（未加载的索引视为上游不可用）
            store: 交互存储
            profile_source: 用户画像来源 user_id -> UserNavigationProfile（可选）
            cache: 推荐结果缓存
            clock: 返回当前UTC时间的函数
        """
        self.config = (config or RecommendationConfig()).validate()
        self.clock = clock
        self.feature_index = feature_index if feature_index is not None else ContentFeatureIndex()
        self.store = store if store is not None else InteractionStore(
            retention_seconds=self.config.performance.retention_seconds, clock=clock)
        self.cache = cache if cache is not None else RecommendationCache(
            self.config.performance.cache_timeout_seconds)
        self.profile_source = profile_source

        self.collaborative = CollaborativeScorer(self.store, self.feature_index, self.config.collaborative)
        self.content_based = ContentBasedScorer(self.feature_index, self.store, self.config.content_based)
        self.combiner = HybridCombiner(self.store, self.config.hybrid, self.config.performance)

        baseline = self.feature_index.baseline_popularity()
        if baseline:
            self.store.set_baseline_popularity(baseline)

    def _run_scorer(self, stage: str, scorer, request: RecommendationRequest) -> List[ScoredSuggestion]:
        try:
            candidates = scorer.recommend(request.user_id, request.previous_pages)
            if not candidates:
                logger.debug(f"{stage} returned no candidates for user {request.user_id}")
            return candidates
        except UpstreamUnavailableError as e:
            logger.warning(f"Upstream unavailable in {stage} stage for user {request.user_id}: {str(e)}")
            return []
        except Exception as e:
            logger.warning(f"{stage} recommendation failed for user {request.user_id}: {str(e)}")
            return []

    def _resolve_profile(self, request: RecommendationRequest) -> Optional[UserNavigationProfile]:
        if request.user_profile is not None:
            return request.user_profile
        if self.profile_source is None or not request.user_id:
            return None
        try:
            return self.profile_source(request.user_id)
        except Exception as e:
            logger.warning(f"Profile source failed for user {request.user_id}: {str(e)}")
            return None

    def generate_recommendations(self, request: RecommendationRequest) -> RecommendationResult:
        """
        为导航请求生成推荐（协同过滤 + 内容相似度 + 热度 + 新近度）

        Args:
            request: 推荐请求

        Returns:
            推荐结果；两路都没有候选时返回空的 fallback 结果
        """
        start_time = time.perf_counter()
        try:
            cache_key = request.cache_key()
            cached = self.cache.get(cache_key)
            if cached is not None:
                return self._revalidate_cached(cached, request)

            collaborative = self._run_scorer('collaborative', self.collaborative, request)
            content_based = self._run_scorer('content_based', self.content_based, request)

            algorithm = self.combiner.determine_algorithm(collaborative, content_based)
            if algorithm == 'fallback':
                logger.debug(f"Insufficient signal for user {request.user_id}, returning fallback")
                result = self._fallback_result(request, start_time)
            else:
                combined = self.combiner.combine(collaborative, content_based, self.clock())
                filtered = self.combiner.apply_business_rules(combined, request.previous_pages)
                suggestions = self.combiner.rank(filtered, self._resolve_profile(request))
                result = RecommendationResult(
                    suggestions=suggestions,
                    algorithm=algorithm,
                    confidence=self.combiner.calculate_confidence(suggestions),
                    explanations=self.combiner.generate_explanations(suggestions),
                    metadata=self._metadata(request, start_time, len(collaborative), len(content_based)),
                )

            self.cache.set(cache_key, result)
            return result

        except Exception as e:
            logger.error(f"Error generating recommendations for user {request.user_id}: {str(e)}")
            return self._fallback_result(request, start_time)

    def _revalidate_cached(self, cached: RecommendationResult,
                           request: RecommendationRequest) -> RecommendationResult:
        """
        缓存键不包含访问历史，命中时按当前请求的已访问页面重新过滤

        Args:
            cached: 缓存中的结果（副本）
            request: 当前请求

        Returns:
            过滤后的结果；没有被过滤的项时与缓存结果相同
        """
        kept = self.combiner.apply_business_rules(cached.suggestions, request.previous_pages)
        if len(kept) == len(cached.suggestions):
            return cached

        logger.debug(f"Dropped {len(cached.suggestions) - len(kept)} cached suggestion(s) "
                     f"already visited by user {request.user_id}")
        result = cached.copy(suggestions=kept)
        result.confidence = self.combiner.calculate_confidence(kept)
        result.explanations = self.combiner.generate_explanations(kept)
        return result

    def _metadata(self, request: RecommendationRequest, start_time: float,
                  collaborative_count: int = 0, content_count: int = 0) -> dict:
        return {
            'processing_time_ms': (time.perf_counter() - start_time) * 1000,
            'data_points': request.data_points(),
            'model_version': MODEL_VERSION,
            'candidates': {'collaborative': collaborative_count, 'content_based': content_count},
        }

    def _fallback_result(self, request: RecommendationRequest, start_time: float) -> RecommendationResult:
        metadata = self._metadata(request, start_time)
        metadata['low_confidence'] = True
        return RecommendationResult(
            suggestions=[],
            algorithm='fallback',
            confidence=0.0,
            explanations=['Using fallback recommendations due to insufficient data'],
            metadata=metadata,
        )

    def track_interaction(self, user_id: str, interaction: Interaction) -> None:
        """
        记录用户交互，并立即清除该用户的缓存推荐

        Args:
            user_id: 用户ID
            interaction: 交互事件
        """
        try:
            self.store.record_interaction(user_id, interaction.target, interaction.type, interaction.timestamp)
        except NavigationRecommenderError as e:
            logger.warning(f"Error tracking interaction for user {user_id}: {str(e)}")
        finally:
            if user_id:
                self.cache.invalidate_user(user_id)

    def precompute_neighbors(self) -> int:
        return self.collaborative.precompute_neighbors()

    def refresh_features(self) -> bool:
        """
        刷新特征索引；失败时保留旧特征

        Returns:
            是否刷新成功
        """
        try:
            self.feature_index.refresh()
        except UpstreamUnavailableError as e:
            logger.warning(f"Feature refresh failed: {str(e)}")
            return False
        self.cache.clear()
        return True

    def cleanup_cache(self) -> int:
        return self.cache.cleanup_expired()


def build_recommender(config: Optional[RecommendationConfig] = None,
                      features_path: Optional[str] = None,
                      profile_source: Optional[ProfileSource] = None) -> NavigationRecommender:
    """
    组合根：从特征配置文件构建推荐服务

    Args:
        config: 推荐配置（可选）
        features_path: 特征CSV路径（可选，默认 data/content_features.csv）
        profile_source: 用户画像来源（可选）

    Returns:
        推荐服务实例
    """
    from .data_loader import DataLoader

    loader = DataLoader()
    feature_index = ContentFeatureIndex(loader=lambda: loader.load_feature_records(features_path))
    try:
        feature_index.refresh()
    except UpstreamUnavailableError as e:
        logger.warning(f"Starting without content features: {str(e)}")

    return NavigationRecommender(config=config, feature_index=feature_index, profile_source=profile_source)
