"""
内容特征索引服务：页面路径 -> ContentFeatures
"""

import threading
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..models.content_features import ContentFeatures
from ..utils.exceptions import UpstreamUnavailableError
from ..utils.logger import logger

FeatureLoader = Callable[[], Tuple[List[ContentFeatures], Dict[str, float]]]


class ContentFeatureIndex:
    """
    内容特征索引

    启动时加载一次，之后只读；可选地通过 loader 刷新。
    从未成功加载过的索引视为上游不可用。
    """

    def __init__(self,
                 features: Optional[Iterable[ContentFeatures]] = None,
                 baseline_popularity: Optional[Dict[str, float]] = None,
                 loader: Optional[FeatureLoader] = None):
        """
        初始化特征索引

        Args:
            features: 初始特征列表（可选）
            baseline_popularity: 页面初始热度（可选）
            loader: 刷新时调用的加载函数，返回 (特征列表, 初始热度)
        """
        self._features: Dict[str, ContentFeatures] = {}
        self._baseline_popularity: Dict[str, float] = {}
        self._loader = loader
        self._loaded = False
        self._lock = threading.Lock()

        if features is not None:
            self.load(features, baseline_popularity)

    def load(self,
             features: Iterable[ContentFeatures],
             baseline_popularity: Optional[Dict[str, float]] = None) -> None:
        """
        加载（替换）全部特征

        Args:
            features: 特征列表
            baseline_popularity: 页面初始热度（可选）
        """
        indexed = {}
        for feature in features:
            if feature.url in indexed:
                logger.warning(f"Duplicate content features for {feature.url}, keeping the last one")
            indexed[feature.url] = feature

        with self._lock:
            self._features = indexed
            self._baseline_popularity = dict(baseline_popularity or {})
            self._loaded = True
        logger.info(f"Content feature index loaded: {len(indexed)} destinations")

    def refresh(self) -> None:
        """
        通过 loader 重新加载特征；失败时保留旧数据

        Raises:
            UpstreamUnavailableError: 没有配置 loader 或加载失败
        """
        if self._loader is None:
            raise UpstreamUnavailableError("No feature loader configured for refresh")
        try:
            features, baseline = self._loader()
        except Exception as e:
            raise UpstreamUnavailableError(f"Error refreshing content features: {str(e)}")
        self.load(features, baseline)

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise UpstreamUnavailableError("Content feature index has not been loaded")

    def get_features(self, destination: str) -> Optional[ContentFeatures]:
        """
        获取页面特征

        Args:
            destination: 页面路径

        Returns:
            特征，未知页面返回None

        Raises:
            UpstreamUnavailableError: 索引尚未加载
        """
        self._require_loaded()
        features = self._features.get(destination)
        if features is None:
            logger.debug(f"No content features for destination {destination}")
        return features

    def items(self) -> List[Tuple[str, ContentFeatures]]:
        self._require_loaded()
        with self._lock:
            return list(self._features.items())

    def destinations(self) -> List[str]:
        self._require_loaded()
        with self._lock:
            return list(self._features.keys())

    def baseline_popularity(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._baseline_popularity)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def __contains__(self, destination: str) -> bool:
        return destination in self._features

    def __len__(self) -> int:
        return len(self._features)
