"""
配置模块：提供路径配置、交互权重表和推荐算法的强类型配置
"""

import json
import os
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, Optional

from .exceptions import ConfigurationError

# 数据路径配置
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
DATA_DIR = os.path.join(PROJECT_ROOT, 'data')
SNAPSHOT_DIR = os.path.join(DATA_DIR, 'snapshots')
CONTENT_FEATURES_PATH = os.path.join(DATA_DIR, 'content_features.csv')
INTERACTION_LOG_PATH = os.path.join(DATA_DIR, 'interaction_log.csv')
OUTPUT_PATH = os.path.join(DATA_DIR, 'recommendations.csv')

MODEL_VERSION = '1.0.0'

# 交互类型权重（承诺程度越高的操作权重越大）
INTERACTION_WEIGHTS = {
    'click': 1.0,
    'search': 2.0,
    'filter': 1.5,
    'export': 3.0,
    'bookmark': 4.0,
}
DEFAULT_INTERACTION_WEIGHT = 1.0

# 每次交互对热度分数的推动系数
POPULARITY_INCREMENT = 0.1

# 复杂度序数
COMPLEXITY_LEVELS = {'low': 1, 'medium': 2, 'high': 3}
DEFAULT_COMPLEXITY = 'medium'

# 启用邻居预计算但未配置有效期时使用的有效期（秒）
DEFAULT_NEIGHBOR_REFRESH_SECONDS = 60 * 60

# 用户内容画像的默认值（没有可用的访问记录时）
DEFAULT_PROFILE_CATEGORY = 'general'
DEFAULT_PROFILE_BUSINESS_FUNCTION = 'general'


@dataclass
class CollaborativeConfig:
    """协同过滤配置"""
    enabled: bool = True
    min_similar_users: int = 3
    max_similar_users: int = 50
    similarity_threshold: float = 0.3
    decay_factor: float = 0.95
    # 邻居预计算（0表示不启用，每次请求按需扫描全部用户）
    neighbor_refresh_seconds: float = 0.0


@dataclass
class ContentBasedConfig:
    """基于内容的推荐配置"""
    enabled: bool = True
    category_weight: float = 0.3
    data_types_weight: float = 0.25
    business_function_weight: float = 0.25
    complexity_weight: float = 0.2
    min_content_score: float = 0.4


@dataclass
class HybridConfig:
    """混合打分配置"""
    enabled: bool = True
    collaborative_weight: float = 0.4
    content_weight: float = 0.3
    popularity_weight: float = 0.2
    recency_weight: float = 0.1
    min_score_threshold: float = 0.3


@dataclass
class PerformanceConfig:
    """性能与缓存配置"""
    max_suggestions: int = 10
    cache_timeout_seconds: float = 15 * 60
    retention_seconds: float = 24 * 60 * 60


@dataclass
class RecommendationConfig:
    """推荐引擎总配置（启动时构建一次）"""
    collaborative: CollaborativeConfig = field(default_factory=CollaborativeConfig)
    content_based: ContentBasedConfig = field(default_factory=ContentBasedConfig)
    hybrid: HybridConfig = field(default_factory=HybridConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)

    def validate(self) -> 'RecommendationConfig':
        """
        验证配置字段

        Returns:
            自身（便于链式调用）

        Raises:
            ConfigurationError: 配置值非法
        """
        collab = self.collaborative
        if collab.min_similar_users < 0:
            raise ConfigurationError(f"min_similar_users must be >= 0, got {collab.min_similar_users}")
        if collab.max_similar_users < 1:
            raise ConfigurationError(f"max_similar_users must be >= 1, got {collab.max_similar_users}")
        if collab.min_similar_users > collab.max_similar_users:
            raise ConfigurationError(
                f"min_similar_users ({collab.min_similar_users}) exceeds "
                f"max_similar_users ({collab.max_similar_users})"
            )
        _check_unit_interval('similarity_threshold', collab.similarity_threshold)
        _check_unit_interval('decay_factor', collab.decay_factor)
        if collab.neighbor_refresh_seconds < 0:
            raise ConfigurationError("neighbor_refresh_seconds must be >= 0")

        content = self.content_based
        for name in ('category_weight', 'data_types_weight',
                     'business_function_weight', 'complexity_weight', 'min_content_score'):
            _check_unit_interval(name, getattr(content, name))

        hybrid = self.hybrid
        for name in ('collaborative_weight', 'content_weight',
                     'popularity_weight', 'recency_weight'):
            value = getattr(hybrid, name)
            if value < 0:
                raise ConfigurationError(f"{name} must be non-negative, got {value}")
        if hybrid.min_score_threshold < 0:
            raise ConfigurationError("min_score_threshold must be non-negative")

        perf = self.performance
        if perf.max_suggestions < 1:
            raise ConfigurationError(f"max_suggestions must be >= 1, got {perf.max_suggestions}")
        if perf.cache_timeout_seconds < 0:
            raise ConfigurationError("cache_timeout_seconds must be non-negative")
        if perf.retention_seconds <= 0:
            raise ConfigurationError("retention_seconds must be positive")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'RecommendationConfig':
        """
        从嵌套字典构建配置，未出现的字段使用默认值

        Args:
            data: 形如 {"collaborative": {...}, "hybrid": {...}} 的字典

        Returns:
            验证通过的配置实例

        Raises:
            ConfigurationError: 未知的配置段或字段
        """
        data = data or {}
        sections = {
            'collaborative': CollaborativeConfig,
            'content_based': ContentBasedConfig,
            'hybrid': HybridConfig,
            'performance': PerformanceConfig,
        }
        unknown = set(data) - set(sections)
        if unknown:
            raise ConfigurationError(f"Unknown config sections: {sorted(unknown)}")

        kwargs = {}
        for name, section_cls in sections.items():
            values = data.get(name) or {}
            try:
                kwargs[name] = section_cls(**values)
            except TypeError as e:
                raise ConfigurationError(f"Invalid fields in config section '{name}': {str(e)}")
        return cls(**kwargs).validate()


def _check_unit_interval(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must be within [0, 1], got {value}")


def load_config(path: Optional[str] = None) -> RecommendationConfig:
    """
    加载推荐配置

    Args:
        path: JSON配置文件路径（可选，None表示使用默认配置）

    Returns:
        验证通过的配置实例

    Raises:
        ConfigurationError: 文件不存在或内容无效
    """
    if path is None:
        return RecommendationConfig().validate()
    if not os.path.exists(path):
        raise ConfigurationError(f"Config file not found: {path}")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Error reading config file {path}: {str(e)}")
    return RecommendationConfig.from_dict(data)
