"""
推荐结果模型
"""

from typing import List, Optional, Dict, Any


def title_from_url(url: str) -> str:
    """'/customer-intelligence' -> 'CUSTOMER INTELLIGENCE'"""
    name = url.strip('/').replace('/', ' ').replace('-', ' ').replace('_', ' ')
    return name.upper() if name else 'HOME'


class NavigationSuggestion:
    """被推荐的导航目标描述"""

    def __init__(self,
                 url: str,
                 title: str,
                 description: str = '',
                 category: Optional[str] = None):
        self.url = url
        self.title = title
        self.description = description
        self.category = category

    @classmethod
    def from_features(cls, url: str, features=None, description: str = '') -> 'NavigationSuggestion':
        """
        根据页面特征构建推荐描述；没有特征或标题时从路径派生标题

        Args:
            url: 页面路径
            features: ContentFeatures（可选）
            description: 描述文本

        Returns:
            推荐描述
        """
        title = features.title if features is not None and features.title else title_from_url(url)
        category = features.category if features is not None else None
        return cls(url=url, title=title, description=description, category=category)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'title': self.title,
            'description': self.description,
            'category': self.category,
        }

    def __repr__(self) -> str:
        return f"NavigationSuggestion(url={self.url}, title={self.title})"


class RecommendationReasoning:
    """推荐理由：按贡献顺序排列的因素名称及各路子分数"""

    def __init__(self,
                 primary_factors: Optional[List[str]] = None,
                 collaborative_score: Optional[float] = None,
                 content_score: Optional[float] = None,
                 popularity_score: Optional[float] = None,
                 recency_score: Optional[float] = None):
        self.primary_factors = list(primary_factors or [])
        self.collaborative_score = collaborative_score
        self.content_score = content_score
        self.popularity_score = popularity_score
        self.recency_score = recency_score

    def copy(self) -> 'RecommendationReasoning':
        return RecommendationReasoning(
            primary_factors=self.primary_factors,
            collaborative_score=self.collaborative_score,
            content_score=self.content_score,
            popularity_score=self.popularity_score,
            recency_score=self.recency_score,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'primary_factors': list(self.primary_factors),
            'collaborative_score': self.collaborative_score,
            'content_score': self.content_score,
            'popularity_score': self.popularity_score,
            'recency_score': self.recency_score,
        }

    def __repr__(self) -> str:
        return f"RecommendationReasoning(factors={self.primary_factors})"


class ScoredSuggestion:
    """带分数的推荐项（单次请求内有效，不持久化）"""

    def __init__(self,
                 suggestion: NavigationSuggestion,
                 score: float,
                 reasoning: Optional[RecommendationReasoning] = None):
        self.suggestion = suggestion
        self.score = score
        self.reasoning = reasoning or RecommendationReasoning()

    @property
    def url(self) -> str:
        return self.suggestion.url

    def to_dict(self) -> Dict[str, Any]:
        return {
            'suggestion': self.suggestion.to_dict(),
            'score': self.score,
            'reasoning': self.reasoning.to_dict(),
        }

    def __repr__(self) -> str:
        return f"ScoredSuggestion(url={self.url}, score={self.score:.4f})"


class RecommendationResult:
    """推荐结果实体类"""

    ALGORITHMS = ('collaborative', 'content_based', 'hybrid', 'fallback')

    def __init__(self,
                 suggestions: List[ScoredSuggestion],
                 algorithm: str,
                 confidence: float,
                 explanations: Optional[List[str]] = None,
                 metadata: Optional[Dict[str, Any]] = None):
        """
        初始化推荐结果

        Args:
            suggestions: 按分数降序排列的推荐项
            algorithm: 使用的推荐算法（collaborative/content_based/hybrid/fallback）
            confidence: 整体置信度
            explanations: 文字解释
            metadata: 元数据（processing_time_ms, data_points, model_version）
        """
        if algorithm not in self.ALGORITHMS:
            raise ValueError(f"Unknown algorithm label: {algorithm}")
        self.suggestions = suggestions
        self.algorithm = algorithm
        self.confidence = confidence
        self.explanations = explanations or []
        self.metadata = metadata or {}

    def copy(self, suggestions: Optional[List[ScoredSuggestion]] = None) -> 'RecommendationResult':
        """浅拷贝：推荐列表、解释和元数据是新容器，推荐项对象共享"""
        return RecommendationResult(
            suggestions=list(self.suggestions if suggestions is None else suggestions),
            algorithm=self.algorithm,
            confidence=self.confidence,
            explanations=list(self.explanations),
            metadata=dict(self.metadata),
        )

    @property
    def urls(self) -> List[str]:
        return [s.url for s in self.suggestions]

    @property
    def is_fallback(self) -> bool:
        return self.algorithm == 'fallback'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'suggestions': [s.to_dict() for s in self.suggestions],
            'algorithm': self.algorithm,
            'confidence': self.confidence,
            'explanations': list(self.explanations),
            'metadata': dict(self.metadata),
        }

    def __repr__(self) -> str:
        return (f"RecommendationResult(suggestion_count={len(self.suggestions)}, "
                f"algorithm={self.algorithm}, confidence={self.confidence:.4f})")
