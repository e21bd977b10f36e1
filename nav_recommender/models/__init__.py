"""
数据模型模块
"""

from .interaction import Interaction, InteractionRecord, normalize_timestamp
from .content_features import ContentFeatures
from .navigation import NavigationContext, RecommendationRequest, SessionData, UserNavigationProfile
from .recommendation import (
    NavigationSuggestion, RecommendationReasoning, ScoredSuggestion, RecommendationResult
)

__all__ = [
    'Interaction', 'InteractionRecord', 'normalize_timestamp', 'ContentFeatures',
    'NavigationContext', 'RecommendationRequest', 'SessionData', 'UserNavigationProfile',
    'NavigationSuggestion', 'RecommendationReasoning', 'ScoredSuggestion', 'RecommendationResult',
]
