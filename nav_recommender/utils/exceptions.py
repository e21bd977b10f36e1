"""
异常类定义
"""


class NavigationRecommenderError(Exception):
    """导航推荐系统基础异常类"""
    pass


class DataLoadError(NavigationRecommenderError):
    """数据加载错误"""
    pass


class DataValidationError(NavigationRecommenderError):
    """数据验证错误"""
    pass


class ConfigurationError(NavigationRecommenderError):
    """配置错误"""
    pass


class RecommendationError(NavigationRecommenderError):
    """推荐生成错误"""
    pass


class UpstreamUnavailableError(NavigationRecommenderError):
    """上游数据源（特征索引、用户画像）不可用"""
    pass


class EvaluationError(NavigationRecommenderError):
    """评估计算错误"""
    pass


class OutputError(NavigationRecommenderError):
    """结果输出错误"""
    pass
