"""
页面内容特征模型
"""

from typing import Iterable, List, Optional

from ..utils.config import COMPLEXITY_LEVELS, DEFAULT_COMPLEXITY


class ContentFeatures:
    """可导航页面的内容特征"""

    def __init__(self,
                 url: str,
                 category: str,
                 complexity: str = DEFAULT_COMPLEXITY,
                 data_types: Optional[Iterable[str]] = None,
                 business_function: str = 'general',
                 title: Optional[str] = None,
                 user_roles: Optional[List[str]] = None,
                 related_pages: Optional[List[str]] = None):
        """
        初始化内容特征

        Args:
            url: 页面路径
            category: 页面类别（单一标签）
            complexity: 复杂度（low/medium/high），未知值按medium处理
            data_types: 数据类型标签集合
            business_function: 业务职能（单一标签）
            title: 页面标题（可选）
            user_roles: 适用角色（仅用于展示）
            related_pages: 相关页面（仅用于展示）
        """
        self.url = url
        self.category = category
        self.complexity = complexity if complexity in COMPLEXITY_LEVELS else DEFAULT_COMPLEXITY
        # 保持顺序并去重
        self.data_types = list(dict.fromkeys(data_types or []))
        self.business_function = business_function
        self.title = title
        self.user_roles = user_roles or []
        self.related_pages = related_pages or []

    @property
    def keywords(self) -> List[str]:
        """关键词由数据类型派生"""
        return list(self.data_types)

    def __repr__(self) -> str:
        return (f"ContentFeatures(url={self.url}, category={self.category}, "
                f"complexity={self.complexity}, business_function={self.business_function})")
