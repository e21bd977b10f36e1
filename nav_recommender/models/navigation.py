"""
导航上下文、请求和用户画像模型
"""

from typing import List, Optional

from .interaction import Interaction, Timestamp, normalize_timestamp


class NavigationContext:
    """用户当前的导航上下文"""

    def __init__(self,
                 current_page: str,
                 previous_pages: Optional[List[str]] = None,
                 session_id: Optional[str] = None,
                 current_query: Optional[str] = None,
                 user_role: Optional[str] = None,
                 time_on_page: Optional[float] = None,
                 timestamp: Optional[Timestamp] = None):
        """
        初始化导航上下文

        Args:
            current_page: 当前页面
            previous_pages: 本次会话中之前访问过的页面（按时间顺序）
            session_id: 会话ID
            current_query: 当前的自由文本查询（可选）
            user_role: 用户角色（可选）
            time_on_page: 当前页面停留秒数（可选）
            timestamp: 上下文时间
        """
        self.current_page = current_page
        self.previous_pages = list(previous_pages or [])
        self.session_id = session_id
        self.current_query = current_query
        self.user_role = user_role
        self.time_on_page = time_on_page
        self.timestamp = normalize_timestamp(timestamp)

    def __repr__(self) -> str:
        return (f"NavigationContext(current_page={self.current_page}, "
                f"previous_pages={len(self.previous_pages)}, session_id={self.session_id})")


class SessionData:
    """会话数据（只用于统计输入数据量）"""

    def __init__(self,
                 session_id: str,
                 duration: float = 0.0,
                 page_views: Optional[List[str]] = None,
                 interactions: Optional[List[Interaction]] = None,
                 current_goal: Optional[str] = None):
        self.session_id = session_id
        self.duration = duration
        self.page_views = list(page_views or [])
        self.interactions = list(interactions or [])
        self.current_goal = current_goal

    def __repr__(self) -> str:
        return (f"SessionData(session_id={self.session_id}, page_views={len(self.page_views)}, "
                f"interactions={len(self.interactions)})")


class UserNavigationProfile:
    """用户导航画像（只用于同分排序，不参与打分）"""

    def __init__(self,
                 user_id: str,
                 favorite_pages: Optional[List[str]] = None,
                 interaction_style: str = 'mixed',
                 display_density: str = 'comfortable'):
        self.user_id = user_id
        self.favorite_pages = list(favorite_pages or [])
        self.interaction_style = interaction_style
        self.display_density = display_density

    def __repr__(self) -> str:
        return f"UserNavigationProfile(user_id={self.user_id}, favorites={len(self.favorite_pages)})"


class RecommendationRequest:
    """推荐请求"""

    def __init__(self,
                 context: NavigationContext,
                 user_id: Optional[str] = None,
                 user_profile: Optional[UserNavigationProfile] = None,
                 timestamp: Optional[Timestamp] = None,
                 session_data: Optional[SessionData] = None):
        """
        初始化推荐请求

        Args:
            context: 导航上下文
            user_id: 用户ID（匿名用户为None）
            user_profile: 显式传入的用户画像（可选）
            timestamp: 请求时间
            session_data: 会话数据（可选）
        """
        self.context = context
        self.user_id = user_id
        self.user_profile = user_profile
        self.timestamp = normalize_timestamp(timestamp)
        self.session_data = session_data

    @property
    def previous_pages(self) -> List[str]:
        return self.context.previous_pages

    def cache_key(self) -> tuple:
        return (self.user_id or 'anonymous', self.context.current_page, self.context.session_id)

    def data_points(self) -> int:
        """输入数据量：会话交互数 + 已访问页面数"""
        interactions = len(self.session_data.interactions) if self.session_data else 0
        return interactions + len(self.context.previous_pages)

    def __repr__(self) -> str:
        return f"RecommendationRequest(user_id={self.user_id}, current_page={self.context.current_page})"
