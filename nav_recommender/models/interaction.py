"""
交互记录模型
"""

from datetime import datetime, timezone
from typing import Optional, Union

import numpy as np

Timestamp = Union[datetime, int, float]


def normalize_timestamp(timestamp: Optional[Timestamp]) -> datetime:
    """
    将时间戳统一为带UTC时区的datetime

    Args:
        timestamp: datetime、Unix秒数或None（None表示当前时间）

    Returns:
        UTC datetime
    """
    if timestamp is None:
        return datetime.now(timezone.utc)
    if hasattr(timestamp, 'to_pydatetime'):
        # pandas.Timestamp
        timestamp = timestamp.to_pydatetime()
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc)
    if isinstance(timestamp, (int, float, np.integer, np.floating)):
        return datetime.fromtimestamp(float(timestamp), tz=timezone.utc)
    raise TypeError(f"Unsupported timestamp type: {type(timestamp)}")


class Interaction:
    """用户交互事件（由UI层回传）"""

    def __init__(self,
                 type: str,
                 target: str,
                 timestamp: Optional[Timestamp] = None,
                 context: Optional[str] = None,
                 value: Optional[str] = None):
        """
        初始化交互事件

        Args:
            type: 交互类型（click/search/filter/export/bookmark）
            target: 交互目标（页面路径）
            timestamp: 交互时间（None表示当前时间）
            context: 发生交互的页面或组件
            value: 附加值（例如搜索词）
        """
        self.type = type
        self.target = target
        self.timestamp = normalize_timestamp(timestamp)
        self.context = context
        self.value = value

    def __repr__(self) -> str:
        return f"Interaction(type={self.type}, target={self.target}, timestamp={self.timestamp.isoformat()})"


class InteractionRecord:
    """交互存储中的追加式记录"""

    __slots__ = ('user_id', 'target', 'weight', 'timestamp', 'interaction_type')

    def __init__(self,
                 user_id: str,
                 target: str,
                 weight: float,
                 timestamp: datetime,
                 interaction_type: Optional[str] = None):
        self.user_id = user_id
        self.target = target
        self.weight = weight
        self.timestamp = timestamp
        self.interaction_type = interaction_type

    def to_dict(self) -> dict:
        return {
            'user_id': self.user_id,
            'target': self.target,
            'interaction_type': self.interaction_type,
            'weight': self.weight,
            'timestamp': self.timestamp,
        }

    def __repr__(self) -> str:
        return (f"InteractionRecord(user_id={self.user_id}, target={self.target}, "
                f"weight={self.weight}, timestamp={self.timestamp.isoformat()})")
