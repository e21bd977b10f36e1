"""
推荐结果缓存：按 (用户, 当前页面, 会话) 缓存，带过期时间
"""

import threading
import time
from typing import Callable, Dict, Optional, Tuple

from ..models.recommendation import RecommendationResult
from ..utils.logger import logger

CacheKey = Tuple[str, str, Optional[str]]


class RecommendationCache:
    """读取时检查过期；cleanup_expired 只用于控制内存。存取都使用浅拷贝，调用方修改结果不会影响缓存项"""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        """
        初始化缓存

        Args:
            ttl_seconds: 过期时间（秒），0表示不缓存
            clock: 返回单调时间（秒）的函数
        """
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[CacheKey, Tuple[RecommendationResult, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: CacheKey) -> Optional[RecommendationResult]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            result, expires = entry
            if expires <= self.clock():
                del self._entries[key]
                return None
            return result.copy()

    def set(self, key: CacheKey, result: RecommendationResult) -> None:
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[key] = (result.copy(), self.clock() + self.ttl_seconds)

    def invalidate_user(self, user_id: str) -> int:
        """
        删除该用户的所有缓存项

        Args:
            user_id: 用户ID

        Returns:
            删除的条目数
        """
        with self._lock:
            keys = [key for key in self._entries if key[0] == user_id]
            for key in keys:
                del self._entries[key]
        if keys:
            logger.debug(f"Invalidated {len(keys)} cached recommendation(s) for user {user_id}")
        return len(keys)

    def cleanup_expired(self) -> int:
        now = self.clock()
        with self._lock:
            expired = [key for key, (_, expires) in self._entries.items() if expires <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
