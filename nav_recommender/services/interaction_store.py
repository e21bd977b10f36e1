"""
交互存储服务：按用户维护累计交互权重、最近事件窗口和全局热度
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd
from scipy.sparse import csr_matrix

from ..models.interaction import InteractionRecord, Timestamp, normalize_timestamp
from ..utils.config import (
    INTERACTION_WEIGHTS, DEFAULT_INTERACTION_WEIGHT, POPULARITY_INCREMENT, PerformanceConfig
)
from ..utils.exceptions import DataLoadError
from ..utils.matrix_builder import build_user_target_matrix
from ..utils.validation import (
    validate_dataframe_columns, validate_target, validate_timestamp, validate_user_id
)
from ..utils.logger import logger


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InteractionStore:
    """
    交互存储

    - 交互矩阵：用户ID -> (目标 -> 累计权重)，同一目标的重复交互权重累加
    - 最近事件窗口：每个用户保留 retention 时间内的原始事件
    - 热度分数：目标 -> [0, 1]，每次交互推动 0.1 * 权重

    同一用户的读-加-写通过该用户的锁串行化；热度表有独立的锁。
    不同用户之间不需要跨键加锁。
    """

    LOG_COLUMNS = ['user_id', 'target', 'interaction_type', 'timestamp']

    def __init__(self,
                 retention_seconds: float = PerformanceConfig.retention_seconds,
                 clock: Callable[[], datetime] = utc_now):
        """
        初始化交互存储

        Args:
            retention_seconds: 最近事件窗口的保留时长（秒），默认24小时
            clock: 返回当前UTC时间的函数（便于测试注入）
        """
        self.retention = timedelta(seconds=retention_seconds)
        self.clock = clock
        self._matrix: Dict[str, Dict[str, float]] = {}
        self._recent: Dict[str, List[InteractionRecord]] = {}
        self._records: List[InteractionRecord] = []
        self._popularity: Dict[str, float] = {}
        self._user_locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._popularity_lock = threading.Lock()

    @staticmethod
    def interaction_weight(interaction_type: Optional[str]) -> float:
        """
        交互类型对应的权重，未知类型按1处理（不丢弃交互信号）

        Args:
            interaction_type: click/search/filter/export/bookmark

        Returns:
            权重值
        """
        weight = INTERACTION_WEIGHTS.get(interaction_type)
        if weight is None:
            logger.debug(f"Unknown interaction type '{interaction_type}', using default weight")
            return DEFAULT_INTERACTION_WEIGHT
        return weight

    def _existing_lock(self, user_id: str) -> Optional[threading.Lock]:
        # 只读路径不为未知用户创建锁
        with self._registry_lock:
            return self._user_locks.get(user_id)

    def record_interaction(self,
                           user_id: str,
                           target: str,
                           interaction_type: Optional[str],
                           timestamp: Optional[Timestamp] = None) -> InteractionRecord:
        """
        记录一次用户交互

        Args:
            user_id: 用户ID
            target: 交互目标
            interaction_type: 交互类型（未知类型按权重1记录）
            timestamp: 交互时间（None表示当前时间）

        Returns:
            追加的交互记录

        Raises:
            DataValidationError: 用户ID或目标为空，或时间戳无效
        """
        validate_user_id(user_id)
        validate_target(target)
        if timestamp is not None:
            validate_timestamp(timestamp)

        weight = self.interaction_weight(interaction_type)
        record = InteractionRecord(
            user_id=user_id,
            target=target,
            weight=weight,
            timestamp=normalize_timestamp(timestamp if timestamp is not None else self.clock()),
            interaction_type=interaction_type,
        )

        with self._registry_lock:
            lock = self._user_locks.setdefault(user_id, threading.Lock())
            self._matrix.setdefault(user_id, {})
            self._recent.setdefault(user_id, [])
            self._records.append(record)

        with lock:
            user_weights = self._matrix.setdefault(user_id, {})
            user_weights[target] = user_weights.get(target, 0.0) + weight

            recent = self._recent.setdefault(user_id, [])
            recent.append(record)
            self._recent[user_id] = self._trim(recent)

        self._nudge_popularity(target, weight)
        return record

    def _trim(self, events: List[InteractionRecord]) -> List[InteractionRecord]:
        cutoff = normalize_timestamp(self.clock()) - self.retention
        return [e for e in events if e.timestamp > cutoff]

    def _nudge_popularity(self, target: str, weight: float) -> None:
        with self._popularity_lock:
            current = self._popularity.get(target, 0.0)
            self._popularity[target] = min(current + POPULARITY_INCREMENT * weight, 1.0)

    def set_baseline_popularity(self, baseline: Dict[str, float]) -> None:
        """
        设置热度初始值（来自特征配置），值被截断到[0, 1]

        Args:
            baseline: 目标 -> 初始热度
        """
        with self._popularity_lock:
            for target, value in baseline.items():
                self._popularity[target] = min(max(float(value), 0.0), 1.0)

    def has_user(self, user_id: str) -> bool:
        return user_id in self._matrix

    def user_ids(self) -> List[str]:
        with self._registry_lock:
            return list(self._matrix.keys())

    def get_user_matrix(self, user_id: str) -> Dict[str, float]:
        """返回用户交互权重的副本，不存在的用户返回空字典"""
        lock = self._existing_lock(user_id)
        if lock is None:
            return {}
        with lock:
            return dict(self._matrix.get(user_id, {}))

    def all_user_matrices(self) -> Dict[str, Dict[str, float]]:
        return {uid: self.get_user_matrix(uid) for uid in self.user_ids()}

    def get_recent_interactions(self, user_id: str) -> List[InteractionRecord]:
        """返回用户在保留窗口内的事件（读取时顺带清理过期事件）"""
        lock = self._existing_lock(user_id)
        if lock is None:
            return []
        with lock:
            recent = self._trim(self._recent.get(user_id, []))
            if user_id in self._recent:
                self._recent[user_id] = recent
            return list(recent)

    def get_popularity(self, target: str) -> float:
        with self._popularity_lock:
            return self._popularity.get(target, 0.0)

    def popularity_snapshot(self) -> Dict[str, float]:
        with self._popularity_lock:
            return dict(self._popularity)

    def last_interaction_time(self, target: str) -> Optional[datetime]:
        """
        所有用户最近事件窗口中该目标最新的交互时间

        Args:
            target: 目标

        Returns:
            最新交互时间，窗口内没有该目标的事件时返回None
        """
        latest = None
        for user_id in self.user_ids():
            for event in self.get_recent_interactions(user_id):
                if event.target == target and (latest is None or event.timestamp > latest):
                    latest = event.timestamp
        return latest

    def build_matrix(self) -> Tuple[csr_matrix, Dict[str, int], Dict[str, int]]:
        """构建用户-目标稀疏矩阵，供协同过滤向量化计算"""
        return build_user_target_matrix(self.all_user_matrices())

    def records(self) -> List[InteractionRecord]:
        with self._registry_lock:
            return list(self._records)

    def to_dataframe(self) -> pd.DataFrame:
        """导出全部交互记录"""
        rows = [record.to_dict() for record in self.records()]
        return pd.DataFrame(rows, columns=['user_id', 'target', 'interaction_type', 'weight', 'timestamp'])

    def load_records(self, interaction_log: pd.DataFrame) -> int:
        """
        批量回放交互日志

        Args:
            interaction_log: 包含 user_id, target, interaction_type, timestamp 列的DataFrame

        Returns:
            成功回放的记录数

        Raises:
            DataLoadError: 日志格式错误
        """
        try:
            validate_dataframe_columns(interaction_log, self.LOG_COLUMNS)
        except Exception as e:
            raise DataLoadError(f"Error replaying interaction log: {str(e)}")

        ordered = interaction_log.sort_values('timestamp', kind='stable')
        loaded = 0
        for row in ordered.itertuples(index=False):
            interaction_type = row.interaction_type if isinstance(row.interaction_type, str) else None
            self.record_interaction(str(row.user_id), str(row.target), interaction_type, row.timestamp)
            loaded += 1

        logger.info(f"Replayed {loaded} interactions for {len(self.user_ids())} users")
        return loaded

    def evict_user(self, user_id: str) -> bool:
        """
        删除用户的全部交互状态（累计权重、最近事件、交互记录和锁）

        热度分数是全局统计，不回退。

        Args:
            user_id: 用户ID

        Returns:
            用户是否存在
        """
        with self._registry_lock:
            known = user_id in self._matrix
            self._matrix.pop(user_id, None)
            self._recent.pop(user_id, None)
            self._user_locks.pop(user_id, None)
            self._records = [r for r in self._records if r.user_id != user_id]
        if known:
            logger.info(f"Evicted interaction state for user {user_id}")
        return known

    def clear(self) -> None:
        with self._registry_lock:
            self._matrix.clear()
            self._recent.clear()
            self._records.clear()
            self._user_locks.clear()
        with self._popularity_lock:
            self._popularity.clear()

    def get_state(self) -> dict:
        """导出可持久化的状态（供快照使用）"""
        return {
            'user_weights': self.all_user_matrices(),
            'popularity': self.popularity_snapshot(),
            'recent': {uid: [r.to_dict() for r in self.get_recent_interactions(uid)]
                       for uid in self.user_ids()},
            'records': [r.to_dict() for r in self.records()],
        }

    def restore_state(self, state: dict) -> None:
        """从快照状态恢复（覆盖当前内容）"""
        self.clear()
        with self._registry_lock:
            for uid, weights in state.get('user_weights', {}).items():
                self._matrix[uid] = {t: float(w) for t, w in weights.items() if w > 0}
                self._user_locks[uid] = threading.Lock()
            for uid, events in state.get('recent', {}).items():
                self._recent[uid] = [_record_from_dict(e) for e in events]
            self._records = [_record_from_dict(e) for e in state.get('records', [])]
        self.set_baseline_popularity(state.get('popularity', {}))

    def __len__(self) -> int:
        return len(self._records)


def _record_from_dict(data: dict) -> InteractionRecord:
    return InteractionRecord(data['user_id'], data['target'], data['weight'],
                             normalize_timestamp(data['timestamp']), data.get('interaction_type'))
