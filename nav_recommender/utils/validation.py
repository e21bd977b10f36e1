"""
数据验证工具模块
"""

from datetime import datetime
from typing import List, Iterable

import numpy as np
import pandas as pd

from .exceptions import DataValidationError


def validate_user_id(user_id: str) -> None:
    """
    验证用户ID

    Args:
        user_id: 用户ID

    Raises:
        DataValidationError: 如果用户ID无效
    """
    if not user_id or not isinstance(user_id, str) or not user_id.strip():
        raise DataValidationError(f"Invalid user_id: {user_id}")


def validate_target(target: str) -> None:
    """
    验证导航目标（页面路径）

    Args:
        target: 目标标识，例如 "/revenue"

    Raises:
        DataValidationError: 如果目标无效
    """
    if target is None or not isinstance(target, str) or not target.strip():
        raise DataValidationError(f"Invalid target: {target}")


def validate_timestamp(timestamp) -> None:
    """
    验证时间戳

    Args:
        timestamp: datetime 或 Unix 秒数

    Raises:
        DataValidationError: 如果时间戳无效
    """
    if isinstance(timestamp, datetime):
        return
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float, np.integer, np.floating)):
        raise DataValidationError(f"Invalid timestamp: {timestamp}")
    if timestamp <= 0:
        raise DataValidationError(f"Invalid timestamp: {timestamp}")


def validate_dataframe_columns(df: pd.DataFrame, required_columns: List[str]) -> None:
    """
    验证DataFrame是否包含必需的列

    Args:
        df: 要验证的DataFrame
        required_columns: 必需的列名列表

    Raises:
        DataValidationError: 如果缺少必需的列
    """
    missing_columns = set(required_columns) - set(df.columns)
    if missing_columns:
        raise DataValidationError(f"Missing required columns: {sorted(missing_columns)}")


def validate_suggestion_list(suggestions: list, excluded: Iterable[str] = ()) -> None:
    """
    验证推荐列表：无重复、不含已访问页面、分数非负且降序

    Args:
        suggestions: ScoredSuggestion 列表
        excluded: 不允许出现的目标（用户最近访问过的页面）

    Raises:
        DataValidationError: 如果推荐列表无效
    """
    if not isinstance(suggestions, list):
        raise DataValidationError(f"Suggestion list must be a list, got {type(suggestions)}")

    urls = [s.url for s in suggestions]
    if len(set(urls)) != len(urls):
        raise DataValidationError("Suggestion list contains duplicate destinations")

    excluded = set(excluded)
    leaked = [url for url in urls if url in excluded]
    if leaked:
        raise DataValidationError(f"Suggestion list contains visited destinations: {leaked}")

    scores = [s.score for s in suggestions]
    if any(score < 0 for score in scores):
        raise DataValidationError("Suggestion list contains negative scores")
    if any(scores[i] < scores[i + 1] for i in range(len(scores) - 1)):
        raise DataValidationError("Suggestion list is not sorted by descending score")
