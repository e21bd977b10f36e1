"""
数据加载服务模块
"""

import os
import pandas as pd
from typing import Dict, List, Optional, Tuple

from ..models.content_features import ContentFeatures
from ..utils.config import CONTENT_FEATURES_PATH, DEFAULT_COMPLEXITY
from ..utils.exceptions import DataLoadError
from ..utils.validation import validate_dataframe_columns
from ..utils.logger import logger

LIST_SEPARATOR = '|'


def _split_list(value) -> List[str]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return []
    if isinstance(value, (list, tuple, set)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [part.strip() for part in str(value).split(LIST_SEPARATOR) if part.strip()]


class DataLoader:
    """数据加载器类"""

    # 必需的列定义
    FEATURE_COLUMNS = ['url', 'category', 'complexity', 'data_types', 'business_function']
    OPTIONAL_FEATURE_COLUMNS = ['title', 'popularity', 'user_roles', 'related_pages']
    LIST_FEATURE_COLUMNS = ['data_types', 'user_roles', 'related_pages']

    INTERACTION_LOG_COLUMNS = ['user_id', 'target', 'interaction_type', 'timestamp']

    def load_content_features(self, file_path: Optional[str] = None) -> pd.DataFrame:
        """
        加载页面内容特征表

        列表型字段（data_types, user_roles, related_pages）使用 '|' 分隔。

        Args:
            file_path: 特征CSV文件路径（默认 data/content_features.csv）

        Returns:
            每行一个页面的DataFrame，列表型字段已解析为list

        Raises:
            FileNotFoundError: 文件不存在
            DataLoadError: 数据加载错误
        """
        file_path = file_path or CONTENT_FEATURES_PATH
        try:
            if not os.path.exists(file_path):
                raise FileNotFoundError(f"Content features file not found: {file_path}")

            logger.info(f"Loading content features from {file_path}")
            df = pd.read_csv(file_path, dtype={'url': str, 'category': str, 'business_function': str})
            validate_dataframe_columns(df, self.FEATURE_COLUMNS)

            if df.empty:
                raise DataLoadError("Content features table is empty")

            for column in self.OPTIONAL_FEATURE_COLUMNS:
                if column not in df.columns:
                    df[column] = None

            # 处理缺失值（使用默认值）
            df = df.dropna(subset=['url', 'category']).copy()
            df['complexity'] = df['complexity'].fillna(DEFAULT_COMPLEXITY).str.strip().str.lower()
            df['business_function'] = df['business_function'].fillna('general')
            df['title'] = df['title'].fillna('')
            df['popularity'] = pd.to_numeric(df['popularity'], errors='coerce')

            for column in self.LIST_FEATURE_COLUMNS:
                df[column] = df[column].apply(_split_list)

            duplicated = df['url'].duplicated(keep='last')
            if duplicated.any():
                logger.warning(f"Dropping {int(duplicated.sum())} duplicated destinations")
                df = df[~duplicated].copy()

            logger.info(f"Loaded content features for {len(df)} destinations")
            return df.reset_index(drop=True)

        except FileNotFoundError:
            raise
        except DataLoadError:
            raise
        except Exception as e:
            raise DataLoadError(f"Error loading content features: {str(e)}")

    def load_feature_records(self, file_path: Optional[str] = None) -> Tuple[List[ContentFeatures], Dict[str, float]]:
        """
        加载特征并转换为 ContentFeatures 列表（供 ContentFeatureIndex 使用）

        Args:
            file_path: 特征CSV文件路径

        Returns:
            (特征列表, 页面初始热度)
        """
        df = self.load_content_features(file_path)
        features = []
        baseline = {}
        for row in df.to_dict('records'):
            features.append(ContentFeatures(
                url=row['url'],
                category=row['category'],
                complexity=row['complexity'],
                data_types=row['data_types'],
                business_function=row['business_function'],
                title=row['title'] or None,
                user_roles=row['user_roles'],
                related_pages=row['related_pages'],
            ))
            if not pd.isna(row['popularity']):
                baseline[row['url']] = float(row['popularity'])
        return features, baseline

    def load_interaction_log(self, file_path: str) -> pd.DataFrame:
        """
        加载用户交互日志

        Args:
            file_path: 交互日志CSV路径（timestamp 为Unix秒数）

        Returns:
            包含 user_id, target, interaction_type, timestamp(UTC) 的DataFrame

        Raises:
            FileNotFoundError: 文件不存在
            DataLoadError: 数据加载错误
        """
        try:
            if not os.path.exists(file_path):
                raise FileNotFoundError(f"Interaction log file not found: {file_path}")

            logger.info(f"Loading interaction log from {file_path}")
            df = pd.read_csv(file_path, dtype={'user_id': str, 'target': str, 'interaction_type': str})
            validate_dataframe_columns(df, self.INTERACTION_LOG_COLUMNS)

            # 转换时间戳
            df['timestamp'] = pd.to_datetime(pd.to_numeric(df['timestamp'], errors='coerce'),
                                             unit='s', utc=True)

            invalid = df['timestamp'].isna() | df['user_id'].isna() | df['target'].isna()
            if invalid.any():
                logger.warning(f"Dropping {int(invalid.sum())} interaction rows with missing fields")
                df = df[~invalid].copy()

            # 缺失的交互类型按click处理
            df['interaction_type'] = df['interaction_type'].fillna('click')

            logger.info(f"Loaded {len(df)} interactions for {df['user_id'].nunique()} users")
            return df.reset_index(drop=True)

        except FileNotFoundError:
            raise
        except Exception as e:
            raise DataLoadError(f"Error loading interaction log: {str(e)}")

    def split_last_visit(self, interaction_log: pd.DataFrame) -> Tuple[pd.DataFrame, Dict[str, str]]:
        """
        每个用户的最后一次交互作为验证数据，之前的交互作为历史

        Args:
            interaction_log: 交互日志

        Returns:
            (history, ground_truth)
            - history: 历史交互
            - ground_truth: 用户ID -> 最后一次交互的目标（只有一条记录的用户不参与验证）
        """
        try:
            logger.info("Splitting interaction log: last interaction per user -> validation")
            ordered = interaction_log.sort_values(['user_id', 'timestamp'], kind='stable')

            is_last = ~ordered['user_id'].duplicated(keep='last')
            counts = ordered.groupby('user_id')['target'].transform('size')
            holdout_mask = is_last & (counts > 1)

            holdout = ordered[holdout_mask]
            history = ordered[~holdout_mask].reset_index(drop=True)
            ground_truth = dict(zip(holdout['user_id'], holdout['target']))

            logger.info(f"Split completed: {len(history)} history records, "
                        f"{len(ground_truth)} users held out")
            return history, ground_truth

        except Exception as e:
            raise DataLoadError(f"Error splitting interaction log: {str(e)}")
