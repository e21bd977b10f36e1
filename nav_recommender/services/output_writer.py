"""
结果输出服务模块
"""

import os
from typing import Dict

import pandas as pd

from ..models.recommendation import RecommendationResult
from .interaction_store import InteractionStore
from ..utils.exceptions import OutputError
from ..utils.validation import validate_suggestion_list
from ..utils.logger import logger

RECOMMENDATION_COLUMNS = ['user_id', 'rank', 'url', 'title', 'score', 'algorithm', 'confidence', 'factors']


def _ensure_parent_dir(output_path: str) -> None:
    # 创建输出目录（如果不存在）
    output_dir = os.path.dirname(output_path)
    if output_dir and not os.path.exists(output_dir):
        os.makedirs(output_dir)


class OutputWriter:
    """结果输出器类"""

    def write_recommendations(self, results: Dict[str, RecommendationResult], output_path: str) -> pd.DataFrame:
        """
        将推荐结果写入CSV（每个用户每个推荐项一行；fallback 用户写一行空推荐）

        Args:
            results: 用户ID -> 推荐结果
            output_path: 输出文件路径

        Returns:
            写入的DataFrame

        Raises:
            OutputError: 输出错误
        """
        try:
            logger.info(f"Writing recommendations to {output_path}")

            invalid_count = 0
            rows = []
            for user_id, result in results.items():
                try:
                    validate_suggestion_list(result.suggestions)
                except Exception as e:
                    logger.warning(f"Invalid recommendation list for user {user_id}: {str(e)}")
                    invalid_count += 1
                    continue

                if not result.suggestions:
                    rows.append({
                        'user_id': user_id, 'rank': 0, 'url': '', 'title': '', 'score': 0.0,
                        'algorithm': result.algorithm, 'confidence': result.confidence, 'factors': '',
                    })
                    continue

                for rank, item in enumerate(result.suggestions, start=1):
                    rows.append({
                        'user_id': user_id,
                        'rank': rank,
                        'url': item.url,
                        'title': item.suggestion.title,
                        'score': round(item.score, 6),
                        'algorithm': result.algorithm,
                        'confidence': round(result.confidence, 6),
                        'factors': '|'.join(item.reasoning.primary_factors),
                    })

            if invalid_count > 0:
                logger.warning(f"Skipped {invalid_count} invalid recommendation lists")

            df = pd.DataFrame(rows, columns=RECOMMENDATION_COLUMNS)
            _ensure_parent_dir(output_path)
            df.to_csv(output_path, index=False)

            logger.info(f"Recommendations written successfully: {len(results) - invalid_count} users, {len(df)} rows")
            return df

        except Exception as e:
            raise OutputError(f"Error writing recommendations file: {str(e)}")

    def write_interactions(self, store: InteractionStore, output_path: str) -> pd.DataFrame:
        """
        导出交互记录（timestamp 写为Unix秒数，可被 DataLoader.load_interaction_log 读回）

        Args:
            store: 交互存储
            output_path: 输出文件路径

        Returns:
            写入的DataFrame

        Raises:
            OutputError: 输出错误
        """
        try:
            df = store.to_dataframe()
            if not df.empty:
                df['timestamp'] = pd.to_datetime(df['timestamp'], utc=True).map(lambda ts: ts.timestamp())
            _ensure_parent_dir(output_path)
            df.to_csv(output_path, index=False)
            logger.info(f"Exported {len(df)} interaction records to {output_path}")
            return df
        except Exception as e:
            raise OutputError(f"Error writing interaction records: {str(e)}")
