"""
导航推荐系统离线评估入口
"""

import argparse
import sys
import time
from typing import Optional

from nav_recommender.services.data_loader import DataLoader
from nav_recommender.services.evaluator import Evaluator
from nav_recommender.services.output_writer import OutputWriter
from nav_recommender.services.recommender import build_recommender
from nav_recommender.services.snapshot_manager import SnapshotManager
from nav_recommender.utils.config import (
    CONTENT_FEATURES_PATH, INTERACTION_LOG_PATH, OUTPUT_PATH, DEFAULT_NEIGHBOR_REFRESH_SECONDS,
    RecommendationConfig, load_config
)
from nav_recommender.utils.exceptions import NavigationRecommenderError
from nav_recommender.utils.logger import logger


def enable_neighbor_precompute(config: RecommendationConfig) -> RecommendationConfig:
    """
    让预计算的邻居列表在评估期间被复用

    neighbor_refresh_seconds 为0时预计算结果不会被使用，此时改用默认有效期。

    Args:
        config: 推荐配置（原地修改）

    Returns:
        修改后的配置
    """
    if config.collaborative.neighbor_refresh_seconds <= 0:
        config.collaborative.neighbor_refresh_seconds = DEFAULT_NEIGHBOR_REFRESH_SECONDS
        logger.info(f"Neighbor precompute enabled, reusing neighbor lists for "
                    f"{DEFAULT_NEIGHBOR_REFRESH_SECONDS} seconds")
    return config


def run_offline_evaluation(
    features_path: str = CONTENT_FEATURES_PATH,
    interaction_log_path: str = INTERACTION_LOG_PATH,
    output_path: str = OUTPUT_PATH,
    config_path: Optional[str] = None,
    user_limit: Optional[int] = None,
    save_snapshot: bool = False,
    precompute_neighbors: bool = False
) -> dict:
    """
    运行离线评估主流程

    Args:
        features_path: 页面特征CSV路径
        interaction_log_path: 交互日志CSV路径
        output_path: 推荐结果输出路径
        config_path: JSON配置文件路径（可选）
        user_limit: 只评估前N个用户（None表示全部）
        save_snapshot: 是否保存交互存储快照
        precompute_neighbors: 是否预计算协同过滤邻居

    Returns:
        评估结果字典
    """
    start_time = time.time()

    try:
        logger.info("=" * 60)
        logger.info("Navigation Recommender - Offline Evaluation")
        logger.info("=" * 60)

        # 1. 配置与数据加载
        logger.info("[Step 1] Loading configuration and data...")
        config = load_config(config_path)
        if precompute_neighbors:
            enable_neighbor_precompute(config)
        recommender = build_recommender(config=config, features_path=features_path)

        loader = DataLoader()
        interaction_log = loader.load_interaction_log(interaction_log_path)
        history, ground_truth = loader.split_last_visit(interaction_log)

        # 2. 回放历史交互
        logger.info("[Step 2] Replaying interaction history...")
        recommender.store.load_records(history)
        if precompute_neighbors:
            recommender.precompute_neighbors()

        # 3. 生成推荐并评估
        logger.info("[Step 3] Generating recommendations and evaluating...")
        evaluator = Evaluator()
        results, metrics = evaluator.run(recommender, history, ground_truth, user_limit=user_limit)
        logger.info(f"MRR = {metrics['mrr']:.4f}, hit rate = {metrics['hit_rate']:.4f}, "
                    f"algorithms = {metrics['algorithms']}")

        # 4. 输出结果
        logger.info("[Step 4] Writing recommendations...")
        OutputWriter().write_recommendations(results, output_path)

        if save_snapshot:
            SnapshotManager().save_store(recommender.store)

        elapsed_time = time.time() - start_time
        logger.info(f"Total processing time: {elapsed_time:.2f} seconds")
        logger.info("=" * 60)
        return metrics

    except NavigationRecommenderError as e:
        logger.error(f"Navigation recommender error: {str(e)}")
        raise
    except Exception as e:
        logger.error(f"Unexpected error: {str(e)}")
        raise


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Navigation Recommender offline evaluation')
    parser.add_argument('--features', type=str, default=CONTENT_FEATURES_PATH,
                        help='Content features CSV (default: data/content_features.csv)')
    parser.add_argument('--log', type=str, default=INTERACTION_LOG_PATH,
                        help='Interaction log CSV (default: data/interaction_log.csv)')
    parser.add_argument('--output', type=str, default=OUTPUT_PATH,
                        help='Output file path (default: data/recommendations.csv)')
    parser.add_argument('--config', type=str, default=None,
                        help='JSON file overriding recommendation config')
    parser.add_argument('--user-limit', type=int, default=None,
                        help='Limit number of evaluated users for quick testing')
    parser.add_argument('--snapshot', action='store_true',
                        help='Save an interaction store snapshot after replay')
    parser.add_argument('--precompute-neighbors', action='store_true',
                        help='Precompute collaborative neighbor lists and reuse them during evaluation')

    args = parser.parse_args(argv)

    try:
        metrics = run_offline_evaluation(
            features_path=args.features,
            interaction_log_path=args.log,
            output_path=args.output,
            config_path=args.config,
            user_limit=args.user_limit,
            save_snapshot=args.snapshot,
            precompute_neighbors=args.precompute_neighbors,
        )
        print(f"\nFinal MRR Score: {metrics['mrr']:.4f}")
        print(f"Hit rate: {metrics['hit_rate']:.4f} over {metrics['total_users']} users")
        return 0
    except Exception as e:
        print(f"Error: {str(e)}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
