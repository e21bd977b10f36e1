"""
日志配置模块
"""

import logging
import os
import sys
from pathlib import Path

# 日志格式
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# 日志目录（环境变量设为空字符串时不写日志文件）
DEFAULT_LOG_DIR = Path(__file__).parent.parent.parent / 'logs'


def setup_logger(name: str = 'nav_recommender', level: int = logging.INFO) -> logging.Logger:
    """
    设置并返回logger实例

    Args:
        name: logger名称
        level: 日志级别，默认INFO

    Returns:
        配置好的logger实例
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # 避免重复添加handler
    if logger.handlers:
        return logger

    # 控制台handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    # 文件handler（可选）
    log_dir = os.environ.get('NAV_RECOMMENDER_LOG_DIR', str(DEFAULT_LOG_DIR))
    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / 'nav_recommender.log', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    return logger


# 默认logger实例
logger = setup_logger()
