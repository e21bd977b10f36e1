"""
用户-目标交互矩阵构建工具
用于协同过滤的向量化相似度计算和交互状态快照
"""

import numpy as np
from scipy.sparse import csr_matrix
from typing import Tuple, Dict, List

from .logger import logger


def build_user_target_matrix(
    user_weights: Dict[str, Dict[str, float]],
    user_ids: List[str] = None,
    targets: List[str] = None
) -> Tuple[csr_matrix, Dict[str, int], Dict[str, int]]:
    """
    构建用户-目标交互矩阵

    Args:
        user_weights: 用户ID -> (目标 -> 累计权重)
        user_ids: 用户ID列表（可选，如果为None则按user_weights的顺序）
        targets: 目标列表（可选，如果为None则从user_weights中提取）

    Returns:
        (user_target_matrix, user_id_to_index, target_to_index)
        - user_target_matrix: 用户-目标交互矩阵（稀疏矩阵）
        - user_id_to_index: 用户ID到行索引的映射
        - target_to_index: 目标到列索引的映射
    """
    if user_ids is None:
        user_ids = list(user_weights.keys())
    user_id_to_index = {uid: idx for idx, uid in enumerate(user_ids)}

    if targets is None:
        seen = {}
        for uid in user_ids:
            for target in user_weights.get(uid, {}):
                seen.setdefault(target, None)
        targets = list(seen)
    target_to_index = {target: idx for idx, target in enumerate(targets)}

    rows = []
    cols = []
    data = []
    for uid in user_ids:
        user_idx = user_id_to_index[uid]
        for target, weight in user_weights.get(uid, {}).items():
            # 只处理在索引中的目标
            if target in target_to_index and weight > 0:
                rows.append(user_idx)
                cols.append(target_to_index[target])
                data.append(float(weight))

    matrix = csr_matrix((data, (rows, cols)),
                        shape=(len(user_ids), len(targets)), dtype=np.float64)
    logger.debug(f"User-target matrix built: shape {matrix.shape}, non-zero elements: {matrix.nnz}")

    return matrix, user_id_to_index, target_to_index


def matrix_to_user_weights(
    matrix: csr_matrix,
    user_ids: List[str],
    targets: List[str]
) -> Dict[str, Dict[str, float]]:
    """
    将用户-目标矩阵还原为嵌套字典

    Args:
        matrix: 用户-目标交互矩阵
        user_ids: 行索引对应的用户ID
        targets: 列索引对应的目标

    Returns:
        用户ID -> (目标 -> 累计权重)
    """
    matrix = csr_matrix(matrix)
    user_weights = {}
    for user_idx, uid in enumerate(user_ids):
        row = matrix.getrow(user_idx)
        user_weights[uid] = {
            targets[col]: float(value)
            for col, value in zip(row.indices, row.data)
            if value > 0
        }
    return user_weights
