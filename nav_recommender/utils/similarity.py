"""
相似度计算工具模块
"""

import numpy as np
from scipy.sparse import csr_matrix
from typing import Dict, Iterable, Union

from .config import COMPLEXITY_LEVELS, DEFAULT_COMPLEXITY


def intersection_cosine(weights_a: Dict[str, float], weights_b: Dict[str, float]) -> float:
    """
    计算两个用户交互向量在共同目标上的余弦相似度

    只在两者都访问过的目标上计算点积和范数；没有共同目标时返回0，
    避免除零，也避免没有重叠的用户之间出现虚假匹配。

    Args:
        weights_a: 用户A的 目标 -> 累计权重
        weights_b: 用户B的 目标 -> 累计权重

    Returns:
        相似度，范围[0, 1]（权重非负）
    """
    common = set(weights_a) & set(weights_b)
    if not common:
        return 0.0

    a = np.array([weights_a[t] for t in common], dtype=np.float64)
    b = np.array([weights_b[t] for t in common], dtype=np.float64)

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(a, b) / (norm_a * norm_b))
    # 浮点误差
    return float(np.clip(similarity, 0.0, 1.0))


def intersection_cosine_sparse(matrix: csr_matrix, user_idx: int) -> np.ndarray:
    """
    计算某个用户与矩阵中所有用户的共同目标余弦相似度（向量化版本）

    与 intersection_cosine 结果一致：分子是完整点积（非共同目标上乘积为0），
    两个范数分别只在共同目标上累加。

    Args:
        matrix: 用户-目标交互矩阵（稀疏矩阵，权重非负）
        user_idx: 请求用户的行索引

    Returns:
        相似度数组，形状为(n_users,)，请求用户自身的位置为0
    """
    matrix = csr_matrix(matrix, dtype=np.float64, copy=True)
    matrix.eliminate_zeros()

    user_vector = matrix[user_idx, :]
    if user_vector.nnz == 0:
        return np.zeros(matrix.shape[0], dtype=np.float64)

    binary_matrix = matrix.copy()
    binary_matrix.data[:] = 1.0
    binary_user = user_vector.copy()
    binary_user.data[:] = 1.0

    dot = _to_flat_array(matrix.dot(user_vector.T))
    # 请求用户在共同目标上的范数平方
    user_norms_sq = _to_flat_array(binary_matrix.dot(user_vector.multiply(user_vector).T))
    # 其他用户在共同目标上的范数平方
    other_norms_sq = _to_flat_array(matrix.multiply(matrix).dot(binary_user.T))

    denominator = np.sqrt(user_norms_sq * other_norms_sq)
    similarities = np.zeros(matrix.shape[0], dtype=np.float64)
    mask = denominator > 0
    similarities[mask] = dot[mask] / denominator[mask]
    similarities[user_idx] = 0.0

    return np.clip(similarities, 0.0, 1.0)


def jaccard_similarity(set_a: Iterable[str], set_b: Iterable[str]) -> float:
    """
    计算两个标签集合的Jaccard相似度（交集/并集）

    Args:
        set_a: 标签集合A
        set_b: 标签集合B

    Returns:
        Jaccard相似度，两个集合都为空时返回0
    """
    set_a = set(set_a)
    set_b = set(set_b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def complexity_closeness(complexity_a: str, complexity_b: str) -> float:
    """
    复杂度接近程度：1 - 序数距离/2

    Args:
        complexity_a: low/medium/high
        complexity_b: low/medium/high

    Returns:
        接近程度，范围[0, 1]，未知等级按medium处理
    """
    level_a = COMPLEXITY_LEVELS.get(complexity_a, COMPLEXITY_LEVELS[DEFAULT_COMPLEXITY])
    level_b = COMPLEXITY_LEVELS.get(complexity_b, COMPLEXITY_LEVELS[DEFAULT_COMPLEXITY])
    return max(0.0, 1.0 - abs(level_a - level_b) / 2)


def validate_similarity_scores(scores: Union[np.ndarray, Iterable[float]],
                               tolerance: float = 1e-10) -> None:
    """
    验证相似度分数

    Args:
        scores: 相似度分数数组
        tolerance: 浮点数容差，默认1e-10

    Raises:
        ValueError: 如果分数超出[0, 1]
    """
    scores = np.asarray(list(scores) if not isinstance(scores, np.ndarray) else scores,
                        dtype=np.float64)
    if scores.size == 0:
        return
    min_val = scores.min()
    max_val = scores.max()
    if max_val > 1.0 + tolerance or min_val < 0.0 - tolerance:
        raise ValueError(f"Similarity values must be in [0, 1], got [{min_val}, {max_val}]")


def _to_flat_array(result) -> np.ndarray:
    # 处理可能是稀疏矩阵或numpy matrix的情况
    if hasattr(result, 'toarray'):
        return np.asarray(result.toarray(), dtype=np.float64).ravel()
    return np.asarray(result, dtype=np.float64).ravel()
