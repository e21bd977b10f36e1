"""
快照管理服务：保存和加载交互存储的状态
"""

import pickle
from pathlib import Path
from typing import Optional

from scipy.sparse import save_npz, load_npz

from .interaction_store import InteractionStore
from ..utils.config import SNAPSHOT_DIR
from ..utils.exceptions import DataLoadError, OutputError
from ..utils.matrix_builder import build_user_target_matrix, matrix_to_user_weights
from ..utils.logger import logger


class SnapshotManager:
    """快照管理器：交互矩阵存为npz稀疏矩阵，热度、最近事件和交互记录存为pickle"""

    def __init__(self, snapshot_dir: Optional[str] = None):
        """
        初始化快照管理器

        Args:
            snapshot_dir: 快照目录，默认为data/snapshots/
        """
        self.snapshot_dir = Path(snapshot_dir) if snapshot_dir is not None else Path(SNAPSHOT_DIR)
        self.snapshot_dir.mkdir(parents=True, exist_ok=True)

    def save_store(self, store: InteractionStore, name: str = 'interaction_store') -> str:
        """
        保存交互存储

        Args:
            store: 交互存储
            name: 快照名称

        Returns:
            元数据文件路径

        Raises:
            OutputError: 保存失败
        """
        try:
            state = store.get_state()
            matrix, user_id_to_index, target_to_index = build_user_target_matrix(state['user_weights'])

            matrix_path = self.snapshot_dir / f"{name}_matrix.npz"
            meta_path = self.snapshot_dir / f"{name}.pkl"

            save_npz(matrix_path, matrix)
            with open(meta_path, 'wb') as f:
                pickle.dump({
                    'user_ids': list(user_id_to_index.keys()),
                    'targets': list(target_to_index.keys()),
                    'popularity': state['popularity'],
                    'recent': state['recent'],
                    'records': state['records'],
                    'matrix_path': str(matrix_path),
                }, f)

            logger.info(f"Saved interaction store snapshot to {meta_path} "
                        f"({matrix.shape[0]} users, {matrix.shape[1]} targets)")
            return str(meta_path)

        except Exception as e:
            raise OutputError(f"Error saving interaction store snapshot: {str(e)}")

    def load_store(self, store: InteractionStore, name: str = 'interaction_store') -> bool:
        """
        从快照恢复交互存储（覆盖store当前内容）

        Args:
            store: 要恢复的交互存储
            name: 快照名称

        Returns:
            快照不存在时返回False

        Raises:
            DataLoadError: 快照损坏
        """
        meta_path = self.snapshot_dir / f"{name}.pkl"
        if not meta_path.exists():
            return False

        try:
            with open(meta_path, 'rb') as f:
                meta = pickle.load(f)

            matrix_path = Path(meta.get('matrix_path', ''))
            if not matrix_path.exists():
                raise DataLoadError(f"Snapshot matrix not found: {matrix_path}")

            matrix = load_npz(matrix_path)
            store.restore_state({
                'user_weights': matrix_to_user_weights(matrix, meta['user_ids'], meta['targets']),
                'popularity': meta.get('popularity', {}),
                'recent': meta.get('recent', {}),
                'records': meta.get('records', []),
            })
            logger.info(f"Loaded interaction store snapshot from {meta_path}")
            return True

        except DataLoadError:
            raise
        except Exception as e:
            raise DataLoadError(f"Error loading interaction store snapshot: {str(e)}")

    def snapshot_exists(self, name: str = 'interaction_store') -> bool:
        return (self.snapshot_dir / f"{name}.pkl").exists()
