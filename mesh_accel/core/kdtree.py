"""
K-d деревья по треугольникам

Два варианта с общим выбором плоскости (середина самой длинной оси бокса узла):

    centroid_kdtree (объектное) - треугольник уходит в одну сторону по центроиду,
        дублирования нет, строится быстрее и занимает меньше памяти.
    spatial_kdtree (пространственное) - треугольник, чей бокс пересекает
        плоскость, попадает в оба поддерева; листья плотнее прилегают
        к геометрии ценой дублирования.
"""
import numpy as np
import time
from typing import Optional, Tuple
import logging

from .structures import AABB, KDNode, TriangleSet
from .geometry import longest_axis
from ..config import BuildConfig, TREE_SPATIAL_KDTREE
from ..visualization.tracer import TraceRecorder

logger = logging.getLogger(__name__)


class KDTreeBuilder:
    """Построитель k-d дерева (вариант задаётся config.tree_type)"""

    def __init__(self, config: BuildConfig, trace: Optional[TraceRecorder] = None):
        self.config = config
        self.trace = trace
        self.triangles: Optional[TriangleSet] = None
        self.duplicate = config.tree_type == TREE_SPATIAL_KDTREE

        self.stats = {
            'build_time': 0.0,
            'nodes_created': 0,
            'splits_performed': 0,
            'split_fallbacks': 0,
            'duplicated_references': 0
        }

    def build(self, triangles: TriangleSet) -> KDNode:
        """
        Построение k-d дерева

        Args:
            triangles: Треугольники в мировых координатах

        Returns:
            Корневой узел
        """
        start_time = time.perf_counter()
        self.triangles = triangles
        for key in self.stats:
            self.stats[key] = 0

        root_indices = np.arange(len(triangles), dtype=np.int64)
        if root_indices.size == 0:
            logger.warning("Empty triangle input: returning an empty leaf root")
            self.stats['nodes_created'] = 1
            return KDNode(AABB.empty(), root_indices, level=0)

        logger.info(
            f"Building {self.config.tree_type} for {root_indices.size} triangles "
            f"(leaf cap={self.config.max_triangles_per_leaf}, max depth={self.config.max_depth})"
        )

        root = self._build_node(root_indices, level=0)
        self.stats['build_time'] = time.perf_counter() - start_time

        tree_stats = root.get_stats()
        logger.info(
            f"K-d tree built in {self.stats['build_time']:.3f}s: "
            f"{tree_stats['node_count']} nodes, "
            f"{tree_stats['leaf_count']} leaves, "
            f"depth={tree_stats['depth']}, "
            f"duplicated={self.stats['duplicated_references']}"
        )
        return root

    def _is_leaf(self, n_tris: int, level: int, aabb: AABB) -> bool:
        if n_tris <= self.config.max_triangles_per_leaf:
            return True
        if level >= self.config.max_depth:
            return True
        # Защита от бесконечной рекурсии на вырожденной геометрии
        return bool(np.any(aabb.size < self.config.min_node_size))

    def _build_node(self, indices: np.ndarray, level: int) -> KDNode:
        """Рекурсивное построение узла"""
        self.stats['nodes_created'] += 1
        node = KDNode(self.triangles.bounds_of(indices), indices, level)

        if self._is_leaf(indices.size, level, node.aabb):
            return node

        axis = longest_axis(node.aabb.size)
        split = float(node.aabb.max_corner[axis] + node.aabb.min_corner[axis]) / 2

        left_mask, right_mask = self._assign(indices, axis, split)
        n_left = int(np.count_nonzero(left_mask))
        n_right = int(np.count_nonzero(right_mask))

        # Разрез ничего не разделил: лист со всем набором
        if n_left == 0 or n_right == 0 or n_left == indices.size or n_right == indices.size:
            self.stats['split_fallbacks'] += 1
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    f"[Split] Fallback to leaf at level {level}: axis={axis}, "
                    f"split={split:.6f}, nL={n_left}, nR={n_right}, n={indices.size}"
                )
            return node

        self.stats['splits_performed'] += 1
        self.stats['duplicated_references'] += n_left + n_right - indices.size

        if self.trace:
            self.trace.record_split_decision({
                'tree_type': self.config.tree_type,
                'level': level,
                'parent_triangles': int(indices.size),
                'decision_method': 'kd_midpoint',
                'split_axis': axis,
                'cost': None,
                'left_triangles': n_left,
                'right_triangles': n_right
            })

        node.axis = axis
        node.split_position = split
        node.children = (
            self._build_node(indices[left_mask], level + 1),
            self._build_node(indices[right_mask], level + 1),
        )
        node.indices = np.empty(0, dtype=np.int64)
        return node

    def _assign(self,
                indices: np.ndarray,
                axis: int,
                split: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        Распределение треугольников по сторонам плоскости

        Returns:
            (left_mask, right_mask) по массиву indices
        """
        if not self.duplicate:
            # Центроид строго меньше - влево, иначе вправо
            left_mask = self.triangles.centroids[indices, axis] < split
            return left_mask, ~left_mask

        tri_min = self.triangles.mins[indices, axis]
        tri_max = self.triangles.maxs[indices, axis]
        # Бокс, пересекающий плоскость, попадает в обе стороны
        left_mask = tri_min < split
        right_mask = (tri_max > split) | (tri_min >= split)
        return left_mask, right_mask
