import numpy as np
import time
from typing import Optional
import logging

from .structures import AABB, OctreeNode, TriangleSet
from .geometry import box_intersects, octant_boxes
from ..config import BuildConfig
from ..visualization.tracer import TraceRecorder

logger = logging.getLogger(__name__)


class OctreeBuilder:
    """
    Построитель октодерева

    Каждый узел делится на 8 равных боксов; треугольник попадает во все
    дочерние боксы, которые пересекает его бокс (дублирование ожидаемо).
    """

    def __init__(self, config: BuildConfig, trace: Optional[TraceRecorder] = None):
        self.config = config
        self.trace = trace
        self.triangles: Optional[TriangleSet] = None

        self.stats = {
            'build_time': 0.0,
            'nodes_created': 0,
            'subdivisions': 0,
            'collapsed_subdivisions': 0,
            'empty_children': 0
        }

    def build(self, triangles: TriangleSet) -> OctreeNode:
        """
        Построение октодерева

        Корень охватывает объединение боксов всех треугольников;
        для пустого входа - бокс нулевого размера.
        """
        start_time = time.perf_counter()
        self.triangles = triangles
        for key in self.stats:
            self.stats[key] = 0

        root_indices = np.arange(len(triangles), dtype=np.int64)
        if root_indices.size == 0:
            logger.warning("Empty triangle input: returning an empty leaf root")
            self.stats['nodes_created'] = 1
            return OctreeNode(AABB.empty(), root_indices, level=0)

        logger.info(
            f"Building octree for {root_indices.size} triangles "
            f"(leaf cap={self.config.max_triangles_per_leaf}, max depth={self.config.max_depth})"
        )

        root_box = triangles.bounds_of(root_indices)
        root = self._build_node(root_indices, root_box, level=0)
        self.stats['build_time'] = time.perf_counter() - start_time

        tree_stats = root.get_stats()
        logger.info(
            f"Octree built in {self.stats['build_time']:.3f}s: "
            f"{tree_stats['node_count']} nodes, "
            f"{tree_stats['leaf_count']} leaves, "
            f"depth={tree_stats['depth']}, "
            f"references={tree_stats['total_references']}"
        )
        return root

    def _build_node(self, indices: np.ndarray, box: AABB, level: int) -> OctreeNode:
        """Рекурсивное построение узла"""
        self.stats['nodes_created'] += 1
        node = OctreeNode(box, indices, level)

        too_small = bool(np.any(box.size < self.config.min_node_size))
        if (indices.size <= self.config.max_triangles_per_leaf
                or level >= self.config.max_depth
                or too_small):
            return node

        tri_mins = self.triangles.mins[indices]
        tri_maxs = self.triangles.maxs[indices]

        children = []
        child_counts = []
        for child_box in octant_boxes(box):
            child_indices = indices[box_intersects(child_box, tri_mins, tri_maxs)]
            child_counts.append(int(child_indices.size))

            if child_indices.size > 0:
                children.append(self._build_node(child_indices, child_box, level + 1))
            else:
                # Пустой октант не подразделяется
                self.stats['empty_children'] += 1
                self.stats['nodes_created'] += 1
                children.append(OctreeNode(child_box, child_indices, level + 1))

        # Все дети пусты: подразделение бессмысленно, узел остаётся листом
        if not any(child_counts):
            self.stats['collapsed_subdivisions'] += 1
            self.stats['nodes_created'] -= len(children)
            self.stats['empty_children'] -= len(children)
            logger.debug(f"[Split] Octree subdivision collapsed at level {level}, n={indices.size}")
            return node

        self.stats['subdivisions'] += 1
        if self.trace:
            self.trace.record_split_decision({
                'tree_type': self.config.tree_type,
                'level': level,
                'parent_triangles': int(indices.size),
                'decision_method': 'octree',
                'split_axis': None,
                'cost': None,
                'left_triangles': None,
                'right_triangles': None,
                'child_triangles': child_counts
            })

        node.set_children(children)
        node.indices = np.empty(0, dtype=np.int64)
        return node
