import numpy as np
import time
from typing import Optional, Tuple
import logging

from .structures import AABB, Node, TriangleSet
from .geometry import longest_axis
from .metrics import SahEvaluator
from ..config import BuildConfig, TREE_HYBRID_BVH
from ..visualization.tracer import TraceRecorder

logger = logging.getLogger(__name__)


class BVHBuilder:
    """
    Построитель BVH по треугольникам меша

    Режим выбирается тегом config.tree_type:
        median_bvh - всегда медианный разрез по центроидам
        hybrid_bvh - SAH с биннингом для узлов не больше sah_threshold,
                     медианный разрез для крупных узлов
    """

    def __init__(self, config: BuildConfig, trace: Optional[TraceRecorder] = None):
        """
        Args:
            config: Конфигурация
            trace: Опциональный трассировщик для визуализации
        """
        self.config = config
        self.trace = trace
        self.sah = SahEvaluator(config)
        self.triangles: Optional[TriangleSet] = None

        # Статистика построения
        self.stats = {
            'build_time': 0.0,
            'nodes_created': 0,
            'median_splits': 0,
            'sah_splits': 0,
            'sah_fallbacks': 0
        }

    def build(self, triangles: TriangleSet) -> Node:
        """
        Построение BVH

        Args:
            triangles: Треугольники в мировых координатах

        Returns:
            Корневой узел построенного дерева
        """
        start_time = time.perf_counter()
        self.triangles = triangles
        for key in self.stats:
            self.stats[key] = 0

        root_indices = np.arange(len(triangles), dtype=np.int64)

        if root_indices.size == 0:
            logger.warning("Empty triangle input: returning an empty leaf root")
            self.stats['nodes_created'] = 1
            return Node(AABB.empty(), root_indices, level=0)

        logger.info(
            f"Building {self.config.tree_type} for {root_indices.size} triangles "
            f"(leaf cap={self.config.max_triangles_per_leaf})"
        )

        root = self._build_node(root_indices, level=0)

        self.stats['build_time'] = time.perf_counter() - start_time

        tree_stats = root.get_stats()
        logger.info(
            f"BVH built in {self.stats['build_time']:.3f}s: "
            f"{tree_stats['node_count']} nodes, "
            f"{tree_stats['leaf_count']} leaves, "
            f"depth={tree_stats['depth']}"
        )
        return root

    def _build_node(self, indices: np.ndarray, level: int) -> Node:
        """Рекурсивное построение узла"""
        self.stats['nodes_created'] += 1
        node = Node(self.triangles.bounds_of(indices), indices, level)

        if indices.size <= self.config.max_triangles_per_leaf:
            return node

        # Ось - самая длинная ось бокса центроидов (а не боксов треугольников)
        centroid_bounds = self.triangles.centroid_bounds_of(indices)
        axis = longest_axis(centroid_bounds.size)

        use_sah = (self.config.tree_type == TREE_HYBRID_BVH
                   and indices.size <= self.config.sah_threshold)

        if use_sah:
            left, right, method, cost = self._sah_split(indices, axis)
        else:
            left, right = self.sah.median_split(self.triangles, indices, axis)
            method, cost = 'median', None
            self.stats['median_splits'] += 1

        if self.trace:
            self.trace.record_split_decision({
                'tree_type': self.config.tree_type,
                'level': level,
                'parent_triangles': int(indices.size),
                'decision_method': method,
                'split_axis': axis,
                'cost': cost,
                'left_triangles': int(left.size),
                'right_triangles': int(right.size)
            })

        node.children = (
            self._build_node(left, level + 1),
            self._build_node(right, level + 1),
        )
        # Треугольники хранятся только в листьях
        node.indices = np.empty(0, dtype=np.int64)
        return node

    def _sah_split(self,
                   indices: np.ndarray,
                   axis: int) -> Tuple[np.ndarray, np.ndarray, str, Optional[float]]:
        """Разрез по SAH с откатом на медиану"""
        result = self.sah.evaluate_binned(self.triangles, indices, axis)

        if result is None:
            # Вырожденная ось или нет допустимых кандидатов
            self.stats['sah_fallbacks'] += 1
            left, right = self.sah.median_split(self.triangles, indices, axis)
            logger.debug(f"[Split] SAH fallback to median: n={indices.size}, axis={axis}")
            return left, right, 'median_fallback', None

        candidate, left, right = result

        if self.config.sah_compare_median:
            median_left, median_right = self.sah.median_split(self.triangles, indices, axis)
            median_cost = self.sah.split_cost(self.triangles, median_left, median_right)
            if median_cost < candidate.cost:
                logger.debug(
                    f"[Split] Median cheaper than best bin split: "
                    f"{median_cost:.4f} < {candidate.cost:.4f}"
                )
                self.stats['median_splits'] += 1
                return median_left, median_right, 'median', median_cost

        self.stats['sah_splits'] += 1
        logger.debug(
            f"[Split] SAH: axis={axis}, bin={candidate.position}, "
            f"nL={candidate.left_count}, nR={candidate.right_count}, cost={candidate.cost:.4f}"
        )
        return left, right, 'sah', candidate.cost

    def refit(self, root: Node, triangles: Optional[TriangleSet] = None) -> Node:
        """
        Быстрое обновление границ без перестройки топологии

        Допустимо только при жёстком преобразовании с равномерным масштабом:
        существующее разбиение не переоценивается.

        Args:
            root: Корень ранее построенного дерева
            triangles: Буфер геометрии (по умолчанию - использованный при build)
        """
        if triangles is not None:
            self.triangles = triangles
        if self.triangles is None:
            raise ValueError("refit() requires the triangle buffer used to build the tree")

        start_time = time.perf_counter()
        self.triangles.update_bounds()
        self._refit_node(root)
        logger.debug(f"BVH refit in {time.perf_counter() - start_time:.4f}s")
        return root

    def _refit_node(self, node: Node) -> None:
        if node.is_leaf():
            node.aabb = self.triangles.bounds_of(node.indices)
            return

        left, right = node.children
        self._refit_node(left)
        self._refit_node(right)
        node.aabb = left.aabb.encapsulate(right.aabb)
