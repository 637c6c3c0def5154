"""
Точки входа: построение и refit ускоряющих структур

Конкретный построитель выбирается тегом config.tree_type.
"""
import numpy as np
import time
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence, Union
import logging

from .structures import Node, Triangle, TriangleSet
from .errors import GeometryError, RefitError
from .bvh import BVHBuilder
from .kdtree import KDTreeBuilder
from .octree import OctreeBuilder
from ..config import (
    BuildConfig,
    BVH_TYPES,
    TREE_MEDIAN_BVH,
    TREE_HYBRID_BVH,
    TREE_CENTROID_KDTREE,
    TREE_SPATIAL_KDTREE,
    TREE_OCTREE,
)
from ..visualization.tracer import TraceRecorder

logger = logging.getLogger(__name__)

TriangleSource = Union[TriangleSet, Sequence[Triangle], np.ndarray]

_BUILDERS = {
    TREE_MEDIAN_BVH: BVHBuilder,
    TREE_HYBRID_BVH: BVHBuilder,
    TREE_CENTROID_KDTREE: KDTreeBuilder,
    TREE_SPATIAL_KDTREE: KDTreeBuilder,
    TREE_OCTREE: OctreeBuilder,
}


@dataclass
class AccelTree:
    """
    Построенная структура вместе с буфером геометрии

    Attributes:
        tree_type: Тег типа дерева
        root: Корневой узел
        triangles: Буфер треугольников, на который ссылаются листья
        config: Конфигурация, с которой дерево построено
        triangle_count: Число треугольников на момент построения
        build_time: Время построения (секунды)
        build_stats: Счётчики построителя
    """
    tree_type: str
    root: Node
    triangles: TriangleSet
    config: BuildConfig
    triangle_count: int
    build_time: float = 0.0
    build_stats: dict = field(default_factory=dict)

    @property
    def supports_refit(self) -> bool:
        return self.tree_type in BVH_TYPES

    def depth(self) -> int:
        """Максимальная глубина листьев"""
        return self.root.depth()

    def iter_leaves(self) -> Iterator[Node]:
        return self.root.iter_leaves()

    def is_empty(self) -> bool:
        return self.triangle_count == 0

    def get_stats(self) -> dict:
        stats = self.root.get_stats()
        stats['tree_type'] = self.tree_type
        stats['triangle_count'] = self.triangle_count
        stats['duplication_ratio'] = (
            stats['total_references'] / self.triangle_count if self.triangle_count else 0.0
        )
        return stats


def as_triangle_set(triangles: TriangleSource) -> TriangleSet:
    """Приведение источника геометрии к TriangleSet"""
    if triangles is None:
        raise GeometryError("Cannot build from an absent geometry source (got None)")

    if isinstance(triangles, TriangleSet):
        return triangles

    if isinstance(triangles, (list, tuple)):
        if len(triangles) == 0 or isinstance(triangles[0], Triangle):
            return TriangleSet.from_triangles(triangles)

    return TriangleSet(triangles)


class TreeBuilder:
    """Фасад построения и refit для всех типов деревьев"""

    def __init__(self, config: Optional[BuildConfig] = None, trace: Optional[TraceRecorder] = None):
        """
        Args:
            config: Конфигурация (по умолчанию median_bvh)
            trace: Опциональный трассировщик для визуализации
        """
        self.config = config if config is not None else BuildConfig()
        self.config.validate()
        self.trace = trace
        self.last_stats: dict = {}

    def build(self, triangles: TriangleSource) -> AccelTree:
        """
        Построение дерева

        Args:
            triangles: TriangleSet, список Triangle или массив (N, 3, 3)

        Returns:
            AccelTree с корнем и ссылкой на буфер геометрии

        Raises:
            GeometryError: Источник геометрии отсутствует или некорректен
        """
        triangle_set = as_triangle_set(triangles)

        builder = _BUILDERS[self.config.tree_type](self.config, self.trace)

        start_time = time.perf_counter()
        root = builder.build(triangle_set)
        build_time = time.perf_counter() - start_time

        self.last_stats = dict(builder.stats)

        if self.trace:
            self.trace.record_final_boxes(root.iter_leaves())
            self.trace.add_custom_data('build_stats', self.last_stats)

        return AccelTree(
            tree_type=self.config.tree_type,
            root=root,
            triangles=triangle_set,
            config=self.config,
            triangle_count=len(triangle_set),
            build_time=build_time,
            build_stats=self.last_stats
        )

    def refit(self, tree: AccelTree, positions: Optional[np.ndarray] = None) -> AccelTree:
        """
        Обновление границ BVH после жёсткого преобразования

        Args:
            tree: Ранее построенное дерево
            positions: Новые позиции вершин (N, 3, 3) в прежнем порядке

        Raises:
            RefitError: Тип дерева не поддерживает refit или число
                треугольников не совпадает с сохранённым при построении
        """
        return refit_tree(tree, positions)


def build_tree(triangles: TriangleSource,
               config: Optional[BuildConfig] = None,
               trace: Optional[TraceRecorder] = None,
               **overrides) -> AccelTree:
    """
    Построение дерева одним вызовом

    Args:
        triangles: Источник геометрии
        config: Конфигурация (если не задана - собирается из overrides)
        trace: Опциональный трассировщик
        **overrides: Поля BuildConfig, например tree_type='octree'
    """
    if config is None:
        config = BuildConfig(**overrides)
    elif overrides:
        params = config.to_dict()
        params.update(overrides)
        config = BuildConfig(**params)
    return TreeBuilder(config, trace).build(triangles)


def refit_tree(tree: AccelTree, positions: Optional[np.ndarray] = None) -> AccelTree:
    """Refit без перестройки топологии (только BVH)"""
    if tree is None:
        raise RefitError("Cannot refit an absent tree (got None)")

    if not tree.supports_refit:
        raise RefitError(f"{tree.tree_type} does not support refit, rebuild the tree instead")

    if positions is None:
        # Дерево из списка Triangle: вершины могли измениться через set_vertices
        tree.triangles.sync_from_source()

    if len(tree.triangles) != tree.triangle_count:
        raise RefitError(
            f"Triangle buffer size {len(tree.triangles)} no longer matches "
            f"the {tree.triangle_count} triangles the tree was built from"
        )

    if positions is not None:
        tree.triangles.update_positions(positions)

    BVHBuilder(tree.config).refit(tree.root, tree.triangles)
    logger.debug(f"Refit {tree.tree_type}: {tree.triangle_count} triangles")
    return tree
