from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence, Tuple
import numpy as np

from .errors import GeometryError, RefitError


@dataclass
class AABB:
    """
    Axis-Aligned Bounding Box в мировых координатах

    Attributes:
        min_corner: Минимальный угол (включительно)
        max_corner: Максимальный угол (включительно)
    """
    min_corner: np.ndarray  # shape: (3,), dtype: float64
    max_corner: np.ndarray  # shape: (3,), dtype: float64

    def __post_init__(self):
        """Валидация данных после инициализации"""
        self.min_corner = np.asarray(self.min_corner, dtype=np.float64).copy()
        self.max_corner = np.asarray(self.max_corner, dtype=np.float64).copy()

        if self.min_corner.shape != (3,) or self.max_corner.shape != (3,):
            raise ValueError("AABB corners must be 3D vectors")

        if np.any(self.min_corner > self.max_corner):
            raise ValueError("min_corner must be <= max_corner")

    @classmethod
    def empty(cls) -> 'AABB':
        """Бокс нулевого размера в начале координат"""
        return cls(np.zeros(3), np.zeros(3))

    @classmethod
    def from_center_size(cls, center: np.ndarray, size: np.ndarray) -> 'AABB':
        center = np.asarray(center, dtype=np.float64)
        half = 0.5 * np.asarray(size, dtype=np.float64)
        return cls(center - half, center + half)

    @property
    def center(self) -> np.ndarray:
        return 0.5 * (self.min_corner + self.max_corner)

    @property
    def size(self) -> np.ndarray:
        return self.max_corner - self.min_corner

    @property
    def extents(self) -> np.ndarray:
        """Половина размера по осям"""
        return 0.5 * self.size

    def volume(self) -> float:
        return float(np.prod(self.size))

    def surface_area(self) -> float:
        """Площадь поверхности: 2 * (xy + yz + zx)"""
        dx, dy, dz = self.size
        return float(2.0 * (dx * dy + dy * dz + dz * dx))

    def encapsulate(self, other: 'AABB') -> 'AABB':
        """Объединение двух боксов (новый объект)"""
        return AABB(
            np.minimum(self.min_corner, other.min_corner),
            np.maximum(self.max_corner, other.max_corner),
        )

    def intersects(self, other: 'AABB') -> bool:
        """Пересечение с учётом касания границ"""
        return bool(
            np.all(self.min_corner <= other.max_corner)
            and np.all(self.max_corner >= other.min_corner)
        )

    def contains(self, other: 'AABB', tol: float = 0.0) -> bool:
        return bool(
            np.all(self.min_corner <= other.min_corner + tol)
            and np.all(self.max_corner >= other.max_corner - tol)
        )

    def to_dict(self) -> dict:
        return {
            'min': self.min_corner.tolist(),
            'max': self.max_corner.tolist(),
        }


@dataclass
class Triangle:
    """
    Треугольник в мировых координатах

    Bounds и centroid всегда согласованы с текущими вершинами:
    после изменения вершин нужно вызвать update_bounds().
    """
    v0: np.ndarray
    v1: np.ndarray
    v2: np.ndarray
    bounds: AABB = field(init=False)
    centroid: np.ndarray = field(init=False)

    def __post_init__(self):
        self.v0 = np.asarray(self.v0, dtype=np.float64)
        self.v1 = np.asarray(self.v1, dtype=np.float64)
        self.v2 = np.asarray(self.v2, dtype=np.float64)
        self.update_bounds()

    def update_bounds(self) -> None:
        """Пересчёт бокса и центроида по текущим вершинам"""
        stacked = np.stack([self.v0, self.v1, self.v2])
        self.bounds = AABB(stacked.min(axis=0), stacked.max(axis=0))
        self.centroid = stacked.mean(axis=0)

    def set_vertices(self, v0, v1, v2) -> None:
        self.v0 = np.asarray(v0, dtype=np.float64)
        self.v1 = np.asarray(v1, dtype=np.float64)
        self.v2 = np.asarray(v2, dtype=np.float64)
        self.update_bounds()

    def vertices(self) -> np.ndarray:
        return np.stack([self.v0, self.v1, self.v2])


class TriangleSet:
    """
    Буфер геометрии хоста: N треугольников в одной системе координат

    Узлы деревьев ссылаются на треугольники по индексу в этом буфере,
    поэтому порядок и количество треугольников фиксированы между refit.

    Attributes:
        vertices: Вершины (N x 3 x 3)
        mins, maxs: Углы боксов треугольников (N x 3)
        centroids: Центроиды (N x 3)
        source: Исходная последовательность Triangle (если буфер собран из неё)
    """

    def __init__(self, vertices: np.ndarray):
        self.vertices = self._as_vertex_array(vertices)
        self.source: Optional[Sequence[Triangle]] = None
        self.update_bounds()

    @staticmethod
    def _as_vertex_array(vertices) -> np.ndarray:
        if vertices is None:
            raise GeometryError("Geometry source is missing (got None)")

        arr = np.array(vertices, dtype=np.float64)
        if arr.size == 0:
            return np.zeros((0, 3, 3), dtype=np.float64)

        if arr.ndim == 2 and arr.shape[1] == 9:
            arr = arr.reshape(-1, 3, 3)

        if arr.ndim != 3 or arr.shape[1:] != (3, 3):
            raise GeometryError(f"Triangles must have shape (N, 3, 3), got {arr.shape}")

        if not np.isfinite(arr).all():
            n_invalid = int((~np.isfinite(arr)).any(axis=(1, 2)).sum())
            raise GeometryError(f"Found {n_invalid} triangles with NaN or Inf coordinates")

        return arr

    @classmethod
    def from_triangles(cls, triangles: Sequence[Triangle]) -> 'TriangleSet':
        if triangles is None:
            raise GeometryError("Geometry source is missing (got None)")
        if len(triangles) == 0:
            triangle_set = cls(np.zeros((0, 3, 3)))
        else:
            triangle_set = cls(np.stack([tri.vertices() for tri in triangles]))
        # Ссылка на сами объекты: refit перечитывает их вершины
        triangle_set.source = triangles
        return triangle_set

    def __len__(self) -> int:
        return int(self.vertices.shape[0])

    def update_bounds(self) -> None:
        """Пересчёт боксов и центроидов всех треугольников"""
        self.mins = self.vertices.min(axis=1)
        self.maxs = self.vertices.max(axis=1)
        self.centroids = self.vertices.mean(axis=1)

    def update_positions(self, vertices: np.ndarray) -> None:
        """
        Замена позиций вершин на месте (для refit)

        Raises:
            RefitError: Если число треугольников изменилось
        """
        new_vertices = self._as_vertex_array(vertices)
        if new_vertices.shape != self.vertices.shape:
            raise RefitError(
                f"Triangle count changed: {new_vertices.shape[0]} != {len(self)}, "
                f"a full rebuild is required"
            )
        self.vertices[...] = new_vertices
        self.update_bounds()

    def sync_from_source(self) -> None:
        """
        Перечитывание вершин из исходных объектов Triangle

        Raises:
            RefitError: Если число треугольников в источнике изменилось
        """
        if self.source is None:
            return
        if len(self.source) == 0:
            self.update_positions(np.zeros((0, 3, 3)))
            return
        self.update_positions(np.stack([tri.vertices() for tri in self.source]))

    def triangle(self, index: int) -> Triangle:
        v = self.vertices[index]
        return Triangle(v[0], v[1], v[2])

    def bounds_of(self, indices: np.ndarray) -> AABB:
        """Объединение боксов указанных треугольников"""
        if indices.size == 0:
            return AABB.empty()
        return AABB(self.mins[indices].min(axis=0), self.maxs[indices].max(axis=0))

    def centroid_bounds_of(self, indices: np.ndarray) -> AABB:
        """Бокс центроидов указанных треугольников"""
        if indices.size == 0:
            return AABB.empty()
        c = self.centroids[indices]
        return AABB(c.min(axis=0), c.max(axis=0))


@dataclass
class Node:
    """
    Узел бинарного дерева (BVH и k-d дерево)

    Attributes:
        aabb: Ограничивающий параллелепипед
        indices: Индексы треугольников в этом узле
        level: Уровень в дереве (0 для корня)
        children: Дочерние узлы (None для листьев)
    """
    aabb: AABB
    indices: np.ndarray  # shape: (n,), dtype: int64
    level: int = 0
    children: Optional[Tuple['Node', ...]] = None

    def __post_init__(self):
        """Валидация и преобразование типов"""
        self.indices = np.asarray(self.indices, dtype=np.int64)

        if self.level < 0:
            raise ValueError("Level must be non-negative")

    def is_leaf(self) -> bool:
        return self.children is None

    def triangle_count(self) -> int:
        return int(self.indices.size)

    def depth(self) -> int:
        """Глубина поддерева (максимальная глубина листьев, лист = 0)"""
        if self.is_leaf():
            return 0
        return 1 + max(child.depth() for child in self.children)

    def leaf_count(self) -> int:
        if self.is_leaf():
            return 1
        return sum(child.leaf_count() for child in self.children)

    def node_count(self) -> int:
        if self.is_leaf():
            return 1
        return 1 + sum(child.node_count() for child in self.children)

    def iter_leaves(self) -> Iterator['Node']:
        """Итератор по листовым узлам (слева направо)"""
        stack = [self]
        while stack:
            node = stack.pop()
            if node.is_leaf():
                yield node
            else:
                stack.extend(reversed(node.children))

    def iter_nodes(self, max_depth: Optional[int] = None) -> Iterator['Node']:
        """
        Обход в прямом порядке с ограничением глубины

        Args:
            max_depth: Глубина относительно этого узла (None - без ограничения)
        """
        stack = [(self, 0)]
        while stack:
            node, depth = stack.pop()
            if max_depth is not None and depth > max_depth:
                continue
            yield node
            if not node.is_leaf():
                stack.extend((child, depth + 1) for child in reversed(node.children))

    def get_stats(self) -> dict:
        """Статистика поддерева"""
        leaf_sizes = [leaf.triangle_count() for leaf in self.iter_leaves()]
        return {
            'depth': self.depth(),
            'node_count': self.node_count(),
            'leaf_count': self.leaf_count(),
            'total_references': sum(leaf_sizes),
            'min_leaf_size': min(leaf_sizes) if leaf_sizes else 0,
            'max_leaf_size': max(leaf_sizes) if leaf_sizes else 0,
            'median_leaf_size': int(np.median(leaf_sizes)) if leaf_sizes else 0
        }


@dataclass
class KDNode(Node):
    """
    Узел k-d дерева

    Неявная плоскость разреза задаётся осью и координатой,
    сама плоскость как геометрия не хранится.
    """
    axis: Optional[int] = None  # 0=X, 1=Y, 2=Z
    split_position: Optional[float] = None


@dataclass
class OctreeNode(Node):
    """Узел октодерева: ровно 0 или 8 детей"""

    OCTANTS = 8

    def set_children(self, children: Sequence['OctreeNode']) -> None:
        if len(children) != self.OCTANTS:
            raise ValueError(f"Octree node must have exactly {self.OCTANTS} children, got {len(children)}")
        self.children = tuple(children)
