"""
Конфигурация и константы для построения ускоряющих структур
"""
from dataclasses import dataclass, asdict
from typing import Optional
import json
from pathlib import Path

# ============ КОНСТАНТЫ ============

# Типы деревьев (тег конфигурации выбирает построитель)
TREE_MEDIAN_BVH = 'median_bvh'
TREE_HYBRID_BVH = 'hybrid_bvh'
TREE_CENTROID_KDTREE = 'centroid_kdtree'
TREE_SPATIAL_KDTREE = 'spatial_kdtree'
TREE_OCTREE = 'octree'

TREE_TYPES = (
    TREE_MEDIAN_BVH,
    TREE_HYBRID_BVH,
    TREE_CENTROID_KDTREE,
    TREE_SPATIAL_KDTREE,
    TREE_OCTREE,
)
BVH_TYPES = (TREE_MEDIAN_BVH, TREE_HYBRID_BVH)
KDTREE_TYPES = (TREE_CENTROID_KDTREE, TREE_SPATIAL_KDTREE)

# Максимум треугольников в листе
DEFAULT_LEAF_CAPS = {
    TREE_MEDIAN_BVH: 256,
    TREE_HYBRID_BVH: 64,
    TREE_CENTROID_KDTREE: 256,
    TREE_SPATIAL_KDTREE: 256,
    TREE_OCTREE: 4,
}

# Ограничения глубины и размера узла (только k-d деревья и октодерево)
DEFAULT_MAX_DEPTH = {
    TREE_CENTROID_KDTREE: 32,
    TREE_SPATIAL_KDTREE: 32,
    TREE_OCTREE: 8,
}
DEFAULT_MIN_NODE_SIZE = {
    TREE_CENTROID_KDTREE: 0.005,
    TREE_SPATIAL_KDTREE: 0.005,
    TREE_OCTREE: 0.01,
}

# SAH (Surface Area Heuristic)
DEFAULT_SAH_THRESHOLD = 256  # SAH применяется при числе треугольников <= порога
DEFAULT_SAH_BINS = 16
SAH_EPSILON = 1e-5  # Минимальная протяжённость центроидов для биннинга

# Сравнение масштабов (аналог приблизительного равенства float)
SCALE_RTOL = 1e-6
SCALE_ATOL = 1e-6

# Визуализация
DEFAULT_DRAW_DEPTH = 10


@dataclass
class BuildConfig:
    """Конфигурация построителя дерева"""

    # ======== Тип структуры ========
    tree_type: str = TREE_MEDIAN_BVH

    # ======== Ограничения на размер узла ========
    max_triangles_per_leaf: Optional[int] = None  # Все типы деревьев
    max_depth: Optional[int] = None  # k-d деревья и октодерево
    min_node_size: Optional[float] = None  # k-d деревья и октодерево

    # ======== SAH (только hybrid_bvh) ========
    sah_threshold: int = DEFAULT_SAH_THRESHOLD
    sah_bins: int = DEFAULT_SAH_BINS
    sah_epsilon: float = SAH_EPSILON
    sah_compare_median: bool = False  # Медианный разрез участвует как кандидат SAH

    def __post_init__(self):
        """Подстановка значений по умолчанию для выбранного типа дерева"""
        if self.tree_type not in TREE_TYPES:
            raise ValueError(
                f"Неизвестный тип дерева: {self.tree_type!r}, "
                f"допустимые: {', '.join(TREE_TYPES)}"
            )

        if self.max_triangles_per_leaf is None:
            self.max_triangles_per_leaf = DEFAULT_LEAF_CAPS[self.tree_type]
        if self.max_depth is None:
            self.max_depth = DEFAULT_MAX_DEPTH.get(self.tree_type)
        if self.min_node_size is None:
            self.min_node_size = DEFAULT_MIN_NODE_SIZE.get(self.tree_type)

    @property
    def is_bvh(self) -> bool:
        return self.tree_type in BVH_TYPES

    def validate(self) -> None:
        """Проверка корректности конфигурации"""
        if self.tree_type not in TREE_TYPES:
            raise ValueError(f"Неизвестный тип дерева: {self.tree_type!r}")

        if self.max_triangles_per_leaf < 1:
            raise ValueError(
                f"max_triangles_per_leaf должно быть >= 1, получено: {self.max_triangles_per_leaf}"
            )

        if self.max_depth is not None and self.max_depth < 0:
            raise ValueError(f"max_depth должна быть >= 0, получено: {self.max_depth}")

        if self.min_node_size is not None and self.min_node_size < 0:
            raise ValueError(f"min_node_size должен быть >= 0, получено: {self.min_node_size}")

        if self.sah_bins < 2:
            raise ValueError(f"sah_bins должно быть >= 2, получено: {self.sah_bins}")

        if self.sah_threshold < 0:
            raise ValueError(f"sah_threshold должен быть >= 0, получено: {self.sah_threshold}")

        if self.sah_epsilon < 0:
            raise ValueError(f"sah_epsilon должен быть >= 0, получено: {self.sah_epsilon}")

    def to_dict(self) -> dict:
        return asdict(self)

    def save(self, path: Path) -> None:
        """Сохранение конфигурации в JSON"""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

    @classmethod
    def load(cls, path: Path) -> 'BuildConfig':
        """Загрузка конфигурации из JSON"""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls(**data)

    @classmethod
    def from_args(cls, args, base: Optional['BuildConfig'] = None) -> 'BuildConfig':
        """Создание конфигурации из аргументов командной строки"""
        tree_type = getattr(args, 'tree', None)
        if tree_type is None:
            tree_type = base.tree_type if base is not None else TREE_MEDIAN_BVH

        # Значения из файла действуют, только если тип дерева не изменился
        if base is not None and base.tree_type == tree_type:
            config = cls(**base.to_dict())
        else:
            config = cls(tree_type=tree_type)

        if getattr(args, 'max_triangles', None) is not None:
            config.max_triangles_per_leaf = args.max_triangles
        if getattr(args, 'max_depth', None) is not None:
            config.max_depth = args.max_depth
        if getattr(args, 'min_size', None) is not None:
            config.min_node_size = args.min_size
        if getattr(args, 'sah_threshold', None) is not None:
            config.sah_threshold = args.sah_threshold
        if getattr(args, 'sah_bins', None) is not None:
            config.sah_bins = args.sah_bins
        if getattr(args, 'median_candidate', False):
            config.sah_compare_median = True

        config.validate()
        return config
