import numpy as np
from typing import Optional, Tuple
from dataclasses import dataclass
import logging

from .geometry import surface_area
from .structures import TriangleSet

logger = logging.getLogger(__name__)


@dataclass
class SplitCandidate:
    """Кандидат на разрез"""
    axis: int  # 0=X, 1=Y, 2=Z
    position: int  # Индекс бина, с которого начинается правая часть
    cost: float  # SAH стоимость
    left_count: int  # Треугольников слева
    right_count: int  # Треугольников справа
    method: str  # 'sah' или 'median'

    def is_valid(self) -> bool:
        """Обе стороны непусты"""
        return self.left_count > 0 and self.right_count > 0


class SahEvaluator:
    """Вычислитель стоимости разрезов по Surface Area Heuristic"""

    def __init__(self, config):
        self.config = config

    def compute_sah_cost(self,
                         n_left: int,
                         n_right: int,
                         surface_left: float,
                         surface_right: float,
                         surface_parent: float) -> float:
        """
        Surface Area Heuristic (SAH)

        Вероятность попадания луча в дочерний бокс приближается долей его
        площади поверхности, стоимость пропорциональна числу примитивов.

        Args:
            n_left, n_right: Количество треугольников слева/справа
            surface_left, surface_right: Площади поверхности дочерних боксов
            surface_parent: Площадь поверхности родителя

        Returns:
            SAH стоимость разбиения (безразмерная)
        """
        if surface_parent <= 0:
            return float('inf')

        return (surface_left * n_left + surface_right * n_right) / surface_parent

    def median_split(self,
                     triangles: TriangleSet,
                     indices: np.ndarray,
                     axis: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Медианный разрез: устойчивая сортировка центроидов по оси

        Левая часть получает меньшую половину (count // 2).
        """
        order = np.argsort(triangles.centroids[indices, axis], kind='stable')
        sorted_indices = indices[order]
        mid = indices.size // 2
        return sorted_indices[:mid], sorted_indices[mid:]

    def split_cost(self,
                   triangles: TriangleSet,
                   left: np.ndarray,
                   right: np.ndarray) -> float:
        """SAH стоимость произвольного разбиения на две группы"""
        parent = np.concatenate([left, right])
        return self.compute_sah_cost(
            left.size, right.size,
            triangles.bounds_of(left).surface_area(),
            triangles.bounds_of(right).surface_area(),
            triangles.bounds_of(parent).surface_area(),
        )

    def median_split_cost(self,
                          triangles: TriangleSet,
                          indices: np.ndarray,
                          axis: int) -> float:
        left, right = self.median_split(triangles, indices, axis)
        return self.split_cost(triangles, left, right)

    def evaluate_binned(self,
                        triangles: TriangleSet,
                        indices: np.ndarray,
                        axis: int) -> Optional[Tuple[SplitCandidate, np.ndarray, np.ndarray]]:
        """
        Биннинговый поиск разреза по SAH вдоль оси

        Args:
            triangles: Буфер геометрии
            indices: Индексы треугольников узла
            axis: Ось (самая длинная ось бокса центроидов)

        Returns:
            (candidate, left_indices, right_indices) или None,
            если ось вырождена или ни один кандидат не допустим
        """
        n_bins = self.config.sah_bins
        n_tris = indices.size
        centroids = triangles.centroids[indices, axis]

        c_min = float(centroids.min())
        c_max = float(centroids.max())

        # Все центроиды совпадают вдоль оси: биннинг невозможен
        if c_max - c_min < self.config.sah_epsilon:
            logger.debug(f"[SAH] Degenerate axis {axis}: extent={c_max - c_min:.3e}")
            return None

        bin_size = (c_max - c_min) / n_bins
        bin_ids = ((centroids - c_min) / bin_size).astype(np.int64)
        # Зажимаем в последний бин погрешности на границе
        bin_ids = np.clip(bin_ids, 0, n_bins - 1)

        counts = np.bincount(bin_ids, minlength=n_bins)

        tri_mins = triangles.mins[indices]
        tri_maxs = triangles.maxs[indices]
        bin_mins = np.full((n_bins, 3), np.inf)
        bin_maxs = np.full((n_bins, 3), -np.inf)
        np.minimum.at(bin_mins, bin_ids, tri_mins)
        np.maximum.at(bin_maxs, bin_ids, tri_maxs)

        # Префиксные объединения: бины [0, i) слева, [i, n_bins) справа
        left_mins = np.minimum.accumulate(bin_mins, axis=0)
        left_maxs = np.maximum.accumulate(bin_maxs, axis=0)
        right_mins = np.minimum.accumulate(bin_mins[::-1], axis=0)[::-1]
        right_maxs = np.maximum.accumulate(bin_maxs[::-1], axis=0)[::-1]
        left_counts = np.cumsum(counts)

        parent_area = surface_area(tri_maxs.max(axis=0) - tri_mins.min(axis=0))

        best_cost = float('inf')
        best_split = -1

        # Начинаем с i = 1, чтобы левая группа не была пустой
        for i in range(1, n_bins):
            n_left = int(left_counts[i - 1])
            n_right = n_tris - n_left
            if n_left == 0 or n_right == 0:
                continue

            area_left = surface_area(left_maxs[i - 1] - left_mins[i - 1])
            area_right = surface_area(right_maxs[i] - right_mins[i])
            cost = self.compute_sah_cost(n_left, n_right, area_left, area_right, parent_area)

            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    f"[SAH] Axis={axis}, Bin={i}, nL={n_left}, nR={n_right}, Cost={cost:.4f}"
                )

            if cost < best_cost:
                best_cost = cost
                best_split = i

        if best_split == -1:
            return None

        # Левая и правая группы собираются прямо из бинов, без пересортировки
        order = np.argsort(bin_ids, kind='stable')
        n_left = int(left_counts[best_split - 1])
        sorted_indices = indices[order]

        candidate = SplitCandidate(
            axis=axis,
            position=best_split,
            cost=best_cost,
            left_count=n_left,
            right_count=n_tris - n_left,
            method='sah'
        )
        return candidate, sorted_indices[:n_left], sorted_indices[n_left:]
