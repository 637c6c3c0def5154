"""
Геометрические утилиты, общие для всех построителей
"""
from typing import List
import numpy as np

from .structures import AABB


def union_bounds(mins: np.ndarray, maxs: np.ndarray) -> AABB:
    """
    Бокс, охватывающий набор боксов

    Args:
        mins, maxs: Углы боксов (N x 3)

    Returns:
        Объединяющий AABB (нулевой бокс для пустого набора)
    """
    if len(mins) == 0:
        return AABB.empty()
    return AABB(np.min(mins, axis=0), np.max(maxs, axis=0))


def bounds_of_points(points: np.ndarray) -> AABB:
    """Бокс, охватывающий набор точек (N x 3)"""
    if len(points) == 0:
        return AABB.empty()
    return AABB(np.min(points, axis=0), np.max(points, axis=0))


def longest_axis(size: np.ndarray) -> int:
    """Самая длинная ось; при равенстве приоритет X, затем Y, затем Z"""
    if size[0] >= size[1] and size[0] >= size[2]:
        return 0
    if size[1] >= size[2]:
        return 1
    return 2


def surface_area(size: np.ndarray) -> float:
    """Площадь поверхности бокса по его размерам: 2 * (xy + yz + zx)"""
    return float(2.0 * (size[0] * size[1] + size[1] * size[2] + size[2] * size[0]))


def box_intersects(box: AABB, mins: np.ndarray, maxs: np.ndarray) -> np.ndarray:
    """
    Векторизованная проверка пересечения бокса с набором боксов

    Касание границ считается пересечением.

    Returns:
        Булева маска (N,)
    """
    return np.all((mins <= box.max_corner) & (maxs >= box.min_corner), axis=1)


def octant_boxes(parent: AABB) -> List[AABB]:
    """
    Восемь дочерних боксов половинного размера

    Центр каждого смещён от центра родителя на ±четверть размера
    по каждой оси. Порядок: X внешний цикл, затем Y, затем Z, сначала минус.
    """
    child_size = parent.size * 0.5
    offset = child_size * 0.5
    center = parent.center

    boxes = []
    for x in (-1.0, 1.0):
        for y in (-1.0, 1.0):
            for z in (-1.0, 1.0):
                direction = np.array([x, y, z])
                boxes.append(AABB.from_center_size(center + direction * offset, child_size))
    return boxes
