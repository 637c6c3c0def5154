"""
Политика обновления на стороне хоста: refit или полная перестройка

Менеджер хранит меш в локальных координатах и последнее преобразование.
При изменении преобразования BVH с равномерным масштабом обновляется
через refit; неравномерный масштаб ломает порядок центроидов и требует
перестройки. K-d деревья и октодерево всегда перестраиваются.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional
import logging

import numpy as np

from .config import BuildConfig, SCALE_RTOL, SCALE_ATOL
from .core.builder import AccelTree, TreeBuilder, refit_tree
from .io.exporters import clamp_draw_depth
from .io.loaders import extract_triangles, transform_positions, validate_mesh
from .visualization.tracer import TraceRecorder

logger = logging.getLogger(__name__)

ACTION_NONE = 'none'
ACTION_REFIT = 'refit'
ACTION_REBUILD = 'rebuild'


def euler_to_matrix(angles_deg) -> np.ndarray:
    """Матрица поворота 3x3 из углов Эйлера (градусы, порядок X, Y, Z)"""
    ax, ay, az = np.radians(np.asarray(angles_deg, dtype=np.float64))
    rx = np.array([[1, 0, 0], [0, np.cos(ax), -np.sin(ax)], [0, np.sin(ax), np.cos(ax)]])
    ry = np.array([[np.cos(ay), 0, np.sin(ay)], [0, 1, 0], [-np.sin(ay), 0, np.cos(ay)]])
    rz = np.array([[np.cos(az), -np.sin(az), 0], [np.sin(az), np.cos(az), 0], [0, 0, 1]])
    return rz @ ry @ rx


def is_uniform_scale(scale) -> bool:
    """Все три компоненты масштаба приблизительно равны"""
    sx, sy, sz = np.asarray(scale, dtype=np.float64)
    return bool(
        np.isclose(sx, sy, rtol=SCALE_RTOL, atol=SCALE_ATOL)
        and np.isclose(sy, sz, rtol=SCALE_RTOL, atol=SCALE_ATOL)
    )


@dataclass
class Transform:
    """Преобразование объекта: перенос, поворот (3x3), масштаб"""
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    scale: np.ndarray = field(default_factory=lambda: np.ones(3))

    def __post_init__(self):
        self.position = np.array(self.position, dtype=np.float64)
        self.rotation = np.array(self.rotation, dtype=np.float64)
        self.scale = np.array(self.scale, dtype=np.float64)

        if self.position.shape != (3,) or self.scale.shape != (3,):
            raise ValueError("position and scale must be 3D vectors")
        if self.rotation.shape != (3, 3):
            raise ValueError(f"rotation must be a 3x3 matrix, got {self.rotation.shape}")

    def matrix(self) -> np.ndarray:
        """Однородная матрица 4x4: T * R * S"""
        m = np.eye(4)
        m[:3, :3] = self.rotation @ np.diag(self.scale)
        m[:3, 3] = self.position
        return m

    def differs(self, other: 'Transform') -> bool:
        return not (
            np.array_equal(self.position, other.position)
            and np.array_equal(self.rotation, other.rotation)
            and np.array_equal(self.scale, other.scale)
        )

    def copy(self) -> 'Transform':
        return Transform(self.position.copy(), self.rotation.copy(), self.scale.copy())


class AccelManager:
    """
    Владелец дерева для одного меша

    Args:
        vertices: Вершины меша в локальных координатах (V x 3)
        faces: Индексы треугольников (F x 3)
        config: Конфигурация построения
        transform: Начальное преобразование (по умолчанию единичное)
        trace: Опциональный трассировщик
    """

    def __init__(self,
                 vertices: np.ndarray,
                 faces: np.ndarray,
                 config: Optional[BuildConfig] = None,
                 transform: Optional[Transform] = None,
                 trace: Optional[TraceRecorder] = None):
        self.vertices = np.asarray(vertices, dtype=np.float64)
        self.faces = np.asarray(faces, dtype=np.int64)
        validate_mesh(self.vertices, self.faces, min_triangles=0)

        self.builder = TreeBuilder(config, trace)
        self.transform = transform.copy() if transform is not None else Transform()
        self.tree: AccelTree = self._rebuild()

    @property
    def config(self) -> BuildConfig:
        return self.builder.config

    @property
    def tree_depth(self) -> int:
        return self.tree.depth()

    def clamped_draw_depth(self, user_depth: int) -> int:
        return clamp_draw_depth(user_depth, self.tree_depth)

    def _rebuild(self) -> AccelTree:
        triangles = extract_triangles(self.vertices, self.faces, self.transform.matrix())
        return self.builder.build(triangles)

    def update(self, transform: Transform) -> str:
        """
        Реакция на новое преобразование объекта

        Returns:
            'none' - преобразование не изменилось,
            'refit' - границы BVH обновлены без перестройки,
            'rebuild' - дерево построено заново
        """
        if not self.transform.differs(transform):
            return ACTION_NONE

        self.transform = transform.copy()

        if self.tree.supports_refit and is_uniform_scale(transform.scale):
            positions = transform_positions(self.vertices, self.faces, self.transform.matrix())
            refit_tree(self.tree, positions)
            action = ACTION_REFIT
        else:
            self.tree = self._rebuild()
            action = ACTION_REBUILD

        logger.debug(f"Transform changed: {action} {self.tree.tree_type}, depth={self.tree_depth}")
        return action
