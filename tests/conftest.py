import numpy as np
import pytest

from mesh_accel.core.structures import TriangleSet


def make_random_triangles(n, seed=0, size=0.02):
    """Мелкие треугольники, равномерно распределённые в единичном кубе"""
    rng = np.random.default_rng(seed)
    centers = rng.uniform(0.0, 1.0, size=(n, 3))
    offsets = rng.uniform(-size, size, size=(n, 3, 3))
    return centers[:, None, :] + offsets


@pytest.fixture
def random_triangles():
    return TriangleSet(make_random_triangles(1000))


@pytest.fixture
def small_random_triangles():
    return TriangleSet(make_random_triangles(200, seed=7))


@pytest.fixture
def quad_triangles():
    # Два треугольника, образующих квадрат 1x1 в плоскости z=0
    return TriangleSet(np.array([
        [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0]],
        [[0.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]],
    ]))


@pytest.fixture
def degenerate_triangles():
    # Один и тот же треугольник 300 раз: все центроиды совпадают
    tri = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 1.0]])
    return TriangleSet(np.repeat(tri[None], 300, axis=0))
