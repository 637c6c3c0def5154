import numpy as np
import pytest

from mesh_accel.config import BuildConfig
from mesh_accel.manager import (
    ACTION_NONE,
    ACTION_REBUILD,
    ACTION_REFIT,
    AccelManager,
    Transform,
    euler_to_matrix,
    is_uniform_scale,
)


@pytest.fixture
def grid_mesh():
    """Сетка 10x10 квадратов в плоскости XY со слегка приподнятыми вершинами"""
    n = 11
    xs, ys = np.meshgrid(np.linspace(0, 1, n), np.linspace(0, 1, n), indexing='ij')
    zs = 0.1 * np.sin(3 * xs) * np.cos(2 * ys)
    vertices = np.stack([xs.ravel(), ys.ravel(), zs.ravel()], axis=1)

    faces = []
    for i in range(n - 1):
        for j in range(n - 1):
            a = i * n + j
            b = a + 1
            c = a + n
            d = c + 1
            faces.append([a, c, b])
            faces.append([b, c, d])
    return vertices, np.array(faces)


def test_euler_to_matrix_is_rotation():
    m = euler_to_matrix([30, 45, 60])
    np.testing.assert_allclose(m @ m.T, np.eye(3), atol=1e-12)
    assert np.linalg.det(m) == pytest.approx(1.0)
    np.testing.assert_allclose(euler_to_matrix([0, 0, 90]) @ [1, 0, 0], [0, 1, 0], atol=1e-12)


def test_is_uniform_scale():
    assert is_uniform_scale([2, 2, 2])
    assert is_uniform_scale([1.0, 1.0 + 1e-9, 1.0])
    assert not is_uniform_scale([1, 2, 1])


def test_transform_matrix():
    t = Transform(position=[1, 2, 3], scale=[2, 2, 2])
    m = t.matrix()
    np.testing.assert_allclose(m @ [1, 1, 1, 1], [3, 4, 5, 1])
    with pytest.raises(ValueError):
        Transform(rotation=np.eye(4))


class TestAccelManager:
    def test_initial_build(self, grid_mesh):
        vertices, faces = grid_mesh
        manager = AccelManager(vertices, faces, BuildConfig('hybrid_bvh', max_triangles_per_leaf=8))
        assert manager.tree.triangle_count == 200
        assert manager.tree_depth > 0

    def test_same_transform_is_noop(self, grid_mesh):
        vertices, faces = grid_mesh
        manager = AccelManager(vertices, faces)
        assert manager.update(Transform()) == ACTION_NONE

    def test_uniform_scale_refits_bvh(self, grid_mesh):
        vertices, faces = grid_mesh
        manager = AccelManager(vertices, faces, BuildConfig('median_bvh', max_triangles_per_leaf=8))
        root_before = manager.tree.root
        transform = Transform(position=[5, 0, 0], rotation=euler_to_matrix([0, 0, 45]), scale=[3, 3, 3])

        assert manager.update(transform) == ACTION_REFIT
        assert manager.tree.root is root_before

        world = (vertices @ transform.matrix()[:3, :3].T + transform.position)[faces]
        np.testing.assert_allclose(manager.tree.root.aabb.min_corner, world.reshape(-1, 3).min(axis=0))
        np.testing.assert_allclose(manager.tree.root.aabb.max_corner, world.reshape(-1, 3).max(axis=0))

    def test_non_uniform_scale_rebuilds(self, grid_mesh):
        vertices, faces = grid_mesh
        manager = AccelManager(vertices, faces, BuildConfig('hybrid_bvh', max_triangles_per_leaf=8))
        root_before = manager.tree.root
        assert manager.update(Transform(scale=[1, 4, 1])) == ACTION_REBUILD
        assert manager.tree.root is not root_before
        np.testing.assert_allclose(manager.tree.root.aabb.max_corner[1], 4.0)

    @pytest.mark.parametrize("tree_type", ['centroid_kdtree', 'spatial_kdtree', 'octree'])
    def test_spatial_trees_always_rebuild(self, grid_mesh, tree_type):
        vertices, faces = grid_mesh
        manager = AccelManager(vertices, faces, BuildConfig(tree_type))
        assert manager.update(Transform(position=[1, 1, 1])) == ACTION_REBUILD
        np.testing.assert_allclose(manager.tree.root.aabb.min_corner[:2], [1, 1])

    def test_clamped_draw_depth(self, grid_mesh):
        vertices, faces = grid_mesh
        manager = AccelManager(vertices, faces, BuildConfig('median_bvh', max_triangles_per_leaf=4))
        depth = manager.tree_depth
        assert manager.clamped_draw_depth(100) == depth
        assert manager.clamped_draw_depth(-3) == 0
        assert manager.clamped_draw_depth(1) == min(1, depth)

    def test_rejects_bad_faces(self, grid_mesh):
        vertices, faces = grid_mesh
        with pytest.raises(ValueError):
            AccelManager(vertices, faces + 1000)
