import numpy as np
import pytest

from mesh_accel.core.errors import GeometryError, RefitError
from mesh_accel.core.structures import AABB, Node, OctreeNode, Triangle, TriangleSet


class TestAABB:
    def test_surface_area_and_volume(self):
        box = AABB([0, 0, 0], [1, 2, 3])
        assert box.surface_area() == pytest.approx(2 * (2 + 6 + 3))
        assert box.volume() == pytest.approx(6.0)
        np.testing.assert_allclose(box.center, [0.5, 1.0, 1.5])
        np.testing.assert_allclose(box.extents, [0.5, 1.0, 1.5])

    def test_encapsulate(self):
        merged = AABB([0, 0, 0], [1, 1, 1]).encapsulate(AABB([-1, 0.5, 0.5], [0.5, 2, 0.8]))
        np.testing.assert_array_equal(merged.min_corner, [-1, 0, 0])
        np.testing.assert_array_equal(merged.max_corner, [1, 2, 1])

    def test_touching_boxes_intersect(self):
        a = AABB([0, 0, 0], [1, 1, 1])
        assert a.intersects(AABB([1, 0, 0], [2, 1, 1]))
        assert not a.intersects(AABB([1.001, 0, 0], [2, 1, 1]))

    def test_invalid_corners(self):
        with pytest.raises(ValueError):
            AABB([1, 0, 0], [0, 1, 1])
        with pytest.raises(ValueError):
            AABB([0, 0], [1, 1])

    def test_from_center_size(self):
        box = AABB.from_center_size([1, 1, 1], [2, 4, 6])
        np.testing.assert_allclose(box.min_corner, [0, -1, -2])
        np.testing.assert_allclose(box.max_corner, [2, 3, 4])


class TestTriangle:
    def test_bounds_and_centroid(self):
        tri = Triangle([0, 0, 0], [3, 0, 0], [0, 3, 3])
        np.testing.assert_allclose(tri.centroid, [1, 1, 1])
        np.testing.assert_allclose(tri.bounds.min_corner, [0, 0, 0])
        np.testing.assert_allclose(tri.bounds.max_corner, [3, 3, 3])

    def test_set_vertices_updates_bounds(self):
        tri = Triangle([0, 0, 0], [1, 0, 0], [0, 1, 0])
        tri.set_vertices([10, 10, 10], [11, 10, 10], [10, 11, 10])
        np.testing.assert_allclose(tri.bounds.min_corner, [10, 10, 10])
        np.testing.assert_allclose(tri.centroid, [31 / 3, 31 / 3, 10])


class TestTriangleSet:
    def test_none_source(self):
        with pytest.raises(GeometryError):
            TriangleSet(None)
        with pytest.raises(GeometryError):
            TriangleSet.from_triangles(None)

    def test_bad_shape(self):
        with pytest.raises(GeometryError):
            TriangleSet(np.zeros((4, 2, 3)))

    def test_non_finite(self):
        verts = np.zeros((2, 3, 3))
        verts[1, 0, 0] = np.nan
        with pytest.raises(GeometryError):
            TriangleSet(verts)

    def test_flat_rows_accepted(self):
        tris = TriangleSet(np.arange(18, dtype=float).reshape(2, 9))
        assert len(tris) == 2
        np.testing.assert_allclose(tris.centroids[0], [3, 4, 5])

    def test_empty(self):
        tris = TriangleSet([])
        assert len(tris) == 0
        assert tris.bounds_of(np.arange(0)).volume() == 0.0

    def test_from_triangles(self):
        tris = TriangleSet.from_triangles([
            Triangle([0, 0, 0], [1, 0, 0], [0, 1, 0]),
            Triangle([0, 0, 1], [1, 0, 1], [0, 1, 1]),
        ])
        assert len(tris) == 2
        np.testing.assert_allclose(tris.maxs[1], [1, 1, 1])
        np.testing.assert_allclose(tris.triangle(1).centroid, tris.centroids[1])

    def test_update_positions(self, quad_triangles):
        moved = quad_triangles.vertices + np.array([5.0, 0.0, 0.0])
        quad_triangles.update_positions(moved)
        np.testing.assert_allclose(quad_triangles.mins[:, 0], [5.0, 5.0])
        np.testing.assert_allclose(quad_triangles.centroids[0], [5 + 2 / 3, 1 / 3, 0])

    def test_update_positions_count_mismatch(self, quad_triangles):
        with pytest.raises(RefitError):
            quad_triangles.update_positions(quad_triangles.vertices[:1])


class TestNode:
    def _tree(self):
        box = AABB.empty()
        leaves = [Node(box, [i], level=2) for i in range(3)]
        inner = Node(box, [], level=1, children=(leaves[0], leaves[1]))
        other = Node(box, [3, 4], level=1)
        root = Node(box, [], level=0, children=(inner, other))
        return root

    def test_counts(self):
        root = self._tree()
        assert root.depth() == 2
        assert root.leaf_count() == 3
        assert root.node_count() == 5
        assert [leaf.triangle_count() for leaf in root.iter_leaves()] == [1, 1, 2]

    def test_iter_nodes_depth_limit(self):
        root = self._tree()
        assert len(list(root.iter_nodes(max_depth=0))) == 1
        assert len(list(root.iter_nodes(max_depth=1))) == 3
        assert len(list(root.iter_nodes())) == 5

    def test_negative_level(self):
        with pytest.raises(ValueError):
            Node(AABB.empty(), [], level=-1)

    def test_octree_node_requires_eight_children(self):
        node = OctreeNode(AABB.empty(), [])
        with pytest.raises(ValueError):
            node.set_children([OctreeNode(AABB.empty(), [])] * 3)
        node.set_children([OctreeNode(AABB.empty(), [], level=1) for _ in range(8)])
        assert node.depth() == 1
