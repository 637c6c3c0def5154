"""
Ядро: модель данных и построители ускоряющих структур
"""
from .errors import MeshAccelError, GeometryError, RefitError
from .structures import AABB, Triangle, TriangleSet, Node, KDNode, OctreeNode

__all__ = [
    'MeshAccelError',
    'GeometryError',
    'RefitError',
    'AABB',
    'Triangle',
    'TriangleSet',
    'Node',
    'KDNode',
    'OctreeNode'
]
