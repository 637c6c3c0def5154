"""
Модуль ввода-вывода: загрузка мешей и экспорт деревьев
"""
from .loaders import (
    load_mesh,
    validate_mesh,
    extract_triangles,
    transform_positions
)
from .exporters import (
    clamp_draw_depth,
    collect_boxes,
    export_boxes_json,
    export_leaves_json,
    export_statistics
)

__all__ = [
    'load_mesh',
    'validate_mesh',
    'extract_triangles',
    'transform_positions',
    'clamp_draw_depth',
    'collect_boxes',
    'export_boxes_json',
    'export_leaves_json',
    'export_statistics'
]
