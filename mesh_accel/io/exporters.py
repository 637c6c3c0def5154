import json
import numpy as np
from pathlib import Path
from typing import Optional, List, Any
from dataclasses import asdict
import logging

from ..core.builder import AccelTree

logger = logging.getLogger(__name__)


def clamp_draw_depth(user_depth: int, tree_depth: int) -> int:
    """Ограничение запрошенной глубины отрисовки глубиной дерева"""
    return int(min(max(user_depth, 0), max(tree_depth, 0)))


def collect_boxes(tree: AccelTree, max_depth: Optional[int] = None) -> List[dict]:
    """
    Боксы узлов до заданной глубины (для отладочной отрисовки)

    Args:
        tree: Построенное дерево
        max_depth: Глубина отрисовки (None - всё дерево);
            ограничивается фактической глубиной дерева
    """
    tree_depth = tree.depth()
    depth_limit = tree_depth if max_depth is None else clamp_draw_depth(max_depth, tree_depth)

    boxes = []
    for node in tree.root.iter_nodes(max_depth=depth_limit):
        box = node.aabb.to_dict()
        box['level'] = int(node.level)
        box['leaf'] = node.is_leaf()
        box['count'] = node.triangle_count()
        boxes.append(box)
    return boxes


def export_boxes_json(tree: AccelTree,
                      output_file: Path,
                      max_depth: Optional[int] = None) -> None:
    """
    Экспорт боксов узлов в JSON

    Формат:
    {
        "tree_type": str,
        "depth": int,          # Фактическая глубина дерева
        "draw_depth": int,     # Глубина после ограничения
        "boxes": [{"min": [...], "max": [...], "level": int, "leaf": bool, "count": int}, ...]
    }
    """
    tree_depth = tree.depth()
    draw_depth = tree_depth if max_depth is None else clamp_draw_depth(max_depth, tree_depth)
    boxes = collect_boxes(tree, draw_depth)

    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump({
            'tree_type': tree.tree_type,
            'depth': tree_depth,
            'draw_depth': draw_depth,
            'boxes': boxes
        }, f, ensure_ascii=False, indent=2)

    logger.info(f"Exported {len(boxes)} boxes (depth <= {draw_depth}) to {output_file}")


def export_leaves_json(tree: AccelTree, output_file: Path) -> None:
    """
    Экспорт листьев в JSON: бокс, уровень и индексы треугольников
    """
    leaves_data = []
    for leaf in tree.iter_leaves():
        leaf_dict = leaf.aabb.to_dict()
        leaf_dict['level'] = int(leaf.level)
        leaf_dict['count'] = leaf.triangle_count()
        leaf_dict['triangles'] = leaf.indices.tolist()
        leaves_data.append(leaf_dict)

    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(leaves_data, f, ensure_ascii=False, indent=2)

    logger.info(f"Exported {len(leaves_data)} leaves to {output_file}")


def export_statistics(tree: AccelTree,
                      output_file: Path,
                      build_time: Optional[float] = None,
                      peak_memory_mb: Optional[float] = None,
                      cpu_time_sec: Optional[float] = None,
                      config: Optional[Any] = None) -> None:
    """
    Экспорт статистики построения дерева

    Args:
        tree: Построенное дерево
        output_file: Путь к выходному JSON файлу
        build_time: Время построения (секунды)
        peak_memory_mb: Потребление памяти процессом (МБ)
        cpu_time_sec: Процессорное время построения
        config: Конфигурация построителя
    """
    stats = tree.get_stats()
    leaf_sizes = [leaf.triangle_count() for leaf in tree.iter_leaves()]
    n_tris = tree.triangle_count

    if n_tris:
        bbox_min = tree.triangles.mins.min(axis=0).tolist()
        bbox_max = tree.triangles.maxs.max(axis=0).tolist()
    else:
        bbox_min = bbox_max = [0.0, 0.0, 0.0]

    result = {
        'input': {
            'total_triangles': n_tris,
            'bbox_min': bbox_min,
            'bbox_max': bbox_max
        },
        'tree': {
            'type': tree.tree_type,
            'depth': stats['depth'],
            'total_nodes': stats['node_count'],
            'leaf_nodes': stats['leaf_count'],
            'internal_nodes': stats['node_count'] - stats['leaf_count'],
            'total_references': stats['total_references'],
            'duplication_ratio': stats['duplication_ratio']
        },
        'leaves': {
            'min_size': min(leaf_sizes) if leaf_sizes else 0,
            'max_size': max(leaf_sizes) if leaf_sizes else 0,
            'mean_size': float(np.mean(leaf_sizes)) if leaf_sizes else 0,
            'median_size': float(np.median(leaf_sizes)) if leaf_sizes else 0,
            'std_size': float(np.std(leaf_sizes)) if leaf_sizes else 0
        },
        'builder': tree.build_stats
    }

    if build_time is not None:
        result['performance'] = {
            'build_time_wall_sec': build_time,
            'build_time_cpu_sec': cpu_time_sec,
            'peak_memory_mb': peak_memory_mb,
            'triangles_per_sec_wall': n_tris / build_time if build_time > 0 else 0,
            'triangles_per_sec_cpu': n_tris / cpu_time_sec if cpu_time_sec else 0
        }

    if config is not None:
        result['config'] = asdict(config)

    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(result, f, ensure_ascii=False, indent=2)

    logger.info(f"Exported statistics to {output_file}")
