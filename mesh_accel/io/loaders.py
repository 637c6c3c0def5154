"""
Загрузчики мешей и извлечение треугольников в мировых координатах
"""
import numpy as np
from numpy.typing import NDArray
from pathlib import Path
from typing import Tuple, Dict, Any, Optional
import logging

from ..core.structures import TriangleSet

logger = logging.getLogger(__name__)


def load_mesh(file_path: str) -> Tuple[np.ndarray, np.ndarray, Dict[str, Any]]:
    """
    Универсальный загрузчик меша

    Args:
        file_path: Путь к файлу

    Returns:
        (vertices, faces, metadata)
        vertices: Массив вершин V×3, float64
        faces: Индексы треугольников F×3, int64
        metadata: Словарь с метаданными

    Поддерживаемые форматы:
        .npz: Массивы 'vertices' и 'faces'
        .txt/.tri: Один треугольник на строку (9 чисел)
        .ply/.obj/.stl/.off: Через open3d
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Файл не найден: {path}")

    ext = path.suffix.lower()
    metadata: Dict[str, Any] = {
        'format': ext.lstrip('.'),
        'source_path': path.as_posix(),
        'filename': path.name
    }

    logger.info(f"Loading {ext} file: {path.name}")

    if ext == '.npz':
        vertices, faces = _load_npz_format(path)
    elif ext in ['.txt', '.tri']:
        vertices, faces = _load_text_format(path)
    elif ext in ['.ply', '.obj', '.stl', '.off']:
        vertices, faces, meta = _load_open3d_format(path)
        metadata.update(meta)
    else:
        raise ValueError(f"Неподдерживаемый формат: {ext}")

    metadata['vertex_count'] = int(vertices.shape[0])
    metadata['triangle_count'] = int(faces.shape[0])

    logger.info(f"Loaded {faces.shape[0]:,} triangles ({vertices.shape[0]:,} vertices) from {path.name}")
    return vertices, faces, metadata


def _load_npz_format(path: Path) -> Tuple[np.ndarray, np.ndarray]:
    """Загрузка архива numpy с массивами vertices и faces"""
    with np.load(path.as_posix()) as data:
        missing = {'vertices', 'faces'} - set(data.files)
        if missing:
            raise ValueError(f"В файле {path} нет массивов: {', '.join(sorted(missing))}")
        vertices = np.asarray(data['vertices'], dtype=np.float64)
        faces = np.asarray(data['faces'], dtype=np.int64)
    return vertices, faces


def _load_text_format(path: Path) -> Tuple[np.ndarray, np.ndarray]:
    """Загрузка текстового формата: x0 y0 z0 x1 y1 z1 x2 y2 z2 на строку"""
    try:
        arr = np.loadtxt(path.as_posix(), dtype=np.float64, ndmin=2)
    except ValueError as e:
        raise ValueError(f"Ошибка чтения текстового файла {path}: {e}")

    if arr.size == 0:
        return np.zeros((0, 3)), np.zeros((0, 3), dtype=np.int64)

    if arr.shape[1] != 9:
        raise ValueError(f"В файле {path} ожидается 9 столбцов, получено {arr.shape[1]}")

    vertices = arr.reshape(-1, 3)
    faces = np.arange(vertices.shape[0], dtype=np.int64).reshape(-1, 3)
    return vertices, faces


def _load_open3d_format(path: Path) -> Tuple[np.ndarray, np.ndarray, dict]:
    """Загрузка PLY/OBJ/STL/OFF через open3d"""
    try:
        import open3d as o3d
    except ImportError:
        raise ImportError(
            f"Для формата {path.suffix} требуется пакет open3d\n"
            "Установите: pip install open3d"
        )

    mesh = o3d.io.read_triangle_mesh(path.as_posix())
    vertices = np.asarray(mesh.vertices, dtype=np.float64)
    faces = np.asarray(mesh.triangles, dtype=np.int64)

    metadata = {}
    if mesh.has_vertex_normals():
        metadata['normals'] = np.asarray(mesh.vertex_normals, dtype=np.float32)
        logger.debug("Found vertex normals")

    return vertices, faces, metadata


def validate_mesh(vertices: NDArray[np.floating],
                  faces: NDArray[np.integer],
                  min_triangles: int = 1) -> None:
    """
    Валидация загруженного меша

    Raises:
        ValueError: Если данные не соответствуют требованиям
    """
    if not isinstance(vertices, np.ndarray) or not isinstance(faces, np.ndarray):
        raise TypeError("Expected numpy.ndarray")

    if vertices.ndim != 2 or vertices.shape[1] != 3:
        raise ValueError(f"Vertices must have shape (N, 3), got {vertices.shape}")

    if faces.ndim != 2 or faces.shape[1] != 3:
        raise ValueError(f"Faces must have shape (F, 3), got {faces.shape}")

    if faces.shape[0] < min_triangles:
        raise ValueError(f"Too few triangles: {faces.shape[0]} < {min_triangles}")

    if faces.size and (faces.min() < 0 or faces.max() >= vertices.shape[0]):
        raise ValueError(
            f"Face indices out of range [0, {vertices.shape[0]}): "
            f"min={faces.min()}, max={faces.max()}"
        )

    if not np.isfinite(vertices).all():
        n_invalid = (~np.isfinite(vertices)).any(axis=1).sum()
        raise ValueError(f"Found {n_invalid} vertices with NaN or Inf coordinates")


def transform_positions(vertices: np.ndarray,
                        faces: np.ndarray,
                        matrix: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Позиции вершин треугольников в мировых координатах

    Args:
        vertices: Вершины в локальных координатах (V x 3)
        faces: Индексы треугольников (F x 3)
        matrix: Однородная матрица 4x4 (None - единичная)

    Returns:
        Массив (F, 3, 3) в порядке faces
    """
    local = np.asarray(vertices, dtype=np.float64)
    if matrix is not None:
        matrix = np.asarray(matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Transform must be a 4x4 matrix, got {matrix.shape}")
        local = local @ matrix[:3, :3].T + matrix[:3, 3]
    return local[np.asarray(faces, dtype=np.int64)]


def extract_triangles(vertices: np.ndarray,
                      faces: np.ndarray,
                      matrix: Optional[np.ndarray] = None) -> TriangleSet:
    """Извлечение треугольников меша в мировых координатах"""
    positions = transform_positions(vertices, faces, matrix)
    logger.debug(f"Extracted {positions.shape[0]} triangles")
    return TriangleSet(positions)
