#!/usr/bin/env python
"""
Mesh Accel - Точка входа для CLI

Построение BVH, k-d дерева или октодерева по треугольникам меша
"""
import psutil
import os
import argparse
import logging
import sys
import time
from pathlib import Path

logger = logging.getLogger(__name__)

def setup_logging(log_path: Path, verbose: bool, quiet: bool = False):
    """Настраивает раздельное логирование в файл и консоль."""
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Уровень для файла всегда DEBUG, для консоли - в зависимости от флагов
    if verbose:
        console_level = logging.DEBUG
    elif quiet:
        console_level = logging.WARNING
    else:
        console_level = logging.INFO
    file_level = logging.DEBUG

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Убираем все предыдущие обработчики, чтобы избежать дублирования
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    file_handler = logging.FileHandler(log_path, mode='w', encoding='utf-8')
    file_handler.setLevel(file_level)
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    root_logger.addHandler(console_handler)

# Импорты модулей проекта
from mesh_accel import __version__
from mesh_accel.config import BuildConfig, TREE_TYPES, DEFAULT_DRAW_DEPTH
from mesh_accel.core.builder import TreeBuilder
from mesh_accel.io.loaders import load_mesh, validate_mesh, extract_triangles
from mesh_accel.io.exporters import export_boxes_json, export_leaves_json, export_statistics
from mesh_accel.visualization.tracer import TraceRecorder


def parse_arguments(argv=None) -> argparse.Namespace:
    """Парсинг аргументов командной строки"""
    parser = argparse.ArgumentParser(
        description='Mesh Accel - ускоряющие структуры по треугольникам меша',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
    Примеры использования:
    %(prog)s --input bunny.ply --tree hybrid_bvh --export boxes --draw-depth 6
    %(prog)s --input scene.npz --tree octree --max-depth 6 --stats
    %(prog)s --input mesh.obj --tree spatial_kdtree --trace-json
            """
    )

    parser.add_argument('--input', '-i', required=True, type=str,
                        help='Путь к входному мешу (.npz, .txt, .tri, .ply, .obj, .stl, .off)')
    parser.add_argument('--output', '-o', default='output', type=str,
                        help='Выходная директория (по умолчанию: output)')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--tree', choices=TREE_TYPES, default=None,
                        help='Тип структуры (по умолчанию: median_bvh)')

    parser.add_argument('--export', nargs='+',
                        choices=['none', 'boxes', 'leaves'],
                        default=['boxes'],
                        help='Что экспортировать (можно несколько)')
    parser.add_argument('--draw-depth', type=int, default=DEFAULT_DRAW_DEPTH,
                        help=f'Глубина экспорта боксов (по умолчанию: {DEFAULT_DRAW_DEPTH})')

    # Размеры узлов
    group_size = parser.add_argument_group('Размеры узлов')
    group_size.add_argument('--max-triangles', type=int,
                            help='Максимум треугольников в листе')
    group_size.add_argument('--max-depth', type=int,
                            help='Максимальная глубина (k-d деревья, октодерево)')
    group_size.add_argument('--min-size', type=float,
                            help='Минимальный размер узла (k-d деревья, октодерево)')

    # SAH
    group_algo = parser.add_argument_group('SAH (hybrid_bvh)')
    group_algo.add_argument('--sah-threshold', type=int,
                            help='SAH применяется к узлам не больше этого числа треугольников')
    group_algo.add_argument('--sah-bins', type=int,
                            help='Количество бинов для SAH')
    group_algo.add_argument('--median-candidate', action='store_true',
                            help='Сравнивать лучший SAH разрез с медианным и брать более дешёвый')

    # Визуализация и отладка
    group_debug = parser.add_argument_group('Визуализация и отладка')
    group_debug.add_argument('--trace-json', action='store_true',
                             help='Сохранить JSON трассировку построения')
    group_debug.add_argument('--stats-csv', action='store_true',
                             help='Сохранить CSV файл со статистикой по каждому разбиению')
    group_debug.add_argument('--stats', action='store_true',
                             help='Экспортировать статистику построения')
    group_debug.add_argument('--verbose', '-v', action='store_true',
                             help='Подробный вывод')
    group_debug.add_argument('--quiet', '-q', action='store_true',
                             help='Минимальный вывод')

    parser.add_argument('--config', type=str,
                        help='Путь к файлу конфигурации JSON')
    parser.add_argument('--save-config', type=str,
                        help='Сохранить текущую конфигурацию в файл')

    return parser.parse_args(argv)

def main(argv=None):
    """Основная функция"""
    args = parse_arguments(argv)
    output_dir = Path(args.output)
    log_file_path = output_dir / 'build_log.txt'
    setup_logging(log_file_path, args.verbose, args.quiet)
    logger.info(f"Detailed logs are being saved to {log_file_path}")
    process = psutil.Process(os.getpid())
    trace = None
    try:
        # ============ 1. Загрузка конфигурации ============
        base_config = None
        if args.config:
            logger.info(f"Loading config from {args.config}")
            base_config = BuildConfig.load(Path(args.config))
        config = BuildConfig.from_args(args, base=base_config)

        if args.save_config:
            config.save(Path(args.save_config))
            logger.info(f"Config saved to {args.save_config}")

        # ============ 2. Загрузка меша ============
        input_path = Path(args.input)
        if not input_path.exists():
            raise FileNotFoundError(f"Input file not found: {input_path}")

        start_time = time.perf_counter()
        vertices, faces, metadata = load_mesh(input_path.as_posix())
        validate_mesh(vertices, faces)
        triangles = extract_triangles(vertices, faces)
        load_time = time.perf_counter() - start_time

        logger.info(f"Loaded {len(triangles):,} triangles in {load_time:.2f}s")

        # ============ 3. Настройка трассировки ============
        if args.trace_json or args.stats_csv:
            trace = TraceRecorder()
            logger.info("Trace/Stats recorder enabled")

        if args.stats_csv:
            trace.start_stats_recording(output_dir / 'split_statistics.csv')

        # ============ 4. Построение дерева ============
        logger.info(f"Building {config.tree_type}...")
        builder = TreeBuilder(config, trace)
        cpu_time_before = process.cpu_times()

        start_time = time.perf_counter()
        tree = builder.build(triangles)
        build_time = time.perf_counter() - start_time

        cpu_time_after = process.cpu_times()
        cpu_time_sec = (cpu_time_after.user - cpu_time_before.user) + (cpu_time_after.system - cpu_time_before.system)
        peak_memory_mb = process.memory_info().rss / (1024 * 1024)

        tree_stats = tree.get_stats()
        logger.info(
            f"{config.tree_type} built in {build_time:.2f}s: "
            f"{tree_stats['node_count']} nodes, "
            f"{tree_stats['leaf_count']} leaves, "
            f"depth={tree_stats['depth']}"
        )

        if args.verbose:
            logger.debug(f"Leaf sizes: min={tree_stats['min_leaf_size']}, "
                         f"max={tree_stats['max_leaf_size']}, "
                         f"median={tree_stats['median_leaf_size']}, "
                         f"duplication={tree_stats['duplication_ratio']:.3f}")

        # ============ 5. Экспорт результатов ============
        output_dir.mkdir(parents=True, exist_ok=True)

        export_targets = [target for target in args.export if target != 'none']
        if 'boxes' in export_targets:
            export_boxes_json(tree, output_dir / 'boxes.json', args.draw_depth)
        if 'leaves' in export_targets:
            export_leaves_json(tree, output_dir / 'leaves.json')

        if args.trace_json and trace:
            trace.dump(output_dir / 'trace.json')

        if args.stats:
            export_statistics(
                tree, output_dir / 'statistics.json',
                build_time, peak_memory_mb, cpu_time_sec, config
            )

        # ============ 6. Итоговая информация ============
        logger.info("=" * 60)
        logger.info("Mesh Accel completed successfully!")
        logger.info(f"Input: {len(triangles):,} triangles from {input_path.name} "
                    f"({metadata.get('format', '?')})")
        logger.info(f"Output: {tree_stats['leaf_count']} leaves in {output_dir}")
        logger.info(f"Total time: {load_time + build_time:.2f}s")
        logger.info("=" * 60)

        return 0

    except KeyboardInterrupt:
        logger.info("Process interrupted by user")
        return 130

    except FileNotFoundError as e:
        logger.error(f"File error: {e}")
        return 1

    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        return 2

    except ImportError as e:
        logger.error(f"Missing dependency: {e}")
        return 3

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 255

    finally:
        if trace:
            trace.close()


if __name__ == '__main__':
    sys.exit(main())
