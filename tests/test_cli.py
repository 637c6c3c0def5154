import json
import logging

import numpy as np
import pytest

import main as cli

from conftest import make_random_triangles


@pytest.fixture(autouse=True)
def reset_root_logger():
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)


@pytest.fixture
def mesh_file(tmp_path):
    positions = make_random_triangles(300, seed=9)
    path = tmp_path / 'scene.npz'
    np.savez(path, vertices=positions.reshape(-1, 3),
             faces=np.arange(900).reshape(-1, 3))
    return path


def test_parse_arguments_defaults():
    args = cli.parse_arguments(['--input', 'mesh.npz'])
    assert args.tree is None
    assert args.export == ['boxes']
    assert args.draw_depth == 10
    assert args.output == 'output'


@pytest.mark.parametrize("tree_type", ['median_bvh', 'hybrid_bvh', 'centroid_kdtree',
                                       'spatial_kdtree', 'octree'])
def test_build_and_export(tmp_path, mesh_file, tree_type):
    out = tmp_path / 'out'
    code = cli.main(['--input', str(mesh_file), '--output', str(out), '--tree', tree_type,
                     '--export', 'boxes', 'leaves', '--draw-depth', '3',
                     '--max-triangles', '16', '--stats', '-q'])
    assert code == 0

    boxes = json.loads((out / 'boxes.json').read_text(encoding='utf-8'))
    assert boxes['tree_type'] == tree_type
    assert boxes['draw_depth'] == min(3, boxes['depth'])

    leaves = json.loads((out / 'leaves.json').read_text(encoding='utf-8'))
    assert {i for leaf in leaves for i in leaf['triangles']} == set(range(300))

    stats = json.loads((out / 'statistics.json').read_text(encoding='utf-8'))
    assert stats['config']['max_triangles_per_leaf'] == 16
    assert (out / 'build_log.txt').exists()


def test_trace_outputs(tmp_path, mesh_file):
    out = tmp_path / 'out'
    code = cli.main(['--input', str(mesh_file), '--output', str(out), '--tree', 'hybrid_bvh',
                     '--export', 'none', '--trace-json', '--stats-csv', '-q'])
    assert code == 0
    assert not (out / 'boxes.json').exists()
    trace = json.loads((out / 'trace.json').read_text(encoding='utf-8'))
    assert trace['split_decisions']
    assert (out / 'split_statistics.csv').exists()


def test_config_round_trip(tmp_path, mesh_file):
    out = tmp_path / 'out'
    config_path = tmp_path / 'config.json'
    code = cli.main(['--input', str(mesh_file), '--output', str(out), '--tree', 'octree',
                     '--max-depth', '3', '--save-config', str(config_path), '-q'])
    assert code == 0
    saved = json.loads(config_path.read_text(encoding='utf-8'))
    assert saved['tree_type'] == 'octree'
    assert saved['max_depth'] == 3

    code = cli.main(['--input', str(mesh_file), '--output', str(out),
                     '--config', str(config_path), '--stats', '-q'])
    assert code == 0
    stats = json.loads((out / 'statistics.json').read_text(encoding='utf-8'))
    assert stats['tree']['type'] == 'octree'
    assert stats['tree']['depth'] <= 3


def test_missing_input(tmp_path):
    code = cli.main(['--input', str(tmp_path / 'missing.npz'), '--output', str(tmp_path), '-q'])
    assert code == 1


def test_invalid_option(tmp_path, mesh_file):
    code = cli.main(['--input', str(mesh_file), '--output', str(tmp_path),
                     '--max-triangles', '0', '-q'])
    assert code == 2


def test_invalid_mesh(tmp_path):
    path = tmp_path / 'broken.npz'
    np.savez(path, vertices=np.zeros((3, 3)), faces=np.array([[0, 1, 7]]))
    code = cli.main(['--input', str(path), '--output', str(tmp_path / 'out'), '-q'])
    assert code == 2
