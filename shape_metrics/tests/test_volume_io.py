"""Tests for volume loading and writing."""

import numpy as np
import pytest

from shape_metrics.core.errors import InputNotFoundError, InputUnreadableError
from shape_metrics.core.grid import VolumeGrid
from shape_metrics.utils.volume_io import VolumeLoader, read_pgm3d, read_vol, save_npy, save_vol


def test_vol_round_trip(tmp_path):
    values = np.random.default_rng(0).integers(0, 256, size=(4, 3, 2), dtype=np.uint8)
    path = save_vol(tmp_path / "volume.vol", VolumeGrid(values))
    grid = VolumeLoader().load(path)

    np.testing.assert_array_equal(grid.values, values)


def test_vol_voxels_are_x_fastest(tmp_path):
    path = tmp_path / "manual.vol"
    path.write_bytes(b"X: 4\nY: 3\nZ: 2\nVersion: 2\n.\n" + bytes(range(24)))
    values = read_vol(path)

    assert values.shape == (4, 3, 2)
    assert values[3, 2, 1] == 3 + 4 * 2 + 12 * 1
    assert values[1, 0, 0] == 1


def test_truncated_vol_is_unreadable(tmp_path):
    path = tmp_path / "short.vol"
    path.write_bytes(b"X: 4\nY: 4\nZ: 4\n.\n" + bytes(10))

    with pytest.raises(InputUnreadableError):
        VolumeLoader().load(path)


def test_npy_and_npz(tmp_path):
    values = np.arange(24, dtype=np.int32).reshape(2, 3, 4)
    npy = save_npy(tmp_path / "volume.npy", VolumeGrid(values))
    npz = tmp_path / "volume.npz"
    np.savez(npz, volume=values)
    loader = VolumeLoader()

    np.testing.assert_array_equal(loader.load(npy).values, values)
    np.testing.assert_array_equal(loader.load(npz).values, values)


def test_missing_file(tmp_path):
    with pytest.raises(InputNotFoundError):
        VolumeLoader().load(tmp_path / "nothing.vol")


@pytest.mark.parametrize("values", [
    np.zeros((3, 3), dtype=np.uint8),
    np.zeros((2, 2, 2), dtype=np.float32),
])
def test_invalid_arrays_are_unreadable(tmp_path, values):
    path = tmp_path / "bad.npy"
    np.save(path, values)

    with pytest.raises(InputUnreadableError):
        VolumeLoader().load(path)


def test_unsupported_suffix(tmp_path):
    path = tmp_path / "volume.raw"
    path.write_bytes(bytes(8))

    with pytest.raises(InputUnreadableError):
        VolumeLoader().load(path)


def test_environment_info():
    info = VolumeLoader().collect_environment_info()

    assert set(info['libraries']) == {'numpy', 'scipy', 'pyyaml'}


def test_ascii_pgm3d_with_comments(tmp_path):
    path = tmp_path / "manual.pgm3d"
    path.write_text("P2-3D\n# two by one by two\n2 1 2\n# max\n255\n0 1\n2 255\n")
    grid = VolumeLoader().load(path)

    assert grid.values.shape == (2, 1, 2)
    assert grid.values.dtype == np.uint8
    assert [grid((x, 0, z)) for z in range(2) for x in range(2)] == [0, 1, 2, 255]


def test_binary_pgm3d(tmp_path):
    path = tmp_path / "manual.pgm3d"
    path.write_bytes(b"P3D\n3 2 1\n255\n" + bytes([1, 2, 3, 4, 5, 6]))
    values = read_pgm3d(path)

    assert values.shape == (3, 2, 1)
    assert values[:, 0, 0].tolist() == [1, 2, 3]
    assert values[:, 1, 0].tolist() == [4, 5, 6]


def test_sixteen_bit_binary_pgm3d(tmp_path):
    path = tmp_path / "wide.pgm3d"
    path.write_bytes(b"P3D 2 1 1 1000\n" + (300).to_bytes(2, 'big') + (7).to_bytes(2, 'big'))
    values = read_pgm3d(path)

    assert values.dtype == np.uint16
    assert values.ravel().tolist() == [300, 7]


@pytest.mark.parametrize("content", [
    b"P5\n2 1 1\n255\n\x00\x01",
    b"P2-3D\n2 2 2\n255\n1 2 3",
    b"P2-3D\n1 1 1\n10\n11",
    b"P3D\n2 2\n",
])
def test_malformed_pgm3d_is_unreadable(tmp_path, content):
    path = tmp_path / "bad.pgm3d"
    path.write_bytes(content)

    with pytest.raises(InputUnreadableError):
        VolumeLoader().load(path)
