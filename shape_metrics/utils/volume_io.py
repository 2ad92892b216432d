"""
Volume Loader
=============

Handles:
- Loading integer volumes from .npy, .npz, .vol and .pgm3d files
- Writing volumes back to .npy and .vol
- Library version tracking for run logs

The .vol format is a text header of ``Key: value`` lines terminated by a
line holding a single ``.``, followed by raw 8-bit voxels with x varying
fastest, then y, then z.

.pgm3d files start with a ``P2-3D`` (ASCII) or ``P3D`` (binary) magic, then
width, height, depth and the maximum value, with optional ``#`` comments,
followed by the voxels in the same order.
"""

import sys
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from datetime import datetime

import numpy as np
import scipy
import yaml

from shape_metrics.core.errors import InputNotFoundError, InputUnreadableError
from shape_metrics.core.grid import VolumeGrid

SUPPORTED_SUFFIXES = ('.npy', '.npz', '.vol', '.pgm3d')

VOL_HEADER_DEFAULTS = {
    'Center-X': 0,
    'Center-Y': 0,
    'Center-Z': 0,
    'Voxel-Size': 1,
    'Alpha-Color': 0,
    'Voxel-Endian': 0,
    'Int-Endian': '0123',
    'Version': 2,
}


class VolumeLoader:
    """
    Load and validate the two volumes of a shape comparison.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.environment_info: Dict[str, Any] = {}

    def collect_environment_info(self) -> Dict[str, Any]:
        """
        Collect library versions and Python info.

        Returns:
            Dictionary with library versions, Python info, system info
        """
        info = {
            'timestamp': datetime.now().isoformat(),
            'python_version': sys.version,
            'libraries': {
                'numpy': np.__version__,
                'scipy': scipy.__version__,
                'pyyaml': yaml.__version__,
            },
            'system': {
                'platform': sys.platform,
            }
        }

        self.environment_info = info
        self.logger.debug(f"Environment info collected: NumPy {np.__version__}, SciPy {scipy.__version__}")

        return info

    def load(self, path: Path) -> VolumeGrid:
        """
        Load a single volume with validation.

        Args:
            path: Path to a .npy, .npz, .vol or .pgm3d file

        Returns:
            VolumeGrid

        Raises:
            InputNotFoundError: If file doesn't exist
            InputUnreadableError: If file cannot be decoded into a 3D integer volume
        """
        path = Path(path)

        if not path.is_file():
            raise InputNotFoundError(f"Volume file not found: {path}")

        suffix = path.suffix.lower()
        if suffix not in SUPPORTED_SUFFIXES:
            raise InputUnreadableError(
                f"Unsupported volume format '{suffix}' for {path}, expected one of {SUPPORTED_SUFFIXES}"
            )

        self.logger.info(f"Loading volume from: {path}")

        try:
            if suffix == '.vol':
                values = read_vol(path)
            elif suffix == '.pgm3d':
                values = read_pgm3d(path)
            elif suffix == '.npz':
                with np.load(path, allow_pickle=False) as archive:
                    if not archive.files:
                        raise InputUnreadableError(f"No array stored in {path}")
                    values = archive[archive.files[0]]
            else:
                values = np.load(path, allow_pickle=False)
        except InputUnreadableError:
            raise
        except (OSError, ValueError) as e:
            raise InputUnreadableError(f"Failed to load volume {path}: {e}") from e

        if values.dtype == np.bool_:
            values = values.astype(np.uint8)

        try:
            grid = VolumeGrid(values)
        except ValueError as e:
            raise InputUnreadableError(f"Invalid volume {path}: {e}") from e

        self.logger.info(f"Volume loaded: shape {grid.values.shape}, dtype {grid.values.dtype}, "
                         f"range [{grid.values.min()}, {grid.values.max()}]")

        return grid

    def load_pair(self, path_a: Path, path_b: Path) -> Tuple[VolumeGrid, VolumeGrid]:
        """Load reference volume A and compared volume B."""
        self.collect_environment_info()
        return self.load(path_a), self.load(path_b)


def read_vol(path: Path) -> np.ndarray:
    """
    Decode a .vol file into an array indexed [x, y, z].

    Raises:
        InputUnreadableError: If the header or the voxel data is malformed
    """
    with open(path, 'rb') as f:
        data = f.read()

    header = {}
    pos = 0
    while True:
        end = data.find(b'\n', pos)
        if end < 0:
            raise InputUnreadableError(f"Unterminated .vol header in {path}")
        line = data[pos:end].strip()
        pos = end + 1
        if line == b'.':
            break
        if b':' not in line:
            raise InputUnreadableError(f"Malformed .vol header line {line!r} in {path}")
        key, value = line.split(b':', 1)
        header[key.decode('ascii', errors='replace').strip()] = value.decode('ascii', errors='replace').strip()

    try:
        nx, ny, nz = (int(header[axis]) for axis in ('X', 'Y', 'Z'))
        version = int(header.get('Version', 2))
    except (KeyError, ValueError) as e:
        raise InputUnreadableError(f"Invalid .vol header in {path}: {e}") from e

    if version not in (1, 2):
        raise InputUnreadableError(f"Unsupported .vol version {version} in {path}")

    n_voxels = nx * ny * nz
    body = data[pos:pos + n_voxels]
    if len(body) < n_voxels:
        raise InputUnreadableError(
            f"Truncated .vol data in {path}: expected {n_voxels} voxels, found {len(body)}"
        )

    values = np.frombuffer(body, dtype=np.uint8).reshape((nz, ny, nx))
    return np.ascontiguousarray(values.transpose(2, 1, 0))


def read_pgm3d(path: Path) -> np.ndarray:
    """
    Decode a .pgm3d file into an array indexed [x, y, z].

    Raises:
        InputUnreadableError: If the header or the voxel data is malformed
    """
    with open(path, 'rb') as f:
        data = f.read()

    # magic, width, height, depth, maxval; '#' starts a comment up to end of line
    tokens = []
    pos = 0
    while len(tokens) < 5:
        while pos < len(data) and data[pos:pos + 1].isspace():
            pos += 1
        if pos >= len(data):
            raise InputUnreadableError(f"Truncated .pgm3d header in {path}")
        if data[pos:pos + 1] == b'#':
            end = data.find(b'\n', pos)
            pos = len(data) if end < 0 else end + 1
            continue
        start = pos
        while pos < len(data) and not data[pos:pos + 1].isspace():
            pos += 1
        tokens.append(data[start:pos])

    magic = tokens[0]
    if magic not in (b'P2-3D', b'P3D'):
        raise InputUnreadableError(f"Unknown .pgm3d magic {magic!r} in {path}")
    try:
        nx, ny, nz, max_value = (int(t) for t in tokens[1:])
    except ValueError as e:
        raise InputUnreadableError(f"Invalid .pgm3d header in {path}: {e}") from e
    if min(nx, ny, nz) <= 0 or not 0 < max_value < 65536:
        raise InputUnreadableError(
            f"Invalid .pgm3d header in {path}: size {nx}x{ny}x{nz}, max value {max_value}"
        )

    n_voxels = nx * ny * nz
    if magic == b'P2-3D':
        try:
            values = np.array([int(t) for t in data[pos:].split()[:n_voxels]], dtype=np.int64)
        except ValueError as e:
            raise InputUnreadableError(f"Invalid .pgm3d voxel value in {path}: {e}") from e
    else:
        # a single whitespace byte separates the header from binary data
        dtype = np.dtype(np.uint8) if max_value < 256 else np.dtype('>u2')
        body = data[pos + 1:pos + 1 + n_voxels * dtype.itemsize]
        values = np.frombuffer(body, dtype=dtype)

    if values.size < n_voxels:
        raise InputUnreadableError(
            f"Truncated .pgm3d data in {path}: expected {n_voxels} voxels, found {values.size}"
        )
    values = values[:n_voxels]
    if values.min() < 0 or values.max() > max_value:
        raise InputUnreadableError(f"Voxel value outside [0, {max_value}] in {path}")

    values = values.reshape((nz, ny, nx)).astype(np.uint8 if max_value < 256 else np.uint16)
    return np.ascontiguousarray(values.transpose(2, 1, 0))


def save_vol(path: Path, grid: VolumeGrid) -> Path:
    """Write a volume with values in [0, 255] as a .vol file."""
    path = Path(path)
    values = grid.values
    if values.min() < 0 or values.max() > 255:
        raise ValueError(".vol files store 8-bit voxels; values must lie in [0, 255]")

    nx, ny, nz = values.shape
    header = dict(VOL_HEADER_DEFAULTS, X=nx, Y=ny, Z=nz)
    lines = [f"{key}: {header[key]}" for key in
             ('Center-X', 'Center-Y', 'Center-Z', 'X', 'Y', 'Z',
              'Voxel-Size', 'Alpha-Color', 'Voxel-Endian', 'Int-Endian', 'Version')]

    with open(path, 'wb') as f:
        f.write(("\n".join(lines) + "\n.\n").encode('ascii'))
        f.write(values.transpose(2, 1, 0).astype(np.uint8).tobytes())
    return path


def save_npy(path: Path, grid: VolumeGrid) -> Path:
    path = Path(path)
    np.save(path, grid.values)
    return path
