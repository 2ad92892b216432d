"""
Point-Set Export
================

Flat text point sets: one comment header line, then one ``x y z`` line per
point. Used to export the voxels of each category for external viewers.
"""

import logging
from pathlib import Path
from typing import Dict, Optional

import numpy as np

from shape_metrics.core.classifier import ClassificationResult, VoxelCategory
from shape_metrics.core.errors import ExportWriteError

POINT_SET_HEADER = "# Set of 3d points with format: x y z"

TF_FILENAMES: Dict[VoxelCategory, str] = {
    VoxelCategory.B_IN_A: 'truePos.sdp',
    VoxelCategory.NOT_B_NOT_A: 'trueNeg.sdp',
    VoxelCategory.B_NOT_IN_A: 'falsePos.sdp',
    VoxelCategory.NOT_B_IN_A: 'falseNeg.sdp',
}

RAW_FILENAMES: Dict[VoxelCategory, str] = {
    VoxelCategory.B_IN_A: 'inBinA.sdp',
    VoxelCategory.NOT_B_NOT_A: 'notinBnotinA.sdp',
    VoxelCategory.B_NOT_IN_A: 'inBnotinA.sdp',
    VoxelCategory.NOT_B_IN_A: 'notinBinA.sdp',
}


def export_point_set(path: Path, points: np.ndarray) -> Path:
    """
    Write points to a text file.

    Raises:
        ExportWriteError: If the file cannot be written
    """
    path = Path(path)
    points = np.asarray(points, dtype=np.int64).reshape(-1, 3)
    try:
        with open(path, 'w') as f:
            f.write(POINT_SET_HEADER + "\n")
            if len(points):
                np.savetxt(f, points, fmt='%d', delimiter=' ')
    except OSError as e:
        raise ExportWriteError(f"Failed to write point set {path}: {e}") from e
    return path


def read_point_set(path: Path) -> np.ndarray:
    """Parse a point-set file back into an (n, 3) int64 array."""
    rows = []
    with open(path, 'r') as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            rows.append([int(v) for v in line.split()[:3]])
    return np.array(rows, dtype=np.int64).reshape(-1, 3)


def export_category_point_sets(output_dir: Path,
                               classification: ClassificationResult,
                               tf_naming: bool = False,
                               logger: Optional[logging.Logger] = None) -> Dict[VoxelCategory, Path]:
    """
    Export the voxels of each category to its own point-set file.

    Args:
        output_dir: Destination directory
        classification: Classification with collected points
        tf_naming: Use truePos/trueNeg/falsePos/falseNeg file names
        logger: Optional logger instance

    Returns:
        Dictionary mapping category -> written path
    """
    logger = logger or logging.getLogger(__name__)
    output_dir = Path(output_dir)
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ExportWriteError(f"Failed to create export directory {output_dir}: {e}") from e

    filenames = TF_FILENAMES if tf_naming else RAW_FILENAMES
    written = {}
    for category, filename in filenames.items():
        points = classification.points_of(category)
        written[category] = export_point_set(output_dir / filename, points)
        logger.info(f"Exported {classification.counts.count(category)} voxels of {category.value} "
                    f"to {written[category]}")
    return written
