"""
Shape Comparison Report
=======================

One commented header block and one whitespace-separated data line:

- eight category/total counts
- precision, recall, F-measure (true/false statistics mode)
- max, mean, variance, median distance and the farthest voxel (distance mode)

Undefined values are printed as ``nan``.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from shape_metrics.core.classifier import ConfusionCounts
from shape_metrics.core.distance_statistics import DistanceStatistics
from shape_metrics.core.errors import ExportWriteError
from shape_metrics.core.membership import ThresholdInterval

RAW_COUNT_COLUMNS = [
    '#(Voxels of B in A)', '#(Voxels not in B and not in A)', '#(Voxels of B not in A)',
    '#(Voxels not in B but in A)', '#(Voxels in A)', '#(Voxels in B)',
    '#(Voxels not in A)', '#(Voxels not in B)',
]

TF_COUNT_COLUMNS = [
    '#TruePositive', '#TrueNegative', '#FalsePositive', '#FalseNegative',
    '#TotalInA', '#TotalInB', '#TotalComplementOfA', '#TotalComplementOfB',
]

TF_METRIC_COLUMNS = ['Precision', 'Recall', 'F-Measure']

DISTANCE_COLUMNS = [
    'Max(MinDistance(B to A))', 'Mean(MinDistance(B to A))', 'Variance(MinDistance(B to A))',
    'Median(MinDistance(B to A))', 'FarthestPointOfB(x y z)',
]


def format_value(value) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return 'nan'
        return f"{value:g}"
    return str(value)


@dataclass
class ShapeComparisonReport:
    """Everything printed or saved at the end of a comparison."""
    path_a: str
    path_b: str
    interval_a: ThresholdInterval
    interval_b: ThresholdInterval
    counts: ConfusionCounts
    tf_stats: bool = False
    metrics: Optional[Dict[str, float]] = None
    distance_enabled: bool = True
    false_positives_only: bool = False
    distance: Optional[DistanceStatistics] = None
    export_errors: List[str] = field(default_factory=list)

    def header_lines(self) -> List[str]:
        columns = list(TF_COUNT_COLUMNS + TF_METRIC_COLUMNS if self.tf_stats else RAW_COUNT_COLUMNS)
        if self.distance_enabled:
            columns += DISTANCE_COLUMNS
        title = '# ' + ' '.join(columns)
        if self.distance_enabled and self.false_positives_only:
            title += ' *** for parts of B which are not in A only ***'
        return [
            f"# Shape comparison with reference shape A: {self.path_a} "
            f"(threshold min: {self.interval_a.lo}, max: {self.interval_a.hi})",
            f"# and compared shape B: {self.path_b} "
            f"(threshold min: {self.interval_b.lo}, max: {self.interval_b.hi})",
            title,
        ]

    def values(self) -> List[Any]:
        row: List[Any] = list(self.counts.as_row())
        if self.tf_stats:
            metrics = self.metrics or {}
            row += [metrics.get(name, float('nan')) for name in ('precision', 'recall', 'f_measure')]
        if self.distance_enabled:
            if self.distance is None:
                row += [float('nan')] * 7
            else:
                stat = self.distance.statistic
                row += [stat.max, stat.mean, stat.variance, stat.median]
                row += list(self.distance.argmax_point)
        return row

    def data_line(self) -> str:
        return ' '.join(format_value(v) for v in self.values())

    def render(self) -> str:
        return "\n".join(self.header_lines() + [self.data_line()])

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'reference': {'path': self.path_a, 'threshold': list(self.interval_a)},
            'compared': {'path': self.path_b, 'threshold': list(self.interval_b)},
            'counts': self.counts.to_dict(),
        }
        if self.tf_stats:
            data['metrics'] = dict(self.metrics or {})
        if self.distance_enabled:
            data['distance'] = {
                'false_positives_only': self.false_positives_only,
                'statistics': self.distance.to_dict() if self.distance else None,
            }
        if self.export_errors:
            data['export_errors'] = list(self.export_errors)
        return data

    def save_json(self, output_dir: Path, logger: Optional[logging.Logger] = None) -> Path:
        """Save the report as JSON (NaN and infinite values written as null)."""
        logger = logger or logging.getLogger(__name__)
        json_path = Path(output_dir) / 'shape_metrics.json'
        try:
            Path(output_dir).mkdir(parents=True, exist_ok=True)
            with open(json_path, 'w') as f:
                json.dump(_non_finite_to_none(self.to_dict()), f, indent=2, allow_nan=False)
        except OSError as e:
            raise ExportWriteError(f"Failed to write report {json_path}: {e}") from e
        logger.info(f"Metrics JSON saved to: {json_path}")
        return json_path

    def save_csv(self, output_dir: Path, logger: Optional[logging.Logger] = None) -> Path:
        """Save the report as a two-column metric,value table."""
        logger = logger or logging.getLogger(__name__)
        csv_path = Path(output_dir) / 'shape_metrics.csv'

        rows = [f"{key},{value}\n" for key, value in self.counts.to_dict().items()]
        if self.tf_stats:
            for key, value in (self.metrics or {}).items():
                rows.append(f"{key},{format_value(value)}\n")
        if self.distance_enabled:
            stats = self.distance.to_dict() if self.distance else {}
            for key in ('max', 'mean', 'variance', 'median'):
                rows.append(f"distance_{key},{format_value(stats.get(key, float('nan')))}\n")
            farthest = stats.get('farthest_point')
            rows.append(f"farthest_point,{' '.join(map(str, farthest)) if farthest else 'nan'}\n")

        try:
            Path(output_dir).mkdir(parents=True, exist_ok=True)
            with open(csv_path, 'w') as f:
                f.write("metric,value\n")
                f.writelines(rows)
        except OSError as e:
            raise ExportWriteError(f"Failed to write report {csv_path}: {e}") from e

        logger.info(f"Metrics table saved to: {csv_path}")
        return csv_path


def _non_finite_to_none(obj):
    if isinstance(obj, float) and not math.isfinite(obj):
        return None
    if isinstance(obj, dict):
        return {k: _non_finite_to_none(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_non_finite_to_none(v) for v in obj]
    return obj
