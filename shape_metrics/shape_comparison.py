"""
Volumetric Shape Comparison
Compares a reference volume A and a compared volume B, each defined by an
intensity threshold interval, with voxel partition counts and distances from
B to A.
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml

from shape_metrics.core.classifier import VoxelClassifier
from shape_metrics.core.distance_field import SUPPORTED_METRICS, compute_distance_field
from shape_metrics.core.distance_statistics import (
    DistanceStatisticsAggregator,
    select_points,
    select_points_from_grids,
)
from shape_metrics.core.errors import (
    DomainMismatchError,
    EmptyStatisticsInputError,
    ExportWriteError,
    InputNotFoundError,
    InputUnreadableError,
)
from shape_metrics.core.membership import ThresholdInterval
from shape_metrics.core.point_export import export_category_point_sets
from shape_metrics.core.report import ShapeComparisonReport
from shape_metrics.utils.config import ShapeMetricsConfig, load_config
from shape_metrics.utils.volume_io import VolumeLoader


class ShapeComparison:
    """Run the full comparison of two thresholded volumes."""

    def __init__(self,
                 config: Optional[ShapeMetricsConfig] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = config or ShapeMetricsConfig()
        self.logger = logger or logging.getLogger(__name__)

        workers = self.config.get('parallel', 'workers')
        self.loader = VolumeLoader(logger=self.logger)
        self.classifier = VoxelClassifier(workers=workers, logger=self.logger)
        self.aggregator = DistanceStatisticsAggregator(
            workers=workers,
            chunk_size=self.config.get('parallel', 'chunk_size'),
            logger=self.logger,
        )

    @property
    def interval_a(self) -> ThresholdInterval:
        return ThresholdInterval(self.config.get('thresholds', 'a_min'),
                                 self.config.get('thresholds', 'a_max'))

    @property
    def interval_b(self) -> ThresholdInterval:
        return ThresholdInterval(self.config.get('thresholds', 'b_min'),
                                 self.config.get('thresholds', 'b_max'))

    def run(self, path_a: Path, path_b: Path) -> ShapeComparisonReport:
        """
        Compare volume B against reference volume A.

        Args:
            path_a: Reference volume file
            path_b: Compared volume file

        Returns:
            ShapeComparisonReport

        Raises:
            InputNotFoundError: If a volume file does not exist
            InputUnreadableError: If a volume file cannot be decoded
            DomainMismatchError: If the two volumes have different domains
        """
        interval_a, interval_b = self.interval_a, self.interval_b
        tf_stats = self.config.get('report', 'tf_stats')
        export_points = self.config.get('export', 'point_sets')
        distance_enabled = self.config.get('distance', 'enabled')
        false_positives_only = self.config.get('distance', 'false_positives_only')
        output_dir = Path(self.config.get('export', 'output_dir'))

        self.logger.info("=" * 60)
        self.logger.info(f"Shape comparison: A={path_a} {interval_a}, B={path_b} {interval_b}")
        self.logger.info("=" * 60)

        grid_a, grid_b = self.loader.load_pair(path_a, path_b)
        if grid_a.domain != grid_b.domain:
            raise DomainMismatchError(
                f"Volume domains differ: A={grid_a.domain}, B={grid_b.domain}"
            )

        classification = self.classifier.classify(
            grid_a, interval_a, grid_b, interval_b, collect_points=export_points
        )

        report = ShapeComparisonReport(
            path_a=str(path_a),
            path_b=str(path_b),
            interval_a=interval_a,
            interval_b=interval_b,
            counts=classification.counts,
            tf_stats=tf_stats,
            distance_enabled=distance_enabled,
            false_positives_only=false_positives_only,
        )
        if tf_stats:
            report.metrics = self.classifier.precision_recall_f_measure(classification.counts)

        if export_points:
            try:
                export_category_point_sets(output_dir, classification, tf_naming=tf_stats,
                                           logger=self.logger)
            except ExportWriteError as e:
                self.logger.error(str(e))
                report.export_errors.append(str(e))

        if distance_enabled:
            field = compute_distance_field(grid_a, interval_a,
                                           metric=self.config.get('distance', 'metric'),
                                           logger=self.logger)
            if classification.points is not None:
                points = select_points(classification, false_positives_only)
            else:
                points = select_points_from_grids(grid_a, interval_a, grid_b, interval_b,
                                                  false_positives_only)
            try:
                report.distance = self.aggregator.aggregate(field, points)
            except EmptyStatisticsInputError as e:
                self.logger.warning(f"{e}; distance statistics are undefined")

        savers = []
        if self.config.get('export', 'save_json'):
            savers.append(report.save_json)
        if self.config.get('export', 'save_csv'):
            savers.append(report.save_csv)
        for save in savers:
            try:
                save(output_dir, logger=self.logger)
            except ExportWriteError as e:
                self.logger.error(str(e))
                report.export_errors.append(str(e))

        return report


def _setup_logging(config: ShapeMetricsConfig, log_file: Optional[Path] = None):
    """Configure console logging (stderr) and the optional log file."""
    handlers = [logging.StreamHandler(sys.stderr)]

    if log_file is None and config.get('logging', 'save_to_file'):
        log_dir = Path(config.get('logging', 'log_dir'))
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"shape_metrics_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, mode='w'))

    logging.basicConfig(
        level=getattr(logging, str(config.get('logging', 'level')).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Apply shape measures for comparing two volumetric images A and B '
                    '(shapes defined from thresholds).',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
It computes:
  - voxel counts of the partition (B in A, not B not A, B not in A, not B in A)
    and, with --displayTFstats, precision / recall / F-measure with A as reference
  - statistics of the Euclidean distance from voxels of B to shape A

Examples:
  vol-shape-metrics -a imageA.vol --aMin 128 --aMax 255 -b imageB.vol --bMin 128 --bMax 255 --distancesFromBnotInAOnly

  vol-shape-metrics -a eroded.vol --aMin 1 --aMax 255 -b cat10.vol --bMin 1 --bMax 255 --displayTFstats --exportSDP
        """
    )

    parser.add_argument('-a', '--volA', required=True, help='Reference volume A (.vol, .pgm3d, .npy or .npz)')
    parser.add_argument('-b', '--volB', required=True, help='Compared volume B (.vol, .pgm3d, .npy or .npz)')
    parser.add_argument('--aMin', type=int, help='Min threshold of a voxel in shape A (default 0)')
    parser.add_argument('--aMax', type=int, help='Max threshold of a voxel in shape A (default 128)')
    parser.add_argument('--bMin', type=int, help='Min threshold of a voxel in shape B (default 0)')
    parser.add_argument('--bMax', type=int, help='Max threshold of a voxel in shape B (default 128)')
    parser.add_argument('--noDistanceComparisons', action='store_true',
                        help='Skip the distance map computation')
    parser.add_argument('--distancesFromBnotInAOnly', action='store_true',
                        help='Distance statistics only for voxels of B which are not in A '
                             '(default: all voxels of B)')
    parser.add_argument('--displayTFstats', action='store_true',
                        help='Use true/false positive/negative naming with A as reference and '
                             'display precision/recall/F-measure')
    parser.add_argument('--exportSDP', action='store_true',
                        help='Export the voxels of each category to a point-set file')
    parser.add_argument('--config', help='YAML configuration file')
    parser.add_argument('--metric', choices=SUPPORTED_METRICS, help='Distance metric (default l2)')
    parser.add_argument('--workers', type=int, help='Number of worker threads (default 1)')
    parser.add_argument('--output-dir', help='Directory for exported point sets and tables')
    parser.add_argument('--save-json', action='store_true', help='Save the report as JSON')
    parser.add_argument('--save-csv', action='store_true', help='Save the report as CSV')
    parser.add_argument('--log-level', help='Logging level (DEBUG, INFO, WARNING, ERROR)')
    parser.add_argument('--log-file', help='Also write logs to this file')
    return parser


def config_from_args(args: argparse.Namespace) -> ShapeMetricsConfig:
    """YAML configuration (if any) overridden by command line values."""
    if args.config and not Path(args.config).is_file():
        raise InputNotFoundError(f"Configuration file not found: {args.config}")
    config = load_config(Path(args.config) if args.config else None)

    overrides = {
        ('thresholds', 'a_min'): args.aMin,
        ('thresholds', 'a_max'): args.aMax,
        ('thresholds', 'b_min'): args.bMin,
        ('thresholds', 'b_max'): args.bMax,
        ('distance', 'metric'): args.metric,
        ('parallel', 'workers'): args.workers,
        ('export', 'output_dir'): args.output_dir,
        ('logging', 'level'): args.log_level,
    }
    for keys, value in overrides.items():
        if value is not None:
            config.set(*keys, value=value)

    flags = {
        ('distance', 'enabled'): not args.noDistanceComparisons,
        ('distance', 'false_positives_only'): args.distancesFromBnotInAOnly,
        ('report', 'tf_stats'): args.displayTFstats,
        ('export', 'point_sets'): args.exportSDP,
        ('export', 'save_json'): args.save_json,
        ('export', 'save_csv'): args.save_csv,
    }
    for keys, value in flags.items():
        # a flag on the command line wins, an absent flag keeps the YAML value
        if value != ShapeMetricsConfig.DEFAULT_CONFIG[keys[0]][keys[1]]:
            config.set(*keys, value=value)

    if config.get('distance', 'metric') not in SUPPORTED_METRICS:
        raise ValueError(f"Unsupported distance metric '{config.get('distance', 'metric')}'")

    return config


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except (InputNotFoundError, OSError, ValueError, yaml.YAMLError) as e:
        logging.basicConfig(level=logging.ERROR)
        logging.getLogger(__name__).error(f"Invalid configuration: {e}")
        return 1

    _setup_logging(config, Path(args.log_file) if args.log_file else None)
    logger = logging.getLogger('shape_metrics')

    comparison = ShapeComparison(config, logger=logger)
    try:
        report = comparison.run(Path(args.volA), Path(args.volB))
    except (InputNotFoundError, InputUnreadableError, DomainMismatchError) as e:
        logger.error(str(e))
        return 1

    print(report.render())
    return 1 if report.export_errors else 0


if __name__ == "__main__":
    sys.exit(main())
