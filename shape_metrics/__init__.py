"""
Volumetric Shape Comparison Metrics
===================================

Compares a reference volume A against a compared volume B, each turned into a
shape by thresholding its integer intensities.

Module Organization:
-------------------
- core/: Membership, voxel classification, distance statistics, export, report
- utils/: Shared utilities (volume I/O, configuration)
"""

__version__ = "1.0.0"
