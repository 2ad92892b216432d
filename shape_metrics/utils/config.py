"""
Configuration module for shape comparison
=========================================

Centralized configuration management for thresholds, distance statistics,
report, export, parallelism and logging parameters.
"""

import copy
from typing import Dict, Any
from pathlib import Path
import yaml


class ShapeMetricsConfig:
    """Configuration for the shape comparison pipeline."""

    # Default configuration
    DEFAULT_CONFIG = {
        'thresholds': {
            'a_min': 0,
            'a_max': 128,
            'b_min': 0,
            'b_max': 128,
        },

        'distance': {
            'enabled': True,
            'false_positives_only': False,  # only voxels of B which are not in A
            'metric': 'l2',  # 'l2', 'l1' or 'linf'
        },

        'report': {
            'tf_stats': False,  # true/false positive naming + precision/recall/F-measure
        },

        'export': {
            'point_sets': False,
            'output_dir': '.',
            'save_json': False,
            'save_csv': False,
        },

        'parallel': {
            'workers': 1,
            'chunk_size': 1000000,
        },

        'logging': {
            'level': 'INFO',  # DEBUG, INFO, WARNING, ERROR
            'save_to_file': False,
            'log_dir': 'logs',
        }
    }

    def __init__(self, config_dict: Dict[str, Any] = None):
        """
        Initialize configuration.

        Args:
            config_dict: Optional configuration dictionary (overrides defaults)
        """
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)

        if config_dict:
            self._update_nested(self.config, config_dict)

    def _update_nested(self, base: Dict, update: Dict):
        """Recursively update nested dictionary."""
        for key, value in update.items():
            if isinstance(value, dict) and key in base and isinstance(base[key], dict):
                self._update_nested(base[key], value)
            else:
                base[key] = value

    def get(self, *keys):
        """Get nested configuration value."""
        value = self.config
        for key in keys:
            value = value[key]
        return value

    def set(self, *keys, value):
        """Set nested configuration value."""
        config = self.config
        for key in keys[:-1]:
            config = config[key]
        config[keys[-1]] = value

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> 'ShapeMetricsConfig':
        """Load configuration from YAML file."""
        with open(yaml_path, 'r') as f:
            config_dict = yaml.safe_load(f)
        return cls(config_dict)

    def to_yaml(self, yaml_path: Path):
        """Save configuration to YAML file."""
        with open(yaml_path, 'w') as f:
            yaml.dump(self.config, f, default_flow_style=False, indent=2)

    def to_dict(self) -> Dict[str, Any]:
        """Get configuration as dictionary."""
        return copy.deepcopy(self.config)


# Convenience function
def load_config(yaml_path: Path = None) -> ShapeMetricsConfig:
    """
    Load configuration from YAML or use defaults.

    Args:
        yaml_path: Optional path to YAML config file

    Returns:
        ShapeMetricsConfig instance
    """
    if yaml_path and Path(yaml_path).exists():
        return ShapeMetricsConfig.from_yaml(Path(yaml_path))
    else:
        return ShapeMetricsConfig()
