"""
Exceptions raised by the shape comparison pipeline.

Input and domain errors are fatal and abort before any computation.
Statistical degeneracies (empty statistics input) are caught by the driver
and reported as undefined values.
"""


class InputNotFoundError(FileNotFoundError):
    """A volume file does not exist."""


class InputUnreadableError(ValueError):
    """A volume file exists but cannot be decoded into a 3D grid."""


class DomainMismatchError(ValueError):
    """The two grids do not share the same iteration domain."""


class EmptyStatisticsInputError(ValueError):
    """No point was selected for distance statistics."""


class ExportWriteError(OSError):
    """A point-set file could not be written."""
