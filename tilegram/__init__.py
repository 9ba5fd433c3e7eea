"""
Hexagonal tilegrams: maps of uniform tiles carrying evenly spread data.
"""

from .core import (
    Bounds, DistributionResult, Grouper, Hexagram, Hull, Record, Tile,
    build_hexagram, build_hull, distribute,
)
from .exceptions import (
    ConvergenceError, DistributionCancelled, EmptyGridError,
    MalformedBoundaryError, TilegramError,
)

__version__ = "0.1.0"

__all__ = ['Bounds', 'DistributionResult', 'Grouper', 'Hexagram', 'Hull',
           'Record', 'Tile', 'build_hexagram', 'build_hull', 'distribute',
           'ConvergenceError', 'DistributionCancelled', 'EmptyGridError',
           'MalformedBoundaryError', 'TilegramError']
