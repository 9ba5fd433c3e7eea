"""Error types raised by tilegram."""

from typing import Optional, Tuple


class TilegramError(Exception):
    """Base class for tilegram errors."""


class EmptyGridError(TilegramError):
    """No hexagon of the requested radius intersects the input data."""


class ConvergenceError(TilegramError):
    """Redistribution stopped before reaching the target range ratio.

    The hexagram keeps whatever partial balance was reached, so callers may
    inspect it and decide whether to accept it.
    """

    def __init__(self, message: str, ratio: float, target: float,
                 iterations: int, elapsed: float):
        super().__init__(message)
        self.ratio = ratio
        self.target = target
        self.iterations = iterations
        self.elapsed = elapsed


class DistributionCancelled(ConvergenceError):
    """Redistribution was cancelled through its cancellation flag."""


class MalformedBoundaryError(TilegramError):
    """Hull edges do not form disjoint simple cycles."""

    def __init__(self, message: str, point: Optional[Tuple[float, float]] = None):
        super().__init__(message)
        self.point = point
