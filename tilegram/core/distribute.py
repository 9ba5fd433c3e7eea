"""
Weight redistribution between neighbouring tiles.

Heavy tiles hand records to lighter neighbours until the spread of tile
weights, relative to their mean, falls under a target ratio. The loop is
bounded by an iteration count and a wall-clock budget, because some targets
cannot be reached for a given grid.
"""

import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import structlog

from ..config import settings
from ..exceptions import ConvergenceError, DistributionCancelled

if TYPE_CHECKING:
    from .hexagram import Hexagram, Tile

logger = structlog.get_logger()


@dataclass
class DistributionResult:
    """Outcome of a successful redistribution."""

    converged: bool
    ratio: float
    mean: float
    iterations: int
    transfers: int
    elapsed: float


def transfer_order(source: "Tile", target: "Tile") -> list:
    """Records of ``source`` in the order they should move to ``target``.

    Records in the target's dominant group go first; within each half the
    lighter records go first so heavy ones stay near where they started.
    """
    target_group = target.group
    return sorted(source.records, key=lambda r: (r.group != target_group, r.weight))


def transfer(source: "Tile", target: "Tile", amount: float) -> float:
    """
    Move records from ``source`` to ``target`` worth at least ``amount``.

    Takes the shortest prefix of :func:`transfer_order` whose weight reaches
    ``amount``. Records are never split, so the last one may overshoot.

    Returns:
        The weight actually moved
    """
    moved = []
    total = 0.0
    for record in transfer_order(source, target):
        moved.append(record)
        total += record.weight
        if total >= amount:
            break
    moving = {id(r) for r in moved}
    source.records = [r for r in source.records if id(r) not in moving]
    target.records.extend(moved)
    return total


class Distributor:
    """Runs the redistribution loop over one hexagram.

    Attributes:
        hexagram: Tilegram whose tiles are rebalanced in place
        range_ratio: Target for ``(max - min) / mean`` of tile weights
        max_iterations: Rebalancing passes allowed before giving up
        max_seconds: Wall-clock budget, or None for no time limit
        cancel: Optional event checked once per pass
    """

    def __init__(self, hexagram: "Hexagram", range_ratio: float,
                 max_iterations: Optional[int] = None,
                 max_seconds: Optional[float] = None,
                 cancel: Optional[threading.Event] = None):
        if not range_ratio >= 0:
            raise ValueError(f"Range ratio must be non-negative, got {range_ratio}")
        if max_iterations is None:
            max_iterations = settings.distribute_max_iterations
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")
        if max_seconds is None:
            max_seconds = settings.distribute_max_seconds
        if max_seconds is not None and not max_seconds > 0:
            raise ValueError(f"max_seconds must be positive, got {max_seconds}")

        self.hexagram = hexagram
        self.range_ratio = float(range_ratio)
        self.max_iterations = int(max_iterations)
        self.max_seconds = max_seconds
        self.cancel = cancel
        self.transfers = 0

    def step(self, mean: float) -> int:
        """One rebalancing pass over every tile heavier than ``mean``."""
        transfers = 0
        for tile in self.hexagram.tiles:
            if tile.weight <= mean:
                continue
            for neighbor in self.hexagram.neighbors(tile):
                wdiff = tile.weight - neighbor.weight
                if wdiff > 0:
                    transfer(tile, neighbor, wdiff / 2)
                    transfers += 1
        return transfers

    def _fail(self, exc_type, reason: str, ratio: float, iterations: int,
              elapsed: float):
        logger.warning("Distribution stopped before convergence", reason=reason,
                       ratio=ratio, target=self.range_ratio,
                       iterations=iterations, elapsed=round(elapsed, 3))
        return exc_type(
            f"Range ratio {ratio:.6g} did not reach {self.range_ratio:.6g} "
            f"after {iterations} iterations ({reason})",
            ratio=ratio, target=self.range_ratio,
            iterations=iterations, elapsed=elapsed,
        )

    def run(self) -> DistributionResult:
        """
        Rebalance until the range ratio is at most the target.

        Returns:
            DistributionResult describing the converged state

        Raises:
            ConvergenceError: If the iteration or time budget runs out
            DistributionCancelled: If the cancel event gets set
        """
        started = time.monotonic()
        iterations = 0
        self.transfers = 0
        logger.info("Starting distribution", tiles=len(self.hexagram),
                    target=self.range_ratio, max_iterations=self.max_iterations)
        while True:
            ratio, mean = self.hexagram.range_ratio()
            elapsed = time.monotonic() - started
            logger.debug("Distribution progress", iteration=iterations,
                         ratio=ratio, target=self.range_ratio)
            if ratio <= self.range_ratio:
                break
            if self.cancel is not None and self.cancel.is_set():
                raise self._fail(DistributionCancelled, "cancelled",
                                 ratio, iterations, elapsed)
            if iterations >= self.max_iterations:
                raise self._fail(ConvergenceError, "iteration limit",
                                 ratio, iterations, elapsed)
            if self.max_seconds is not None and elapsed > self.max_seconds:
                raise self._fail(ConvergenceError, "time limit",
                                 ratio, iterations, elapsed)
            self.transfers += self.step(mean)
            iterations += 1

        result = DistributionResult(
            converged=True, ratio=ratio, mean=mean, iterations=iterations,
            transfers=self.transfers, elapsed=time.monotonic() - started,
        )
        logger.info("Distribution converged", ratio=ratio, iterations=iterations,
                    transfers=self.transfers)
        return result


def distribute(hexagram: "Hexagram", range_ratio: float,
               max_iterations: Optional[int] = None,
               max_seconds: Optional[float] = None,
               cancel: Optional[threading.Event] = None) -> DistributionResult:
    """
    Spread records among tiles until tile weights are even enough.

    Stops once ``(max - min) / mean`` of the tile weights is no greater than
    ``range_ratio``. Budgets default to the configured settings.

    Args:
        hexagram: Tilegram to rebalance in place
        range_ratio: Target range ratio, non-negative
        max_iterations: Maximum rebalancing passes
        max_seconds: Maximum wall-clock seconds
        cancel: Event that aborts the run when set

    Returns:
        DistributionResult for the converged hexagram
    """
    return Distributor(hexagram, range_ratio, max_iterations=max_iterations,
                       max_seconds=max_seconds, cancel=cancel).run()
