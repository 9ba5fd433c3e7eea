"""
Outline merging for groups of adjoining polygons.

Every polygon edge goes into a directed graph. When two polygons share a
border they walk it in opposite directions, so the second copy of the edge
cancels the first and only the outer boundary survives. Vertices closer than
a tolerance are snapped together first, which stops independently digitised
borders from leaving slivers behind.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import structlog
from shapely.geometry import Polygon
from shapely.ops import unary_union

from ..exceptions import MalformedBoundaryError
from .geometry import (
    Point, Ring, close_ring, distance, iter_rings, remove_collinear, signed_area,
)

logger = structlog.get_logger()


class HullGraph:
    """Directed boundary edges of a set of polygons.

    Maps each start point to an insertion-ordered set of end points. Built
    and consumed within a single hull computation.
    """

    def __init__(self, tolerance: float = 0.0):
        if not tolerance >= 0:
            raise ValueError(f"Tolerance must be non-negative, got {tolerance}")
        self.tolerance = float(tolerance)
        self._graph: Dict[Point, Dict[Point, None]] = {}
        self._refs: Dict[Point, int] = {}
        self._cells: Dict[Optional[Tuple[int, int]], List[Point]] = {}

    def __len__(self) -> int:
        return sum(len(ends) for ends in self._graph.values())

    def __repr__(self) -> str:
        lines = ["HullGraph("]
        for start, ends in self._graph.items():
            for end in ends:
                lines.append(f"    {start} -> {end}")
        lines.append(")")
        return "\n".join(lines)

    def has_edge(self, start: Point, end: Point) -> bool:
        return end in self._graph.get(start, ())

    def points(self) -> List[Point]:
        """Points currently referenced by at least one edge."""
        return list(self._refs)

    def _cell(self, point: Point) -> Optional[Tuple[int, int]]:
        """Grid cell of ``point``, or None when it falls off the float range."""
        x = point[0] / self.tolerance
        y = point[1] / self.tolerance
        if not (math.isfinite(x) and math.isfinite(y)):
            return None
        return (math.floor(x), math.floor(y))

    def _candidates(self, point: Point) -> Iterable[Point]:
        cell = self._cell(point)
        if cell is None:
            return list(self._refs)
        cx, cy = cell
        found = list(self._cells.get(None, ()))
        for i in (cx - 1, cx, cx + 1):
            for j in (cy - 1, cy, cy + 1):
                found.extend(self._cells.get((i, j), ()))
        return found

    def snap(self, point: Point) -> Point:
        """Return the existing point nearest ``point`` within tolerance.

        A point already in the graph is returned unchanged, as is any point
        with no existing point closer than the tolerance.
        """
        if point in self._refs or self.tolerance == 0:
            return point
        best, best_dist = point, self.tolerance
        for candidate in self._candidates(point):
            d = distance(candidate, point)
            if d < best_dist:
                best, best_dist = candidate, d
        return best

    def _ref(self, point: Point) -> None:
        count = self._refs.get(point, 0)
        if count == 0 and self.tolerance > 0:
            self._cells.setdefault(self._cell(point), []).append(point)
        self._refs[point] = count + 1

    def _unref(self, point: Point) -> None:
        count = self._refs[point] - 1
        if count:
            self._refs[point] = count
            return
        del self._refs[point]
        if self.tolerance > 0:
            cell = self._cell(point)
            self._cells[cell].remove(point)
            if not self._cells[cell]:
                del self._cells[cell]

    def _link(self, start: Point, end: Point) -> None:
        self._graph.setdefault(start, {})[end] = None
        self._ref(start)
        self._ref(end)

    def _unlink(self, start: Point, end: Point) -> None:
        ends = self._graph[start]
        del ends[end]
        if not ends:
            del self._graph[start]
        self._unref(start)
        self._unref(end)

    def add_edge(self, start: Point, end: Point) -> None:
        """Insert the directed edge ``start -> end``.

        An edge whose reverse, or whose exact copy, is already present
        cancels that edge instead of being added.
        """
        start = self.snap(tuple(start))
        end = self.snap(tuple(end))
        if start == end:
            return
        if self.has_edge(end, start):
            self._unlink(end, start)
            return
        if self.has_edge(start, end):
            self._unlink(start, end)
            return
        self._link(start, end)

    def add_ring(self, ring: Iterable[Point]) -> None:
        ring = [tuple(p) for p in ring]
        if len(ring) < 2:
            return
        for i in range(len(ring) - 1):
            self.add_edge(ring[i], ring[i + 1])
        if ring[0] != ring[-1]:
            self.add_edge(ring[-1], ring[0])

    def add_polygon(self, polygon) -> None:
        """Add every ring of a shapely polygon or a sequence of rings."""
        for ring in iter_rings(polygon):
            self.add_ring(ring)

    def _ring(self) -> Ring:
        start = next(iter(self._graph))
        ring = [start]
        p = start
        while True:
            ends = self._graph.get(p, {})
            if len(ends) != 1:
                logger.error("Malformed hull boundary", point=p, out_degree=len(ends))
                raise MalformedBoundaryError(
                    f"Point {p} has {len(ends)} outgoing edges; the input polygons "
                    "are self-intersecting or not properly closed",
                    point=p,
                )
            nxt = next(iter(ends))
            self._unlink(p, nxt)
            ring.append(nxt)
            p = nxt
            if p == start:
                return ring

    def rings(self) -> List[Ring]:
        """Extract and consume all closed rings left in the graph."""
        rings = []
        while self._graph:
            rings.append(self._ring())
        return rings


@dataclass
class Hull:
    """Merged boundary rings of a set of polygons.

    Counter-clockwise rings are outer boundaries, clockwise rings are holes.
    Every ring is closed (first point repeated at the end).
    """

    rings: List[Ring] = field(default_factory=list)
    tolerance: float = 0.0

    def __len__(self) -> int:
        return len(self.rings)

    def __iter__(self):
        return iter(self.rings)

    @property
    def is_empty(self) -> bool:
        return not self.rings

    @property
    def area(self) -> float:
        return sum(signed_area(r[:-1]) for r in self.rings)

    @property
    def geometry(self):
        """Shapely (Multi)Polygon of the shells minus the holes."""
        shells = [Polygon(r) for r in self.rings if signed_area(r[:-1]) > 0]
        holes = [Polygon(r) for r in self.rings if signed_area(r[:-1]) < 0]
        merged = unary_union(shells)
        if holes:
            merged = merged.difference(unary_union(holes))
        return merged


def build_hull(polygons: Iterable, tolerance: float = 0.0, simplify: bool = True) -> Hull:
    """
    Merge polygons into their outer boundary.

    Args:
        polygons: Shapely polygons or sequences of coordinate rings
        tolerance: Distance under which two vertices count as the same point
        simplify: Drop collinear vertices left over from merged straight borders

    Returns:
        Hull holding one closed ring per boundary cycle

    Raises:
        ValueError: If tolerance is negative
        MalformedBoundaryError: If the remaining edges do not form simple cycles
    """
    graph = HullGraph(tolerance)
    n = 0
    for polygon in polygons:
        graph.add_polygon(polygon)
        n += 1
    rings = graph.rings()
    if simplify:
        rings = [remove_collinear(r) for r in rings]
    else:
        rings = [close_ring(r) for r in rings]
    logger.debug("Hull built", polygons=n, rings=len(rings), tolerance=tolerance)
    return Hull(rings=rings, tolerance=float(tolerance))
