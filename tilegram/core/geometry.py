"""Geometry primitives shared by the grid, distributor and hull builder.

Points are plain ``(x, y)`` tuples so they can be used as dictionary keys.
Polygons handed around internally are lists of rings; shapely geometries are
accepted at the edges of the package and unpacked with :func:`iter_rings`.
"""

import math
from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple

from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.geometry.polygon import orient

Point = Tuple[float, float]
Ring = List[Point]

SQRT3 = math.sqrt(3)


@dataclass
class Bounds:
    """Axis-aligned bounding box.

    ``intersects`` follows R-tree overlap semantics: two boxes intersect only
    when they overlap by a strictly positive extent on both axes.
    """

    minx: float = math.inf
    miny: float = math.inf
    maxx: float = -math.inf
    maxy: float = -math.inf

    @classmethod
    def from_tuple(cls, bounds: Sequence[float]) -> "Bounds":
        minx, miny, maxx, maxy = bounds
        return cls(float(minx), float(miny), float(maxx), float(maxy))

    @classmethod
    def around(cls, point: Point) -> "Bounds":
        """Degenerate box holding a single point."""
        x, y = point
        return cls(x, y, x, y)

    @property
    def is_empty(self) -> bool:
        return self.minx > self.maxx or self.miny > self.maxy

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.minx, self.miny, self.maxx, self.maxy)

    def extend(self, other: "Bounds") -> None:
        """Grow in place to also cover ``other``."""
        self.minx = min(self.minx, other.minx)
        self.miny = min(self.miny, other.miny)
        self.maxx = max(self.maxx, other.maxx)
        self.maxy = max(self.maxy, other.maxy)

    def expanded(self, distance: float) -> "Bounds":
        """Return a copy grown by ``distance`` on every side."""
        return Bounds(self.minx - distance, self.miny - distance,
                      self.maxx + distance, self.maxy + distance)

    def intersects(self, other: "Bounds") -> bool:
        return (self.minx < other.maxx and other.minx < self.maxx
                and self.miny < other.maxy and other.miny < self.maxy)


def distance(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def hexagon_vertices(center: Point, radius: float) -> Ring:
    """Vertices of the regular hexagon around ``center``.

    Vertex ``i`` sits at angle ``i * 60`` degrees, so the ring runs
    counter-clockwise starting from the rightmost point.
    """
    cx, cy = center
    return [
        (cx + radius * math.cos(math.pi * 2 / 6 * i),
         cy + radius * math.sin(math.pi * 2 / 6 * i))
        for i in range(6)
    ]


def hexagon_bounds(center: Point, radius: float) -> Bounds:
    """Box with half-width ``1.5 r`` and half-height ``r * sqrt(3) / 2``."""
    cx, cy = center
    half_width = 1.5 * radius
    half_height = radius / 2 * SQRT3
    return Bounds(cx - half_width, cy - half_height,
                  cx + half_width, cy + half_height)


def signed_area(ring: Sequence[Point]) -> float:
    """Shoelace area; positive for counter-clockwise rings."""
    n = len(ring)
    if n < 3:
        return 0.0
    area = 0.0
    for i in range(n):
        x1, y1 = ring[i]
        x2, y2 = ring[(i + 1) % n]
        area += x1 * y2 - x2 * y1
    return area / 2


def close_ring(ring: Sequence[Point]) -> Ring:
    ring = [tuple(p) for p in ring]
    if ring and ring[0] != ring[-1]:
        ring.append(ring[0])
    return ring


def open_ring(ring: Sequence[Point]) -> Ring:
    ring = [tuple(p) for p in ring]
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring = ring[:-1]
    return ring


def remove_collinear(ring: Sequence[Point], eps: float = 1e-9) -> Ring:
    """Drop vertices lying on the straight line through their neighbours.

    Accepts open or closed rings and returns a closed ring. ``eps`` is
    relative to the lengths of the two adjoining edges.
    """
    pts = open_ring(ring)
    changed = True
    while changed and len(pts) > 3:
        changed = False
        kept = []
        n = len(pts)
        for i in range(n):
            prev = kept[-1] if kept else pts[i - 1]
            cur = pts[i]
            nxt = pts[(i + 1) % n]
            ax, ay = cur[0] - prev[0], cur[1] - prev[1]
            bx, by = nxt[0] - cur[0], nxt[1] - cur[1]
            cross = ax * by - ay * bx
            dot = ax * bx + ay * by
            scale = math.hypot(ax, ay) * math.hypot(bx, by)
            if dot > 0 and abs(cross) <= eps * scale:
                changed = True
                continue
            kept.append(cur)
        pts = kept
    return close_ring(pts)


def iter_rings(geometry) -> Iterator[Ring]:
    """Yield the rings of a polygonal input.

    Shapely polygons are oriented first (shells counter-clockwise, holes
    clockwise). Anything else is taken to be a sequence of coordinate rings
    and yielded unchanged.
    """
    if isinstance(geometry, MultiPolygon):
        for part in geometry.geoms:
            yield from iter_rings(part)
    elif isinstance(geometry, Polygon):
        if geometry.is_empty:
            return
        oriented = orient(geometry, sign=1.0)
        yield [tuple(c) for c in oriented.exterior.coords]
        for interior in oriented.interiors:
            yield [tuple(c) for c in interior.coords]
    elif isinstance(geometry, BaseGeometry):
        raise TypeError(f"Unsupported geometry type: {geometry.geom_type}")
    else:
        for ring in geometry:
            yield [tuple(p) for p in ring]
