"""Hexagonal tile grid construction and record assignment."""

import math
import threading
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog
from shapely.geometry import Polygon

from ..config import settings
from ..exceptions import EmptyGridError
from .distribute import DistributionResult, distribute
from .geometry import SQRT3, Bounds, Point, Ring, hexagon_bounds, hexagon_vertices
from .hull import Hull, build_hull
from .records import Grouper
from .spatial_index import SpatialIndex

logger = structlog.get_logger()


class Tile:
    """A single hexagonal tile and the records currently assigned to it.

    The tile never moves or changes shape; only ``records`` changes as data
    is redistributed. Record order is transfer history and carries no
    meaning.
    """

    __slots__ = ("center", "radius", "index", "records")

    def __init__(self, center: Point, radius: float, index: int):
        self.center = center
        self.radius = radius
        self.index = index
        self.records: List[Grouper] = []

    def __repr__(self) -> str:
        return (f"Tile(index={self.index}, center={self.center}, "
                f"records={len(self.records)}, weight={self.weight:g})")

    @property
    def weight(self) -> float:
        return sum(r.weight for r in self.records)

    @property
    def group(self) -> Optional[str]:
        """Group with the largest summed weight among the assigned records.

        Ties go to the lexicographically smallest label. ``None`` when the
        tile holds no records.
        """
        if not self.records:
            return None
        group_weights: Dict[str, float] = {}
        for r in self.records:
            group_weights[r.group] = group_weights.get(r.group, 0.0) + r.weight
        return min(group_weights, key=lambda g: (-group_weights[g], g))

    @property
    def bounds(self) -> Bounds:
        return hexagon_bounds(self.center, self.radius)

    @property
    def vertices(self) -> Ring:
        return hexagon_vertices(self.center, self.radius)

    @property
    def polygon(self) -> Polygon:
        return Polygon(self.vertices)


class Hexagram:
    """A hexagonal tilegram: tiles, their spatial index and overall bounds.

    Use :func:`build_hexagram` to create one from data. Tile indices are the
    dense range ``0..len(self) - 1`` and never change.
    """

    def __init__(self, radius: float):
        if not radius > 0:
            raise ValueError(f"Hexagon radius must be positive, got {radius}")
        self.radius = float(radius)
        self.tiles: List[Tile] = []
        self.index: SpatialIndex[Tile] = SpatialIndex()
        self.bounds = Bounds()

    def __len__(self) -> int:
        return len(self.tiles)

    def __iter__(self):
        return iter(self.tiles)

    def add_tile(self, center: Point) -> Tile:
        """Create the next tile at ``center`` and index it."""
        tile = Tile(center, self.radius, len(self.tiles))
        self.tiles.append(tile)
        self.index.insert(tile, tile.bounds)
        self.bounds.extend(tile.bounds)
        return tile

    def add(self, record: Grouper) -> int:
        """Allocate ``record`` to the tile nearest its centroid.

        Returns the index of the receiving tile.
        """
        tile = self.index.nearest(record.centroid)
        tile.records.append(record)
        return tile.index

    def weight(self, i: int) -> float:
        """Summed weight of the records in tile ``i``."""
        return self.tiles[i].weight

    def weights(self) -> np.ndarray:
        return np.array([t.weight for t in self.tiles], dtype=float)

    @property
    def total_weight(self) -> float:
        return float(self.weights().sum())

    def neighbors(self, tile: Tile) -> List[Tile]:
        """Tiles adjoining ``tile``, including ``tile`` itself.

        Both hexagon boxes are grown by half a radius on every side, so the
        search box grows by a full radius against the indexed boxes.
        """
        return self.index.search(tile.bounds.expanded(self.radius))

    def range_ratio(self) -> Tuple[float, float]:
        """Return ``((max - min) / mean, mean)`` over tile weights.

        A grid where every tile weighs nothing is perfectly balanced and has
        a ratio of zero.
        """
        weights = self.weights()
        mean = float(weights.mean())
        if mean == 0:
            return 0.0, mean
        return float((weights.max() - weights.min()) / mean), mean

    def group_geometry(self, tolerance: Optional[float] = None) -> Dict[str, Hull]:
        """Merged outline of the tiles in each dominant group.

        ``tolerance`` is the distance under which two vertices are treated
        as the same point; it defaults to ``hull_tolerance_ratio`` times the
        hexagon radius. Tiles without records belong to no group and are
        left out.
        """
        if tolerance is None:
            tolerance = settings.hull_tolerance_ratio * self.radius
        polys: Dict[str, List[List[Ring]]] = {}
        for tile in self.tiles:
            group = tile.group
            if group is None:
                continue
            polys.setdefault(group, []).append([tile.vertices])
        hulls = {g: build_hull(p, tolerance) for g, p in polys.items()}
        logger.info("Group geometry built", groups=len(hulls), tolerance=tolerance)
        return hulls

    def distribute(self, range_ratio: float, max_iterations: Optional[int] = None,
                   max_seconds: Optional[float] = None,
                   cancel: Optional[threading.Event] = None) -> DistributionResult:
        """Rebalance records between tiles; see :func:`tilegram.core.distribute.distribute`."""
        return distribute(self, range_ratio, max_iterations=max_iterations,
                          max_seconds=max_seconds, cancel=cancel)


def candidate_centers(bbox: Bounds, radius: float) -> List[Point]:
    """Hexagon centres on a staggered brick pattern covering ``bbox``.

    Two interleaved lattices with spacing ``3 r`` by ``r * sqrt(3)``: one
    anchored at the box minimum, the other offset by ``(-1.5 r, -r)``.
    """
    dx = 3 * radius
    dy = radius * SQRT3
    starts = [(bbox.minx, bbox.miny), (bbox.minx - 1.5 * radius, bbox.miny - radius)]
    centers = []
    for xmin, ymin in starts:
        nx = int(math.floor((bbox.maxx - xmin) / dx)) + 2
        ny = int(math.floor((bbox.maxy - ymin) / dy)) + 2
        for i in range(nx):
            x = xmin + i * dx
            if x > bbox.maxx:
                break
            for j in range(ny):
                y = ymin + j * dy
                if y > bbox.maxy:
                    break
                centers.append((x, y))
    return centers


def build_hexagram(records: Sequence[Grouper], radius: float) -> Hexagram:
    """
    Create a hexagonal tilegram over ``records``.

    Only hexagon centres lying inside at least one record's bounding box
    become tiles. Every record is then allocated to the tile whose centre is
    closest to the record centroid.

    Args:
        records: Weighted, grouped spatial units
        radius: Hexagon radius, in the units of the record coordinates

    Returns:
        Populated Hexagram

    Raises:
        ValueError: If the radius is not positive or a weight is negative
        EmptyGridError: If no hexagon of the given radius fits the data
    """
    hexagram = Hexagram(radius)
    records = list(records)
    for record in records:
        if not record.weight >= 0:
            raise ValueError(f"Record weight must be non-negative, got {record.weight}")

    logger.info("Building hexagram", records=len(records), radius=radius)

    data_index: SpatialIndex[Grouper] = SpatialIndex()
    bbox = Bounds()
    for record in records:
        b = record.bounds
        bbox.extend(b)
        data_index.insert(record, b)

    if records:
        centers = candidate_centers(bbox, radius)
        occupied = data_index.count_overlaps(centers)
        for center, hits in zip(centers, occupied):
            if hits == 0:
                continue
            hexagram.add_tile(center)
        logger.debug("Candidate hexagons tested",
                     candidates=len(centers), accepted=len(hexagram))

    if len(hexagram) == 0:
        logger.error("No hexagons fit within data bounds",
                     records=len(records), radius=radius)
        raise EmptyGridError(
            f"No hexagons of radius {radius} fit within the bounds of {len(records)} records"
        )

    for record in records:
        hexagram.add(record)

    logger.info("Hexagram built", tiles=len(hexagram),
                total_weight=hexagram.total_weight)
    return hexagram
