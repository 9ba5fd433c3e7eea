"""Bounding-box index with insert, intersection search and nearest lookup.

Box searches go through a shapely STRtree and nearest-neighbour lookups
through a scipy cKDTree over box centres. Both trees are static, so they are
rebuilt lazily on the first query after an insert.
"""

from typing import Generic, List, Optional, Sequence, TypeVar

import numpy as np
import shapely
import structlog
from scipy.spatial import cKDTree
from shapely.strtree import STRtree

from .geometry import Bounds, Point

logger = structlog.get_logger()

T = TypeVar("T")


class SpatialIndex(Generic[T]):
    """Dynamic index of items keyed by their bounding boxes.

    Results are always returned in insertion order, which keeps every query
    deterministic for a fixed insertion sequence.
    """

    def __init__(self):
        self._items: List[T] = []
        self._boxes: List[tuple] = []
        self._box_array: Optional[np.ndarray] = None
        self._strtree: Optional[STRtree] = None
        self._kdtree: Optional[cKDTree] = None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def insert(self, item: T, bounds: Bounds) -> None:
        if bounds.is_empty:
            raise ValueError("Cannot index an item with empty bounds")
        self._items.append(item)
        self._boxes.append(bounds.as_tuple())
        self._box_array = None
        self._strtree = None
        self._kdtree = None

    def _ensure_built(self) -> None:
        if self._box_array is not None:
            return
        self._box_array = np.asarray(self._boxes, dtype=float).reshape(-1, 4)
        self._strtree = STRtree(shapely.box(
            self._box_array[:, 0], self._box_array[:, 1],
            self._box_array[:, 2], self._box_array[:, 3],
        ))
        centers = np.column_stack([
            (self._box_array[:, 0] + self._box_array[:, 2]) / 2,
            (self._box_array[:, 1] + self._box_array[:, 3]) / 2,
        ])
        self._kdtree = cKDTree(centers)
        logger.debug("Spatial index built", items=len(self._items))

    def _overlapping(self, minx, miny, maxx, maxy, candidates: np.ndarray) -> np.ndarray:
        boxes = self._box_array[candidates]
        mask = ((boxes[:, 0] < maxx) & (minx < boxes[:, 2])
                & (boxes[:, 1] < maxy) & (miny < boxes[:, 3]))
        return np.sort(candidates[mask])

    def search_indices(self, bounds: Bounds) -> np.ndarray:
        """Insertion positions of items whose boxes overlap ``bounds``."""
        if not self._items:
            return np.empty(0, dtype=int)
        self._ensure_built()
        # STRtree also reports boxes that merely touch, so filter strictly.
        candidates = self._strtree.query(shapely.box(*bounds.as_tuple()))
        return self._overlapping(*bounds.as_tuple(), np.asarray(candidates, dtype=int))

    def search(self, bounds: Bounds) -> List[T]:
        """Items whose boxes overlap ``bounds`` with positive area."""
        return [self._items[i] for i in self.search_indices(bounds)]

    def count_overlaps(self, points: Sequence[Point]) -> np.ndarray:
        """Number of indexed boxes strictly containing each point.

        This is the bulk form of ``len(search(Bounds.around(p)))``.
        """
        points = np.asarray(points, dtype=float).reshape(-1, 2)
        counts = np.zeros(len(points), dtype=int)
        if not self._items or len(points) == 0:
            return counts
        self._ensure_built()
        hits = self._strtree.query(shapely.points(points))
        if hits.size == 0:
            return counts
        point_idx, box_idx = hits
        px = points[point_idx, 0]
        py = points[point_idx, 1]
        boxes = self._box_array[box_idx]
        inside = ((boxes[:, 0] < px) & (px < boxes[:, 2])
                  & (boxes[:, 1] < py) & (py < boxes[:, 3]))
        np.add.at(counts, point_idx[inside], 1)
        return counts

    def nearest_index(self, point: Point) -> int:
        """Position of the item whose box centre is closest to ``point``.

        Equidistant items resolve to the one inserted first.
        """
        if not self._items:
            raise LookupError("Nearest-neighbour query on an empty index")
        self._ensure_built()
        best, idx = self._kdtree.query(point)
        if len(self._items) == 1:
            return int(idx)
        ties = self._kdtree.query_ball_point(point, best * (1 + 1e-12) + 1e-300)
        if not ties:
            return int(idx)
        return int(min(ties))

    def nearest(self, point: Point) -> T:
        return self._items[self.nearest_index(point)]
