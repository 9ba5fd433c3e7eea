"""Weighted, grouped spatial units that get allocated to tiles."""

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from shapely.geometry.base import BaseGeometry

from .geometry import Bounds, Point


@runtime_checkable
class Grouper(Protocol):
    """A spatial unit to be assigned to one of the tiles of a tilegram.

    Population counts are a typical weight; political units such as states
    or counties are typical groups.
    """

    @property
    def centroid(self) -> Point: ...

    @property
    def bounds(self) -> Bounds: ...

    @property
    def weight(self) -> float: ...

    @property
    def group(self) -> str: ...

    @property
    def geometry(self): ...


@dataclass(eq=False)
class Record:
    """Default :class:`Grouper` built around a shapely geometry.

    Centroid and bounds are computed once at construction. Records compare
    by identity: two records with the same contents are still two records.
    """

    geometry: BaseGeometry
    weight: float
    group: str
    _centroid: Point = field(init=False, repr=False)
    _bounds: Bounds = field(init=False, repr=False)

    def __post_init__(self):
        if self.geometry is None or self.geometry.is_empty:
            raise ValueError("Record geometry must not be empty")
        self.weight = float(self.weight)
        if not self.weight >= 0:
            raise ValueError(f"Record weight must be non-negative, got {self.weight}")
        c = self.geometry.centroid
        self._centroid = (c.x, c.y)
        self._bounds = Bounds.from_tuple(self.geometry.bounds)

    @classmethod
    def from_geometry(cls, geometry: BaseGeometry, weight: float, group: str) -> "Record":
        return cls(geometry=geometry, weight=weight, group=str(group))

    @property
    def centroid(self) -> Point:
        return self._centroid

    @property
    def bounds(self) -> Bounds:
        return Bounds(self._bounds.minx, self._bounds.miny,
                      self._bounds.maxx, self._bounds.maxy)
