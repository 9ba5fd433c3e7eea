"""
Core tilegram functionality.
"""

from .geometry import Bounds, hexagon_bounds, hexagon_vertices
from .spatial_index import SpatialIndex
from .records import Grouper, Record
from .hull import Hull, HullGraph, build_hull
from .hexagram import Hexagram, Tile, build_hexagram
from .distribute import DistributionResult, Distributor, distribute, transfer

__all__ = ['Bounds', 'hexagon_bounds', 'hexagon_vertices', 'SpatialIndex',
           'Grouper', 'Record', 'Hull', 'HullGraph', 'build_hull',
           'Hexagram', 'Tile', 'build_hexagram',
           'DistributionResult', 'Distributor', 'distribute', 'transfer']
