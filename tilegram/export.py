"""
GeoPandas adapters for the data-loading and rendering sides of a tilegram.

Loading: a GeoDataFrame read by the caller (shapefile, GeoPackage, ...) is
turned into :class:`Record` objects. Rendering: tiles and group outlines are
turned back into GeoDataFrames that can be plotted or written to disk.
"""

from __future__ import annotations

from typing import List, Optional

import geopandas as gpd
import pandas as pd
import structlog

from .core.hexagram import Hexagram
from .core.records import Record

logger = structlog.get_logger()


def records_from_frame(frame: gpd.GeoDataFrame, weight_column: str,
                       group_column: str) -> List[Record]:
    """
    Build records from the rows of a GeoDataFrame.

    Args:
        frame: Polygon features, one per spatial unit
        weight_column: Column holding the weighting attribute (e.g. population)
        group_column: Column holding the group label (e.g. county name)

    Returns:
        One Record per row, in row order
    """
    for column in (weight_column, group_column):
        if column not in frame.columns:
            raise KeyError(f"Column '{column}' not found in frame")

    weights = pd.to_numeric(frame[weight_column], errors="raise")
    if weights.isna().any():
        raise ValueError(f"Column '{weight_column}' contains missing weights")

    records = [
        Record.from_geometry(geometry, weight, group)
        for geometry, weight, group in zip(frame.geometry, weights, frame[group_column])
    ]
    logger.info("Records loaded from frame", records=len(records),
                total_weight=float(weights.sum()))
    return records


def tiles_frame(hexagram: Hexagram, crs=None) -> gpd.GeoDataFrame:
    """One row per tile with its weight, dominant group and hexagon."""
    rows = [
        {
            "index": tile.index,
            "weight": tile.weight,
            "group": tile.group,
            "records": len(tile.records),
            "geometry": tile.polygon,
        }
        for tile in hexagram.tiles
    ]
    return gpd.GeoDataFrame(rows, columns=["index", "weight", "group", "records", "geometry"],
                            geometry="geometry", crs=crs)


def groups_frame(hexagram: Hexagram, tolerance: Optional[float] = None,
                 crs=None) -> gpd.GeoDataFrame:
    """One row per group with the merged outline of its tiles."""
    hulls = hexagram.group_geometry(tolerance)
    rows = [
        {"group": group, "rings": len(hull), "geometry": hull.geometry}
        for group, hull in sorted(hulls.items())
    ]
    return gpd.GeoDataFrame(rows, columns=["group", "rings", "geometry"],
                            geometry="geometry", crs=crs)
