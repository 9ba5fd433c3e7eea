"""Tests for hexagonal grid construction and record assignment."""

import math

import pytest
from shapely.geometry import Point, box

from tilegram.core.geometry import SQRT3, Bounds
from tilegram.core.hexagram import Hexagram, Tile, build_hexagram, candidate_centers
from tilegram.core.records import Record
from tilegram.exceptions import EmptyGridError


def make_records(nx=14, ny=8, size=0.7):
    """Grid of small squares with varied weights, split into two groups."""
    records = []
    for i in range(nx):
        for j in range(ny):
            x, y = i * size, j * size
            group = "west" if i < nx // 2 else "east"
            records.append(Record.from_geometry(box(x, y, x + size, y + size),
                                                1 + (i * j) % 4, group))
    return records


class TestBuildHexagram:
    """Test grid construction."""

    @pytest.fixture
    def records(self):
        return make_records()

    @pytest.fixture
    def hexagram(self, records):
        return build_hexagram(records, 1.0)

    def test_produces_tiles(self, hexagram):
        """Test that tiles get dense indices."""
        assert len(hexagram) > 0
        assert [t.index for t in hexagram.tiles] == list(range(len(hexagram)))

    def test_every_record_assigned_once(self, records, hexagram):
        """Test that every record lands in exactly one tile."""
        assigned = [r for t in hexagram.tiles for r in t.records]
        assert len(assigned) == len(records)
        assert {id(r) for r in assigned} == {id(r) for r in records}

    def test_records_go_to_nearest_tile(self, hexagram):
        """Brute-force check against every tile centre."""
        centers = [t.center for t in hexagram.tiles]
        for tile in hexagram.tiles:
            for record in tile.records:
                cx, cy = record.centroid
                best = min(math.hypot(cx - x, cy - y) for x, y in centers)
                have = math.hypot(cx - tile.center[0], cy - tile.center[1])
                assert have == pytest.approx(best, abs=1e-9)

    def test_tiles_lie_inside_data(self, records, hexagram):
        """Test that every tile centre lies inside some record box."""
        for tile in hexagram.tiles:
            assert any(r.bounds.intersects(Bounds.around(tile.center)) for r in records)

    def test_index_holds_each_tile_once(self, hexagram):
        """Test that the spatial index holds each tile once."""
        assert len(hexagram.index) == len(hexagram)
        assert list(hexagram.index) == hexagram.tiles

    def test_bounds_cover_all_hexagons(self, hexagram):
        """Test that grid bounds cover every hexagon."""
        b = hexagram.bounds
        for tile in hexagram.tiles:
            tb = tile.bounds
            assert b.minx <= tb.minx and tb.maxx <= b.maxx
            assert b.miny <= tb.miny and tb.maxy <= b.maxy

    def test_weight_accessors(self, records, hexagram):
        """Test per-tile and total weight accessors."""
        total = sum(r.weight for r in records)
        assert hexagram.total_weight == pytest.approx(total)
        assert sum(hexagram.weight(i) for i in range(len(hexagram))) == pytest.approx(total)

    def test_smaller_radius_gives_more_tiles(self, records, hexagram):
        """Test that shrinking the radius adds tiles."""
        assert len(build_hexagram(records, 0.5)) > len(hexagram)


class TestBuildErrors:
    """Test construction failures and preconditions."""

    def test_point_record_with_huge_radius(self):
        """Test that a point record yields no grid."""
        record = Record.from_geometry(Point(5, 5), 1.0, "a")
        with pytest.raises(EmptyGridError):
            build_hexagram([record], 1e9)

    def test_no_records(self):
        """Test that an empty input yields no grid."""
        with pytest.raises(EmptyGridError):
            build_hexagram([], 1.0)

    @pytest.mark.parametrize("radius", [0, -1.0])
    def test_non_positive_radius(self, radius):
        """Test that a non-positive radius is rejected."""
        with pytest.raises(ValueError):
            build_hexagram(make_records(2, 2), radius)

    def test_negative_weight(self):
        """Test that negative weights are rejected."""
        class Unit:
            centroid = (0.5, 0.5)
            bounds = Bounds(0, 0, 1, 1)
            weight = -1.0
            group = "a"
            geometry = box(0, 0, 1, 1)

        with pytest.raises(ValueError):
            build_hexagram([Unit()], 0.1)


class TestCandidateCenters:
    """Test the staggered hexagon lattice."""

    def test_two_interleaved_lattices(self):
        """Test the two offset lattices of centres."""
        centers = candidate_centers(Bounds(0, 0, 6, 4), 1.0)
        assert (0.0, 0.0) in centers
        assert (-1.5, -1.0) in centers
        assert (3.0, 0.0) in centers
        assert any(x == 0.0 and y == pytest.approx(SQRT3) for x, y in centers)

    def test_stays_within_box_maximum(self):
        """Test that no centre passes the box maximum."""
        bbox = Bounds(0, 0, 6, 4)
        for x, y in candidate_centers(bbox, 1.0):
            assert x <= bbox.maxx and y <= bbox.maxy


class TestTile:
    """Test per-tile derived values."""

    def make_tile(self, *specs):
        tile = Tile((0.0, 0.0), 1.0, 0)
        for group, weight in specs:
            tile.records.append(Record.from_geometry(box(0, 0, 1, 1), weight, group))
        return tile

    def test_weight(self):
        """Test tile weight as the sum of record weights."""
        assert self.make_tile(("a", 1), ("b", 2.5)).weight == pytest.approx(3.5)

    def test_dominant_group(self):
        """Test the heaviest group wins."""
        tile = self.make_tile(("a", 3), ("b", 2), ("b", 2))
        assert tile.group == "b"

    def test_dominant_group_tie_is_lexicographic(self):
        """Test that equal group weights go to the smallest label."""
        assert self.make_tile(("b", 2), ("a", 2)).group == "a"

    def test_empty_tile_has_no_group(self):
        """Test that an empty tile has no group."""
        tile = self.make_tile()
        assert tile.group is None
        assert tile.weight == 0

    def test_polygon(self):
        """Test the tile hexagon polygon."""
        tile = Tile((1.0, 1.0), 2.0, 3)
        assert len(tile.vertices) == 6
        assert tile.polygon.area == pytest.approx(3 * SQRT3 / 2 * 4)
        assert tile.polygon.centroid.x == pytest.approx(1.0)


class TestHexagram:
    """Test neighbour and ratio queries on a hand-built grid."""

    @pytest.fixture
    def hexagram(self):
        h = Hexagram(1.0)
        for center in [(0.0, 0.0), (3.0, 0.0), (6.0, 0.0), (1.5, -1.0), (0.0, SQRT3)]:
            h.add_tile(center)
        return h

    def test_neighbors(self, hexagram):
        """Test the adjoining tiles of a tile."""
        found = {t.index for t in hexagram.neighbors(hexagram.tiles[0])}
        assert found == {0, 1, 3, 4}

    def test_far_tiles_are_not_neighbors(self, hexagram):
        """Test that distant tiles are excluded."""
        found = {t.index for t in hexagram.neighbors(hexagram.tiles[2])}
        assert 0 not in found
        assert 1 in found

    def test_range_ratio(self, hexagram):
        """Test the spread-over-mean ratio."""
        hexagram.tiles[0].records.append(Record.from_geometry(box(0, 0, 1, 1), 5, "a"))
        ratio, mean = hexagram.range_ratio()
        assert mean == pytest.approx(1.0)
        assert ratio == pytest.approx(5.0)

    def test_range_ratio_all_empty(self, hexagram):
        """Test the ratio of a weightless grid."""
        assert hexagram.range_ratio() == (0.0, 0.0)

    def test_add_assigns_nearest(self, hexagram):
        """Test allocating a record to the nearest tile."""
        record = Record.from_geometry(box(5.5, -0.5, 6.5, 0.5), 1, "a")
        assert hexagram.add(record) == 2
        assert hexagram.tiles[2].records == [record]

    def test_rejects_bad_radius(self):
        """Test that a non-positive radius is rejected."""
        with pytest.raises(ValueError):
            Hexagram(0)


class TestGroupGeometry:
    """Test merged group outlines."""

    @pytest.fixture
    def hexagram(self):
        h = Hexagram(1.0)
        a = h.add_tile((0.0, 0.0))
        b = h.add_tile((1.5, -1.0))
        h.add_tile((6.0, 6.0))
        a.records.append(Record.from_geometry(box(-0.5, -0.5, 0.5, 0.5), 1, "g"))
        b.records.append(Record.from_geometry(box(1.0, -1.5, 2.0, -0.5), 1, "g"))
        return h

    def test_adjoining_tiles_merge(self, hexagram):
        """Test that same-group tiles merge into one outline."""
        hulls = hexagram.group_geometry(0.5)
        assert list(hulls) == ["g"]
        (ring,) = hulls["g"].rings
        assert len(ring) == 11
        assert ring[0] == ring[-1]

    def test_zero_tolerance_keeps_tiles_apart(self, hexagram):
        """Test that zero tolerance leaves hexagon gaps."""
        hulls = hexagram.group_geometry(0.0)
        assert len(hulls["g"].rings) == 2

    def test_default_tolerance_from_settings(self, hexagram):
        """Test the settings-derived default tolerance."""
        assert len(hexagram.group_geometry()["g"].rings) == 1

    def test_empty_tiles_are_skipped(self, hexagram):
        """Test that empty tiles are left out of group outlines."""
        hulls = hexagram.group_geometry(0.5)
        assert None not in hulls
