"""Tests for the bounding-box spatial index."""

import numpy as np
import pytest

from tilegram.core.geometry import Bounds
from tilegram.core.spatial_index import SpatialIndex


class TestSpatialIndex:
    """Test insert, search and nearest queries."""

    @pytest.fixture
    def index(self):
        idx = SpatialIndex()
        idx.insert("c", Bounds(4, 4, 5, 5))
        idx.insert("a", Bounds(0, 0, 1, 1))
        idx.insert("b", Bounds(1, 0, 2, 1))
        return idx

    def test_len_and_iter(self, index):
        """Test size and iteration order."""
        assert len(index) == 3
        assert list(index) == ["c", "a", "b"]

    def test_search_in_insertion_order(self, index):
        """Test that search results keep insertion order."""
        assert index.search(Bounds(-1, -1, 6, 6)) == ["c", "a", "b"]

    def test_search_excludes_touching(self, index):
        """Test that touching boxes are not returned."""
        assert index.search(Bounds(0.5, 0.5, 1.0, 0.8)) == ["a"]
        assert index.search(Bounds(2, 0, 3, 1)) == []

    def test_search_after_insert(self, index):
        """Test that inserts after a query are visible."""
        assert index.search(Bounds(10, 10, 11, 11)) == []
        index.insert("d", Bounds(10, 10, 12, 12))
        assert index.search(Bounds(10, 10, 11, 11)) == ["d"]

    def test_count_overlaps(self, index):
        """Test bulk point containment counts."""
        counts = index.count_overlaps([(0.5, 0.5), (1.0, 0.5), (4.5, 4.5), (9, 9)])
        np.testing.assert_array_equal(counts, [1, 0, 1, 0])

    def test_count_overlaps_nested(self):
        """Test counts for points inside nested boxes."""
        idx = SpatialIndex()
        idx.insert(0, Bounds(0, 0, 10, 10))
        idx.insert(1, Bounds(2, 2, 4, 4))
        np.testing.assert_array_equal(idx.count_overlaps([(3, 3), (8, 8)]), [2, 1])

    def test_nearest(self, index):
        """Test nearest-item lookup."""
        assert index.nearest((4.2, 4.9)) == "c"
        assert index.nearest((0.1, 0.4)) == "a"

    def test_nearest_tie_goes_to_first_inserted(self):
        """Test that equidistant items resolve to the first inserted."""
        idx = SpatialIndex()
        idx.insert("right", Bounds(0.5, -0.5, 1.5, 0.5))
        idx.insert("left", Bounds(-1.5, -0.5, -0.5, 0.5))
        assert idx.nearest((0.0, 0.0)) == "right"
        assert idx.nearest_index((0.0, 0.0)) == 0

    def test_empty_index(self):
        """Test queries against an empty index."""
        idx = SpatialIndex()
        assert idx.search(Bounds(0, 0, 1, 1)) == []
        with pytest.raises(LookupError):
            idx.nearest((0, 0))

    def test_rejects_empty_bounds(self):
        """Test that empty bounds cannot be inserted."""
        with pytest.raises(ValueError):
            SpatialIndex().insert("x", Bounds())
