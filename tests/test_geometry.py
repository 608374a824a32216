"""
Geometry helpers and the table model.
"""

import sys
import os
import math
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from geometry import circles_overlap, clamp, direction, distance, normalize
from table import Table


class TestVectorHelpers:

    def test_distance(self):
        assert distance((0, 0), (3, 4)) == pytest.approx(5.0)

    def test_normalize(self):
        np.testing.assert_allclose(normalize([3.0, 4.0]), [0.6, 0.8])

    def test_normalize_zero_vector(self):
        np.testing.assert_array_equal(normalize([0.0, 0.0]), [0.0, 0.0])

    def test_direction(self):
        np.testing.assert_allclose(direction(0.0), [1.0, 0.0])
        np.testing.assert_allclose(direction(math.pi / 2), [0.0, 1.0], atol=1e-12)

    def test_touching_is_not_overlap(self):
        assert not circles_overlap((0, 0), (16, 0), 8, 8)
        assert circles_overlap((0, 0), (15.9, 0), 8, 8)

    def test_clamp(self):
        assert clamp(5, 0, 3) == 3
        assert clamp(-1, 0, 3) == 0
        assert clamp(2, 0, 3) == 2


class TestTable:

    def test_default_bounds(self):
        assert Table().bounds == (23.0, 777.0, 23.0, 377.0)

    def test_six_pockets(self):
        pockets = Table().pockets
        assert len(pockets) == 6
        assert pockets[0] == (15.0, 15.0)
        assert pockets[1] == (400.0, 10.0)
        assert pockets[5] == (785.0, 385.0)

    def test_capture_radius(self):
        assert Table().capture_radius == pytest.approx(16.0)

    def test_pocket_at(self):
        table = Table()
        assert table.pocket_at((20.0, 20.0)) == 0
        assert table.pocket_at((400.0, 20.0)) == 1
        assert table.pocket_at((400.0, 200.0)) is None

    def test_scaled_table(self):
        table = Table.scaled(1.5)
        assert table.width == pytest.approx(1200.0)
        assert table.ball_radius == pytest.approx(12.0)
        assert table.capture_radius == pytest.approx(24.0)
        assert table.bounds[0] == pytest.approx(34.5)
        assert table.pockets[0] == pytest.approx((22.5, 22.5))

    def test_scale_one_matches_default(self):
        assert Table.scaled(1.0) == Table()

    def test_contains_and_clamp(self):
        table = Table()
        assert table.contains((23.0, 377.0))
        assert not table.contains((22.9, 200.0))
        np.testing.assert_allclose(table.clamp((0.0, 500.0)), [23.0, 377.0])

    def test_table_is_immutable(self):
        with pytest.raises(AttributeError):
            Table().width = 10.0
