"""
Tests for the shot preset positions.
Each preset is checked against the physically expected result.
"""

import sys
import os
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from controller import PoolController, rack_positions
from shot_presets import PRESETS, ShotPreset, get_preset


class TestStraightHit:
    """Full-ball hit: the object ball takes over the cue ball's momentum."""

    def test_contact_transfers_momentum(self):
        result = ShotPreset.straight_hit()
        contact = result["contact"]
        assert contact is not None, "cue ball never reached the object ball"
        assert contact["object_velocity"][0] > 0, (
            f"object ball vx={contact['object_velocity'][0]:.4f} must follow the shot line"
        )
        assert contact["cue_velocity"][0] < result["cue_speed_before"], (
            f"cue ball vx={contact['cue_velocity'][0]:.4f} must drop below "
            f"{result['cue_speed_before']:.4f}"
        )

    def test_object_ball_travels_further(self):
        result = ShotPreset.straight_hit()
        assert result["object"].position[0] > result["cue"].position[0]

    def test_simulation_completes(self):
        result = ShotPreset.straight_hit()
        assert result["steps"] < 5000
        assert not any(b.is_moving() for b in result["balls"])


class TestCornerPot:

    def test_object_ball_pocketed(self):
        result = ShotPreset.corner_pot()
        assert result["captured"] == [3]
        assert result["object"].pocketed
        assert not result["cue"].pocketed


class TestScratch:

    def test_cue_ball_pocketed(self):
        result = ShotPreset.scratch()
        assert result["captured"] == [0]
        assert result["cue"].pocketed


class TestBreakShot:

    def test_break_settles(self):
        result = ShotPreset.break_shot()
        assert len(result["balls"]) == 16
        assert result["steps"] < 5000
        assert not any(b.is_moving() for b in result["balls"])

    def test_break_scatters_rack(self):
        result = ShotPreset.break_shot()
        rack = rack_positions(result["engine"].table)
        moved = [b.id for b in result["balls"][1:]
                 if b.pocketed or not np.allclose(b.position, rack[b.id])]
        assert len(moved) > 1, f"only {moved} left the rack"


class TestPresetRegistry:

    @pytest.mark.parametrize("name", sorted(PRESETS))
    def test_layout_only(self, name):
        result = get_preset(name)(run=False)
        assert result["steps"] == 0
        assert result["captured"] == []
        cue = result["balls"][0]
        assert cue.id == 0
        assert cue.is_moving(), "cue must already be struck"

    def test_unknown_preset(self):
        with pytest.raises(ValueError):
            get_preset("masse")

    def test_controller_loads_preset(self):
        ctrl = PoolController()
        ctrl.load_preset(ShotPreset.corner_pot)
        np.testing.assert_allclose(ctrl.ball(3).position, [60.0, 60.0])
        np.testing.assert_allclose(ctrl.cue_ball.position, [120.0, 120.0])
        assert not ctrl.cue_ball.is_moving(), "loading a preset does not fire it"
        assert ctrl.aim_angle == pytest.approx(np.arctan2(-105.0, -105.0))

        outcome = ctrl.simulate_shot(ctrl.aim_angle, 50)
        assert ctrl.ball(3).pocketed
        assert outcome.category.value == "success"

    @pytest.mark.parametrize("name", sorted(PRESETS))
    def test_loaded_table_holds_only_preset_balls(self, name):
        ctrl = PoolController()
        preset = get_preset(name)
        expected = sorted(b.id for b in preset(run=False)["balls"])
        ctrl.load_preset(preset)
        on_table = [b.id for b in ctrl.balls if not b.pocketed]
        assert on_table == expected, f"{name}: table holds {on_table}, layout has {expected}"
        assert not ctrl.is_moving()

    def test_scratch_preset_leaves_cue_ball_alone(self):
        ctrl = PoolController()
        ctrl.load_preset(ShotPreset.scratch)
        assert [b.id for b in ctrl.balls if not b.pocketed] == [0]
        np.testing.assert_allclose(ctrl.cue_ball.position, [60.0, 60.0])
