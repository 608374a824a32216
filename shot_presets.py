"""
Shot Preset System
Reproducible practice positions: lay out balls, strike the cue ball and
optionally simulate to rest.

Every preset returns a dict with at least
``balls``, ``engine``, ``angle``, ``power``, ``captured`` and ``steps``.
``run=False`` only lays out the balls and applies the cue.
"""

import math
import numpy as np

from controller import rack_positions
from physics import Ball, PhysicsEngine

# Safety cap on steps per preset
_MAX_STEPS = 5000


def _run(engine: PhysicsEngine, balls: list) -> tuple:
    steps, captured = engine.simulate(balls, max_steps=_MAX_STEPS)
    return steps, sorted(captured)


class ShotPreset:
    """Each preset: place balls -> strike cue -> simulate -> result dict."""

    @staticmethod
    def straight_hit(run=True) -> dict:
        """Full-ball hit on a solid 40 units ahead: momentum passes to the object ball."""
        engine = PhysicsEngine()

        cue = Ball(0, position=[200.0, 200.0])
        obj = Ball(2, position=[240.0, 200.0])
        angle, power = 0.0, 50.0
        engine.apply_cue(cue, angle, power)
        cue_speed_before = cue.speed

        balls = [cue, obj]
        steps, captured = 0, []
        contact = None
        if run:
            captured_set = set()
            while steps < _MAX_STEPS and any(b.is_moving() for b in balls):
                captured_set |= engine.step(balls)
                steps += 1
                if contact is None and any(ev["type"] == "ball_ball" for ev in engine.events):
                    contact = {
                        "step": steps,
                        "cue_velocity": cue.velocity.copy(),
                        "object_velocity": obj.velocity.copy(),
                    }
            captured = sorted(captured_set)
        return {"cue": cue, "object": obj, "balls": balls, "engine": engine,
                "angle": angle, "power": power, "captured": captured, "steps": steps,
                "cue_speed_before": cue_speed_before, "contact": contact}

    @staticmethod
    def corner_pot(run=True) -> dict:
        """Ball 3 sits on the diagonal of the top-left pocket; cue drives it straight in."""
        engine = PhysicsEngine()
        pocket = np.array(engine.table.pockets[0])

        obj = Ball(3, position=[60.0, 60.0])
        cue = Ball(0, position=[120.0, 120.0])
        aim = pocket - cue.position
        angle, power = math.atan2(aim[1], aim[0]), 50.0
        engine.apply_cue(cue, angle, power)

        balls = [cue, obj]
        steps, captured = _run(engine, balls) if run else (0, [])
        return {"cue": cue, "object": obj, "balls": balls, "engine": engine,
                "angle": angle, "power": power, "captured": captured, "steps": steps}

    @staticmethod
    def scratch(run=True) -> dict:
        """Cue ball alone, rolled straight into the top-left pocket."""
        engine = PhysicsEngine()
        pocket = np.array(engine.table.pockets[0])

        cue = Ball(0, position=[60.0, 60.0])
        aim = pocket - cue.position
        angle, power = math.atan2(aim[1], aim[0]), 30.0
        engine.apply_cue(cue, angle, power)

        balls = [cue]
        steps, captured = _run(engine, balls) if run else (0, [])
        return {"cue": cue, "balls": balls, "engine": engine,
                "angle": angle, "power": power, "captured": captured, "steps": steps}

    @staticmethod
    def break_shot(run=True, power: float = 100.0) -> dict:
        """Full rack, cue from the head spot straight at the apex."""
        engine = PhysicsEngine()
        table = engine.table

        cue = Ball(0, position=table.head_spot)
        balls = [cue] + [Ball(i, position=p) for i, p in sorted(rack_positions(table).items())]
        angle = 0.0
        engine.apply_cue(cue, angle, power)

        steps, captured = _run(engine, balls) if run else (0, [])
        return {"cue": cue, "balls": balls, "engine": engine,
                "angle": angle, "power": power, "captured": captured, "steps": steps}


PRESETS = {
    "straight": ShotPreset.straight_hit,
    "corner": ShotPreset.corner_pot,
    "scratch": ShotPreset.scratch,
    "break": ShotPreset.break_shot,
}


def get_preset(name: str):
    try:
        return PRESETS[name]
    except KeyError:
        raise ValueError(f"unknown preset '{name}'") from None
