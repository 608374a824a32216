"""
PoolController — Match Controller (game logic layer)

Owns the ball set and the match state, drives the physics stepper one frame
at a time and hands captured balls to the rule engine.

Communicates with the renderer / input layer via:
  - snapshot()        : read-only dict of balls, match state, last outcome, aim
  - pending_events    : rendering commands (rack, shot_result, cue_respot, …)
  - physics_events    : collision / pocket events of the last tick (sounds)

The renderer calls:
  ctrl.tick()                          — once per frame
  ctrl.pointer_down/move/up(x, y)      — table-coordinate input
  ctrl.start_shot / place_cue_ball / reset
"""

import logging
import math
from dataclasses import replace
from typing import Dict, List, Optional, Set

import numpy as np

from geometry import clamp, distance
from physics import Ball, PhysicsEngine, BALL_IDS, CUE_BALL, MAX_POWER
from rules import (
    Group, MatchState, Outcome, ShotOutcome,
    count_remaining, resolve_captures, settle_shot,
)
from table import Table

logger = logging.getLogger(__name__)

# Triangle rows from the apex: eight in the middle, one solid and one stripe
# on the back corners.
RACK_ORDER = (
    (1,),
    (9, 2),
    (10, 8, 3),
    (11, 4, 12, 5),
    (6, 13, 7, 14, 15),
)
RACK_GAP = 0.1      # clearance between racked balls, scaled


def rack_positions(table: Table) -> Dict[int, np.ndarray]:
    """Triangle positions keyed by ball id, apex on the foot spot."""
    col_step = 2 * table.ball_radius + RACK_GAP * table.scale
    row_step = col_step * math.sqrt(3) / 2
    apex = table.foot_spot
    positions = {}
    for row, ids in enumerate(RACK_ORDER):
        for col, ball_id in enumerate(ids):
            positions[ball_id] = np.array([
                apex[0] + row * row_step,
                apex[1] + (col - row / 2) * col_step,
            ])
    return positions


class PoolController:
    """Eight-ball match: state machine + physics orchestration."""

    # ── Class-level constants ─────────────────────────────────────────────────
    AIM_PICKUP_RADIUS = 50.0     # scaled by table.scale
    AIM_DEADZONE      = 50.0     # scaled by table.scale
    CUE_PICKUP_RADIUS = 30.0     # scaled by table.scale
    MAX_SHOT_FRAMES   = 10000

    # ── Constructor ───────────────────────────────────────────────────────────

    def __init__(self, table: Optional[Table] = None):
        self.table = table or Table()
        self.engine = PhysicsEngine(self.table)
        self.balls: List[Ball] = []

        # Match state
        self.state = MatchState()
        self.shot_outcome: Optional[ShotOutcome] = None
        self.mode = "idle"           # "idle" | "running"
        self._shot_outcomes: List[Outcome] = []
        self._respot_pending = False

        # Aiming / placement
        self.aiming = False
        self.aim_angle = 0.0
        self.aim_power = 0.0
        self.placement_preview: Optional[np.ndarray] = None
        self.dragging_cue = False

        # Event queues
        self.pending_events: list[dict] = []   # renderer commands
        self.physics_events: list[dict] = []   # collision sounds

        self.reset()

    # ──────────────────────────────────────────────────────────────────────────
    # Ball management
    # ──────────────────────────────────────────────────────────────────────────

    def ball(self, ball_id: int) -> Ball:
        return self.balls[ball_id]

    @property
    def cue_ball(self) -> Ball:
        return self.balls[CUE_BALL]

    def rack(self) -> List[Ball]:
        """Fresh 16-ball formation: cue on the head spot, triangle on the foot spot."""
        positions = rack_positions(self.table)
        positions[CUE_BALL] = self.table.head_spot
        return [Ball(i, position=positions[i]) for i in BALL_IDS]

    def is_moving(self) -> bool:
        return any(b.is_moving() for b in self.balls)

    def remaining_balls(self, player: int) -> int:
        """Object balls of the player's group still on the table (0 if unassigned)."""
        group = self.state.group_of(player)
        if group is Group.UNASSIGNED:
            return 0
        return count_remaining(self.balls)[group]

    # ──────────────────────────────────────────────────────────────────────────
    # Commands
    # ──────────────────────────────────────────────────────────────────────────

    def reset(self) -> None:
        """Re-rack and start a new match. Supersedes any shot in flight."""
        self.balls = self.rack()
        self.state = MatchState()
        self.shot_outcome = None
        self.mode = "idle"
        self._shot_outcomes = []
        self._respot_pending = False
        self.aiming = False
        self.aim_power = 0.0
        self.placement_preview = None
        self.dragging_cue = False
        self.physics_events.clear()
        self.pending_events.append({"type": "rack"})
        logger.info("new rack")

    def can_start_shot(self) -> bool:
        return (self.state.can_shoot
                and not self.state.awaiting_cue_placement
                and not self.state.finished
                and self.mode == "idle"
                and not self.cue_ball.pocketed
                and not self.is_moving())

    def start_shot(self, angle: float, power: float) -> bool:
        """Strike the cue ball. Returns False (and changes nothing) when not permitted."""
        power = clamp(float(power), 0.0, MAX_POWER)
        if power <= 0.0 or not self.can_start_shot():
            logger.debug("shot rejected (angle=%.3f, power=%.1f)", angle, power)
            return False

        self.engine.apply_cue(self.cue_ball, angle, power)
        for b in self.balls:
            b.trail.clear()

        self.state = replace(self.state, can_shoot=False)
        self.shot_outcome = None
        self._shot_outcomes = []
        self._respot_pending = False
        self.aiming = False
        self.aim_power = 0.0
        self.mode = "running"
        self.pending_events.append({"type": "cue_hit", "power": power})
        logger.info("player %d shoots: angle=%.3f power=%.1f",
                    self.state.current_player, angle, power)
        return True

    def tick(self) -> Set[int]:
        """
        Advance one frame. Returns the ids captured in this frame.

        Does nothing unless a shot is in flight. On the frame where every ball
        comes to rest the shot is settled and the match state updated.
        """
        self.physics_events.clear()
        if self.mode != "running":
            return set()

        captured = self.engine.step(self.balls)
        self.physics_events.extend(self.engine.events)

        if captured:
            remaining = count_remaining(self.balls, captured)
            self.state, outcomes = resolve_captures(self.state, captured, remaining)
            self._shot_outcomes.extend(outcomes)
            if CUE_BALL in captured and not self.state.finished:
                self._respot_pending = True
            for ball_id in sorted(captured):
                self.pending_events.append({"type": "pocketed", "ball": ball_id})

        if not self.is_moving():
            self._on_shot_finished()
        return captured

    def _on_shot_finished(self) -> None:
        self.mode = "idle"
        self.state, self.shot_outcome = settle_shot(self.state, self._shot_outcomes)

        # A match-ending capture cancels the respot of the same shot
        if self._respot_pending and not self.state.finished:
            self._respot_cue_ball()
        self._respot_pending = False
        self._shot_outcomes = []

        self.pending_events.append({"type": "shot_result", **self.shot_outcome.to_dict()})
        if self.state.finished:
            logger.info("match over: player %d wins", self.state.winner)
        else:
            logger.info("shot settled: %s (%s), player %d to shoot",
                        self.shot_outcome.category.value, self.shot_outcome.message,
                        self.state.current_player)

    def _respot_cue_ball(self) -> None:
        cue = self.cue_ball
        cue.pocketed = False
        cue.stop()
        cue.position = self._free_spot(self.table.head_spot)
        self.placement_preview = cue.position.copy()
        self.pending_events.append({"type": "cue_respot",
                                    "pos": [float(v) for v in cue.position]})

    def _free_spot(self, preferred) -> np.ndarray:
        """First position along the head string, starting at ``preferred``, that is legal."""
        step = 2 * self.table.ball_radius
        preferred = self.table.clamp(preferred)
        for k in range(0, 40):
            offset = (k + 1) // 2 * step * (1 if k % 2 else -1)
            candidate = self.table.clamp(preferred + np.array([0.0, offset]))
            if self._placement_ok(candidate):
                return candidate
        return preferred

    def _placement_ok(self, pos) -> bool:
        if not self.table.contains(pos):
            return False
        min_dist = 2 * self.table.ball_radius
        return all(
            distance(pos, b.position) >= min_dist
            for b in self.balls if b.id != CUE_BALL and not b.pocketed
        )

    def place_cue_ball(self, x: float, y: float) -> bool:
        """Put the cue ball in hand down at (x, y). Returns False if not legal."""
        if not self.state.awaiting_cue_placement or self.mode != "idle":
            return False
        pos = np.array([float(x), float(y)])
        if not self._placement_ok(pos):
            logger.debug("cue placement rejected at (%.1f, %.1f)", x, y)
            return False

        cue = self.cue_ball
        cue.position = pos
        cue.stop()
        self.placement_preview = None
        self.state = replace(self.state, awaiting_cue_placement=False)
        self.pending_events.append({"type": "cue_placed", "pos": [float(x), float(y)]})
        return True

    # ──────────────────────────────────────────────────────────────────────────
    # Pointer input (table coordinates)
    # ──────────────────────────────────────────────────────────────────────────

    def pointer_down(self, x: float, y: float) -> None:
        if self.state.awaiting_cue_placement:
            # Pressing on the cue ball picks it up; it is put down on release
            if distance((x, y), self.cue_ball.position) < self.CUE_PICKUP_RADIUS * self.table.scale:
                self.dragging_cue = True
                self.placement_preview = self.table.clamp((x, y))
                return
            self.place_cue_ball(x, y)
            return
        if not self.can_start_shot():
            return
        cue = self.cue_ball
        if distance((x, y), cue.position) < self.AIM_PICKUP_RADIUS * self.table.scale:
            self.aiming = True
            self.aim_angle = math.atan2(y - cue.position[1], x - cue.position[0])
            self.aim_power = 0.0

    def pointer_move(self, x: float, y: float) -> None:
        if self.state.awaiting_cue_placement:
            self.placement_preview = self.table.clamp((x, y))
            return
        if not self.aiming:
            return
        cue = self.cue_ball
        dx, dy = x - cue.position[0], y - cue.position[1]
        s = self.table.scale
        self.aim_angle = math.atan2(dy, dx)
        self.aim_power = clamp((math.hypot(dx, dy) - self.AIM_DEADZONE * s) / s,
                               0.0, MAX_POWER)

    def pointer_up(self) -> bool:
        """Release the cue (or a picked-up cue ball). Returns True if a shot was fired."""
        if self.dragging_cue:
            self.dragging_cue = False
            if self.placement_preview is not None:
                self.place_cue_ball(*self.placement_preview)
            return False
        if not self.aiming:
            return False
        fired = self.aim_power > 0 and self.start_shot(self.aim_angle, self.aim_power)
        self.aiming = False
        self.aim_power = 0.0
        return fired

    # ──────────────────────────────────────────────────────────────────────────
    # Headless helpers
    # ──────────────────────────────────────────────────────────────────────────

    def simulate_shot(self, angle: float, power: float,
                      max_frames: Optional[int] = None) -> Optional[ShotOutcome]:
        """Fire and tick until the shot settles. Returns None if the shot was refused."""
        if not self.start_shot(angle, power):
            return None
        limit = max_frames or self.MAX_SHOT_FRAMES
        frames = 0
        while self.mode == "running" and frames < limit:
            self.tick()
            frames += 1
        return self.shot_outcome

    def load_preset(self, preset_fn) -> None:
        """Lay out a practice position from ``shot_presets`` without firing it."""
        if self.mode == "running":
            return
        self.reset()
        result = preset_fn(run=False)
        by_id = {b.id: b for b in result["balls"]}
        for b in self.balls:
            src = by_id.get(b.id)
            b.stop()
            if src is None:
                # Not part of the layout: off the table
                b.pocketed = True
                continue
            b.position = src.position.copy()
            b.pocketed = src.pocketed
        self.aim_angle = result["angle"]
        self.pending_events.append({"type": "rack"})

    def snapshot(self) -> dict:
        """JSON-ready view of everything the renderer draws."""
        return {
            "table": {
                "width": self.table.width,
                "height": self.table.height,
                "ball_radius": self.table.ball_radius,
                "pocket_radius": self.table.pocket_radius,
                "pockets": [list(p) for p in self.table.pockets],
                "bounds": list(self.table.bounds),
            },
            "balls": [
                {
                    "id": b.id,
                    "kind": b.kind.value,
                    "color": b.color,
                    "pos": [round(float(b.position[0]), 4), round(float(b.position[1]), 4)],
                    "pocketed": b.pocketed,
                    "trail": [[round(x, 2), round(y, 2)] for x, y in b.trail],
                }
                for b in self.balls
            ],
            "state": self.state.to_dict(),
            "remaining": {str(p): self.remaining_balls(p) for p in (1, 2)},
            "outcome": self.shot_outcome.to_dict() if self.shot_outcome else None,
            "mode": self.mode,
            "aim": {
                "active": self.aiming,
                "angle": round(self.aim_angle, 4),
                "power": round(self.aim_power, 2),
            },
            "placement": (None if self.placement_preview is None
                          else [float(v) for v in self.placement_preview]),
        }
