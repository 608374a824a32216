"""
Eight-Ball Table Physics Engine
Fixed-step 2-D motion, rail and ball-ball collision, pocket capture.

One call to ``PhysicsEngine.step`` is one frame. Velocities are in table
units per step; every ball has the same (unit) mass.
"""

import enum
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Iterable, List, Set, Tuple

import numpy as np

from geometry import clamp, direction
from table import Table

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────
BALL_MASS: float = 1.0
SETTLE_SPEED: float = 0.1            # below this a ball is at rest
COLLISION_ITERATIONS: int = 3
TRAIL_LENGTH: int = 10
MAX_POWER: float = 100.0
POWER_SCALE: float = 0.2             # cue speed per unit of power

CUE_BALL: int = 0
EIGHT_BALL: int = 8
BALL_IDS: Tuple[int, ...] = tuple(range(16))

BALL_COLORS = {
    0: "#FFFFFF",
    1: "#FFD700", 2: "#0066CC", 3: "#FF0000", 4: "#800080",
    5: "#FFA500", 6: "#008000", 7: "#8B4513",
    8: "#000000",
    9: "#FFD700", 10: "#0066CC", 11: "#FF0000", 12: "#800080",
    13: "#FFA500", 14: "#008000", 15: "#8B4513",
}


class BallKind(enum.Enum):
    CUE = "cue"
    SOLID = "solid"
    EIGHT = "eight"
    STRIPE = "stripe"


def ball_kind(ball_id: int) -> BallKind:
    if ball_id == CUE_BALL:
        return BallKind.CUE
    if ball_id == EIGHT_BALL:
        return BallKind.EIGHT
    if 1 <= ball_id <= 7:
        return BallKind.SOLID
    if 9 <= ball_id <= 15:
        return BallKind.STRIPE
    raise ValueError(f"unknown ball id {ball_id}")


@dataclass
class Ball:
    """Pool ball: position, velocity, pocketed flag and a short trail."""
    id: int
    position: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    velocity: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0]))
    pocketed: bool = False
    trail: Deque[Tuple[float, float]] = field(
        default_factory=lambda: deque(maxlen=TRAIL_LENGTH))
    mass: float = BALL_MASS

    def __post_init__(self):
        self.kind = ball_kind(self.id)
        self.position = np.array(self.position, dtype=float)
        self.velocity = np.array(self.velocity, dtype=float)
        if not isinstance(self.trail, deque) or self.trail.maxlen != TRAIL_LENGTH:
            self.trail = deque(self.trail, maxlen=TRAIL_LENGTH)

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    @property
    def color(self) -> str:
        return BALL_COLORS[self.id]

    def is_moving(self) -> bool:
        return not self.pocketed and bool(np.any(self.velocity != 0.0))

    def stop(self) -> None:
        """Zero velocity and forget the trail."""
        self.velocity[:] = 0.0
        self.trail.clear()


class PhysicsEngine:
    """Fixed-step billiards stepper bound to one immutable table."""

    def __init__(self, table: Table = None):
        self.table = table or Table()
        self.events: list = []

    # ──────────────────────────────────────────
    # Cue strike
    # ──────────────────────────────────────────
    @staticmethod
    def apply_cue(ball: Ball, angle: float, power: float) -> None:
        """
        Strike a ball with the cue.

        Args:
            ball: The ball being struck (normally the cue ball).
            angle: Aim direction in radians, 0 = +x.
            power: Cue power, clamped to [0, MAX_POWER].
        """
        power = clamp(float(power), 0.0, MAX_POWER)
        ball.velocity = direction(angle) * power * POWER_SCALE

    # ──────────────────────────────────────────
    # 1. Integration
    # ──────────────────────────────────────────
    @staticmethod
    def _integrate(ball: Ball) -> None:
        ball.position = ball.position + ball.velocity
        ball.trail.append((float(ball.position[0]), float(ball.position[1])))

    # ──────────────────────────────────────────
    # 2. Rail collision
    # ──────────────────────────────────────────
    def _check_rail_collisions(self, ball: Ball) -> None:
        """Clamp each axis to the playable rectangle and reflect that component."""
        x_min, x_max, y_min, y_max = self.table.bounds
        e = self.table.rail_restitution
        for axis, lo, hi in ((0, x_min, x_max), (1, y_min, y_max)):
            if ball.position[axis] < lo:
                ball.position[axis] = lo
            elif ball.position[axis] > hi:
                ball.position[axis] = hi
            else:
                continue
            impact_speed = abs(float(ball.velocity[axis]))
            ball.velocity[axis] = -ball.velocity[axis] * e
            self.events.append({"type": "cushion", "ball": ball.id, "speed": impact_speed})

    # ──────────────────────────────────────────
    # 3. Friction & settling
    # ──────────────────────────────────────────
    def _apply_friction(self, ball: Ball) -> None:
        ball.velocity = ball.velocity * self.table.friction
        if ball.speed < SETTLE_SPEED:
            ball.stop()

    # ──────────────────────────────────────────
    # 4. Ball-ball collision
    # ──────────────────────────────────────────
    def _check_ball_collision(self, b1: Ball, b2: Ball) -> bool:
        dist = np.linalg.norm(b1.position - b2.position)
        return dist < 2 * self.table.ball_radius

    def _resolve_ball_collision(self, b1: Ball, b2: Ball) -> None:
        """
        Separate an overlapping pair and exchange momentum along the line of centres.

        Impulse: j = -(1 + e) * v_n / (1/m1 + 1/m2), with v_n the relative
        velocity of b1 w.r.t. b2 projected on the normal pointing b2 -> b1.
        """
        diff = b1.position - b2.position
        dist = float(np.linalg.norm(diff))
        if dist < 1e-9:
            return

        normal = diff / dist

        # Separate overlapping balls, half the overlap each
        overlap = 2 * self.table.ball_radius - dist
        if overlap > 0:
            b1.position = b1.position + normal * (overlap / 2)
            b2.position = b2.position - normal * (overlap / 2)

        rel_vel = b1.velocity - b2.velocity
        vel_along_normal = float(np.dot(rel_vel, normal))

        # Separating or resting contact
        if vel_along_normal >= 0:
            return

        self.events.append({
            "type": "ball_ball", "ball1": b1.id, "ball2": b2.id,
            "speed": abs(vel_along_normal),
        })

        e = self.table.ball_restitution
        j = -(1 + e) * vel_along_normal / (1 / b1.mass + 1 / b2.mass)

        impulse = j * normal
        b1.velocity = b1.velocity + impulse / b1.mass
        b2.velocity = b2.velocity - impulse / b2.mass

    def _resolve_collisions(self, balls: List[Ball]) -> None:
        for _ in range(COLLISION_ITERATIONS):
            for i in range(len(balls)):
                for j in range(i + 1, len(balls)):
                    if self._check_ball_collision(balls[i], balls[j]):
                        self._resolve_ball_collision(balls[i], balls[j])

    # ──────────────────────────────────────────
    # 6. Pocket capture
    # ──────────────────────────────────────────
    def _check_pocket(self, ball: Ball) -> bool:
        pocket = self.table.pocket_at(ball.position)
        if pocket is None:
            return False
        self.events.append({"type": "pocket", "ball": ball.id, "pocket": pocket,
                            "speed": ball.speed})
        ball.pocketed = True
        ball.stop()
        return True

    # ──────────────────────────────────────────
    # Main update
    # ──────────────────────────────────────────
    def step(self, balls: Iterable[Ball]) -> Set[int]:
        """Advance one fixed step. Returns ids of balls captured in this step."""
        self.events.clear()
        active = sorted((b for b in balls if not b.pocketed), key=lambda b: b.id)

        for ball in active:
            self._integrate(ball)
            self._check_rail_collisions(ball)
            self._apply_friction(ball)

        self._resolve_collisions(active)

        # Collision correction may push a ball back into the cushion
        for ball in active:
            ball.position = self.table.clamp(ball.position)

        captured: Set[int] = set()
        for ball in active:
            if self._check_pocket(ball):
                captured.add(ball.id)
        if captured:
            logger.debug("captured %s", sorted(captured))
        return captured

    def simulate(self, balls: List[Ball], max_steps: int = 5000) -> Tuple[int, Set[int]]:
        """
        Step until every ball is at rest or ``max_steps`` is reached.

        Returns:
            (steps taken, ids captured over the whole run)
        """
        captured: Set[int] = set()
        steps = 0
        while steps < max_steps and any(b.is_moving() for b in balls):
            captured |= self.step(balls)
            steps += 1
        return steps, captured
