"""
Table model — immutable per-session geometry and physical constants.

Pocket centres and the playable rectangle are derived once from the table
size and radii. A different display scale means a new Table.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from geometry import clamp, distance

# ──────────────────────────────────────────────
# Base geometry (table units at scale 1.0)
# ──────────────────────────────────────────────
BASE_TABLE_WIDTH: float = 800.0
BASE_TABLE_HEIGHT: float = 400.0
BALL_RADIUS: float = 8.0
POCKET_RADIUS: float = 18.0
RAIL_INSET: float = 15.0            # cushion thickness inside the table edge
POCKET_MARGIN: float = 2.0          # capture radius = POCKET_RADIUS - POCKET_MARGIN
CORNER_POCKET_INSET: float = 15.0
SIDE_POCKET_INSET: float = 10.0

# ──────────────────────────────────────────────
# Physical constants (per fixed step)
# ──────────────────────────────────────────────
FRICTION: float = 0.98
RAIL_RESTITUTION: float = 0.8
BALL_RESTITUTION: float = 0.85


@dataclass(frozen=True)
class Table:
    """Rectangular eight-ball table with six pockets."""
    width: float = BASE_TABLE_WIDTH
    height: float = BASE_TABLE_HEIGHT
    ball_radius: float = BALL_RADIUS
    pocket_radius: float = POCKET_RADIUS
    rail_inset: float = RAIL_INSET
    pocket_margin: float = POCKET_MARGIN
    friction: float = FRICTION
    rail_restitution: float = RAIL_RESTITUTION
    ball_restitution: float = BALL_RESTITUTION
    scale: float = 1.0
    pockets: Tuple[Tuple[float, float], ...] = field(init=False)
    bounds: Tuple[float, float, float, float] = field(init=False)

    def __post_init__(self):
        s = self.scale
        w, h = self.width, self.height
        corner = CORNER_POCKET_INSET * s
        side = SIDE_POCKET_INSET * s
        pockets = (
            (corner, corner),              # top left
            (w / 2, side),                 # top side
            (w - corner, corner),          # top right
            (corner, h - corner),          # bottom left
            (w / 2, h - side),             # bottom side
            (w - corner, h - corner),      # bottom right
        )
        margin = self.ball_radius + self.rail_inset
        object.__setattr__(self, "pockets", pockets)
        object.__setattr__(self, "bounds", (margin, w - margin, margin, h - margin))

    @classmethod
    def scaled(cls, scale: float = 1.0) -> "Table":
        """Base 800x400 table with every length multiplied by ``scale``."""
        return cls(
            width=BASE_TABLE_WIDTH * scale,
            height=BASE_TABLE_HEIGHT * scale,
            ball_radius=BALL_RADIUS * scale,
            pocket_radius=POCKET_RADIUS * scale,
            rail_inset=RAIL_INSET * scale,
            pocket_margin=POCKET_MARGIN * scale,
            scale=scale,
        )

    # ──────────────────────────────────────────
    # Derived geometry
    # ──────────────────────────────────────────
    @property
    def capture_radius(self) -> float:
        return self.pocket_radius - self.pocket_margin

    @property
    def head_spot(self) -> np.ndarray:
        """Cue ball starting spot (one quarter down the table)."""
        return np.array([self.width * 0.25, self.height / 2])

    @property
    def foot_spot(self) -> np.ndarray:
        """Apex of the rack."""
        return np.array([self.width * 0.75, self.height / 2])

    def contains(self, point) -> bool:
        """True when a ball centre at ``point`` lies inside the playable rectangle."""
        x_min, x_max, y_min, y_max = self.bounds
        return x_min <= point[0] <= x_max and y_min <= point[1] <= y_max

    def clamp(self, point) -> np.ndarray:
        x_min, x_max, y_min, y_max = self.bounds
        return np.array([clamp(float(point[0]), x_min, x_max),
                         clamp(float(point[1]), y_min, y_max)])

    def pocket_at(self, point) -> Optional[int]:
        """Index of the pocket capturing a ball centred at ``point``, or None."""
        for i, pocket in enumerate(self.pockets):
            if distance(point, pocket) < self.capture_radius:
                return i
        return None
