"""
Vector helpers shared by the table model, physics stepper and controller.
All points are 2-element numpy arrays in table units.
"""

import math
import numpy as np


def distance(a, b) -> float:
    """Euclidean distance between two points."""
    return float(np.linalg.norm(np.asarray(a, dtype=float) - np.asarray(b, dtype=float)))


def normalize(v) -> np.ndarray:
    """Unit vector along v. A zero vector stays zero."""
    v = np.asarray(v, dtype=float)
    n = np.linalg.norm(v)
    if n < 1e-12:
        return np.zeros_like(v)
    return v / n


def direction(angle: float) -> np.ndarray:
    """Unit vector for an aim angle in radians (0 = +x, pi/2 = +y)."""
    return np.array([math.cos(angle), math.sin(angle)])


def circles_overlap(a, b, ra: float, rb: float) -> bool:
    """True when two circles strictly overlap (touching is not overlap)."""
    return distance(a, b) < ra + rb


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))
