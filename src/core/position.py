"""
===============================================================================
TOPOLOGY ANALYSIS - Node Positions
===============================================================================
A position in the simulation area, which doubles as a vector from the
origin.  Mobility traces are planar in practice, so ``z`` defaults to zero
and every operation degrades gracefully to the 2D case.

Angles are in radians.
===============================================================================
"""

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class Position:
    """
    Immutable (x, y, z) coordinate.

    Equality is exact coordinate equality, which is what waypoint
    de-duplication and the trajectory cut rely on.
    """
    x: float
    y: float
    z: float = 0.0

    # =========================================================================
    # METRIC OPERATIONS
    # =========================================================================

    def distance(self, other: 'Position') -> float:
        """Euclidean distance to another position."""
        dx = other.x - self.x
        dy = other.y - self.y
        dz = other.z - self.z
        return math.sqrt(dx * dx + dy * dy + dz * dz)

    def norm(self) -> float:
        """Length of the position viewed as a vector."""
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def shifted(self, dx: float, dy: float, dz: float = 0.0) -> 'Position':
        """Return a copy translated by (dx, dy, dz)."""
        return Position(self.x + dx, self.y + dy, self.z + dz)

    def as_array(self) -> np.ndarray:
        """Return the coordinates as a float64 array of shape (3,)."""
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    # =========================================================================
    # VECTOR OPERATIONS
    # =========================================================================

    @staticmethod
    def diff(p: 'Position', q: 'Position') -> 'Position':
        """Difference q - p, i.e. how to reach q from p."""
        return Position(q.x - p.x, q.y - p.y, q.z - p.z)

    @staticmethod
    def scalar_product(p: 'Position', q: 'Position') -> float:
        return p.x * q.x + p.y * q.y + p.z * q.z

    @staticmethod
    def angle(p: 'Position', q: 'Position') -> float:
        """
        Inner angle between two vectors, independent of their order.

        Returns
        -------
        float
            Angle in [0, pi].

        Raises
        ------
        ValueError
            If either vector has zero length.
        """
        denom = p.norm() * q.norm()
        if denom == 0.0:
            raise ValueError("Angle is undefined for a zero-length vector.")
        # Clamp against floating-point overshoot in acos
        cos_a = Position.scalar_product(p, q) / denom
        return math.acos(min(1.0, max(-1.0, cos_a)))

    @staticmethod
    def angle2(p: 'Position', q: 'Position') -> float:
        """
        Counter-clockwise angle from p to q, measured in the x-y plane.

        Returns
        -------
        float
            Angle in [0, 2*pi).
        """
        a = Position.angle(p, q)
        orthogonal = Position.angle(Position(-p.y, p.x, p.z), q)
        if orthogonal > math.pi / 2.0:
            a = 2.0 * math.pi - a
        return math.fmod(a, 2.0 * math.pi)

    def __str__(self) -> str:
        if self.z == 0.0:
            return f"({self.x}, {self.y})"
        return f"({self.x}, {self.y}, {self.z})"
