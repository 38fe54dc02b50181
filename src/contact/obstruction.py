"""
===============================================================================
TOPOLOGY ANALYSIS - Line-of-Sight Obstruction by Buildings
===============================================================================
Buildings are axis-aligned rectangles with a single door on one of their
walls.  Radio links do not pass through walls:

    - two nodes inside the same building can communicate,
    - a node inside a building reaches a node outside only through the
      door, i.e. both stand on the door's axis within DOOR_PROXIMITY of
      the door,
    - two nodes outside every building are unobstructed.

The predicate is approximate (it does not trace the segment between the
nodes) and is evaluated at discrete instants by the contact solver.
===============================================================================
"""

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

from core.constants import DOOR_PROXIMITY
from core.position import Position


@dataclass(frozen=True)
class Building:
    """
    Rectangular obstruction region ``[x1, x2] x [y1, y2]`` with a door.

    The door lies on one of the four walls: ``doorx == x1`` (west),
    ``doorx == x2`` (east), ``doory == y1`` (south) or ``doory == y2``
    (north).
    """
    x1: float
    x2: float
    y1: float
    y2: float
    doorx: float
    doory: float

    def __post_init__(self) -> None:
        if self.x1 >= self.x2 or self.y1 >= self.y2:
            raise ValueError(
                f"Degenerate building [{self.x1}, {self.x2}] x [{self.y1}, {self.y2}]"
            )

    def contains(self, pos: Position) -> bool:
        """Strict interior test; walls belong to the outside."""
        return self.x1 < pos.x < self.x2 and self.y1 < pos.y < self.y2

    def through_door(self, inside: Position, outside: Position) -> bool:
        """Whether a node inside can see a node outside through the door."""
        tol = DOOR_PROXIMITY
        if self.x1 == self.doorx:
            return (outside.x > self.doorx - tol and outside.y == self.doory
                    and inside.x < self.doorx + tol and inside.y == self.doory)
        if self.x2 == self.doorx:
            return (outside.x < self.doorx + tol and outside.y == self.doory
                    and inside.x > self.doorx - tol and inside.y == self.doory)
        if self.y1 == self.doory:
            return (outside.y > self.doory - tol and outside.x == self.doorx
                    and inside.x == self.doorx and inside.y < self.doory + tol)
        if self.y2 == self.doory:
            return (outside.y < self.doory + tol and outside.x == self.doorx
                    and inside.x == self.doorx and inside.y > self.doory - tol)
        return False

    @classmethod
    def from_row(cls, values: Sequence[float]) -> 'Building':
        """Build from ``(x1, x2, y1, y2, doorx, doory)``."""
        if len(values) != 6:
            raise ValueError(f"A building needs 6 values, got {len(values)}")
        return cls(*(float(v) for v in values))


def same_building(buildings: Iterable[Building], pos1: Position, pos2: Position) -> bool:
    """
    Line-of-sight test between two positions.

    The first building that contains either position decides.

    Returns
    -------
    bool
        ``True`` when the two positions may communicate.
    """
    for b in buildings:
        if b.contains(pos1):
            return b.contains(pos2) or b.through_door(pos1, pos2)
        if b.contains(pos2):
            return b.through_door(pos2, pos1)
    return True


class BuildingObstruction:
    """
    Obstruction predicate ``blocked(pos_a, pos_b) -> bool`` over buildings.

    Instances are plain picklable objects so they can be shipped to the
    scheduler's worker processes.
    """

    def __init__(self, buildings: Iterable[Building]) -> None:
        self.buildings: Tuple[Building, ...] = tuple(buildings)

    def __call__(self, pos_a: Position, pos_b: Position) -> bool:
        return not same_building(self.buildings, pos_a, pos_b)

    def __len__(self) -> int:
        return len(self.buildings)

    def __repr__(self) -> str:
        return f"BuildingObstruction(buildings={len(self.buildings)})"
