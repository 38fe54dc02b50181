"""
In-memory mobility scenario: the trajectories handed over by a mobility
generator together with the run parameters the analysis needs.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from core.trajectory import Trajectory

logger = logging.getLogger(__name__)


@dataclass
class Scenario:
    """
    Trajectories of all nodes plus the scenario duration.

    Attributes
    ----------
    trajectories : list of Trajectory
        One trajectory per node; the list index is the node index.
    duration : float
        Length of the scenario in time units.
    buildings : list of Building
        Optional obstruction regions (see ``contact.obstruction``).
    """
    trajectories: List[Trajectory]
    duration: float
    buildings: Sequence = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.duration < 0.0:
            raise ValueError(f"Scenario duration must be non-negative, got {self.duration}")

    @property
    def node_count(self) -> int:
        return len(self.trajectories)

    def cut(self, begin: float, end: float) -> None:
        """
        Extract the time span ``[begin, end]`` from every trajectory.

        Raises
        ------
        ValueError
            If the window does not satisfy 0 <= begin <= end <= duration.
        """
        if not (0.0 <= begin <= end <= self.duration):
            raise ValueError(
                f"Invalid cut window [{begin}, {end}] for duration {self.duration}"
            )
        for trajectory in self.trajectories:
            trajectory.cut(begin, end)
        self.duration = end - begin
        logger.info("Scenario cut to [%.3f, %.3f]; new duration %.3f", begin, end, self.duration)
