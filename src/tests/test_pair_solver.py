"""
===============================================================================
TOPOLOGY ANALYSIS - Pairwise Contact Solver Test Suite
===============================================================================
Tests for the closed-form contact windows of two moving nodes: static
pairs, separation and approach at constant speed, obstruction by
buildings, relative mobility and diagnostics.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from contact.obstruction import Building, BuildingObstruction, same_building
from contact.pair_solver import solve_pair
from core.exceptions import InvariantViolation
from core.position import Position
from core.run_context import FP_CORRECTION, LATE_TRANSITION, RunContext
from core.trajectory import Trajectory


def _static(x, y=0.0):
    return Trajectory([(0.0, Position(x, y))])


def _linear(t0, p0, t1, p1):
    return Trajectory([(t0, Position(*p0)), (t1, Position(*p1))])


@pytest.fixture
def approach_and_recede():
    """Node starting 50 away, reaching the origin at t=50 and leaving again."""
    return Trajectory([
        (0.0, Position(50.0, 0.0)),
        (50.0, Position(0.0, 0.0)),
        (100.0, Position(50.0, 0.0)),
    ])


# =============================================================================
# Static pairs
# =============================================================================

class TestStaticPairs:

    def test_in_range_is_permanently_connected(self):
        result = solve_pair(_static(0.0), _static(5.0), 0.0, 100.0, 10.0)
        assert result.connected_at_start
        assert result.transitions == []
        assert result.connected_at_end
        assert result.permanently_connected
        assert result.event_times() == [0.0]

    def test_out_of_range_never_connects(self):
        result = solve_pair(_static(0.0), _static(50.0), 0.0, 100.0, 10.0)
        assert not result.connected_at_start
        assert result.transitions == []
        assert not result.connected_at_end
        assert result.event_times() == []

    def test_exactly_at_range_counts_as_connected(self):
        result = solve_pair(_static(0.0), _static(10.0), 0.0, 100.0, 10.0)
        assert result.permanently_connected


# =============================================================================
# Moving pairs
# =============================================================================

class TestMovingPairs:

    @pytest.mark.parametrize("tx_range, speed", [(10.0, 1.0), (25.0, 2.0), (7.5, 0.5)])
    def test_separation_disconnects_at_r_over_v(self, tx_range, speed):
        a = _static(0.0)
        b = _linear(0.0, (0.0, 0.0), 100.0, (100.0 * speed, 0.0))
        result = solve_pair(a, b, 0.0, 100.0, tx_range)
        assert result.connected_at_start
        assert len(result.transitions) == 1
        assert_allclose(result.transitions[0], tx_range / speed, rtol=1e-12)
        assert not result.connected_at_end

    def test_approach_and_recede(self, approach_and_recede):
        result = solve_pair(_static(0.0), approach_and_recede, 0.0, 100.0, 10.0)
        assert not result.connected_at_start
        assert_allclose(result.transitions, [40.0, 60.0], rtol=1e-12)
        assert not result.connected_at_end

    def test_connect_before_window_end(self):
        b = _linear(0.0, (100.0, 0.0), 100.0, (0.0, 0.0))
        result = solve_pair(_static(0.0), b, 0.0, 100.0, 20.0)
        assert_allclose(result.transitions, [80.0], rtol=1e-12)
        assert result.connected_at_end
        assert len(result.event_times()) % 2 == 1

    def test_vertical_separation(self):
        b = _linear(0.0, (0.0, 0.0, 0.0), 10.0, (0.0, 0.0, 10.0))
        result = solve_pair(_static(0.0), b, 0.0, 10.0, 4.0)
        assert_allclose(result.transitions, [4.0], rtol=1e-12)

    def test_parallel_motion_never_changes(self):
        a = _linear(0.0, (0.0, 0.0), 100.0, (100.0, 0.0))
        b = _linear(0.0, (0.0, 5.0), 100.0, (100.0, 5.0))
        result = solve_pair(a, b, 0.0, 100.0, 10.0)
        assert result.permanently_connected

    def test_transitions_alternate_within_window(self, approach_and_recede):
        result = solve_pair(_static(0.0), approach_and_recede, 0.0, 100.0, 10.0)
        times = result.event_times()
        assert times == sorted(times)
        assert all(0.0 <= t <= 100.0 for t in times)

    def test_no_fp_corrections_on_exact_geometry(self, approach_and_recede):
        ctx = RunContext()
        solve_pair(_static(0.0), approach_and_recede, 0.0, 100.0, 10.0, context=ctx)
        assert ctx.count(FP_CORRECTION) == 0
        assert ctx.pairs_solved == 1


# =============================================================================
# Boundary corrections and inconsistent roots
# =============================================================================

class BlockedOnce:
    """Obstruction that only blocks its first query."""

    def __init__(self):
        self.calls = 0

    def __call__(self, pos_a, pos_b):
        self.calls += 1
        return self.calls == 1


class TestBoundaryCorrections:

    def test_obstruction_change_forces_boundary_transition(self):
        # blocked once the moving node reaches x = 2 at the t=5 breakpoint
        b = Trajectory([
            (0.0, Position(1.0, 0.0)),
            (5.0, Position(2.0, 0.0)),
            (10.0, Position(3.0, 0.0)),
        ])
        ctx = RunContext()
        result = solve_pair(_static(0.0), b, 0.0, 10.0, 10.0,
                            blocked=lambda p, q: q.x >= 2.0, context=ctx)
        assert result.connected_at_start
        assert result.transitions == [5.0]
        assert not result.connected_at_end
        assert ctx.corrections == 1
        diag = ctx.diagnostics[0]
        assert diag.kind == FP_CORRECTION
        assert diag.time == 5.0

    def test_root_just_after_segment_start_is_late(self):
        # leaves the range 0.0005 after t=0 while already reported disconnected
        b = _linear(0.0, (9.9995, 0.0), 10.0, (19.9995, 0.0))
        ctx = RunContext()
        result = solve_pair(_static(0.0), b, 0.0, 10.0, 10.0,
                            blocked=BlockedOnce(), context=ctx)
        assert not result.connected_at_start
        assert result.transitions == []
        assert ctx.count(LATE_TRANSITION) == 1
        assert ctx.corrections == 0

    def test_contradicting_root_raises(self):
        # disconnect root at t ~ 4.74 while the pair was never connected
        b = _linear(0.0, (1.0, 0.0), 10.0, (20.0, 0.0))
        with pytest.raises(InvariantViolation) as excinfo:
            solve_pair(_static(0.0), b, 0.0, 10.0, 10.0,
                       blocked=BlockedOnce(), pair=(0, 1))
        assert excinfo.value.pair == (0, 1)
        assert_allclose(excinfo.value.time, 9.0 / 1.9, rtol=1e-9)


# =============================================================================
# Mobility
# =============================================================================

class TestMobility:

    def test_mobility_sums_distance_changes(self, approach_and_recede):
        result = solve_pair(_static(0.0), approach_and_recede, 0.0, 100.0, 10.0,
                            calculate_mobility=True)
        assert_allclose(result.mobility, 100.0)
        arr = result.as_array()
        assert_allclose(arr, [100.0, 40.0, 60.0])

    def test_closest_approach_inside_segment(self):
        # passes the static node at t=5 within one segment
        b = _linear(0.0, (-5.0, 3.0), 10.0, (5.0, 3.0))
        result = solve_pair(_static(0.0), b, 0.0, 10.0, 1.0, calculate_mobility=True)
        d_edge = np.hypot(5.0, 3.0)
        assert_allclose(result.mobility, 2.0 * (d_edge - 3.0))

    def test_mobility_off_by_default(self, approach_and_recede):
        result = solve_pair(_static(0.0), approach_and_recede, 0.0, 100.0, 10.0)
        assert result.mobility == 0.0


# =============================================================================
# Obstruction
# =============================================================================

class TestObstruction:

    @pytest.fixture
    def building(self):
        # door on the west wall at (0, 5)
        return Building(x1=0.0, x2=20.0, y1=0.0, y2=10.0, doorx=0.0, doory=5.0)

    def test_same_building_rules(self, building):
        inside_a = Position(5.0, 5.0)
        inside_b = Position(15.0, 2.0)
        outside = Position(-5.0, 2.0)
        assert same_building([building], inside_a, inside_b)
        assert not same_building([building], inside_a, outside)
        assert same_building([building], Position(-50.0, 0.0), Position(-40.0, 0.0))

    def test_door_line_of_sight(self, building):
        inside = Position(3.0, 5.0)
        outside = Position(-3.0, 5.0)
        assert same_building([building], inside, outside)

    def test_obstructed_pair_never_connects(self, building):
        blocked = BuildingObstruction([building])
        inside = _static(5.0, 2.0)
        outside = _static(-2.0, 2.0)
        result = solve_pair(inside, outside, 0.0, 100.0, 50.0, blocked=blocked)
        assert not result.connected_at_start
        assert result.transitions == []
        assert result.event_times() == []

    def test_obstructed_moving_pair_never_connects(self, building):
        blocked = BuildingObstruction([building])
        inside = _static(10.0, 8.0)
        outside = _linear(0.0, (-100.0, 20.0), 100.0, (100.0, 20.0))
        result = solve_pair(inside, outside, 0.0, 100.0, 1.0e6, blocked=blocked)
        assert result.event_times() == []

    def test_degenerate_building_rejected(self):
        with pytest.raises(ValueError):
            Building(x1=5.0, x2=5.0, y1=0.0, y2=1.0, doorx=5.0, doory=0.5)

    def test_from_row(self):
        b = Building.from_row([0, 10, 0, 10, 5, 10])
        assert b.doory == 10.0
        with pytest.raises(ValueError):
            Building.from_row([0, 10, 0])
