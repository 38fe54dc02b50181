"""
===============================================================================
TOPOLOGY ANALYSIS - Numerical Tolerances and Analysis Constants
===============================================================================
Central repository for the tolerances, fixed geometric parameters and
metric identifiers used throughout the connectivity analysis.  Times are in
scenario time units (usually seconds), distances in scenario distance units
(usually meters).
===============================================================================
"""

# =============================================================================
# CONTACT SOLVER TOLERANCES
# =============================================================================
LATE_TRANSITION_TOLERANCE = 0.001      # time units a root may trail the tracked state
SHORT_CONTACT_HALF_WIDTH = 0.01        # contacts narrower than this are reported

# =============================================================================
# TRAJECTORY CONSTANTS
# =============================================================================
EXTEND_TIME_OFFSET = 0.0001            # gap inserted when chaining two trajectories

# =============================================================================
# OBSTRUCTION GEOMETRY
# =============================================================================
DOOR_PROXIMITY = 10.0                  # distance tolerance around a building door

# =============================================================================
# EVENT STREAM
# =============================================================================
STOPPER_INDEX = -1                     # negative src index marks a sentinel event

# =============================================================================
# METRIC IDENTIFIERS AND OUTPUT SUFFIXES
# =============================================================================
METRIC_NODE_DEGREE = 'nodedeg'
METRIC_PARTITIONS = 'part'
METRIC_PARTITION_DEGREE = 'partdeg'
METRIC_MIN_CUT = 'mincut'
METRIC_STABILITY = 'stability'
METRIC_UNIDIRECTIONAL = 'uni'

ALL_METRICS = (
    METRIC_NODE_DEGREE,
    METRIC_PARTITIONS,
    METRIC_PARTITION_DEGREE,
    METRIC_MIN_CUT,
    METRIC_STABILITY,
    METRIC_UNIDIRECTIONAL,
)

# Column layout of the run-averaged summary row
OVERALL_COLUMNS = (
    'range',
    'avg_degree',
    'avg_partitions',
    'avg_partition_degree',
    'E[breakdur]',
    'Var[breakdur]',
    'breakcount',
    'avg_linkdur',
    'totallinks',
)


def metric_suffix(name: str) -> str:
    """
    Validate a metric identifier and return its output file suffix.

    Args:
        name: Metric identifier, one of ALL_METRICS

    Returns:
        The suffix used for the metric's series file

    Raises:
        ValueError: If name is not a known metric
    """
    key = name.lower()
    if key not in ALL_METRICS:
        raise ValueError(f"Unknown metric: {name}. Valid: {list(ALL_METRICS)}")
    return key
