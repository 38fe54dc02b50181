"""
===============================================================================
TOPOLOGY ANALYSIS - Contact Package
===============================================================================
Exact contact windows of node pairs.

Modules:
    pair_solver  -- Closed-form in-range intervals of two trajectories
    obstruction  -- Rectangular buildings blocking links between regions
===============================================================================
"""
