"""
===============================================================================
TOPOLOGY ANALYSIS - Core Package
===============================================================================
Shared building blocks of the connectivity analysis.

Modules:
    constants        -- Numeric tolerances, metric identifiers, column names
    exceptions       -- Error hierarchy of the analysis
    position         -- Immutable 3D point and vector helpers
    trajectory       -- Piecewise-linear node movement
    scenario         -- Trajectories, duration and obstruction regions
    data_structures  -- Event heap, link events, union-find
    run_context      -- Per-pass counters and structured diagnostics
===============================================================================
"""
