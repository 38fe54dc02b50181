"""
===============================================================================
TOPOLOGY ANALYSIS - Simulation Package
===============================================================================
Orchestration of an analysis run.

Modules:
    config     -- YAML analysis configuration
    scheduler  -- Pairwise solving into the event heap
    engine     -- Range sweep over schedule + aggregate passes
    output     -- Series and summary file writers
===============================================================================
"""
