"""
topology - Network topology state and aggregated metrics

    graph       : adjacency matrix and per-instant graph metrics
    metrics     : change-only metric series and sampling deadlines
    aggregator  : progressive and overall consumption of the event heap
"""
