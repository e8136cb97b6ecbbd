"""
spatial - Spot proximity analysis

Three stages, each usable on its own:

graph : Spatial adjacency graph over spot coordinates
    k-NN (with an explicit symmetrization policy) or Delaunay
    triangulation, built per sample.

distances : Hop distance to the nearest member of a group
    One multi-source breadth-first search per group, capped at dmax.

classify : Proximity labels
    Seven precedence-ordered rules giving exactly one label per spot.

pipeline and summary tie the stages together and tabulate the results.

Usage
-----
>>> import spatioprox as spx
>>>
>>> config = spx.ProximityConfig(k=6, dmax=10, exclusion_radius=1)
>>> result = spx.spatial.run_proximity(table, 'is_cd8', 'is_tumor', config)
>>> annotated = result.augmented_table()
>>> spx.spatial.label_counts(annotated)
"""

# Graph construction
from .graph import (
    SpotGraph,
    build_knn_graph,
    build_delaunay_graph,
    build_graph_from_edges,
    build_spot_graph,
)

# Distance engine
from .distances import (
    DistanceMap,
    group_distances,
    bidirectional_distances,
)

# Classification
from .classify import (
    SpotLabel,
    RULE_LABELS,
    classify_spots,
    label_categories,
)

# Pipeline
from .pipeline import (
    OUTPUT_COLUMNS,
    ProximityResult,
    resolve_group,
    run_proximity,
    annotate_proximity,
)

# Summaries
from .summary import (
    label_counts,
    distance_frequency,
)

__all__ = [
    # Classes
    'SpotGraph',
    'DistanceMap',
    'SpotLabel',
    'ProximityResult',

    # Graph construction
    'build_knn_graph',
    'build_delaunay_graph',
    'build_graph_from_edges',
    'build_spot_graph',

    # Distances
    'group_distances',
    'bidirectional_distances',

    # Classification
    'RULE_LABELS',
    'classify_spots',
    'label_categories',

    # Pipeline
    'OUTPUT_COLUMNS',
    'resolve_group',
    'run_proximity',
    'annotate_proximity',

    # Summaries
    'label_counts',
    'distance_frequency',
]
