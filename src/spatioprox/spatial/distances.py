"""
distances.py - Hop distances from every spot to the nearest group member

One multi-source breadth-first traversal per target group: the frontier is
seeded with every member of the group at once, so each spot's distance is
the hop count to its nearest member. Traversal stops at `dmax` hops.

Results are DistanceMap objects whose values are either an integer hop
count or <NA> (Unreachable: no member within dmax hops, or none at all).
No integer sentinel is used for capped distances.
"""
from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.sparse import csgraph

from ..data.config import (
    DisconnectedGraphError,
    EmptyGroupError,
    InvalidConfigurationError,
    is_int,
)
from .graph import SpotGraph


UNREACHABLE_LABEL = 'unreachable'


@dataclass(frozen=True)
class DistanceMap:
    """
    Hop distance from every spot to the nearest member of a target group.

    Attributes
    ----------
    distances : pd.Series
        Nullable Int64 series indexed by spot ID. An integer is a true
        graph distance (0 for members of the target); <NA> means
        Unreachable within dmax.
    target : str
        Name of the target group.
    dmax : int
        Search radius used.
    n_targets : int
        Number of target group members.
    """
    distances: pd.Series
    target: str
    dmax: int
    n_targets: int

    @property
    def n_reachable(self) -> int:
        return int(self.distances.notna().sum())

    @property
    def n_unreachable(self) -> int:
        return int(self.distances.isna().sum())

    def is_reachable(self) -> pd.Series:
        """Boolean Series, True where a distance was found."""
        return self.distances.notna()

    def get(self, spot_id) -> Optional[int]:
        """Distance for one spot, or None when Unreachable."""
        value = self.distances.loc[spot_id]
        return None if pd.isna(value) else int(value)

    def within(self, radius: int) -> pd.Series:
        """
        Boolean Series, True where distance <= radius.

        Unreachable spots are never within any radius.
        """
        return (self.distances <= radius).fillna(False).astype(bool)

    def frequency(self, spots: Optional[Iterable] = None) -> pd.DataFrame:
        """
        Number of spots at each hop distance.

        Parameters
        ----------
        spots : iterable, optional
            Restrict the count to these spot IDs (e.g. the members of the
            other group). Defaults to all spots.

        Returns
        -------
        pd.DataFrame
            Indexed by hop distance 0..dmax plus 'unreachable', with
            columns 'n_spots' and 'fraction'.
        """
        values = self.distances if spots is None else self.distances.loc[list(spots)]
        counts = values.value_counts(dropna=True)

        index = list(range(self.dmax + 1)) + [UNREACHABLE_LABEL]
        n_spots = [int(counts.get(d, 0)) for d in range(self.dmax + 1)]
        n_spots.append(int(values.isna().sum()))

        result = pd.DataFrame(
            {'n_spots': n_spots},
            index=pd.Index(index, dtype=object, name=f'distance_to_{self.target}'),
        )
        total = result['n_spots'].sum()
        result['fraction'] = result['n_spots'] / total if total > 0 else 0.0
        return result

    def __repr__(self) -> str:
        return (f"DistanceMap (target={self.target}, dmax={self.dmax}, "
                f"{self.n_reachable} reachable, {self.n_unreachable} unreachable)")


def _validate_dmax(dmax) -> None:
    if not is_int(dmax) or dmax <= 0:
        raise InvalidConfigurationError(f"dmax must be a positive integer, got {dmax!r}")


def group_distances(
    graph: SpotGraph,
    target: Iterable,
    dmax: int,
    name: Optional[str] = None,
    allow_empty: bool = True,
    verbose: bool = True,
) -> DistanceMap:
    """
    Hop distance from every spot to the nearest member of `target`.

    Parameters
    ----------
    graph : SpotGraph
        Adjacency graph.
    target : iterable
        Spot IDs of the target group.
    dmax : int
        Maximum hop count searched (positive).
    name : str, optional
        Target group name used in reports and column names.
    allow_empty : bool
        If True, an empty target yields an all-Unreachable map (with a
        warning). If False, raise EmptyGroupError.
    verbose : bool
        Print a one-line report.

    Returns
    -------
    DistanceMap
    """
    name = name or 'target'
    _validate_dmax(dmax)
    if graph.n_edges == 0:
        raise DisconnectedGraphError(
            f"Graph over {graph.n_spots} spots has no edges; distances are undefined"
        )

    seeds = np.unique(graph.positions(target))
    n_spots = graph.n_spots

    if len(seeds) == 0:
        if not allow_empty:
            raise EmptyGroupError(name)
        warnings.warn(f"Group '{name}' is empty; all spots are unreachable", stacklevel=2)
        values = np.zeros(n_spots, dtype=np.int64)
        mask = np.ones(n_spots, dtype=bool)
    else:
        # Unweighted multi-source search: min_only collapses all seeds into
        # one traversal; the half-hop margin keeps exactly-dmax paths
        hops = csgraph.dijkstra(
            graph.adjacency.astype(np.float64),
            directed=False,
            indices=seeds,
            unweighted=True,
            limit=dmax + 0.5,
            min_only=True,
        )
        mask = ~(np.isfinite(hops) & (hops <= dmax))
        values = np.where(mask, 0, np.rint(np.nan_to_num(hops, posinf=0))).astype(np.int64)

    distances = pd.Series(
        pd.arrays.IntegerArray(values, mask),
        index=graph.spot_ids,
        name=f'distance_to_{name}',
    )
    result = DistanceMap(distances=distances, target=name, dmax=int(dmax), n_targets=len(seeds))

    if verbose:
        print(f"  ✓ Distances to {name} ({len(seeds)} members, dmax={dmax}): "
              f"{result.n_reachable} reachable, {result.n_unreachable} unreachable")
    return result


def bidirectional_distances(
    graph: SpotGraph,
    group1: Iterable,
    group2: Iterable,
    dmax: int,
    names: Tuple[str, str] = ('group1', 'group2'),
    allow_empty: bool = True,
    verbose: bool = True,
) -> Tuple[DistanceMap, DistanceMap]:
    """
    Distances to group2 and to group1, each from every spot.

    The two maps are computed independently and are generally not mirror
    images: the nearest group2 spot of a group1 spot need not have that
    group1 spot as its own nearest group1 spot. Spots in both groups have
    distance 0 in both maps.

    Parameters
    ----------
    graph : SpotGraph
    group1, group2 : iterable
        Spot IDs; the groups may overlap.
    dmax : int
    names : (str, str)
        Group names.
    allow_empty : bool
        See group_distances.
    verbose : bool

    Returns
    -------
    (DistanceMap, DistanceMap)
        (distance_to_group2, distance_to_group1)
    """
    group1 = list(group1)
    group2 = list(group2)
    name1, name2 = names

    to_group2 = group_distances(graph, group2, dmax, name=name2,
                                allow_empty=allow_empty, verbose=verbose)
    to_group1 = group_distances(graph, group1, dmax, name=name1,
                                allow_empty=allow_empty, verbose=verbose)
    return to_group2, to_group1
