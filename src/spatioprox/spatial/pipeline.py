"""
pipeline.py - Spot table in, augmented spot table out

Runs graph construction, both distance searches and classification in
order. Nothing is written back into the input: the result object holds
each stage's output and `augmented_table()` returns a fresh DataFrame.

Example
-------
>>> config = ProximityConfig(adjacency_mode='knn', k=6, dmax=10, exclusion_radius=1,
...                          group1_name='CD8', group2_name='Tumor')
>>> result = run_proximity(table, group1='is_cd8', group2='is_tumor', config=config)
>>> annotated = result.augmented_table()
>>>
>>> # New radius, same graph and distances
>>> strict = result.reclassify(exclusion_radius=2)
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

import pandas as pd

from ..data.config import ColumnNotFoundError, ProximityConfig, SpotConfig, ValidationError
from ..data.core import SpotTable
from .classify import classify_spots
from .distances import DistanceMap, bidirectional_distances
from .graph import SpotGraph, build_spot_graph

logger = logging.getLogger(__name__)

GroupSpec = Union[str, pd.Series, Iterable]

OUTPUT_COLUMNS = [
    'distance_to_group2',
    'distance_to_group1',
    'classification_label',
    'classification_rule',
]


def resolve_group(table: SpotTable, group: GroupSpec) -> pd.Index:
    """
    Turn a group specification into the spot IDs of its members.

    Parameters
    ----------
    table : SpotTable
    group : str, pd.Series or iterable
        - str: name of a boolean column of the table; a string that is
          not a column but is a spot ID gives a one-member group
          (column names win when both match)
        - boolean pd.Series indexed by spot ID
        - iterable of spot IDs

    Returns
    -------
    pd.Index
    """
    if isinstance(group, str):
        if group in table.columns:
            group = table.get_column(group)
        elif group in table.spot_index:
            return pd.Index([group])
        else:
            raise ColumnNotFoundError(group, 'spot table')

    if isinstance(group, pd.Series) and pd.api.types.is_bool_dtype(group.dtype):
        flags = group.reindex(table.spot_index)
        if flags.isna().any():
            raise ValidationError(
                f"Membership '{group.name}' is missing for {int(flags.isna().sum())} spots"
            )
        return table.spot_index[flags.to_numpy(dtype=bool)]

    ids = pd.Index(list(group))
    table.get_spot_positions(ids)
    return ids.unique()


@dataclass(frozen=True)
class ProximityResult:
    """
    Output of every pipeline stage for one spot table.

    Attributes
    ----------
    table : SpotTable
        Input spots (unchanged).
    config : ProximityConfig
        Settings used.
    graph : SpotGraph
        Adjacency graph.
    group1, group2 : pd.Index
        Member spot IDs of each group.
    distance_to_group2, distance_to_group1 : DistanceMap
        Hop distances from every spot.
    labels : pd.DataFrame
        'classification_label' and 'classification_rule' per spot.
    """
    table: SpotTable
    config: ProximityConfig
    graph: SpotGraph
    group1: pd.Index
    group2: pd.Index
    distance_to_group2: DistanceMap
    distance_to_group1: DistanceMap
    labels: pd.DataFrame

    def augmented_table(self) -> pd.DataFrame:
        """
        Copy of the input spot records with the distance and label columns.

        Unreachable distances are <NA> in the nullable Int64 columns.
        """
        df = self.table.to_dataframe()
        df['distance_to_group2'] = self.distance_to_group2.distances.reindex(df.index)
        df['distance_to_group1'] = self.distance_to_group1.distances.reindex(df.index)
        df['classification_label'] = self.labels['classification_label'].reindex(df.index)
        df['classification_rule'] = self.labels['classification_rule'].reindex(df.index)
        return df

    def reclassify(self, exclusion_radius: int) -> 'ProximityResult':
        """
        Relabel with a different exclusion radius.

        Graph and distance maps are reused as is; only the labels change.
        """
        config = dataclasses.replace(self.config, exclusion_radius=exclusion_radius)
        labels = _classify(self.table, self.group1, self.group2,
                           self.distance_to_group2, self.distance_to_group1, config)
        return dataclasses.replace(self, config=config, labels=labels)

    def label_counts(self) -> pd.Series:
        """Number of spots per label, all labels included."""
        return self.labels['classification_label'].value_counts(sort=False)


def _classify(table, group1, group2, to_group2, to_group1, config) -> pd.DataFrame:
    return classify_spots(
        table.spot_index,
        group1,
        group2,
        distance_to_group2=to_group2,
        distance_to_group1=to_group1,
        exclusion_radius=config.exclusion_radius,
        group1_name=config.group1_name,
        group2_name=config.group2_name,
    )


def run_proximity(
    table: Union[SpotTable, pd.DataFrame],
    group1: GroupSpec,
    group2: GroupSpec,
    config: Optional[ProximityConfig] = None,
    graph: Optional[SpotGraph] = None,
    spot_config: Optional[SpotConfig] = None,
    allow_empty: bool = True,
    verbose: bool = True,
) -> ProximityResult:
    """
    Build the graph, compute both distance maps and label every spot.

    Parameters
    ----------
    table : SpotTable or pd.DataFrame
        Spot records. A DataFrame is wrapped with spot_config.
    group1, group2 : str, boolean pd.Series or iterable of spot IDs
        Group memberships (see resolve_group).
    config : ProximityConfig, optional
        Graph, distance and classification settings.
    graph : SpotGraph, optional
        Prebuilt graph over exactly the table's spots; skips construction.
    spot_config : SpotConfig, optional
        Column names, used only when table is a DataFrame.
    allow_empty : bool
        Treat empty groups as all-Unreachable instead of raising
        EmptyGroupError.
    verbose : bool
        Print stage reports.

    Returns
    -------
    ProximityResult
    """
    config = config or ProximityConfig()
    if isinstance(table, pd.DataFrame):
        table = SpotTable.from_dataframe(table, config=spot_config)

    members1 = resolve_group(table, group1)
    members2 = resolve_group(table, group2)

    if verbose:
        print(f"\nSpot proximity: {table.n_spots} spots, {table.n_samples} sample(s), "
              f"{config.group1_name}={len(members1)}, {config.group2_name}={len(members2)}")

    if graph is None:
        graph = build_spot_graph(table, config, verbose=verbose)
    elif not graph.spot_ids.equals(table.spot_index):
        raise ValidationError("Graph nodes do not match the spots of the table")
    else:
        logger.info("Using prebuilt %s graph with %d edges", graph.method, graph.n_edges)

    to_group2, to_group1 = bidirectional_distances(
        graph,
        members1,
        members2,
        dmax=config.dmax,
        names=(config.group1_name, config.group2_name),
        allow_empty=allow_empty,
        verbose=verbose,
    )

    labels = _classify(table, members1, members2, to_group2, to_group1, config)

    if verbose:
        counts = labels['classification_label'].value_counts(sort=False)
        print("  ✓ Labels:")
        for label, count in counts.items():
            print(f"    {label}: {count:,}")

    return ProximityResult(
        table=table,
        config=config,
        graph=graph,
        group1=members1,
        group2=members2,
        distance_to_group2=to_group2,
        distance_to_group1=to_group1,
        labels=labels,
    )


def annotate_proximity(
    table: Union[SpotTable, pd.DataFrame],
    group1: GroupSpec,
    group2: GroupSpec,
    config: Optional[ProximityConfig] = None,
    **kwargs,
) -> pd.DataFrame:
    """
    Shortcut for run_proximity(...).augmented_table().

    Returns
    -------
    pd.DataFrame
        Input records plus distance_to_group2, distance_to_group1,
        classification_label and classification_rule.
    """
    return run_proximity(table, group1, group2, config=config, **kwargs).augmented_table()
