"""
summary.py - Tables summarizing proximity results

Label counts per sample and hop-distance frequency tables, the numbers
reported next to the spatial label plots.
"""
from __future__ import annotations

from typing import Iterable, Optional

import pandas as pd

from ..data.config import ColumnNotFoundError
from .distances import DistanceMap


def label_counts(
    augmented: pd.DataFrame,
    sample_col: Optional[str] = 'sample',
    normalize: bool = False,
) -> pd.DataFrame:
    """
    Count spots per classification label.

    Parameters
    ----------
    augmented : pd.DataFrame
        Output of ProximityResult.augmented_table().
    sample_col : str, optional
        If present in `augmented`, counts are split by sample (one column
        per sample). Pass None to always pool.
    normalize : bool
        If True, return fractions per sample instead of counts.

    Returns
    -------
    pd.DataFrame
        Labels × samples (or a single 'all' column). Every label
        category appears, with zero counts where absent.
    """
    if 'classification_label' not in augmented.columns:
        raise ColumnNotFoundError('classification_label', 'augmented table')

    labels = augmented['classification_label']
    if not isinstance(labels.dtype, pd.CategoricalDtype):
        labels = labels.astype('category')

    if sample_col is not None and sample_col in augmented.columns:
        counts = pd.crosstab(labels, augmented[sample_col], dropna=False)
    else:
        counts = labels.value_counts(sort=False).to_frame('all')

    counts = counts.reindex(labels.cat.categories, fill_value=0)
    counts.index.name = 'classification_label'

    if normalize:
        totals = counts.sum(axis=0).replace(0, 1)
        counts = counts / totals
    return counts


def distance_frequency(
    distance_map: DistanceMap,
    spots: Optional[Iterable] = None,
    by: Optional[pd.Series] = None,
) -> pd.DataFrame:
    """
    Frequency of hop distances, optionally split by a grouping.

    Parameters
    ----------
    distance_map : DistanceMap
    spots : iterable, optional
        Only count these spots (e.g. members of the other group).
    by : pd.Series, optional
        Grouping per spot ID (e.g. sample). One column per group value.

    Returns
    -------
    pd.DataFrame
        Rows are hop distances 0..dmax plus 'unreachable'. Without `by`
        the columns are 'n_spots' and 'fraction'; with `by` one count
        column per group value.

    Examples
    --------
    >>> result = run_proximity(table, 'is_cd8', 'is_tumor', config)
    >>> # How far are CD8 spots from the nearest tumor spot?
    >>> distance_frequency(result.distance_to_group2, spots=result.group1)
    """
    if by is None:
        return distance_map.frequency(spots)

    spot_ids = distance_map.distances.index if spots is None else pd.Index(list(spots))
    groups = by.reindex(spot_ids)

    columns = {}
    for value in pd.unique(groups.dropna()):
        members = spot_ids[(groups == value).to_numpy()]
        columns[value] = distance_map.frequency(members)['n_spots']

    result = pd.DataFrame(columns)
    result.index.name = f'distance_to_{distance_map.target}'
    return result
