"""
classify.py - Proximity labels for every spot

Labels each spot from its group memberships and its hop distances to the
two groups. Rules are evaluated in a fixed precedence order and the first
matching rule wins:

    1. group1 and group2                              -> Double-Positive
    2. group2 only, distance to group1 <= 1           -> Group2-Positive, Group1-Neighbor
    3. group1 only, distance to group2 <= radius      -> Excluded
    4. group1 only                                    -> Group1-Positive
    5. group2 only                                    -> Group2-Positive
    6. neither, distance to group2 <= radius          -> Excluded
    7. neither                                        -> Double-Negative

A group1 spot within the exclusion radius of group2 is therefore always
Excluded, never Group1-Positive. Unreachable distances satisfy no `<=`
test. Rules 3 and 6 share the Excluded label; the rule number is kept in
the 'classification_rule' column.
"""
from __future__ import annotations

from enum import Enum
from typing import Iterable, Union

import numpy as np
import pandas as pd

from ..data.config import InvalidConfigurationError, ValidationError, is_int
from .distances import DistanceMap


class SpotLabel(str, Enum):
    """Proximity classification labels with the default group names."""

    DOUBLE_POSITIVE = 'Double-Positive'
    GROUP2_GROUP1_NEIGHBOR = 'Group2-Positive, Group1-Neighbor'
    GROUP1_POSITIVE = 'Group1-Positive'
    GROUP2_POSITIVE = 'Group2-Positive'
    EXCLUDED = 'Excluded'
    DOUBLE_NEGATIVE = 'Double-Negative'

    def format(self, group1_name: str = 'Group1', group2_name: str = 'Group2') -> str:
        """Label text with the given group names substituted."""
        return _TEMPLATES[self].format(g1=group1_name, g2=group2_name)


_TEMPLATES = {
    SpotLabel.DOUBLE_POSITIVE: 'Double-Positive',
    SpotLabel.GROUP2_GROUP1_NEIGHBOR: '{g2}-Positive, {g1}-Neighbor',
    SpotLabel.GROUP1_POSITIVE: '{g1}-Positive',
    SpotLabel.GROUP2_POSITIVE: '{g2}-Positive',
    SpotLabel.EXCLUDED: 'Excluded',
    SpotLabel.DOUBLE_NEGATIVE: 'Double-Negative',
}

# Label assigned by each rule, in precedence order
RULE_LABELS = {
    1: SpotLabel.DOUBLE_POSITIVE,
    2: SpotLabel.GROUP2_GROUP1_NEIGHBOR,
    3: SpotLabel.EXCLUDED,
    4: SpotLabel.GROUP1_POSITIVE,
    5: SpotLabel.GROUP2_POSITIVE,
    6: SpotLabel.EXCLUDED,
    7: SpotLabel.DOUBLE_NEGATIVE,
}


def label_categories(group1_name: str = 'Group1', group2_name: str = 'Group2') -> list:
    """All label strings in display order."""
    return [label.format(group1_name, group2_name) for label in SpotLabel]


def _aligned_distances(distances: Union[DistanceMap, pd.Series],
                       spot_ids: pd.Index,
                       name: str) -> pd.Series:
    series = distances.distances if isinstance(distances, DistanceMap) else distances
    missing = spot_ids.difference(series.index)
    if len(missing) > 0:
        raise ValidationError(
            f"{len(missing)} spots have no entry in {name} (e.g. {list(missing[:3])})"
        )
    return series.reindex(spot_ids).astype('Int64')


def classify_spots(
    spot_ids: Iterable,
    group1: Iterable,
    group2: Iterable,
    distance_to_group2: Union[DistanceMap, pd.Series],
    distance_to_group1: Union[DistanceMap, pd.Series],
    exclusion_radius: int = 0,
    group1_name: str = 'Group1',
    group2_name: str = 'Group2',
) -> pd.DataFrame:
    """
    Assign exactly one proximity label to every spot.

    Parameters
    ----------
    spot_ids : iterable
        All spots to label.
    group1, group2 : iterable
        Spot IDs of the two marker-positive groups (may overlap).
    distance_to_group2, distance_to_group1 : DistanceMap or pd.Series
        Hop distances covering every spot in spot_ids (<NA> = Unreachable).
    exclusion_radius : int
        Non-negative hop radius around group2 used by rules 3 and 6.
    group1_name, group2_name : str
        Names substituted into the label text.

    Returns
    -------
    pd.DataFrame
        Indexed by spot ID with columns:
        'classification_label' : categorical label
        'classification_rule'  : number (1-7) of the rule that fired
    """
    if not is_int(exclusion_radius) or exclusion_radius < 0:
        raise InvalidConfigurationError(
            f"exclusion_radius must be a non-negative integer, got {exclusion_radius!r}"
        )

    if group1_name == group2_name:
        raise InvalidConfigurationError("group1_name and group2_name must differ")

    spot_ids = pd.Index(list(spot_ids))
    d2 = _aligned_distances(distance_to_group2, spot_ids, 'distance_to_group2')
    d1 = _aligned_distances(distance_to_group1, spot_ids, 'distance_to_group1')

    in1 = spot_ids.isin(list(group1))
    in2 = spot_ids.isin(list(group2))
    only1 = in1 & ~in2
    only2 = in2 & ~in1
    neither = ~in1 & ~in2

    near_group1 = (d1 <= 1).fillna(False).to_numpy(dtype=bool)
    near_group2 = (d2 <= exclusion_radius).fillna(False).to_numpy(dtype=bool)

    conditions = [
        in1 & in2,
        only2 & near_group1,
        only1 & near_group2,
        only1,
        only2,
        neither & near_group2,
    ]
    # rule 7 (neither group, not excluded) is whatever is left
    rules = np.select(conditions, [1, 2, 3, 4, 5, 6], default=7)

    categories = label_categories(group1_name, group2_name)
    text = {rule: label.format(group1_name, group2_name) for rule, label in RULE_LABELS.items()}
    labels = pd.Categorical([text[r] for r in rules], categories=categories)

    return pd.DataFrame({
        'classification_label': labels,
        'classification_rule': rules.astype(np.int64),
    }, index=spot_ids)
