"""
markers.py - Marker-positive group definitions

Turns expression values into boolean group membership, the upstream step
that decides which spots belong to group1 and group2 before proximity
classification.
"""
from typing import List, Union

import numpy as np
import pandas as pd

from .config import ColumnNotFoundError, InvalidConfigurationError


def marker_positive(expression: pd.DataFrame,
                    markers: Union[str, List[str]],
                    threshold: Union[float, dict] = 0.0,
                    how: str = 'all',
                    name: str = None) -> pd.Series:
    """
    Flag spots whose marker expression exceeds a threshold.

    Parameters
    ----------
    expression : pd.DataFrame
        Spots × markers (genes, proteins or signature scores).
    markers : str or list of str
        Marker column(s) defining the group.
    threshold : float or dict
        A spot is positive for a marker when its value is strictly greater
        than the threshold. A dict gives one threshold per marker.
    how : str
        'all' (positive for every marker) or 'any' (positive for at least one).
    name : str, optional
        Name of the returned Series.

    Returns
    -------
    pd.Series
        Boolean membership indexed like `expression`.

    Examples
    --------
    >>> cd8 = marker_positive(expr, ['CD8A', 'CD8B'], threshold=1, how='any')
    >>> tumor = marker_positive(expr, 'EPCAM', threshold=2)
    """
    if isinstance(markers, str):
        markers = [markers]
    if len(markers) == 0:
        raise InvalidConfigurationError("At least one marker is required")
    if how not in ('all', 'any'):
        raise InvalidConfigurationError(f"Unknown combination '{how}'. Use 'all' or 'any'")

    for marker in markers:
        if marker not in expression.columns:
            raise ColumnNotFoundError(marker, 'expression table')

    if isinstance(threshold, dict):
        missing = set(markers) - set(threshold)
        if missing:
            raise InvalidConfigurationError(f"No threshold given for markers {sorted(missing)}")
        cutoffs = np.array([threshold[m] for m in markers], dtype=np.float64)
    else:
        cutoffs = np.full(len(markers), float(threshold))

    values = expression[markers].to_numpy(dtype=np.float64)
    # NaN compares False, so missing values never make a spot positive
    positive = values > cutoffs

    flags = positive.all(axis=1) if how == 'all' else positive.any(axis=1)

    if name is None:
        name = '+'.join(markers)
    return pd.Series(flags, index=expression.index, name=name)
