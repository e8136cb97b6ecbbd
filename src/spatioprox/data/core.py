"""
core.py - SpotTable container for spot records

The SpotTable holds one row per spot (identifier, planar coordinates,
optional sample label and any marker columns) behind a master spot index.
All methods return new objects; the wrapped DataFrame is never modified
in place.
"""
from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .config import ColumnNotFoundError, SpotConfig, ValidationError


class SpotTable:
    """
    Spot records aligned to a master spot index.

    Core Principles:
    - Master Index: spot IDs stored once and guaranteed unique
    - Finite Coordinates: every spot has a usable (x, y) position
    - Samples: optional sample column separating independent tissue sections
    - No Hidden Mutation: subsetting and offsetting return new tables

    Attributes
    ----------
    _spot_index : pd.Index
        Master spot index (single source of truth)
    _data : pd.DataFrame
        Spot records indexed by _spot_index
    config : SpotConfig
        Column names
    """

    def __init__(self,
                 data: pd.DataFrame,
                 config: Optional[SpotConfig] = None):
        """
        Initialize SpotTable.

        Parameters
        ----------
        data : DataFrame
            Spot records indexed by spot ID. Must hold the x and y columns
            named in config.
        config : SpotConfig, optional
            Column names.
        """
        self.config = config or SpotConfig()

        x_col, y_col = self.config.get_coordinate_columns()
        for col in (x_col, y_col):
            if col not in data.columns:
                raise ColumnNotFoundError(col, 'spot table')

        if not data.index.is_unique:
            n_dup = int(data.index.duplicated().sum())
            raise ValidationError(f"Spot IDs must be unique ({n_dup} duplicates found)")

        # without copy=True the array can share the caller's buffer
        coords = data[[x_col, y_col]].to_numpy(dtype=np.float64, copy=True)
        if not np.isfinite(coords).all():
            n_bad = int((~np.isfinite(coords)).any(axis=1).sum())
            raise ValidationError(f"{n_bad} spots have missing or non-finite coordinates")

        self._data = data.copy()
        self._data.index.name = self.config.spot_id_col
        self._spot_index = self._data.index
        self._coords = coords

    # ========== Constructors ==========

    @classmethod
    def from_dataframe(cls,
                       df: pd.DataFrame,
                       config: Optional[SpotConfig] = None) -> 'SpotTable':
        """
        Create from a DataFrame.

        If the spot ID column is present it becomes the index; otherwise
        the existing index is used as spot IDs.
        """
        config = config or SpotConfig()
        if config.spot_id_col in df.columns:
            df = df.set_index(config.spot_id_col)
        return cls(df, config=config)

    # ========== Properties ==========

    @property
    def spot_index(self) -> pd.Index:
        return self._spot_index

    @property
    def n_spots(self) -> int:
        return len(self._spot_index)

    @property
    def has_samples(self) -> bool:
        return self.config.sample_col in self._data.columns

    @property
    def samples(self) -> pd.Index:
        """Unique sample IDs in order of first appearance."""
        if not self.has_samples:
            return pd.Index([])
        return pd.Index(pd.unique(self._data[self.config.sample_col]))

    @property
    def n_samples(self) -> int:
        return len(self.samples) if self.has_samples else 1

    @property
    def columns(self) -> pd.Index:
        return self._data.columns

    # ========== Access Methods ==========

    def get_spatial_coords(self, as_dataframe: bool = False) -> Union[np.ndarray, pd.DataFrame]:
        """
        Get spot coordinates.

        Returns
        -------
        np.ndarray or pd.DataFrame
            Coordinates (n_spots × 2), aligned to spot_index.
        """
        if as_dataframe:
            return pd.DataFrame(
                self._coords.copy(),
                index=self._spot_index,
                columns=list(self.config.get_coordinate_columns()),
            )
        return self._coords.copy()

    def get_column(self, column: str) -> pd.Series:
        """Get a copy of one column of the spot records."""
        if column not in self._data.columns:
            raise ColumnNotFoundError(column, 'spot table')
        return self._data[column].copy()

    def get_spot_positions(self, spot_ids) -> np.ndarray:
        """
        Convert spot IDs to integer positions in the master index.

        Unknown IDs raise ValidationError rather than being dropped.
        """
        spot_ids = pd.Index(spot_ids)
        positions = self._spot_index.get_indexer(spot_ids)
        if (positions < 0).any():
            missing = spot_ids[positions < 0]
            raise ValidationError(
                f"{len(missing)} spot IDs not found in table "
                f"(e.g. {list(missing[:3])})"
            )
        return positions

    def to_dataframe(self) -> pd.DataFrame:
        """Copy of the spot records."""
        return self._data.copy()

    # ========== Subsetting ==========

    def subset(self, spot_ids) -> 'SpotTable':
        """New SpotTable with the given spots, in the given order."""
        positions = self.get_spot_positions(spot_ids)
        if len(positions) == 0:
            raise ValidationError("No spots selected")
        return SpotTable(self._data.iloc[positions], config=self.config)

    def subset_by_samples(self, samples: List) -> 'SpotTable':
        """New SpotTable with the spots of the given samples."""
        if not self.has_samples:
            raise ColumnNotFoundError(self.config.sample_col, 'spot table')
        mask = self._data[self.config.sample_col].isin(samples)
        if not mask.any():
            raise ValidationError(f"No spots found for samples {list(samples)}")
        return SpotTable(self._data[mask.to_numpy()], config=self.config)

    def iter_samples(self) -> Iterator[Tuple[Optional[object], 'SpotTable']]:
        """
        Yield (sample_id, SpotTable) pairs.

        Tables without a sample column yield a single (None, self) pair.
        """
        if not self.has_samples:
            yield None, self
            return
        for sample in self.samples:
            yield sample, self.subset_by_samples([sample])

    def offset_samples(self, gap: Optional[float] = None) -> 'SpotTable':
        """
        Lay samples out side by side along x for joint plotting.

        Each sample is shifted so its minimum x sits `gap` units right of the
        previous sample's maximum x, and its minimum y is 0. With gap at
        least as large as the longest graph edge this also guarantees that a
        graph built on the joint coordinates has no cross-sample edges.

        Parameters
        ----------
        gap : float, optional
            Space between samples. Defaults to 10% of the widest sample.

        Returns
        -------
        SpotTable
        """
        if not self.has_samples:
            return SpotTable(self._data, config=self.config)

        x_col, y_col = self.config.get_coordinate_columns()
        sample_col = self.config.sample_col

        extents: Dict[object, Tuple[float, float, float]] = {}
        for sample, group in self._data.groupby(sample_col, sort=False):
            extents[sample] = (group[x_col].min(), group[x_col].max(), group[y_col].min())

        if gap is None:
            widest = max(xmax - xmin for xmin, xmax, _ in extents.values())
            gap = 0.1 * widest if widest > 0 else 1.0

        shifted = self._data.copy()
        shifted[x_col] = shifted[x_col].astype(np.float64)
        shifted[y_col] = shifted[y_col].astype(np.float64)

        cursor = 0.0
        for sample in self.samples:
            xmin, xmax, ymin = extents[sample]
            mask = (shifted[sample_col] == sample).to_numpy()
            shifted.loc[mask, x_col] = shifted.loc[mask, x_col] - xmin + cursor
            shifted.loc[mask, y_col] = shifted.loc[mask, y_col] - ymin
            cursor += (xmax - xmin) + gap

        return SpotTable(shifted, config=self.config)

    # ========== Summary ==========

    def summary(self) -> Dict[str, object]:
        coords = self._coords
        return {
            'n_spots': self.n_spots,
            'n_samples': self.n_samples,
            'xmin': float(coords[:, 0].min()) if self.n_spots else np.nan,
            'xmax': float(coords[:, 0].max()) if self.n_spots else np.nan,
            'ymin': float(coords[:, 1].min()) if self.n_spots else np.nan,
            'ymax': float(coords[:, 1].max()) if self.n_spots else np.nan,
            'columns': list(self._data.columns),
        }

    def __len__(self) -> int:
        return self.n_spots

    def __repr__(self) -> str:
        return (f"SpotTable\n"
                f"  Spots:   {self.n_spots:,}\n"
                f"  Samples: {self.n_samples}")
