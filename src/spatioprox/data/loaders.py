"""
loaders.py - Read spot tables from disk

Supports plain CSV spot tables and Space Ranger tissue position files
(both the headered `tissue_positions.csv` and the legacy headerless
`tissue_positions_list.csv`).
"""
import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd

from .config import ColumnNotFoundError, SpotConfig
from .core import SpotTable

logger = logging.getLogger(__name__)

VISIUM_POSITION_COLUMNS = [
    'barcode',
    'in_tissue',
    'array_row',
    'array_col',
    'pxl_row_in_fullres',
    'pxl_col_in_fullres',
]

# Vertical spacing between rows of a unit hexagonal lattice
HEX_ROW_HEIGHT = np.sqrt(3) / 2


def read_spot_table(path: Union[str, Path],
                    config: Optional[SpotConfig] = None,
                    **read_csv_kwargs) -> SpotTable:
    """
    Read a CSV spot table.

    Parameters
    ----------
    path : str or Path
        CSV file with one row per spot.
    config : SpotConfig, optional
        Column names. The spot ID column must be present.
    **read_csv_kwargs
        Passed to pandas.read_csv.

    Returns
    -------
    SpotTable
    """
    config = config or SpotConfig()
    df = pd.read_csv(path, **read_csv_kwargs)
    if config.spot_id_col not in df.columns:
        raise ColumnNotFoundError(config.spot_id_col, str(path))

    table = SpotTable.from_dataframe(df, config=config)
    logger.info("Read %d spots from %s", table.n_spots, path)
    return table


def visium_array_to_planar(array_row: np.ndarray, array_col: np.ndarray) -> np.ndarray:
    """
    Map Visium array indices to unit hexagonal-lattice coordinates.

    Visium array columns step by 2 within a row and odd rows are shifted by
    one column, so x = array_col / 2 and y = array_row * sqrt(3) / 2 place
    every spot at distance 1 from its six lattice neighbours.
    """
    x = np.asarray(array_col, dtype=np.float64) / 2.0
    y = np.asarray(array_row, dtype=np.float64) * HEX_ROW_HEIGHT
    return np.column_stack([x, y])


def read_visium_positions(path: Union[str, Path],
                          sample: Optional[str] = None,
                          in_tissue_only: bool = True,
                          use_pixels: bool = False,
                          config: Optional[SpotConfig] = None) -> SpotTable:
    """
    Read a Space Ranger tissue positions file.

    Parameters
    ----------
    path : str or Path
        `tissue_positions.csv` (Space Ranger >= 2.0, with header) or
        `tissue_positions_list.csv` (older, headerless). Gzipped files work.
    sample : str, optional
        Sample label stored in the sample column.
    in_tissue_only : bool
        Drop spots flagged as outside the tissue.
    use_pixels : bool
        Use full-resolution pixel coordinates instead of the hexagonal
        lattice derived from array indices.
    config : SpotConfig, optional
        Column names for the resulting table.

    Returns
    -------
    SpotTable
    """
    config = config or SpotConfig()

    positions = pd.read_csv(path, header=None)
    first = positions.iloc[0].astype(str).tolist() if len(positions) else []
    if first and first[0] == 'barcode':
        positions = positions.iloc[1:].reset_index(drop=True)
    if positions.shape[1] != len(VISIUM_POSITION_COLUMNS):
        raise ValueError(
            f"Expected {len(VISIUM_POSITION_COLUMNS)} columns in {path}, "
            f"found {positions.shape[1]}"
        )
    positions.columns = VISIUM_POSITION_COLUMNS
    for col in VISIUM_POSITION_COLUMNS[1:]:
        positions[col] = pd.to_numeric(positions[col])

    n_total = len(positions)
    if in_tissue_only:
        positions = positions[positions['in_tissue'] == 1]
        logger.info("Kept %d of %d spots under tissue", len(positions), n_total)

    if use_pixels:
        coords = positions[['pxl_col_in_fullres', 'pxl_row_in_fullres']].to_numpy(dtype=np.float64)
    else:
        coords = visium_array_to_planar(positions['array_row'], positions['array_col'])

    x_col, y_col = config.get_coordinate_columns()
    df = pd.DataFrame({
        x_col: coords[:, 0],
        y_col: coords[:, 1],
        'array_row': positions['array_row'].to_numpy(),
        'array_col': positions['array_col'].to_numpy(),
    }, index=pd.Index(positions['barcode'].to_numpy(), name=config.spot_id_col))

    if sample is not None:
        df[config.sample_col] = sample

    return SpotTable(df, config=config)
