"""
conftest.py - Shared test fixtures for spatioprox

pytest reads this file before running any test. Every fixture defined
here is available to all test files by name, without importing it.

    @pytest.fixture          ← marks a reusable setup block
    def hex_table():
        return SpotTable(...)

    def test_something(hex_table):   ← pytest injects it by name
        ...
"""

import matplotlib

matplotlib.use("Agg")  # no display during tests

import numpy as np
import pandas as pd
import pytest

from spatioprox.data.core import SpotTable
from spatioprox.spatial.graph import build_graph_from_edges

# ===========================================================================
# Constants — the size of our fake tissue
# ===========================================================================

N_ROWS = 10  # rows of the hexagonal grid
N_COLS = 10  # spots per row
HEX_ROW_HEIGHT = np.sqrt(3) / 2


# ===========================================================================
# Helpers (plain functions, importable from tests)
# ===========================================================================


def hex_coords(n_rows=N_ROWS, n_cols=N_COLS):
    """
    Unit hexagonal lattice in offset layout.

    Odd rows are shifted right by half a spot, so every spot sits at
    distance exactly 1 from its (up to) six lattice neighbours.
    """
    records = []
    for r in range(n_rows):
        for c in range(n_cols):
            records.append({
                "spot": f"s{r}_{c}",
                "row": r,
                "col": c,
                "x": c + 0.5 * (r % 2),
                "y": r * HEX_ROW_HEIGHT,
            })
    return pd.DataFrame(records).set_index("spot")


def hex_lattice_neighbors(r, c, n_rows=N_ROWS, n_cols=N_COLS):
    """Spot IDs of the lattice neighbours of (r, c) that exist in the grid."""
    if r % 2 == 0:
        offsets = [(0, -1), (0, 1), (-1, -1), (-1, 0), (1, -1), (1, 0)]
    else:
        offsets = [(0, -1), (0, 1), (-1, 0), (-1, 1), (1, 0), (1, 1)]
    return sorted(
        f"s{r + dr}_{c + dc}"
        for dr, dc in offsets
        if 0 <= r + dr < n_rows and 0 <= c + dc < n_cols
    )


# ===========================================================================
# Fixture 1: hexagonal grid (Visium-like) with two marker groups
# ===========================================================================


@pytest.fixture
def hex_table():
    """
    10 × 10 hexagonal grid of spots, one sample.

    Boolean columns:
      - is_a : a small blob around row 2, col 2
      - is_b : a vertical stripe at col 7, plus spot s2_3 (next to the blob)
    """
    df = hex_coords()
    df["is_a"] = df["row"].between(1, 3) & df["col"].between(1, 3)
    df["is_b"] = (df["col"] == 7) | (df.index == "s2_3")
    return SpotTable(df)


# ===========================================================================
# Fixture 2: two samples with identical coordinates
# ===========================================================================


@pytest.fixture
def two_sample_table():
    """
    Two 6 × 6 hex grids that sit on top of each other in coordinate space.

    Only the sample column keeps them apart, so any cross-sample edge
    would show up immediately.
    """
    parts = []
    for sample in ["A", "B"]:
        df = hex_coords(6, 6)
        df.index = [f"{sample}_{sid}" for sid in df.index]
        df.index.name = "spot"
        df["sample"] = sample
        parts.append(df)
    df = pd.concat(parts)
    # group2 only in sample A
    df["is_a"] = df.index.isin(["A_s1_1", "B_s1_1"])
    df["is_b"] = df.index.isin(["A_s4_4"])
    return SpotTable(df)


# ===========================================================================
# Fixture 3: line graph 0-1-2-3-4-5-6
# ===========================================================================


@pytest.fixture
def line_graph():
    """Seven spots in a chain: 0-1-2-3-4-5-6."""
    return build_graph_from_edges(range(7), [(i, i + 1) for i in range(6)])


# ===========================================================================
# Fixture 4: random scatter of spots
# ===========================================================================


@pytest.fixture
def random_table():
    """80 spots scattered uniformly in a 100 × 100 square, random groups."""
    rng = np.random.default_rng(7)
    n = 80
    df = pd.DataFrame(
        {
            "x": rng.uniform(0, 100, n),
            "y": rng.uniform(0, 100, n),
            "is_a": rng.random(n) < 0.2,
            "is_b": rng.random(n) < 0.2,
        },
        index=pd.Index([f"r{i}" for i in range(n)], name="spot"),
    )
    return SpotTable(df)
