"""
test_data.py - Tests for spot tables, configuration, loaders and markers

How to run:
    pytest tests/test_data.py -v
"""

import numpy as np
import pandas as pd
import pytest

from conftest import hex_coords
from spatioprox.data.config import (
    ColumnNotFoundError,
    InvalidConfigurationError,
    ProximityConfig,
    SpotConfig,
    ValidationError,
)
from spatioprox.data.core import SpotTable
from spatioprox.data.loaders import (
    VISIUM_POSITION_COLUMNS,
    read_spot_table,
    read_visium_positions,
    visium_array_to_planar,
)
from spatioprox.data.markers import marker_positive
from spatioprox.spatial.graph import build_knn_graph

# ===========================================================================
# SECTION 1 — SpotTable
# ===========================================================================


class TestSpotTable:

    def test_basic_properties(self, hex_table):
        assert hex_table.n_spots == 100
        assert len(hex_table) == 100
        assert not hex_table.has_samples
        assert hex_table.n_samples == 1
        assert hex_table.get_spatial_coords().shape == (100, 2)

    def test_coords_as_dataframe(self, hex_table):
        coords = hex_table.get_spatial_coords(as_dataframe=True)
        assert list(coords.columns) == ["x", "y"]
        assert coords.index.equals(hex_table.spot_index)

    def test_missing_coordinate_column_raises(self):
        df = pd.DataFrame({"x": [0.0, 1.0]}, index=["a", "b"])
        with pytest.raises(ColumnNotFoundError):
            SpotTable(df)

    def test_duplicate_ids_raise(self):
        df = pd.DataFrame({"x": [0.0, 1.0], "y": [0.0, 1.0]}, index=["a", "a"])
        with pytest.raises(ValidationError):
            SpotTable(df)

    def test_non_finite_coordinates_raise(self):
        df = pd.DataFrame({"x": [0.0, np.nan], "y": [0.0, 1.0]}, index=["a", "b"])
        with pytest.raises(ValidationError):
            SpotTable(df)

    def test_custom_column_names(self):
        config = SpotConfig(spot_id_col="barcode", x_col="px", y_col="py", sample_col="slide")
        df = pd.DataFrame({"barcode": ["a", "b"], "px": [0, 1], "py": [0, 0], "slide": ["s1", "s1"]})

        table = SpotTable.from_dataframe(df, config=config)

        assert list(table.spot_index) == ["a", "b"]
        assert table.spot_index.name == "barcode"
        assert table.has_samples
        assert list(table.samples) == ["s1"]

    def test_table_keeps_its_own_copy(self):
        df = pd.DataFrame({"x": [0.0, 1.0], "y": [0.0, 1.0]}, index=["a", "b"])
        table = SpotTable(df)
        df.loc["a", "x"] = 99.0
        assert table.get_spatial_coords()[0, 0] == 0.0

    def test_caller_edits_do_not_reach_graphs(self):
        """
        Editing the input frame after construction changes neither the
        stored coordinates nor a graph built afterwards.
        """
        df = hex_coords(3, 3)
        table = SpotTable(df)
        before = table.get_spatial_coords()

        df["x"] = df["x"] * 100.0
        df.loc["s1_1", "y"] = -50.0

        np.testing.assert_array_equal(table.get_spatial_coords(), before)
        graph = build_knn_graph(table, k=2, symmetrize="union", verbose=False)
        assert graph.summary()["max_edge_distance"] == pytest.approx(1.0)

    def test_subset_keeps_order(self, hex_table):
        sub = hex_table.subset(["s1_1", "s0_0"])
        assert list(sub.spot_index) == ["s1_1", "s0_0"]

    def test_subset_unknown_raises(self, hex_table):
        with pytest.raises(ValidationError):
            hex_table.subset(["s0_0", "nope"])

    def test_iter_samples(self, two_sample_table, hex_table):
        parts = dict(two_sample_table.iter_samples())
        assert list(parts) == ["A", "B"]
        assert parts["A"].n_spots == 36

        ((sample, table),) = list(hex_table.iter_samples())
        assert sample is None
        assert table is hex_table

    def test_subset_by_missing_sample_raises(self, two_sample_table):
        with pytest.raises(ValidationError):
            two_sample_table.subset_by_samples(["C"])

    def test_offset_samples_separates_samples(self, two_sample_table):
        shifted = two_sample_table.offset_samples(gap=2.0)
        coords = shifted.get_spatial_coords(as_dataframe=True)
        samples = shifted.get_column("sample")

        a = coords[samples == "A"]
        b = coords[samples == "B"]
        assert b["x"].min() - a["x"].max() == pytest.approx(2.0)
        assert a["y"].min() == pytest.approx(0.0)
        assert b["y"].min() == pytest.approx(0.0)
        # original untouched
        assert two_sample_table.get_spatial_coords()[:, 0].min() == pytest.approx(0.0)

    def test_offset_samples_removes_cross_sample_edges(self, two_sample_table):
        """With the gap wider than any edge, a joint k-NN graph stays split."""
        shifted = two_sample_table.offset_samples(gap=10.0)
        pooled = SpotTable(shifted.to_dataframe().drop(columns="sample"))
        graph = build_knn_graph(pooled, k=6, symmetrize="mutual", verbose=False)

        samples = shifted.get_column("sample").to_numpy()
        a = np.where(samples == "A")[0]
        b = np.where(samples == "B")[0]
        assert graph.adjacency[a][:, b].nnz == 0

    def test_summary(self, two_sample_table):
        summary = two_sample_table.summary()
        assert summary["n_spots"] == 72
        assert summary["n_samples"] == 2


# ===========================================================================
# SECTION 2 — ProximityConfig
# ===========================================================================


class TestProximityConfig:

    def test_defaults(self):
        config = ProximityConfig()
        assert config.adjacency_mode == "knn"
        assert config.k == 6
        assert config.symmetrize == "mutual"
        assert config.exclusion_radius == 0

    @pytest.mark.parametrize("params", [
        {"adjacency_mode": "voronoi"},
        {"k": 0},
        {"k": True},
        {"dmax": 0},
        {"dmax": 2.5},
        {"exclusion_radius": -1},
        {"symmetrize": "both"},
        {"max_edge_length": -3.0},
        {"group1_name": "T", "group2_name": "T"},
    ])
    def test_invalid_settings_raise(self, params):
        with pytest.raises(InvalidConfigurationError):
            ProximityConfig(**params)

    def test_invalid_config_is_value_error(self):
        with pytest.raises(ValueError):
            ProximityConfig(dmax=-1)

    def test_numpy_integers_accepted(self):
        """Counts taken from numpy arrays are valid settings."""
        config = ProximityConfig(k=np.int64(6), dmax=np.int32(4), exclusion_radius=np.int64(1))
        assert config.k == 6
        assert config.dmax == 4

    def test_numpy_bool_rejected(self):
        with pytest.raises(InvalidConfigurationError):
            ProximityConfig(k=np.bool_(True))

    def test_dict_round_trip(self):
        config = ProximityConfig(adjacency_mode="delaunay", max_edge_length=150.0, dmax=4)
        assert ProximityConfig.from_dict(config.to_dict()) == config

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(InvalidConfigurationError):
            ProximityConfig.from_dict({"k": 6, "radius": 1})


# ===========================================================================
# SECTION 3 — Loaders
# ===========================================================================


def _visium_positions(n_rows=6, n_cols=6):
    """
    Fake Space Ranger positions: even rows use even array columns, odd
    rows odd ones, exactly like the Visium array.
    """
    records = []
    for r in range(n_rows):
        for i in range(n_cols):
            c = 2 * i + (r % 2)
            records.append({
                "barcode": f"BC{r}_{c}-1",
                "in_tissue": 1,
                "array_row": r,
                "array_col": c,
                "pxl_row_in_fullres": 1000 + 140 * r,
                "pxl_col_in_fullres": 1000 + 80 * c,
            })
    return pd.DataFrame(records, columns=VISIUM_POSITION_COLUMNS)


class TestLoaders:

    def test_array_to_planar_gives_unit_spacing(self):
        xy = visium_array_to_planar(np.array([0, 0, 1]), np.array([0, 2, 1]))
        assert np.linalg.norm(xy[1] - xy[0]) == pytest.approx(1.0)
        assert np.linalg.norm(xy[2] - xy[0]) == pytest.approx(1.0)

    @pytest.mark.parametrize("header", [True, False])
    def test_read_visium_positions(self, tmp_path, header):
        positions = _visium_positions()
        positions.loc[0, "in_tissue"] = 0
        path = tmp_path / "tissue_positions.csv"
        positions.to_csv(path, header=header, index=False)

        table = read_visium_positions(path, sample="slide1")

        assert table.n_spots == len(positions) - 1
        assert "BC0_0-1" not in table.spot_index
        assert table.spot_index.name == "spot"
        assert set(table.get_column("sample")) == {"slide1"}
        assert table.get_column("array_row").dtype.kind == "i"

    def test_visium_lattice_neighbors(self, tmp_path):
        """
        k=6 mutual on Visium array positions connects every spot that has
        all six array neighbours (r, c±2), (r±1, c±1) to exactly those.
        """
        positions = _visium_positions()
        path = tmp_path / "tissue_positions_list.csv"
        positions.to_csv(path, header=False, index=False)

        table = read_visium_positions(path)
        graph = build_knn_graph(table, k=6, symmetrize="mutual", verbose=False)

        present = set(table.spot_index)
        for r, c in zip(positions["array_row"], positions["array_col"]):
            expected = {
                f"BC{r + dr}_{c + dc}-1"
                for dr, dc in [(0, -2), (0, 2), (-1, -1), (-1, 1), (1, -1), (1, 1)]
            }
            if not expected <= present:
                continue
            assert set(graph.get_neighbors(f"BC{r}_{c}-1")) == expected

    def test_pixel_coordinates(self, tmp_path):
        path = tmp_path / "tissue_positions.csv"
        _visium_positions().to_csv(path, index=False)

        table = read_visium_positions(path, use_pixels=True)
        coords = table.get_spatial_coords(as_dataframe=True)
        assert coords.loc["BC1_1-1", "x"] == 1080
        assert coords.loc["BC1_1-1", "y"] == 1140

    def test_wrong_column_count_raises(self, tmp_path):
        path = tmp_path / "bad.csv"
        pd.DataFrame({"a": [1], "b": [2]}).to_csv(path, index=False)
        with pytest.raises(ValueError):
            read_visium_positions(path)

    def test_read_spot_table(self, tmp_path, hex_table):
        path = tmp_path / "spots.csv"
        hex_table.to_dataframe().to_csv(path)

        table = read_spot_table(path)
        assert table.n_spots == hex_table.n_spots
        assert table.spot_index.equals(hex_table.spot_index)

    def test_read_spot_table_needs_id_column(self, tmp_path):
        path = tmp_path / "spots.csv"
        pd.DataFrame({"x": [0.0], "y": [0.0]}).to_csv(path, index=False)
        with pytest.raises(ColumnNotFoundError):
            read_spot_table(path)


# ===========================================================================
# SECTION 4 — Marker-positive groups
# ===========================================================================


class TestMarkers:

    @pytest.fixture
    def expression(self):
        return pd.DataFrame(
            {
                "CD8A": [0.0, 2.0, 3.0, np.nan],
                "CD8B": [1.5, 0.0, 2.5, 4.0],
                "EPCAM": [5.0, 0.0, 0.0, 1.0],
            },
            index=["a", "b", "c", "d"],
        )

    def test_single_marker(self, expression):
        flags = marker_positive(expression, "EPCAM", threshold=0.5)
        assert flags.tolist() == [True, False, False, True]
        assert flags.name == "EPCAM"

    def test_all_vs_any(self, expression):
        both = marker_positive(expression, ["CD8A", "CD8B"], threshold=1.0, how="all")
        either = marker_positive(expression, ["CD8A", "CD8B"], threshold=1.0, how="any")

        assert both.tolist() == [False, False, True, False]
        assert either.tolist() == [True, True, True, True]
        assert both.name == "CD8A+CD8B"

    def test_threshold_is_strict(self, expression):
        flags = marker_positive(expression, "CD8A", threshold=2.0)
        assert flags.tolist() == [False, False, True, False]

    def test_per_marker_thresholds(self, expression):
        flags = marker_positive(expression, ["CD8A", "EPCAM"],
                                threshold={"CD8A": 1.0, "EPCAM": -1.0}, name="mixed")
        assert flags.tolist() == [False, True, True, False]
        assert flags.name == "mixed"

    def test_missing_marker_raises(self, expression):
        with pytest.raises(ColumnNotFoundError):
            marker_positive(expression, "PTPRC")

    def test_bad_how_raises(self, expression):
        with pytest.raises(InvalidConfigurationError):
            marker_positive(expression, "CD8A", how="most")

    def test_missing_threshold_raises(self, expression):
        with pytest.raises(InvalidConfigurationError):
            marker_positive(expression, ["CD8A", "CD8B"], threshold={"CD8A": 1.0})
