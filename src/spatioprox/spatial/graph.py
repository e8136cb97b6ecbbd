"""
graph.py - Spatial adjacency graph construction from spot coordinates

Builds undirected spot-spot graphs (k-NN or Delaunay) that the distance
engine walks. Graphs are built once per sample and never modified.

Symmetrization of k-NN neighbour lists is decided at construction time
and recorded in `SpotGraph.params['symmetrize']`:

- 'mutual' : spots i and j are adjacent only if both list each other
             (default). Degree is at most k; on a regular hexagonal grid
             with k=6 every spot with a full lattice neighbourhood gets
             exactly its six lattice neighbours, boundary included.
- 'union'  : spots i and j are adjacent if i lists j or j lists i.
             Every spot keeps at least its k nearest neighbours, but
             boundary spots reach into the second ring and give their
             inner neighbours extra edges.
"""
from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import sparse
from scipy.spatial import Delaunay, QhullError
from sklearn.neighbors import NearestNeighbors

from ..data.config import (
    InsufficientSpotsError,
    InvalidConfigurationError,
    ProximityConfig,
    SYMMETRIZE_POLICIES,
    ValidationError,
    is_int,
)
from ..data.core import SpotTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpotGraph:
    """
    Container for an undirected spot adjacency graph.

    Attributes
    ----------
    adjacency : sparse.csr_matrix
        Binary symmetric adjacency matrix (n_spots x n_spots).
    distances : sparse.csr_matrix or None
        Euclidean edge lengths (same sparsity as adjacency). None for
        graphs built from an explicit edge list.
    spot_ids : pd.Index
        Spot IDs matching matrix rows/columns.
    method : str
        Construction method ('knn', 'delaunay', 'edges').
    params : dict
        Parameters used (e.g., {'k': 6, 'symmetrize': 'mutual'}).
    """
    adjacency: sparse.csr_matrix
    distances: Optional[sparse.csr_matrix]
    spot_ids: pd.Index
    method: str
    params: dict

    @property
    def n_spots(self) -> int:
        return self.adjacency.shape[0]

    @property
    def n_edges(self) -> int:
        """Undirected edge count."""
        return self.adjacency.nnz // 2

    @property
    def mean_degree(self) -> float:
        if self.n_spots == 0:
            return 0.0
        return float(self.degrees().mean())

    def degrees(self) -> np.ndarray:
        return np.asarray(self.adjacency.sum(axis=1)).flatten().astype(int)

    def get_neighbors(self, spot_id) -> pd.Index:
        """Get neighbour spot IDs for a given spot."""
        idx = self.spot_ids.get_loc(spot_id)
        neighbor_indices = self.adjacency[idx].nonzero()[1]
        return self.spot_ids[np.sort(neighbor_indices)]

    def degree_series(self) -> pd.Series:
        """Degree (neighbour count) for every spot."""
        return pd.Series(self.degrees(), index=self.spot_ids, name='degree')

    def positions(self, spot_ids: Iterable) -> np.ndarray:
        """
        Integer row positions of the given spot IDs.

        Unknown IDs raise ValidationError.
        """
        spot_ids = pd.Index(list(spot_ids))
        positions = self.spot_ids.get_indexer(spot_ids)
        if (positions < 0).any():
            missing = spot_ids[positions < 0]
            raise ValidationError(
                f"{len(missing)} spot IDs are not nodes of the graph "
                f"(e.g. {list(missing[:3])})"
            )
        return positions

    def to_networkx(self):
        """
        Convert to a networkx.Graph with spot IDs as nodes.

        Edge attribute 'weight' holds the Euclidean edge length when known.
        """
        import networkx as nx

        matrix = self.distances if self.distances is not None else self.adjacency
        G = nx.from_scipy_sparse_array(matrix)
        # Zero-length edges (duplicate coordinates) are implicit zeros in the
        # distance matrix; add them back from the adjacency
        rows, cols = sparse.triu(self.adjacency, k=1).nonzero()
        G.add_edges_from(
            (int(i), int(j), {'weight': 0.0})
            for i, j in zip(rows, cols) if not G.has_edge(int(i), int(j))
        )
        return nx.relabel_nodes(G, dict(enumerate(self.spot_ids)))

    def summary(self) -> dict:
        degrees = self.degrees()
        dists = self.distances.data if self.distances is not None else np.array([])
        return {
            'method': self.method,
            'params': self.params,
            'n_spots': self.n_spots,
            'n_edges': self.n_edges,
            'mean_degree': degrees.mean() if len(degrees) > 0 else 0,
            'min_degree': int(degrees.min()) if len(degrees) > 0 else 0,
            'max_degree': int(degrees.max()) if len(degrees) > 0 else 0,
            'n_isolated': int((degrees == 0).sum()),
            'mean_edge_distance': dists.mean() if len(dists) > 0 else 0,
            'max_edge_distance': dists.max() if len(dists) > 0 else 0,
        }

    def __repr__(self) -> str:
        s = self.summary()
        return (
            f"SpotGraph (method={s['method']}, "
            f"{s['n_spots']} spots, {s['n_edges']} edges, "
            f"mean degree={s['mean_degree']:.1f})"
        )


# ========== Helpers ==========

def _edge_lengths(coords: np.ndarray, adjacency: sparse.csr_matrix) -> sparse.csr_matrix:
    """Euclidean length of every edge in adjacency."""
    coo = adjacency.tocoo()
    lengths = np.linalg.norm(coords[coo.row] - coords[coo.col], axis=1)
    return sparse.csr_matrix((lengths, (coo.row, coo.col)), shape=adjacency.shape)


def _symmetric_adjacency(rows: np.ndarray, cols: np.ndarray, n_spots: int) -> sparse.csr_matrix:
    """Binary symmetric adjacency from undirected edge endpoints, self-loops dropped."""
    keep = rows != cols
    rows, cols = rows[keep], cols[keep]
    all_rows = np.concatenate([rows, cols])
    all_cols = np.concatenate([cols, rows])
    adjacency = sparse.csr_matrix(
        (np.ones(len(all_rows), dtype=np.float32), (all_rows, all_cols)),
        shape=(n_spots, n_spots),
    )
    # duplicate entries are summed by scipy; clamp back to binary
    adjacency.data[:] = 1.0
    return adjacency


def _report(graph: SpotGraph, label: str, verbose: bool) -> None:
    n_isolated = int((graph.degrees() == 0).sum())
    if n_isolated > 0:
        warnings.warn(f"{label} graph has {n_isolated} isolated spots", stacklevel=3)
    if verbose:
        print(f"  ✓ {label} graph: {graph.n_edges} edges, "
              f"mean degree={graph.mean_degree:.1f}")


# ========== Builders ==========

def build_knn_graph(
    table: SpotTable,
    k: int = 6,
    symmetrize: str = 'mutual',
    verbose: bool = True,
) -> SpotGraph:
    """
    Build k-nearest neighbours graph.

    Each spot lists its k closest other spots by Euclidean distance; the
    directed lists are then symmetrized with the given policy (see module
    docstring).

    Parameters
    ----------
    table : SpotTable
        Spots of one sample (or samples already offset apart).
    k : int
        Number of neighbours.
    symmetrize : str
        'mutual' (default) or 'union'.
    verbose : bool
        Print a one-line report.

    Returns
    -------
    SpotGraph
    """
    if not is_int(k) or k <= 0:
        raise InvalidConfigurationError(f"k must be a positive integer, got {k!r}")
    if symmetrize not in SYMMETRIZE_POLICIES:
        raise InvalidConfigurationError(
            f"Unknown symmetrize policy '{symmetrize}'. Use one of {SYMMETRIZE_POLICIES}"
        )

    n_spots = table.n_spots
    if n_spots < k + 1:
        raise InsufficientSpotsError(n_spots, k + 1, 'knn')

    coords = table.get_spatial_coords()

    nn = NearestNeighbors(n_neighbors=k, metric='euclidean')
    nn.fit(coords)
    # Querying without X excludes each spot from its own neighbour list,
    # even when other spots share its coordinates
    idx_matrix = nn.kneighbors(return_distance=False)

    rows = np.repeat(np.arange(n_spots), k)
    cols = idx_matrix.flatten()
    directed = sparse.csr_matrix(
        (np.ones(len(rows), dtype=np.float32), (rows, cols)),
        shape=(n_spots, n_spots),
    )

    if symmetrize == 'union':
        adjacency = directed.maximum(directed.T)
    else:
        adjacency = directed.minimum(directed.T)
    adjacency = adjacency.tocsr().astype(np.float32)
    adjacency.eliminate_zeros()

    graph = SpotGraph(
        adjacency=adjacency,
        distances=_edge_lengths(coords, adjacency),
        spot_ids=table.spot_index,
        method='knn',
        params={'k': int(k), 'symmetrize': symmetrize},
    )
    _report(graph, f"KNN (k={k}, {symmetrize})", verbose)
    return graph


def build_delaunay_graph(
    table: SpotTable,
    max_edge_length: Optional[float] = None,
    verbose: bool = True,
) -> SpotGraph:
    """
    Build Delaunay triangulation graph.

    Connects spots that are natural geometric neighbours. Adapts to local
    density without requiring k.

    Parameters
    ----------
    table : SpotTable
        Spots of one sample (or samples already offset apart).
    max_edge_length : float, optional
        Prune edges longer than this. Removes spurious long-range
        connections along tissue boundaries.
    verbose : bool
        Print a one-line report.

    Returns
    -------
    SpotGraph
    """
    if max_edge_length is not None and not max_edge_length > 0:
        raise InvalidConfigurationError(
            f"max_edge_length must be positive, got {max_edge_length!r}"
        )

    n_spots = table.n_spots
    if n_spots < 3:
        raise InsufficientSpotsError(n_spots, 3, 'delaunay')

    coords = table.get_spatial_coords()

    try:
        tri = Delaunay(coords)
    except QhullError as e:
        # Collinear or otherwise degenerate input has no 2D triangulation
        raise InsufficientSpotsError(n_spots, 3, 'delaunay') from e

    if len(tri.coplanar) > 0:
        warnings.warn(f"{len(tri.coplanar)} spots share coordinates with another spot and were "
                      "left out of the triangulation", stacklevel=2)

    # Each simplex (triangle) has 3 vertices -> 3 edges
    simplices = tri.simplices
    pairs = np.vstack([
        simplices[:, [0, 1]],
        simplices[:, [1, 2]],
        simplices[:, [0, 2]],
    ])
    pairs = np.unique(np.sort(pairs, axis=1), axis=0)
    rows, cols = pairs[:, 0], pairs[:, 1]

    params = {}
    if max_edge_length is not None:
        lengths = np.linalg.norm(coords[rows] - coords[cols], axis=1)
        keep = lengths <= max_edge_length
        n_pruned = int((~keep).sum())
        rows, cols = rows[keep], cols[keep]
        params['max_edge_length'] = max_edge_length
        logger.info("Pruned %d Delaunay edges longer than %s", n_pruned, max_edge_length)
        if verbose:
            print(f"  → Pruned {n_pruned} edges longer than {max_edge_length}")

    adjacency = _symmetric_adjacency(rows, cols, n_spots)

    graph = SpotGraph(
        adjacency=adjacency,
        distances=_edge_lengths(coords, adjacency),
        spot_ids=table.spot_index,
        method='delaunay',
        params=params,
    )
    _report(graph, "Delaunay", verbose)
    return graph


def build_graph_from_edges(
    spot_ids: Iterable,
    edges: Iterable[Tuple],
) -> SpotGraph:
    """
    Build a graph from an explicit list of undirected edges.

    Useful for predefined neighbourhoods (e.g. Visium array adjacency)
    and for small hand-made graphs.

    Parameters
    ----------
    spot_ids : iterable
        All node IDs, including isolated ones.
    edges : iterable of (spot_id, spot_id)
        Undirected edges. Duplicates and self-loops are ignored.

    Returns
    -------
    SpotGraph
    """
    spot_ids = pd.Index(list(spot_ids))
    if not spot_ids.is_unique:
        raise ValidationError("Spot IDs must be unique")

    edges = list(edges)
    if len(edges) > 0:
        edge_array = np.array(edges, dtype=object).reshape(-1, 2)
        rows = spot_ids.get_indexer(pd.Index(edge_array[:, 0].tolist()))
        cols = spot_ids.get_indexer(pd.Index(edge_array[:, 1].tolist()))
        if (rows < 0).any() or (cols < 0).any():
            raise ValidationError("Edge list references spot IDs that are not in spot_ids")
    else:
        rows = cols = np.array([], dtype=np.int64)

    adjacency = _symmetric_adjacency(rows, cols, len(spot_ids))
    return SpotGraph(
        adjacency=adjacency,
        distances=None,
        spot_ids=spot_ids,
        method='edges',
        params={},
    )


def _combine_graphs(graphs: list, table: SpotTable) -> SpotGraph:
    """Join per-sample graphs block-diagonally, ordered like the table."""
    first = graphs[0]
    adjacency = sparse.block_diag([g.adjacency for g in graphs], format='csr')
    distances = sparse.block_diag([g.distances for g in graphs], format='csr')

    combined_ids = first.spot_ids.append([g.spot_ids for g in graphs[1:]])
    order = combined_ids.get_indexer(table.spot_index)
    adjacency = adjacency[order][:, order].tocsr()
    distances = distances[order][:, order].tocsr()

    params = dict(first.params)
    params['n_samples'] = len(graphs)
    return SpotGraph(
        adjacency=adjacency,
        distances=distances,
        spot_ids=table.spot_index,
        method=first.method,
        params=params,
    )


def build_spot_graph(
    table: SpotTable,
    config: Optional[ProximityConfig] = None,
    verbose: bool = True,
) -> SpotGraph:
    """
    Build the adjacency graph selected by config.adjacency_mode.

    Tables with a sample column get one graph per sample, joined
    block-diagonally, so spots from different samples are never
    adjacent whatever their coordinates.

    Parameters
    ----------
    table : SpotTable
    config : ProximityConfig, optional
    verbose : bool

    Returns
    -------
    SpotGraph
    """
    config = config or ProximityConfig()

    def _build(sub: SpotTable) -> SpotGraph:
        if config.adjacency_mode == 'knn':
            return build_knn_graph(sub, k=config.k, symmetrize=config.symmetrize, verbose=verbose)
        return build_delaunay_graph(sub, max_edge_length=config.max_edge_length, verbose=verbose)

    if not table.has_samples or table.n_samples == 1:
        return _build(table)

    graphs = []
    for sample, sub in table.iter_samples():
        if verbose:
            print(f"  Sample {sample}: {sub.n_spots} spots")
        graphs.append(_build(sub))
    return _combine_graphs(graphs, table)
