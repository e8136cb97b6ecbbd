"""
config.py - Configuration and exceptions for spatioprox

Contains:
- SpotConfig: Column names of the spot table
- ProximityConfig: Graph, distance and classification settings
- Exception hierarchy shared by all stages
"""

from dataclasses import asdict, dataclass, fields
from typing import Optional

import numpy as np


class SpatioproxError(Exception):
    """Base exception for spatioprox errors."""

    pass


class ValidationError(SpatioproxError):
    """Raised when input data validation fails."""

    pass


class ColumnNotFoundError(SpatioproxError):
    """Raised when a required column is missing."""

    def __init__(self, column: str, dataframe_name: str):
        self.column = column
        self.dataframe_name = dataframe_name
        super().__init__(f"Column '{column}' not found in {dataframe_name}")


class InvalidConfigurationError(SpatioproxError, ValueError):
    """Raised when k, dmax, exclusion_radius or another setting is out of range."""

    pass


class InsufficientSpotsError(SpatioproxError):
    """Raised when there are too few spots to build the requested graph."""

    def __init__(self, n_spots: int, required: int, method: str):
        self.n_spots = n_spots
        self.required = required
        self.method = method
        super().__init__(
            f"{method} graph needs at least {required} spots, got {n_spots}"
        )


class EmptyGroupError(SpatioproxError):
    """Raised when a target group has no members and empty groups are not allowed."""

    def __init__(self, group_name: str):
        self.group_name = group_name
        super().__init__(f"Group '{group_name}' has no members")


class DisconnectedGraphError(SpatioproxError):
    """Raised when a graph has no edges at all."""

    pass


ADJACENCY_MODES = ("knn", "delaunay")
SYMMETRIZE_POLICIES = ("union", "mutual")


def is_int(value) -> bool:
    """True for Python and numpy integers; bool is an int subclass but never a valid count."""
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


@dataclass
class SpotConfig:
    """Column names used to read a spot table."""

    spot_id_col: str = "spot"
    x_col: str = "x"
    y_col: str = "y"
    sample_col: str = "sample"

    def get_coordinate_columns(self) -> tuple[str, str]:
        """
        Get x, y column names.

        Returns
        -------
        Tuple[str, str]
            (x_column, y_column)
        """
        return self.x_col, self.y_col


@dataclass
class ProximityConfig:
    """
    Settings for graph construction, distance search and classification.

    Attributes
    ----------
    adjacency_mode : str
        'knn' or 'delaunay'.
    k : int
        Neighbours per spot (knn only).
    max_edge_length : float, optional
        Prune Delaunay edges longer than this.
    symmetrize : str
        'mutual' (edge only if both spots list each other) or 'union'
        (edge if either does). knn only.
    dmax : int
        Maximum hop count searched; spots further away are Unreachable.
    exclusion_radius : int
        Hop radius around group2 inside which non-group2 spots are excluded.
    group1_name, group2_name : str
        Display names substituted into classification labels.
    """

    adjacency_mode: str = "knn"
    k: int = 6
    max_edge_length: Optional[float] = None
    symmetrize: str = "mutual"
    dmax: int = 10
    exclusion_radius: int = 0
    group1_name: str = "Group1"
    group2_name: str = "Group2"

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise InvalidConfigurationError for any out-of-range setting."""
        if self.adjacency_mode not in ADJACENCY_MODES:
            raise InvalidConfigurationError(
                f"Unknown adjacency_mode '{self.adjacency_mode}'. "
                f"Use one of {ADJACENCY_MODES}"
            )
        if not is_int(self.k) or self.k <= 0:
            raise InvalidConfigurationError(f"k must be a positive integer, got {self.k!r}")
        if self.max_edge_length is not None and not self.max_edge_length > 0:
            raise InvalidConfigurationError(
                f"max_edge_length must be positive, got {self.max_edge_length!r}"
            )
        if self.symmetrize not in SYMMETRIZE_POLICIES:
            raise InvalidConfigurationError(
                f"Unknown symmetrize policy '{self.symmetrize}'. "
                f"Use one of {SYMMETRIZE_POLICIES}"
            )
        if not is_int(self.dmax) or self.dmax <= 0:
            raise InvalidConfigurationError(f"dmax must be a positive integer, got {self.dmax!r}")
        if not is_int(self.exclusion_radius) or self.exclusion_radius < 0:
            raise InvalidConfigurationError(
                f"exclusion_radius must be a non-negative integer, got {self.exclusion_radius!r}"
            )
        if self.group1_name == self.group2_name:
            raise InvalidConfigurationError("group1_name and group2_name must differ")

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, params: dict) -> "ProximityConfig":
        """
        Create from a dictionary, e.g. a parsed JSON or YAML block.

        Unknown keys raise InvalidConfigurationError instead of being
        silently ignored.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(params) - known
        if unknown:
            raise InvalidConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**params)
