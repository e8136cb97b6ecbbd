"""
data - Spot tables, configuration and loaders

This module contains the SpotTable container, the configuration
dataclasses, the exception hierarchy and readers for spot tables.
"""

from .config import (
    SpotConfig,
    ProximityConfig,
    SpatioproxError,
    ValidationError,
    ColumnNotFoundError,
    InvalidConfigurationError,
    InsufficientSpotsError,
    EmptyGroupError,
    DisconnectedGraphError,
)

from .core import SpotTable
from .loaders import read_spot_table, read_visium_positions, visium_array_to_planar
from .markers import marker_positive

__all__ = [
    # Core class
    'SpotTable',

    # Configuration
    'SpotConfig',
    'ProximityConfig',

    # Loaders
    'read_spot_table',
    'read_visium_positions',
    'visium_array_to_planar',

    # Groups
    'marker_positive',

    # Exceptions
    'SpatioproxError',
    'ValidationError',
    'ColumnNotFoundError',
    'InvalidConfigurationError',
    'InsufficientSpotsError',
    'EmptyGroupError',
    'DisconnectedGraphError',
]
