# src/spatioprox/__init__.py

"""
spatioprox - Spot proximity classification for spatial transcriptomics
"""

# Core data structures
from .data.core import SpotTable
from .data.config import (
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
from .spatial.pipeline import run_proximity, annotate_proximity, ProximityResult
from .spatial.classify import SpotLabel

# Import submodules
from . import data
from . import spatial
from . import visualization

__version__ = '0.1.0'

__all__ = [
    # Core classes
    'SpotTable',
    'SpotConfig',
    'ProximityConfig',
    'ProximityResult',
    'SpotLabel',

    # Entry points
    'run_proximity',
    'annotate_proximity',

    # Exceptions
    'SpatioproxError',
    'ValidationError',
    'ColumnNotFoundError',
    'InvalidConfigurationError',
    'InsufficientSpotsError',
    'EmptyGroupError',
    'DisconnectedGraphError',

    # Submodules
    'data',
    'spatial',
    'visualization',
]
