"""
visualization - Figures for spot proximity results
"""

from .plots import (
    LABEL_PALETTE,
    plot_spot_labels,
    plot_distance_frequency,
)

__all__ = [
    'LABEL_PALETTE',
    'plot_spot_labels',
    'plot_distance_frequency',
]
