"""
plots.py - Figures for spot proximity results

Spatial scatter of spot labels and bar charts of hop-distance
frequencies.
"""

import os
from typing import Dict, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from ..data.config import ColumnNotFoundError, SpotConfig
from ..spatial.distances import DistanceMap

# Fixed colours so the same label looks the same in every figure,
# keyed by label position in the category order
LABEL_PALETTE = [
    '#7b3294',  # Double-Positive
    '#e66101',  # Group2-Positive, Group1-Neighbor
    '#1b7837',  # Group1-Positive
    '#d7191c',  # Group2-Positive
    '#bababa',  # Excluded
    '#f0f0f0',  # Double-Negative
]


def _label_colors(categories) -> Dict[str, str]:
    return {cat: LABEL_PALETTE[i % len(LABEL_PALETTE)] for i, cat in enumerate(categories)}


def _finish(fig, save_dir, filename, dpi, show_plot) -> None:
    if filename is not None:
        os.makedirs(save_dir, exist_ok=True)
        save_path = os.path.join(save_dir, filename)
        fig.savefig(save_path, dpi=dpi, bbox_inches='tight')
        print(f"Saved figure to {save_path}")

    if show_plot:
        plt.show()
    else:
        plt.close(fig)


def plot_spot_labels(
    augmented: pd.DataFrame,
    spot_config: Optional[SpotConfig] = None,
    label_col: str = 'classification_label',
    color_map: Optional[Dict[str, str]] = None,
    dot_size: float = 20,
    figsize: tuple = (10, 10),
    fig_title: Optional[str] = None,
    save_dir: str = "./",
    filename: Optional[str] = None,
    dpi: int = 300,
    show_plot: bool = True,
    alpha: float = 1.0,
    edge_color: Optional[str] = 'none',
    invert_y: bool = True,
) -> plt.Figure:
    """
    Plot spots at their coordinates coloured by classification label.

    Parameters
    ----------
    augmented : pd.DataFrame
        Output of ProximityResult.augmented_table(). For several samples,
        offset them first (SpotTable.offset_samples) so they do not overlap.
    spot_config : SpotConfig, optional
        Coordinate column names.
    label_col : str
        Categorical column to colour by.
    color_map : dict, optional
        Label to colour mapping. Defaults to a fixed palette.
    dot_size : float
        Marker area in points squared.
    figsize : tuple
        Figure size (width, height).
    fig_title : str, optional
        Figure title.
    save_dir : str
        Directory used when filename is given.
    filename : str, optional
        Save the figure under this name.
    dpi : int
        Resolution for saved figure.
    show_plot : bool
        Display the figure; otherwise it is closed after saving.
    alpha : float
        Dot transparency.
    edge_color : str, optional
        Dot edge colour.
    invert_y : bool
        Image-style y axis (row 0 at the top), as for array and pixel
        coordinates.

    Returns
    -------
    plt.Figure
    """
    spot_config = spot_config or SpotConfig()
    x_col, y_col = spot_config.get_coordinate_columns()
    for col in (x_col, y_col, label_col):
        if col not in augmented.columns:
            raise ColumnNotFoundError(col, 'augmented table')

    labels = augmented[label_col]
    if not isinstance(labels.dtype, pd.CategoricalDtype):
        labels = labels.astype('category')
    categories = labels.cat.categories

    if color_map is None:
        color_map = _label_colors(categories)

    fig, ax = plt.subplots(figsize=figsize)

    # Plot each category separately for legend control
    for category in categories:
        mask = (labels == category).to_numpy()
        if not mask.any():
            continue
        ax.scatter(
            augmented.loc[mask, x_col],
            augmented.loc[mask, y_col],
            c=[color_map[category]],
            s=dot_size,
            alpha=alpha,
            edgecolors=edge_color,
            label=f"{category} ({int(mask.sum())})",
        )

    ax.set_aspect('equal')
    if invert_y:
        ax.invert_yaxis()
    ax.axis('off')
    ax.legend(loc='center left', bbox_to_anchor=(1.01, 0.5), title=label_col, frameon=False)
    ax.set_title(fig_title if fig_title is not None else "Spot proximity labels", fontsize=14)
    fig.tight_layout()

    _finish(fig, save_dir, filename, dpi, show_plot)
    return fig


def plot_distance_frequency(
    distance_map: DistanceMap,
    spots=None,
    normalize: bool = False,
    color: str = '#4575b4',
    figsize: tuple = (8, 4),
    fig_title: Optional[str] = None,
    save_dir: str = "./",
    filename: Optional[str] = None,
    dpi: int = 300,
    show_plot: bool = True,
) -> plt.Figure:
    """
    Bar chart of the number of spots at each hop distance.

    Parameters
    ----------
    distance_map : DistanceMap
    spots : iterable, optional
        Only count these spots.
    normalize : bool
        Plot fractions instead of counts.
    color : str
        Bar colour; the 'unreachable' bar is drawn in grey.
    figsize, fig_title, save_dir, filename, dpi, show_plot
        As in plot_spot_labels.

    Returns
    -------
    plt.Figure
    """
    freq = distance_map.frequency(spots)
    value_col = 'fraction' if normalize else 'n_spots'

    plot_df = pd.DataFrame({
        'distance': [str(d) for d in freq.index],
        'value': freq[value_col].to_numpy(),
    })
    palette = [color] * (len(plot_df) - 1) + ['#bababa']

    fig, ax = plt.subplots(figsize=figsize)
    sns.barplot(
        data=plot_df, x='distance', y='value',
        hue='distance', palette=palette, legend=False, ax=ax,
    )
    ax.set_xlabel(f"Hops to nearest {distance_map.target} spot")
    ax.set_ylabel("Fraction of spots" if normalize else "Spots")
    if fig_title is None:
        fig_title = f"Distance to {distance_map.target} (dmax={distance_map.dmax})"
    ax.set_title(fig_title)
    sns.despine(ax=ax)
    if not normalize:
        ax.set_ylim(0, max(1, np.max(plot_df['value'])) * 1.1)
    fig.tight_layout()

    _finish(fig, save_dir, filename, dpi, show_plot)
    return fig
