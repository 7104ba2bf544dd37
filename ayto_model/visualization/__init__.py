# Visualization Module
from .palette import PALETTE, RESULT_STATE_COLORS, probability_cmap
from .probability_plots import plot_probability_heatmap

__all__ = ['PALETTE', 'RESULT_STATE_COLORS', 'probability_cmap', 'plot_probability_heatmap']
