"""
Read-only visualizations of abundance containers.

All plot functions return ``taxomatrix.viz.core.Figure`` and leave the
container untouched.
"""

from taxomatrix.viz.core import Figure
from taxomatrix.viz.composition import plot_abundance, plot_prevalence_heatmap

__all__ = ['Figure', 'plot_abundance', 'plot_prevalence_heatmap']
