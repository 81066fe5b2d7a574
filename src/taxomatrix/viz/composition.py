"""
Community composition plots.

Both plots are read-only views: they may aggregate or rescale internally
but never add assays or annotations to the container they are given.

- plot_abundance: stacked relative-abundance bars, top taxa + "Other"
- plot_prevalence_heatmap: core size over detection x prevalence thresholds
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.errors import InvalidParameterError
from taxomatrix.core.taxonomy import get_taxonomy_labels
from taxomatrix.stats.normalization import transform_matrix
from taxomatrix.stats.prevalence import prevalence_counts, validate_thresholds
from taxomatrix.viz.core import Figure

logger = logging.getLogger(__name__)

__all__ = ['plot_abundance', 'plot_prevalence_heatmap']

OTHER_COLOR = (0.75, 0.75, 0.75)
DEFAULT_DETECTIONS = (0.0, 0.0001, 0.001, 0.01, 0.05)
DEFAULT_PREVALENCES = (0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9)


def _composition_frame(
    container: TaxoMatrix,
    assay_name: str,
    rank: Optional[str],
    top: int,
) -> pd.DataFrame:
    """Relative abundances (percent) of the top taxa plus "Other", samples as rows."""
    source = container
    if rank is not None:
        from taxomatrix.agglomeration.ranks import agglomerate_by_rank

        source = agglomerate_by_rank(container, rank)
        labels = pd.Index(source.row_ids)
    else:
        labels = pd.Index(get_taxonomy_labels(source).to_numpy())

    relative = transform_matrix(source.assay(assay_name), "relabundance", "cols") * 100
    frame = pd.DataFrame(relative, index=labels, columns=source.col_ids)

    order = frame.mean(axis=1).sort_values(ascending=False, kind="stable").index
    keep = order[:top]
    plot_df = frame.loc[keep].copy()
    if len(order) > top:
        plot_df.loc["Other"] = frame.loc[order[top:]].sum(axis=0)
    return plot_df.T


def plot_abundance(
    container: TaxoMatrix,
    assay_name: str = "relabundance",
    rank: Optional[str] = None,
    top: int = 10,
    title: Optional[str] = None,
) -> Figure:
    """
    Stacked bar chart of community composition per sample.

    Assay values are rescaled to percent per sample before plotting, so a
    raw count assay and a relative abundance assay give the same picture.

    Args:
        assay_name: Assay to plot
        rank: Agglomerate to this rank first (e.g. "Phylum")
        top: Number of taxa drawn individually; the rest are pooled as "Other"
        title: Plot title (derived from rank and top when omitted)

    Returns:
        Figure wrapper; call ``close()`` when done
    """
    if top < 1:
        raise InvalidParameterError("top", top, f"top must be a positive integer, got {top!r}")

    plot_df = _composition_frame(container, assay_name, rank, top)
    n_taxa = plot_df.shape[1]
    colors = list(sns.color_palette("tab20", n_colors=min(n_taxa, 20)))
    colors = (colors * (n_taxa // len(colors) + 1))[:n_taxa]
    if "Other" in plot_df.columns and plot_df.columns[-1] == "Other":
        colors[-1] = OTHER_COLOR

    level = rank.capitalize() if rank else "Feature"
    title = title or f"{level}-Level Composition (Top {top})"

    fig, ax = plt.subplots(figsize=(max(6, 0.4 * container.n_cols + 4), 6))
    plot_df.plot(kind="bar", stacked=True, ax=ax, color=colors, width=0.8, edgecolor="white", linewidth=0.3)
    ax.set_xlabel("Sample", fontsize=12, labelpad=6)
    ax.set_ylabel("Relative Abundance (%)", fontsize=12, labelpad=6)
    ax.set_title(title, fontsize=14, fontweight="bold", pad=10)
    ax.tick_params(axis="x", rotation=45)
    ax.legend(title=level, bbox_to_anchor=(1.01, 1), loc="upper left", fontsize=8, title_fontsize=9, frameon=False)
    ax.set_ylim(0, 100)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    fig.tight_layout()

    return Figure(
        fig=fig,
        title=title,
        description=f"Per-sample relative abundance of the {top} most abundant taxa ({assay_name})",
        metadata={"assay_name": assay_name, "rank": rank, "top": top, "taxa": list(plot_df.columns)},
    )


def plot_prevalence_heatmap(
    container: TaxoMatrix,
    assay_name: str = "counts",
    rank: Optional[str] = None,
    detections: Sequence[float] = DEFAULT_DETECTIONS,
    prevalences: Sequence[float] = DEFAULT_PREVALENCES,
    as_relative: bool = True,
    include_lowest: bool = False,
) -> Figure:
    """
    Heatmap of core size: how many features are prevalent at each
    combination of detection and prevalence threshold.

    Args:
        detections: Detection thresholds (rows)
        prevalences: Prevalence fractions (columns)
        as_relative: Interpret detections as relative abundances

    Returns:
        Figure wrapper; ``metadata["core_sizes"]`` holds the plotted table
    """
    for detection in detections:
        validate_thresholds(detection, as_relative)
    for prevalence in prevalences:
        validate_thresholds(0.0, as_relative, prevalence)

    source = container
    if rank is not None:
        from taxomatrix.agglomeration.ranks import agglomerate_by_rank

        source = agglomerate_by_rank(container, rank)

    x = source.assay(assay_name)
    n_cols = max(source.n_cols, 1)
    table = np.zeros((len(detections), len(prevalences)), dtype=int)
    for i, detection in enumerate(detections):
        fraction = prevalence_counts(x, detection, as_relative, include_lowest) / n_cols
        for j, prevalence in enumerate(prevalences):
            passed = fraction >= prevalence if include_lowest else fraction > prevalence
            table[i, j] = int(passed.sum())

    core_sizes = pd.DataFrame(
        table,
        index=pd.Index([f"{d:g}" for d in detections], name="detection"),
        columns=pd.Index([f"{p:g}" for p in prevalences], name="prevalence"),
    )

    fig, ax = plt.subplots(figsize=(1.0 * len(prevalences) + 3, 0.6 * len(detections) + 2))
    sns.heatmap(core_sizes, annot=True, fmt="d", cmap="viridis", cbar_kws={"label": "Features"}, ax=ax)
    title = "Core Size by Detection and Prevalence"
    ax.set_title(title, fontsize=14, fontweight="bold", pad=10)
    ax.set_xlabel("Prevalence (fraction of samples)")
    ax.set_ylabel("Relative detection" if as_relative else "Detection")
    fig.tight_layout()

    return Figure(
        fig=fig,
        title=title,
        description=f"Number of {'groups' if rank else 'features'} passing each threshold pair ({assay_name})",
        metadata={"assay_name": assay_name, "rank": rank, "core_sizes": core_sizes},
    )
