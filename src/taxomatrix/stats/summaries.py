"""
Abundance summaries: top features, dominant taxa, container overview.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import numpy as np
import pandas as pd

from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.errors import InvalidParameterError
from taxomatrix.stats.prevalence import prevalence_counts

logger = logging.getLogger(__name__)

__all__ = [
    'get_top_features',
    'get_dominant_features',
    'add_dominant_features',
    'summarize_container',
]

_TOP_METHODS = ("mean", "median", "sum", "prevalence")


def get_top_features(
    container: TaxoMatrix,
    assay_name: str = "counts",
    top: int = 5,
    method: str = "mean",
    detection: float = 0.0,
) -> list:
    """
    Most abundant (or most prevalent) features.

    Args:
        top: Number of features to return (fewer if the container is smaller)
        method: ``mean``, ``median``, ``sum`` across samples, or
            ``prevalence`` (samples with value > ``detection``)

    Returns:
        Feature identifiers, highest score first; ties keep container order
    """
    if method not in _TOP_METHODS:
        raise InvalidParameterError(
            "method", method, f"method must be one of {list(_TOP_METHODS)}, got {method!r}"
        )
    if not isinstance(top, (int, np.integer)) or top < 1:
        raise InvalidParameterError("top", top, f"top must be a positive integer, got {top!r}")

    x = container.assay(assay_name)
    if method == "mean":
        scores = np.nanmean(x, axis=1)
    elif method == "median":
        scores = np.nanmedian(x, axis=1)
    elif method == "sum":
        scores = np.nansum(x, axis=1)
    else:
        scores = prevalence_counts(x, detection)

    ranked = pd.Series(scores, index=container.row_ids).sort_values(ascending=False, kind="stable")
    return list(ranked.index[:top])


def get_dominant_features(
    container: TaxoMatrix,
    assay_name: str = "counts",
    rank: Optional[str] = None,
    drop_missing: bool = True,
) -> pd.Series:
    """
    Most abundant feature in every sample.

    Args:
        rank: Aggregate to this rank first, so the dominant taxon is e.g. a
            genus rather than a single ASV

    Returns:
        Series of feature (or group) identifiers indexed by sample. Ties go
        to the first feature in row order.
    """
    source = container
    if rank is not None:
        from taxomatrix.agglomeration.ranks import agglomerate_by_rank

        source = agglomerate_by_rank(container, rank, drop_missing=drop_missing)

    x = np.asarray(source.assay(assay_name), dtype=float)
    if source.n_rows == 0:
        raise InvalidParameterError("container", source.shape, "No features to pick a dominant one from")
    filled = np.where(np.isnan(x), -np.inf, x)
    winners = np.argmax(filled, axis=0)
    return pd.Series(source.row_ids[winners], index=source.col_ids, name="dominant")


def add_dominant_features(
    container: TaxoMatrix,
    assay_name: str = "counts",
    rank: Optional[str] = None,
    name: str = "dominant_taxa",
    overwrite: bool = False,
) -> TaxoMatrix:
    """Store ``get_dominant_features`` as a sample annotation; returns ``container``."""
    dominant = get_dominant_features(container, assay_name, rank=rank)
    return container.add_col_annotation(name, dominant.to_numpy(dtype=object), overwrite=overwrite)


def summarize_container(container: TaxoMatrix, assay_name: str = "counts") -> dict[str, Any]:
    """
    Overview of dimensions, library sizes and taxonomy coverage.

    Returns:
        JSON-serializable dictionary
    """
    x = np.asarray(container.assay(assay_name), dtype=float)
    library_sizes = np.nansum(x, axis=0)
    row_totals = np.nansum(x, axis=1)

    coverage = {}
    for rank, column in zip(container.taxonomy.ranks_present, container.taxonomy.columns):
        known = container.row_data[column].map(lambda v: isinstance(v, str))
        coverage[rank] = float(known.mean()) if len(known) else 0.0

    return {
        "n_features": container.n_rows,
        "n_samples": container.n_cols,
        "assays": container.assay_names,
        "alternate_experiments": container.alt_exp_names,
        "library_size": {
            "min": float(library_sizes.min()) if library_sizes.size else 0.0,
            "median": float(np.median(library_sizes)) if library_sizes.size else 0.0,
            "max": float(library_sizes.max()) if library_sizes.size else 0.0,
        },
        "n_singletons": int(np.sum(row_totals == 1)),
        "n_absent_features": int(np.sum(row_totals == 0)),
        "taxonomy_ranks": list(container.taxonomy.ranks_present),
        "taxonomy_coverage": coverage,
        "row_tree": None if container.row_tree is None else container.row_tree.kind,
    }
