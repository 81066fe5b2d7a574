"""
Prevalence and abundance summaries.

Prevalence is the share of samples in which a feature is detected above a
threshold. It drives the "core microbiome" and rare-biosphere views and
most abundance filters, so its exact threshold semantics matter:

    detected  <=>  value > detection          (default)
    detected  <=>  value >= detection         (include_lowest=True)

With the default ``detection=0`` only strictly positive values count as
detected, and a feature that is zero everywhere has prevalence 0.

Relative versus absolute:
    ``as_relative=True`` converts each sample to relative abundance before
    applying the threshold and reports prevalence as a fraction of samples
    in [0, 1]. ``as_relative=False`` applies the threshold to the raw assay
    values and reports the number of samples, an integer in [0, n_samples].

Examples:
    >>> from taxomatrix.stats.prevalence import get_prevalence, get_prevalent_features
    >>> counts = get_prevalence(tse, "counts")                # integer counts
    >>> fractions = get_prevalence(tse, "counts", detection=0.001, as_relative=True)
    >>> core = get_prevalent_features(tse, "counts", detection=0.001,
    ...                               prevalence=0.5, as_relative=True)
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import pandas as pd

from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.errors import InvalidParameterError
from taxomatrix.stats.normalization import transform_matrix

logger = logging.getLogger(__name__)

__all__ = [
    'validate_thresholds',
    'prevalence_counts',
    'get_prevalence',
    'get_prevalent_features',
    'get_rare_features',
    'get_prevalent_abundance',
]


def validate_thresholds(
    detection: float,
    as_relative: bool,
    prevalence: Optional[float] = None,
) -> None:
    """
    Reject out-of-range detection and prevalence thresholds.

    Raises:
        InvalidParameterError: Naming the offending parameter
    """
    if detection is None or not np.isfinite(detection) or detection < 0:
        raise InvalidParameterError(
            "detection", detection, f"detection must be a finite number >= 0, got {detection!r}"
        )
    if as_relative and detection > 1:
        raise InvalidParameterError(
            "detection", detection,
            f"detection must lie in [0, 1] when as_relative=True, got {detection!r}"
        )
    if prevalence is not None and (not np.isfinite(prevalence) or not 0 <= prevalence <= 1):
        raise InvalidParameterError(
            "prevalence", prevalence, f"prevalence must lie in [0, 1], got {prevalence!r}"
        )


def prevalence_counts(
    x: np.ndarray,
    detection: float = 0.0,
    as_relative: bool = False,
    include_lowest: bool = False,
) -> np.ndarray:
    """
    Number of samples (columns) in which each feature (row) is detected.

    Missing values never count as detected.
    """
    x = np.asarray(x, dtype=float)
    if as_relative:
        x = transform_matrix(x, "relabundance", "cols")
    with np.errstate(invalid="ignore"):
        detected = x >= detection if include_lowest else x > detection
    return detected.sum(axis=1).astype(int)


def _source(
    container: TaxoMatrix,
    rank: Optional[str],
    drop_missing: bool,
) -> TaxoMatrix:
    if rank is None:
        return container
    from taxomatrix.agglomeration.ranks import agglomerate_by_rank

    return agglomerate_by_rank(container, rank, drop_missing=drop_missing)


def get_prevalence(
    container: TaxoMatrix,
    assay_name: str = "counts",
    detection: float = 0.0,
    as_relative: bool = False,
    include_lowest: bool = False,
    rank: Optional[str] = None,
    sort: bool = False,
    drop_missing: bool = True,
) -> pd.Series:
    """
    Per-feature prevalence.

    Args:
        container: Input container (not modified)
        assay_name: Assay to evaluate
        detection: Detection threshold (see module docstring)
        as_relative: Threshold relative abundances and return fractions;
            otherwise threshold raw values and return sample counts
        include_lowest: Count values equal to the threshold as detected
        rank: Aggregate to this taxonomy rank (sum) before computing
        sort: Order from most to least prevalent (stable for ties)
        drop_missing: With ``rank``, drop features missing that rank

    Returns:
        Series indexed by feature (or group) identifier, ``int`` counts
        when ``as_relative`` is False, ``float`` fractions otherwise

    Raises:
        InvalidParameterError: Bad threshold, unknown assay or rank
    """
    validate_thresholds(detection, as_relative)
    source = _source(container, rank, drop_missing)
    counts = prevalence_counts(source.assay(assay_name), detection, as_relative, include_lowest)

    if as_relative:
        values = counts / source.n_cols if source.n_cols else np.zeros(len(counts))
        result = pd.Series(values, index=source.row_ids, name="prevalence", dtype=float)
    else:
        result = pd.Series(counts, index=source.row_ids, name="prevalence", dtype=int)

    if sort:
        result = result.sort_values(ascending=False, kind="stable")
    return result


def _prevalent_mask(
    source: TaxoMatrix,
    assay_name: str,
    detection: float,
    prevalence: float,
    as_relative: bool,
    include_lowest: bool,
) -> np.ndarray:
    counts = prevalence_counts(source.assay(assay_name), detection, as_relative, include_lowest)
    fraction = counts / source.n_cols if source.n_cols else np.zeros(len(counts))
    return fraction >= prevalence if include_lowest else fraction > prevalence


def get_prevalent_features(
    container: TaxoMatrix,
    assay_name: str = "counts",
    detection: float = 0.0,
    prevalence: float = 0.2,
    as_relative: bool = False,
    include_lowest: bool = False,
    rank: Optional[str] = None,
    sort: bool = False,
    drop_missing: bool = True,
) -> list:
    """
    Identifiers of features whose prevalence fraction exceeds ``prevalence``.

    The prevalence threshold is always a fraction of samples in [0, 1],
    whichever way ``as_relative`` interprets ``detection``.

    Returns:
        Feature identifiers, in container order or, with ``sort``, from most
        to least prevalent
    """
    validate_thresholds(detection, as_relative, prevalence)
    source = _source(container, rank, drop_missing)
    mask = _prevalent_mask(source, assay_name, detection, prevalence, as_relative, include_lowest)
    selected = source.row_ids[mask]
    if sort:
        counts = prevalence_counts(source.assay(assay_name), detection, as_relative, include_lowest)
        order = pd.Series(counts[mask], index=selected).sort_values(ascending=False, kind="stable")
        selected = order.index
    logger.debug(f"{int(mask.sum())}/{source.n_rows} features prevalent "
                 f"(detection={detection}, prevalence={prevalence})")
    return list(selected)


def get_rare_features(
    container: TaxoMatrix,
    assay_name: str = "counts",
    detection: float = 0.0,
    prevalence: float = 0.2,
    as_relative: bool = False,
    include_lowest: bool = False,
    rank: Optional[str] = None,
    drop_missing: bool = True,
) -> list:
    """
    Identifiers of features that are not prevalent (complement of
    ``get_prevalent_features`` with the same arguments), in container order.
    """
    validate_thresholds(detection, as_relative, prevalence)
    source = _source(container, rank, drop_missing)
    mask = _prevalent_mask(source, assay_name, detection, prevalence, as_relative, include_lowest)
    return list(source.row_ids[~mask])


def get_prevalent_abundance(
    container: TaxoMatrix,
    assay_name: str = "counts",
    detection: float = 0.0,
    prevalence: float = 0.2,
    as_relative: bool = False,
    include_lowest: bool = False,
) -> pd.Series:
    """
    Per-sample total relative abundance contributed by prevalent features.

    Returns:
        Series indexed by sample identifier with values in [0, 1]
    """
    validate_thresholds(detection, as_relative, prevalence)
    mask = _prevalent_mask(container, assay_name, detection, prevalence, as_relative, include_lowest)
    relative = transform_matrix(container.assay(assay_name), "relabundance", "cols")
    abundance = np.nansum(relative[mask, :], axis=0)
    return pd.Series(abundance, index=container.col_ids, name="prevalent_abundance")
