"""
Prevalence filtering transformations for abundance containers.

Keeps the features that are detected in enough samples (the "core"
community) or, inverted, the rare biosphere that is not.

Engineering Design:
    - Value-producing (Transform): input container -> new container
    - Thresholds follow ``stats.prevalence`` exactly, so a filter keeps the
      same features ``get_prevalent_features`` reports
    - ``get_passing_features`` exposes the decision without subsetting
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

import numpy as np

from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.transform import Transform
from taxomatrix.stats.prevalence import get_prevalent_features, validate_thresholds

logger = logging.getLogger(__name__)

__all__ = ['PrevalenceFilter', 'PrevalenceFilterResult', 'subset_by_prevalent', 'subset_by_rare']


@dataclass
class PrevalenceFilterResult:
    """Features passing a prevalence filter, with the parameters used."""
    passed_features: Set[str]
    failed_features: Set[str]
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def n_passed(self) -> int:
        return len(self.passed_features)

    @property
    def n_failed(self) -> int:
        return len(self.failed_features)

    @property
    def pass_rate(self) -> float:
        total = self.n_passed + self.n_failed
        return self.n_passed / total if total > 0 else 0.0


class PrevalenceFilter(Transform):
    """
    Keep features by prevalence.

    A feature passes when the fraction of samples in which it is detected
    exceeds ``prevalence`` (reaches it with ``include_lowest``). With
    ``rare=True`` the filter keeps the features that do NOT pass.

    Params:
        assay_name: Assay the thresholds are applied to
        detection: Detection threshold on raw values, or on relative
            abundances when ``as_relative`` is True
        prevalence: Fraction of samples in [0, 1]
        as_relative: Convert to relative abundance before thresholding
        include_lowest: Use >= instead of > for both thresholds
        rare: Keep the complement

    Examples:
        >>> core = PrevalenceFilter(detection=0.001, prevalence=0.5,
        ...                         as_relative=True).apply(tse)
        >>> rare = PrevalenceFilter(detection=0.001, prevalence=0.5,
        ...                         as_relative=True, rare=True).apply(tse)
    """

    def __init__(
        self,
        assay_name: str = "counts",
        detection: float = 0.0,
        prevalence: float = 0.2,
        as_relative: bool = False,
        include_lowest: bool = False,
        rare: bool = False,
    ):
        validate_thresholds(detection, as_relative, prevalence)
        super().__init__(
            name="PrevalenceFilter",
            params={
                "assay_name": assay_name,
                "detection": detection,
                "prevalence": prevalence,
                "as_relative": as_relative,
                "include_lowest": include_lowest,
                "rare": rare,
            }
        )
        self.assay_name = assay_name
        self.detection = detection
        self.prevalence = prevalence
        self.as_relative = as_relative
        self.include_lowest = include_lowest
        self.rare = rare

    def _compute_keep_mask(self, container: TaxoMatrix) -> np.ndarray:
        prevalent = get_prevalent_features(
            container,
            self.assay_name,
            detection=self.detection,
            prevalence=self.prevalence,
            as_relative=self.as_relative,
            include_lowest=self.include_lowest,
        )
        mask = container.row_ids.isin(prevalent)
        return ~mask if self.rare else mask

    def apply(self, container: TaxoMatrix) -> TaxoMatrix:
        """
        Return a new container restricted to the kept features.
        """
        logger.info(f"Applying {self!r}")
        keep_mask = self._compute_keep_mask(container)

        n_kept = int(keep_mask.sum())
        if container.n_rows:
            logger.info(f"Filtering complete: Kept {n_kept}/{container.n_rows} features "
                        f"({100 * n_kept / container.n_rows:.1f}%), Removed {container.n_rows - n_kept}")

        return container.select_rows(keep_mask)

    def get_passing_features(self, container: TaxoMatrix) -> PrevalenceFilterResult:
        """
        Get features passing the filter without subsetting the container.

        Args:
            container: Container with the assay named by ``assay_name``

        Returns:
            PrevalenceFilterResult with passed/failed identifiers
        """
        keep_mask = self._compute_keep_mask(container)
        row_ids = container.row_ids
        result = PrevalenceFilterResult(
            passed_features=set(row_ids[keep_mask]),
            failed_features=set(row_ids[~keep_mask]),
            parameters=dict(self.params),
        )
        logger.info(f"Feature filtering complete: {result.n_passed}/{result.n_passed + result.n_failed} "
                    f"features passed ({result.pass_rate * 100:.1f}%)")
        return result

    def validate(self, container: TaxoMatrix) -> list[str]:
        errors = super().validate(container)
        if self.assay_name not in container.assay_names:
            errors.append(f"Assay '{self.assay_name}' not found. Available: {container.assay_names}")
        elif self.as_relative and np.any(container.assay(self.assay_name) < 0):
            errors.append("Assay contains negative values (expected abundances for relative thresholds)")
        return errors


def subset_by_prevalent(
    container: TaxoMatrix,
    assay_name: str = "counts",
    detection: float = 0.0,
    prevalence: float = 0.2,
    as_relative: bool = False,
    include_lowest: bool = False,
    rank: Optional[str] = None,
    drop_missing: bool = True,
) -> TaxoMatrix:
    """
    New container holding only prevalent features.

    With ``rank`` the container is first agglomerated to that rank, so the
    result holds prevalent groups (e.g. genera) rather than single features.
    """
    if rank is not None:
        from taxomatrix.agglomeration.ranks import agglomerate_by_rank

        container = agglomerate_by_rank(container, rank, drop_missing=drop_missing)
    return PrevalenceFilter(assay_name, detection, prevalence, as_relative, include_lowest).apply(container)


def subset_by_rare(
    container: TaxoMatrix,
    assay_name: str = "counts",
    detection: float = 0.0,
    prevalence: float = 0.2,
    as_relative: bool = False,
    include_lowest: bool = False,
    rank: Optional[str] = None,
    drop_missing: bool = True,
) -> TaxoMatrix:
    """New container holding the features ``subset_by_prevalent`` drops."""
    if rank is not None:
        from taxomatrix.agglomeration.ranks import agglomerate_by_rank

        container = agglomerate_by_rank(container, rank, drop_missing=drop_missing)
    return PrevalenceFilter(
        assay_name, detection, prevalence, as_relative, include_lowest, rare=True
    ).apply(container)
