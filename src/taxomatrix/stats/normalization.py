"""
Abundance transformations for feature-by-sample matrices.

Implements the standard compositional and ecological transforms used on
microbiome count tables:

- Scaling: relative abundance (total-sum scaling), frequency, sum of squares
- Log-ratio: centered (clr), robust centered (rclr), additive (alr)
- Other: presence/absence, z-score standardization, log/log2/log10,
  Hellinger, rank and relative rank, chi-square

All kernels share one contract: given a matrix and an axis, return a float
matrix of the same shape. ``axis="cols"`` treats each sample (column)
independently, ``axis="rows"`` each feature (row).

References:
    - Aitchison (1986) The Statistical Analysis of Compositional Data
    - Martino et al. (2019) mSystems 4:e00016-19 (robust clr)
    - Legendre & Gallagher (2001) Oecologia 129:271-280 (Hellinger, chi-square)
    - Oksanen et al. vegan::decostand (frequency, rank, rrank)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Hashable, Literal, Optional, Union

import numpy as np
from numpy.typing import NDArray
from scipy.stats import rankdata

from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.errors import (
    InvalidParameterError,
    MissingPseudocountError,
    NonPositiveValueError,
    ZeroVarianceError,
)
from taxomatrix.core.transform import Transform

logger = logging.getLogger(__name__)

__all__ = [
    'TransformMethod',
    'resolve_method',
    'resolve_axis',
    'transform_matrix',
    'AssayTransform',
    'transform_assay',
]

Axis = Literal["cols", "rows", "samples", "features"]
Pseudocount = Union[bool, float, None]


class TransformMethod(Enum):
    """Available assay transformations."""

    RELABUNDANCE = "relabundance"
    CLR = "clr"
    RCLR = "rclr"
    ALR = "alr"
    PA = "pa"
    STANDARDIZE = "standardize"
    LOG = "log"
    LOG2 = "log2"
    LOG10 = "log10"
    HELLINGER = "hellinger"
    RANK = "rank"
    RRANK = "rrank"
    CHI_SQUARE = "chi.square"
    FREQUENCY = "frequency"
    NORMALIZE = "normalize"


_METHOD_ALIASES = {
    "total": TransformMethod.RELABUNDANCE,
    "tss": TransformMethod.RELABUNDANCE,
    "z": TransformMethod.STANDARDIZE,
    "chi_square": TransformMethod.CHI_SQUARE,
}

_AXIS_ALIASES = {
    "cols": "cols",
    "samples": "cols",
    "rows": "rows",
    "features": "rows",
}

# Methods that take logarithms of the (pseudocounted) input
_LOG_METHODS = {
    TransformMethod.CLR,
    TransformMethod.ALR,
    TransformMethod.LOG,
    TransformMethod.LOG2,
    TransformMethod.LOG10,
}


def resolve_method(method: Union[str, TransformMethod]) -> TransformMethod:
    """
    Canonicalize a transform name.

    Raises:
        InvalidParameterError: If the name is unknown
    """
    if isinstance(method, TransformMethod):
        return method
    if isinstance(method, str):
        key = method.strip().lower()
        if key in _METHOD_ALIASES:
            return _METHOD_ALIASES[key]
        for candidate in TransformMethod:
            if candidate.value == key:
                return candidate
    raise InvalidParameterError(
        "method", method,
        f"Unknown transform method: {method!r}. "
        f"Must be one of {[m.value for m in TransformMethod]}"
    )


def resolve_axis(axis: str) -> str:
    """Canonicalize an axis selector to ``"cols"`` or ``"rows"``."""
    if isinstance(axis, str) and axis.lower() in _AXIS_ALIASES:
        return _AXIS_ALIASES[axis.lower()]
    raise InvalidParameterError(
        "axis", axis, f"Unknown axis: {axis!r}. Must be one of {sorted(_AXIS_ALIASES)}"
    )


def _resolve_pseudocount(x: NDArray[np.float64], pseudocount: Pseudocount) -> float:
    """``True`` means half the smallest positive value; False/None mean none."""
    if pseudocount is None or pseudocount is False:
        return 0.0
    if pseudocount is True:
        positive = x[np.isfinite(x) & (x > 0)]
        if positive.size == 0:
            raise NonPositiveValueError(
                "pseudocount=True needs at least one positive value to derive from"
            )
        return float(positive.min()) / 2.0
    try:
        value = float(pseudocount)
    except (TypeError, ValueError) as e:
        raise InvalidParameterError(
            "pseudocount", pseudocount, f"pseudocount must be a non-negative number, got {pseudocount!r}"
        ) from e
    if not np.isfinite(value) or value < 0:
        raise InvalidParameterError(
            "pseudocount", pseudocount, f"pseudocount must be a non-negative number, got {pseudocount!r}"
        )
    return value


def _positive_log_input(x: NDArray[np.float64], pseudocount: Pseudocount, method: TransformMethod) -> NDArray[np.float64]:
    pc = _resolve_pseudocount(x, pseudocount)
    if pc == 0.0:
        n_bad = int(np.sum(x <= 0))
        if n_bad:
            raise MissingPseudocountError(
                f"'{method.value}' found {n_bad} zero or negative values; "
                "set a pseudocount (e.g. pseudocount=1 or pseudocount=True)"
            )
        return x
    shifted = x + pc
    n_bad = int(np.sum(shifted <= 0))
    if n_bad:
        raise NonPositiveValueError(
            f"'{method.value}' has {n_bad} values that remain non-positive after "
            f"adding pseudocount {pc}"
        )
    return shifted


def _safe_divisor(values: NDArray[np.float64]) -> NDArray[np.float64]:
    return np.where(values == 0, 1.0, values)


def _per_column(
    x: NDArray[np.float64],
    method: TransformMethod,
    pseudocount: Pseudocount,
    threshold: float,
    reference: Optional[int],
    ddof: int,
) -> NDArray[np.float64]:
    """Apply ``method`` to every column of ``x`` independently."""
    if method is TransformMethod.RELABUNDANCE:
        return x / _safe_divisor(np.nansum(x, axis=0))[np.newaxis, :]

    if method is TransformMethod.PA:
        out = (x > threshold).astype(float)
        out[np.isnan(x)] = np.nan
        return out

    if method is TransformMethod.STANDARDIZE:
        counts = np.sum(~np.isnan(x), axis=0)
        mean = np.nanmean(x, axis=0) if x.shape[0] else np.zeros(x.shape[1])
        centered = x - mean[np.newaxis, :]
        dof = counts - ddof
        ss = np.nansum(centered ** 2, axis=0)
        with np.errstate(divide="ignore", invalid="ignore"):
            sd = np.sqrt(np.where(dof > 0, ss / np.where(dof > 0, dof, 1), 0.0))
        zero = np.flatnonzero((dof <= 0) | (sd == 0))
        if zero.size:
            raise ZeroVarianceError(
                f"standardize: {zero.size} axis element(s) have zero variance "
                f"(positions {zero[:5].tolist()}); remove them or choose another transform"
            )
        return centered / sd[np.newaxis, :]

    if method in (TransformMethod.LOG, TransformMethod.LOG2, TransformMethod.LOG10):
        y = _positive_log_input(x, pseudocount, method)
        if method is TransformMethod.LOG2:
            return np.log2(y)
        if method is TransformMethod.LOG10:
            return np.log10(y)
        return np.log(y)

    if method is TransformMethod.CLR:
        logs = np.log(_positive_log_input(x, pseudocount, method))
        return logs - np.nanmean(logs, axis=0)[np.newaxis, :]

    if method is TransformMethod.ALR:
        if reference is None:
            raise InvalidParameterError("reference", reference, "alr requires a reference feature")
        if not 0 <= reference < x.shape[0]:
            raise InvalidParameterError(
                "reference", reference, f"alr reference position {reference} out of range [0, {x.shape[0]})"
            )
        logs = np.log(_positive_log_input(x, pseudocount, method))
        return logs - logs[reference, :][np.newaxis, :]

    if method is TransformMethod.RCLR:
        if np.any(x < 0):
            raise NonPositiveValueError("rclr requires non-negative values")
        positive = x > 0
        with np.errstate(divide="ignore", invalid="ignore"):
            logs = np.where(positive, np.log(np.where(positive, x, 1.0)), 0.0)
        n_positive = positive.sum(axis=0)
        means = logs.sum(axis=0) / np.where(n_positive == 0, 1, n_positive)
        out = np.where(positive, logs - means[np.newaxis, :], 0.0)
        out[np.isnan(x)] = np.nan
        return out

    if method is TransformMethod.HELLINGER:
        if np.any(x < 0):
            raise NonPositiveValueError("hellinger requires non-negative values")
        return np.sqrt(x / _safe_divisor(np.nansum(x, axis=0))[np.newaxis, :])

    if method in (TransformMethod.RANK, TransformMethod.RRANK):
        out = np.zeros_like(x)
        out[np.isnan(x)] = np.nan
        for j in range(x.shape[1]):
            present = (x[:, j] != 0) & ~np.isnan(x[:, j])
            if not present.any():
                continue
            ranks = rankdata(x[present, j], method="average")
            if method is TransformMethod.RRANK:
                ranks = ranks / ranks.max()
            out[present, j] = ranks
        return out

    if method is TransformMethod.CHI_SQUARE:
        total = np.nansum(x)
        col_sums = np.nansum(x, axis=0)
        row_sums = np.nansum(x, axis=1)
        if np.any(col_sums < 0) or np.any(row_sums < 0):
            raise NonPositiveValueError("chi.square requires non-negative margins")
        denominator = _safe_divisor(col_sums)[np.newaxis, :] * np.sqrt(_safe_divisor(row_sums))[:, np.newaxis]
        return x * np.sqrt(total) / denominator

    if method is TransformMethod.FREQUENCY:
        n_present = np.sum(x > 0, axis=0)
        return x * (n_present / _safe_divisor(np.nansum(x, axis=0)))[np.newaxis, :]

    if method is TransformMethod.NORMALIZE:
        norms = np.sqrt(np.nansum(x ** 2, axis=0))
        return x / _safe_divisor(norms)[np.newaxis, :]

    raise InvalidParameterError("method", method, f"Unhandled transform method: {method}")


def transform_matrix(
    x: NDArray,
    method: Union[str, TransformMethod],
    axis: Axis = "cols",
    *,
    pseudocount: Pseudocount = False,
    threshold: float = 0.0,
    reference: Optional[int] = None,
    ddof: int = 1,
) -> NDArray[np.float64]:
    """
    Transform a feature-by-sample matrix.

    Args:
        x: 2D array (n_features, n_samples)
        method: Transform name (see ``TransformMethod``; aliases ``total``,
            ``tss`` and ``z`` are accepted)
        axis: ``"cols"``/``"samples"`` to transform each sample,
            ``"rows"``/``"features"`` to transform each feature
        pseudocount: Added before taking logs (clr, alr, log*). ``True``
            uses half the smallest positive value. Without one, zeros or
            negatives raise ``MissingPseudocountError``.
        threshold: Detection threshold for ``pa``; values strictly above
            it become 1
        reference: For ``alr``, position of the reference element along
            the transformed axis (a feature for ``cols``, a sample for ``rows``)
        ddof: Delta degrees of freedom for ``standardize`` (1 matches R's scale)

    Returns:
        Float matrix of the same shape

    Raises:
        InvalidParameterError: Unknown method or axis, bad parameter
        MissingPseudocountError: Zeros entering a log transform
        NonPositiveValueError: Values still non-positive after pseudocount
        ZeroVarianceError: Zero variance in ``standardize``

    Mathematical formulation (for one column x of length D):
        relabundance: x / sum(x)
        clr:          log(x) - mean(log(x))
        rclr:         log(x_i) - mean(log(x_k) for x_k > 0), zeros stay 0
        alr:          log(x / x_ref)
        hellinger:    sqrt(x / sum(x))
        frequency:    x * count(x > 0) / sum(x)
        normalize:    x / sqrt(sum(x^2))
    """
    x = np.asarray(x, dtype=float)
    if x.ndim != 2:
        raise ValueError(f"Expected 2D array, got {x.ndim}D")

    method = resolve_method(method)
    axis = resolve_axis(axis)

    if axis == "rows":
        return _per_column(x.T, method, pseudocount, threshold, reference, ddof).T
    return _per_column(x, method, pseudocount, threshold, reference, ddof)


class AssayTransform(Transform):
    """
    Compute a new assay from an existing one and append it to the container.

    Assay-appending: the input container gains one assay and is returned;
    the source assay and all others are untouched.

    Params:
        assay_name: Source assay
        method: Transform name
        axis: ``"cols"`` (per sample, default) or ``"rows"`` (per feature)
        name: Name of the new assay (default: the canonical method name)
        overwrite: Allow replacing an assay of the same name
        pseudocount, threshold, reference, ddof: See ``transform_matrix``.
            ``reference`` may be an identifier or a position.

    Examples:
        >>> AssayTransform("counts", "relabundance").apply(tse)
        >>> AssayTransform("counts", "clr", pseudocount=1).apply(tse)
        >>> tse.assay_names
        ['counts', 'relabundance', 'clr']
    """

    def __init__(
        self,
        assay_name: str = "counts",
        method: Union[str, TransformMethod] = "relabundance",
        axis: Axis = "cols",
        name: Optional[str] = None,
        overwrite: bool = False,
        *,
        pseudocount: Pseudocount = False,
        threshold: float = 0.0,
        reference: Optional[Hashable] = None,
        ddof: int = 1,
    ):
        self.method = resolve_method(method)
        self.axis = resolve_axis(axis)
        self.assay_name = assay_name
        self.output_name = name or self.method.value
        self.overwrite = overwrite
        self.pseudocount = pseudocount
        self.threshold = threshold
        self.reference = reference
        self.ddof = ddof

        params: dict = {"assay_name": assay_name, "method": self.method.value, "axis": self.axis}
        if self.method in _LOG_METHODS:
            params["pseudocount"] = pseudocount
        if self.method is TransformMethod.PA:
            params["threshold"] = threshold
        if self.method is TransformMethod.ALR:
            params["reference"] = reference
        if self.method is TransformMethod.STANDARDIZE:
            params["ddof"] = ddof
        super().__init__(name="AssayTransform", params=params)

    def _reference_position(self, container: TaxoMatrix) -> Optional[int]:
        if self.reference is None:
            return None
        ids = container.row_ids if self.axis == "cols" else container.col_ids
        if self.reference in ids:
            return int(ids.get_loc(self.reference))
        if isinstance(self.reference, (int, np.integer)) and not isinstance(self.reference, bool):
            return int(self.reference)
        raise InvalidParameterError(
            "reference", self.reference,
            f"alr reference {self.reference!r} is neither an identifier nor a position"
        )

    def apply(self, container: TaxoMatrix) -> TaxoMatrix:
        """Append the transformed assay; returns the same container."""
        source = container.assay(self.assay_name)
        if self.output_name in container.assay_names and not self.overwrite:
            raise InvalidParameterError(
                "name", self.output_name,
                f"Assay '{self.output_name}' already exists; pass overwrite=True or choose another name"
            )

        result = transform_matrix(
            source,
            self.method,
            self.axis,
            pseudocount=self.pseudocount,
            threshold=self.threshold,
            reference=self._reference_position(container),
            ddof=self.ddof,
        )
        container.add_assay(self.output_name, result, overwrite=self.overwrite)
        logger.info(f"Applied {self!r} -> assay '{self.output_name}'")
        return container

    def validate(self, container: TaxoMatrix) -> list[str]:
        errors = super().validate(container)
        if self.assay_name not in container.assay_names:
            errors.append(f"Assay '{self.assay_name}' not found")
            return errors
        source = container.assay(self.assay_name)
        if self.method in _LOG_METHODS and not self.pseudocount and np.any(source <= 0):
            errors.append(f"Assay contains zeros or negatives; '{self.method.value}' needs a pseudocount")
        if self.method in (TransformMethod.RCLR, TransformMethod.HELLINGER) and np.any(source < 0):
            errors.append(f"Assay contains negative values; '{self.method.value}' needs non-negative input")
        return errors


def transform_assay(
    container: TaxoMatrix,
    assay_name: str = "counts",
    method: Union[str, TransformMethod] = "relabundance",
    axis: Axis = "cols",
    name: Optional[str] = None,
    overwrite: bool = False,
    **params,
) -> TaxoMatrix:
    """
    Append a transformed copy of ``assay_name`` to ``container``.

    Convenience wrapper around ``AssayTransform``. Transforms chain:

    Examples:
        >>> transform_assay(tse, "counts", "relabundance")
        >>> transform_assay(tse, "relabundance", "clr", pseudocount=True)
        >>> transform_assay(tse, "counts", "standardize", axis="rows", name="z")
    """
    return AssayTransform(
        assay_name=assay_name,
        method=method,
        axis=axis,
        name=name,
        overwrite=overwrite,
        **params,
    ).apply(container)
