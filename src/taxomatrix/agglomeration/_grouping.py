"""
Shared grouping machinery for all aggregation entry points.

Every aggregation variant reduces to the same two steps:

1. Assign each row (or column) an integer group code, ``-1`` meaning
   "dropped", with codes numbered in order of first appearance.
2. Reduce every assay with the same codes and the same reducer, and reduce
   the annotation table so a group keeps a value only where all of its
   members agree.

Keeping this in one place guarantees that all assays of an aggregated
container are consistent with each other.
"""

from __future__ import annotations

import logging
from typing import Callable, Hashable, Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.errors import EmptyGroupError, InvalidParameterError
from taxomatrix.core.taxonomy import make_unique

logger = logging.getLogger(__name__)

__all__ = [
    'REDUCERS',
    'resolve_reducer',
    'assign_codes',
    'reduce_matrix',
    'reduce_annotations',
    'aggregate_rows',
    'aggregate_cols',
]

REDUCERS: dict[str, Callable[..., np.ndarray]] = {
    "sum": np.sum,
    "mean": np.mean,
    "median": np.median,
    "max": np.max,
    "min": np.min,
}


def resolve_reducer(reducer: str) -> str:
    if reducer not in REDUCERS:
        raise InvalidParameterError(
            "reducer", reducer, f"Unknown reducer: {reducer!r}. Must be one of {list(REDUCERS)}"
        )
    return reducer


def assign_codes(keys: Iterable[Optional[Hashable]]) -> tuple[np.ndarray, list]:
    """
    Number distinct keys in order of first appearance.

    ``None`` keys get code -1 (dropped).

    Returns:
        (codes, distinct keys in code order)
    """
    lookup: dict = {}
    codes = []
    for key in keys:
        if key is None:
            codes.append(-1)
            continue
        if key not in lookup:
            lookup[key] = len(lookup)
        codes.append(lookup[key])
    return np.asarray(codes, dtype=int), list(lookup)


def reduce_matrix(x: np.ndarray, codes: np.ndarray, n_groups: int, reducer: str) -> np.ndarray:
    """
    Reduce rows of ``x`` that share a code.

    Rows with code -1 are ignored. Output row ``g`` holds group ``g``.

    Raises:
        EmptyGroupError: If some group in ``range(n_groups)`` has no member
    """
    members = np.bincount(codes[codes >= 0], minlength=n_groups) if codes.size else np.zeros(n_groups, int)
    empty = np.flatnonzero(members[:n_groups] == 0)
    if empty.size:
        raise EmptyGroupError(
            f"{empty.size} group(s) have no members (codes {empty[:5].tolist()})"
        )

    x = np.asarray(x)
    if x.dtype.kind == "b":
        x = x.astype(int)
    dtype = float if reducer in ("mean", "median") or x.dtype.kind not in "iu" else x.dtype
    out = np.zeros((n_groups, x.shape[1]), dtype=dtype)
    keep = codes >= 0
    if reducer == "sum":
        np.add.at(out, codes[keep], x[keep])
        return out

    func = REDUCERS[reducer]
    for g in range(n_groups):
        out[g] = func(x[codes == g], axis=0)
    return out


def _shared_value(values: pd.Series):
    """The members' common value, or None when they disagree or any is missing."""
    if values.isna().any():
        return None
    distinct = values.unique()
    return distinct[0] if len(distinct) == 1 else None


def reduce_annotations(
    frame: pd.DataFrame,
    codes: np.ndarray,
    names: Sequence[Hashable],
) -> pd.DataFrame:
    """Collapse annotation rows per group, keeping only agreed values."""
    keep = codes >= 0
    index = pd.Index(names)
    if len(frame.columns) == 0:
        return pd.DataFrame(index=index)

    kept = frame.loc[keep].reset_index(drop=True)
    reduced = kept.groupby(codes[keep], sort=True).agg(_shared_value)
    reduced = reduced.reindex(range(len(names)))
    reduced.index = index
    for column in frame.columns:
        if frame[column].dtype == object or isinstance(frame[column].dtype, pd.CategoricalDtype):
            reduced[column] = reduced[column].astype(object).where(reduced[column].notna(), None)
    return reduced[list(frame.columns)]


def aggregate_rows(
    container: TaxoMatrix,
    codes: np.ndarray,
    names: Sequence[Hashable],
    reducer: str = "sum",
    clear_columns: Sequence[str] = (),
    clear_rows: Sequence[Hashable] = (),
) -> TaxoMatrix:
    """
    New container whose rows are groups of ``container`` rows.

    Args:
        container: Source container (not modified)
        codes: Group code per row, -1 to drop the row
        names: Identifier of each group, in code order
        reducer: Name of the reducer applied to every assay
        clear_columns: Annotation columns set to missing for every group
        clear_rows: Groups whose annotations are all set to missing

    Raises:
        EmptyGroupError: If no group survives or a group has no member
    """
    resolve_reducer(reducer)
    n_groups = len(names)
    if n_groups == 0:
        raise EmptyGroupError("aggregation produced no groups (every row was dropped)")
    names = make_unique([str(n) for n in names])

    assays = {
        name: reduce_matrix(values, codes, n_groups, reducer)
        for name, values in container.assays.items()
    }
    row_data = reduce_annotations(container.row_data, codes, names)
    for column in clear_columns:
        row_data[column] = pd.Series([None] * n_groups, index=row_data.index, dtype=object)
    if len(row_data.columns):
        for name in clear_rows:
            row_data.loc[name] = None

    result = TaxoMatrix(
        assays=assays,
        row_data=row_data,
        col_data=container.col_data,
        col_tree=container.col_tree,
    )
    for alt_name in container.alt_exp_names:
        result.add_alt_exp(alt_name, container.alt_exp(alt_name).copy(deep=False), col_indices=container.alt_col_map(alt_name))

    n_dropped = int(np.sum(codes < 0))
    logger.info(
        f"Aggregated {container.n_rows} rows into {n_groups} groups with '{reducer}'"
        + (f" ({n_dropped} rows dropped)" if n_dropped else "")
    )
    return result


def aggregate_cols(
    container: TaxoMatrix,
    codes: np.ndarray,
    names: Sequence[Hashable],
    reducer: str = "sum",
) -> TaxoMatrix:
    """
    New container whose columns are groups of ``container`` columns.

    Alternates and the column tree cannot follow a merged column axis and
    are dropped with a warning.
    """
    resolve_reducer(reducer)
    n_groups = len(names)
    if n_groups == 0:
        raise EmptyGroupError("aggregation produced no groups (every column was dropped)")
    names = make_unique([str(n) for n in names])

    assays = {
        name: reduce_matrix(values.T, codes, n_groups, reducer).T
        for name, values in container.assays.items()
    }
    col_data = reduce_annotations(container.col_data, codes, names)

    if container.alt_exp_names:
        logger.warning(
            f"Dropping alternate experiments {container.alt_exp_names}: "
            "their columns cannot be aligned to aggregated columns"
        )
    if container.col_tree is not None:
        logger.warning("Dropping column tree: its leaves no longer match aggregated columns")

    logger.info(f"Aggregated {container.n_cols} columns into {n_groups} groups with '{reducer}'")
    return TaxoMatrix(
        assays=assays,
        row_data=container.row_data,
        col_data=col_data,
        row_tree=container.row_tree,
    )
