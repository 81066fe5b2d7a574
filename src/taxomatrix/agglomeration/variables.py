"""
Aggregation by arbitrary grouping variables and cluster labels.

Rows can be grouped by any feature annotation (or an external label
vector), columns by any sample annotation, e.g. to pool technical
replicates or sum samples per subject.
"""

from __future__ import annotations

import logging
from typing import Hashable, Sequence, Union

import numpy as np
import pandas as pd

from taxomatrix.agglomeration._grouping import (
    aggregate_cols,
    aggregate_rows,
    assign_codes,
    resolve_reducer,
)
from taxomatrix.agglomeration.ranks import MISSING_GROUP
from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.errors import InvalidParameterError, ShapeMismatchError

logger = logging.getLogger(__name__)

__all__ = ['agglomerate_by_variable', 'agglomerate_by_cluster']

GroupSpec = Union[str, Sequence[Hashable], pd.Series, np.ndarray]

_BY_ALIASES = {"rows": "rows", "features": "rows", "cols": "cols", "samples": "cols"}


def _group_labels(container: TaxoMatrix, by: str, group: GroupSpec) -> list:
    frame = container.row_data if by == "rows" else container.col_data
    n = container.n_rows if by == "rows" else container.n_cols

    if isinstance(group, str):
        if group not in frame.columns:
            raise InvalidParameterError(
                "group", group,
                f"'{group}' is not a {'row' if by == 'rows' else 'column'} annotation "
                f"(available: {list(frame.columns)})"
            )
        return list(frame[group])

    if isinstance(group, pd.Series) and not group.index.equals(frame.index):
        if set(group.index) == set(frame.index):
            group = group.loc[frame.index]
    labels = list(group)
    if len(labels) != n:
        raise ShapeMismatchError(f"group has {len(labels)} labels, expected {n}")
    return labels


def agglomerate_by_variable(
    container: TaxoMatrix,
    by: str,
    group: GroupSpec,
    *,
    drop_missing: bool = True,
    reducer: str = "sum",
) -> TaxoMatrix:
    """
    Aggregate rows or columns sharing a group label.

    Args:
        container: Source container (not modified)
        by: ``"rows"``/``"features"`` or ``"cols"``/``"samples"``
        group: Annotation column name, or one label per row/column
        drop_missing: Drop members with a missing label (default) or pool
            them into one ``"NA"`` group
        reducer: ``sum`` (default), ``mean``, ``median``, ``max`` or ``min``

    Returns:
        New container with one row (or column) per distinct label, in order
        of first appearance. Row aggregation drops the row tree; column
        aggregation drops alternates and the column tree.

    Raises:
        InvalidParameterError: Unknown axis, annotation or reducer
        ShapeMismatchError: Label vector of the wrong length
        EmptyGroupError: Every member was dropped

    Examples:
        >>> per_subject = agglomerate_by_variable(tse, "cols", "subject_id")
        >>> per_module = agglomerate_by_variable(tse, "rows", module_labels, reducer="mean")
    """
    if not isinstance(by, str) or by.lower() not in _BY_ALIASES:
        raise InvalidParameterError("by", by, f"by must be one of {sorted(_BY_ALIASES)}, got {by!r}")
    by = _BY_ALIASES[by.lower()]
    resolve_reducer(reducer)

    keys = []
    for label in _group_labels(container, by, group):
        if label is None or (not isinstance(label, str) and pd.isna(label)):
            keys.append(None if drop_missing else (MISSING_GROUP,))
        else:
            keys.append(label)

    codes, distinct = assign_codes(keys)
    names = [MISSING_GROUP if key == (MISSING_GROUP,) else key for key in distinct]

    if by == "rows":
        if container.row_tree is not None:
            logger.info("Row tree dropped: aggregated rows are not tree leaves")
        return aggregate_rows(container, codes, names, reducer=reducer)
    return aggregate_cols(container, codes, names, reducer=reducer)


def agglomerate_by_cluster(
    container: TaxoMatrix,
    clusters: GroupSpec = "cluster",
    *,
    drop_missing: bool = True,
    reducer: str = "sum",
) -> TaxoMatrix:
    """
    Aggregate features by cluster membership.

    Args:
        clusters: Row annotation holding cluster labels (as added by
            ``taxomatrix.stats.clustering.cluster_features``) or a label
            vector with one entry per feature

    Examples:
        >>> cluster_features(tse, "clr", n_clusters=5)
        >>> modules = agglomerate_by_cluster(tse, "cluster")
        >>> modules.n_rows
        5
    """
    return agglomerate_by_variable(
        container, "rows", clusters, drop_missing=drop_missing, reducer=reducer
    )
