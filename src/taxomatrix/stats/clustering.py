"""
Hierarchical clustering of features into cluster labels.

Produces the membership vector consumed by ``agglomerate_by_cluster``.
Distances come from ``scipy.spatial.distance.pdist`` and the tree from
``scipy.cluster.hierarchy.linkage``; the tree is cut either into a fixed
number of clusters or at a height.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import fcluster, linkage
from scipy.spatial.distance import pdist

from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.errors import InvalidParameterError

logger = logging.getLogger(__name__)

__all__ = ['LINKAGE_METHODS', 'cluster_labels', 'cluster_features']

LINKAGE_METHODS = ("single", "complete", "average", "weighted", "centroid", "median", "ward")


def cluster_labels(
    x: np.ndarray,
    metric: str = "euclidean",
    method: str = "complete",
    n_clusters: Optional[int] = None,
    height: Optional[float] = None,
) -> np.ndarray:
    """
    Cluster the rows of ``x``.

    Args:
        x: 2D array, one observation per row
        metric: Any metric accepted by ``scipy.spatial.distance.pdist``
            (``braycurtis``, ``correlation``, ``jaccard``...)
        method: Linkage method
        n_clusters: Cut into this many clusters
        height: Cut at this height (exactly one of n_clusters/height)

    Returns:
        Integer labels starting at 1
    """
    if (n_clusters is None) == (height is None):
        raise InvalidParameterError(
            "n_clusters", n_clusters, "Give exactly one of n_clusters or height"
        )
    if method not in LINKAGE_METHODS:
        raise InvalidParameterError(
            "method", method, f"Unknown linkage method {method!r}. Must be one of {list(LINKAGE_METHODS)}"
        )
    x = np.asarray(x, dtype=float)
    if x.shape[0] < 2:
        raise InvalidParameterError("x", x.shape, "Need at least two rows to cluster")
    if n_clusters is not None and not 1 <= n_clusters <= x.shape[0]:
        raise InvalidParameterError(
            "n_clusters", n_clusters, f"n_clusters must lie in [1, {x.shape[0]}], got {n_clusters}"
        )

    if method in ("centroid", "median", "ward"):
        if metric != "euclidean":
            raise InvalidParameterError(
                "metric", metric, f"'{method}' linkage is only defined for euclidean distance"
            )
        tree = linkage(x, method=method)
    else:
        try:
            distances = pdist(x, metric=metric)
        except ValueError as e:
            raise InvalidParameterError("metric", metric, f"Unknown distance metric {metric!r}: {e}") from e
        tree = linkage(distances, method=method)

    if n_clusters is not None:
        return fcluster(tree, t=n_clusters, criterion="maxclust")
    return fcluster(tree, t=height, criterion="distance")


def cluster_features(
    container: TaxoMatrix,
    assay_name: str = "counts",
    *,
    metric: str = "euclidean",
    method: str = "complete",
    n_clusters: Optional[int] = None,
    height: Optional[float] = None,
    name: str = "cluster",
    overwrite: bool = False,
) -> pd.Series:
    """
    Cluster features on an assay and store labels as a row annotation.

    Sanctioned mutation: adds (or, with ``overwrite``, replaces) the row
    annotation ``name``.

    Returns:
        Series of cluster labels (strings) indexed by feature identifier

    Examples:
        >>> transform_assay(tse, "counts", "clr", pseudocount=1)
        >>> labels = cluster_features(tse, "clr", metric="correlation",
        ...                           method="average", n_clusters=4)
        >>> tse.row_data["cluster"].nunique()
        4
    """
    labels = cluster_labels(
        container.assay(assay_name),
        metric=metric,
        method=method,
        n_clusters=n_clusters,
        height=height,
    )
    result = pd.Series([str(label) for label in labels], index=container.row_ids, name=name)
    container.add_row_annotation(name, result, overwrite=overwrite)
    logger.info(
        f"Clustered {container.n_rows} features into {result.nunique()} clusters "
        f"({method} linkage, {metric} distance)"
    )
    return result
