"""
CSV loader for abundance containers.

Reads a feature-by-sample count table and its optional companions (feature
taxonomy, sample annotations, a feature tree) into a ``TaxoMatrix``.

Expected files:
    assay      first column = feature ids, header = sample ids, numeric cells
    row_data   first column = feature ids, one column per annotation
               (Kingdom, Phylum, ..., Species are detected as taxonomy)
    col_data   first column = sample ids, one column per annotation
    row_tree   edge list with ``parent``, ``child`` and optional ``length``
               columns; leaves are feature ids

Engineering Design:
    - Recoverable problems (duplicate ids, missing values, annotations for
      unknown ids) warn and continue
    - Structural problems (non-numeric cells, infinite values, features
      without annotations) raise with the offending entries named
    - Identifiers are always read as strings so "001" stays "001"

Examples:
    >>> from taxomatrix.io.loaders import load_container
    >>> tse = load_container("counts.csv", row_data_path="taxonomy.csv",
    ...                      col_data_path="samples.csv")
    >>> tse.taxonomy.ranks_present
    ('kingdom', 'phylum', 'class', 'order', 'family', 'genus')
"""

from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.errors import AxisAlignmentError
from taxomatrix.core.tree import Tree

logger = logging.getLogger(__name__)

__all__ = ['load_container', 'load_assay', 'load_annotations', 'load_tree']


def _check_file(path: Path | str, what: str) -> Path:
    if not isinstance(path, Path):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"{what} file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")
    return path


def _read_csv(path: Path, what: str, index_col: Optional[int] = None, **kwargs) -> pd.DataFrame:
    try:
        df = pd.read_csv(path, index_col=index_col, **kwargs)
        if index_col is not None:
            # identifiers verbatim: "001" stays "001" and "NA" is a name, not a missing value
            ids = pd.read_csv(path, usecols=[index_col], dtype=str, keep_default_na=False).iloc[:, 0]
            df.index = pd.Index(ids.to_numpy(), name=df.index.name)
        return df
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"{what} file is empty: {path}") from e
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise ValueError(f"Failed to read {what} file {path}: {e}") from e


def _drop_duplicate_ids(df: pd.DataFrame, what: str) -> pd.DataFrame:
    if df.index.duplicated().any():
        n_duplicates = df.index.duplicated().sum()
        warnings.warn(
            f"Found {n_duplicates} duplicate {what} IDs. "
            "Using first occurrence of each.",
            UserWarning
        )
        df = df[~df.index.duplicated(keep='first')]
    return df


def load_assay(path: Path | str) -> pd.DataFrame:
    """
    Load a feature-by-sample abundance table.

    Returns:
        DataFrame of floats indexed by feature id, columns = sample ids

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the table is empty, non-numeric or holds infinities
    """
    path = _check_file(path, "Assay")
    df = _read_csv(path, "Assay", index_col=0)

    if df.shape[0] == 0:
        raise ValueError(f"Assay contains no features (rows): {path}")
    if df.shape[1] == 0:
        raise ValueError(f"Assay contains no samples (columns): {path}")

    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)
    df = _drop_duplicate_ids(df, "feature")

    if df.columns.duplicated().any():
        n_duplicates = df.columns.duplicated().sum()
        warnings.warn(
            f"Found {n_duplicates} duplicate sample IDs. "
            "Using first occurrence of each.",
            UserWarning
        )
        df = df.loc[:, ~df.columns.duplicated(keep='first')]

    try:
        data = df.to_numpy(dtype=float)
    except ValueError as e:
        non_numeric = []
        for i, row in enumerate(df.to_numpy()):
            for j, val in enumerate(row):
                try:
                    float(val)
                except (ValueError, TypeError):
                    non_numeric.append(f"row {i} ('{df.index[i]}'), col {j} ('{df.columns[j]}'): {val}")
                    if len(non_numeric) >= 5:
                        break
            if len(non_numeric) >= 5:
                break

        raise ValueError(
            "Assay contains non-numeric values:\n" +
            "\n".join(f"  - {x}" for x in non_numeric) +
            ("\n  ..." if len(non_numeric) >= 5 else "")
        ) from e

    if np.isnan(data).any():
        n_nan = int(np.isnan(data).sum())
        warnings.warn(
            f"Found {n_nan:,} missing values ({100 * n_nan / data.size:.2f}% of data). "
            "They are never counted as detected.",
            UserWarning
        )

    if np.isinf(data).any():
        n_inf = int(np.isinf(data).sum())
        raise ValueError(
            f"Assay contains {n_inf} infinite values. "
            "Please clean data before loading."
        )

    return pd.DataFrame(data, index=df.index, columns=df.columns)


def load_annotations(path: Path | str, ids: pd.Index, what: str = "feature") -> pd.DataFrame:
    """
    Load an annotation table and align it to ``ids``.

    Rows for identifiers not in ``ids`` are dropped with a warning; the
    result follows the order of ``ids``.

    Raises:
        AxisAlignmentError: If some identifiers have no annotation row
    """
    path = _check_file(path, f"{what.capitalize()} annotation")
    df = _read_csv(path, f"{what} annotation", index_col=0)
    df.index = df.index.astype(str)
    df = _drop_duplicate_ids(df, what)

    missing = ids.difference(df.index)
    if len(missing) > 0:
        raise AxisAlignmentError(
            f"{len(missing)} {what} IDs have no annotation row in {path}: {list(missing[:5])}"
        )
    extra = df.index.difference(ids)
    if len(extra) > 0:
        warnings.warn(
            f"Dropping {len(extra)} annotation rows for unknown {what} IDs: {list(extra[:5])}",
            UserWarning
        )
    return df.loc[ids]


def load_tree(path: Path | str, kind: str = "phylogeny") -> Tree:
    """
    Load a tree from a ``parent,child[,length]`` edge list.

    Raises:
        ValueError: If the required columns are absent
        InvalidParameterError: If the edges do not form a rooted tree
    """
    path = _check_file(path, "Tree")
    edges = _read_csv(path, "Tree", dtype={"parent": str, "child": str})
    required = {"parent", "child"}
    if not required.issubset(edges.columns):
        raise ValueError(
            f"Tree file {path} must have columns {sorted(required)}, got {list(edges.columns)}"
        )
    if "length" in edges.columns:
        records = edges[["parent", "child", "length"]].itertuples(index=False, name=None)
    else:
        records = edges[["parent", "child"]].itertuples(index=False, name=None)
    return Tree.from_edges(records, kind=kind)


def load_container(
    assay_path: Path | str,
    row_data_path: Optional[Path | str] = None,
    col_data_path: Optional[Path | str] = None,
    row_tree_path: Optional[Path | str] = None,
    assay_name: str = "counts",
) -> TaxoMatrix:
    """
    Load an abundance table and its companions into a container.

    Args:
        assay_path: Feature-by-sample CSV
        row_data_path: Feature annotations (taxonomy) CSV
        col_data_path: Sample annotations CSV
        row_tree_path: Feature tree edge list CSV
        assay_name: Name given to the loaded assay

    Returns:
        TaxoMatrix with a single assay

    Raises:
        FileNotFoundError: If a given path does not exist
        ValueError: If a file is malformed
        AxisAlignmentError: If annotations or tree leaves do not match ids
        TaxonomySchemaError: If taxonomy columns are out of rank order
    """
    assay = load_assay(assay_path)
    row_data = None
    col_data = None
    row_tree = None

    if row_data_path is not None:
        row_data = load_annotations(row_data_path, assay.index, "feature")
    if col_data_path is not None:
        col_data = load_annotations(col_data_path, assay.columns, "sample")
    if row_tree_path is not None:
        row_tree = load_tree(row_tree_path)

    container = TaxoMatrix(
        {assay_name: assay},
        row_data=row_data,
        col_data=col_data,
        row_tree=row_tree,
    )
    logger.info(
        f"Loaded {container.n_rows:,} features x {container.n_cols:,} samples "
        f"from {assay_path} (taxonomy ranks: {list(container.taxonomy.ranks_present)})"
    )
    return container
