"""
CSV writer for abundance containers.

Writes every part of a ``TaxoMatrix`` next to a common prefix so the
container can be reloaded with ``load_container`` or opened in R/Excel.

Output files for prefix ``out``:
    out.<assay>.csv        one per assay (features x samples)
    out.row_data.csv       feature annotations (taxonomy)
    out.col_data.csv       sample annotations
    out.row_tree.csv       row tree edge list (parent, child, length)
    out.row_tree.nwk       the same tree in Newick
    out.col_tree.csv/.nwk  column tree, when present
    out.alt.<name>.*       each alternate experiment, recursively

Examples:
    >>> from taxomatrix.io.writers import write_container
    >>> written = write_container(tse, "results/gut")
    >>> [p.name for p in written][:2]
    ['gut.counts.csv', 'gut.row_data.csv']
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.tree import Tree
from taxomatrix.utils.fileio import atomic_write_csv, atomic_write_text

logger = logging.getLogger(__name__)

__all__ = ['write_container']


def _suffixed(prefix: Path, suffix: str) -> Path:
    return Path(str(prefix) + suffix)


def _write_tree(tree: Optional[Tree], prefix: Path, label: str) -> list[Path]:
    if tree is None:
        return []
    edge_path = _suffixed(prefix, f".{label}.csv")
    newick_path = _suffixed(prefix, f".{label}.nwk")
    atomic_write_csv(edge_path, tree.to_edge_frame(), index=False)
    atomic_write_text(newick_path, tree.to_newick() + "\n")
    return [edge_path, newick_path]


def write_container(container: TaxoMatrix, prefix: Path | str) -> list[Path]:
    """
    Write a container to CSV (and Newick) files sharing ``prefix``.

    Args:
        container: Container to write
        prefix: Base path without extension, e.g. ``Path("output/gut")``

    Returns:
        Paths of all files written, assays first

    Raises:
        TypeError: If container is not a TaxoMatrix
        OSError: If a file cannot be written

    Notes:
        - Creates parent directories if they don't exist
        - Overwrites existing files
        - Every file is written atomically
    """
    if not isinstance(container, TaxoMatrix):
        raise TypeError(f"container must be TaxoMatrix, got {type(container)}")

    if not isinstance(prefix, Path):
        prefix = Path(prefix)

    if prefix.parent != Path('.') and not prefix.parent.exists():
        prefix.parent.mkdir(parents=True, exist_ok=True)

    written: list[Path] = []
    for name in container.assay_names:
        path = _suffixed(prefix, f".{name}.csv")
        atomic_write_csv(path, container.assay_frame(name))
        written.append(path)

    row_path = _suffixed(prefix, ".row_data.csv")
    atomic_write_csv(row_path, container.row_data.rename_axis("feature_id"))
    written.append(row_path)

    col_path = _suffixed(prefix, ".col_data.csv")
    atomic_write_csv(col_path, container.col_data.rename_axis("sample_id"))
    written.append(col_path)

    written.extend(_write_tree(container.row_tree, prefix, "row_tree"))
    written.extend(_write_tree(container.col_tree, prefix, "col_tree"))

    for name in container.alt_exp_names:
        written.extend(write_container(container.alt_exp(name), _suffixed(prefix, f".alt.{name}")))

    logger.info(f"Wrote {len(written)} files for {container.n_rows} x {container.n_cols} container to {prefix}")
    return written
