"""
Taxonomy-aware aggregation.

Collapses features to a taxonomic rank (``agglomerate_by_rank``), keeps
only prevalent groups and pools everything else into an "Other" bucket
(``agglomerate_by_prevalence``), or builds one aggregated view per rank
(``split_by_ranks``).

Missing rank values:
    A feature without a value at the requested rank cannot be placed in a
    group by that rank. ``drop_missing=True`` (the default for every entry
    point in this module) removes such features; ``drop_missing=False``
    pools all of them into a single group named ``"NA"``. Missing values
    at coarser ranks are not an error: they simply become part of the
    grouping key.

Examples:
    >>> from taxomatrix.agglomeration import agglomerate_by_rank
    >>> genus = agglomerate_by_rank(tse, "genus")
    >>> genus.row_ids[:3].tolist()
    ['Blautia', 'Bacteroides', 'Faecalibacterium']
    >>> with_na = agglomerate_by_rank(tse, "genus", drop_missing=False)
    >>> 'NA' in with_na.row_ids
    True
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

import numpy as np

from taxomatrix.agglomeration._grouping import aggregate_rows, assign_codes, resolve_reducer
from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.errors import InvalidParameterError
from taxomatrix.core.taxonomy import make_unique, resolve_rank
from taxomatrix.core.tree import Tree
from taxomatrix.stats.prevalence import prevalence_counts, validate_thresholds

logger = logging.getLogger(__name__)

__all__ = [
    'MISSING_GROUP',
    'agglomerate_by_rank',
    'agglomerate_by_prevalence',
    'split_by_ranks',
    'add_split_by_ranks',
]

MISSING_GROUP = "NA"
_MISSING_KEY = ("__missing__",)


def _require_rank(container: TaxoMatrix, rank: str) -> str:
    canonical = resolve_rank(rank)
    if not container.taxonomy.has_taxonomy:
        raise InvalidParameterError(
            "rank", rank, "Container has no taxonomy columns in its row annotations"
        )
    container.taxonomy.column_for(canonical)
    return canonical


def agglomerate_by_rank(
    container: TaxoMatrix,
    rank: str,
    *,
    drop_missing: bool = True,
    on_rank_only: bool = False,
    reducer: str = "sum",
    update_tree: bool = False,
) -> TaxoMatrix:
    """
    Aggregate features to a taxonomic rank.

    Features are grouped by their taxonomic path from the coarsest present
    rank down to ``rank``, so two genera that share a name but sit in
    different families stay apart (``on_rank_only=True`` groups by the
    rank value alone). Groups are named after their value at ``rank``,
    suffixed ``_1``, ``_2``... where names repeat.

    Args:
        container: Source container (not modified)
        rank: One of the reserved rank names present in row annotations
        drop_missing: Drop features missing ``rank`` (default) or pool them
            into one ``"NA"`` group
        on_rank_only: Group by the value at ``rank`` only
        reducer: ``sum`` (default), ``mean``, ``median``, ``max`` or ``min``,
            applied to every assay
        update_tree: Project the row tree onto the groups: one
            representative leaf (the first member found in the tree) per
            group, pruned and renamed. The projection is marked
            ``kind="hierarchy"``: it is not a phylogeny of the groups.
            Without it the row tree is dropped.

    Returns:
        New container with one row per group. Row annotations keep values
        shared by all members; ranks finer than ``rank`` are missing.
        Alternates and column annotations are carried over unchanged.

    Raises:
        InvalidParameterError: Unknown rank, rank not present, bad reducer
        EmptyGroupError: Every feature was dropped

    Examples:
        >>> phylum = agglomerate_by_rank(tse, "Phylum")
        >>> np.allclose(phylum.assay("counts").sum(axis=0), tse.assay("counts").sum(axis=0))
        True
    """
    canonical = _require_rank(container, rank)
    resolve_reducer(reducer)
    schema = container.taxonomy
    column = schema.column_for(canonical)
    key_columns = [column] if on_rank_only else schema.columns_up_to(canonical)

    row_data = container.row_data
    keys = []
    for values in row_data[key_columns].itertuples(index=False, name=None):
        if not isinstance(values[-1], str):
            keys.append(None if drop_missing else _MISSING_KEY)
        else:
            keys.append(tuple(v if isinstance(v, str) else None for v in values))

    codes, distinct = assign_codes(keys)
    names = make_unique([MISSING_GROUP if key == _MISSING_KEY else key[-1] for key in distinct])

    result = aggregate_rows(
        container,
        codes,
        names,
        reducer=reducer,
        clear_columns=schema.columns_below(canonical),
    )

    if update_tree:
        if container.row_tree is None:
            logger.info("update_tree requested but the container has no row tree")
        else:
            result.set_row_tree(_project_tree(container, codes, names))

    logger.info(f"Agglomerated {container.n_rows} features to {len(names)} {canonical}-level groups")
    return result


def _project_tree(container: TaxoMatrix, codes: np.ndarray, names: list[str]):
    """Prune the row tree to one representative leaf per group and rename it."""
    tree = container.row_tree
    in_tree = set(tree.leaves)
    representatives: dict = {}
    for row_id, code in zip(container.row_ids, codes):
        if code >= 0 and code not in representatives and row_id in in_tree:
            representatives[code] = row_id
    if not representatives:
        logger.info("No group has a member in the row tree; tree dropped")
        return None

    pruned = tree.prune(representatives.values())
    rename = {leaf: names[code] for code, leaf in representatives.items()}
    taken = set(pruned.graph.nodes) - set(rename)
    if any(name in taken for name in rename.values()):
        # internal node names may collide with group names
        pruned = pruned.relabel({node: f"node:{node}" for node in taken})
    projected = pruned.relabel(rename)
    return Tree(projected.graph, kind="hierarchy")


def agglomerate_by_prevalence(
    container: TaxoMatrix,
    rank: Optional[str] = None,
    *,
    assay_name: str = "counts",
    detection: float = 0.0,
    prevalence: float = 0.0,
    as_relative: bool = True,
    include_lowest: bool = False,
    other_label: str = "Other",
    drop_missing: bool = True,
    reducer: str = "sum",
) -> TaxoMatrix:
    """
    Keep prevalent features (or rank groups) and pool the rest as "Other".

    Args:
        container: Source container (not modified)
        rank: Aggregate to this rank first (None = use features as they are)
        assay_name: Assay used to compute prevalence
        detection: Detection threshold (relative abundance when
            ``as_relative``)
        prevalence: Minimum fraction of samples; groups must exceed it
            (or reach it with ``include_lowest``)
        other_label: Name of the pooled row
        drop_missing: Passed to ``agglomerate_by_rank``
        reducer: Reducer used for the rank aggregation; the "Other" row is
            always a sum

    Returns:
        New container; the "Other" row has all annotations missing and is
        only present when at least one group fails the thresholds

    Raises:
        InvalidParameterError: Bad thresholds or an ``other_label`` that
            collides with a kept group
    """
    validate_thresholds(detection, as_relative, prevalence)
    source = (
        agglomerate_by_rank(container, rank, drop_missing=drop_missing, reducer=reducer)
        if rank is not None else container
    )

    counts = prevalence_counts(source.assay(assay_name), detection, as_relative, include_lowest)
    fraction = counts / source.n_cols if source.n_cols else np.zeros(len(counts))
    keep = fraction >= prevalence if include_lowest else fraction > prevalence

    if keep.all():
        logger.info("All groups pass prevalence thresholds; nothing pooled")
        return source if rank is not None else source.copy(deep=False)

    kept_ids = list(source.row_ids[keep])
    if other_label in kept_ids:
        raise InvalidParameterError(
            "other_label", other_label,
            f"other_label '{other_label}' collides with an existing feature name"
        )

    codes = np.where(keep, np.cumsum(keep) - 1, len(kept_ids)).astype(int)
    names = [str(i) for i in kept_ids] + [other_label]
    result = aggregate_rows(source, codes, names, reducer="sum", clear_rows=[other_label])
    logger.info(f"Pooled {int((~keep).sum())} non-prevalent groups into '{other_label}'")
    return result


def split_by_ranks(
    container: TaxoMatrix,
    ranks: Optional[Iterable[str]] = None,
    *,
    drop_missing: bool = True,
    reducer: str = "sum",
) -> dict[str, TaxoMatrix]:
    """
    One aggregated container per rank.

    Args:
        ranks: Ranks to build (default: every rank present, coarse to fine)

    Returns:
        Mapping of canonical rank name to aggregated container
    """
    if ranks is None:
        ranks = container.taxonomy.ranks_present
    result: dict[str, TaxoMatrix] = {}
    for rank in ranks:
        canonical = _require_rank(container, rank)
        result[canonical] = agglomerate_by_rank(
            container, canonical, drop_missing=drop_missing, reducer=reducer
        )
    return result


def add_split_by_ranks(
    container: TaxoMatrix,
    ranks: Optional[Iterable[str]] = None,
    *,
    drop_missing: bool = True,
    reducer: str = "sum",
    overwrite: bool = False,
) -> TaxoMatrix:
    """Store ``split_by_ranks`` results as alternates named by rank; returns ``container``."""
    for rank, alt in split_by_ranks(container, ranks, drop_missing=drop_missing, reducer=reducer).items():
        container.add_alt_exp(rank, alt, overwrite=overwrite)
    return container
