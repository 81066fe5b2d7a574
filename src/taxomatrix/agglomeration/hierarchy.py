"""
Hierarchy trees derived from taxonomy tables.

A hierarchy tree records how taxonomy ranks nest, e.g. which genera belong
to which family, using nothing but the row annotations. It has no branch
lengths and is not a phylogeny: two species in one genus are siblings here
whether or not they are each other's closest relatives.

Construction:
    - a synthetic root node ``"root"``
    - one internal node per distinct (rank, value), named ``"<rank>:<value>"``
    - one leaf per row, named by the row identifier, attached under the
      row's most specific known taxon

    Walking a row's ranks from coarse to fine, missing values are skipped
    and the next known rank hangs directly under the last known one. When
    the same (rank, value) shows up under different parents, the first
    parent seen wins and later rows reuse the existing node.

Examples:
    >>> from taxomatrix.agglomeration.hierarchy import build_hierarchy_tree
    >>> tree = build_hierarchy_tree(tse)
    >>> tree.kind
    'hierarchy'
    >>> set(tree.leaves) <= set(tse.row_ids)
    True
"""

from __future__ import annotations

import logging
from typing import Literal

import networkx as nx

from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.errors import InvalidParameterError
from taxomatrix.core.tree import Tree

logger = logging.getLogger(__name__)

__all__ = ['ROOT_NODE', 'UNKNOWN_NODE', 'build_hierarchy_tree', 'add_hierarchy_tree']

ROOT_NODE = "root"
UNKNOWN_NODE = "unknown"

UnknownPolicy = Literal["drop", "unknown"]


def build_hierarchy_tree(
    container: TaxoMatrix,
    unknown_policy: UnknownPolicy = "drop",
) -> Tree:
    """
    Build a hierarchy tree from the container's taxonomy columns.

    Args:
        container: Container whose row annotations carry taxonomy
        unknown_policy: What to do with rows that have no taxonomy at all:
            ``"drop"`` leaves them out of the tree, ``"unknown"`` attaches
            them under a synthetic ``"unknown"`` node below the root

    Returns:
        Tree with ``kind="hierarchy"`` whose leaves are row identifiers

    Raises:
        InvalidParameterError: Unknown policy, or no taxonomy columns, or no
            row could be placed
    """
    if unknown_policy not in ("drop", "unknown"):
        raise InvalidParameterError(
            "unknown_policy", unknown_policy,
            f"unknown_policy must be 'drop' or 'unknown', got {unknown_policy!r}"
        )
    schema = container.taxonomy
    if not schema.has_taxonomy:
        raise InvalidParameterError(
            "container", container.shape, "Container has no taxonomy columns to build a hierarchy from"
        )

    graph = nx.DiGraph()
    graph.add_node(ROOT_NODE, label=ROOT_NODE)
    taxonomy = container.row_data[list(schema.columns)]
    n_conflicts = 0
    n_unknown = 0

    for row_id, values in zip(container.row_ids, taxonomy.itertuples(index=False, name=None)):
        parent = ROOT_NODE
        for rank, value in zip(schema.ranks_present, values):
            if not isinstance(value, str):
                continue
            node = f"{rank}:{value}"
            if node not in graph:
                graph.add_node(node, label=value, rank=rank)
                graph.add_edge(parent, node)
            elif not graph.has_edge(parent, node):
                n_conflicts += 1
            parent = node

        if parent == ROOT_NODE:
            n_unknown += 1
            if unknown_policy == "drop":
                continue
            if UNKNOWN_NODE not in graph:
                graph.add_node(UNKNOWN_NODE, label=UNKNOWN_NODE)
                graph.add_edge(ROOT_NODE, UNKNOWN_NODE)
            parent = UNKNOWN_NODE

        if row_id in graph:
            raise InvalidParameterError(
                "row_ids", row_id,
                f"Row identifier {row_id!r} collides with a taxon node name"
            )
        graph.add_node(row_id)
        graph.add_edge(parent, row_id)

    # taxa left without rows after a conflicting placement
    row_set = set(container.row_ids)
    dangling = [n for n in graph if n != ROOT_NODE and n not in row_set and graph.out_degree(n) == 0]
    while dangling:
        parents = {p for n in dangling for p in graph.predecessors(n)}
        graph.remove_nodes_from(dangling)
        dangling = [
            p for p in parents
            if p != ROOT_NODE and p not in row_set and graph.out_degree(p) == 0
        ]

    if graph.out_degree(ROOT_NODE) == 0:
        raise InvalidParameterError(
            "container", container.shape, "No row carries any taxonomy value; hierarchy tree is empty"
        )

    if n_conflicts:
        logger.debug(f"{n_conflicts} taxon placements conflicted with an earlier parent; first kept")
    if n_unknown:
        action = "dropped" if unknown_policy == "drop" else f"placed under '{UNKNOWN_NODE}'"
        logger.info(f"{n_unknown} rows without taxonomy {action}")

    return Tree(graph, kind="hierarchy")


def add_hierarchy_tree(
    container: TaxoMatrix,
    unknown_policy: UnknownPolicy = "drop",
    overwrite: bool = False,
) -> TaxoMatrix:
    """
    Set the hierarchy tree as the container's row tree.

    Refuses to replace an existing row tree unless ``overwrite`` is set,
    so a phylogeny is never silently swapped for a taxonomy projection.

    Returns:
        The same container
    """
    if container.row_tree is not None and not overwrite:
        raise InvalidParameterError(
            "overwrite", overwrite,
            f"Container already has a {container.row_tree.kind} row tree; pass overwrite=True to replace it"
        )
    return container.set_row_tree(build_hierarchy_tree(container, unknown_policy))
