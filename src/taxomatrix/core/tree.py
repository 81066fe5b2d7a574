"""
Rooted trees over a container axis.

A ``Tree`` wraps a ``networkx.DiGraph`` arborescence (edges point from
parent to child). Leaves are matched to row or column identifiers of the
container holding the tree; internal nodes may carry a ``label`` attribute
and edges an optional ``length``.

Two kinds of tree share this type and must never be confused:

- ``"phylogeny"``: an externally supplied tree built from sequence data,
  usually with branch lengths.
- ``"hierarchy"``: a structural projection of a taxonomy table (see
  ``taxomatrix.agglomeration.hierarchy``). It has no branch lengths and
  carries no evolutionary meaning.

Examples:
    >>> from taxomatrix.core.tree import Tree
    >>> tree = Tree.from_edges([("root", "a", 1.0), ("root", "n1", 0.5),
    ...                         ("n1", "b", 0.25), ("n1", "c", 0.5)])
    >>> sorted(tree.leaves)
    ['a', 'b', 'c']
    >>> tree.prune(["a", "b"]).to_newick()
    '(a:1.0,b:0.75)root;'
"""

from __future__ import annotations

from typing import Hashable, Iterable, Literal, Mapping, Optional

import networkx as nx
import pandas as pd

from taxomatrix.core.errors import InvalidParameterError

__all__ = ['Tree', 'TreeKind']

TreeKind = Literal["phylogeny", "hierarchy"]
_TREE_KINDS = ("phylogeny", "hierarchy")


class Tree:
    """
    Immutable rooted tree.

    Attributes:
        graph: Underlying directed graph (parent -> child)
        kind: ``"phylogeny"`` or ``"hierarchy"``
    """

    def __init__(self, graph: nx.DiGraph, kind: TreeKind = "phylogeny"):
        if not isinstance(graph, nx.DiGraph):
            raise TypeError(f"graph must be networkx.DiGraph, got {type(graph)}")
        if kind not in _TREE_KINDS:
            raise InvalidParameterError(
                "kind", kind, f"Tree kind must be one of {list(_TREE_KINDS)}, got {kind!r}"
            )
        if graph.number_of_nodes() == 0 or not nx.is_arborescence(graph):
            raise InvalidParameterError(
                "graph", graph, "graph must be a non-empty rooted tree (arborescence)"
            )

        self._graph = graph
        self._kind = kind
        self._root = next(n for n, d in graph.in_degree() if d == 0)

    @classmethod
    def from_edges(
        cls,
        edges: Iterable[tuple],
        kind: TreeKind = "phylogeny",
    ) -> Tree:
        """
        Build from ``(parent, child)`` or ``(parent, child, length)`` tuples.
        """
        graph = nx.DiGraph()
        for edge in edges:
            if len(edge) == 3:
                parent, child, length = edge
                if length is None or pd.isna(length):
                    graph.add_edge(parent, child)
                else:
                    graph.add_edge(parent, child, length=float(length))
            elif len(edge) == 2:
                graph.add_edge(*edge)
            else:
                raise InvalidParameterError("edges", edge, f"Malformed edge: {edge!r}")
        return cls(graph, kind=kind)

    @classmethod
    def from_parent_map(
        cls,
        parents: Mapping[Hashable, Hashable],
        kind: TreeKind = "phylogeny",
    ) -> Tree:
        """Build from a ``{child: parent}`` mapping."""
        return cls.from_edges(((p, c) for c, p in parents.items()), kind=kind)

    @property
    def graph(self) -> nx.DiGraph:
        return self._graph

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def root(self) -> Hashable:
        return self._root

    @property
    def n_nodes(self) -> int:
        return self._graph.number_of_nodes()

    @property
    def leaves(self) -> list:
        """Leaf nodes in depth-first order from the root."""
        return [
            n for n in nx.dfs_preorder_nodes(self._graph, self._root)
            if self._graph.out_degree(n) == 0
        ]

    def prune(self, keep: Iterable[Hashable], collapse_singles: bool = True) -> Optional[Tree]:
        """
        Restrict the tree to the paths leading to ``keep`` leaves.

        Unary internal nodes left behind are merged into their child when
        ``collapse_singles`` is set, summing branch lengths. The root is
        kept as is.

        Returns:
            New Tree, or None when no kept leaf is present
        """
        keep = set(keep)
        targets = [leaf for leaf in self.leaves if leaf in keep]
        if not targets:
            return None

        nodes: set = set()
        for leaf in targets:
            nodes.add(leaf)
            nodes.update(nx.ancestors(self._graph, leaf))

        graph = self._graph.subgraph(nodes).copy()

        if collapse_singles:
            for node in list(nx.dfs_postorder_nodes(graph, self._root)):
                if node == self._root or graph.out_degree(node) != 1:
                    continue
                (parent,) = graph.predecessors(node)
                (child,) = graph.successors(node)
                upper = graph.edges[parent, node].get("length")
                lower = graph.edges[node, child].get("length")
                graph.remove_node(node)
                if upper is None and lower is None:
                    graph.add_edge(parent, child)
                else:
                    graph.add_edge(parent, child, length=(upper or 0.0) + (lower or 0.0))

        return Tree(graph, kind=self._kind)

    def relabel(self, mapping: Mapping[Hashable, Hashable]) -> Tree:
        """
        Rename nodes; nodes absent from ``mapping`` keep their names.

        Raises:
            InvalidParameterError: If two nodes would end up with the same name
        """
        names = [mapping.get(n, n) for n in self._graph.nodes]
        if len(set(names)) != len(names):
            raise InvalidParameterError(
                "mapping", dict(mapping), "Relabelling would merge distinct tree nodes"
            )
        return Tree(nx.relabel_nodes(self._graph, dict(mapping), copy=True), kind=self._kind)

    def to_edge_frame(self) -> pd.DataFrame:
        """Edge list with ``parent``, ``child`` and ``length`` columns."""
        rows = [
            {"parent": p, "child": c, "length": d.get("length")}
            for p, c, d in self._graph.edges(data=True)
        ]
        return pd.DataFrame(rows, columns=["parent", "child", "length"])

    def to_newick(self) -> str:
        """Serialize to a Newick string (children in insertion order)."""
        def render(node) -> str:
            children = list(self._graph.successors(node))
            text = str(node)
            if children:
                parts = []
                for child in children:
                    length = self._graph.edges[node, child].get("length")
                    part = render(child)
                    if length is not None:
                        part += f":{length}"
                    parts.append(part)
                text = f"({','.join(parts)}){text}"
            return text

        return render(self._root) + ";"

    def __repr__(self) -> str:
        return f"Tree(kind={self._kind!r}, nodes={self.n_nodes}, leaves={len(self.leaves)})"
