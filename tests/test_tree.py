"""Tests for the Tree wrapper."""

import networkx as nx
import pytest

from taxomatrix.core.errors import InvalidParameterError
from taxomatrix.core.tree import Tree


@pytest.fixture
def tree():
    return Tree.from_edges([
        ("root", "a", 1.0),
        ("root", "n1", 0.5),
        ("n1", "b", 0.25),
        ("n1", "c", 0.5),
    ])


class TestTree:

    def test_structure(self, tree):
        assert tree.root == "root"
        assert tree.leaves == ["a", "b", "c"]
        assert tree.n_nodes == 5
        assert tree.kind == "phylogeny"

    def test_rejects_cycles_and_forests(self):
        with pytest.raises(InvalidParameterError):
            Tree.from_edges([("a", "b"), ("b", "a")])
        with pytest.raises(InvalidParameterError):
            Tree.from_edges([("r1", "a"), ("r2", "b")])

    def test_rejects_unknown_kind(self):
        with pytest.raises(InvalidParameterError):
            Tree(nx.DiGraph([("r", "a")]), kind="dendrogram")

    def test_rejects_non_graph(self):
        with pytest.raises(TypeError):
            Tree([("r", "a")])

    def test_from_parent_map(self):
        tree = Tree.from_parent_map({"a": "r", "b": "r"}, kind="hierarchy")
        assert tree.kind == "hierarchy"
        assert sorted(tree.leaves) == ["a", "b"]

    def test_prune_collapses_unary_nodes(self, tree):
        pruned = tree.prune(["a", "b"])
        assert pruned.leaves == ["a", "b"]
        assert "n1" not in pruned.graph
        assert pruned.graph.edges["root", "b"]["length"] == pytest.approx(0.75)

    def test_prune_without_collapse(self, tree):
        pruned = tree.prune(["b"], collapse_singles=False)
        assert "n1" in pruned.graph
        assert pruned.leaves == ["b"]

    def test_prune_nothing_kept(self, tree):
        assert tree.prune(["zzz"]) is None

    def test_prune_leaves_original_untouched(self, tree):
        tree.prune(["a"])
        assert tree.n_nodes == 5

    def test_relabel(self, tree):
        renamed = tree.relabel({"a": "A"})
        assert "A" in renamed.leaves

    def test_relabel_merge_rejected(self, tree):
        with pytest.raises(InvalidParameterError):
            tree.relabel({"a": "b"})

    def test_newick(self, tree):
        assert tree.prune(["a", "b"]).to_newick() == "(a:1.0,b:0.75)root;"
        assert tree.to_newick() == "(a:1.0,(b:0.25,c:0.5)n1:0.5)root;"

    def test_edge_frame(self, tree):
        frame = tree.to_edge_frame()
        assert list(frame.columns) == ["parent", "child", "length"]
        assert len(frame) == 4
