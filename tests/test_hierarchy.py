"""Tests for taxonomy-derived hierarchy trees."""

import numpy as np
import pandas as pd
import pytest

from taxomatrix.agglomeration.hierarchy import (
    ROOT_NODE,
    UNKNOWN_NODE,
    add_hierarchy_tree,
    build_hierarchy_tree,
)
from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.errors import InvalidParameterError
from taxomatrix.core.tree import Tree


@pytest.fixture
def partial():
    row_data = pd.DataFrame({
        "Phylum": ["A", "A", None, None],
        "Genus": ["g1", None, "g2", None],
    }, index=["r1", "r2", "r3", "r4"])
    return TaxoMatrix({"counts": np.ones((4, 2))}, row_data=row_data)


class TestBuildHierarchyTree:

    def test_structure(self, tiny):
        tree = build_hierarchy_tree(tiny)
        graph = tree.graph
        assert tree.kind == "hierarchy"
        assert tree.root == ROOT_NODE
        assert sorted(tree.leaves) == sorted(tiny.row_ids)
        assert graph.has_edge("phylum:A", "genus:g1")
        assert graph.has_edge("genus:g3", "f3") and graph.has_edge("genus:g3", "f4")
        assert graph.nodes["genus:g3"]["label"] == "g3"

    def test_missing_rank_attaches_to_last_known(self, tiny, partial):
        assert build_hierarchy_tree(tiny).graph.has_edge("phylum:C", "f5")
        graph = build_hierarchy_tree(partial).graph
        assert graph.has_edge("phylum:A", "r2")
        assert graph.has_edge(ROOT_NODE, "genus:g2")

    def test_unknown_rows_dropped(self, partial):
        tree = build_hierarchy_tree(partial)
        assert "r4" not in tree.graph
        assert UNKNOWN_NODE not in tree.graph

    def test_unknown_rows_kept(self, partial):
        tree = build_hierarchy_tree(partial, unknown_policy="unknown")
        assert tree.graph.has_edge(UNKNOWN_NODE, "r4")

    def test_bad_policy(self, tiny):
        with pytest.raises(InvalidParameterError) as exc_info:
            build_hierarchy_tree(tiny, unknown_policy="keep")
        assert exc_info.value.parameter == "unknown_policy"

    def test_no_taxonomy(self):
        with pytest.raises(InvalidParameterError):
            build_hierarchy_tree(TaxoMatrix({"counts": np.ones((2, 2))}))

    def test_first_parent_wins(self):
        row_data = pd.DataFrame({
            "Family": ["F1", "F2"],
            "Genus": ["g", "g"],
        }, index=["a", "b"])
        container = TaxoMatrix({"counts": np.ones((2, 1))}, row_data=row_data)
        graph = build_hierarchy_tree(container).graph
        assert list(graph.predecessors("genus:g")) == ["family:F1"]
        assert graph.has_edge("genus:g", "b")
        assert "family:F2" not in graph
        add_hierarchy_tree(container)


class TestAddHierarchyTree:

    def test_sets_row_tree(self, tiny):
        add_hierarchy_tree(tiny)
        assert tiny.row_tree.kind == "hierarchy"

    def test_refuses_to_replace_phylogeny(self, tiny):
        tiny.set_row_tree(Tree.from_edges([("root", "f1"), ("root", "f2")]))
        with pytest.raises(InvalidParameterError):
            add_hierarchy_tree(tiny)
        add_hierarchy_tree(tiny, overwrite=True)
        assert tiny.row_tree.kind == "hierarchy"

    def test_survives_subsetting(self, tiny):
        add_hierarchy_tree(tiny)
        subset = tiny.select_rows(["f1", "f3"])
        assert sorted(subset.row_tree.leaves) == ["f1", "f3"]
        assert subset.row_tree.kind == "hierarchy"
