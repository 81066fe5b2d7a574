"""Tests for rank, prevalence, variable and cluster aggregation."""

import numpy as np
import pandas as pd
import pytest

from taxomatrix.agglomeration import (
    MISSING_GROUP,
    add_split_by_ranks,
    agglomerate_by_cluster,
    agglomerate_by_prevalence,
    agglomerate_by_rank,
    agglomerate_by_variable,
    split_by_ranks,
)
from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.errors import (
    EmptyGroupError,
    InvalidParameterError,
    ShapeMismatchError,
)
from taxomatrix.core.tree import Tree


def _rows(container, assay="counts"):
    return {
        row_id: list(values)
        for row_id, values in zip(container.row_ids, container.assay(assay))
    }


class TestAgglomerateByRank:

    def test_phylum_sums(self, tiny):
        phylum = agglomerate_by_rank(tiny, "Phylum")
        assert list(phylum.row_ids) == ["A", "B", "C"]
        assert _rows(phylum) == {"A": [15, 10, 5], "B": [1, 7, 2], "C": [0, 0, 0]}

    def test_input_untouched(self, tiny):
        agglomerate_by_rank(tiny, "Phylum")
        assert tiny.n_rows == 6

    def test_missing_pooled_into_na(self, tiny):
        phylum = agglomerate_by_rank(tiny, "phylum", drop_missing=False)
        assert list(phylum.row_ids) == ["A", "B", "C", MISSING_GROUP]
        assert _rows(phylum)[MISSING_GROUP] == [4, 0, 0]
        np.testing.assert_allclose(
            phylum.assay("counts").sum(axis=0), tiny.assay("counts").sum(axis=0)
        )

    def test_genus_groups(self, tiny):
        genus = agglomerate_by_rank(tiny, "Genus")
        assert list(genus.row_ids) == ["g1", "g2", "g3"]
        assert _rows(genus)["g3"] == [1, 7, 2]

    def test_annotations_keep_agreed_values(self, tiny):
        phylum = agglomerate_by_rank(tiny, "Phylum")
        row_data = phylum.row_data
        assert row_data.loc["A", "source"] == "gut"
        assert row_data.loc["B", "source"] is None
        assert row_data.loc["B", "Kingdom"] == "Bacteria"
        assert row_data["Genus"].isna().all()

    def test_every_assay_reduced_alike(self, tiny):
        tiny.add_assay("double", tiny.assay("counts") * 2)
        phylum = agglomerate_by_rank(tiny, "Phylum")
        np.testing.assert_allclose(phylum.assay("double"), 2 * phylum.assay("counts"))

    def test_mean_reducer(self, tiny):
        phylum = agglomerate_by_rank(tiny, "Phylum", reducer="mean")
        np.testing.assert_allclose(phylum.assay("counts")[0], [7.5, 5.0, 2.5])

    def test_unknown_reducer(self, tiny):
        with pytest.raises(InvalidParameterError) as exc_info:
            agglomerate_by_rank(tiny, "Phylum", reducer="mode")
        assert exc_info.value.parameter == "reducer"

    def test_rank_not_present(self, tiny):
        with pytest.raises(InvalidParameterError):
            agglomerate_by_rank(tiny, "Family")

    def test_no_taxonomy(self):
        container = TaxoMatrix({"counts": np.ones((2, 2))})
        with pytest.raises(InvalidParameterError):
            agglomerate_by_rank(container, "genus")

    def test_everything_dropped(self):
        container = TaxoMatrix(
            {"counts": np.ones((2, 1))},
            row_data=pd.DataFrame({"Genus": [None, None]}, index=["a", "b"]),
        )
        with pytest.raises(EmptyGroupError):
            agglomerate_by_rank(container, "genus")

    def test_idempotent(self, tiny):
        once = agglomerate_by_rank(tiny, "Phylum")
        twice = agglomerate_by_rank(once, "Phylum")
        assert list(twice.row_ids) == list(once.row_ids)
        np.testing.assert_array_equal(twice.assay("counts"), once.assay("counts"))

    def test_same_name_in_different_parents(self):
        row_data = pd.DataFrame({
            "Family": ["F1", "F2", "F1"],
            "Genus": ["g", "g", "g"],
        }, index=["a", "b", "c"])
        container = TaxoMatrix({"counts": np.array([[1.0], [2.0], [4.0]])}, row_data=row_data)
        genus = agglomerate_by_rank(container, "Genus")
        assert list(genus.row_ids) == ["g", "g_1"]
        assert _rows(genus) == {"g": [5.0], "g_1": [2.0]}

        flat = agglomerate_by_rank(container, "Genus", on_rank_only=True)
        assert _rows(flat) == {"g": [7.0]}

    def test_mass_conserved(self, medium_microbiome):
        totals = medium_microbiome.assay("counts").sum(axis=0)
        for rank in medium_microbiome.taxonomy.ranks_present:
            grouped = agglomerate_by_rank(medium_microbiome, rank, drop_missing=False)
            np.testing.assert_allclose(grouped.assay("counts").sum(axis=0), totals)
            assert grouped.n_rows <= medium_microbiome.n_rows

    def test_alternates_carried(self, tiny):
        alt = TaxoMatrix({"counts": np.ones((1, 2))}, col_data=pd.DataFrame(index=["s1", "s3"]))
        tiny.add_alt_exp("extra", alt)
        phylum = agglomerate_by_rank(tiny, "Phylum")
        assert phylum.alt_exp_names == ["extra"]
        np.testing.assert_array_equal(phylum.alt_col_map("extra"), [0, 2])

    def test_alternates_not_shared_with_input(self, tiny):
        alt = TaxoMatrix({"counts": np.ones((1, 2))}, col_data=pd.DataFrame(index=["s1", "s3"]))
        tiny.add_alt_exp("extra", alt)
        phylum = agglomerate_by_rank(tiny, "Phylum")
        phylum.alt_exp("extra").add_assay("z", np.zeros((1, 2)))
        assert tiny.alt_exp("extra").assay_names == ["counts"]


class TestTreeProjection:

    @pytest.fixture
    def with_tree(self, tiny):
        tree = Tree.from_edges([
            ("root", "nA"), ("nA", "f1"), ("nA", "f2"),
            ("root", "nB"), ("nB", "f3"), ("nB", "f4"),
            ("root", "f5"), ("root", "f6"),
        ])
        return tiny.set_row_tree(tree)

    def test_tree_dropped_by_default(self, with_tree):
        assert agglomerate_by_rank(with_tree, "Phylum").row_tree is None

    def test_tree_projected(self, with_tree):
        phylum = agglomerate_by_rank(with_tree, "Phylum", update_tree=True)
        tree = phylum.row_tree
        assert tree.kind == "hierarchy"
        assert sorted(tree.leaves) == ["A", "B", "C"]


class TestAgglomerateByPrevalence:

    def test_other_row(self, tiny):
        result = agglomerate_by_prevalence(tiny, "Phylum", detection=0, prevalence=0.5)
        assert list(result.row_ids) == ["A", "B", "Other"]
        assert _rows(result)["Other"] == [0, 0, 0]
        assert result.row_data.loc["Other"].isna().all()

    def test_feature_level(self, tiny):
        result = agglomerate_by_prevalence(tiny, prevalence=0.5)
        assert list(result.row_ids) == ["f1", "f2", "f4", "Other"]
        assert _rows(result)["Other"] == [4, 5, 0]
        np.testing.assert_allclose(
            result.assay("counts").sum(axis=0), tiny.assay("counts").sum(axis=0)
        )

    def test_nothing_pooled(self, tiny):
        result = agglomerate_by_prevalence(tiny, prevalence=0, include_lowest=True)
        assert "Other" not in result.row_ids
        assert result.n_rows == tiny.n_rows

    def test_nothing_pooled_returns_new_container(self, tiny):
        result = agglomerate_by_prevalence(tiny, prevalence=0, include_lowest=True)
        assert result is not tiny
        result.add_assay("extra", np.zeros(tiny.shape))
        assert tiny.assay_names == ["counts"]

    def test_label_collision(self, tiny):
        with pytest.raises(InvalidParameterError) as exc_info:
            agglomerate_by_prevalence(tiny, prevalence=0.5, other_label="f1")
        assert exc_info.value.parameter == "other_label"

    def test_bad_thresholds(self, tiny):
        with pytest.raises(InvalidParameterError):
            agglomerate_by_prevalence(tiny, detection=2.0)


class TestSplitByRanks:

    def test_every_rank(self, tiny):
        views = split_by_ranks(tiny)
        assert list(views) == ["kingdom", "phylum", "genus"]
        assert _rows(views["kingdom"]) == {"Bacteria": [20, 17, 7]}

    def test_selected_ranks(self, tiny):
        views = split_by_ranks(tiny, ["Genus"])
        assert list(views) == ["genus"]

    def test_stored_as_alternates(self, tiny):
        add_split_by_ranks(tiny, ["Phylum", "Genus"])
        assert tiny.alt_exp_names == ["phylum", "genus"]
        np.testing.assert_array_equal(tiny.alt_col_map("phylum"), [0, 1, 2])


class TestAgglomerateByVariable:

    def test_rows_by_annotation(self, tiny):
        result = agglomerate_by_variable(tiny, "rows", "source")
        assert _rows(result) == {"gut": [19, 15, 5], "soil": [1, 2, 2]}
        assert result.row_data.loc["gut", "Kingdom"] == "Bacteria"
        assert result.row_data.loc["gut", "Phylum"] is None

    def test_cols_by_annotation(self, tiny):
        result = agglomerate_by_variable(tiny, "samples", "subject")
        assert list(result.col_ids) == ["p1", "p2"]
        np.testing.assert_array_equal(result.assay("counts")[1], [20, 0])
        assert result.col_data.loc["p2", "day"] == 0
        assert pd.isna(result.col_data.loc["p1", "day"])

    def test_label_vector(self, tiny):
        result = agglomerate_by_variable(tiny, "rows", ["x", "x", "y", "y", None, "x"])
        assert list(result.row_ids) == ["x", "y"]
        result = agglomerate_by_variable(
            tiny, "rows", ["x", "x", "y", "y", None, "x"], drop_missing=False
        )
        assert list(result.row_ids) == ["x", "y", MISSING_GROUP]

    def test_label_vector_wrong_length(self, tiny):
        with pytest.raises(ShapeMismatchError):
            agglomerate_by_variable(tiny, "rows", ["x", "y"])

    def test_unknown_annotation(self, tiny):
        with pytest.raises(InvalidParameterError):
            agglomerate_by_variable(tiny, "rows", "habitat")

    def test_unknown_axis(self, tiny):
        with pytest.raises(InvalidParameterError) as exc_info:
            agglomerate_by_variable(tiny, "diagonal", "source")
        assert exc_info.value.parameter == "by"


class TestAgglomerateByCluster:

    def test_cluster_annotation(self, tiny):
        tiny.add_row_annotation("cluster", ["1", "1", "2", "2", "3", "3"])
        modules = agglomerate_by_cluster(tiny)
        assert list(modules.row_ids) == ["1", "2", "3"]
        assert _rows(modules)["3"] == [4, 0, 0]
