"""Tests for the TaxoMatrix container: construction, mutation, subsetting."""

import numpy as np
import pandas as pd
import pytest

from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.errors import (
    AxisAlignmentError,
    InvalidParameterError,
    ShapeMismatchError,
    TaxonomySchemaError,
)
from taxomatrix.core.tree import Tree


class TestConstruction:
    """Validation at construction time."""

    def test_default_identifiers(self):
        container = TaxoMatrix({"counts": np.zeros((2, 3))})
        assert list(container.row_ids) == ["feature_1", "feature_2"]
        assert list(container.col_ids) == ["sample_1", "sample_2", "sample_3"]
        assert container.shape == (2, 3)

    def test_dataframe_assay_donates_identifiers(self):
        frame = pd.DataFrame([[1, 2], [3, 4]], index=["a", "b"], columns=["x", "y"])
        container = TaxoMatrix({"counts": frame})
        assert list(container.row_ids) == ["a", "b"]
        assert list(container.col_ids) == ["x", "y"]
        np.testing.assert_array_equal(container.assay("counts"), [[1, 2], [3, 4]])

    def test_assay_shapes_must_agree(self):
        with pytest.raises(ShapeMismatchError):
            TaxoMatrix({"a": np.zeros((2, 3)), "b": np.zeros((3, 2))})

    def test_annotation_length_must_match(self):
        with pytest.raises(ShapeMismatchError):
            TaxoMatrix({"counts": np.zeros((2, 3))}, row_data=pd.DataFrame(index=["a", "b", "c"]))

    def test_duplicate_identifiers_rejected(self):
        with pytest.raises(AxisAlignmentError):
            TaxoMatrix({"counts": np.zeros((2, 1))}, row_data=pd.DataFrame(index=["a", "a"]))

    def test_empty_assay_mapping_rejected(self):
        with pytest.raises(ShapeMismatchError):
            TaxoMatrix({})

    def test_wrong_assay_type(self):
        with pytest.raises(TypeError):
            TaxoMatrix({"counts": [[1, 2], [3, 4]]})

    def test_taxonomy_out_of_order(self):
        row_data = pd.DataFrame({"Genus": ["g"], "Phylum": ["p"]}, index=["f1"])
        with pytest.raises(TaxonomySchemaError):
            TaxoMatrix({"counts": np.ones((1, 1))}, row_data=row_data)

    def test_blank_taxonomy_becomes_missing(self):
        row_data = pd.DataFrame({"Phylum": ["A", "  "], "Genus": ["", "g"]}, index=["f1", "f2"])
        container = TaxoMatrix({"counts": np.ones((2, 1))}, row_data=row_data)
        assert container.row_data.loc["f2", "Phylum"] is None
        assert container.row_data.loc["f1", "Genus"] is None
        assert container.taxonomy.ranks_present == ("phylum", "genus")

    def test_taxonomy_errors_are_value_errors(self):
        row_data = pd.DataFrame({"Genus": ["g"], "Phylum": ["p"]}, index=["f1"])
        with pytest.raises(ValueError):
            TaxoMatrix({"counts": np.ones((1, 1))}, row_data=row_data)


class TestMutation:
    """Sanctioned in-place additions."""

    def test_add_assay(self, tiny):
        tiny.add_assay("double", tiny.assay("counts") * 2)
        assert tiny.assay_names == ["counts", "double"]

    def test_add_assay_refuses_existing_name(self, tiny):
        with pytest.raises(InvalidParameterError) as exc_info:
            tiny.add_assay("counts", tiny.assay("counts"))
        assert exc_info.value.parameter == "name"

    def test_add_assay_overwrite(self, tiny):
        tiny.add_assay("counts", np.zeros(tiny.shape), overwrite=True)
        assert tiny.assay("counts").sum() == 0

    def test_add_assay_wrong_shape(self, tiny):
        with pytest.raises(ShapeMismatchError):
            tiny.add_assay("bad", np.zeros((2, 2)))

    def test_add_assay_dataframe_is_reordered(self, tiny):
        frame = tiny.assay_frame("counts").iloc[::-1, ::-1]
        tiny.add_assay("copy", frame)
        np.testing.assert_array_equal(tiny.assay("copy"), tiny.assay("counts"))

    def test_unknown_assay(self, tiny):
        with pytest.raises(InvalidParameterError) as exc_info:
            tiny.assay("clr")
        assert exc_info.value.parameter == "assay_name"

    def test_add_row_annotation_updates_taxonomy(self):
        container = TaxoMatrix({"counts": np.ones((2, 1))}, row_data=pd.DataFrame(index=["a", "b"]))
        assert not container.taxonomy.has_taxonomy
        container.add_row_annotation("Family", ["F1", "F2"])
        assert container.taxonomy.ranks_present == ("family",)

    def test_add_col_annotation_from_series(self, tiny):
        values = pd.Series({"s3": "c", "s1": "a", "s2": "b"})
        tiny.add_col_annotation("letter", values)
        assert list(tiny.col_data["letter"]) == ["a", "b", "c"]

    def test_set_row_tree_rejects_unknown_leaves(self, tiny):
        tree = Tree.from_edges([("root", "f1"), ("root", "zzz")])
        with pytest.raises(AxisAlignmentError):
            tiny.set_row_tree(tree)


class TestAlternateExperiments:
    """Alternate experiments aligned on the column axis."""

    def _alt(self, cols):
        return TaxoMatrix(
            {"counts": np.arange(2 * len(cols)).reshape(2, len(cols)).astype(float)},
            col_data=pd.DataFrame(index=cols),
        )

    def test_alignment_by_identity(self, tiny):
        tiny.add_alt_exp("genus", self._alt(["s1", "s3"]))
        np.testing.assert_array_equal(tiny.alt_col_map("genus"), [0, 2])

    def test_column_map_is_frozen(self, tiny):
        tiny.add_alt_exp("genus", self._alt(["s1", "s3"]))
        with pytest.raises(ValueError):
            tiny.alt_col_map("genus")[0] = 1

    def test_unknown_columns_rejected(self, tiny):
        with pytest.raises(AxisAlignmentError):
            tiny.add_alt_exp("bad", self._alt(["s1", "s9"]))

    def test_order_must_be_preserved(self, tiny):
        with pytest.raises(AxisAlignmentError):
            tiny.add_alt_exp("bad", self._alt(["s3", "s1"]))

    def test_name_collision(self, tiny):
        tiny.add_alt_exp("genus", self._alt(["s1"]))
        with pytest.raises(InvalidParameterError):
            tiny.add_alt_exp("genus", self._alt(["s2"]))

    def test_remove(self, tiny):
        tiny.add_alt_exp("genus", self._alt(["s1"]))
        tiny.remove_alt_exp("genus")
        assert tiny.alt_exp_names == []

    def test_select_cols_follows_new_order(self, tiny):
        tiny.add_alt_exp("genus", self._alt(["s1", "s3"]))
        subset = tiny.select_cols(["s3", "s1"])
        alt = subset.alt_exp("genus")
        assert list(alt.col_ids) == ["s3", "s1"]
        np.testing.assert_array_equal(subset.alt_col_map("genus"), [0, 1])
        np.testing.assert_array_equal(alt.assay("counts"), [[1.0, 0.0], [3.0, 2.0]])

    def test_select_cols_drops_emptied_alternate(self, tiny):
        tiny.add_alt_exp("genus", self._alt(["s1"]))
        subset = tiny.select_cols(["s2", "s3"])
        assert subset.alt_exp_names == []

    def test_select_rows_does_not_share_alternate(self, tiny):
        tiny.add_alt_exp("genus", self._alt(["s1", "s3"]))
        subset = tiny.select_rows(["f1", "f2"])
        subset.alt_exp("genus").add_assay("z", np.zeros((2, 2)))
        assert tiny.alt_exp("genus").assay_names == ["counts"]

    def test_shallow_copy_does_not_share_alternate(self, tiny):
        tiny.add_alt_exp("genus", self._alt(["s1"]))
        clone = tiny.copy(deep=False)
        clone.alt_exp("genus").add_assay("z", np.zeros((2, 1)))
        assert tiny.alt_exp("genus").assay_names == ["counts"]


class TestSubsetting:
    """Value-producing selection."""

    def test_select_rows_by_predicate(self, tiny):
        subset = tiny.select_rows(lambda rd: rd["Phylum"] == "A")
        assert list(subset.row_ids) == ["f1", "f2"]
        assert subset.n_cols == tiny.n_cols

    def test_select_rows_by_ids_keeps_order_given(self, tiny):
        subset = tiny.select_rows(["f4", "f1"])
        assert list(subset.row_ids) == ["f4", "f1"]
        np.testing.assert_array_equal(subset.assay("counts")[1], [5, 0, 5])

    def test_input_left_untouched(self, tiny):
        before = tiny.assay("counts").copy()
        tiny.select_rows(["f1"])
        np.testing.assert_array_equal(tiny.assay("counts"), before)
        assert tiny.n_rows == 6

    def test_unknown_identifier(self, tiny):
        with pytest.raises(InvalidParameterError):
            tiny.select_rows(["f1", "nope"])

    def test_mask_length_mismatch(self, tiny):
        with pytest.raises(ShapeMismatchError):
            tiny.select_cols(np.array([True, False]))

    def test_row_tree_is_pruned(self, tiny):
        tree = Tree.from_edges([("root", "n1"), ("n1", "f1"), ("n1", "f2"), ("root", "f3")])
        tiny.set_row_tree(tree)
        subset = tiny.select_rows(["f1", "f3"])
        assert sorted(subset.row_tree.leaves) == ["f1", "f3"]

    def test_subset_both_axes(self, tiny):
        subset = tiny.subset(rows=["f2"], cols=["s2"])
        assert subset.shape == (1, 1)
        assert subset.assay("counts")[0, 0] == 10

    def test_copy_is_independent(self, tiny):
        clone = tiny.copy()
        clone.add_assay("extra", np.zeros(tiny.shape))
        clone.assay("counts")[0, 0] = 99
        assert tiny.assay_names == ["counts"]
        assert tiny.assay("counts")[0, 0] == 5

    def test_repr_mentions_dimensions(self, tiny):
        assert "6 features" in repr(tiny)
