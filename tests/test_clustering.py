"""Tests for hierarchical feature clustering."""

import numpy as np
import pandas as pd
import pytest

from taxomatrix.agglomeration import agglomerate_by_cluster
from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.errors import InvalidParameterError
from taxomatrix.stats.clustering import cluster_features, cluster_labels


@pytest.fixture
def blocks():
    counts = np.array([
        [0.0, 0.0],
        [0.0, 2.0],
        [10.0, 10.0],
        [10.0, 11.0],
    ])
    return TaxoMatrix({"counts": counts}, row_data=pd.DataFrame(index=["a", "b", "c", "d"]))


class TestClusterLabels:

    def test_two_blocks(self, blocks):
        labels = cluster_labels(blocks.assay("counts"), n_clusters=2)
        assert labels[0] == labels[1]
        assert labels[2] == labels[3]
        assert labels[0] != labels[2]

    def test_cut_at_height(self, blocks):
        labels = cluster_labels(blocks.assay("counts"), method="average", height=3.0)
        assert len(set(labels)) == 2

    def test_ward(self, blocks):
        labels = cluster_labels(blocks.assay("counts"), method="ward", n_clusters=2)
        assert labels[0] == labels[1] != labels[2]

    def test_exactly_one_cut(self, blocks):
        with pytest.raises(InvalidParameterError):
            cluster_labels(blocks.assay("counts"))
        with pytest.raises(InvalidParameterError):
            cluster_labels(blocks.assay("counts"), n_clusters=2, height=1.0)

    def test_ward_needs_euclidean(self, blocks):
        with pytest.raises(InvalidParameterError) as exc_info:
            cluster_labels(blocks.assay("counts"), metric="braycurtis", method="ward", n_clusters=2)
        assert exc_info.value.parameter == "metric"

    def test_unknown_method(self, blocks):
        with pytest.raises(InvalidParameterError):
            cluster_labels(blocks.assay("counts"), method="upgma", n_clusters=2)

    def test_too_many_clusters(self, blocks):
        with pytest.raises(InvalidParameterError):
            cluster_labels(blocks.assay("counts"), n_clusters=5)

    def test_single_row(self):
        with pytest.raises(InvalidParameterError):
            cluster_labels(np.ones((1, 3)), n_clusters=1)


class TestClusterFeatures:

    def test_annotation_added(self, blocks):
        labels = cluster_features(blocks, n_clusters=2)
        assert list(blocks.row_data["cluster"]) == list(labels)
        assert all(isinstance(label, str) for label in labels)

    def test_refuses_existing_annotation(self, blocks):
        cluster_features(blocks, n_clusters=2)
        with pytest.raises(InvalidParameterError):
            cluster_features(blocks, n_clusters=2)
        cluster_features(blocks, n_clusters=3, overwrite=True)
        assert blocks.row_data["cluster"].nunique() == 3

    def test_feeds_aggregation(self, blocks):
        cluster_features(blocks, n_clusters=2, name="module")
        modules = agglomerate_by_cluster(blocks, "module")
        assert modules.n_rows == 2
        np.testing.assert_allclose(sorted(modules.assay("counts").sum(axis=1)), [2.0, 41.0])
