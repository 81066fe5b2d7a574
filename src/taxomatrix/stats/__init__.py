"""
Numeric routines over container assays.

- normalization: assay transforms (relative abundance, clr, rclr, alr, ...)
- prevalence: prevalence, prevalent/rare sets, prevalent abundance
- summaries: top and dominant features, container overview
- clustering: hierarchical clustering of features into labels
"""

from taxomatrix.stats.normalization import (
    TransformMethod,
    AssayTransform,
    transform_assay,
    transform_matrix,
)
from taxomatrix.stats.prevalence import (
    get_prevalence,
    get_prevalent_features,
    get_rare_features,
    get_prevalent_abundance,
)
from taxomatrix.stats.summaries import (
    get_top_features,
    get_dominant_features,
    add_dominant_features,
    summarize_container,
)
from taxomatrix.stats.clustering import cluster_features

__all__ = [
    'TransformMethod',
    'AssayTransform',
    'transform_assay',
    'transform_matrix',
    'get_prevalence',
    'get_prevalent_features',
    'get_rare_features',
    'get_prevalent_abundance',
    'get_top_features',
    'get_dominant_features',
    'add_dominant_features',
    'summarize_container',
    'cluster_features',
]
