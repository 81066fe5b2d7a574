"""
Aggregation of features (and samples) into groups.

All entry points return a new container; the input is never modified.
Every assay is reduced with the same grouping and reducer.

- agglomerate_by_rank: collapse to a taxonomic rank
- agglomerate_by_prevalence: keep prevalent groups, pool the rest as "Other"
- agglomerate_by_variable: group rows or columns by an annotation or labels
- agglomerate_by_cluster: group rows by cluster membership
- split_by_ranks / add_split_by_ranks: one aggregated view per rank
- build_hierarchy_tree / add_hierarchy_tree: taxonomy-derived row tree
"""

from taxomatrix.agglomeration.ranks import (
    MISSING_GROUP,
    agglomerate_by_rank,
    agglomerate_by_prevalence,
    split_by_ranks,
    add_split_by_ranks,
)
from taxomatrix.agglomeration.variables import agglomerate_by_variable, agglomerate_by_cluster
from taxomatrix.agglomeration.hierarchy import build_hierarchy_tree, add_hierarchy_tree

__all__ = [
    'MISSING_GROUP',
    'agglomerate_by_rank',
    'agglomerate_by_prevalence',
    'split_by_ranks',
    'add_split_by_ranks',
    'agglomerate_by_variable',
    'agglomerate_by_cluster',
    'build_hierarchy_tree',
    'add_hierarchy_tree',
]
