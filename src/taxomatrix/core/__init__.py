"""
Core data structures for microbiome abundance data.

1. TaxoMatrix: assays + feature/sample annotations + trees + alternates
2. TaxonomySchema: which rank columns the feature annotations carry
3. Tree: rooted tree over features or samples (phylogeny or hierarchy)
4. Transform: base class for recorded, parameterized container operations
5. errors: one exception class per failure a caller may handle

Design Philosophy:
    - Append-only assays: transforms add named assays, never rewrite them
    - Value-producing operations: subsetting and aggregation return new
      containers
    - Validation at the boundary: shapes, identifiers and rank order are
      checked once, at construction
"""

from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.taxonomy import TAXONOMY_RANKS, TaxonomySchema, get_taxonomy_labels, resolve_rank
from taxomatrix.core.tree import Tree
from taxomatrix.core.transform import Transform
from taxomatrix.core.errors import (
    TaxoMatrixError,
    ShapeMismatchError,
    AxisAlignmentError,
    InvalidParameterError,
    TaxonomySchemaError,
    NumericalEdgeCaseError,
    MissingPseudocountError,
    NonPositiveValueError,
    ZeroVarianceError,
    EmptyGroupError,
)

__all__ = [
    'TaxoMatrix',
    'TAXONOMY_RANKS',
    'TaxonomySchema',
    'get_taxonomy_labels',
    'resolve_rank',
    'Tree',
    'Transform',
    'TaxoMatrixError',
    'ShapeMismatchError',
    'AxisAlignmentError',
    'InvalidParameterError',
    'TaxonomySchemaError',
    'NumericalEdgeCaseError',
    'MissingPseudocountError',
    'NonPositiveValueError',
    'ZeroVarianceError',
    'EmptyGroupError',
]
