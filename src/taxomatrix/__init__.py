"""
TaxoMatrix - Taxonomy-aware containers for microbiome abundance data

Feature-by-sample count matrices with taxonomy annotations, trees and
alternate experiments, plus the operations that move between taxonomic
resolutions: agglomeration, prevalence, transforms and summaries.
"""

__version__ = "0.1.0"

from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.taxonomy import TaxonomySchema
from taxomatrix.core.transform import Transform
from taxomatrix.core.tree import Tree
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
    "TaxoMatrix",
    "TaxonomySchema",
    "Transform",
    "Tree",
    "TaxoMatrixError",
    "ShapeMismatchError",
    "AxisAlignmentError",
    "InvalidParameterError",
    "TaxonomySchemaError",
    "NumericalEdgeCaseError",
    "MissingPseudocountError",
    "NonPositiveValueError",
    "ZeroVarianceError",
    "EmptyGroupError",
]
