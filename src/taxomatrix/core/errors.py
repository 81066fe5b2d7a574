"""
Error types raised by the container and its operations.

Every failure that a caller may want to react to has its own class, so a
pipeline can catch ``MissingPseudocountError`` and retry with a pseudocount
instead of parsing a generic ``ValueError`` message.

Hierarchy:
    TaxoMatrixError
    ├── ShapeMismatchError        (also ValueError)
    ├── AxisAlignmentError        (also ValueError)
    ├── InvalidParameterError     (also ValueError)
    │   └── TaxonomySchemaError
    └── NumericalEdgeCaseError    (also ArithmeticError)
        ├── MissingPseudocountError
        ├── NonPositiveValueError
        ├── ZeroVarianceError
        └── EmptyGroupError
"""

from __future__ import annotations

__all__ = [
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


class TaxoMatrixError(Exception):
    """Base class for all taxomatrix errors."""


class ShapeMismatchError(TaxoMatrixError, ValueError):
    """Assay or annotation dimensions disagree with the container axes."""


class AxisAlignmentError(TaxoMatrixError, ValueError):
    """Axis identifiers cannot be aligned (alternate columns, tree leaves)."""


class InvalidParameterError(TaxoMatrixError, ValueError):
    """
    A caller-supplied parameter is unknown or out of range.

    Attributes:
        parameter: Name of the offending parameter
        value: The rejected value
    """

    def __init__(self, parameter: str, value: object, message: str | None = None):
        self.parameter = parameter
        self.value = value
        if message is None:
            message = f"Invalid value for '{parameter}': {value!r}"
        super().__init__(message)


class TaxonomySchemaError(InvalidParameterError):
    """Taxonomy columns are out of rank order or hold non-string values."""


class NumericalEdgeCaseError(TaxoMatrixError, ArithmeticError):
    """A numeric precondition of a transform or reducer does not hold."""


class MissingPseudocountError(NumericalEdgeCaseError):
    """Zeros or negatives reached a log-based transform without a pseudocount."""


class NonPositiveValueError(NumericalEdgeCaseError):
    """Values remain non-positive where a logarithm needs strictly positive input."""


class ZeroVarianceError(NumericalEdgeCaseError):
    """Standardization hit an axis element with zero variance."""


class EmptyGroupError(NumericalEdgeCaseError):
    """Aggregation was asked to reduce a grouping with no members."""
