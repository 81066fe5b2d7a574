"""
Base transformation framework for container operations.

Every named, parameterized step that turns a container into a container
(assay transforms, prevalence filters) derives from ``Transform`` so that
parameters are recorded and a pipeline can be printed as a methods log.

Two flavours exist and each subclass documents which one it is:

- Assay-appending: the result is added as a new named assay to the input
  container (the only sanctioned in-place mutation) and the same
  container is returned. Existing assays are never touched.
- Value-producing: a new container is returned and the input is left
  exactly as it was (subsetting, aggregation).

Examples:
    >>> from taxomatrix.core.transform import Transform
    >>>
    >>> class KeepFirstSamples(Transform):
    ...     def __init__(self, n: int):
    ...         super().__init__(name="KeepFirstSamples", params={"n": n})
    ...         self.n = n
    ...
    ...     def apply(self, container):
    ...         return container.select_cols(container.col_ids[: self.n])
    >>>
    >>> head = KeepFirstSamples(3).apply(tse)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, TYPE_CHECKING
from datetime import datetime

if TYPE_CHECKING:
    from taxomatrix.core.container import TaxoMatrix

__all__ = ['Transform']


class Transform(ABC):
    """
    Abstract base class for container transformations.

    Attributes:
        name: Human-readable transformation name (e.g., "AssayTransform")
        params: Parameters used for this transformation
        timestamp: When this transform instance was created (for audit trail)
    """

    def __init__(self, name: str, params: dict[str, Any]) -> None:
        """
        Initialize transformation with name and parameters.

        Args:
            name: Human-readable transformation name
            params: Dictionary of parameters. Should be JSON-serializable so
                it can be written alongside results.
        """
        self.name = name
        self.params = params
        self.timestamp = datetime.now()

    @abstractmethod
    def apply(self, container: TaxoMatrix) -> TaxoMatrix:
        """
        Execute the transformation.

        Args:
            container: Input container

        Returns:
            The input container with a new assay appended, or a new container

        Raises:
            InvalidParameterError: If parameters do not fit the container
            NumericalEdgeCaseError: If the data violate a numeric precondition
        """

    def validate(self, container: TaxoMatrix) -> list[str]:
        """
        Check preconditions before applying the transformation.

        Subclasses should override and call ``super().validate()`` first.

        Returns:
            List of problems (empty list = transformation can proceed)
        """
        errors: list[str] = []

        if container.n_rows == 0 or container.n_cols == 0:
            errors.append("Cannot process empty container")

        return errors

    def __repr__(self) -> str:
        """
        String like ``AssayTransform(method=clr, axis=cols)``.
        """
        params_str = ", ".join(f"{k}={v}" for k, v in self.params.items())
        return f"{self.name}({params_str})"
