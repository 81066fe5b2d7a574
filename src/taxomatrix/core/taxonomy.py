"""
Taxonomy rank schema for row annotations.

Row annotation tables may carry a taxonomy: a subset of the eight reserved
rank columns, in fixed order. The schema is detected once, when a container
is built, and exposed as a capability flag so later operations never need
to guess whether "this looks like a taxonomy table".

Rank names match case-insensitively on the first letter only: ``Genus`` and
``genus`` are both the genus column, ``GENUS`` is an ordinary annotation.

Examples:
    >>> import pandas as pd
    >>> from taxomatrix.core.taxonomy import TaxonomySchema
    >>> row_data = pd.DataFrame({
    ...     'Phylum': ['Firmicutes', 'Bacteroidota'],
    ...     'Genus': ['Blautia', None],
    ... })
    >>> schema = TaxonomySchema.from_frame(row_data)
    >>> schema.ranks_present
    ('phylum', 'genus')
    >>> schema.column_for('genus')
    'Genus'
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import pandas as pd

from taxomatrix.core.errors import InvalidParameterError, TaxonomySchemaError

if TYPE_CHECKING:
    from taxomatrix.core.container import TaxoMatrix

__all__ = [
    'TAXONOMY_RANKS',
    'TaxonomySchema',
    'match_rank',
    'resolve_rank',
    'get_taxonomy_labels',
    'make_unique',
]

TAXONOMY_RANKS: tuple[str, ...] = (
    "domain",
    "kingdom",
    "phylum",
    "class",
    "order",
    "family",
    "genus",
    "species",
)


def match_rank(column: str) -> Optional[str]:
    """Return the canonical rank a column name denotes, or None."""
    if not isinstance(column, str) or not column:
        return None
    candidate = column[0].lower() + column[1:]
    return candidate if candidate in TAXONOMY_RANKS else None


def resolve_rank(rank: str, parameter: str = "rank") -> str:
    """
    Canonicalize a user-supplied rank name.

    Raises:
        InvalidParameterError: If the name is not one of the reserved ranks
    """
    resolved = match_rank(rank) if isinstance(rank, str) else None
    if resolved is None:
        raise InvalidParameterError(
            parameter, rank,
            f"Unknown rank for '{parameter}': {rank!r}. "
            f"Must be one of {list(TAXONOMY_RANKS)}"
        )
    return resolved


@dataclass(frozen=True)
class TaxonomySchema:
    """
    Which rank columns a row annotation table carries, in rank order.

    Attributes:
        ranks_present: Canonical rank names, coarse to fine
        columns: Matching column names as they appear in the table
    """
    ranks_present: tuple[str, ...] = ()
    columns: tuple[str, ...] = ()

    @property
    def has_taxonomy(self) -> bool:
        return len(self.ranks_present) > 0

    def column_for(self, rank: str) -> str:
        """
        Column name holding a rank.

        Raises:
            InvalidParameterError: If the rank is unknown or not present
        """
        canonical = resolve_rank(rank)
        if canonical not in self.ranks_present:
            raise InvalidParameterError(
                "rank", rank,
                f"Rank '{canonical}' is not present in row annotations "
                f"(available: {list(self.ranks_present)})"
            )
        return self.columns[self.ranks_present.index(canonical)]

    def columns_up_to(self, rank: str) -> list[str]:
        """Columns from the coarsest present rank down to ``rank`` inclusive."""
        column = self.column_for(rank)
        return list(self.columns[: self.columns.index(column) + 1])

    def columns_below(self, rank: str) -> list[str]:
        """Columns strictly finer than ``rank``."""
        column = self.column_for(rank)
        return list(self.columns[self.columns.index(column) + 1:])

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> TaxonomySchema:
        """
        Detect and validate the taxonomy columns of a row annotation table.

        Raises:
            TaxonomySchemaError: If rank columns are out of order, a rank
                appears twice, or a rank column holds non-string values
        """
        ranks: list[str] = []
        columns: list[str] = []
        for column in frame.columns:
            rank = match_rank(column)
            if rank is None:
                continue
            if rank in ranks:
                raise TaxonomySchemaError(
                    "row_data", column,
                    f"Rank '{rank}' appears more than once in row annotations"
                )
            ranks.append(rank)
            columns.append(column)

        order = [TAXONOMY_RANKS.index(r) for r in ranks]
        if order != sorted(order):
            raise TaxonomySchemaError(
                "row_data", columns,
                f"Taxonomy columns must follow rank order {list(TAXONOMY_RANKS)}; "
                f"got {columns}"
            )

        for column in columns:
            present = frame[column].dropna()
            bad = present[[not isinstance(v, str) for v in present]]
            if len(bad) > 0:
                raise TaxonomySchemaError(
                    "row_data", column,
                    f"Taxonomy column '{column}' must hold strings or missing values; "
                    f"found {bad.iloc[0]!r} for row {bad.index[0]!r}"
                )

        return cls(ranks_present=tuple(ranks), columns=tuple(columns))


def normalize_taxonomy(frame: pd.DataFrame, schema: TaxonomySchema) -> pd.DataFrame:
    """Replace empty or whitespace-only taxonomy strings with missing values."""
    if not schema.has_taxonomy:
        return frame
    frame = frame.copy()
    for column in schema.columns:
        frame[column] = pd.Series(
            [v if isinstance(v, str) and v.strip() else None for v in frame[column]],
            index=frame.index,
            dtype=object,
        )
    return frame


def make_unique(labels: list[str]) -> list[str]:
    """
    Suffix repeated labels with ``_1``, ``_2``... keeping the first as is.

    Examples:
        >>> make_unique(["a", "b", "a", "a"])
        ['a', 'b', 'a_1', 'a_2']
    """
    seen: dict[str, int] = {}
    taken = set(labels)
    result = []
    for label in labels:
        if label not in seen:
            seen[label] = 0
            result.append(label)
            continue
        count = seen[label]
        while True:
            count += 1
            candidate = f"{label}_{count}"
            if candidate not in taken:
                break
        seen[label] = count
        taken.add(candidate)
        result.append(candidate)
    return result


def get_taxonomy_labels(
    container: TaxoMatrix,
    with_rank: bool = False,
    make_unique_labels: bool = True,
) -> pd.Series:
    """
    Human-readable label per row from its most specific known rank.

    Missing ranks are skipped and the next coarser rank is used; rows with
    no taxonomy at all fall back to their row identifier.

    Args:
        container: Container with row annotations
        with_rank: Prefix labels with the rank, e.g. ``Genus:Blautia``
        make_unique_labels: Disambiguate repeated labels with suffixes

    Returns:
        Series of labels indexed by row identifier

    Examples:
        >>> labels = get_taxonomy_labels(tse, with_rank=True)
        >>> labels.iloc[0]
        'Genus:Blautia'
    """
    schema = container.taxonomy
    row_data = container.row_data
    labels: list[str] = []
    for row_id in container.row_ids:
        label = None
        for rank, column in reversed(list(zip(schema.ranks_present, schema.columns))):
            value = row_data.at[row_id, column]
            if isinstance(value, str):
                label = f"{rank.capitalize()}:{value}" if with_rank else value
                break
        labels.append(label if label is not None else str(row_id))

    if make_unique_labels:
        labels = make_unique(labels)
    return pd.Series(labels, index=container.row_ids, name="taxonomy_label")
