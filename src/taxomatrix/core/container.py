"""
Core data structure for microbiome abundance data.

TaxoMatrix unifies one or more abundance matrices ("assays") with feature
and sample annotations, optional trees over either axis, and nested
alternate experiments that share the sample axis.

Biological Context:
    Amplicon and shotgun profiles are feature-by-sample tables:
    - Rows = features (ASVs, OTUs, taxa), usually annotated with taxonomy
    - Columns = samples (subjects, time points, sites)
    - Values = counts or derived abundances

    The same samples are routinely looked at through several lenses:
    raw counts and their relative abundances (several assays), and the
    same data agglomerated to genus or phylum (alternate experiments).
    Keeping all of them in one object keeps sample metadata aligned.

Engineering Design:
    - Assays are append-only: transforms add named assays and never touch
      existing ones unless ``overwrite=True`` is asked for
    - Subsetting and aggregation return new containers
    - The parent owns its alternates and stores a frozen index map from
      each alternate's columns into its own columns
    - Constructor checks shape and identifier consistency

Examples:
    >>> import numpy as np
    >>> import pandas as pd
    >>> from taxomatrix.core.container import TaxoMatrix
    >>>
    >>> counts = np.array([[10, 0], [5, 20]])
    >>> row_data = pd.DataFrame(
    ...     {'Phylum': ['Firmicutes', 'Bacteroidota']},
    ...     index=pd.Index(['ASV1', 'ASV2']),
    ... )
    >>> col_data = pd.DataFrame({'group': ['A', 'B']}, index=pd.Index(['S1', 'S2']))
    >>> tse = TaxoMatrix({'counts': counts}, row_data=row_data, col_data=col_data)
    >>> tse.shape
    (2, 2)
    >>> tse.taxonomy.ranks_present
    ('phylum',)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Hashable, Iterable, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from taxomatrix.core.errors import (
    AxisAlignmentError,
    InvalidParameterError,
    ShapeMismatchError,
)
from taxomatrix.core.taxonomy import TaxonomySchema, normalize_taxonomy
from taxomatrix.core.tree import Tree

logger = logging.getLogger(__name__)

__all__ = ['TaxoMatrix', 'Selector']

Selector = Union[np.ndarray, pd.Series, Sequence[Hashable], Callable[[pd.DataFrame], Any]]


def _default_ids(prefix: str, n: int) -> pd.Index:
    return pd.Index([f"{prefix}_{i + 1}" for i in range(n)])


class TaxoMatrix:
    """
    Container for abundance assays + feature/sample annotations + trees.

    Attributes:
        assays: Named matrices, all of shape (n_rows, n_cols)
        row_data: Feature annotations indexed by row identifiers
        col_data: Sample annotations indexed by column identifiers
        row_tree: Optional tree whose leaves are row identifiers
        col_tree: Optional tree whose leaves are column identifiers
        taxonomy: Rank columns detected in row_data

    Shape Invariants:
        - every assay has shape (len(row_data), len(col_data))
        - row and column identifiers are unique
        - tree leaves are a subset of the matching identifiers
        - each alternate's columns map injectively and in order onto ours
    """

    def __init__(
        self,
        assays: Mapping[str, Union[np.ndarray, pd.DataFrame]],
        row_data: Optional[pd.DataFrame] = None,
        col_data: Optional[pd.DataFrame] = None,
        row_tree: Optional[Tree] = None,
        col_tree: Optional[Tree] = None,
        alt_exps: Optional[Mapping[str, TaxoMatrix]] = None,
    ):
        """
        Initialize TaxoMatrix with validation.

        Args:
            assays: Mapping of assay name to 2-D matrix. DataFrames donate
                their index/columns as identifiers when no annotation table
                is given.
            row_data: Feature annotations, one row per feature
            col_data: Sample annotations, one row per sample
            row_tree: Tree over features
            col_tree: Tree over samples
            alt_exps: Alternate experiments aligned by column identity

        Raises:
            ShapeMismatchError: If dimensions disagree
            AxisAlignmentError: If identifiers are duplicated, tree leaves are
                unknown, or an alternate cannot be aligned
            TaxonomySchemaError: If taxonomy columns are out of rank order
            TypeError: If argument types are wrong
        """
        if not isinstance(assays, Mapping) or len(assays) == 0:
            raise ShapeMismatchError("assays must be a non-empty mapping of name -> matrix")

        frame_ids: Optional[tuple[pd.Index, pd.Index]] = None
        matrices: dict[str, np.ndarray] = {}
        for name, values in assays.items():
            if not isinstance(name, str) or not name:
                raise InvalidParameterError("assays", name, f"Assay names must be non-empty strings, got {name!r}")
            if isinstance(values, pd.DataFrame):
                if frame_ids is None:
                    frame_ids = (pd.Index(values.index), pd.Index(values.columns))
                values = values.to_numpy()
            if not isinstance(values, np.ndarray):
                raise TypeError(f"assay '{name}' must be np.ndarray or pd.DataFrame, got {type(values)}")
            if values.ndim != 2:
                raise ShapeMismatchError(f"assay '{name}' must be 2D, got shape {values.shape}")
            matrices[name] = values

        first_name = next(iter(matrices))
        n_rows, n_cols = matrices[first_name].shape
        for name, values in matrices.items():
            if values.shape != (n_rows, n_cols):
                raise ShapeMismatchError(
                    f"assay '{name}' shape {values.shape} must match assay "
                    f"'{first_name}' shape {(n_rows, n_cols)}"
                )

        row_data = self._coerce_annotations(
            row_data, n_rows, "row_data", frame_ids[0] if frame_ids else None, "feature"
        )
        col_data = self._coerce_annotations(
            col_data, n_cols, "col_data", frame_ids[1] if frame_ids else None, "sample"
        )

        schema = TaxonomySchema.from_frame(row_data)

        self._assays = matrices
        self._row_data = normalize_taxonomy(row_data, schema)
        self._col_data = col_data
        self._taxonomy = schema
        self._row_tree: Optional[Tree] = None
        self._col_tree: Optional[Tree] = None
        self._alt_exps: dict[str, TaxoMatrix] = {}
        self._alt_col_maps: dict[str, np.ndarray] = {}

        self.set_row_tree(row_tree)
        self.set_col_tree(col_tree)
        for name, alt in (alt_exps or {}).items():
            self.add_alt_exp(name, alt)

    @staticmethod
    def _coerce_annotations(
        frame: Optional[pd.DataFrame],
        n: int,
        label: str,
        fallback_ids: Optional[pd.Index],
        prefix: str,
    ) -> pd.DataFrame:
        if frame is None:
            ids = fallback_ids if fallback_ids is not None else _default_ids(prefix, n)
            frame = pd.DataFrame(index=ids)
        if not isinstance(frame, pd.DataFrame):
            raise TypeError(f"{label} must be pd.DataFrame, got {type(frame)}")
        if len(frame) != n:
            raise ShapeMismatchError(
                f"{label} has {len(frame)} rows but assays have {n} "
                f"{'rows' if label == 'row_data' else 'columns'}"
            )
        if frame.index.has_duplicates:
            dupes = list(frame.index[frame.index.duplicated()][:5])
            raise AxisAlignmentError(f"{label} index must be unique; duplicated: {dupes}")
        if frame.columns.has_duplicates:
            dupes = list(frame.columns[frame.columns.duplicated()][:5])
            raise InvalidParameterError(label, dupes, f"{label} column names must be unique; duplicated: {dupes}")
        return frame

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def shape(self) -> tuple[int, int]:
        """Dimensions (n_rows, n_cols)."""
        return (len(self._row_data), len(self._col_data))

    @property
    def n_rows(self) -> int:
        return len(self._row_data)

    @property
    def n_cols(self) -> int:
        return len(self._col_data)

    @property
    def row_ids(self) -> pd.Index:
        """Feature identifiers."""
        return self._row_data.index

    @property
    def col_ids(self) -> pd.Index:
        """Sample identifiers."""
        return self._col_data.index

    @property
    def row_data(self) -> pd.DataFrame:
        """Feature annotations (includes taxonomy columns)."""
        return self._row_data

    @property
    def col_data(self) -> pd.DataFrame:
        """Sample annotations."""
        return self._col_data

    @property
    def taxonomy(self) -> TaxonomySchema:
        """Taxonomy ranks present in row annotations."""
        return self._taxonomy

    @property
    def assay_names(self) -> list[str]:
        return list(self._assays)

    @property
    def assays(self) -> dict[str, np.ndarray]:
        """Shallow copy of the assay mapping."""
        return dict(self._assays)

    @property
    def row_tree(self) -> Optional[Tree]:
        return self._row_tree

    @property
    def col_tree(self) -> Optional[Tree]:
        return self._col_tree

    @property
    def alt_exp_names(self) -> list[str]:
        return list(self._alt_exps)

    def assay(self, name: str) -> np.ndarray:
        """
        Matrix stored under ``name``.

        Raises:
            InvalidParameterError: If no such assay exists
        """
        if name not in self._assays:
            raise InvalidParameterError(
                "assay_name", name,
                f"Assay '{name}' not found. Available assays: {self.assay_names}"
            )
        return self._assays[name]

    def assay_frame(self, name: str) -> pd.DataFrame:
        """Assay as a DataFrame labelled with row and column identifiers."""
        return pd.DataFrame(self.assay(name), index=self.row_ids, columns=self.col_ids)

    def alt_exp(self, name: str) -> TaxoMatrix:
        if name not in self._alt_exps:
            raise InvalidParameterError(
                "alt_exp", name,
                f"Alternate experiment '{name}' not found. Available: {self.alt_exp_names}"
            )
        return self._alt_exps[name]

    def alt_col_map(self, name: str) -> np.ndarray:
        """Positions of the alternate's columns within this container's columns."""
        self.alt_exp(name)
        return self._alt_col_maps[name]

    # ------------------------------------------------------------------
    # Sanctioned mutations
    # ------------------------------------------------------------------

    def add_assay(
        self,
        name: str,
        values: Union[np.ndarray, pd.DataFrame],
        overwrite: bool = False,
    ) -> TaxoMatrix:
        """
        Append a named assay in place.

        Args:
            name: Assay name
            values: Matrix of shape (n_rows, n_cols). DataFrames must carry
                the container's identifiers and are reordered to match.
            overwrite: Replace an existing assay of the same name

        Returns:
            This container (for chaining)

        Raises:
            InvalidParameterError: If the name is taken and overwrite is False
            ShapeMismatchError: If the shape is wrong
        """
        if not isinstance(name, str) or not name:
            raise InvalidParameterError("name", name, f"Assay names must be non-empty strings, got {name!r}")
        if name in self._assays and not overwrite:
            raise InvalidParameterError(
                "name", name,
                f"Assay '{name}' already exists; pass overwrite=True to replace it"
            )
        if isinstance(values, pd.DataFrame):
            if set(values.index) != set(self.row_ids) or set(values.columns) != set(self.col_ids):
                raise AxisAlignmentError(f"assay '{name}' labels do not match container identifiers")
            values = values.loc[self.row_ids, self.col_ids].to_numpy()
        if not isinstance(values, np.ndarray):
            raise TypeError(f"assay '{name}' must be np.ndarray or pd.DataFrame, got {type(values)}")
        if values.shape != self.shape:
            raise ShapeMismatchError(
                f"assay '{name}' shape {values.shape} must match container shape {self.shape}"
            )
        self._assays[name] = values
        logger.debug(f"Added assay '{name}' {values.shape}")
        return self

    def add_row_annotation(self, name: str, values: Any, overwrite: bool = False) -> TaxoMatrix:
        """Add a derived feature annotation column in place."""
        self._row_data = self._add_annotation(self._row_data, "row_data", name, values, overwrite)
        schema = TaxonomySchema.from_frame(self._row_data)
        self._row_data = normalize_taxonomy(self._row_data, schema)
        self._taxonomy = schema
        return self

    def add_col_annotation(self, name: str, values: Any, overwrite: bool = False) -> TaxoMatrix:
        """Add a derived sample annotation column in place."""
        self._col_data = self._add_annotation(self._col_data, "col_data", name, values, overwrite)
        return self

    @staticmethod
    def _add_annotation(
        frame: pd.DataFrame, label: str, name: str, values: Any, overwrite: bool
    ) -> pd.DataFrame:
        if name in frame.columns and not overwrite:
            raise InvalidParameterError(
                "name", name,
                f"{label} column '{name}' already exists; pass overwrite=True to replace it"
            )
        if isinstance(values, pd.Series):
            if not values.index.equals(frame.index):
                if set(values.index) != set(frame.index):
                    raise AxisAlignmentError(f"{label} column '{name}' index does not match identifiers")
                values = values.loc[frame.index]
            values = values.to_numpy()
        if not isinstance(values, np.ndarray):
            values = pd.Series(list(values)).to_numpy()
        if len(values) != len(frame):
            raise ShapeMismatchError(
                f"{label} column '{name}' has {len(values)} values, expected {len(frame)}"
            )
        frame = frame.copy()
        frame[name] = values
        return frame

    def set_row_tree(self, tree: Optional[Tree]) -> TaxoMatrix:
        """Attach (or clear with None) the feature tree."""
        self._row_tree = self._check_tree(tree, self.row_ids, "row_tree")
        return self

    def set_col_tree(self, tree: Optional[Tree]) -> TaxoMatrix:
        """Attach (or clear with None) the sample tree."""
        self._col_tree = self._check_tree(tree, self.col_ids, "col_tree")
        return self

    @staticmethod
    def _check_tree(tree: Optional[Tree], ids: pd.Index, label: str) -> Optional[Tree]:
        if tree is None:
            return None
        if not isinstance(tree, Tree):
            raise TypeError(f"{label} must be Tree, got {type(tree)}")
        unknown = [leaf for leaf in tree.leaves if leaf not in ids]
        if unknown:
            raise AxisAlignmentError(
                f"{label} has {len(unknown)} leaves that are not identifiers of this container: "
                f"{unknown[:5]}"
            )
        return tree

    def add_alt_exp(
        self,
        name: str,
        alt: TaxoMatrix,
        col_indices: Optional[Sequence[int]] = None,
        overwrite: bool = False,
    ) -> TaxoMatrix:
        """
        Attach an alternate experiment sharing this container's columns.

        Alignment is by column identity unless ``col_indices`` gives the
        parent position of every alternate column explicitly.

        Raises:
            AxisAlignmentError: If columns cannot be mapped injectively and in order
            InvalidParameterError: If the name is taken and overwrite is False
        """
        if not isinstance(alt, TaxoMatrix):
            raise TypeError(f"alternate experiment must be TaxoMatrix, got {type(alt)}")
        if not isinstance(name, str) or not name:
            raise InvalidParameterError("name", name, f"Alternate names must be non-empty strings, got {name!r}")
        if name in self._alt_exps and not overwrite:
            raise InvalidParameterError(
                "name", name,
                f"Alternate experiment '{name}' already exists; pass overwrite=True to replace it"
            )
        if alt is self:
            raise AxisAlignmentError("a container cannot be its own alternate experiment")
        if alt.n_cols > self.n_cols:
            raise AxisAlignmentError(
                f"alternate '{name}' has {alt.n_cols} columns, parent has only {self.n_cols}"
            )

        if col_indices is None:
            positions = self.col_ids.get_indexer(alt.col_ids)
            missing = list(alt.col_ids[positions < 0][:5])
            if missing:
                raise AxisAlignmentError(
                    f"alternate '{name}' columns not found in parent: {missing}"
                )
        else:
            positions = np.asarray(col_indices, dtype=int)
            if positions.shape != (alt.n_cols,):
                raise AxisAlignmentError(
                    f"col_indices for '{name}' must have one entry per alternate column ({alt.n_cols})"
                )
            if positions.size and (positions.min() < 0 or positions.max() >= self.n_cols):
                raise AxisAlignmentError(f"col_indices for '{name}' out of range [0, {self.n_cols})")

        if positions.size > 1 and not np.all(np.diff(positions) > 0):
            raise AxisAlignmentError(
                f"alternate '{name}' columns must map injectively onto parent columns "
                "in the same relative order"
            )

        positions = positions.astype(int).copy()
        positions.setflags(write=False)
        self._alt_exps[name] = alt
        self._alt_col_maps[name] = positions
        logger.debug(f"Attached alternate experiment '{name}' {alt.shape}")
        return self

    def remove_alt_exp(self, name: str) -> TaxoMatrix:
        self.alt_exp(name)
        del self._alt_exps[name]
        del self._alt_col_maps[name]
        return self

    # ------------------------------------------------------------------
    # Value-producing operations
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_selector(selector: Selector, ids: pd.Index, frame: pd.DataFrame, label: str) -> np.ndarray:
        """Turn a mask, id list or predicate into integer positions."""
        if callable(selector):
            selector = selector(frame)
        if isinstance(selector, pd.Series):
            if selector.dtype == bool:
                selector = selector.to_numpy()
            else:
                selector = list(selector)
        arr = np.asarray(selector)
        if arr.dtype == bool:
            if arr.shape != (len(ids),):
                raise ShapeMismatchError(
                    f"{label} mask length ({arr.size}) must match {len(ids)}"
                )
            return np.flatnonzero(arr)

        positions = ids.get_indexer(list(selector))
        if np.any(positions < 0):
            unknown = [s for s, p in zip(selector, positions) if p < 0][:5]
            raise InvalidParameterError(label, unknown, f"Unknown {label} identifiers: {unknown}")
        if len(set(positions)) != len(positions):
            raise InvalidParameterError(label, list(selector), f"{label} selection contains duplicates")
        return positions

    def select_rows(self, selector: Selector) -> TaxoMatrix:
        """
        Subset features.

        Args:
            selector: Boolean mask, sequence of row ids, or a callable taking
                ``row_data`` and returning either

        Returns:
            New TaxoMatrix; the row tree is pruned to the surviving rows and
            alternates are carried over unchanged

        Examples:
            >>> firmicutes = tse.select_rows(lambda rd: rd['Phylum'] == 'Firmicutes')
        """
        positions = self._resolve_selector(selector, self.row_ids, self._row_data, "rows")
        return self._take(row_positions=positions, col_positions=None)

    def select_cols(self, selector: Selector) -> TaxoMatrix:
        """
        Subset samples.

        Alternates are subset to the columns mapping onto surviving parent
        columns, reordered to follow the new parent order.

        Examples:
            >>> adults = tse.select_cols(tse.col_data['age'] >= 18)
        """
        positions = self._resolve_selector(selector, self.col_ids, self._col_data, "cols")
        return self._take(row_positions=None, col_positions=positions)

    def subset(self, rows: Optional[Selector] = None, cols: Optional[Selector] = None) -> TaxoMatrix:
        """Subset features and/or samples in one step."""
        row_positions = (
            None if rows is None
            else self._resolve_selector(rows, self.row_ids, self._row_data, "rows")
        )
        col_positions = (
            None if cols is None
            else self._resolve_selector(cols, self.col_ids, self._col_data, "cols")
        )
        return self._take(row_positions=row_positions, col_positions=col_positions)

    def _take(
        self,
        row_positions: Optional[np.ndarray],
        col_positions: Optional[np.ndarray],
    ) -> TaxoMatrix:
        rows = slice(None) if row_positions is None else row_positions
        cols = slice(None) if col_positions is None else col_positions

        assays = {name: values[rows, :][:, cols] for name, values in self._assays.items()}
        row_data = self._row_data.iloc[rows]
        col_data = self._col_data.iloc[cols]

        row_tree = self._row_tree
        if row_tree is not None and row_positions is not None:
            row_tree = row_tree.prune(row_data.index)
        col_tree = self._col_tree
        if col_tree is not None and col_positions is not None:
            col_tree = col_tree.prune(col_data.index)

        result = TaxoMatrix(
            assays=assays,
            row_data=row_data,
            col_data=col_data,
            row_tree=row_tree,
            col_tree=col_tree,
        )

        for name, alt in self._alt_exps.items():
            parent_positions = self._alt_col_maps[name]
            if col_positions is None:
                result.add_alt_exp(name, alt.copy(deep=False), col_indices=parent_positions)
                continue
            new_position_of = {int(p): i for i, p in enumerate(col_positions)}
            pairs = sorted(
                (new_position_of[int(p)], j)
                for j, p in enumerate(parent_positions)
                if int(p) in new_position_of
            )
            if not pairs:
                logger.info(f"Alternate experiment '{name}' has no columns left after subsetting; dropped")
                continue
            alt_subset = alt._take(row_positions=None, col_positions=np.array([j for _, j in pairs]))
            result.add_alt_exp(name, alt_subset, col_indices=[i for i, _ in pairs])

        return result

    def copy(self, deep: bool = True) -> TaxoMatrix:
        """
        Create a copy of this container.

        Args:
            deep: Copy assays, annotations and alternates. If False, share
                arrays and annotation frames but not the assay mapping, so
                adding an assay to the copy leaves the original untouched.
        """
        if deep:
            assays = {name: values.copy() for name, values in self._assays.items()}
            row_data = self._row_data.copy()
            col_data = self._col_data.copy()
        else:
            assays = dict(self._assays)
            row_data = self._row_data
            col_data = self._col_data

        result = TaxoMatrix(
            assays=assays,
            row_data=row_data,
            col_data=col_data,
            row_tree=self._row_tree,
            col_tree=self._col_tree,
        )
        for name, alt in self._alt_exps.items():
            result.add_alt_exp(
                name,
                alt.copy(deep=deep),
                col_indices=self._alt_col_maps[name],
            )
        return result

    def __repr__(self) -> str:
        """String representation for debugging."""
        def edge(ids: pd.Index) -> str:
            if len(ids) == 0:
                return "(none)"
            return f"{ids[0]}...{ids[-1]}"

        return (
            f"TaxoMatrix({self.n_rows} features × {self.n_cols} samples)\n"
            f"  Assays: {self.assay_names}\n"
            f"  Features: {edge(self.row_ids)}\n"
            f"  Samples: {edge(self.col_ids)}\n"
            f"  Taxonomy ranks: {list(self._taxonomy.ranks_present)}\n"
            f"  Row tree: {self._row_tree!r}\n"
            f"  Alternate experiments: {self.alt_exp_names}"
        )

    def __str__(self) -> str:
        return self.__repr__()
