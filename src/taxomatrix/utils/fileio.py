"""
Atomic file-write utilities.

Every exported file goes through a temporary file in the destination
directory and an ``os.replace()``, so an interrupted export never leaves a
half-written table, tree or summary behind.
"""

from __future__ import annotations

import json
import os
import tempfile
from typing import Any, Callable, IO

import pandas as pd

__all__ = ['atomic_write_json', 'atomic_write_text', 'atomic_write_csv']


def _atomic_write(path: str | os.PathLike, write: Callable[[IO[str]], None]) -> None:
    path = str(path)
    dir_path = os.path.dirname(path) or "."
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w", dir=dir_path, suffix=".tmp", delete=False, newline=""
        ) as tmp:
            tmp_path = tmp.name
            write(tmp)
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def atomic_write_json(path: str | os.PathLike, data: Any, *, indent: int = 2) -> None:
    """Write *data* as JSON atomically via temp-file + rename.

    Parameters
    ----------
    path:
        Destination file path.
    data:
        JSON-serializable object.
    indent:
        JSON indentation (default 2).
    """
    _atomic_write(path, lambda fh: json.dump(data, fh, indent=indent))


def atomic_write_text(path: str | os.PathLike, content: str) -> None:
    """Write *content* as text atomically via temp-file + rename."""
    _atomic_write(path, lambda fh: fh.write(content))


def atomic_write_csv(path: str | os.PathLike, frame: pd.DataFrame, *, index: bool = True) -> None:
    """Write a DataFrame as CSV atomically via temp-file + rename.

    Parameters
    ----------
    path:
        Destination file path.
    frame:
        Table to write.
    index:
        Write the row index as the first column (default True).
    """
    _atomic_write(path, lambda fh: frame.to_csv(fh, index=index))
