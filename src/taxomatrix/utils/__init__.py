"""Utility modules for abundance data processing."""

from taxomatrix.utils.fileio import (
    atomic_write_json,
    atomic_write_text,
    atomic_write_csv,
)

__all__ = [
    'atomic_write_json',
    'atomic_write_text',
    'atomic_write_csv',
]
