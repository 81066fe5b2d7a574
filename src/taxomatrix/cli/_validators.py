"""Shared argparse type validators for CLI parameter bounds checking.

Used as the ``type=`` argument in ``add_argument()`` so that values such
as ``--prevalence 1.5`` or ``--top 0`` fail with a clear message.
"""

from __future__ import annotations

import argparse
from typing import Union

from taxomatrix.core.taxonomy import match_rank


def _positive_int(value: str) -> int:
    """argparse type for positive integers (> 0)."""
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive integer")
    return ivalue


def _fraction(value: str) -> float:
    """argparse type for values in the closed interval [0, 1]."""
    fvalue = float(value)
    if not (0 <= fvalue <= 1):
        raise argparse.ArgumentTypeError(
            f"{value} is not a valid fraction (must be in [0, 1])"
        )
    return fvalue


def _non_negative_float(value: str) -> float:
    """argparse type for floats >= 0."""
    fvalue = float(value)
    if fvalue < 0:
        raise argparse.ArgumentTypeError(f"{value} is not a non-negative number")
    return fvalue


def _pseudocount(value: str) -> Union[bool, float]:
    """argparse type for a pseudocount: a number, or ``auto`` for half the smallest positive value."""
    if value.lower() in ("auto", "true"):
        return True
    return _non_negative_float(value)


def _rank(value: str) -> str:
    """argparse type for a taxonomy rank name (case-insensitive, first letter decides)."""
    if match_rank(value) is None:
        raise argparse.ArgumentTypeError(f"{value} is not a taxonomy rank")
    return value
