"""
Quality filtering of abundance containers.

Components:
    PrevalenceFilter: Keep prevalent (or, inverted, rare) features
    subset_by_prevalent / subset_by_rare: Functional shortcuts
"""

from taxomatrix.quality.filtering import (
    PrevalenceFilter,
    PrevalenceFilterResult,
    subset_by_prevalent,
    subset_by_rare,
)

__all__ = [
    'PrevalenceFilter',
    'PrevalenceFilterResult',
    'subset_by_prevalent',
    'subset_by_rare',
]
