"""
Pytest configuration and shared fixtures.

This module provides a small hand-checked container and a synthetic
microbiome generator shared by all test suites.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from taxomatrix.core.container import TaxoMatrix

RANKS = ["Kingdom", "Phylum", "Class", "Order", "Family", "Genus", "Species"]


@pytest.fixture
def tiny():
    """
    Six features x three samples with hand-checked totals.

        feature  Phylum  Genus  counts      row sum
        f1       A       g1     5  0  5     10
        f2       A       g2     10 10 0     20
        f3       B       g3     0  5  0     5
        f4       B       g3     1  2  2     5
        f5       C       -      0  0  0     0
        f6       -       -      4  0  0     4
    """
    counts = np.array([
        [5, 0, 5],
        [10, 10, 0],
        [0, 5, 0],
        [1, 2, 2],
        [0, 0, 0],
        [4, 0, 0],
    ], dtype=float)
    row_data = pd.DataFrame({
        "Kingdom": ["Bacteria"] * 6,
        "Phylum": ["A", "A", "B", "B", "C", None],
        "Genus": ["g1", "g2", "g3", "g3", None, None],
        "source": ["gut", "gut", "gut", "soil", "gut", "gut"],
    }, index=pd.Index([f"f{i}" for i in range(1, 7)]))
    col_data = pd.DataFrame({
        "subject": ["p1", "p1", "p2"],
        "day": [0, 7, 0],
    }, index=pd.Index(["s1", "s2", "s3"]))
    return TaxoMatrix({"counts": counts}, row_data=row_data, col_data=col_data)


def generate_synthetic_microbiome(
    n_features: int,
    n_samples: int,
    missing_fraction: float = 0.1,
    sparsity: float = 0.5,
    seed: int = 42
) -> TaxoMatrix:
    """
    Generate a synthetic count table with a nested taxonomy.

    Args:
        n_features: Number of features (ASVs)
        n_samples: Number of samples
        missing_fraction: Fraction of features whose taxonomy is truncated
            below a random rank
        sparsity: Fraction of counts set to zero
        seed: Random seed for reproducibility

    Design:
        - Negative binomial counts (overdispersed like amplicon data)
        - Taxonomy built top-down so every genus sits in exactly one family
        - Truncated lineages mimic features classified only to a coarse rank
    """
    rng = np.random.RandomState(seed)

    counts = rng.negative_binomial(n=2, p=0.05, size=(n_features, n_samples)).astype(float)
    counts[rng.rand(n_features, n_samples) < sparsity] = 0

    lineages = []
    for i in range(n_features):
        phylum = f"P{rng.randint(3)}"
        klass = f"{phylum}_C{rng.randint(2)}"
        order = f"{klass}_O{rng.randint(2)}"
        family = f"{order}_F{rng.randint(2)}"
        genus = f"{family}_G{rng.randint(3)}"
        species = f"{genus}_S{rng.randint(4)}"
        lineage = ["Bacteria", phylum, klass, order, family, genus, species]
        if rng.rand() < missing_fraction:
            cut = rng.randint(1, len(lineage))
            lineage = lineage[:cut] + [None] * (len(lineage) - cut)
        lineages.append(lineage)

    row_data = pd.DataFrame(
        lineages,
        columns=RANKS,
        index=pd.Index([f"ASV_{i:04d}" for i in range(n_features)]),
    )
    col_data = pd.DataFrame({
        "group": ["case" if j % 2 == 0 else "control" for j in range(n_samples)],
        "batch": [j % 3 for j in range(n_samples)],
    }, index=pd.Index([f"S{j:03d}" for j in range(n_samples)]))

    return TaxoMatrix({"counts": counts}, row_data=row_data, col_data=col_data)


@pytest.fixture
def small_microbiome():
    """Small synthetic container (60 features x 12 samples) for fast unit tests."""
    return generate_synthetic_microbiome(n_features=60, n_samples=12, seed=42)


@pytest.fixture
def medium_microbiome():
    """Medium synthetic container (400 features x 30 samples) for invariant checks."""
    return generate_synthetic_microbiome(n_features=400, n_samples=30, seed=7)
