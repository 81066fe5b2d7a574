"""
Input/output for abundance containers.

Readers turn CSV tables (counts, taxonomy, sample annotations, tree edge
lists) into a ``TaxoMatrix``; the writer exports every part of one.
"""

from taxomatrix.io.loaders import load_container, load_assay, load_annotations, load_tree
from taxomatrix.io.writers import write_container

__all__ = [
    'load_container',
    'load_assay',
    'load_annotations',
    'load_tree',
    'write_container',
]
