"""
taxomatrix prevalence command - Prevalence table and core/rare feature sets.

Usage:
    taxomatrix prevalence --input counts.csv --detection 0.001 --prevalence 0.5 \\
        --as-relative --output results/core
"""

import argparse
from pathlib import Path

from taxomatrix.cli._common import add_input_arguments, ensure_parent, load_input, prepare_args
from taxomatrix.cli._validators import _fraction, _non_negative_float, _rank
from taxomatrix.core.errors import TaxoMatrixError
from taxomatrix.stats.prevalence import (
    get_prevalence,
    get_prevalent_abundance,
    get_prevalent_features,
    get_rare_features,
)
from taxomatrix.utils.fileio import atomic_write_csv, atomic_write_json


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the prevalence subcommand."""
    parser = subparsers.add_parser(
        "prevalence",
        help="Per-feature prevalence and prevalent/rare feature sets",
        description="Count the samples each feature is detected in and split features into core and rare"
    )
    add_input_arguments(parser)
    parser.add_argument("--detection", type=_non_negative_float, default=0.0,
                        help="Detection threshold; a value counts when strictly above it (default: 0)")
    parser.add_argument("--prevalence", type=_fraction, default=0.2,
                        help="Fraction of samples a prevalent feature must exceed (default: 0.2)")
    parser.add_argument("--as-relative", action="store_true", default=False,
                        help="Threshold relative abundances and report prevalence as a fraction")
    parser.add_argument("--include-lowest", action="store_true", default=False,
                        help="Count values equal to the thresholds (>= instead of >)")
    parser.add_argument("--rank", "-r", type=_rank, default=None,
                        help="Agglomerate to this rank first")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.set_defaults(func=run_prevalence)


def run_prevalence(args: argparse.Namespace) -> int:
    """Execute the prevalence command."""
    args = prepare_args(args, "prevalence")
    if args is None:
        return 1

    container = load_input(args)
    if container is None:
        return 1

    thresholds = dict(
        detection=args.detection,
        as_relative=args.as_relative,
        include_lowest=args.include_lowest,
    )
    try:
        table = get_prevalence(container, args.assay, rank=args.rank, sort=True, **thresholds)
        prevalent = get_prevalent_features(
            container, args.assay, prevalence=args.prevalence, rank=args.rank, **thresholds
        )
        rare = get_rare_features(
            container, args.assay, prevalence=args.prevalence, rank=args.rank, **thresholds
        )
        abundance = None
        if args.rank is None:
            abundance = get_prevalent_abundance(
                container, args.assay, prevalence=args.prevalence, **thresholds
            )
    except TaxoMatrixError as e:
        print(f"ERROR: Prevalence failed: {e}")
        return 1

    ensure_parent(Path(args.output))
    table_path = Path(str(args.output) + ".prevalence.csv")
    atomic_write_csv(table_path, table.rename_axis("feature_id").to_frame())

    sets_path = Path(str(args.output) + ".features.json")
    atomic_write_json(sets_path, {
        "parameters": {**thresholds, "prevalence": args.prevalence, "rank": args.rank},
        "prevalent": [str(f) for f in prevalent],
        "rare": [str(f) for f in rare],
        "prevalent_abundance": None if abundance is None else {
            str(k): float(v) for k, v in abundance.items()
        },
    })

    print(f"{len(prevalent)} prevalent, {len(rare)} rare of {len(table)} "
          f"{'groups' if args.rank else 'features'}")
    print(f"  Wrote {table_path}")
    print(f"  Wrote {sets_path}")
    return 0
