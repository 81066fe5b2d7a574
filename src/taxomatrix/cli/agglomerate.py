"""
taxomatrix agglomerate command - Collapse features to a taxonomic rank.

Usage:
    taxomatrix agglomerate --input counts.csv --row-data taxonomy.csv \\
        --rank Genus --output results/genus
    taxomatrix agglomerate --input counts.csv --row-data taxonomy.csv \\
        --rank Phylum --other-detection 0.001 --other-prevalence 0.2 --output results/phylum
"""

import argparse
from datetime import datetime
from pathlib import Path

from taxomatrix.agglomeration import agglomerate_by_prevalence, agglomerate_by_rank
from taxomatrix.agglomeration._grouping import REDUCERS
from taxomatrix.cli._common import add_input_arguments, ensure_parent, load_input, prepare_args
from taxomatrix.cli._validators import _fraction, _rank
from taxomatrix.core.errors import TaxoMatrixError
from taxomatrix.io.writers import write_container
from taxomatrix.stats.summaries import summarize_container
from taxomatrix.utils.fileio import atomic_write_json


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the agglomerate subcommand."""
    parser = subparsers.add_parser(
        "agglomerate",
        help="Collapse features to a taxonomic rank",
        description="Sum (or otherwise reduce) features sharing a taxonomy path up to a rank"
    )
    add_input_arguments(parser)
    parser.add_argument("--rank", "-r", type=_rank, default=None,
                        help="Target rank (Kingdom, Phylum, ..., Species)")
    parser.add_argument("--drop-missing", action=argparse.BooleanOptionalAction, default=True,
                        help="Drop features without a value at the rank (default) or pool them as 'NA'")
    parser.add_argument("--reducer", choices=list(REDUCERS), default="sum",
                        help="How member rows are combined (default: sum)")
    parser.add_argument("--update-tree", action="store_true", default=False,
                        help="Project the row tree onto the aggregated rows")
    parser.add_argument("--other-detection", type=_fraction, default=None,
                        help="Relative detection threshold; groups that are not prevalent are pooled as 'Other'")
    parser.add_argument("--other-prevalence", type=_fraction, default=None,
                        help="Prevalence fraction for the 'Other' pooling (default: 0)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.set_defaults(func=run_agglomerate)


def run_agglomerate(args: argparse.Namespace) -> int:
    """Execute the agglomerate command."""
    args = prepare_args(args, "agglomerate")
    if args is None:
        return 1
    pool_other = args.other_detection is not None or args.other_prevalence is not None
    if args.rank is None and not pool_other:
        print("ERROR: --rank is required (via CLI or config file)")
        return 1

    start_time = datetime.now()
    container = load_input(args)
    if container is None:
        return 1

    try:
        if pool_other:
            result = agglomerate_by_prevalence(
                container,
                args.rank,
                assay_name=args.assay,
                detection=args.other_detection or 0.0,
                prevalence=args.other_prevalence or 0.0,
                as_relative=True,
                drop_missing=args.drop_missing,
                reducer=args.reducer,
            )
        else:
            result = agglomerate_by_rank(
                container,
                args.rank,
                drop_missing=args.drop_missing,
                reducer=args.reducer,
                update_tree=args.update_tree,
            )
    except TaxoMatrixError as e:
        print(f"ERROR: Agglomeration failed: {e}")
        return 1

    ensure_parent(Path(args.output))
    written = write_container(result, args.output)

    params_path = Path(str(args.output) + ".params.json")
    atomic_write_json(params_path, {
        "command": "agglomerate",
        "timestamp": start_time.isoformat(),
        "input": str(args.input),
        "rank": args.rank,
        "drop_missing": args.drop_missing,
        "reducer": args.reducer,
        "update_tree": args.update_tree,
        "other_detection": args.other_detection,
        "other_prevalence": args.other_prevalence,
        "n_features_in": container.n_rows,
        "summary": summarize_container(result, args.assay),
    })

    print(f"Aggregated {container.n_rows} features into {result.n_rows} groups")
    for path in written:
        print(f"  Wrote {path}")
    print(f"  Parameters: {params_path}")
    return 0
