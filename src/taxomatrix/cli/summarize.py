"""
taxomatrix summarize command - Container overview as JSON.

Usage:
    taxomatrix summarize --input counts.csv --row-data taxonomy.csv
    taxomatrix summarize --input counts.csv --top 10 --output results/overview
"""

import argparse
import json
from pathlib import Path

from taxomatrix.cli._common import add_input_arguments, ensure_parent, load_input, prepare_args
from taxomatrix.cli._validators import _positive_int, _rank
from taxomatrix.core.errors import TaxoMatrixError
from taxomatrix.stats.summaries import get_dominant_features, get_top_features, summarize_container
from taxomatrix.utils.fileio import atomic_write_json


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the summarize subcommand."""
    parser = subparsers.add_parser(
        "summarize",
        help="Dimensions, library sizes, taxonomy coverage and top taxa",
        description="Summarize a container; prints JSON unless --output is given"
    )
    add_input_arguments(parser, output_required=False)
    parser.add_argument("--top", type=_positive_int, default=5,
                        help="Number of most abundant features to list (default: 5)")
    parser.add_argument("--rank", "-r", type=_rank, default=None,
                        help="Report dominant taxa at this rank")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.set_defaults(func=run_summarize)


def run_summarize(args: argparse.Namespace) -> int:
    """Execute the summarize command."""
    args = prepare_args(args, "summarize")
    if args is None:
        return 1

    container = load_input(args)
    if container is None:
        return 1

    try:
        summary = summarize_container(container, args.assay)
        summary["top_features"] = [str(f) for f in get_top_features(container, args.assay, top=args.top)]
        dominant = get_dominant_features(container, args.assay, rank=args.rank)
        summary["dominant"] = {str(k): str(v) for k, v in dominant.items()}
    except TaxoMatrixError as e:
        print(f"ERROR: Summary failed: {e}")
        return 1

    if args.output is None:
        print(json.dumps(summary, indent=2))
        return 0

    summary_path = Path(str(args.output) + ".summary.json")
    ensure_parent(summary_path)
    atomic_write_json(summary_path, summary)
    print(f"Wrote {summary_path}")
    return 0
