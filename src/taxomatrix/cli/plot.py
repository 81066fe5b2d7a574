"""
taxomatrix plot command - Composition bar chart or core-size heatmap.

Usage:
    taxomatrix plot --input counts.csv --row-data taxonomy.csv --rank Phylum \\
        --output figures/phylum.pdf
    taxomatrix plot --input counts.csv --kind prevalence-heatmap --output figures/core.png
"""

import argparse
from pathlib import Path

import matplotlib

from taxomatrix.cli._common import add_input_arguments, load_input, prepare_args
from taxomatrix.cli._validators import _positive_int, _rank
from taxomatrix.core.errors import TaxoMatrixError


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the plot subcommand."""
    parser = subparsers.add_parser(
        "plot",
        help="Composition bar chart or core-size heatmap",
        description="Render a read-only plot of the container to a file (png, pdf or svg)"
    )
    add_input_arguments(parser)
    parser.add_argument("--kind", choices=["abundance", "prevalence-heatmap"], default="abundance",
                        help="Plot type (default: abundance)")
    parser.add_argument("--rank", "-r", type=_rank, default=None,
                        help="Agglomerate to this rank before plotting")
    parser.add_argument("--top", type=_positive_int, default=10,
                        help="Taxa drawn individually in the abundance plot (default: 10)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.set_defaults(func=run_plot)


def run_plot(args: argparse.Namespace) -> int:
    """Execute the plot command."""
    args = prepare_args(args, "plot")
    if args is None:
        return 1

    matplotlib.use("Agg")
    from taxomatrix.viz.composition import plot_abundance, plot_prevalence_heatmap

    container = load_input(args)
    if container is None:
        return 1

    try:
        if args.kind == "abundance":
            figure = plot_abundance(container, args.assay, rank=args.rank, top=args.top)
        else:
            figure = plot_prevalence_heatmap(container, args.assay, rank=args.rank)
    except TaxoMatrixError as e:
        print(f"ERROR: Plot failed: {e}")
        return 1

    try:
        path = figure.save(Path(args.output))
    finally:
        figure.close()
    print(f"Wrote {path}")
    return 0
