"""
taxomatrix transform command - Append a transformed assay.

Usage:
    taxomatrix transform --input counts.csv --method clr --pseudocount 1 --output results/clr
"""

import argparse
from pathlib import Path

from taxomatrix.cli._common import add_input_arguments, ensure_parent, load_input, prepare_args
from taxomatrix.cli._validators import _pseudocount
from taxomatrix.core.errors import TaxoMatrixError
from taxomatrix.io.writers import write_container
from taxomatrix.stats.normalization import TransformMethod, transform_assay
from taxomatrix.utils.fileio import atomic_write_json


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the transform subcommand."""
    parser = subparsers.add_parser(
        "transform",
        help="Append a transformed assay (relabundance, clr, rclr, ...)",
        description="Transform an assay and write the container with the new assay added"
    )
    add_input_arguments(parser)
    parser.add_argument("--method", default="relabundance",
                        help=f"Transform method: {', '.join(m.value for m in TransformMethod)}")
    parser.add_argument("--axis", choices=["cols", "samples", "rows", "features"], default="cols",
                        help="Transform each sample (cols, default) or each feature (rows)")
    parser.add_argument("--pseudocount", type=_pseudocount, default=None,
                        help="Pseudocount for log-based methods; 'auto' = half the smallest positive value")
    parser.add_argument("--name", default=None,
                        help="Name of the new assay (default: the method name)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.set_defaults(func=run_transform)


def run_transform(args: argparse.Namespace) -> int:
    """Execute the transform command."""
    args = prepare_args(args, "transform")
    if args is None:
        return 1

    container = load_input(args)
    if container is None:
        return 1

    params = {}
    if args.pseudocount is not None:
        params["pseudocount"] = args.pseudocount

    try:
        transform_assay(container, args.assay, args.method, args.axis, name=args.name, **params)
    except TaxoMatrixError as e:
        print(f"ERROR: Transform failed: {e}")
        return 1

    ensure_parent(Path(args.output))
    written = write_container(container, args.output)
    params_path = Path(str(args.output) + ".params.json")
    atomic_write_json(params_path, {
        "command": "transform",
        "input": str(args.input),
        "assay": args.assay,
        "method": args.method,
        "axis": args.axis,
        "pseudocount": args.pseudocount,
        "name": args.name or container.assay_names[-1],
    })

    print(f"Added assay '{container.assay_names[-1]}'")
    for path in written:
        print(f"  Wrote {path}")
    return 0
