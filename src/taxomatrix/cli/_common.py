"""
Plumbing shared by every subcommand: input arguments, logging setup,
config merging and container loading.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from taxomatrix.core.container import TaxoMatrix
from taxomatrix.core.errors import TaxoMatrixError
from taxomatrix.io.loaders import load_container

logger = logging.getLogger(__name__)


def add_input_arguments(parser: argparse.ArgumentParser, output_required: bool = True) -> None:
    """Register ``--config`` and the input/output path options."""
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="Path to YAML/JSON config file (optional, CLI args override config values)")
    parser.add_argument("--input", "-i", type=Path, default=None,
                        help="Abundance table CSV (features x samples)")
    parser.add_argument("--row-data", type=Path, default=None,
                        help="Feature annotation CSV (taxonomy ranks as columns)")
    parser.add_argument("--col-data", type=Path, default=None,
                        help="Sample annotation CSV")
    parser.add_argument("--row-tree", type=Path, default=None,
                        help="Feature tree as parent,child[,length] edge list CSV")
    parser.add_argument("--assay", default="counts",
                        help="Name of the loaded assay (default: counts)")
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help="Output base path (without extension)"
                             + ("" if output_required else "; prints to stdout when omitted"))
    parser.set_defaults(output_required=output_required)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )


def prepare_args(args: argparse.Namespace, command: str) -> Optional[argparse.Namespace]:
    """
    Merge the config file (if any) into ``args`` and check required paths.

    Returns:
        The merged namespace, or None after printing an error
    """
    setup_logging(getattr(args, "verbose", False))

    if args.config:
        from taxomatrix.cli.config import load_config, merge_config_with_args, validate_config

        print(f"Loading configuration from: {args.config}")
        try:
            config = load_config(args.config)
            validate_config(config)
            args = merge_config_with_args(config, args, command, getattr(args, "cli_args", None))
        except (FileNotFoundError, ValueError) as e:
            print(f"ERROR: Config file error: {e}")
            return None

    if not args.input:
        print("ERROR: --input is required (via CLI or config file)")
        return None
    if args.output_required and not args.output:
        print("ERROR: --output is required (via CLI or config file)")
        return None
    return args


def load_input(args: argparse.Namespace) -> Optional[TaxoMatrix]:
    """Load the container named by the input arguments, or print why not."""
    try:
        return load_container(
            args.input,
            row_data_path=args.row_data,
            col_data_path=args.col_data,
            row_tree_path=args.row_tree,
            assay_name=args.assay,
        )
    except (FileNotFoundError, ValueError, TaxoMatrixError) as e:
        print(f"ERROR: Failed to load input: {e}")
        return None


def ensure_parent(path: Path) -> None:
    if path.parent != Path('.') and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
