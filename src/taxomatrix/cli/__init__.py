"""
taxomatrix CLI - Command-line interface for taxonomy-aware abundance tables.

Commands:
    taxomatrix agglomerate  - Collapse features to a taxonomic rank
    taxomatrix transform    - Append a transformed assay
    taxomatrix prevalence   - Prevalence table and core/rare feature sets
    taxomatrix summarize    - Container overview as JSON
    taxomatrix plot         - Composition bar chart or core-size heatmap
"""

import argparse
import sys
from typing import Optional, List


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for taxomatrix."""
    parser = argparse.ArgumentParser(
        prog="taxomatrix",
        description="Taxonomy-aware containers for microbiome abundance data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  agglomerate  Collapse features to a taxonomic rank
  transform    Append a transformed assay (relabundance, clr, rclr, ...)
  prevalence   Per-feature prevalence and prevalent/rare feature sets
  summarize    Dimensions, library sizes, taxonomy coverage and top taxa
  plot         Composition bar chart or core-size heatmap

Examples:
  taxomatrix agglomerate --input counts.csv --row-data taxonomy.csv --rank Genus --output results/genus
  taxomatrix transform --input counts.csv --method clr --pseudocount 1 --output results/clr
  taxomatrix prevalence --input counts.csv --detection 0.001 --as-relative --output results/core
  taxomatrix summarize --config pipeline.yaml
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version="%(prog)s 0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from taxomatrix.cli import agglomerate, plot, prevalence, summarize, transform
    agglomerate.register_parser(subparsers)
    transform.register_parser(subparsers)
    prevalence.register_parser(subparsers)
    summarize.register_parser(subparsers)
    plot.register_parser(subparsers)

    raw_args = list(sys.argv[1:] if args is None else args)
    parsed_args = parser.parse_args(raw_args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    # Options after the command name, for config override detection
    parsed_args.cli_args = raw_args[raw_args.index(parsed_args.command) + 1:]
    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
