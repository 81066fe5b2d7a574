"""
Configuration file support for the taxomatrix CLI.

Supports YAML and JSON config files with CLI argument override. A config
file holds the shared input paths at top level and one section per
command:

    input: data/counts.csv
    row_data: data/taxonomy.csv
    output: results/gut
    agglomerate:
      rank: Genus
      drop_missing: true
    prevalence:
      detection: 0.001
      prevalence: 0.1
      as_relative: true
"""

import json
from argparse import Namespace
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from taxomatrix.agglomeration._grouping import REDUCERS
from taxomatrix.core.taxonomy import match_rank
from taxomatrix.stats.normalization import resolve_method


@dataclass
class InputConfig:
    """Shared input/output paths (top level of the config file)."""
    input: Optional[Path] = None
    row_data: Optional[Path] = None
    col_data: Optional[Path] = None
    row_tree: Optional[Path] = None
    output: Optional[Path] = None
    assay: str = "counts"


@dataclass
class AgglomerateConfig:
    """Agglomeration configuration."""
    rank: Optional[str] = None
    drop_missing: bool = True
    reducer: str = "sum"
    update_tree: bool = False
    other_detection: Optional[float] = None
    other_prevalence: Optional[float] = None


@dataclass
class TransformConfig:
    """Assay transform configuration."""
    method: str = "relabundance"
    axis: str = "cols"
    pseudocount: Union[bool, float, None] = None
    name: Optional[str] = None


@dataclass
class PrevalenceConfig:
    """Prevalence configuration."""
    detection: float = 0.0
    prevalence: float = 0.2
    as_relative: bool = False
    include_lowest: bool = False
    rank: Optional[str] = None


@dataclass
class PlotConfig:
    """Plot configuration."""
    kind: str = "abundance"
    rank: Optional[str] = None
    top: int = 10


SECTIONS = {
    "agglomerate": AgglomerateConfig,
    "transform": TransformConfig,
    "prevalence": PrevalenceConfig,
    "plot": PlotConfig,
}

_PATH_KEYS = ("input", "row_data", "col_data", "row_tree", "output")
_SHORT_TO_LONG = {
    'i': 'input',
    'o': 'output',
    'r': 'rank',
    'c': 'config',
}


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid

    Examples:
        >>> config = load_config(Path("pipeline.yaml"))
        >>> print(config['agglomerate']['rank'])
        Genus
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()
    if suffix not in ('.yaml', '.yml', '.json'):
        raise ValueError(
            f"Unsupported config format: {suffix}. "
            f"Use .yaml, .yml, or .json"
        )

    try:
        with open(config_path, 'r') as f:
            if suffix == '.json':
                config = json.load(f)
            else:
                config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}") from e

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config


def _explicit_args(cli_args: Optional[List[str]]) -> set:
    """Names of the options given on the command line (``--no-x`` counts as ``x``)."""
    explicit = set()
    for arg in cli_args or []:
        if arg.startswith('--'):
            name = arg[2:].split('=', 1)[0].replace('-', '_')
            explicit.add(name)
            if name.startswith('no_'):
                explicit.add(name[3:])
        elif arg.startswith('-') and len(arg) == 2 and arg[1] in _SHORT_TO_LONG:
            explicit.add(_SHORT_TO_LONG[arg[1]])
    return explicit


def _config_pseudocount(value: Any) -> Union[bool, float, None]:
    """Pseudocount from a config file: a number, a boolean, or "auto"/"true" (None if invalid)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return True if value.strip().lower() in ("auto", "true") else None
    if isinstance(value, (int, float)) and value >= 0:
        return float(value)
    return None


def _merge_value(cli_value: Any, config_value: Any, was_explicitly_set: bool) -> Any:
    """
    Merge a single config value with a CLI argument.

    Rules:
    - CLI args ALWAYS override config if explicitly set
    - If CLI arg not set, use config value
    - If neither set, keep CLI default
    """
    if was_explicitly_set:
        return cli_value
    if config_value is not None:
        return config_value
    return cli_value


def merge_config_with_args(
    config: Dict[str, Any],
    args: Namespace,
    command: str,
    cli_args: Optional[List[str]] = None,
) -> Namespace:
    """
    Merge config file values with CLI arguments.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments
    2. Config file values (top-level paths, then the ``command`` section)
    3. CLI argument defaults

    Parameters:
        config: Configuration dictionary from load_config()
        args: Parsed CLI arguments
        command: Subcommand whose section applies
        cli_args: Raw CLI arguments (for detecting explicit values).
            If None, all args are treated as defaults.

    Returns:
        New Namespace with merged values

    Examples:
        >>> config = {"input": "counts.csv", "agglomerate": {"rank": "Genus"}}
        >>> args = parser.parse_args(["agglomerate", "--rank", "Family"])
        >>> merged = merge_config_with_args(config, args, "agglomerate",
        ...                                 ["--rank", "Family"])
        >>> merged.input, merged.rank
        (PosixPath('counts.csv'), 'Family')
    """
    explicit = _explicit_args(cli_args)
    merged = Namespace(**vars(args))

    for field_ in fields(InputConfig):
        key = field_.name
        if key not in config or not hasattr(merged, key):
            continue
        value = config[key]
        if value is not None and key in _PATH_KEYS:
            value = Path(value)
        setattr(merged, key, _merge_value(getattr(merged, key), value, key in explicit))

    section = config.get(command) or {}
    for key, value in section.items():
        if key == "pseudocount" and value is not None:
            value = _config_pseudocount(value)
        if hasattr(merged, key):
            setattr(merged, key, _merge_value(getattr(merged, key), value, key in explicit))

    return merged


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Checks that every key belongs to the schema and that choices and
    thresholds are in range.

    Raises:
        ValueError: If configuration is invalid
    """
    allowed = {f.name for f in fields(InputConfig)} | set(SECTIONS)
    unknown = sorted(set(config) - allowed)
    if unknown:
        raise ValueError(f"Unknown config keys: {unknown}. Allowed: {sorted(allowed)}")

    for name, schema in SECTIONS.items():
        section = config.get(name)
        if section is None:
            continue
        if not isinstance(section, dict):
            raise ValueError(f"Config section '{name}' must be a mapping")
        known = {f.name for f in fields(schema)}
        extra = sorted(set(section) - known)
        if extra:
            raise ValueError(f"Unknown keys in '{name}' section: {extra}. Allowed: {sorted(known)}")

    for name in ("agglomerate", "prevalence", "plot"):
        rank = (config.get(name) or {}).get("rank")
        if rank is not None and match_rank(rank) is None:
            raise ValueError(f"Invalid rank '{rank}' in '{name}' section")

    reducer = (config.get("agglomerate") or {}).get("reducer")
    if reducer is not None and reducer not in REDUCERS:
        raise ValueError(
            f"Invalid reducer '{reducer}'. Choose from: {', '.join(REDUCERS)}"
        )

    method = (config.get("transform") or {}).get("method")
    if method is not None:
        resolve_method(method)

    pseudocount = (config.get("transform") or {}).get("pseudocount")
    if pseudocount is not None and _config_pseudocount(pseudocount) is None:
        raise ValueError(
            f"transform.pseudocount must be a non-negative number, true or 'auto', got: {pseudocount}"
        )

    prevalence = config.get("prevalence") or {}
    for key in ("detection", "prevalence"):
        value = prevalence.get(key)
        if value is not None and (not isinstance(value, (int, float)) or value < 0):
            raise ValueError(f"prevalence.{key} must be a non-negative number, got: {value}")
    if isinstance(prevalence.get("prevalence"), (int, float)) and prevalence["prevalence"] > 1:
        raise ValueError(f"prevalence.prevalence must lie in [0, 1], got: {prevalence['prevalence']}")
