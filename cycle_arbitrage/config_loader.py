"""
Configuration loading for cycle scans.

The scan configuration is YAML; venue definitions are JSON files (one pool
export per file, or a list) referenced from it. Relative venue paths are
resolved against the directory of the configuration file.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

import yaml
from pydantic import TypeAdapter, ValidationError

from dex.venues import Venue, venue_from_definition

from .config_schema import ScanConfig, VenueDefinition
from .exceptions import ConfigurationError, VenueDefinitionError, VenueError
from .utils import get_logger

logger = get_logger(__name__)

_VENUE_LIST = TypeAdapter(List[VenueDefinition])


def load_yaml_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load and parse YAML configuration file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot load {config_path}: {e}") from e

    if config_dict is None:
        raise ConfigurationError(f"Empty configuration file: {config_path}")
    if not isinstance(config_dict, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

    return config_dict


def load_config(config_path: Union[str, Path]) -> ScanConfig:
    """
    Load and validate a scan configuration.

    Raises:
        ConfigurationError: If the file is missing, not YAML, or invalid
    """
    config_path = Path(config_path)
    config_dict = load_yaml_config(config_path)

    try:
        config = ScanConfig.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration in {config_path}: {e}",
            details={"errors": e.errors(include_url=False)},
        ) from e

    base_dir = config_path.parent
    update = {"venue_files": [str(_resolve(base_dir, p)) for p in config.venue_files]}
    if config.accounts_snapshot:
        update["accounts_snapshot"] = str(_resolve(base_dir, config.accounts_snapshot))
    return config.model_copy(update=update)


def _resolve(base_dir: Path, path: str) -> Path:
    candidate = Path(path)
    return candidate if candidate.is_absolute() else base_dir / candidate


def _definition_files(path: Path) -> List[Path]:
    if path.is_dir():
        return sorted(path.glob("*.json"))
    return [path]


def load_venue_definitions(paths: Iterable[Union[str, Path]]) -> List[VenueDefinition]:
    """
    Load venue definitions from JSON files or directories of JSON files.

    Each file holds one definition object or a list of them.

    Raises:
        VenueDefinitionError: If a file is missing, not JSON, or does not
            validate; carries the offending file as source
    """
    definitions: List[VenueDefinition] = []
    for path in paths:
        path = Path(path)
        if not path.exists():
            raise VenueDefinitionError(
                f"Venue definition path not found: {path}", source=str(path)
            )
        for file_path in _definition_files(path):
            definitions.extend(_load_definition_file(file_path))
    return definitions


def _load_definition_file(file_path: Path) -> List[VenueDefinition]:
    try:
        with open(file_path, "r") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise VenueDefinitionError(
            f"Cannot read venue definitions from {file_path}: {e}", source=str(file_path)
        ) from e

    if isinstance(raw, dict):
        raw = [raw]
    try:
        return _VENUE_LIST.validate_python(raw)
    except ValidationError as e:
        raise VenueDefinitionError(
            f"Invalid venue definitions in {file_path}: {e}",
            source=str(file_path),
            details={"errors": e.errors(include_url=False)},
        ) from e


def build_venues(definitions: Iterable[VenueDefinition]) -> List[Venue]:
    """
    Instantiate venues, skipping those this system cannot price.

    A definition raising a venue-local error (unsupported curve type, a
    stable pool without amplification) is logged and left out.
    """
    venues = []
    for definition in definitions:
        try:
            venues.append(venue_from_definition(definition))
        except VenueError as e:
            logger.warning(f"Skipping venue {definition.address}: {e}")
    return venues


def load_venues(config: ScanConfig) -> List[Venue]:
    """Inline venues of the configuration followed by those of venue_files."""
    definitions = list(config.venues) + load_venue_definitions(config.venue_files)
    venues = build_venues(definitions)
    logger.info(f"Loaded {len(venues)} of {len(definitions)} venue definitions")
    return venues
