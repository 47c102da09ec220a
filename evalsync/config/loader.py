# EVALSYNC Configuration Loader
# Locate, read, validate and write the YAML configuration

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ValidationError

from evalsync.config.defaults import generate_default_config, get_default_config
from evalsync.config.schema import EvalsyncConfig
from evalsync.utils.paths import atomic_write

CONFIG_ENV = "EVALSYNC_CONFIG"
SECTIONS = tuple(EvalsyncConfig.model_fields)


def get_config_dir() -> Path:
    """Get the EVALSYNC configuration directory."""
    return Path.home() / ".config" / "evalsync"


def get_config_path() -> Path:
    """Get the configuration file path; ``$EVALSYNC_CONFIG`` wins over the default."""
    override = os.environ.get(CONFIG_ENV)
    if override:
        return Path(os.path.expandvars(override)).expanduser()
    return get_config_dir() / "config.yaml"


def load_config(config_path: Optional[Path] = None) -> EvalsyncConfig:
    """
    Load configuration from YAML file.

    Sections and keys missing from the file take their default values.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        EvalsyncConfig: Validated configuration object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        yaml.YAMLError: If the file isn't valid YAML.
        ValidationError: If a value is invalid.
    """
    config_path = config_path or get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\nRun 'evalsync config init' to create one."
        )

    data = _read_yaml(config_path) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")
    return EvalsyncConfig.model_validate(_merge_with_defaults(data))


def save_config(config: EvalsyncConfig, config_path: Optional[Path] = None) -> Path:
    """
    Write configuration to YAML, replacing the file atomically.

    Returns:
        Path: Path where config was saved.
    """
    config_path = config_path or get_config_path()
    # mode="json" turns enums into their plain values
    content = yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False, allow_unicode=True)
    atomic_write(config_path, content)
    return config_path


def ensure_config_exists(config_path: Optional[Path] = None, *, overwrite: bool = False) -> tuple[Path, bool]:
    """
    Create the commented default configuration unless a file is already there.

    Args:
        config_path: Optional path to config file. Uses default if not provided.
        overwrite: Replace an existing file with the defaults.

    Returns:
        Tuple of (config_path, was_written).
    """
    config_path = config_path or get_config_path()
    if config_path.exists() and not overwrite:
        return config_path, False

    atomic_write(config_path, generate_default_config())
    return config_path, True


def load_or_create_config(config_path: Optional[Path] = None) -> tuple[EvalsyncConfig, bool]:
    """
    Load config, creating the default file first when there is none.

    Returns:
        Tuple of (config, was_created).
    """
    config_path, created = ensure_config_exists(config_path)
    return load_config(config_path), created


def validate_config_file(config_path: Optional[Path] = None) -> tuple[bool, list[str]]:
    """
    Check a configuration file and collect every problem found.

    Unknown sections and keys are reported as errors, since a misspelt
    key would otherwise silently fall back to its default.

    Args:
        config_path: Path to config file to validate.

    Returns:
        Tuple of (is_valid, error_messages).
    """
    config_path = config_path or get_config_path()
    if not config_path.exists():
        return False, [f"Configuration file not found: {config_path}"]

    try:
        data = _read_yaml(config_path)
    except yaml.YAMLError as e:
        return False, [f"Invalid YAML syntax: {e}"]

    if data is None:
        return False, ["Configuration file is empty"]
    if not isinstance(data, dict):
        return False, ["Configuration root must be a mapping"]

    errors = _unknown_keys(data)
    try:
        EvalsyncConfig.model_validate(_merge_with_defaults(data))
    except ValidationError as e:
        for error in e.errors():
            location = " -> ".join(str(part) for part in error["loc"])
            errors.append(f"{location}: {error['msg']}")

    return not errors, errors


def _read_yaml(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)


def _unknown_keys(data: dict) -> list[str]:
    errors: list[str] = []
    for section, value in data.items():
        if section not in SECTIONS:
            errors.append(f"Unknown section '{section}'")
            continue
        model: type[BaseModel] = EvalsyncConfig.model_fields[section].annotation
        if isinstance(value, dict):
            errors.extend(f"Unknown key '{section}.{key}'" for key in value if key not in model.model_fields)
    return errors


def _merge_with_defaults(data: dict) -> dict:
    """Overlay each section of the file on the default section."""
    merged = get_default_config()
    for section in SECTIONS:
        value = data.get(section)
        if isinstance(value, dict):
            merged[section] = {**merged[section], **value}
        elif value is not None:
            # Wrong type: leave it to validation to report
            merged[section] = value
    return merged
