# EVALSYNC Configuration Module
# Handles YAML-based configuration loading, validation, and defaults

from evalsync.config.defaults import DEFAULT_CONFIG, generate_default_config, get_default_config
from evalsync.config.loader import (
    ensure_config_exists,
    get_config_path,
    load_config,
    load_or_create_config,
    save_config,
    validate_config_file,
)
from evalsync.config.schema import (
    CredentialConfig,
    EvalsyncConfig,
    NotificationConfig,
    OutputConfig,
    RemoteConfig,
    ReplayConfig,
    SessionInvalidPolicy,
    StorageConfig,
)

__all__ = [
    # Schema
    "EvalsyncConfig",
    "RemoteConfig",
    "StorageConfig",
    "CredentialConfig",
    "ReplayConfig",
    "NotificationConfig",
    "OutputConfig",
    "SessionInvalidPolicy",
    # Loader
    "load_config",
    "load_or_create_config",
    "save_config",
    "get_config_path",
    "ensure_config_exists",
    "validate_config_file",
    # Defaults
    "DEFAULT_CONFIG",
    "get_default_config",
    "generate_default_config",
]
