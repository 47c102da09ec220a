# EVALSYNC Default Configuration
# Full default configuration as Python dict and YAML generator

import copy
from typing import Any

import yaml

DEFAULT_CONFIG: dict[str, Any] = {
    "remote": {
        "base_url": "https://api.instorm.io",
        "evaluation_endpoint": "/evaluations",
        "timeout": 30.0,
        "idempotency_header": "Idempotency-Key",
    },
    "storage": {
        "directory": "~/.local/share/evalsync",
        "queue_file": "queue.yaml",
        "connectivity_file": "connectivity.yaml",
        "max_items": None,
        "quarantine_corrupt": False,
    },
    "credentials": {
        "token_file": "~/.config/evalsync/token",
        "segment_count": 3,
        "on_session_invalid": "freeze",
    },
    "replay": {
        "delay_seconds": 30.0,
    },
    "notifications": {
        "enabled": True,
        "notify_on_offline": True,
    },
    "output": {
        "verbose": False,
        "colored": True,
        "log_level": "WARNING",
        "log_file": None,
    },
}


def get_default_config() -> dict[str, Any]:
    """Return a deep copy of the default configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


def generate_default_config() -> str:
    """Generate default configuration as YAML string with comments."""
    header = """# EVALSYNC - Offline evaluation queue configuration
# Version: 1.0
#
# remote:        where queued evaluations and record edits are replayed
# storage:       where the offline queue is kept between runs
# credentials:   live token source and behaviour on session expiry
#   on_session_invalid:
#     - freeze: keep items pending until the user signs in again
#     - fail:   move pending items to failed and report them
# replay:        delay before a deferred replay attempt
# notifications: user-facing notices for terminal outcomes

"""
    return header + yaml.dump(DEFAULT_CONFIG, default_flow_style=False, sort_keys=False, allow_unicode=True)
