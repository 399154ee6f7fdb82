"""
This module loads the library config at import time, validates it and does the
initial log config. It also holds the helper that reads the configuration blob
which is handed to the self-managed package from the environment.
"""

# Standard
from typing import Optional
import json
import os

# First Party
import aconfig
import alog

# Local
from ..exceptions import ConfigError
from .validation import get_invalid_params

log = alog.use_channel("CONFG")

# Read the library config, allowing env overrides
library_config = aconfig.Config.from_yaml(
    os.path.join(os.path.dirname(__file__), "config.yaml"),
    override_env_vars=True,
)

# Parse the validation file, not allowing env overrides
validation_config = aconfig.Config.from_yaml(
    os.path.join(os.path.dirname(__file__), "config_validation.yaml"),
    override_env_vars=False,
)

# Validate the loaded config values
invalid_params = get_invalid_params(library_config, validation_config)
assert (
    not invalid_params
), f"Library configuration found invalid values: {invalid_params}"

# Do initial alog configuration
alog.configure(
    default_level=library_config.log_level,
    filters=library_config.log_filters,
    formatter="json" if library_config.log_json else "pretty",
    thread_id=library_config.log_thread_id,
)


def get_environment_package_config(env_var: Optional[str] = None) -> Optional[dict]:
    """Read the JSON configuration blob for the self-managed package from the
    environment

    Args:
        env_var:  Optional[str]
            The variable to read. Defaults to bootstrap.config_env_var

    Returns:
        package_config:  Optional[dict]
            The parsed configuration or None if the variable is unset or empty
    """
    env_var = env_var or library_config.bootstrap.config_env_var
    raw_config = os.environ.get(env_var, "").strip()
    if not raw_config:
        log.debug2("No package config found in %s", env_var)
        return None
    try:
        package_config = json.loads(raw_config)
    except json.JSONDecodeError as err:
        raise ConfigError(f"Invalid JSON in {env_var}: {err}") from err
    if not isinstance(package_config, dict):
        raise ConfigError(f"Package config in {env_var} must be a JSON object")
    log.debug("Loaded package config from %s", env_var)
    return package_config
