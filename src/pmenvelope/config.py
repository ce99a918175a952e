"""Configuration management for pmenvelope."""

import logging
import os
import tomllib

from pathlib import Path
from typing import Any

import tomli_w

from pydantic import ValidationError

from pmenvelope.analysis.params import DEFAULT_PARAMS, AnalysisParams
from pmenvelope.constants import DEFAULT_CONFIG_DIR, DEFAULT_CONFIG_FILE

logger = logging.getLogger(__name__)

PARAM_SECTIONS = ("baseline", "detection", "response", "first_response", "rtb")


def get_config_path() -> Path:
    """
    Get the path to the configuration file.

    Returns:
        Path to ~/.pmenvelope/params.toml
    """
    return DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE


def load_config(path: Path | None = None) -> dict[str, Any]:
    """
    Load configuration from TOML file.

    Args:
        path: File to read (default: get_config_path())

    Returns:
        Configuration dictionary. Returns empty dict if file doesn't exist
        or is corrupted.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        return {}

    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except Exception as e:
        logger.warning(f"Failed to load config from {config_path}: {e}")
        logger.warning("Treating config as empty. Fix or delete the file to resolve.")
        return {}


def save_config(config: dict[str, Any], path: Path | None = None) -> None:
    """
    Save configuration to TOML file using atomic write.

    Creates the parent directory if it doesn't exist.
    Uses temp file + rename for atomic operation.

    Args:
        config: Configuration dictionary to save
        path: File to write (default: get_config_path())

    Raises:
        PermissionError: If directory cannot be created or file cannot be written
    """
    config_path = path or get_config_path()

    config_dir = config_path.parent
    try:
        os.makedirs(config_dir, exist_ok=True)
    except PermissionError as e:
        raise PermissionError(
            f"Cannot create config directory {config_dir}: {e}"
        ) from e

    temp_path = config_path.with_suffix(".toml.tmp")

    try:
        with open(temp_path, "wb") as f:
            tomli_w.dump(config, f)

        os.replace(temp_path, config_path)

    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def load_params(path: Path | None = None) -> AnalysisParams:
    """
    Resolve analysis parameters from the config file.

    Only the parameter sections are read; other tables (e.g. [logging]) are
    ignored. Options missing from the file keep their defaults.

    Args:
        path: File to read (default: get_config_path())

    Returns:
        Fully populated AnalysisParams

    Raises:
        ValueError: If the file holds unknown or out-of-range options
    """
    config = load_config(path)
    data = {key: config[key] for key in PARAM_SECTIONS if key in config}
    if "params_version" in config:
        data["params_version"] = config["params_version"]

    if not data:
        return DEFAULT_PARAMS

    try:
        return AnalysisParams.from_mapping(data)
    except ValidationError as e:
        raise ValueError(f"Invalid analysis parameters in config: {e}") from e


def save_params(params: AnalysisParams, path: Path | None = None) -> None:
    """
    Write analysis parameters to the config file, keeping other tables.

    Args:
        params: Parameters to store
        path: File to write (default: get_config_path())
    """
    config = load_config(path)
    config.update(params.to_mapping())
    save_config(config, path)
