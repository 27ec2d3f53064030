import os
import re
from pathlib import Path
from typing import Optional, Type, TypeVar

import yaml
from loguru import logger
from pydantic import BaseModel

from planpilot.config.schema import PlanpilotConfig
from planpilot.constants import DEFAULT_CONFIG_PATH, ENV_CONFIG

T = TypeVar("T", bound=BaseModel)


def expand_env_vars(config: object) -> object:
    """Recursively replace ${VAR} patterns with environment variable values.

    Unknown variables are left untouched.
    """
    if isinstance(config, dict):
        return {k: expand_env_vars(v) for k, v in config.items()}
    if isinstance(config, list):
        return [expand_env_vars(item) for item in config]
    if isinstance(config, str):

        def replace_env_var(match: re.Match[str]) -> str:
            return os.getenv(match.group(1), match.group(0))

        return re.sub(r"\$\{([^}]+)\}", replace_env_var, config)
    return config


def _warn_unknown_keys(model: BaseModel, path: str, config_path: Path) -> None:
    """Recursively warn about unknown keys in a model and its nested models."""
    if model.model_extra:
        logger.warning(
            "Unknown config keys",
            section=path,
            config_path=str(config_path),
            keys=list(model.model_extra.keys()),
        )

    for field_name, field_value in model.__dict__.items():
        if isinstance(field_value, BaseModel):
            _warn_unknown_keys(field_value, f"{path}.{field_name}", config_path)


def load_config(path: Path, model_class: Type[T]) -> T:
    """Load and validate configuration from a YAML file.

    Args:
        path: Path to the planpilot.yml file.
        model_class: The Pydantic model class to use for validation.

    Returns:
        The validated configuration model. A missing or unreadable file
        yields the model defaults.
    """
    if not path.exists():
        return model_class()

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to read config file", config_path=str(path), error=str(e))
        return model_class()

    expanded = expand_env_vars(raw)
    model = model_class.model_validate(expanded)
    _warn_unknown_keys(model, "root", path)
    return model


def default_config_path() -> Path:
    override = os.environ.get(ENV_CONFIG)
    return Path(override or DEFAULT_CONFIG_PATH).expanduser()


def load_planpilot_config(path: Optional[Path] = None) -> PlanpilotConfig:
    """Load the user-level planpilot configuration."""
    return load_config(path or default_config_path(), PlanpilotConfig)
