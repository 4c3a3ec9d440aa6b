"""Configuration loader for the publishing pipeline.

Pipeline settings (transcode ladder, thresholds, schedules) live in
``config/publishing.yaml``. Missing sections fall back to the model defaults.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from app.config import PublishingConfig
from app.core.config import get_config
from app.core.exceptions import ConfigError, ConfigNotFoundError, ConfigValidationError
from app.core.logging import get_logger

logger = get_logger(__name__)

# Base config directory (project root/config)
_CONFIG_BASE_DIR = Path(__file__).parent.parent.parent / "config"

DEFAULT_PUBLISHING_CONFIG_PATH = _CONFIG_BASE_DIR / "publishing.yaml"


def load_publishing_config(path: Path | str | None = None) -> PublishingConfig:
    """Load and validate the pipeline configuration.

    When no path is given and the default file does not exist, the model
    defaults are returned.

    Args:
        path: Explicit YAML path

    Returns:
        Validated PublishingConfig

    Raises:
        ConfigNotFoundError: If an explicit path does not exist
        ConfigError: If the YAML cannot be parsed
        ConfigValidationError: If the content does not match the schema
    """
    if path is None:
        if not DEFAULT_PUBLISHING_CONFIG_PATH.exists():
            logger.debug("No publishing config file, using defaults")
            return PublishingConfig()
        config_path = DEFAULT_PUBLISHING_CONFIG_PATH
    else:
        config_path = Path(path)
        if not config_path.exists():
            logger.error("Config file not found", path=str(config_path))
            raise ConfigNotFoundError(str(config_path))

    data = _load_yaml_file(config_path, "publishing")
    try:
        return PublishingConfig.model_validate(data)
    except ValidationError as e:
        logger.error("Publishing config validation failed", path=str(config_path))
        raise ConfigValidationError(
            f"Invalid publishing config in {config_path}",
            errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
        ) from e


@lru_cache(maxsize=1)
def get_publishing_config() -> PublishingConfig:
    """Get the cached pipeline configuration.

    Reads ``PUBLISHING_CONFIG_PATH`` when set, else the default location.
    """
    return load_publishing_config(get_config().publishing_config_path)


def _load_yaml_file(path: Path, name: str) -> dict[str, Any]:
    """Load a YAML file from disk.

    Args:
        path: Path to the YAML file.
        name: Human-readable name for error messages.

    Returns:
        Parsed YAML content as dictionary (empty for an empty file).

    Raises:
        ConfigError: If parsing fails or the top level is not a mapping.
    """
    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("YAML parsing failed", name=name, path=str(path), error=str(e))
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(f"Config file must contain a YAML object: {path}")

    logger.debug("Loaded config file", name=name, path=str(path))
    return content


__all__ = [
    "DEFAULT_PUBLISHING_CONFIG_PATH",
    "get_publishing_config",
    "load_publishing_config",
]
