import os
import logging
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import constants
from .exceptions import (
    ConfigFileMissingError,
    ConfigParsingError,
    ConfigValidationError,
)

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    """
        Class Config-Validation Model describing the runtime settings of hostconf
    """
    root: str = "/"
    lock_timeout: float = Field(constants.DEFAULT_LOCK_TIMEOUT, gt=0)
    default_perm: int = constants.DEFAULT_PERM
    watch_queue_size: int = Field(constants.DEFAULT_WATCH_QUEUE_SIZE, gt=0)
    task_dir: str = constants.TASK_DIR
    proc_net_dev: str = constants.PROC_NET_DEV
    sys_class_net: str = constants.SYS_CLASS_NET
    ifupdown2_marker: str = constants.IFUPDOWN2_MARKER
    zoneinfo_dir: str = constants.ZONEINFO_DIR
    log_levels: Dict[str, str] = Field(default_factory=dict)
    model_config = ConfigDict(extra="forbid")

    @field_validator("default_perm", mode="before")
    @classmethod
    def parse_octal_perm(cls, value: Any) -> Any:
        """Accept '0640' style strings next to plain integers."""
        if isinstance(value, str):
            try:
                return int(value, 8)
            except ValueError:
                raise ValueError(f"'{value}' is not an octal file mode")
        return value

    @field_validator("root")
    @classmethod
    def check_root_absolute(cls, value: str) -> str:
        if not os.path.isabs(value):
            raise ValueError(f"root '{value}' must be an absolute path")
        return value

    def host_path(self, path: str) -> str:
        """Map an absolute host path below the configured root."""
        if self.root == "/":
            return path
        return os.path.join(self.root, path.lstrip("/"))


def load_settings(path: Optional[str] = None, **overrides: Any) -> Settings:
    """
    Load settings from a YAML file, falling back to defaults.

    Args:
        path: Explicit configuration file. A missing explicit file is an error;
            when omitted, the default location is used only if it exists.
        overrides: Values taking precedence over the file (e.g. from the CLI).

    Returns:
        Settings: the validated settings
    """
    raw: Dict[str, Any] = {}
    if path is not None:
        raw = _load_raw_config(path)
    elif os.path.exists(constants.DEFAULT_CONFIG_FILE):
        raw = _load_raw_config(constants.DEFAULT_CONFIG_FILE)

    raw.update({k: v for k, v in overrides.items() if v is not None})
    try:
        settings = Settings.model_validate(raw)
    except ValidationError as e:
        raise ConfigValidationError(f"Configuration validation failed:\n{e}")
    logger.debug(f"Settings loaded: {settings.model_dump()}")
    return settings


def _load_raw_config(path: str) -> Dict[str, Any]:
    logger.info(f"Loading configuration from '{path}'...")
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except FileNotFoundError:
        raise ConfigFileMissingError(f"Configuration file not found at: {path}")
    except yaml.YAMLError as e:
        raise ConfigParsingError(f"Error parsing YAML file: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigParsingError("Configuration file must be a YAML document containing a dictionary.")
    logger.debug(f"Successfully parsed YAML from '{path}'.")
    return data
