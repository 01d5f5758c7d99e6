"""Configuration helpers for the CRM command line and engine."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import CRMError
from .io import DEFAULT_EXPORT_PREFIX, TEMPLATE_FILENAME
from .models import DEFAULT_PIN

LOGGER = logging.getLogger(__name__)


class ConfigurationError(CRMError, RuntimeError):
    """Raised when configuration files are missing or malformed."""


_SUPPORTED_EXTENSIONS = {".json", ".yaml", ".yml"}


def load_configuration(path: str | Path) -> Dict[str, Any]:
    """Load configuration data from a JSON or YAML file."""

    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"Configuration file '{file_path}' was not found")

    if file_path.suffix.lower() not in _SUPPORTED_EXTENSIONS:
        raise ConfigurationError(
            f"Unsupported configuration format '{file_path.suffix}'. Supported extensions: {sorted(_SUPPORTED_EXTENSIONS)}"
        )

    text = file_path.read_text(encoding="utf-8")
    if file_path.suffix.lower() == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Configuration file '{file_path}' is not valid JSON: {exc}") from exc
    else:
        import yaml

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Configuration file '{file_path}' is not valid YAML: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file '{file_path}' must contain a mapping")
    return data


@dataclass
class CRMSettings:
    """Runtime settings read from the ``crm`` section of a configuration file."""

    store_path: str = "crm-data.json"
    hide_dnc: bool = True
    default_pin: str = DEFAULT_PIN
    export_prefix: str = DEFAULT_EXPORT_PREFIX
    template_filename: str = TEMPLATE_FILENAME
    default_delete_reason: str = "Not interested"
    log_level: str = "INFO"

    @classmethod
    def from_mapping(cls, config: Optional[Mapping[str, Any]]) -> "CRMSettings":
        section = (config or {}).get("crm", {}) or {}
        if not isinstance(section, Mapping):
            raise ConfigurationError("The 'crm' configuration section must be a mapping")
        known = {item.name for item in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in section.items():
            if key not in known:
                LOGGER.debug("Ignoring unknown configuration key %s", key)
                continue
            values[key] = value
        settings = cls(**values)
        settings.hide_dnc = bool(settings.hide_dnc)
        settings.default_pin = str(settings.default_pin)
        return settings

    @classmethod
    def load(cls, path: Optional[str | Path]) -> "CRMSettings":
        if path is None:
            return cls()
        return cls.from_mapping(load_configuration(path))


__all__ = ["CRMSettings", "ConfigurationError", "load_configuration"]
