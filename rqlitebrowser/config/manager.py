"""
Loads BrowserSettings from a JSON file and the environment.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import find_dotenv, load_dotenv
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from ..utils.exceptions import ConfigurationError
from .settings import BrowserSettings

DEFAULT_CONFIG_FILE = "rqlitebrowser.json"

# Environment variable -> (section, key); section None means top level
ENV_OVERRIDES = {
    "RQLITE_URL": ("rqlite", "url"),
    "RQLITE_USERNAME": ("rqlite", "username"),
    "RQLITE_PASSWORD": ("rqlite", "password"),
    "RQLITEBROWSER_LOG_LEVEL": ("logging", "level"),
    "RQLITEBROWSER_CONNECTIONS_DB": (None, "connections_db"),
}


class ConfigManager:
    """Resolves settings: defaults < config file < environment"""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        self.config_path = Path(config_path or DEFAULT_CONFIG_FILE)
        self._settings: Optional[BrowserSettings] = None

    @property
    def settings(self) -> BrowserSettings:
        if self._settings is None:
            self._settings = self.load()
        return self._settings

    def load(self) -> BrowserSettings:
        load_dotenv(find_dotenv(usecwd=True))
        data = self._read_file()
        self._apply_env(data)
        try:
            settings = BrowserSettings.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration in {self.config_path}: {e}"
            ) from e
        logger.debug(f"Loaded configuration (rqlite url={settings.rqlite.url})")
        self._settings = settings
        return settings

    def save(self, settings: BrowserSettings) -> Path:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            json.dump(settings.model_dump(mode="json"), f, indent=2)
        self._settings = settings
        return self.config_path

    def _read_file(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            return {}
        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in config file {self.config_path}: {e}"
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {self.config_path} must contain a JSON object"
            )
        return data

    @staticmethod
    def _apply_env(data: Dict[str, Any]) -> None:
        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            if section is None:
                data[key] = value
            else:
                data.setdefault(section, {})[key] = value
