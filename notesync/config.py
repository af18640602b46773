"""
Configuration management for notesync.

Settings live in config.yaml. Values present in the file override the built-in
defaults key by key, so a config file only needs the settings it changes,
typically the user id and the API token.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml

DEFAULT_CONFIG: Dict[str, Any] = {
    "api": {
        "token": "",
        "upload_url": "https://api.onlyever.example/v1/images",
        "timeout": 30.0
    },
    "sync": {
        "user_id": "",
        "sync_flag": "oe_sync",
        "slug_strategy": "ctime",
        "description": "Obsidian vault",
        "source_type": "text",
        "source_category": {
            "category": "notes",
            "sub_category": "obsidian",
            "extension": ".md"
        }
    },
    "parser": {
        "output_format": "blocks",
        "image_extensions": [".png", ".jpg", ".jpeg", ".gif", ".bmp", ".svg", ".webp"],
        "tab_width": 4
    },
    "database": {
        "filename": "notesync.db"
    },
    "paths": {
        "vault_dir": ".",
        "log_file": "notesync.log"
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    }
}

# Settings restricted to a fixed set of values
ALLOWED_VALUES = {
    "sync.slug_strategy": ("ctime", "title"),
    "parser.output_format": ("blocks", "sections"),
}


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of base with override applied section by section."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """
    Loads notesync settings and gives dot-path access to them.
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Load settings from a YAML file.

        Args:
            config_path: Path to the YAML file; defaults apply when it is missing
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        file_config: Dict[str, Any] = {}

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    loaded = yaml.safe_load(f) or {}
                if not isinstance(loaded, dict):
                    raise yaml.YAMLError(f"expected a mapping at the top level, got {type(loaded).__name__}")
                file_config = loaded
                logging.info(f"Configuration loaded from {self.config_path}")
            except (OSError, yaml.YAMLError) as e:
                logging.warning(f"Ignoring invalid configuration {self.config_path}: {e}")
        else:
            logging.info(f"No configuration at {self.config_path}, using defaults")

        self._config = merge_config(DEFAULT_CONFIG, file_config)
        self._check_allowed_values()

    def _check_allowed_values(self) -> None:
        for key_path, allowed in ALLOWED_VALUES.items():
            value = self.get(key_path)
            if value not in allowed:
                default = self._lookup(DEFAULT_CONFIG, key_path)
                logging.warning(f"{key_path} must be one of {', '.join(allowed)}, got {value!r}; using {default!r}")
                section, key = key_path.split('.')
                if not isinstance(self._config.get(section), dict):
                    self._config[section] = copy.deepcopy(DEFAULT_CONFIG[section])
                self._config[section][key] = default

    @staticmethod
    def _lookup(data: Dict[str, Any], key_path: str, default: Any = None) -> Any:
        value: Any = data
        for key in key_path.split('.'):
            if not isinstance(value, dict) or key not in value:
                return default
            value = value[key]
        return value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a setting by its dot-separated path.

        Args:
            key_path: Path such as "sync.user_id"
            default: Returned when the path does not exist

        Examples:
            config.get("parser.output_format")  # "blocks"
            config.get("sync.source_category.sub_category")  # "obsidian"
        """
        return self._lookup(self._config, key_path, default)

    def get_section(self, section: str) -> Dict[str, Any]:
        """Return one top-level section, or an empty dict."""
        return self._config.get(section, {})

    def reload(self) -> None:
        """Re-read the configuration file."""
        self._load_config()

    @property
    def api_token(self) -> str:
        """Bearer token for the image upload API."""
        return self.get("api.token") or ""

    @property
    def upload_url(self) -> str:
        return self.get("api.upload_url")

    @property
    def api_timeout(self) -> float:
        """HTTP timeout in seconds."""
        return float(self.get("api.timeout"))

    @property
    def user_id(self) -> str:
        """Id of the syncing user; every slug starts with it."""
        return self.get("sync.user_id") or ""

    @property
    def sync_flag(self) -> str:
        """Front matter key that marks a note for sync."""
        return self.get("sync.sync_flag")

    @property
    def slug_strategy(self) -> str:
        """'ctime' or 'title'."""
        return self.get("sync.slug_strategy")

    @property
    def source_category(self) -> Dict[str, str]:
        return self.get("sync.source_category")

    @property
    def output_format(self) -> str:
        """'blocks' for the block tree, 'sections' for heading sections."""
        return self.get("parser.output_format")

    @property
    def image_extensions(self) -> List[str]:
        return self.get("parser.image_extensions")

    @property
    def tab_width(self) -> int:
        """Spaces a tab counts for when nesting list items."""
        return int(self.get("parser.tab_width"))

    @property
    def database_filename(self) -> str:
        return self.get("database.filename")

    @property
    def vault_directory(self) -> str:
        return self.get("paths.vault_dir")

    @property
    def log_filename(self) -> str:
        return self.get("paths.log_file")


# Global configuration instance
config = ConfigManager()


def get_config() -> ConfigManager:
    """Return the configuration loaded from ./config.yaml."""
    return config
