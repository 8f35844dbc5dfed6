"""
load the config from config.yaml and environment variables
"""

import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict

import yaml

DEFAULT_CONFIG_PATH = "config.yaml"


class Config:
    """Configuration loader that reads from config.yaml and environment variables."""

    # Environment variable -> nested config location
    env_mappings = {
        "MONGO_URL": ("mongodb", "uri"),
        "MONGO_DATABASE": ("mongodb", "database"),
        "BLOBSTORE_BACKEND": ("blobstore", "backend"),
        "BLOBSTORE_PATH": ("blobstore", "path"),
        "S3_BUCKET": ("blobstore", "bucket"),
        "S3_PREFIX": ("blobstore", "prefix"),
        "AWS_REGION": ("blobstore", "region"),
        "FETCHER_USER_AGENT": ("fetcher", "user_agent"),
        "FETCHER_TIMEOUT": ("fetcher", "timeout"),
        "CRAWLER_WORKERS": ("crawler", "workers"),
        "CRAWLER_STALE_SECONDS": ("crawler", "stale_seconds"),
        "LOG_LEVEL": ("logging", "level"),
        "LOG_JSON": ("logging", "json"),
    }

    # values kept verbatim even when they look numeric
    string_vars = {"MONGO_DATABASE", "BLOBSTORE_PATH", "S3_BUCKET", "S3_PREFIX", "AWS_REGION", "FETCHER_USER_AGENT"}

    def __init__(self, config_path: str = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to the YAML file. Falls back to $WEBARCHIVE_CONFIG,
                        then ./config.yaml.
        """
        if config_path is None:
            config_path = os.getenv("WEBARCHIVE_CONFIG", DEFAULT_CONFIG_PATH)

        self.config_path = Path(config_path)
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file and override with environment variables."""
        try:
            with open(self.config_path, "r") as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        return self._apply_env_overrides(config)

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        for env_var, config_path in self.env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is None:
                continue
            current = config
            for key in config_path[:-1]:
                if not isinstance(current.get(key), dict):
                    current[key] = {}
                current = current[key]
            if env_var in self.string_vars:
                current[config_path[-1]] = env_value
            else:
                current[config_path[-1]] = self._convert_env_value(env_value)

        return config

    def _convert_env_value(self, value: str):
        """Convert environment variable string to appropriate Python type."""
        if value.lower() in ("true", "false"):
            return value.lower() == "true"

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def get(self, *keys, default=None):
        """Get configuration value by nested keys, e.g. get('crawler', 'workers')."""
        current = self._config
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return current

    @property
    def mongodb(self) -> Dict[str, Any]:
        return self.get("mongodb", default={})

    @property
    def blobstore(self) -> Dict[str, Any]:
        return self.get("blobstore", default={})

    @property
    def fetcher(self) -> Dict[str, Any]:
        return self.get("fetcher", default={})

    @property
    def crawler(self) -> Dict[str, Any]:
        return self.get("crawler", default={})

    @property
    def logging(self) -> Dict[str, Any]:
        return self.get("logging", default={})

    @property
    def stale_duration(self) -> timedelta:
        """How old a fetch may get before the URL is due again."""
        return timedelta(seconds=float(self.get("crawler", "stale_seconds", default=86400)))
