import copy
import logging
import os

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"


class Config:
    """Configuration manager that loads from YAML and merges with defaults."""

    DEFAULTS = {
        "server": {
            "host": "127.0.0.1",
            "port": 5000,
            "debug": False,
        },
        "ingest": {
            "max_workers": 8,
            "encoding": "utf-8",
        },
        "analytics": {
            "fill_gaps": False,
        },
        "metrics": {
            "max_points": 500,
        },
        "pagination": {
            "page_size": 50,
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s [LOGPULSE] %(levelname)s %(message)s",
        },
    }

    def __init__(self, config_path=None):
        self._config = copy.deepcopy(self.DEFAULTS)

        if config_path is not None:
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    user_config = yaml.safe_load(f)

                if user_config and isinstance(user_config, dict):
                    self._config = self._deep_merge(self._config, user_config)
            except FileNotFoundError:
                logger.debug("Config file %s not found, using defaults", config_path)
            except yaml.YAMLError:
                logger.warning("Invalid YAML in %s, using defaults", config_path)

    @classmethod
    def from_env(cls):
        """Load the file named by CONFIG_PATH, falling back to ./config.yaml."""
        return cls(os.environ.get("CONFIG_PATH", DEFAULT_CONFIG_PATH))

    @staticmethod
    def _deep_merge(base, override):
        """Recursively merge override dict into base dict."""
        result = copy.deepcopy(base)
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = Config._deep_merge(result[key], value)
            else:
                result[key] = copy.deepcopy(value)
        return result

    def get(self, key, default=None):
        """Get a top-level config key."""
        return self._config.get(key, default)

    def __getitem__(self, key):
        return self._config[key]

    def __contains__(self, key):
        return key in self._config
