# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

import copy
import json
import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "rcapsule.json"


def deep_merge(base: Dict, overlay: Dict) -> Dict:
    """
    Recursive merge of overlay dictionary into base dictionary.
    Modifies base in-place; nested dictionaries are merged key by key,
    every other value is replaced.
    """
    for key, value in overlay.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


class RCapsuleConfig:
    """
    rcapsule configuration manager.
    Holds defaults for image selection, the container working directory,
    the external R runtime and the network endpoints used for lookups.
    """

    DEFAULTS: Dict[str, Any] = {
        "default_image": "rocker/r-ver:latest",
        "container_workdir": "/payload/",
        "self_package": "rcapsule",
        "rscript": "Rscript",
        "execution_timeout": 600,
        "sysreqs_url": "https://sysreqs.r-hub.io",
        "registry_url": "https://registry.hub.docker.com/v2/repositories",
        "catalog": {},
    }

    def __init__(self, config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize RCapsuleConfig.

        Args:
            config_path: Path to a JSON configuration file. Defaults to
                         ``rcapsule.json`` in the current working directory;
                         a missing file means built-in defaults.
            overrides: Values applied on top of file and defaults.
        """
        self.config_path = config_path or os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
        self.config = self.load_config()
        if overrides:
            deep_merge(self.config, overrides)

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from file over the built-in defaults."""
        config = copy.deepcopy(self.DEFAULTS)
        if not os.path.exists(self.config_path):
            return config
        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON in %s, using defaults: %s", self.config_path, e)
            return config
        if not isinstance(data, dict):
            logger.warning("Ignoring %s: top level must be an object", self.config_path)
            return config
        return deep_merge(config, data)

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    @property
    def default_image(self) -> str:
        return self.config["default_image"]

    @property
    def container_workdir(self) -> Optional[str]:
        return self.config["container_workdir"]

    @property
    def self_package(self) -> str:
        return self.config["self_package"]

    @property
    def rscript(self) -> str:
        return self.config["rscript"]

    @property
    def execution_timeout(self) -> int:
        return int(self.config["execution_timeout"])

    @property
    def sysreqs_url(self) -> str:
        return self.config["sysreqs_url"].rstrip("/")

    @property
    def registry_url(self) -> str:
        return self.config["registry_url"].rstrip("/")

    @property
    def catalog_overlay(self) -> Dict[str, Any]:
        """Overlay deep-merged into the bundled image catalog."""
        return self.config.get("catalog", {}) or {}
