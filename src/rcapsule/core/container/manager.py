# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""
Base image catalog.

This module provides ImageCatalog which:
- Knows the supported base images and the platform each is built on
- Knows which R packages each base image already ships
- Removes pre-installed packages from an install manifest
"""

import copy
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from rcapsule.core.detector.types import Manifest, Provenance
from rcapsule.utils.config import deep_merge
from rcapsule.utils.path_helper import get_resource_path
from rcapsule.utils.reporter import Reporter

from .instructions import From

logger = logging.getLogger(__name__)

DEFINITIONS_FILE = get_resource_path("container/definitions/images.json")


def normalize_pkg_name(name: str) -> str:
    """Super-normalize package name: lowercase, hyphens to underscores, dots removed."""
    return name.lower().replace("-", "_").replace(".", "")


class ImageCatalog:
    """
    Metadata about base images, loaded from the bundled definitions with an
    optional overlay (typically the ``catalog`` section of rcapsule.json)
    deep-merged on top.
    """

    def __init__(self, overlay: Optional[Dict] = None, definitions_path: Optional[Path] = None):
        self.definitions_path = Path(definitions_path) if definitions_path else DEFINITIONS_FILE
        self._overlay = overlay or {}
        self._metadata = None

    def get_catalog_info(self) -> Dict:
        """Return the loaded catalog metadata (including overlays)."""
        return self._load_metadata()

    def _load_metadata(self) -> Dict:
        if self._metadata is not None:
            return self._metadata

        with open(self.definitions_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if self._overlay:
            deep_merge(data, copy.deepcopy(self._overlay))
            logger.debug("Catalog overlay applied: %s", ", ".join(self._overlay))

        self._metadata = data
        return self._metadata

    def _images(self) -> Dict[str, Dict]:
        return self._load_metadata().get("images", {})

    def supported_images(self) -> List[str]:
        return sorted(self._images())

    def is_supported(self, image: From) -> bool:
        return image.image in self._images()

    def platform_for(self, image: From) -> Optional[str]:
        """Platform identifier used for system dependency lookup, None if unknown."""
        rule = self._images().get(image.image)
        if not rule or not rule.get("platform"):
            return None
        platforms = self._load_metadata().get("platforms", {})
        return platforms.get(rule["platform"], rule["platform"])

    def pre_installed(self, image: From) -> List[str]:
        rule = self._images().get(image.image, {})
        return list(rule.get("pre_installed", []))

    def subtract_pre_installed(self, manifest: Manifest, image: From,
                               reporter: Reporter) -> Tuple[Manifest, List[str]]:
        """
        Remove CRAN packages already installed in the base image.

        Packages from GitHub or Bioconductor are always kept, and versions
        are not compared.

        Returns:
            Tuple of (filtered manifest, names of removed packages)
        """
        pre_installed = self.pre_installed(image)
        if not pre_installed:
            reporter.debug("No pre-installed package list known for image %s", image)
            return list(manifest), []

        normalized_installed = {normalize_pkg_name(pkg) for pkg in pre_installed}
        filtered: Manifest = []
        removed: List[str] = []
        for pkg in manifest:
            if pkg.provenance is Provenance.CRAN and normalize_pkg_name(pkg.name) in normalized_installed:
                removed.append(pkg.name)
            else:
                filtered.append(pkg)

        if removed:
            reporter.info(
                "Skipping %s package(s) already installed in the base image %s: %s",
                len(removed), image, ", ".join(removed),
            )
        return filtered, removed
