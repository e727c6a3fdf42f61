# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""
Base image selection from an R version.

DockerHubRegistry lists the tags of an image on Docker Hub, which lets
image_for_version fall back to the closest existing ``rocker/r-ver`` tag.
"""

import json
import logging
import re
import urllib.error
import urllib.request
from typing import Dict, List, Optional, Sequence, Tuple

from rcapsule.core.errors import UnreachableRegistryError
from rcapsule.utils.reporter import Reporter, WarningKind

from .instructions import From

logger = logging.getLogger(__name__)

R_VERSION_IMAGE = "rocker/r-ver"

_VERSION_PATTERN = re.compile(r"(\d+(?:\.\d+)+)")
_TAG_PATTERN = re.compile(r"^\d+(?:\.\d+)*$")


class DockerHubRegistry:
    """Tag listing for Docker Hub repositories. No retries."""

    def __init__(self, base_url: str = "https://registry.hub.docker.com/v2/repositories",
                 timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._tags_cache: Dict[str, List[str]] = {}

    def tags_url(self, image: str) -> str:
        return f"{self.base_url}/{image}/tags/?page_size=9999"

    def list_tags(self, image: str) -> List[str]:
        """
        Return the tag names of ``image``.

        Raises:
            UnreachableRegistryError: If the registry cannot be queried or
                                      answers with something unreadable.
        """
        url = self.tags_url(image)
        if url in self._tags_cache:
            return self._tags_cache[url]

        logger.debug("Retrieving tags for image %s with %s", image, url)
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as response:
                data = json.loads(response.read().decode("utf-8"))
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise UnreachableRegistryError(url, e) from e

        tags = [entry["name"] for entry in data.get("results", []) if entry.get("name")]
        self._tags_cache[url] = tags
        return tags


def r_version_tag(version: Optional[str]) -> Optional[str]:
    """
    Extract the dotted version number from an R version string.

    >>> r_version_tag("R version 4.3.1 (2023-06-16)")
    '4.3.1'
    """
    if not version:
        return None
    match = _VERSION_PATTERN.search(version)
    return match.group(1) if match else None


def _version_key(tag: str, width: int = 3) -> Tuple[int, ...]:
    """Numeric key padded with zeros, so that ``3.3`` and ``3.3.0`` compare equal."""
    parts = [int(part) for part in tag.split(".")]
    return tuple(parts + [0] * (width - len(parts)))


def closest_tag(tag: str, tags: Sequence[str], minimum: bool = False) -> str:
    """
    Pick the existing version tag to use for ``tag``.

    By default this is the highest tag not above ``tag``. With ``minimum``
    (``tag`` is a lower bound) it is the lowest tag not below ``tag``.
    Falls back to ``latest``.

    >>> closest_tag("3.3", ["3.2.5", "3.3.0", "3.3.1"])
    '3.3.0'
    """
    if not _TAG_PATTERN.match(tag):
        return "latest"
    candidates = [t for t in tags if _TAG_PATTERN.match(t)]
    width = max([len(t.split(".")) for t in candidates] + [len(tag.split("."))])
    wanted = _version_key(tag, width)

    if minimum:
        upper = [t for t in candidates if _version_key(t, width) >= wanted]
        return min(upper, key=lambda t: _version_key(t, width)) if upper else "latest"
    lower = [t for t in candidates if _version_key(t, width) <= wanted]
    return max(lower, key=lambda t: _version_key(t, width)) if lower else "latest"


def image_for_version(
    version: str,
    registry: Optional[DockerHubRegistry] = None,
    nearest: bool = True,
    reporter: Optional[Reporter] = None,
    minimum: bool = False,
) -> From:
    """
    Image for an R version, ``rocker/r-ver:<version>``.

    Without a registry the tag is assumed to exist. With a registry and
    ``nearest``, a missing tag is replaced by the closest existing version
    tag: the closest lower one, or the closest higher one when ``version``
    is a minimum requirement (``latest`` if there is none).
    """
    tag = r_version_tag(version) or version
    if registry is None:
        return From(R_VERSION_IMAGE, tag)

    tags = registry.list_tags(R_VERSION_IMAGE)
    if tag in tags or not nearest:
        return From(R_VERSION_IMAGE, tag)

    replacement = closest_tag(tag, tags, minimum=minimum)

    message = "No image %s:%s in the registry, using closest tag %s instead"
    if reporter is not None:
        reporter.warning(WarningKind.NEAREST_IMAGE_TAG, message, R_VERSION_IMAGE, tag, replacement)
    else:
        logger.warning(message, R_VERSION_IMAGE, tag, replacement)
    return From(R_VERSION_IMAGE, replacement)
