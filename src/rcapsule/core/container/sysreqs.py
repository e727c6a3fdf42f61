# Copyright (c) 2026 Yusoku Advisor Godo Kaisha (ゆうそくアドバイザー合同会社)
# Released under the MIT license
# https://opensource.org/licenses/MIT

"""
System requirements of R packages.

SystemRequirementsService is the interface the install instruction builder
uses to learn which system libraries R packages need on a platform.
SysreqsService answers from a bundled mapping in offline mode and from the
r-hub sysreqs database otherwise.
"""

import json
import logging
import subprocess
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from rcapsule.core.errors import UnreachableRegistryError
from rcapsule.utils.path_helper import get_resource_path

logger = logging.getLogger(__name__)

MAPPING_FILE = get_resource_path("container/mappings/sysreqs.json")


class SystemRequirementsService(ABC):
    """Abstract interface for system dependency lookups."""

    @abstractmethod
    def query(self, packages: Sequence[str], platform: str,
              soft: bool = False, offline: bool = False) -> List[str]:
        """
        Return the system packages needed by ``packages`` on ``platform``.

        Args:
            packages: R package names.
            platform: Platform identifier, e.g. ``linux-x86_64-debian-gcc``.
            soft: Include soft (optional) system dependencies.
            offline: Do not use network services.
        """
        raise NotImplementedError

    def library_versions(self, libraries: Sequence[str]) -> Dict[str, str]:
        """Installed versions of system libraries, keyed by name. Empty if unknown."""
        return {}


class SysreqsService(SystemRequirementsService):
    """
    Default lookup: bundled mapping when offline, r-hub sysreqs API online.

    Library versions for ``versioned_libs`` are read from the local package
    database with ``dpkg-query``.
    """

    def __init__(self, base_url: str = "https://sysreqs.r-hub.io", timeout: float = 10.0,
                 mapping_path=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.mapping_path = mapping_path or MAPPING_FILE
        self._mappings: Optional[Dict] = None
        self._cache: Dict[str, List[str]] = {}

    def _load_mappings(self) -> Dict:
        if self._mappings is None:
            with open(self.mapping_path, "r", encoding="utf-8") as f:
                self._mappings = json.load(f)
        return self._mappings

    def query(self, packages, platform, soft=False, offline=False) -> List[str]:
        found: List[str] = []
        if offline:
            mappings = self._load_mappings()
            for pkg in packages:
                entry = mappings.get(pkg, {})
                found.extend(entry.get("apt", []))
                if soft:
                    found.extend(entry.get("soft", []))
        else:
            if soft:
                logger.debug("Soft dependencies are only available from the offline database")
            for pkg in packages:
                found.extend(self._query_online(pkg, platform))
        return sorted(set(found))

    def _query_online(self, package: str, platform: str) -> List[str]:
        url = f"{self.base_url}/pkg/{urllib.parse.quote(package)}/{urllib.parse.quote(platform)}"
        if url in self._cache:
            return self._cache[url]

        logger.debug("Retrieving system requirements for %s with %s", package, url)
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as response:
                data = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            if e.code == 404:
                # unknown to the database, i.e. no system requirements
                self._cache[url] = []
                return []
            raise UnreachableRegistryError(url, e) from e
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise UnreachableRegistryError(url, e) from e

        result = [item for item in _flatten(data) if item]
        self._cache[url] = result
        return result

    def library_versions(self, libraries) -> Dict[str, str]:
        if not libraries:
            return {}
        args = ["dpkg-query", "-W", "-f=${Package}\t${Version}\n", *libraries]
        try:
            result = subprocess.run(args, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL,
                                    text=True, check=False)
        except FileNotFoundError:
            logger.info("dpkg-query not available, system library versions cannot be matched")
            return {}

        versions = {}
        for line in result.stdout.splitlines():
            name, _, version = line.partition("\t")
            if name and version:
                versions[name] = version
        return versions


def _flatten(data) -> List[str]:
    if isinstance(data, str):
        return [data]
    if isinstance(data, list):
        items: List[str] = []
        for entry in data:
            items.extend(_flatten(entry))
        return items
    return []
