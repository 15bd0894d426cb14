"""Cache of published libraries.

A cached library lives at ``<cache-root>/<namespace>/<name>/<version>/`` and
holds at least ``package.yaml``. Entries are immutable once published and
appear atomically, so a directory that exists is complete.
"""
from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Union

from semantic_version import Version

from ..common.logging_utils import extra_context
from ..constants import Constants
from ..distribution import distinct_paths
from ..runtime.locking import ResourceManager
from ..versioning.models import LibraryName
from ..versioning.parser import parse_semver
from .package import PackageConfig, read_package_descriptor

logger = logging.getLogger(__name__)


class PublishedLibraryCache:
    """Read access to cached libraries, plus atomic publication into the first root.

    Args:
        roots: Cache roots in priority order; new entries go to the first one.
        resource_manager: Serializes publication of the same library version.
    """

    def __init__(self, roots: Iterable[Path], resource_manager: Optional[ResourceManager] = None):
        self._roots: List[Path] = distinct_paths(roots)
        if not self._roots:
            raise ValueError("at least one cache root is required")
        self._resources = resource_manager

    @property
    def roots(self) -> List[Path]:
        return list(self._roots)

    @staticmethod
    def _relative(name: LibraryName, version: Version) -> Path:
        return Path(name.namespace) / name.name / str(version)

    def find_cached_library(
        self, name: LibraryName, version: Union[str, Version]
    ) -> Optional[Path]:
        """Return the directory of the cached library version, or None."""
        version = parse_semver(version)
        relative = self._relative(name, version)
        for root in self._roots:
            candidate = root / relative
            if (candidate / Constants.PACKAGE_FILE).is_file():
                logger.debug(
                    "Library cache hit",
                    extra=extra_context(event="cache_hit", library=str(name), version=str(version)),
                )
                return candidate
        logger.debug(
            "Library cache miss",
            extra=extra_context(event="cache_miss", library=str(name), version=str(version)),
        )
        return None

    def read_package(self, path: Path) -> PackageConfig:
        """Read the package descriptor of a cached library directory.

        Raises:
            MalformedPackageDescriptor: If the cached descriptor is corrupt.
        """
        return read_package_descriptor(path / Constants.PACKAGE_FILE)

    def publish(self, name: LibraryName, version: Union[str, Version], staged: Path) -> Path:
        """Move a fully prepared library directory into the cache.

        ``staged`` must be on the same filesystem as the first cache root. If the
        version has been published meanwhile, the staged copy is discarded.
        """
        version = parse_semver(version)
        target = self._roots[0] / self._relative(name, version)
        if self._resources is None:
            return self._publish_locked(target, staged)
        with self._resources.acquire(target):
            return self._publish_locked(target, staged)

    @staticmethod
    def _publish_locked(target: Path, staged: Path) -> Path:
        if (target / Constants.PACKAGE_FILE).is_file():
            logger.info("Library already cached at %s", target)
            shutil.rmtree(staged, ignore_errors=True)
            return target
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.exists():
            logger.warning("Replacing incomplete cache entry at %s", target)
            shutil.rmtree(target)
        os.replace(staged, target)
        logger.info("Published library to cache at %s", target)
        return target
