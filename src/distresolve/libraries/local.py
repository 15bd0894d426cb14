"""Lookup of local (unpublished) libraries on the library search path.

A local library is a directory ``<search-path>/<namespace>/<name>/`` holding
``package.yaml``; the first search path containing it wins.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from ..constants import Constants
from ..distribution import distinct_paths
from ..exceptions import LocalLibraryNotFound
from ..versioning.models import LibraryName
from .package import PackageConfig, read_package_descriptor

logger = logging.getLogger(__name__)


class LocalLibraryProvider:
    def __init__(self, search_paths: Iterable[Path]):
        self._search_paths: List[Path] = distinct_paths(search_paths)

    @property
    def search_paths(self) -> List[Path]:
        return list(self._search_paths)

    def find_library(self, name: LibraryName) -> Optional[Path]:
        for directory in self._search_paths:
            candidate = directory / name.namespace / name.name
            if (candidate / Constants.PACKAGE_FILE).is_file():
                return candidate
        return None

    def get_package(self, name: LibraryName) -> PackageConfig:
        """Return the package descriptor of local library ``name``.

        Raises:
            LocalLibraryNotFound: If no search path contains the library.
            MalformedPackageDescriptor: If its descriptor cannot be parsed.
        """
        path = self.find_library(name)
        if path is None:
            raise LocalLibraryNotFound(name)
        logger.debug("Found local library %s at %s", name, path)
        return read_package_descriptor(path / Constants.PACKAGE_FILE)
