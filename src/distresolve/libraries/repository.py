"""Client for published library repositories.

A repository serves package metadata at
``<url>/libraries/<namespace>/<name>/<version>/package.yaml``.
"""
from __future__ import annotations

import logging
from typing import Optional, Union

from semantic_version import Version

from ..common.http_client import get_text
from ..common.logging_utils import safe_url
from ..constants import Constants
from ..exceptions import LibraryNotFoundInRepository, RepositoryUnreachable
from ..versioning.models import LibraryName
from ..versioning.parser import parse_semver
from .package import PackageConfig, parse_package_descriptor

logger = logging.getLogger(__name__)


class LibraryRepositoryClient:
    """Fetches library metadata from one repository."""

    def __init__(self, url: str, timeout: Optional[float] = None):
        self.url = url.rstrip("/")
        self._timeout = timeout

    def package_url(self, name: LibraryName, version: Union[str, Version]) -> str:
        version = parse_semver(version)
        return (
            f"{self.url}/libraries/{name.namespace}/{name.name}/{version}/"
            f"{Constants.PACKAGE_FILE}"
        )

    def fetch_package_config(self, name: LibraryName, version: Union[str, Version]) -> PackageConfig:
        """Download and parse the package descriptor of ``name`` at ``version``.

        Raises:
            InvalidVersionSpecifier: If ``version`` is not a semantic version.
            LibraryNotFoundInRepository: On HTTP 404.
            RepositoryUnreachable: On transport errors, timeouts and 5xx.
            MalformedPackageDescriptor: If the descriptor cannot be parsed.
        """
        url = self.package_url(name, version)
        status, text = get_text(url, context="libraries", timeout=self._timeout)
        if status == 404:
            raise LibraryNotFoundInRepository(name, version, safe_url(self.url))
        if status != 200:
            raise RepositoryUnreachable(safe_url(url), f"package request returned status {status}")
        logger.info("Fetched package metadata for %s %s from %s", name, version, safe_url(self.url))
        return parse_package_descriptor(text, source=safe_url(url))
