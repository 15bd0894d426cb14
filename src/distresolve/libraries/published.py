"""Package metadata lookup for published libraries: cache first, then the repository."""
from __future__ import annotations

import logging
from typing import Callable, Optional, Union

from semantic_version import Version

from ..common.logging_utils import Timer, extra_context, safe_url
from ..versioning.models import LibraryName
from ..versioning.parser import parse_semver
from .cache import PublishedLibraryCache
from .package import PackageConfig
from .repository import LibraryRepositoryClient

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], LibraryRepositoryClient]


class PublishedPackageLookup:
    """Answers package metadata queries for published library versions.

    Args:
        cache: Cache consulted before any network access.
        client_factory: Builds a repository client for a URL; defaults to
            ``LibraryRepositoryClient`` with ``timeout``.
        timeout: Request timeout for the default client factory.
    """

    def __init__(
        self,
        cache: PublishedLibraryCache,
        client_factory: Optional[ClientFactory] = None,
        timeout: Optional[float] = None,
    ):
        self._cache = cache
        self._client_factory = client_factory or (
            lambda url: LibraryRepositoryClient(url, timeout=timeout)
        )

    def get_or_fetch_package(
        self,
        name: LibraryName,
        version: Union[str, Version],
        repository_url: str,
    ) -> PackageConfig:
        """Return the package descriptor of ``name`` at ``version``.

        A cached copy is used when present and never triggers a network
        request, even if it turns out to be corrupt. Fetched metadata is not
        written to the cache; only full library downloads populate it.

        Raises:
            InvalidVersionSpecifier: If ``version`` is not a semantic version.
            MalformedPackageDescriptor: If the cached or fetched descriptor is corrupt.
            LibraryNotFoundInRepository: If the repository does not have it.
            RepositoryUnreachable: If the repository cannot be contacted.
        """
        version = parse_semver(version)
        cached = self._cache.find_cached_library(name, version)
        if cached is not None:
            return self._cache.read_package(cached)

        with Timer() as timer:
            config = self._client_factory(repository_url).fetch_package_config(name, version)
        logger.debug(
            "Fetched package metadata",
            extra=extra_context(
                event="package_fetch",
                library=str(name),
                version=str(version),
                target=safe_url(repository_url),
                duration_ms=timer.duration_ms(),
            ),
        )
        return config
