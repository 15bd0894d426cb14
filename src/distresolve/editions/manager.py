"""A helper facade for resolving editions against a distribution."""

from __future__ import annotations

import logging
from typing import List, Optional

from semantic_version import Version

from ..config import GlobalConfig
from ..constants import Constants
from ..distribution import DistributionPaths, LanguageHome, SearchPathResolver
from .models import RawEdition, ResolvedEdition
from .provider import EditionProvider, FileSystemEditionProvider
from .resolver import EditionResolver, EngineVersionResolver
from .updater import UpdatingEditionProvider

logger = logging.getLogger(__name__)


class EditionManager:
    """Resolves editions, loading parents from the edition search path."""

    def __init__(self, provider: EditionProvider, default_engine_version: Optional[str] = None):
        self._provider = provider
        self._edition_resolver = EditionResolver(provider)
        self._engine_version_resolver = EngineVersionResolver(
            provider, default_engine_version or Constants.DEFAULT_ENGINE_VERSION
        )

    @property
    def provider(self) -> EditionProvider:
        return self._provider

    def resolve_edition(self, edition: RawEdition) -> ResolvedEdition:
        return self._edition_resolver.resolve(edition)

    def resolve_engine_version(self, edition: RawEdition) -> Version:
        """Resolve the engine version, falling back to the configured default."""
        return self._engine_version_resolver.resolve_engine_version(edition)

    def find_all_available_editions(self, update: bool = False) -> List[str]:
        return self._provider.list_available(update)

    @staticmethod
    def make_edition_provider(
        paths: DistributionPaths,
        config: GlobalConfig,
        language_home: Optional[LanguageHome] = None,
        updating: bool = False,
    ) -> EditionProvider:
        """Create a provider over the language home and distribution search paths.

        The updating provider manages the cache directory itself; the plain
        filesystem provider just searches it last.
        """
        search_paths = SearchPathResolver(paths, language_home)
        if updating:
            return UpdatingEditionProvider(
                search_paths.edition_search_paths(),
                paths.cached_editions,
                config.edition_providers,
                cache_ttl=config.edition_cache_ttl,
            )
        return FileSystemEditionProvider(search_paths.edition_search_paths(include_cache=True))

    @classmethod
    def create(
        cls,
        paths: DistributionPaths,
        config: GlobalConfig,
        language_home: Optional[LanguageHome] = None,
        updating: bool = False,
    ) -> "EditionManager":
        provider = cls.make_edition_provider(paths, config, language_home, updating)
        return cls(provider, default_engine_version=config.default_engine_version)
