"""Distribution directory layout and search path resolution.

The surrounding program decides where the data, cache and config roots live;
this module only derives the well-known subdirectories from them and combines
them with overrides into ordered, de-duplicated search lists.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

from .constants import Constants

logger = logging.getLogger(__name__)


def _split_path_list(value: Optional[str]) -> List[Path]:
    """Split an ``os.pathsep`` separated list, skipping empty entries."""
    if not value:
        return []
    return [Path(p).expanduser() for p in value.split(os.pathsep) if p.strip()]


def is_plain_name(name: Optional[str]) -> bool:
    """True if ``name`` can be used as a single path component below a directory."""
    if not name or not name.strip():
        return False
    if "/" in name or "\\" in name or ".." in name or "\x00" in name:
        return False
    return not os.path.isabs(name)


def distinct_paths(paths: Iterable[Path]) -> List[Path]:
    """De-duplicate paths preserving first-seen order."""
    seen = set()
    result: List[Path] = []
    for path in paths:
        key = os.path.normpath(str(path))
        if key in seen:
            continue
        seen.add(key)
        result.append(Path(path))
    return result


@dataclass(frozen=True)
class LanguageHome:
    """Directory of the engine currently running, if any.

    Bundled editions live in ``<root>/editions`` and bundled libraries in
    ``<root>/lib``.
    """
    root: Path

    @property
    def editions(self) -> Path:
        return self.root / "editions"

    @property
    def libraries(self) -> Path:
        return self.root / "lib"


@dataclass
class DistributionPaths:
    """Materialized distribution directories."""

    data_root: Path
    cache_root: Path
    config_root: Path
    edition_overrides: List[Path] = field(default_factory=list)
    library_overrides: List[Path] = field(default_factory=list)
    engine_overrides: List[Path] = field(default_factory=list)

    @property
    def engines(self) -> Path:
        return self.data_root / "dist"

    @property
    def runtimes(self) -> Path:
        return self.data_root / "runtime"

    @property
    def editions(self) -> Path:
        return self.data_root / "editions"

    @property
    def libraries(self) -> Path:
        return self.data_root / "lib"

    @property
    def temporary(self) -> Path:
        return self.data_root / "tmp"

    @property
    def locks(self) -> Path:
        return self.data_root / "locks"

    @property
    def cached_editions(self) -> Path:
        return self.cache_root / "editions"

    @property
    def cached_libraries(self) -> Path:
        return self.cache_root / "libraries"

    @property
    def global_config(self) -> Path:
        return self.config_root / Constants.GLOBAL_CONFIG_FILE

    @classmethod
    def from_environment(cls, env: Optional[Mapping[str, str]] = None) -> "DistributionPaths":
        """Build paths from ``DISTRESOLVE_*`` variables with XDG-style defaults."""
        env = os.environ if env is None else env
        home = Path(env.get("HOME") or Path.home())

        def _root(var: str, xdg: str, default: Path) -> Path:
            if env.get(var):
                return Path(env[var]).expanduser()
            if env.get(xdg):
                return Path(env[xdg]).expanduser() / "distresolve"
            return default / "distresolve"

        paths = cls(
            data_root=_root(Constants.ENV_DATA_DIRECTORY, "XDG_DATA_HOME", home / ".local" / "share"),
            cache_root=_root(Constants.ENV_CACHE_DIRECTORY, "XDG_CACHE_HOME", home / ".cache"),
            config_root=_root(Constants.ENV_CONFIG_DIRECTORY, "XDG_CONFIG_HOME", home / ".config"),
            edition_overrides=_split_path_list(env.get(Constants.ENV_EDITION_PATH)),
            library_overrides=_split_path_list(env.get(Constants.ENV_LIBRARY_PATH)),
            engine_overrides=_split_path_list(env.get(Constants.ENV_ENGINE_PATH)),
        )
        logger.debug("Distribution data root: %s", paths.data_root)
        return paths


class SearchPathResolver:
    """Produces ordered, de-duplicated directory lists to search.

    Priority: the language home first, then explicit overrides when set
    (otherwise the user distribution directory). Cache directories are only
    appended when requested since updating providers manage the cache
    themselves.
    """

    def __init__(self, paths: DistributionPaths, language_home: Optional[LanguageHome] = None):
        self._paths = paths
        self._language_home = language_home

    def edition_search_paths(self, include_cache: bool = False) -> List[Path]:
        candidates: List[Path] = []
        if self._language_home is not None:
            candidates.append(self._language_home.editions)
        candidates.extend(self._paths.edition_overrides or [self._paths.editions])
        if include_cache:
            candidates.append(self._paths.cached_editions)
        return distinct_paths(candidates)

    def library_search_paths(self) -> List[Path]:
        candidates: List[Path] = []
        candidates.extend(self._paths.library_overrides or [self._paths.libraries])
        if self._language_home is not None:
            candidates.append(self._language_home.libraries)
        return distinct_paths(candidates)

    def engine_search_paths(self) -> List[Path]:
        """Installation directory first; overrides are additional read-only locations."""
        return distinct_paths([self._paths.engines, *self._paths.engine_overrides])
