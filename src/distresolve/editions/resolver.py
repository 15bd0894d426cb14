"""Edition and engine version resolution.

Resolution walks the parent chain child-first, loading each named parent
through the ``EditionProvider``, then folds the chain from the root down so
that every child overrides its parent. The names seen on the current walk are
kept in an explicit set; meeting a name twice is a cycle and stops the walk
immediately. The walk is a loop rather than recursion so that very long
chains cannot exhaust the interpreter stack.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Set, Tuple, TypeVar, Union

from semantic_version import Version

from ..constants import Constants
from ..exceptions import EditionCycleDetected, EditionNotFound, EditionResolutionError
from ..versioning.parser import parse_semver
from .models import LibraryRequirement, RawEdition, ResolvedEdition
from .parser import load_edition
from .provider import EditionProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")


def merge_distinct(child: Iterable[T], parent: Iterable[T]) -> Tuple[T, ...]:
    """Concatenate child-then-parent, dropping repeats, keeping first-seen order."""
    seen: Set[T] = set()
    merged: List[T] = []
    for item in [*child, *parent]:
        if item in seen:
            continue
        seen.add(item)
        merged.append(item)
    return tuple(merged)


def merge_libraries(
    child: Iterable[LibraryRequirement],
    parent: Iterable[LibraryRequirement],
) -> Tuple[LibraryRequirement, ...]:
    """Like ``merge_distinct``, but a child pin also shadows the parent's pin of the same library."""
    merged: List[LibraryRequirement] = []
    pinned = set()
    for requirement in [*child, *parent]:
        if requirement.library_name in pinned:
            continue
        pinned.add(requirement.library_name)
        merged.append(requirement)
    return tuple(merged)


class EditionResolver:
    """Resolves raw editions into self-contained resolved editions."""

    def __init__(self, provider: EditionProvider):
        self._provider = provider

    def resolve(self, raw: RawEdition) -> ResolvedEdition:
        """Resolve ``raw`` and all of its ancestors.

        Raises:
            EditionNotFound: A parent edition cannot be located.
            EditionCycleDetected: The parent chain revisits an edition.
            EditionParseError: A parent edition document is malformed.
            EditionResolutionError: A library refers to an undefined repository.
        """
        chain = self._load_chain(raw)
        resolved = self._fold(chain)
        self._validate(resolved)
        logger.debug("Resolved edition %s via %s", resolved.name, " -> ".join(resolved.chain))
        return resolved

    def _load_chain(self, raw: RawEdition) -> List[RawEdition]:
        """Return ``[raw, parent, grandparent, ...]``."""
        visited: Set[str] = set()
        path: List[str] = []
        chain = [raw]
        current = raw
        if current.name is not None:
            visited.add(current.name)
            path.append(current.name)
        while current.parent is not None:
            parent_name = current.parent
            if parent_name in visited:
                raise EditionCycleDetected([*path, parent_name])
            visited.add(parent_name)
            path.append(parent_name)
            current = self._load(parent_name)
            chain.append(current)
        return chain

    def _load(self, name: str) -> RawEdition:
        location = self._provider.find_edition(name)
        if location is None:
            raise EditionNotFound(name)
        return load_edition(location, name=name)

    @staticmethod
    def _fold(chain: List[RawEdition]) -> ResolvedEdition:
        resolved: Optional[ResolvedEdition] = None
        for edition in reversed(chain):
            if resolved is None:
                resolved = ResolvedEdition(
                    name=edition.name,
                    engine_version=edition.engine_version,
                    repositories=merge_distinct(edition.repositories or (), ()),
                    libraries=merge_libraries(edition.libraries or (), ()),
                    chain=(edition.name,) if edition.name else (),
                )
                continue
            resolved = ResolvedEdition(
                name=edition.name,
                engine_version=(
                    edition.engine_version
                    if edition.engine_version is not None
                    else resolved.engine_version
                ),
                repositories=merge_distinct(edition.repositories or (), resolved.repositories),
                libraries=merge_libraries(edition.libraries or (), resolved.libraries),
                chain=((edition.name,) if edition.name else ()) + resolved.chain,
            )
        assert resolved is not None
        return resolved

    @staticmethod
    def _validate(resolved: ResolvedEdition) -> None:
        known = {repository.name for repository in resolved.repositories}
        known.add(Constants.LOCAL_REPOSITORY_NAME)
        for requirement in resolved.libraries:
            if requirement.repository is not None and requirement.repository not in known:
                raise EditionResolutionError(
                    f"Library {requirement.library_name} refers to undefined repository "
                    f"'{requirement.repository}'",
                    context={
                        "edition": resolved.name,
                        "library": str(requirement.library_name),
                    },
                )


class EngineVersionResolver:
    """Picks the engine version implied by an edition chain."""

    def __init__(
        self,
        provider: EditionProvider,
        default_engine_version: Union[str, Version] = Constants.DEFAULT_ENGINE_VERSION,
    ):
        self._resolver = EditionResolver(provider)
        self._default = parse_semver(default_engine_version)

    @property
    def default_engine_version(self) -> Version:
        return self._default

    def resolve_engine_version(self, raw: RawEdition) -> Version:
        resolved = self._resolver.resolve(raw)
        if resolved.engine_version is None:
            logger.info(
                "No edition in %s pins an engine version, using default %s",
                list(resolved.chain) or ["<inline>"],
                self._default,
            )
            return self._default
        return resolved.engine_version


__all__ = [
    "EditionResolver",
    "EngineVersionResolver",
    "merge_distinct",
    "merge_libraries",
]
