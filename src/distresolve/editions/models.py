"""Data models for editions."""

from dataclasses import dataclass
from typing import Optional, Tuple

from semantic_version import Version

from ..versioning.models import LibraryName


@dataclass(frozen=True)
class Repository:
    """A named library repository."""
    name: str
    url: str


@dataclass(frozen=True)
class LibraryRequirement:
    """A library pinned by an edition, optionally bound to a repository name."""
    namespace: str
    name: str
    version: Version
    repository: Optional[str] = None

    @property
    def library_name(self) -> LibraryName:
        return LibraryName(self.namespace, self.name)


@dataclass(frozen=True)
class RawEdition:
    """An edition as written: every field may be left unspecified (None)."""
    name: Optional[str] = None
    parent: Optional[str] = None
    engine_version: Optional[Version] = None
    repositories: Optional[Tuple[Repository, ...]] = None
    libraries: Optional[Tuple[LibraryRequirement, ...]] = None


@dataclass(frozen=True)
class ResolvedEdition:
    """A fully merged edition with no parent reference.

    ``engine_version`` of None means the distribution default applies.
    ``chain`` lists the editions that contributed, child first.
    """
    name: Optional[str]
    engine_version: Optional[Version]
    repositories: Tuple[Repository, ...]
    libraries: Tuple[LibraryRequirement, ...]
    chain: Tuple[str, ...] = ()

    @property
    def uses_default_engine(self) -> bool:
        return self.engine_version is None

    def find_library(self, library: LibraryName) -> Optional[LibraryRequirement]:
        for requirement in self.libraries:
            if requirement.library_name == library:
                return requirement
        return None
