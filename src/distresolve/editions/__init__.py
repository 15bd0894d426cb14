"""Edition loading, inheritance and engine version resolution."""

from .manager import EditionManager
from .models import LibraryRequirement, RawEdition, Repository, ResolvedEdition
from .parser import load_edition, parse_edition
from .provider import EditionProvider, FileSystemEditionProvider
from .resolver import EditionResolver, EngineVersionResolver
from .updater import EditionRepositoryClient, UpdatingEditionProvider

__all__ = [
    "EditionManager",
    "EditionProvider",
    "EditionRepositoryClient",
    "EditionResolver",
    "EngineVersionResolver",
    "FileSystemEditionProvider",
    "LibraryRequirement",
    "RawEdition",
    "Repository",
    "ResolvedEdition",
    "UpdatingEditionProvider",
    "load_edition",
    "parse_edition",
]
