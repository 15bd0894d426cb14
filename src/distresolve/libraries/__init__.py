"""Library metadata: package descriptors, the published library cache and repositories."""

from .cache import PublishedLibraryCache
from .local import LocalLibraryProvider
from .package import (
    ComponentGroup,
    ComponentGroups,
    ExtendedComponentGroup,
    PackageConfig,
    parse_package_descriptor,
    read_package_descriptor,
)
from .published import PublishedPackageLookup
from .repository import LibraryRepositoryClient

__all__ = [
    "ComponentGroup",
    "ComponentGroups",
    "ExtendedComponentGroup",
    "LibraryRepositoryClient",
    "LocalLibraryProvider",
    "PackageConfig",
    "PublishedLibraryCache",
    "PublishedPackageLookup",
    "parse_package_descriptor",
    "read_package_descriptor",
]
