"""Engine and runtime installation management."""

from .locking import ResourceManager
from .manager import RuntimeVersionManager, TemporaryDirectoryManager
from .models import (
    EngineManifest,
    EngineRelease,
    InstalledEngine,
    InstalledRuntime,
    RuntimeRelease,
    RuntimeVersion,
)
from .releases import (
    EngineReleaseProvider,
    HttpReleaseBackend,
    LocalReleaseBackend,
    ReleaseBackend,
    RuntimeReleaseProvider,
    make_release_backend,
)
from .ui import ReadOnlyUserInterface, RuntimeVersionManagementUserInterface

__all__ = [
    "EngineManifest",
    "EngineRelease",
    "EngineReleaseProvider",
    "HttpReleaseBackend",
    "InstalledEngine",
    "InstalledRuntime",
    "LocalReleaseBackend",
    "ReadOnlyUserInterface",
    "ReleaseBackend",
    "ResourceManager",
    "RuntimeRelease",
    "RuntimeReleaseProvider",
    "RuntimeVersion",
    "RuntimeVersionManagementUserInterface",
    "RuntimeVersionManager",
    "TemporaryDirectoryManager",
    "make_release_backend",
]
