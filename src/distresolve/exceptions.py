"""Exception hierarchy for distribution resolution.

Every error carries a ``context`` dict naming the identifier it pertains to
(edition name, library name and version, engine version, ...). The category
classes (``ConfigurationError``, ``NotFoundError`` and so on) are what callers
are expected to catch; the concrete subclasses exist so that tests and the
request layer can tell failures apart.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional


class DistResolveError(Exception):
    """Base exception for all distresolve errors.

    Attributes:
        message: Error message
        context: Additional context (identifiers involved in the failure)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class ConfigurationError(DistResolveError):
    """Malformed edition, package or configuration document. Never retried."""


class NotFoundError(DistResolveError):
    """A requested edition, engine release or library does not exist."""


class CycleError(DistResolveError):
    """An edition parent chain refers back to itself."""


class NetworkError(DistResolveError):
    """A remote repository could not be reached."""


class IntegrityError(DistResolveError):
    """A downloaded artifact failed verification or extraction."""


class RequestTimeoutError(DistResolveError):
    """A request did not produce a result before its deadline."""


# Editions


class EditionNotFound(NotFoundError):
    """Raised when a named edition cannot be located by the edition provider."""

    def __init__(self, edition_name: str) -> None:
        super().__init__(
            f"Edition '{edition_name}' could not be found",
            context={"edition": edition_name},
        )
        self.edition_name = edition_name


class EditionCycleDetected(CycleError):
    """Raised when resolving a parent chain revisits an edition name."""

    def __init__(self, chain: Iterable[str]) -> None:
        self.chain = list(chain)
        super().__init__(
            "Edition parent chain contains a cycle: " + " -> ".join(self.chain),
            context={"edition": self.chain[-1] if self.chain else None},
        )


class EditionParseError(ConfigurationError):
    """Raised when an edition document cannot be parsed."""

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message, context={"source": source} if source else None)
        self.source = source


class EditionResolutionError(ConfigurationError):
    """Raised when a resolved edition is not self-contained."""


# Versions


class InvalidVersionSpecifier(ConfigurationError):
    """Raised when a version string is not a valid semantic version."""

    def __init__(self, version: str) -> None:
        super().__init__(
            f"Invalid version specifier '{version}'",
            context={"version": version},
        )
        self.version = version


class InvalidLibraryName(ConfigurationError):
    """Raised when a qualified library name cannot be split into namespace and name."""


# Runtime components


class EngineReleaseNotFound(NotFoundError):
    """Raised when no release provider knows the requested engine version."""

    def __init__(self, version: Any, reason: Optional[str] = None) -> None:
        message = f"Engine release {version} could not be found"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, context={"engine_version": str(version)})
        self.version = version


class RuntimeReleaseNotFound(NotFoundError):
    """Raised when no release provider knows the requested runtime version."""

    def __init__(self, runtime_version: Any, reason: Optional[str] = None) -> None:
        message = f"Runtime release {runtime_version} could not be found"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, context={"runtime_version": str(runtime_version)})


class EngineNotInstalled(NotFoundError):
    """Raised when an operation requires an engine that is not installed."""

    def __init__(self, version: Any) -> None:
        super().__init__(
            f"Engine {version} is not installed",
            context={"engine_version": str(version)},
        )
        self.version = version


class ComponentInstallDeclined(NotFoundError):
    """Raised when the user interface refuses to install a missing component."""


class ChecksumOrExtractionFailure(IntegrityError):
    """Raised when a downloaded artifact is corrupt or cannot be extracted."""


class RuntimeInstallFailure(DistResolveError):
    """Raised when the runtime required by an engine cannot be installed."""


class LockTimeoutError(DistResolveError):
    """Raised when a resource lock cannot be acquired within the timeout."""


# Libraries


class LibraryNotFoundInRepository(NotFoundError):
    """Raised when a repository has no package descriptor for a library version."""

    def __init__(self, library: Any, version: Any, repository_url: str) -> None:
        super().__init__(
            f"Library {library} {version} was not found in the repository",
            context={
                "library": str(library),
                "version": str(version),
                "repository": repository_url,
            },
        )


class LocalLibraryNotFound(NotFoundError):
    """Raised when a local library cannot be found on the library search path."""

    def __init__(self, library: Any) -> None:
        super().__init__(
            f"Local library {library} could not be found",
            context={"library": str(library)},
        )


class RepositoryUnreachable(NetworkError):
    """Raised when a repository cannot be contacted."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(
            f"Repository could not be reached: {reason}",
            context={"url": url},
        )
        self.url = url


class MalformedPackageDescriptor(ConfigurationError):
    """Raised when a package descriptor cannot be parsed."""
