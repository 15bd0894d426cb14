"""Release providers for engines and runtimes.

A release root, remote or local, is laid out as::

    <root>/engine-2024.1.1/manifest.yaml
    <root>/engine-2024.1.1/engine-2024.1.1.tar.gz
    <root>/runtime-23.1.0-java21/manifest.yaml
    <root>/runtime-23.1.0-java21/runtime.tar.gz

Engine manifests name the runtime they need (``runtime-version``,
``java-version``) plus the ``artifact`` and its optional ``sha256``.
"""
from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from semantic_version import Version

from ..common.http_client import download_file, get_text
from ..common.logging_utils import safe_url
from ..constants import Constants
from ..exceptions import (
    ConfigurationError,
    EngineReleaseNotFound,
    NotFoundError,
    RuntimeReleaseNotFound,
)
from ..versioning.parser import parse_semver
from .models import (
    EngineRelease,
    RuntimeRelease,
    RuntimeVersion,
    parse_artifact_fields,
    parse_engine_manifest,
)

logger = logging.getLogger(__name__)


class ReleaseBackend(ABC):
    """Access to the files of a release root."""

    @abstractmethod
    def fetch_text(self, tag: str, filename: str) -> Optional[str]:
        """Return the contents of ``<tag>/<filename>``, or None if it does not exist."""

    @abstractmethod
    def download(self, tag: str, filename: str, destination: Path) -> Path:
        """Copy ``<tag>/<filename>`` to ``destination``."""


class HttpReleaseBackend(ReleaseBackend):
    """Release root served over HTTP(S)."""

    def __init__(self, base_url: str, timeout: Optional[float] = None):
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _url(self, tag: str, filename: str) -> str:
        return f"{self.base_url}/{tag}/{filename}"

    def fetch_text(self, tag: str, filename: str) -> Optional[str]:
        status, text = get_text(self._url(tag, filename), context="releases", timeout=self._timeout)
        if status == 404:
            return None
        if status != 200:
            logger.warning("Unexpected status %s for %s", status, safe_url(self._url(tag, filename)))
            return None
        return text

    def download(self, tag: str, filename: str, destination: Path) -> Path:
        return download_file(
            self._url(tag, filename), destination, context="releases", timeout=self._timeout
        )


class LocalReleaseBackend(ReleaseBackend):
    """Release root on the local filesystem (offline mirrors, bundles, tests)."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def fetch_text(self, tag: str, filename: str) -> Optional[str]:
        path = self.root / tag / filename
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigurationError(
                f"Release file could not be read: {exc}", context={"source": str(path)}
            ) from exc

    def download(self, tag: str, filename: str, destination: Path) -> Path:
        source = self.root / tag / filename
        if not source.is_file():
            raise NotFoundError(
                "Release artifact is missing", context={"artifact": str(source)}
            )
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)
        return destination


def make_release_backend(location: Union[str, Path], timeout: Optional[float] = None) -> ReleaseBackend:
    """Pick a backend from a URL or a directory path."""
    text = str(location)
    if text.startswith(("http://", "https://")):
        return HttpReleaseBackend(text, timeout=timeout)
    return LocalReleaseBackend(Path(text).expanduser())


class EngineReleaseProvider:
    """Finds engine releases and downloads their artifacts."""

    def __init__(self, backend: ReleaseBackend):
        self._backend = backend

    def fetch_release(self, version: Union[str, Version]) -> EngineRelease:
        """Return the release of engine ``version``.

        Raises:
            EngineReleaseNotFound: If the release root has no such release.
            ConfigurationError: If its manifest is malformed.
        """
        version = parse_semver(version)
        tag = f"engine-{version}"
        text = self._backend.fetch_text(tag, Constants.RELEASE_MANIFEST_FILE)
        if text is None:
            raise EngineReleaseNotFound(version, "no release manifest")
        source = f"{tag}/{Constants.RELEASE_MANIFEST_FILE}"
        manifest = parse_engine_manifest(text, source)
        artifact = parse_artifact_fields(text, source)
        logger.debug("Engine %s requires runtime %s", version, manifest.runtime)
        return EngineRelease(
            version=version,
            manifest=manifest,
            artifact=artifact["artifact"],
            sha256=artifact["sha256"],
        )

    def download(self, release: EngineRelease, destination: Path) -> Path:
        logger.info("Downloading engine %s", release.version)
        try:
            return self._backend.download(release.tag, release.artifact, destination)
        except NotFoundError as exc:
            raise EngineReleaseNotFound(release.version, "artifact missing") from exc


class RuntimeReleaseProvider:
    """Finds runtime releases and downloads their artifacts."""

    def __init__(self, backend: ReleaseBackend):
        self._backend = backend

    def fetch_release(self, version: RuntimeVersion) -> RuntimeRelease:
        """Return the release of runtime ``version``.

        Raises:
            RuntimeReleaseNotFound: If the release root has no such release.
        """
        text = self._backend.fetch_text(version.tag, Constants.RELEASE_MANIFEST_FILE)
        if text is None:
            raise RuntimeReleaseNotFound(version, "no release manifest")
        artifact = parse_artifact_fields(text, f"{version.tag}/{Constants.RELEASE_MANIFEST_FILE}")
        return RuntimeRelease(version=version, artifact=artifact["artifact"], sha256=artifact["sha256"])

    def download(self, release: RuntimeRelease, destination: Path) -> Path:
        logger.info("Downloading runtime %s", release.version)
        try:
            return self._backend.download(release.tag, release.artifact, destination)
        except NotFoundError as exc:
            raise RuntimeReleaseNotFound(release.version, "artifact missing") from exc
