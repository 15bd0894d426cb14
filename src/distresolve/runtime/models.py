"""Data models for engine and runtime releases and installations."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from semantic_version import Version

from ..common.yaml_utils import load_plain_yaml
from ..distribution import is_plain_name
from ..exceptions import ConfigurationError, DistResolveError
from ..versioning.parser import parse_semver


@dataclass(frozen=True)
class RuntimeVersion:
    """A managed-execution-runtime build: runtime version plus the Java version it targets."""
    version: str
    java_version: str

    @property
    def tag(self) -> str:
        """Directory and release name, e.g. ``runtime-23.1.0-java21``."""
        return f"runtime-{self.version}-java{self.java_version}"

    def __str__(self) -> str:
        return f"{self.version} (Java {self.java_version})"


@dataclass(frozen=True)
class EngineManifest:
    """What an engine release needs in order to run."""
    runtime: RuntimeVersion
    minimum_launcher_version: Optional[Version] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "runtime-version": self.runtime.version,
            "java-version": self.runtime.java_version,
        }
        if self.minimum_launcher_version is not None:
            data["minimum-launcher-version"] = str(self.minimum_launcher_version)
        return data

    def dump(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False)


@dataclass(frozen=True)
class EngineRelease:
    """An engine release offered by a release provider."""
    version: Version
    manifest: EngineManifest
    artifact: str
    sha256: Optional[str] = None

    @property
    def tag(self) -> str:
        return f"engine-{self.version}"


@dataclass(frozen=True)
class RuntimeRelease:
    """A runtime release offered by a release provider."""
    version: RuntimeVersion
    artifact: str
    sha256: Optional[str] = None

    @property
    def tag(self) -> str:
        return self.version.tag


@dataclass(frozen=True)
class InstalledEngine:
    """An engine whose canonical directory holds the completeness marker."""
    version: Version
    path: Path
    manifest: EngineManifest

    @property
    def runtime_version(self) -> RuntimeVersion:
        return self.manifest.runtime


@dataclass(frozen=True)
class InstalledRuntime:
    """A runtime whose canonical directory holds the completeness marker."""
    version: RuntimeVersion
    path: Path


def _load_mapping(text: str, source: str) -> Dict[str, Any]:
    try:
        data = load_plain_yaml(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Manifest is not valid YAML: {exc}", context={"source": source}) from exc
    if not isinstance(data, dict):
        raise ConfigurationError("Manifest must be a mapping", context={"source": source})
    return data


def parse_engine_manifest(text: str, source: str) -> EngineManifest:
    """Parse the runtime requirements of an engine manifest.

    Raises:
        ConfigurationError: If required keys are missing or malformed.
    """
    data = _load_mapping(text, source)
    runtime_version = data.get("runtime-version")
    java_version = data.get("java-version")
    if not runtime_version or not java_version:
        raise ConfigurationError(
            "Engine manifest must define 'runtime-version' and 'java-version'",
            context={"source": source},
        )
    runtime = RuntimeVersion(str(runtime_version), str(java_version))
    if not is_plain_name(runtime.tag):
        raise ConfigurationError(
            f"Engine manifest names an invalid runtime {runtime.tag!r}",
            context={"source": source},
        )
    minimum = None
    if data.get("minimum-launcher-version"):
        try:
            minimum = parse_semver(data["minimum-launcher-version"])
        except DistResolveError as exc:
            raise ConfigurationError(
                "Invalid minimum-launcher-version", context={"source": source}
            ) from exc
    return EngineManifest(
        runtime=runtime,
        minimum_launcher_version=minimum,
    )


def parse_artifact_fields(text: str, source: str) -> Dict[str, Optional[str]]:
    """Return the ``artifact`` and ``sha256`` entries of a release manifest."""
    data = _load_mapping(text, source)
    artifact = data.get("artifact")
    if not artifact:
        raise ConfigurationError("Release manifest must name an 'artifact'", context={"source": source})
    if not is_plain_name(str(artifact)):
        raise ConfigurationError(
            f"Release artifact {artifact!r} is not a plain file name", context={"source": source}
        )
    sha256 = data.get("sha256")
    return {"artifact": str(artifact), "sha256": str(sha256).lower() if sha256 else None}
