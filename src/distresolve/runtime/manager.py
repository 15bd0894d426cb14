"""Installation and lifecycle management of engines and their runtimes.

The filesystem is the only record of what is installed. A component counts as
installed when its canonical directory exists and holds the completeness
marker, which is written after the directory has been moved into place.

Installing follows one protocol for engines and runtimes alike:

1. take the lock keyed by the canonical path,
2. re-check the marker (a concurrent installer may have finished meanwhile),
3. download, verify and extract into a private temporary directory,
4. for engines, take the runtime lock and ensure the required runtime,
5. rename the staged tree onto the canonical path and write the marker,
6. release the locks.

Runtime cleanup takes the same runtime lock and re-checks which engines use
the runtime, so it never removes one an engine is being published against.

Anything failing before step 5 only leaves debris in the temporary
directory, which is removed on the way out.
"""
from __future__ import annotations

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set, Union

from semantic_version import Version

from ..common.logging_utils import Timer, extra_context
from ..constants import Constants
from ..distribution import DistributionPaths, distinct_paths
from ..exceptions import (
    ComponentInstallDeclined,
    DistResolveError,
    EngineNotInstalled,
    RuntimeInstallFailure,
)
from ..versioning.parser import parse_semver, try_parse_semver
from .archive import extract_archive, verify_checksum
from .locking import ResourceManager
from .models import InstalledEngine, InstalledRuntime, RuntimeVersion, parse_engine_manifest
from .releases import EngineReleaseProvider, RuntimeReleaseProvider
from .ui import RuntimeVersionManagementUserInterface

logger = logging.getLogger(__name__)


class TemporaryDirectoryManager:
    """Creates private scratch directories next to the installation tree.

    Keeping them on the same filesystem as the canonical directories is what
    makes the final ``os.replace`` atomic.
    """

    def __init__(self, root: Path):
        self._root = Path(root)

    @contextmanager
    def scope(self, prefix: str) -> Iterator[Path]:
        self._root.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=prefix, dir=str(self._root)))
        try:
            yield path
        finally:
            shutil.rmtree(path, ignore_errors=True)


def _marker(path: Path) -> Path:
    return path / Constants.INSTALLED_MARKER


def _write_marker(path: Path) -> None:
    _marker(path).write_text(
        datetime.now(timezone.utc).isoformat() + "\n", encoding="utf-8"
    )


class RuntimeVersionManager:
    """Finds, installs and removes engine versions and the runtimes they need.

    Args:
        paths: Distribution directories; engines go to ``paths.engines``,
            runtimes to ``paths.runtimes``.
        engine_provider: Source of engine releases.
        runtime_provider: Source of runtime releases.
        resource_manager: Lock manager; defaults to one over ``paths.locks``.
        user_interface: Consulted before installing anything.
        engine_search_paths: Extra read-only directories with installed engines.
    """

    def __init__(
        self,
        paths: DistributionPaths,
        engine_provider: EngineReleaseProvider,
        runtime_provider: RuntimeReleaseProvider,
        resource_manager: Optional[ResourceManager] = None,
        user_interface: Optional[RuntimeVersionManagementUserInterface] = None,
        engine_search_paths: Optional[Iterable[Path]] = None,
    ):
        self._paths = paths
        self._engine_provider = engine_provider
        self._runtime_provider = runtime_provider
        self._resources = resource_manager or ResourceManager(paths.locks)
        self._user_interface = user_interface or RuntimeVersionManagementUserInterface()
        self._temporary = TemporaryDirectoryManager(paths.temporary)
        self._engine_search_paths = distinct_paths(
            [paths.engines, *(engine_search_paths or paths.engine_overrides)]
        )

    # Lookup

    def _load_engine(self, path: Path) -> Optional[InstalledEngine]:
        version = try_parse_semver(path.name)
        if version is None or not _marker(path).is_file():
            return None
        manifest_path = path / Constants.ENGINE_MANIFEST_FILE
        try:
            manifest = parse_engine_manifest(
                manifest_path.read_text(encoding="utf-8"), str(manifest_path)
            )
        except (OSError, UnicodeDecodeError, DistResolveError) as exc:
            logger.warning("Ignoring broken engine installation at %s: %s", path, exc)
            return None
        return InstalledEngine(version=version, path=path, manifest=manifest)

    def find_engine(self, version: Union[str, Version]) -> Optional[InstalledEngine]:
        """Return the installed engine ``version``, searching all engine directories."""
        version = parse_semver(version)
        for directory in self._engine_search_paths:
            engine = self._load_engine(directory / str(version))
            if engine is not None:
                return engine
        return None

    def list_installed_engines(self) -> List[InstalledEngine]:
        """Return complete engine installations sorted by version.

        When the same version exists in several directories the first one wins.
        """
        found = {}
        for directory in self._engine_search_paths:
            if not directory.is_dir():
                continue
            for entry in directory.iterdir():
                if not entry.is_dir():
                    continue
                engine = self._load_engine(entry)
                if engine is not None and engine.version not in found:
                    found[engine.version] = engine
        return [found[v] for v in sorted(found)]

    def _runtime_path(self, version: RuntimeVersion) -> Path:
        return self._paths.runtimes / version.tag

    def find_runtime(self, version: RuntimeVersion) -> Optional[InstalledRuntime]:
        path = self._runtime_path(version)
        if _marker(path).is_file():
            return InstalledRuntime(version=version, path=path)
        return None

    def find_runtime_for_engine(self, engine: InstalledEngine) -> Optional[InstalledRuntime]:
        return self.find_runtime(engine.runtime_version)

    def list_installed_runtimes(self) -> List[InstalledRuntime]:
        runtimes = []
        root = self._paths.runtimes
        if not root.is_dir():
            return runtimes
        for entry in sorted(root.iterdir()):
            if not entry.is_dir() or not _marker(entry).is_file():
                continue
            version = self._read_runtime_version(entry)
            if version is not None:
                runtimes.append(InstalledRuntime(version=version, path=entry))
        return runtimes

    @staticmethod
    def _read_runtime_version(path: Path) -> Optional[RuntimeVersion]:
        name = path.name
        if not name.startswith("runtime-") or "-java" not in name:
            return None
        version, _, java = name[len("runtime-"):].rpartition("-java")
        if not version or not java:
            return None
        return RuntimeVersion(version, java)

    # Installation

    def find_or_install_engine(
        self,
        version: Union[str, Version],
        user_interface: Optional[RuntimeVersionManagementUserInterface] = None,
    ) -> InstalledEngine:
        """Return the installed engine ``version``, installing it if needed.

        Raises:
            EngineNotInstalled: The user interface declined the installation.
            EngineReleaseNotFound: No release of that version exists.
            ChecksumOrExtractionFailure: The downloaded artifact is corrupt.
            RuntimeInstallFailure: The required runtime cannot be installed.
        """
        version = parse_semver(version)
        ui = user_interface or self._user_interface
        installed = self.find_engine(version)
        if installed is not None:
            self._ensure_runtime_for(installed, ui)
            return installed
        if not ui.should_install_missing_engine(version):
            raise EngineNotInstalled(version)
        return self._install_engine(version, ui)

    def _ensure_runtime_for(
        self, engine: InstalledEngine, ui: RuntimeVersionManagementUserInterface
    ) -> None:
        if self.find_runtime_for_engine(engine) is not None:
            return
        logger.warning(
            "Engine %s is installed but its runtime %s is missing",
            engine.version,
            engine.runtime_version,
        )
        try:
            self.find_or_install_runtime(engine.runtime_version, ui)
        except DistResolveError as exc:
            raise RuntimeInstallFailure(
                f"Runtime {engine.runtime_version} required by engine {engine.version} "
                f"could not be installed: {exc}",
                context={"engine_version": str(engine.version), "runtime": engine.runtime_version.tag},
            ) from exc

    def _install_engine(
        self, version: Version, ui: RuntimeVersionManagementUserInterface
    ) -> InstalledEngine:
        target = self._paths.engines / str(version)
        with self._resources.acquire(target):
            installed = self._load_engine(target)
            if installed is not None:
                logger.info("Engine %s was installed by another process", version)
                return installed

            release = self._engine_provider.fetch_release(version)
            ui.log_info(f"Installing engine {version}")
            component = f"engine {version}"
            with Timer() as timer, self._temporary.scope(prefix=f"engine-{version}-") as staging:
                archive = self._engine_provider.download(
                    release, staging / Path(release.artifact).name
                )
                verify_checksum(archive, release.sha256, component)
                payload = extract_archive(archive, staging / "payload", component)
                (payload / Constants.ENGINE_MANIFEST_FILE).write_text(
                    release.manifest.dump(), encoding="utf-8"
                )
                runtime = release.manifest.runtime
                # Held until the engine is published.
                with self._resources.acquire(self._runtime_path(runtime)):
                    try:
                        self._find_or_install_runtime_locked(runtime, ui)
                    except DistResolveError as exc:
                        raise RuntimeInstallFailure(
                            f"Runtime {runtime} required by engine {version} "
                            f"could not be installed: {exc}",
                            context={"engine_version": str(version), "runtime": runtime.tag},
                        ) from exc
                    self._publish(payload, target, staging)

            logger.info(
                "Engine %s installed",
                version,
                extra=extra_context(
                    event="install", component="engine", outcome="success",
                    duration_ms=timer.duration_ms(),
                ),
            )
            installed = self._load_engine(target)
            if installed is None:
                raise RuntimeInstallFailure(
                    f"Engine {version} is incomplete after installation",
                    context={"engine_version": str(version)},
                )
            return installed

    def find_or_install_runtime(
        self,
        version: RuntimeVersion,
        user_interface: Optional[RuntimeVersionManagementUserInterface] = None,
    ) -> InstalledRuntime:
        """Return the installed runtime ``version``, installing it if needed."""
        ui = user_interface or self._user_interface
        installed = self.find_runtime(version)
        if installed is not None:
            return installed
        with self._resources.acquire(self._runtime_path(version)):
            return self._find_or_install_runtime_locked(version, ui)

    def _find_or_install_runtime_locked(
        self, version: RuntimeVersion, ui: RuntimeVersionManagementUserInterface
    ) -> InstalledRuntime:
        """Install the runtime ``version`` unless present. Caller holds its lock."""
        installed = self.find_runtime(version)
        if installed is not None:
            return installed
        if not ui.should_install_missing_runtime(version):
            raise ComponentInstallDeclined(
                f"Installation of runtime {version} was declined",
                context={"runtime": version.tag},
            )
        target = self._runtime_path(version)
        release = self._runtime_provider.fetch_release(version)
        ui.log_info(f"Installing runtime {version}")
        component = f"runtime {version.tag}"
        with self._temporary.scope(prefix=f"{version.tag}-") as staging:
            archive = self._runtime_provider.download(
                release, staging / Path(release.artifact).name
            )
            verify_checksum(archive, release.sha256, component)
            payload = extract_archive(archive, staging / "payload", component)
            self._publish(payload, target, staging)
        logger.info("Runtime %s installed", version)
        return InstalledRuntime(version=version, path=target)

    def _publish(self, payload: Path, target: Path, staging: Path) -> None:
        """Move ``payload`` onto ``target`` and mark it complete. Caller holds the lock."""
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.exists():
            # A directory without a marker is a leftover from an interrupted run.
            logger.warning("Replacing incomplete installation at %s", target)
            os.replace(target, staging / "incomplete")
        os.replace(payload, target)
        _write_marker(target)

    # Removal

    def uninstall_engine(self, version: Union[str, Version], cleanup_runtimes: bool = True) -> None:
        """Remove the engine ``version`` from the installation directory.

        Runtimes that no remaining engine needs are removed afterwards unless
        ``cleanup_runtimes`` is False.

        Raises:
            EngineNotInstalled: If it is not installed there.
        """
        version = parse_semver(version)
        target = self._paths.engines / str(version)
        with self._resources.acquire(target):
            if not target.is_dir():
                raise EngineNotInstalled(version)
            # Dropping the marker first makes the engine invisible before any file is removed.
            _marker(target).unlink(missing_ok=True)
            with self._temporary.scope(prefix=f"uninstall-{version}-") as trash:
                os.replace(target, trash / target.name)
        logger.info("Engine %s uninstalled", version)
        if cleanup_runtimes:
            self.cleanup_unused_runtimes()

    def cleanup_unused_runtimes(self) -> List[RuntimeVersion]:
        """Remove runtimes that no installed engine requires; return what was removed.

        Engine installs publish while holding the runtime lock, so the usage
        check is repeated once that lock is held.
        """
        used = self._used_runtimes()
        removed = []
        for runtime in self.list_installed_runtimes():
            if runtime.version in used:
                continue
            with self._resources.acquire(runtime.path):
                if not runtime.path.is_dir() or runtime.version in self._used_runtimes():
                    continue
                _marker(runtime.path).unlink(missing_ok=True)
                with self._temporary.scope(prefix=f"uninstall-{runtime.version.tag}-") as trash:
                    os.replace(runtime.path, trash / runtime.path.name)
            logger.info("Removed unused runtime %s", runtime.version)
            removed.append(runtime.version)
        return removed

    def _used_runtimes(self) -> Set[RuntimeVersion]:
        return {engine.runtime_version for engine in self.list_installed_engines()}
