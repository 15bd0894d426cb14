"""Tests for engine/runtime installation, removal and listing."""

import threading
import time

import pytest
from semantic_version import Version

from distresolve.exceptions import (
    ChecksumOrExtractionFailure,
    ConfigurationError,
    EngineNotInstalled,
    EngineReleaseNotFound,
    IntegrityError,
    RuntimeInstallFailure,
    RuntimeReleaseNotFound,
)
from distresolve.runtime.locking import ResourceManager
from distresolve.runtime.manager import RuntimeVersionManager
from distresolve.runtime.models import RuntimeVersion, parse_artifact_fields, parse_engine_manifest
from distresolve.runtime.releases import (
    EngineReleaseProvider,
    LocalReleaseBackend,
    RuntimeReleaseProvider,
)
from distresolve.runtime.ui import ReadOnlyUserInterface

from conftest import make_tarball


class CountingBackend(LocalReleaseBackend):
    """Local backend that counts artifact downloads."""

    def __init__(self, root):
        super().__init__(root)
        self.downloads = []
        self._guard = threading.Lock()

    def download(self, tag, filename, destination):
        with self._guard:
            self.downloads.append(tag)
        return super().download(tag, filename, destination)


@pytest.fixture
def backend(release_root):
    return CountingBackend(release_root.root)


@pytest.fixture
def manager(dist_paths, backend):
    return RuntimeVersionManager(
        dist_paths,
        EngineReleaseProvider(backend),
        RuntimeReleaseProvider(backend),
        resource_manager=ResourceManager(dist_paths.locks, timeout=10),
    )


class TestFindOrInstallEngine:
    def test_installs_engine_and_runtime(self, manager, release_root, dist_paths, backend):
        """Engine and runtime land in their canonical directories with markers."""
        release_root.add_runtime()
        release_root.add_engine("2024.1.1")

        engine = manager.find_or_install_engine("2024.1.1")

        assert engine.version == Version("2024.1.1")
        assert engine.path == dist_paths.engines / "2024.1.1"
        assert (engine.path / ".installed").is_file()
        assert (engine.path / "bin" / "engine").is_file()
        assert engine.runtime_version == RuntimeVersion("23.1.0", "21")
        assert engine.manifest.minimum_launcher_version == Version("0.1.0")
        runtime = manager.find_runtime_for_engine(engine)
        assert runtime is not None
        assert (runtime.path / "bin" / "java").is_file()
        assert sorted(backend.downloads) == ["engine-2024.1.1", "runtime-23.1.0-java21"]

    def test_already_installed_is_not_downloaded_again(self, manager, release_root, backend):
        """A second call finds the installation on disk."""
        release_root.add_runtime()
        release_root.add_engine("2024.1.1")
        manager.find_or_install_engine("2024.1.1")
        manager.find_or_install_engine(Version("2024.1.1"))
        assert backend.downloads.count("engine-2024.1.1") == 1

    def test_unknown_release(self, manager):
        """Missing releases fail with EngineReleaseNotFound naming the version."""
        with pytest.raises(EngineReleaseNotFound) as exc_info:
            manager.find_or_install_engine("9.9.9")
        assert exc_info.value.context["engine_version"] == "9.9.9"

    def test_checksum_mismatch_leaves_canonical_path_untouched(self, manager, release_root, dist_paths):
        """A corrupt artifact fails the install and leaves no trace."""
        release_root.add_runtime()
        release_root.add_engine("2024.1.1", corrupt=True)

        with pytest.raises(ChecksumOrExtractionFailure) as exc_info:
            manager.find_or_install_engine("2024.1.1")

        assert isinstance(exc_info.value, IntegrityError)
        assert not (dist_paths.engines / "2024.1.1").exists()
        assert list(dist_paths.temporary.iterdir()) == []

    def test_unextractable_artifact(self, manager, release_root, dist_paths):
        """An artifact that is not an archive is an integrity failure."""
        release_root.add_runtime()
        release_root.add_engine("2024.1.1")
        artifact = release_root.root / "engine-2024.1.1" / "engine-2024.1.1.tar.gz"
        artifact.write_bytes(b"not a tarball")
        manifest = release_root.root / "engine-2024.1.1" / "manifest.yaml"
        manifest.write_text(
            "\n".join(line for line in manifest.read_text().splitlines() if not line.startswith("sha256"))
        )
        with pytest.raises(ChecksumOrExtractionFailure):
            manager.find_or_install_engine("2024.1.1")
        assert not (dist_paths.engines / "2024.1.1").exists()

    def test_runtime_failure_is_wrapped(self, manager, release_root, dist_paths):
        """A runtime that cannot be installed fails the engine install."""
        release_root.add_runtime(corrupt=True)
        release_root.add_engine("2024.1.1")
        with pytest.raises(RuntimeInstallFailure) as exc_info:
            manager.find_or_install_engine("2024.1.1")
        assert isinstance(exc_info.value.__cause__, ChecksumOrExtractionFailure)
        assert not (dist_paths.engines / "2024.1.1").exists()
        assert manager.list_installed_runtimes() == []

    def test_missing_runtime_release_is_wrapped(self, manager, release_root):
        """An engine requiring an unpublished runtime fails with RuntimeInstallFailure."""
        release_root.add_engine("2024.1.1", runtime="99.0.0")
        with pytest.raises(RuntimeInstallFailure):
            manager.find_or_install_engine("2024.1.1")

    def test_declined_installation(self, manager, release_root, backend):
        """A read-only user interface turns a missing engine into EngineNotInstalled."""
        release_root.add_runtime()
        release_root.add_engine("2024.1.1")
        with pytest.raises(EngineNotInstalled):
            manager.find_or_install_engine("2024.1.1", user_interface=ReadOnlyUserInterface())
        assert backend.downloads == []

    def test_broken_leftover_is_replaced(self, manager, release_root, dist_paths):
        """A directory without the marker is treated as absent and replaced."""
        release_root.add_runtime()
        release_root.add_engine("2024.1.1")
        leftover = dist_paths.engines / "2024.1.1"
        leftover.mkdir(parents=True)
        (leftover / "partial").write_text("x")

        assert manager.find_engine("2024.1.1") is None
        engine = manager.find_or_install_engine("2024.1.1")

        assert (engine.path / ".installed").is_file()
        assert not (engine.path / "partial").exists()

    def test_concurrent_installs_download_once(self, dist_paths, release_root, backend):
        """Concurrent callers share a single download; readers never see a partial tree."""
        release_root.add_runtime()
        release_root.add_engine("2024.1.1")
        results = []
        errors = []
        observations = []
        done = threading.Event()
        target = dist_paths.engines / "2024.1.1"
        reader = RuntimeVersionManager(
            dist_paths, EngineReleaseProvider(backend), RuntimeReleaseProvider(backend)
        )

        def complete(path):
            return (
                (path / "bin" / "engine").is_file()
                and (path / "lib" / "Standard" / "Base" / "package.yaml").is_file()
                and (path / "manifest.yaml").is_file()
            )

        def watch():
            while not done.is_set():
                if target.is_dir():
                    observations.append(complete(target))
                engine = reader.find_engine("2024.1.1")
                if engine is not None:
                    observations.append(complete(engine.path) and (engine.path / ".installed").is_file())

        def install():
            # Separate managers contend through the lock files, like separate processes.
            manager = RuntimeVersionManager(
                dist_paths,
                EngineReleaseProvider(backend),
                RuntimeReleaseProvider(backend),
                resource_manager=ResourceManager(dist_paths.locks, timeout=30),
            )
            try:
                results.append(manager.find_or_install_engine("2024.1.1"))
            except Exception as exc:
                errors.append(exc)

        watcher = threading.Thread(target=watch)
        watcher.start()
        threads = [threading.Thread(target=install) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        done.set()
        watcher.join()

        assert errors == []
        assert all(observations)
        assert len(results) == 4
        assert backend.downloads.count("engine-2024.1.1") == 1
        assert backend.downloads.count("runtime-23.1.0-java21") == 1
        assert {r.path for r in results} == {dist_paths.engines / "2024.1.1"}


class TestUninstallEngine:
    def test_uninstall_then_idempotent_failure(self, manager, release_root, dist_paths):
        """The first uninstall removes the engine; the second reports it absent."""
        release_root.add_runtime()
        release_root.add_engine("2024.1.1")
        manager.find_or_install_engine("2024.1.1")

        manager.uninstall_engine("2024.1.1")
        assert not (dist_paths.engines / "2024.1.1").exists()
        snapshot = sorted(p.name for p in dist_paths.data_root.rglob("*"))

        with pytest.raises(EngineNotInstalled):
            manager.uninstall_engine("2024.1.1")
        assert sorted(p.name for p in dist_paths.data_root.rglob("*")) == snapshot

    def test_unused_runtime_is_removed(self, manager, release_root):
        """Runtimes no engine needs are cleaned up after uninstall."""
        release_root.add_runtime()
        release_root.add_engine("2024.1.1")
        manager.find_or_install_engine("2024.1.1")
        manager.uninstall_engine("2024.1.1")
        assert manager.list_installed_runtimes() == []

    def test_shared_runtime_is_kept(self, manager, release_root):
        """A runtime still required by another engine stays installed."""
        release_root.add_runtime()
        release_root.add_engine("2024.1.1")
        release_root.add_engine("2024.2.0")
        manager.find_or_install_engine("2024.1.1")
        manager.find_or_install_engine("2024.2.0")
        manager.uninstall_engine("2024.1.1")
        assert [r.version for r in manager.list_installed_runtimes()] == [RuntimeVersion("23.1.0", "21")]

    def test_keep_runtimes(self, manager, release_root):
        """cleanup_runtimes=False leaves runtimes alone."""
        release_root.add_runtime()
        release_root.add_engine("2024.1.1")
        manager.find_or_install_engine("2024.1.1")
        manager.uninstall_engine("2024.1.1", cleanup_runtimes=False)
        assert len(manager.list_installed_runtimes()) == 1

    def test_cleanup_keeps_runtime_of_engine_being_installed(self, dist_paths, release_root, backend):
        """An uninstall racing an install of another engine leaves the shared runtime alone."""
        release_root.add_runtime()
        release_root.add_engine("2024.1.1")
        release_root.add_engine("2024.2.0")

        def make_manager(cls=RuntimeVersionManager):
            return cls(
                dist_paths,
                EngineReleaseProvider(backend),
                RuntimeReleaseProvider(backend),
                resource_manager=ResourceManager(dist_paths.locks, timeout=10),
            )

        other = make_manager()
        other.find_or_install_engine("2024.1.1")
        errors = []

        def uninstall():
            try:
                other.uninstall_engine("2024.1.1")
            except Exception as exc:
                errors.append(exc)

        class UninstallBeforePublish(RuntimeVersionManager):
            """Starts the competing uninstall right before the engine is moved into place."""

            uninstaller = None

            def _publish(self, payload, target, staging):
                if target.parent == dist_paths.engines and self.uninstaller is None:
                    self.uninstaller = threading.Thread(target=uninstall)
                    self.uninstaller.start()
                    time.sleep(0.3)
                super()._publish(payload, target, staging)

        installer = make_manager(UninstallBeforePublish)
        engine = installer.find_or_install_engine("2024.2.0")
        installer.uninstaller.join()

        assert errors == []
        assert installer.find_engine("2024.1.1") is None
        assert installer.find_runtime_for_engine(engine) is not None
        assert (engine.path / ".installed").is_file()


class TestListInstalledEngines:
    def test_sorted_and_complete_only(self, manager, release_root, dist_paths):
        """Only marked installations are listed, ordered by version."""
        release_root.add_runtime()
        for version in ("2024.10.0", "2024.2.0"):
            release_root.add_engine(version)
            manager.find_or_install_engine(version)
        (dist_paths.engines / "2025.1.0").mkdir()
        (dist_paths.engines / "not-a-version").mkdir()

        versions = [str(e.version) for e in manager.list_installed_engines()]

        assert versions == ["2024.2.0", "2024.10.0"]

    def test_includes_read_only_search_paths(self, dist_paths, release_root, backend, tmp_path):
        """Engines bundled elsewhere are found but the managed copy wins."""
        bundle = tmp_path / "bundle" / "2023.1.0"
        bundle.mkdir(parents=True)
        (bundle / "manifest.yaml").write_text("runtime-version: 23.1.0\njava-version: 21\n")
        (bundle / ".installed").write_text("")
        manager = RuntimeVersionManager(
            dist_paths,
            EngineReleaseProvider(backend),
            RuntimeReleaseProvider(backend),
            engine_search_paths=[tmp_path / "bundle"],
        )
        assert [str(e.version) for e in manager.list_installed_engines()] == ["2023.1.0"]
        assert manager.find_engine("2023.1.0").path == bundle

    def test_empty_distribution(self, manager):
        """Nothing installed means an empty list."""
        assert manager.list_installed_engines() == []


class TestArchiveSafety:
    def test_rejects_path_traversal(self, manager, release_root, dist_paths):
        """Members escaping the extraction directory abort the install."""
        release_root.add_runtime()
        tag = release_root.add_engine("2024.1.1")
        artifact = release_root.root / tag / f"{tag}.tar.gz"
        make_tarball(artifact, {"../../escape": "x"}, top="")
        manifest = release_root.root / tag / "manifest.yaml"
        manifest.write_text(
            "\n".join(line for line in manifest.read_text().splitlines() if not line.startswith("sha256"))
        )
        with pytest.raises(ChecksumOrExtractionFailure):
            manager.find_or_install_engine("2024.1.1")
        assert not (dist_paths.engines / "2024.1.1").exists()
        assert not (dist_paths.data_root / "escape").exists()


class TestReleaseManifests:
    @pytest.mark.parametrize(
        "runtime, java",
        [("../../escape", "21"), ("23.1.0", "21/../../x"), ("23.1.0", "21\\..\\x"), ("/abs", "21")],
    )
    def test_runtime_names_must_be_plain(self, runtime, java):
        """Runtime versions end up in install paths, so separators are rejected."""
        text = f"runtime-version: '{runtime}'\njava-version: '{java}'\nartifact: a.tar.gz\n"
        with pytest.raises(ConfigurationError):
            parse_engine_manifest(text, "engine-1.0.0/manifest.yaml")

    @pytest.mark.parametrize("artifact", ["../other/a.tar.gz", "..", "/tmp/a.tar.gz"])
    def test_artifact_must_be_plain(self, artifact):
        with pytest.raises(ConfigurationError):
            parse_artifact_fields(f"artifact: '{artifact}'\n", "engine-1.0.0/manifest.yaml")

    def test_escaping_runtime_is_not_installed(self, manager, release_root, dist_paths, backend):
        """An engine naming a runtime outside the runtime directory fails before any download."""
        release_root.add_engine("2024.1.1", runtime="../../../escape")
        with pytest.raises(ConfigurationError):
            manager.find_or_install_engine("2024.1.1")
        assert backend.downloads == []
        assert not (dist_paths.data_root.parent / "escape-java21").exists()

    def test_undecodable_manifest(self, manager, release_root):
        """A release manifest that is not UTF-8 is a configuration error."""
        tag = release_root.add_engine("2024.1.1")
        (release_root.root / tag / "manifest.yaml").write_bytes(b"runtime-version: \xff\n")
        with pytest.raises(ConfigurationError):
            manager.find_or_install_engine("2024.1.1")


class TestMissingArtifacts:
    def test_missing_engine_artifact_names_the_version(self, manager, release_root, dist_paths):
        """A manifest whose artifact is gone reports the engine version."""
        release_root.add_runtime()
        tag = release_root.add_engine("2024.1.1")
        (release_root.root / tag / f"{tag}.tar.gz").unlink()
        with pytest.raises(EngineReleaseNotFound) as exc_info:
            manager.find_or_install_engine("2024.1.1")
        assert exc_info.value.context["engine_version"] == "2024.1.1"
        assert not (dist_paths.engines / "2024.1.1").exists()

    def test_missing_runtime_artifact(self, manager, release_root):
        """A runtime whose artifact is gone fails the engine install with its version."""
        tag = release_root.add_runtime()
        (release_root.root / tag / "runtime.tar.gz").unlink()
        release_root.add_engine("2024.1.1")
        with pytest.raises(RuntimeInstallFailure) as exc_info:
            manager.find_or_install_engine("2024.1.1")
        cause = exc_info.value.__cause__
        assert isinstance(cause, RuntimeReleaseNotFound)
        assert cause.context["runtime_version"] == str(RuntimeVersion("23.1.0", "21"))
