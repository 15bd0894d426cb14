"""Shared fixtures: distribution layouts, edition files and fake release roots."""

import hashlib
import io
import tarfile
from pathlib import Path

import pytest

from distresolve.distribution import DistributionPaths


def make_tarball(path: Path, files: dict, top: str = "payload") -> Path:
    """Write a .tar.gz holding ``files`` (relative name -> text) under ``top``/."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as tar:
        for rel, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(f"{top}/{rel}" if top else rel)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


def sha256_hex(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


class ReleaseRoot:
    """A local release root laid out like the remote one."""

    def __init__(self, root: Path):
        self.root = root

    def add_runtime(self, version="23.1.0", java="21", with_checksum=True, corrupt=False):
        tag = f"runtime-{version}-java{java}"
        artifact = make_tarball(self.root / tag / "runtime.tar.gz", {"bin/java": "#!/bin/sh\n"})
        checksum = sha256_hex(artifact)
        if corrupt:
            checksum = "0" * 64
        lines = ["artifact: runtime.tar.gz"]
        if with_checksum:
            lines.append(f"sha256: {checksum}")
        (self.root / tag / "manifest.yaml").write_text("\n".join(lines) + "\n")
        return tag

    def add_engine(self, version="2024.1.1", runtime="23.1.0", java="21", corrupt=False):
        tag = f"engine-{version}"
        artifact_name = f"{tag}.tar.gz"
        artifact = make_tarball(
            self.root / tag / artifact_name,
            {"bin/engine": "#!/bin/sh\n", "lib/Standard/Base/package.yaml": "name: Base\n"},
        )
        checksum = "f" * 64 if corrupt else sha256_hex(artifact)
        (self.root / tag / "manifest.yaml").write_text(
            f"runtime-version: {runtime}\n"
            f"java-version: '{java}'\n"
            f"minimum-launcher-version: 0.1.0\n"
            f"artifact: {artifact_name}\n"
            f"sha256: {checksum}\n"
        )
        return tag


@pytest.fixture
def dist_paths(tmp_path):
    return DistributionPaths(
        data_root=tmp_path / "data",
        cache_root=tmp_path / "cache",
        config_root=tmp_path / "config",
    )


@pytest.fixture
def release_root(tmp_path):
    root = tmp_path / "releases"
    root.mkdir()
    return ReleaseRoot(root)


@pytest.fixture
def write_edition(tmp_path):
    """Write an edition document into a directory (default: tmp_path/editions)."""

    def _write(name, text, directory=None):
        directory = directory or tmp_path / "editions"
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{name}.yaml"
        path.write_text(text)
        return path

    return _write
