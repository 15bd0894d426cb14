"""Artifact verification and extraction."""
from __future__ import annotations

import hashlib
import logging
import os
import tarfile
from pathlib import Path
from typing import Optional

from ..constants import Constants
from ..exceptions import ChecksumOrExtractionFailure

logger = logging.getLogger(__name__)


def sha256_of(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(Constants.DOWNLOAD_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def verify_checksum(path: Path, expected: Optional[str], component: str) -> None:
    """Compare the SHA-256 of ``path`` with ``expected``; no-op when nothing is expected."""
    if not expected:
        logger.debug("No checksum published for %s, skipping verification", component)
        return
    actual = sha256_of(path)
    if actual != expected.lower():
        raise ChecksumOrExtractionFailure(
            f"Checksum mismatch for {component}",
            context={"component": component, "expected": expected, "actual": actual},
        )


def _is_within(base: Path, target: Path) -> bool:
    base = base.resolve()
    try:
        target.resolve().relative_to(base)
    except ValueError:
        return False
    return True


def extract_archive(archive: Path, destination: Path, component: str) -> Path:
    """Extract a tar archive into ``destination`` and return the payload root.

    An archive holding a single top-level directory is unwrapped: that
    directory is returned instead of ``destination``. Members escaping the
    destination, absolute paths and device files are rejected.

    Raises:
        ChecksumOrExtractionFailure: If the archive is unreadable or unsafe.
    """
    destination.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(archive, "r:*") as tar:
            members = tar.getmembers()
            for member in members:
                if member.isdev() or os.path.isabs(member.name):
                    raise ChecksumOrExtractionFailure(
                        f"Unsafe archive member {member.name!r} in {component}",
                        context={"component": component},
                    )
                if not _is_within(destination, destination / member.name):
                    raise ChecksumOrExtractionFailure(
                        f"Archive member {member.name!r} escapes the destination",
                        context={"component": component},
                    )
                if member.issym():
                    link_target = (destination / member.name).parent / member.linkname
                else:
                    link_target = destination / member.linkname
                if (member.issym() or member.islnk()) and not _is_within(destination, link_target):
                    raise ChecksumOrExtractionFailure(
                        f"Archive link {member.name!r} points outside the destination",
                        context={"component": component},
                    )
            if hasattr(tarfile, "data_filter"):
                tar.extractall(destination, members=members, filter="data")
            else:
                tar.extractall(destination, members=members)
    except (tarfile.TarError, OSError, EOFError) as exc:
        raise ChecksumOrExtractionFailure(
            f"Could not extract {component}: {exc}",
            context={"component": component},
        ) from exc

    entries = list(destination.iterdir())
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return destination
