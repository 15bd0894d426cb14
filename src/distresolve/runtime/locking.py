"""Named cross-process locks over the installed-component tree."""
from __future__ import annotations

import fcntl
import hashlib
import logging
import re
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Union

from ..constants import Constants
from ..exceptions import LockTimeoutError

logger = logging.getLogger(__name__)

_SAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


class ResourceManager:
    """Hands out exclusive locks keyed by name.

    Each key maps to a lock file in ``locks_dir`` held with ``fcntl.flock``.
    A per-process mutex per key sits in front of the OS lock so threads of the
    same process queue up as well. Lock files are left in place: unlinking
    them while another process waits on the old inode would let two holders in.
    """

    def __init__(
        self,
        locks_dir: Path,
        timeout: float = Constants.LOCK_TIMEOUT_SEC,
        poll_interval: float = Constants.LOCK_POLL_INTERVAL_SEC,
    ):
        if timeout <= 0:
            raise ValueError(f"timeout must be positive (got {timeout})")
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive (got {poll_interval})")
        self._locks_dir = Path(locks_dir)
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._mutexes: Dict[str, threading.Lock] = {}
        self._mutexes_guard = threading.Lock()

    def lock_path(self, key: Union[str, Path]) -> Path:
        """Lock file used for ``key``: readable prefix plus a digest of the full key."""
        text = str(key)
        digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]
        readable = _SAFE_CHARS.sub("_", Path(text).name or "root")[:48]
        return self._locks_dir / f"{readable}-{digest}.lock"

    def _mutex(self, lock_file: Path) -> threading.Lock:
        with self._mutexes_guard:
            return self._mutexes.setdefault(str(lock_file), threading.Lock())

    @contextmanager
    def acquire(self, key: Union[str, Path]) -> Iterator[Path]:
        """Hold the exclusive lock for ``key`` for the duration of the block.

        Raises:
            LockTimeoutError: If the lock is not obtained within the timeout.
        """
        lock_file = self.lock_path(key)
        self._locks_dir.mkdir(parents=True, exist_ok=True)
        deadline = time.monotonic() + self._timeout

        mutex = self._mutex(lock_file)
        if not mutex.acquire(timeout=self._timeout):
            raise LockTimeoutError(
                f"Could not acquire lock within {self._timeout}s",
                context={"resource": str(key)},
            )
        try:
            with open(lock_file, "a+") as fh:
                waited = False
                while True:
                    try:
                        fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                        break
                    except OSError:
                        if not waited:
                            logger.info("Waiting for another process to release %s", key)
                            waited = True
                        if time.monotonic() >= deadline:
                            raise LockTimeoutError(
                                f"Could not acquire lock within {self._timeout}s",
                                context={"resource": str(key)},
                            ) from None
                        time.sleep(self._poll_interval)
                logger.debug("Acquired lock for %s", key)
                try:
                    yield lock_file
                finally:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
                    logger.debug("Released lock for %s", key)
        finally:
            mutex.release()
