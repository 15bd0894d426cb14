"""Edition provider that refreshes a local cache from remote edition repositories.

A repository at ``<url>`` publishes ``<url>/manifest.yaml``::

    editions:
      - 2024.1
      - 2024.2

and each edition at ``<url>/<name>.yaml``. Fetch failures only ever degrade to
what is already on disk: a repository outage must not make an edition that
resolved yesterday unresolvable today.
"""
from __future__ import annotations

import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import yaml

from ..common.http_client import get_text
from ..common.logging_utils import extra_context, safe_url
from ..constants import Constants
from ..distribution import is_plain_name
from ..exceptions import DistResolveError, EditionParseError, RepositoryUnreachable
from .parser import parse_edition
from .provider import EditionProvider, FileSystemEditionProvider

logger = logging.getLogger(__name__)


class EditionRepositoryClient:
    """HTTP client for a single edition repository."""

    def __init__(self, url: str, timeout: Optional[float] = None):
        self.url = url.rstrip("/")
        self._timeout = timeout

    def fetch_manifest(self) -> List[str]:
        """Return the edition names listed in the repository manifest.

        Raises:
            RepositoryUnreachable: On transport errors or unexpected status.
            EditionParseError: If the manifest is malformed.
        """
        manifest_url = f"{self.url}/{Constants.EDITION_MANIFEST_FILE}"
        status, text = get_text(manifest_url, context="editions", timeout=self._timeout)
        if status != 200:
            raise RepositoryUnreachable(safe_url(manifest_url), f"manifest returned status {status}")
        try:
            data = yaml.load(text, Loader=yaml.BaseLoader)
        except yaml.YAMLError as exc:
            raise EditionParseError(f"Edition manifest is not valid YAML: {exc}", manifest_url) from exc
        if not isinstance(data, dict) or not isinstance(data.get("editions", []), list):
            raise EditionParseError("Edition manifest must contain an 'editions' list", manifest_url)
        return [str(name) for name in data.get("editions", []) if name]

    def fetch_edition(self, name: str) -> str:
        """Return the raw text of edition ``name``."""
        edition_url = f"{self.url}/{name}{Constants.EDITION_SUFFIX}"
        status, text = get_text(edition_url, context="editions", timeout=self._timeout)
        if status != 200:
            raise RepositoryUnreachable(safe_url(edition_url), f"edition returned status {status}")
        return text


def _write_atomically(target: Path, content: str) -> None:
    """Write ``content`` to a temp file beside ``target`` and rename it into place."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)


class UpdatingEditionProvider(EditionProvider):
    """Looks editions up on disk, refreshing the cache directory when needed.

    Args:
        search_paths: Local directories searched before the cache.
        cache_dir: Directory where fetched editions are stored.
        repository_urls: Edition repositories, in priority order.
        cache_ttl: Age in seconds after which a cached edition is refreshed.
        client_factory: Builds a client for a repository URL (tests inject fakes).
    """

    def __init__(
        self,
        search_paths: Iterable[Path],
        cache_dir: Path,
        repository_urls: Iterable[str],
        cache_ttl: float = Constants.EDITION_CACHE_TTL_SEC,
        client_factory: Optional[Callable[[str], EditionRepositoryClient]] = None,
    ):
        self._cache_dir = Path(cache_dir)
        self._local = FileSystemEditionProvider([*search_paths, self._cache_dir])
        self._repository_urls = list(repository_urls)
        self._cache_ttl = cache_ttl
        self._client_factory = client_factory or EditionRepositoryClient

    def find_edition(self, name: str) -> Optional[Path]:
        if not is_plain_name(name):
            logger.warning("Ignoring edition name %r: not a plain file name", name)
            return None
        found = self._local.find_edition(name)
        if found is not None and not self._is_stale(found):
            return found
        if found is None:
            logger.info("Edition %s not available locally, checking repositories", name)
        else:
            logger.info("Cached edition %s is stale, refreshing", name)
        self._refresh(only=name)
        return self._local.find_edition(name)

    def list_available(self, update: bool = False) -> List[str]:
        if update:
            self.update()
        return self._local.list_available()

    def update(self) -> None:
        """Download every edition listed by every repository into the cache."""
        self._refresh(only=None)

    def _is_stale(self, path: Path) -> bool:
        if path.parent != self._cache_dir:
            return False
        try:
            age = time.time() - path.stat().st_mtime
        except OSError:
            return True
        return age > self._cache_ttl

    def _refresh(self, only: Optional[str]) -> None:
        for url in self._repository_urls:
            client = self._client_factory(url)
            try:
                names = client.fetch_manifest()
            except DistResolveError as exc:
                logger.warning(
                    "Could not fetch edition manifest from %s: %s",
                    safe_url(url),
                    exc,
                    extra=extra_context(event="edition_update", outcome="manifest_failed"),
                )
                continue
            wanted = []
            for name in names:
                if only is not None and name != only:
                    continue
                if not is_plain_name(name):
                    logger.warning(
                        "Skipping edition %r listed by %s: not a plain file name",
                        name,
                        safe_url(url),
                        extra=extra_context(event="edition_update", outcome="rejected_name"),
                    )
                    continue
                wanted.append(name)
            for name in wanted:
                self._download(client, name)
            if only is not None and wanted:
                # The first repository that lists the edition wins.
                return

    def _download(self, client: EditionRepositoryClient, name: str) -> None:
        try:
            text = client.fetch_edition(name)
            parse_edition(text, name=name, source=f"{client.url}/{name}")
        except DistResolveError as exc:
            logger.warning("Could not fetch edition %s from %s: %s", name, safe_url(client.url), exc)
            return
        _write_atomically(self._cache_dir / f"{name}{Constants.EDITION_SUFFIX}", text)
        logger.info("Cached edition %s from %s", name, safe_url(client.url))
