"""Edition providers: locate edition documents by name."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Optional

from ..constants import Constants
from ..distribution import distinct_paths, is_plain_name

logger = logging.getLogger(__name__)


class EditionProvider(ABC):
    """Locates edition documents.

    A missing edition is reported as None, not as an error; callers decide
    whether absence is fatal.
    """

    @abstractmethod
    def find_edition(self, name: str) -> Optional[Path]:
        """Return the path of the edition document called ``name``, if any."""

    @abstractmethod
    def list_available(self, update: bool = False) -> List[str]:
        """Return names of all editions that can be found, sorted."""


class FileSystemEditionProvider(EditionProvider):
    """Searches an ordered list of directories; never performs network I/O."""

    def __init__(self, search_paths: Iterable[Path]):
        self._search_paths = distinct_paths(search_paths)

    @property
    def search_paths(self) -> List[Path]:
        return list(self._search_paths)

    def find_edition(self, name: str) -> Optional[Path]:
        if not is_plain_name(name):
            logger.warning("Ignoring edition name %r: not a plain file name", name)
            return None
        filename = name + Constants.EDITION_SUFFIX
        for directory in self._search_paths:
            candidate = directory / filename
            if candidate.is_file():
                logger.debug("Edition %s found at %s", name, candidate)
                return candidate
        logger.debug("Edition %s not found in %d search paths", name, len(self._search_paths))
        return None

    def list_available(self, update: bool = False) -> List[str]:
        names = set()
        for directory in self._search_paths:
            if not directory.is_dir():
                continue
            for entry in directory.iterdir():
                if entry.is_file() and entry.name.endswith(Constants.EDITION_SUFFIX):
                    if entry.name == Constants.EDITION_MANIFEST_FILE:
                        continue
                    names.add(entry.name[: -len(Constants.EDITION_SUFFIX)])
        return sorted(names)
