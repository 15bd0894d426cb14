"""Edition document parsing.

Edition documents are YAML mappings::

    parent: 2024.1            # alias: extends
    engine-version: 2024.1.1
    repositories:
      - name: main
        url: https://libraries.example.org
    libraries:
      - namespace: Standard
        name: Table
        version: 1.2.0
        repository: main

Unknown keys are ignored so that newer documents stay readable.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional, Tuple

import yaml

from ..common.yaml_utils import load_plain_yaml
from ..exceptions import ConfigurationError, EditionParseError
from ..versioning.models import LibraryName
from ..versioning.parser import parse_semver
from .models import LibraryRequirement, RawEdition, Repository

logger = logging.getLogger(__name__)


def _parse_parent(data: dict, source: str) -> Optional[str]:
    parent = data.get("parent", data.get("extends"))
    if parent is None:
        return None
    if isinstance(parent, (dict, list)):
        raise EditionParseError("'parent' must be an edition name", source)
    return str(parent)


def _parse_repositories(raw: Any, source: str) -> Optional[Tuple[Repository, ...]]:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise EditionParseError("'repositories' must be a list", source)
    repositories: List[Repository] = []
    for entry in raw:
        if not isinstance(entry, dict) or not entry.get("name") or not entry.get("url"):
            raise EditionParseError(
                f"Repository entry {entry!r} must define 'name' and 'url'", source
            )
        repositories.append(Repository(name=str(entry["name"]), url=str(entry["url"])))
    return tuple(repositories)


def _parse_library(entry: Any, source: str) -> LibraryRequirement:
    if not isinstance(entry, dict):
        raise EditionParseError(f"Library entry {entry!r} must be a mapping", source)
    if entry.get("version") is None:
        raise EditionParseError(f"Library entry {entry!r} is missing 'version'", source)
    try:
        if entry.get("namespace"):
            if not entry.get("name"):
                raise EditionParseError(f"Library entry {entry!r} is missing 'name'", source)
            library = LibraryName(str(entry["namespace"]), str(entry["name"]))
        else:
            library = LibraryName.from_qualified(str(entry.get("name", "")))
        version = parse_semver(entry["version"])
    except EditionParseError:
        raise
    except ConfigurationError as exc:
        raise EditionParseError(f"Invalid library entry {entry!r}: {exc.message}", source) from exc
    repository = entry.get("repository")
    return LibraryRequirement(
        namespace=library.namespace,
        name=library.name,
        version=version,
        repository=str(repository) if repository is not None else None,
    )


def _parse_libraries(raw: Any, source: str) -> Optional[Tuple[LibraryRequirement, ...]]:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise EditionParseError("'libraries' must be a list", source)
    return tuple(_parse_library(entry, source) for entry in raw)


def parse_edition(text: str, name: Optional[str] = None, source: Optional[str] = None) -> RawEdition:
    """Parse edition YAML text into a RawEdition.

    Args:
        text: Document contents.
        name: Edition name to attach (usually the file stem).
        source: Location used in error messages.

    Raises:
        EditionParseError: If the document is not valid.
    """
    source = source or name or "<edition>"
    try:
        data = load_plain_yaml(text)
    except yaml.YAMLError as exc:
        raise EditionParseError(f"Edition is not valid YAML: {exc}", source) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise EditionParseError("Edition document must be a mapping", source)

    engine_version = None
    if data.get("engine-version") is not None:
        try:
            engine_version = parse_semver(data["engine-version"])
        except ConfigurationError as exc:
            raise EditionParseError(
                f"Invalid engine-version {data['engine-version']!r}", source
            ) from exc

    return RawEdition(
        name=name,
        parent=_parse_parent(data, source),
        engine_version=engine_version,
        repositories=_parse_repositories(data.get("repositories"), source),
        libraries=_parse_libraries(data.get("libraries"), source),
    )


def load_edition(path: Path, name: Optional[str] = None) -> RawEdition:
    """Read and parse an edition file; the name defaults to the file stem."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise EditionParseError(f"Edition could not be read: {exc}", str(path)) from exc
    logger.debug("Loaded edition document %s", path)
    return parse_edition(text, name=name or path.stem, source=str(path))
