"""Library package descriptors (``package.yaml``).

Only the metadata needed to answer package queries is modelled::

    namespace: Standard
    name: Table
    version: 1.2.0
    license: MIT
    authors:
      - name: Jane Doe
        email: jane@example.org
    component-groups:
      new:
        - Input:
            exports:
              - Standard.Table.read
      extends:
        - module: Standard.Base.Output
          exports:
            - Standard.Table.write
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from semantic_version import Version

from ..common.yaml_utils import load_plain_yaml
from ..constants import Constants
from ..exceptions import ConfigurationError, MalformedPackageDescriptor
from ..versioning.models import LibraryName
from ..versioning.parser import parse_semver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComponentGroup:
    """A component group defined by the library itself."""
    name: str
    exports: Tuple[str, ...] = ()

    def to_dict(self, library: LibraryName) -> Dict[str, Any]:
        return {"library": library.qualified_name, "name": self.name, "exports": list(self.exports)}


@dataclass(frozen=True)
class ExtendedComponentGroup:
    """Additional exports contributed to a group defined by another library.

    ``module`` is the qualified group name, e.g. ``Standard.Base.Input``.
    """
    module: str
    exports: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"module": self.module, "exports": list(self.exports)}


@dataclass(frozen=True)
class ComponentGroups:
    new_groups: Tuple[ComponentGroup, ...] = ()
    extended_groups: Tuple[ExtendedComponentGroup, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.new_groups and not self.extended_groups

    def to_dict(self, library: LibraryName) -> Dict[str, Any]:
        return {
            "newGroups": [group.to_dict(library) for group in self.new_groups],
            "extendedGroups": [group.to_dict() for group in self.extended_groups],
        }


@dataclass(frozen=True)
class PackageConfig:
    """Metadata of a library package.

    Attributes:
        namespace: Library namespace.
        name: Library name.
        version: Declared version, if any.
        license: License identifier; may be empty.
        authors: Author display strings.
        component_groups: Declared component groups, if any.
    """
    namespace: str
    name: str
    version: Optional[Version] = None
    license: Optional[str] = None
    authors: Tuple[str, ...] = field(default_factory=tuple)
    component_groups: Optional[ComponentGroups] = None

    @property
    def library_name(self) -> LibraryName:
        return LibraryName(self.namespace, self.name)


def _exports(raw: Any, source: str) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise MalformedPackageDescriptor("'exports' must be a list", context={"source": source})
    exports: List[str] = []
    for entry in raw:
        # An export is either a plain name or a mapping with a single name key
        if isinstance(entry, dict) and len(entry) == 1:
            exports.append(str(next(iter(entry))))
        elif isinstance(entry, str):
            exports.append(entry)
        else:
            raise MalformedPackageDescriptor(
                f"Invalid export entry {entry!r}", context={"source": source}
            )
    return tuple(exports)


def _group_entries(raw: Any, key: str, source: str) -> List[Tuple[str, Any]]:
    """Normalise group entries to ``(name, exports)`` pairs."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise MalformedPackageDescriptor(f"'{key}' must be a list", context={"source": source})
    entries = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise MalformedPackageDescriptor(
                f"Component group entry {entry!r} must be a mapping", context={"source": source}
            )
        name = entry.get("name", entry.get("module"))
        if name is not None:
            entries.append((str(name), entry.get("exports")))
        elif len(entry) == 1:
            group_name, body = next(iter(entry.items()))
            if body is not None and not isinstance(body, dict):
                raise MalformedPackageDescriptor(
                    f"Component group {group_name!r} must be a mapping", context={"source": source}
                )
            entries.append((str(group_name), (body or {}).get("exports")))
        else:
            raise MalformedPackageDescriptor(
                f"Component group entry {entry!r} has no name", context={"source": source}
            )
    return entries


def _parse_component_groups(raw: Any, source: str) -> Optional[ComponentGroups]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise MalformedPackageDescriptor("'component-groups' must be a mapping", context={"source": source})
    extend_key = "extends" if "extends" in raw else "extend"
    new_groups = tuple(
        ComponentGroup(name=name, exports=_exports(exports, source))
        for name, exports in _group_entries(raw.get("new"), "new", source)
    )
    extended_groups = tuple(
        ExtendedComponentGroup(module=name, exports=_exports(exports, source))
        for name, exports in _group_entries(raw.get(extend_key), extend_key, source)
    )
    return ComponentGroups(new_groups=new_groups, extended_groups=extended_groups)


def _parse_authors(raw: Any) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raw = [raw]
    authors = []
    for entry in raw:
        if isinstance(entry, dict):
            name = entry.get("name") or ""
            email = entry.get("email")
            authors.append(f"{name} <{email}>".strip() if email else name)
        elif entry:
            authors.append(str(entry))
    return tuple(a for a in authors if a)


def parse_package_descriptor(text: str, source: str = "<package>") -> PackageConfig:
    """Parse ``package.yaml`` contents.

    Raises:
        MalformedPackageDescriptor: If the document is not a valid descriptor.
    """
    try:
        data = load_plain_yaml(text)
    except yaml.YAMLError as exc:
        raise MalformedPackageDescriptor(
            f"Package descriptor is not valid YAML: {exc}", context={"source": source}
        ) from exc
    if not isinstance(data, dict):
        raise MalformedPackageDescriptor("Package descriptor must be a mapping", context={"source": source})
    namespace = data.get("namespace")
    name = data.get("name")
    if not isinstance(namespace, str) or not isinstance(name, str):
        raise MalformedPackageDescriptor(
            "Package descriptor must define 'namespace' and 'name'", context={"source": source}
        )

    version = None
    if data.get("version") is not None:
        try:
            version = parse_semver(data["version"])
        except ConfigurationError as exc:
            raise MalformedPackageDescriptor(
                f"Invalid package version {data['version']!r}", context={"source": source}
            ) from exc

    license_name = data.get("license")
    return PackageConfig(
        namespace=namespace,
        name=name,
        version=version,
        license=str(license_name) if license_name is not None else None,
        authors=_parse_authors(data.get("authors")),
        component_groups=_parse_component_groups(data.get("component-groups"), source),
    )


def read_package_descriptor(path: Path) -> PackageConfig:
    """Read ``package.yaml`` from ``path`` (a file or a library root)."""
    if path.is_dir():
        path = path / Constants.PACKAGE_FILE
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise MalformedPackageDescriptor(
            f"Package descriptor could not be read: {exc}", context={"source": str(path)}
        ) from exc
    logger.debug("Read package descriptor %s", path)
    return parse_package_descriptor(text, source=str(path))
