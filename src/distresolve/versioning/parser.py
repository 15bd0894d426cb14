"""Version parsing utilities."""

from typing import Any, Optional

import semantic_version

from ..exceptions import InvalidVersionSpecifier


def parse_semver(raw: Any) -> semantic_version.Version:
    """Parse a strict semantic version.

    YAML loads values such as ``2024.1`` as floats, so non-string input is
    stringified first.

    Raises:
        InvalidVersionSpecifier: If ``raw`` is not a valid semantic version.
    """
    if isinstance(raw, semantic_version.Version):
        return raw
    if raw is None or isinstance(raw, bool):
        raise InvalidVersionSpecifier(str(raw))
    text = str(raw).strip()
    try:
        return semantic_version.Version(text)
    except ValueError as exc:
        raise InvalidVersionSpecifier(text) from exc


def try_parse_semver(raw: Any) -> Optional[semantic_version.Version]:
    """Safely parse a semantic version string, returning None when invalid."""
    try:
        return parse_semver(raw)
    except InvalidVersionSpecifier:
        return None
