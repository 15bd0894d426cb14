"""Versioned identifier utilities."""

from .models import LibraryName
from .parser import parse_semver, try_parse_semver

__all__ = [
    "LibraryName",
    "parse_semver",
    "try_parse_semver",
]
