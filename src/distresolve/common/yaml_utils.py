"""YAML loading for edition, manifest and package documents.

Documents are loaded with ``yaml.BaseLoader`` so every scalar stays a string:
edition names like ``2024.10`` and versions like ``1.0`` must not turn into
floats. Null spellings are mapped back to None afterwards.
"""
from typing import Any

import yaml

_NULL_SCALARS = {"", "~", "null", "Null", "NULL"}


def nullify(value: Any) -> Any:
    """Map YAML null spellings back to None after loading with BaseLoader."""
    if isinstance(value, str):
        return None if value in _NULL_SCALARS else value
    if isinstance(value, list):
        return [nullify(v) for v in value]
    if isinstance(value, dict):
        return {k: nullify(v) for k, v in value.items()}
    return value


def load_plain_yaml(text: str) -> Any:
    """Parse ``text`` keeping scalars as strings.

    Raises:
        yaml.YAMLError: If the text is not valid YAML.
    """
    return nullify(yaml.load(text, Loader=yaml.BaseLoader))
