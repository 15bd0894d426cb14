"""Global configuration loading.

Precedence, lowest to highest: ``Constants`` defaults, the YAML global config
file, ``DISTRESOLVE_*`` environment variables, CLI flags (applied by the CLI).
Loading never raises: a broken config file is logged and ignored so that a
typo cannot make the whole distribution unusable.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .constants import Constants

logger = logging.getLogger(__name__)


@dataclass
class GlobalConfig:
    """Resolved global configuration values."""

    edition_providers: List[str] = field(
        default_factory=lambda: [Constants.DEFAULT_EDITION_PROVIDER_URL]
    )
    default_engine_version: str = Constants.DEFAULT_ENGINE_VERSION
    request_timeout: float = float(Constants.REQUEST_TIMEOUT)
    get_package_timeout: float = float(Constants.GET_PACKAGE_TIMEOUT)
    edition_cache_ttl: float = float(Constants.EDITION_CACHE_TTL_SEC)
    lock_timeout: float = Constants.LOCK_TIMEOUT_SEC
    engine_release_provider: Optional[str] = None
    runtime_release_provider: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GlobalConfig":
        """Create config from a parsed YAML mapping; unknown keys are ignored."""
        config = cls()
        providers = data.get("edition-providers")
        if isinstance(providers, list):
            config.edition_providers = [str(p) for p in providers if p]
        elif isinstance(providers, str):
            config.edition_providers = [providers]

        if data.get("default-engine-version") is not None:
            config.default_engine_version = str(data["default-engine-version"])

        for key, attr in (
            ("request-timeout", "request_timeout"),
            ("get-package-timeout", "get_package_timeout"),
            ("edition-cache-ttl", "edition_cache_ttl"),
            ("lock-timeout", "lock_timeout"),
        ):
            if data.get(key) is None:
                continue
            try:
                setattr(config, attr, float(data[key]))
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid value for %s: %r", key, data[key])

        releases = data.get("release-providers")
        if isinstance(releases, dict):
            if releases.get("engine"):
                config.engine_release_provider = str(releases["engine"])
            if releases.get("runtime"):
                config.runtime_release_provider = str(releases["runtime"])
        return config

    def apply_environment(self, env: Optional[Mapping[str, str]] = None) -> "GlobalConfig":
        """Apply ``DISTRESOLVE_*`` overrides in place and return self."""
        env = os.environ if env is None else env
        if env.get(Constants.ENV_DEFAULT_ENGINE_VERSION):
            self.default_engine_version = env[Constants.ENV_DEFAULT_ENGINE_VERSION].strip()
        if env.get(Constants.ENV_REQUEST_TIMEOUT):
            try:
                self.request_timeout = float(env[Constants.ENV_REQUEST_TIMEOUT])
            except ValueError:
                logger.warning(
                    "Ignoring invalid %s: %r",
                    Constants.ENV_REQUEST_TIMEOUT,
                    env[Constants.ENV_REQUEST_TIMEOUT],
                )
        return self


def _load_yaml_config(config_path: Path) -> Dict[str, Any]:
    """Read a YAML mapping, returning {} when missing or malformed."""
    if not config_path.is_file():
        logger.debug("Global config not found: %s", config_path)
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        logger.error("Failed to load config %s: %s", config_path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Global config %s is not a mapping, ignoring it", config_path)
        return {}
    return data


def load_global_config(
    config_path: Optional[Path],
    env: Optional[Mapping[str, str]] = None,
) -> GlobalConfig:
    """Load the global configuration file and apply environment overrides."""
    data = _load_yaml_config(config_path) if config_path else {}
    return GlobalConfig.from_dict(data).apply_environment(env)
