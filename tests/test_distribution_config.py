"""Tests for distribution paths, search path resolution and global configuration."""

import os
from pathlib import Path

import pytest

from distresolve.config import GlobalConfig, load_global_config
from distresolve.constants import Constants
from distresolve.distribution import DistributionPaths, LanguageHome, SearchPathResolver, is_plain_name


class TestIsPlainName:
    @pytest.mark.parametrize("name", ["2024.1", "runtime-23.1.0-java21", "engine-2024.1.1.tar.gz"])
    def test_accepts_file_names(self, name):
        assert is_plain_name(name)

    @pytest.mark.parametrize("name", ["", " ", None, "..", "../x", "a/b", "a\\b", "/abs", "a..b", "a\x00b"])
    def test_rejects_anything_else(self, name):
        """Separators, parent references, absolute paths and empty names are refused."""
        assert not is_plain_name(name)


class TestDistributionPaths:
    def test_explicit_environment_variables(self, tmp_path):
        """DISTRESOLVE_* variables pick the roots and override lists."""
        env = {
            "HOME": str(tmp_path / "home"),
            "DISTRESOLVE_DATA_DIRECTORY": str(tmp_path / "data"),
            "DISTRESOLVE_CACHE_DIRECTORY": str(tmp_path / "cache"),
            "DISTRESOLVE_CONFIG_DIRECTORY": str(tmp_path / "config"),
            "DISTRESOLVE_EDITION_PATH": os.pathsep.join([str(tmp_path / "e1"), "", str(tmp_path / "e2")]),
        }
        paths = DistributionPaths.from_environment(env)
        assert paths.data_root == tmp_path / "data"
        assert paths.engines == tmp_path / "data" / "dist"
        assert paths.runtimes == tmp_path / "data" / "runtime"
        assert paths.cached_libraries == tmp_path / "cache" / "libraries"
        assert paths.global_config == tmp_path / "config" / "global-config.yaml"
        assert paths.edition_overrides == [tmp_path / "e1", tmp_path / "e2"]
        assert paths.library_overrides == []

    def test_xdg_fallback(self, tmp_path):
        """Without explicit variables XDG directories are used."""
        env = {"HOME": str(tmp_path / "home"), "XDG_DATA_HOME": str(tmp_path / "xdg")}
        paths = DistributionPaths.from_environment(env)
        assert paths.data_root == tmp_path / "xdg" / "distresolve"
        assert paths.cache_root == tmp_path / "home" / ".cache" / "distresolve"


class TestSearchPathResolver:
    def test_edition_search_order(self, dist_paths, tmp_path):
        """Language home first, then the data directory, cache only when asked."""
        home = LanguageHome(tmp_path / "engine")
        resolver = SearchPathResolver(dist_paths, home)
        assert resolver.edition_search_paths() == [home.editions, dist_paths.editions]
        assert resolver.edition_search_paths(include_cache=True)[-1] == dist_paths.cached_editions

    def test_overrides_replace_data_directory(self, tmp_path):
        """An override list replaces the default user directory."""
        paths = DistributionPaths(
            data_root=tmp_path / "data",
            cache_root=tmp_path / "cache",
            config_root=tmp_path / "config",
            edition_overrides=[tmp_path / "custom", tmp_path / "custom"],
            library_overrides=[tmp_path / "libs"],
        )
        resolver = SearchPathResolver(paths, LanguageHome(tmp_path / "engine"))
        assert resolver.edition_search_paths() == [tmp_path / "engine" / "editions", tmp_path / "custom"]
        assert resolver.library_search_paths() == [tmp_path / "libs", tmp_path / "engine" / "lib"]

    def test_engine_search_paths(self, tmp_path):
        """The managed engines directory comes before read-only extras."""
        paths = DistributionPaths(
            data_root=tmp_path / "data",
            cache_root=tmp_path / "cache",
            config_root=tmp_path / "config",
            engine_overrides=[tmp_path / "bundle"],
        )
        assert SearchPathResolver(paths).engine_search_paths() == [paths.engines, tmp_path / "bundle"]


class TestGlobalConfig:
    def test_defaults(self):
        """An empty configuration yields the built-in defaults."""
        config = GlobalConfig.from_dict({})
        assert config.default_engine_version == Constants.DEFAULT_ENGINE_VERSION
        assert config.edition_providers == [Constants.DEFAULT_EDITION_PROVIDER_URL]

    def test_load_from_file(self, tmp_path):
        """Recognised keys are read; unknown keys ignored."""
        path = tmp_path / "global-config.yaml"
        path.write_text(
            "edition-providers:\n  - https://one.example.org\n"
            "default-engine-version: 2030.1.0\n"
            "request-timeout: 5\n"
            "lock-timeout: nope\n"
            "release-providers:\n  engine: /srv/releases\n"
            "something-else: true\n"
        )
        config = load_global_config(path, env={})
        assert config.edition_providers == ["https://one.example.org"]
        assert config.default_engine_version == "2030.1.0"
        assert config.request_timeout == 5.0
        assert config.lock_timeout == Constants.LOCK_TIMEOUT_SEC
        assert config.engine_release_provider == "/srv/releases"
        assert config.runtime_release_provider is None

    def test_malformed_file_uses_defaults(self, tmp_path):
        """A broken file never prevents loading."""
        path = tmp_path / "global-config.yaml"
        path.write_text("edition-providers: [\n")
        assert load_global_config(path, env={}) == GlobalConfig()

    def test_missing_file(self, tmp_path):
        """A missing file is the same as an empty one."""
        assert load_global_config(tmp_path / "nope.yaml", env={}) == GlobalConfig()

    def test_environment_overrides_file(self, tmp_path):
        """Environment variables win over the file."""
        path = tmp_path / "global-config.yaml"
        path.write_text("default-engine-version: 2030.1.0\n")
        env = {
            "DISTRESOLVE_DEFAULT_ENGINE_VERSION": "2031.1.0",
            "DISTRESOLVE_REQUEST_TIMEOUT": "bad",
        }
        config = load_global_config(Path(path), env=env)
        assert config.default_engine_version == "2031.1.0"
        assert config.request_timeout == float(Constants.REQUEST_TIMEOUT)
