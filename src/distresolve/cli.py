"""Command line entry point for distresolve.

Every command prints a JSON document on stdout; logs go to stderr (or the
``--logfile``). Errors are turned into ``ExitCodes`` here and nowhere else.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Tuple

from .args import parse_args
from .common.logging_utils import configure_logging, extra_context, is_debug_enabled
from .config import GlobalConfig, load_global_config
from .constants import Constants, ExitCodes
from .distribution import DistributionPaths, SearchPathResolver
from .editions.manager import EditionManager
from .editions.models import ResolvedEdition
from .editions.parser import load_edition
from .exceptions import (
    DistResolveError,
    IntegrityError,
    LockTimeoutError,
    NetworkError,
    RuntimeInstallFailure,
)
from .libraries.cache import PublishedLibraryCache
from .libraries.local import LocalLibraryProvider
from .libraries.published import PublishedPackageLookup
from .runtime.locking import ResourceManager
from .runtime.manager import RuntimeVersionManager
from .runtime.models import InstalledEngine
from .runtime.releases import EngineReleaseProvider, RuntimeReleaseProvider, make_release_backend
from .runtime.ui import ReadOnlyUserInterface, RuntimeVersionManagementUserInterface
from .service.get_package import (
    ErrorKind,
    GetPackageRequest,
    LocalLibraryVersion,
    PackageService,
    PublishedLibraryVersion,
    ResponseError,
)

logger = logging.getLogger(__name__)


def _setup_logging(args) -> None:
    # Honor CLI --loglevel by passing it to centralized logger via env
    if getattr(args, "LOG_LEVEL", None):
        os.environ[Constants.ENV_LOG_LEVEL] = args.LOG_LEVEL
    configure_logging(args.LOG_LEVEL)
    if getattr(args, "LOG_FILE", None):
        handler = logging.FileHandler(args.LOG_FILE, encoding="utf-8")
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def _emit(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, default=str) + "\n")


def _edition_to_dict(edition: ResolvedEdition, default_engine_version: str) -> Dict[str, Any]:
    return {
        "name": edition.name,
        "engineVersion": str(edition.engine_version) if edition.engine_version else None,
        "defaultEngineVersion": default_engine_version if edition.uses_default_engine else None,
        "chain": list(edition.chain),
        "repositories": [{"name": r.name, "url": r.url} for r in edition.repositories],
        "libraries": [
            {
                "namespace": lib.namespace,
                "name": lib.name,
                "version": str(lib.version),
                "repository": lib.repository,
            }
            for lib in edition.libraries
        ],
    }


def _engine_to_dict(engine: InstalledEngine) -> Dict[str, Any]:
    return {
        "version": str(engine.version),
        "path": str(engine.path),
        "runtime": {
            "version": engine.runtime_version.version,
            "javaVersion": engine.runtime_version.java_version,
        },
    }


def _read_edition_file(args):
    path = Path(args.EDITION_FILE)
    if not path.is_file():
        logger.error("File not found: %s, aborting", path)
        sys.exit(ExitCodes.FILE_ERROR.value)
    return load_edition(path)


def _runtime_manager(args, paths: DistributionPaths, config: GlobalConfig) -> RuntimeVersionManager:
    location = (
        getattr(args, "RELEASE_PROVIDER", None)
        or config.engine_release_provider
        or Constants.DEFAULT_RELEASE_PROVIDER_URL
    )
    runtime_location = (
        getattr(args, "RELEASE_PROVIDER", None)
        or config.runtime_release_provider
        or location
    )
    user_interface: RuntimeVersionManagementUserInterface = (
        ReadOnlyUserInterface() if getattr(args, "NO_INSTALL", False)
        else RuntimeVersionManagementUserInterface()
    )
    return RuntimeVersionManager(
        paths,
        EngineReleaseProvider(make_release_backend(location, timeout=config.request_timeout)),
        RuntimeReleaseProvider(make_release_backend(runtime_location, timeout=config.request_timeout)),
        resource_manager=ResourceManager(paths.locks, timeout=config.lock_timeout),
        user_interface=user_interface,
        engine_search_paths=SearchPathResolver(paths).engine_search_paths(),
    )


def cmd_edition_resolve(args, paths: DistributionPaths, config: GlobalConfig) -> None:
    raw = _read_edition_file(args)
    manager = EditionManager.create(paths, config, updating=args.UPDATE)
    resolved = manager.resolve_edition(raw)
    _emit(_edition_to_dict(resolved, config.default_engine_version))


def cmd_edition_list(args, paths: DistributionPaths, config: GlobalConfig) -> None:
    manager = EditionManager.create(paths, config, updating=args.UPDATE)
    _emit(manager.find_all_available_editions(update=args.UPDATE))


def cmd_engine_version(args, paths: DistributionPaths, config: GlobalConfig) -> None:
    raw = _read_edition_file(args)
    manager = EditionManager.create(paths, config)
    _emit({"engineVersion": str(manager.resolve_engine_version(raw))})


def cmd_engine_install(args, paths: DistributionPaths, config: GlobalConfig) -> None:
    engine = _runtime_manager(args, paths, config).find_or_install_engine(args.ENGINE_VERSION)
    _emit(_engine_to_dict(engine))


def cmd_engine_uninstall(args, paths: DistributionPaths, config: GlobalConfig) -> None:
    manager = _runtime_manager(args, paths, config)
    manager.uninstall_engine(args.ENGINE_VERSION, cleanup_runtimes=not args.KEEP_RUNTIMES)
    _emit({"uninstalled": args.ENGINE_VERSION})


def cmd_engine_list(args, paths: DistributionPaths, config: GlobalConfig) -> None:
    manager = _runtime_manager(args, paths, config)
    _emit([_engine_to_dict(engine) for engine in manager.list_installed_engines()])


def cmd_library_get_package(args, paths: DistributionPaths, config: GlobalConfig) -> None:
    resources = ResourceManager(paths.locks, timeout=config.lock_timeout)
    service = PackageService(
        timeout=args.TIMEOUT if args.TIMEOUT is not None else config.get_package_timeout,
        local_libraries=LocalLibraryProvider(SearchPathResolver(paths).library_search_paths()),
        published_lookup=PublishedPackageLookup(
            PublishedLibraryCache([paths.cached_libraries], resources),
            timeout=config.request_timeout,
        ),
    )
    if args.LIBRARY_VERSION:
        version = PublishedLibraryVersion(args.LIBRARY_VERSION, args.REPOSITORY)
    else:
        version = LocalLibraryVersion()
    request = GetPackageRequest(id=1, namespace=args.NAMESPACE, name=args.NAME, version=version)
    response = asyncio.run(service.get_package(request))
    _emit(response.to_dict())
    if isinstance(response, ResponseError):
        if response.kind is ErrorKind.NETWORK:
            sys.exit(ExitCodes.CONNECTION_ERROR.value)
        sys.exit(ExitCodes.RESOLUTION_ERROR.value)


COMMANDS: Dict[Tuple[str, str], Callable[[Any, DistributionPaths, GlobalConfig], None]] = {
    ("edition", "resolve"): cmd_edition_resolve,
    ("edition", "list"): cmd_edition_list,
    ("engine", "version"): cmd_engine_version,
    ("engine", "install"): cmd_engine_install,
    ("engine", "uninstall"): cmd_engine_uninstall,
    ("engine", "list"): cmd_engine_list,
    ("library", "get-package"): cmd_library_get_package,
}


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    _setup_logging(args)

    paths = DistributionPaths.from_environment()
    config_path = Path(args.CONFIG) if args.CONFIG else paths.global_config
    config = load_global_config(config_path)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(
                event="function_entry", component="cli", action=f"{args.COMMAND} {args.ACTION}"
            ),
        )

    command = COMMANDS[(args.COMMAND, args.ACTION)]
    try:
        command(args, paths, config)
    except NetworkError as e:
        logger.error("%s", e)
        sys.exit(ExitCodes.CONNECTION_ERROR.value)
    except (RuntimeInstallFailure, IntegrityError, LockTimeoutError) as e:
        logger.error("%s", e)
        sys.exit(ExitCodes.INSTALL_ERROR.value)
    except DistResolveError as e:
        logger.error("%s", e)
        sys.exit(ExitCodes.RESOLUTION_ERROR.value)
    except OSError as e:
        logger.error("IO error: %s, aborting", e)
        sys.exit(ExitCodes.FILE_ERROR.value)
    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()
