"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    RESOLUTION_ERROR = 3
    INSTALL_ERROR = 4


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    GET_PACKAGE_TIMEOUT = 10  # Deadline in seconds for a single get-package request
    DOWNLOAD_CHUNK_SIZE = 64 * 1024

    # Used when no edition in the chain pins an engine version
    DEFAULT_ENGINE_VERSION = "2024.1.1"
    DEFAULT_EDITION_PROVIDER_URL = "https://editions.distresolve.dev/editions"
    DEFAULT_RELEASE_PROVIDER_URL = "https://releases.distresolve.dev"

    EDITION_SUFFIX = ".yaml"
    EDITION_MANIFEST_FILE = "manifest.yaml"
    EDITION_CACHE_TTL_SEC = 24 * 60 * 60

    PACKAGE_FILE = "package.yaml"
    RELEASE_MANIFEST_FILE = "manifest.yaml"
    ENGINE_MANIFEST_FILE = "manifest.yaml"
    INSTALLED_MARKER = ".installed"
    GLOBAL_CONFIG_FILE = "global-config.yaml"
    LOCAL_REPOSITORY_NAME = "local"

    LOCK_TIMEOUT_SEC = 300.0
    LOCK_POLL_INTERVAL_SEC = 0.05

    ENV_LOG_LEVEL = "DISTRESOLVE_LOG_LEVEL"
    ENV_DATA_DIRECTORY = "DISTRESOLVE_DATA_DIRECTORY"
    ENV_CACHE_DIRECTORY = "DISTRESOLVE_CACHE_DIRECTORY"
    ENV_CONFIG_DIRECTORY = "DISTRESOLVE_CONFIG_DIRECTORY"
    ENV_EDITION_PATH = "DISTRESOLVE_EDITION_PATH"
    ENV_LIBRARY_PATH = "DISTRESOLVE_LIBRARY_PATH"
    ENV_ENGINE_PATH = "DISTRESOLVE_ENGINE_PATH"
    ENV_DEFAULT_ENGINE_VERSION = "DISTRESOLVE_DEFAULT_ENGINE_VERSION"
    ENV_REQUEST_TIMEOUT = "DISTRESOLVE_REQUEST_TIMEOUT"
