"""Callbacks through which the runtime version manager asks before installing."""

import logging

from semantic_version import Version

from .models import RuntimeVersion

logger = logging.getLogger(__name__)


class RuntimeVersionManagementUserInterface:
    """Decides whether missing components may be installed.

    The default implementation installs everything and logs progress.
    """

    def should_install_missing_engine(self, version: Version) -> bool:
        return True

    def should_install_missing_runtime(self, version: RuntimeVersion) -> bool:
        return True

    def log_info(self, message: str) -> None:
        logger.info(message)


class ReadOnlyUserInterface(RuntimeVersionManagementUserInterface):
    """Never installs anything; missing components become errors."""

    def should_install_missing_engine(self, version: Version) -> bool:
        logger.warning("Engine %s is missing and installation is disabled", version)
        return False

    def should_install_missing_runtime(self, version: RuntimeVersion) -> bool:
        logger.warning("Runtime %s is missing and installation is disabled", version)
        return False
