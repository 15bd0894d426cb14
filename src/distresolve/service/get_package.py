"""Request handling for package metadata queries.

A ``GetPackageHandler`` serves exactly one request. It starts the lookup on an
executor thread and arms a timer, then waits in ``AWAITING_RESULT`` for the
first of three events: the lookup result, a lookup failure, or the timeout.
That event moves it to ``TERMINAL`` and produces the only response; whatever
arrives afterwards is logged and dropped. The lookup thread is never
interrupted; a result that comes in after the timeout is discarded.
"""
from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from ..exceptions import (
    ConfigurationError,
    CycleError,
    DistResolveError,
    IntegrityError,
    LockTimeoutError,
    NetworkError,
    NotFoundError,
    RequestTimeoutError,
)
from ..libraries.local import LocalLibraryProvider
from ..libraries.package import ComponentGroups, PackageConfig
from ..libraries.published import PublishedPackageLookup
from ..versioning.models import LibraryName

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"
    CYCLE = "cycle"
    NETWORK = "network"
    INTEGRITY = "integrity"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


class HandlerState(Enum):
    AWAITING_RESULT = "awaiting_result"
    TERMINAL = "terminal"


class HandlerEvent(Enum):
    RESULT_READY = "result_ready"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class LocalLibraryVersion:
    """Selects the library found on the local library search path."""


@dataclass(frozen=True)
class PublishedLibraryVersion:
    """Selects a published version from the repository at ``repository_url``."""
    version: str
    repository_url: str


LibraryVersion = Union[LocalLibraryVersion, PublishedLibraryVersion]


@dataclass(frozen=True)
class GetPackageRequest:
    id: Any
    namespace: str
    name: str
    version: LibraryVersion

    @property
    def library_name(self) -> LibraryName:
        return LibraryName(self.namespace, self.name)


@dataclass(frozen=True)
class GetPackageResult:
    """Package metadata as reported to clients.

    ``license`` is None when the package declares none (or an empty one);
    ``component_groups`` is None when it declares no groups at all.
    """
    library: LibraryName
    license: Optional[str] = None
    component_groups: Optional[ComponentGroups] = None

    @classmethod
    def from_package(cls, config: PackageConfig) -> "GetPackageResult":
        groups = config.component_groups
        return cls(
            library=config.library_name,
            license=config.license or None,
            component_groups=None if groups is None or groups.is_empty else groups,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "license": self.license,
            "componentGroups": (
                self.component_groups.to_dict(self.library)
                if self.component_groups is not None
                else None
            ),
        }


@dataclass(frozen=True)
class ResponseResult:
    id: Any
    result: GetPackageResult

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "result": self.result.to_dict()}


@dataclass(frozen=True)
class ResponseError:
    id: Any
    kind: ErrorKind
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "error": {"kind": self.kind.value, "message": self.message}}


Response = Union[ResponseResult, ResponseError]


def map_exception(exc: BaseException) -> ErrorKind:
    """Classify a lookup failure."""
    if isinstance(exc, CycleError):
        return ErrorKind.CYCLE
    if isinstance(exc, ConfigurationError):
        return ErrorKind.CONFIGURATION
    if isinstance(exc, NotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, NetworkError):
        return ErrorKind.NETWORK
    if isinstance(exc, IntegrityError):
        return ErrorKind.INTEGRITY
    if isinstance(exc, (RequestTimeoutError, LockTimeoutError)):
        return ErrorKind.TIMEOUT
    return ErrorKind.INTERNAL


class GetPackageHandler:
    """Serves a single package metadata request.

    Args:
        timeout: Seconds to wait for the lookup before answering with a timeout.
        local_libraries: Lookup for ``LocalLibraryVersion`` requests.
        published_lookup: Lookup for ``PublishedLibraryVersion`` requests.
        executor: Executor for the blocking lookup; the loop default if None.
    """

    def __init__(
        self,
        timeout: float,
        local_libraries: LocalLibraryProvider,
        published_lookup: PublishedPackageLookup,
        executor: Optional[Executor] = None,
    ):
        if timeout <= 0:
            raise ValueError(f"timeout must be positive (got {timeout})")
        self._timeout = timeout
        self._local = local_libraries
        self._published = published_lookup
        self._executor = executor
        self._state: Optional[HandlerState] = None
        self._request: Optional[GetPackageRequest] = None
        self._reply_to: Optional[Callable[[Response], None]] = None
        self._response: Optional["asyncio.Future[Response]"] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def state(self) -> Optional[HandlerState]:
        return self._state

    async def handle(
        self,
        request: GetPackageRequest,
        reply_to: Optional[Callable[[Response], None]] = None,
    ) -> Response:
        """Process ``request`` and return its single response.

        ``reply_to``, if given, is also called exactly once with the response.
        """
        if self._state is not None:
            raise RuntimeError("GetPackageHandler instances serve a single request")
        loop = asyncio.get_running_loop()
        self._request = request
        self._reply_to = reply_to
        self._response = loop.create_future()
        self._state = HandlerState.AWAITING_RESULT
        logger.debug("Request %s: %s -> awaiting result", request.id, request.library_name)

        work = loop.run_in_executor(self._executor, self._lookup, request)
        work.add_done_callback(self._on_lookup_done)
        self._timer = loop.call_later(self._timeout, self._on_event, HandlerEvent.TIMED_OUT, None)
        return await self._response

    def _lookup(self, request: GetPackageRequest) -> PackageConfig:
        version = request.version
        if isinstance(version, LocalLibraryVersion):
            return self._local.get_package(request.library_name)
        return self._published.get_or_fetch_package(
            request.library_name, version.version, version.repository_url
        )

    def _on_lookup_done(self, work: "asyncio.Future[PackageConfig]") -> None:
        if work.cancelled():
            return
        exc = work.exception()
        if exc is not None:
            self._on_event(HandlerEvent.FAILED, exc)
        else:
            self._on_event(HandlerEvent.RESULT_READY, work.result())

    def _on_event(self, event: HandlerEvent, payload: Any) -> None:
        request = self._request
        if self._state is HandlerState.TERMINAL:
            logger.debug("Request %s: dropping late event %s", request.id, event.value)
            return
        self._state = HandlerState.TERMINAL
        if self._timer is not None:
            self._timer.cancel()

        response: Response
        if event is HandlerEvent.RESULT_READY:
            response = ResponseResult(request.id, GetPackageResult.from_package(payload))
        elif event is HandlerEvent.FAILED:
            kind = map_exception(payload)
            if isinstance(payload, DistResolveError):
                logger.warning("Request %s failed: %s", request.id, payload)
            else:
                logger.error(
                    "Request %s failed unexpectedly", request.id,
                    exc_info=(type(payload), payload, payload.__traceback__),
                )
            response = ResponseError(request.id, kind, str(payload))
        else:
            logger.error("Request %s timed out after %ss", request.id, self._timeout)
            response = ResponseError(request.id, ErrorKind.TIMEOUT, "Request timed out")
        logger.debug("Request %s: %s -> terminal", request.id, event.value)

        if not self._response.done():
            self._response.set_result(response)
        if self._reply_to is not None:
            try:
                self._reply_to(response)
            except Exception:
                logger.exception("Request %s: reply callback failed", request.id)


class PackageService:
    """Creates one ``GetPackageHandler`` per incoming request."""

    def __init__(
        self,
        timeout: float,
        local_libraries: LocalLibraryProvider,
        published_lookup: PublishedPackageLookup,
        executor: Optional[Executor] = None,
    ):
        self._timeout = timeout
        self._local = local_libraries
        self._published = published_lookup
        self._executor = executor

    async def get_package(
        self,
        request: GetPackageRequest,
        reply_to: Optional[Callable[[Response], None]] = None,
    ) -> Response:
        handler = GetPackageHandler(self._timeout, self._local, self._published, self._executor)
        return await handler.handle(request, reply_to)
