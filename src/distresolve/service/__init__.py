"""Request/response handling for library queries."""

from .get_package import (
    ErrorKind,
    GetPackageHandler,
    GetPackageRequest,
    GetPackageResult,
    HandlerEvent,
    HandlerState,
    LocalLibraryVersion,
    PackageService,
    PublishedLibraryVersion,
    ResponseError,
    ResponseResult,
    map_exception,
)

__all__ = [
    "ErrorKind",
    "GetPackageHandler",
    "GetPackageRequest",
    "GetPackageResult",
    "HandlerEvent",
    "HandlerState",
    "LocalLibraryVersion",
    "PackageService",
    "PublishedLibraryVersion",
    "ResponseError",
    "ResponseResult",
    "map_exception",
]
