"""Shared HTTP helpers used by edition, release and library repository clients.

Encapsulates common request/timeout error handling so modules avoid
duplicating try/except blocks. Transport failures surface as
``RepositoryUnreachable``; status codes are left to the caller.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Tuple

import requests

from ..constants import Constants
from ..exceptions import RepositoryUnreachable
from .logging_utils import Timer, extra_context, is_debug_enabled, redact, safe_url

logger = logging.getLogger(__name__)


def safe_get(
    url: str,
    *,
    context: str,
    timeout: Optional[float] = None,
    **kwargs: Any,
) -> requests.Response:
    """Perform a GET request with consistent error handling and DEBUG traces.

    Args:
        url: Target URL.
        context: Human-readable source tag for logs (e.g., "editions").
        timeout: Request timeout, defaults to Constants.REQUEST_TIMEOUT.
        **kwargs: Passed through to requests.get.

    Returns:
        requests.Response: The HTTP response object.

    Raises:
        RepositoryUnreachable: On timeouts and connection errors.
    """
    safe_target = safe_url(url)
    effective_timeout = timeout if timeout is not None else Constants.REQUEST_TIMEOUT
    with Timer() as t:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="http_client",
                    action="GET",
                    target=safe_target,
                    context=context,
                ),
            )
        try:
            res = requests.get(url, timeout=effective_timeout, **kwargs)
        except requests.Timeout as exc:
            logger.error(
                "%s request timed out after %s seconds",
                context,
                effective_timeout,
            )
            raise RepositoryUnreachable(safe_target, "request timed out") from exc
        except requests.RequestException as exc:  # includes ConnectionError
            reason = redact(str(exc))
            logger.error("%s connection error: %s", context, reason)
            raise RepositoryUnreachable(safe_target, reason) from exc
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    status_code=res.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                    context=context,
                ),
            )
        return res


def get_text(url: str, *, context: str, timeout: Optional[float] = None) -> Tuple[int, str]:
    """GET ``url`` and return ``(status_code, body)``.

    Server errors (5xx) are reported as ``RepositoryUnreachable`` since the
    repository could not answer; other statuses are returned to the caller.
    """
    res = safe_get(url, context=context, timeout=timeout)
    if res.status_code >= 500:
        logger.warning("%s server error %s for %s", context, res.status_code, safe_url(url))
        raise RepositoryUnreachable(safe_url(url), f"server returned {res.status_code}")
    return res.status_code, res.text


def download_file(
    url: str,
    destination: Path,
    *,
    context: str,
    timeout: Optional[float] = None,
) -> Path:
    """Stream ``url`` into ``destination``.

    Raises:
        RepositoryUnreachable: On transport errors or any non-200 status.
    """
    res = safe_get(url, context=context, timeout=timeout, stream=True)
    try:
        if res.status_code != 200:
            raise RepositoryUnreachable(
                safe_url(url), f"download returned status {res.status_code}"
            )
        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(destination, "wb") as fh:
                for chunk in res.iter_content(chunk_size=Constants.DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        fh.write(chunk)
        except requests.RequestException as exc:
            raise RepositoryUnreachable(safe_url(url), redact(str(exc))) from exc
    finally:
        res.close()
    logger.info("Downloaded %s", safe_url(url))
    return destination
