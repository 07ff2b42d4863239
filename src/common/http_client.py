"""Shared HTTP helpers used by the repository transport.

Encapsulates retry, timeout and error handling so the transport avoids
duplicating try/except blocks. Unlike a scanner, the launcher must not exit
from inside a helper: failures are reported as a status code of ``0`` and
the caller decides whether that is fatal.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

_session_headers = {"User-Agent": "thinrun/1.0"}


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    session: Optional[requests.Session] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], bytes]:
    """Perform GET request with timeout and retries, with DEBUG traces.

    Server errors (5xx) and transport exceptions are retried up to
    ``Constants.HTTP_RETRY_MAX`` times with exponential back-off. Any other
    status is returned immediately.

    Returns:
        Tuple of (status_code, headers_dict, body_bytes); status_code is 0
        when every attempt failed before a response arrived.
    """
    safe_target = safe_url(url)
    request_headers = dict(_session_headers)
    if headers:
        request_headers.update(headers)
    getter = session.get if session is not None else requests.get

    last_exception = None
    last_status = 0
    for attempt in range(Constants.HTTP_RETRY_MAX):
        if attempt:
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** (attempt - 1)))
        with Timer() as t:
            try:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request",
                        extra=extra_context(
                            event="http_request",
                            component="http_client",
                            action="GET",
                            target=safe_target,
                            attempt=attempt + 1
                        )
                    )
                response = getter(
                    url,
                    timeout=Constants.REQUEST_TIMEOUT,
                    headers=request_headers,
                    **kwargs
                )
            except requests.Timeout:
                last_exception = "timeout"
                logger.debug(
                    "HTTP timeout",
                    extra=extra_context(
                        event="http_exception",
                        component="http_client",
                        outcome="timeout",
                        attempt=attempt + 1,
                        target=safe_target
                    )
                )
                continue
            except requests.RequestException as exc:  # includes ConnectionError
                last_exception = str(exc)
                logger.debug(
                    "HTTP request exception",
                    extra=extra_context(
                        event="http_exception",
                        component="http_client",
                        outcome="request_exception",
                        attempt=attempt + 1,
                        target=safe_target
                    )
                )
                continue

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    status_code=response.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target
                )
            )
        if response.status_code >= 500:
            last_status = response.status_code
            last_exception = f"HTTP {response.status_code}"
            continue
        return response.status_code, dict(response.headers), response.content

    logger.warning(
        "GET %s failed after %s attempts: %s",
        safe_target,
        Constants.HTTP_RETRY_MAX,
        last_exception,
    )
    return last_status, {}, b""
