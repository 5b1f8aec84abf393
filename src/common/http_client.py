"""Shared HTTP helpers used by the registry client.

Encapsulates request/timeout error handling, bounded retry with exponential
backoff and DEBUG traces so registry code stays focused on the protocol.
Errors surface as RegistryRequestError; deciding whether that aborts the run
is left to the caller.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional

import requests

from constants import Constants
from common.deadline import Deadline
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

HEADERS_JSON = {"Accept": "application/json"}


class RegistryRequestError(Exception):
    """A registry request failed after all retries."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


def _backoff_delay(attempt: int) -> float:
    return Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** attempt)


def safe_get(
    url: str,
    *,
    context: str,
    deadline: Optional[Deadline] = None,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any,
) -> requests.Response:
    """Perform a GET request with retries, backoff and DEBUG traces.

    Connection errors, timeouts and retryable statuses (429/5xx) are retried up
    to Constants.HTTP_RETRY_MAX attempts. Other statuses are returned as-is so
    callers can treat 404 as "absent".

    Args:
        url: Target URL.
        context: Human-readable source tag for logs (e.g., "nuget").
        deadline: Optional run deadline; checked before every attempt.
        headers: Optional request headers.
        **kwargs: Passed through to requests.get (e.g., stream=True).

    Returns:
        requests.Response: The HTTP response object.

    Raises:
        RegistryRequestError: When every attempt failed.
        DeadlineExceeded: When the deadline expires before a response.
    """
    safe_target = safe_url(url)
    last_error = "no attempt made"
    last_status: Optional[int] = None

    for attempt in range(Constants.HTTP_RETRY_MAX):
        if deadline is not None:
            deadline.check(safe_target)
        timeout = deadline.timeout_for(Constants.REQUEST_TIMEOUT) if deadline else Constants.REQUEST_TIMEOUT
        with Timer() as t:
            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP request",
                    extra=extra_context(
                        event="http_request",
                        component="http_client",
                        action="GET",
                        target=safe_target,
                        attempt=attempt + 1,
                    ),
                )
            try:
                res = requests.get(url, timeout=timeout, headers=headers, **kwargs)
            except requests.Timeout:
                last_error = f"timed out after {timeout} seconds"
                last_status = None
            except requests.RequestException as exc:  # includes ConnectionError
                last_error = f"connection error: {exc}"
                last_status = None
            else:
                if res.status_code not in Constants.HTTP_RETRY_STATUSES:
                    if is_debug_enabled(logger):
                        logger.debug(
                            "HTTP response",
                            extra=extra_context(
                                event="http_response",
                                component="http_client",
                                action="GET",
                                outcome="success" if res.status_code < 400 else "client_error",
                                status_code=res.status_code,
                                duration_ms=t.duration_ms(),
                                target=safe_target,
                            ),
                        )
                    return res
                last_error = f"HTTP {res.status_code}"
                last_status = res.status_code
                res.close()

        logger.debug(
            "%s request to %s failed (%s), attempt %d/%d",
            context,
            safe_target,
            last_error,
            attempt + 1,
            Constants.HTTP_RETRY_MAX,
        )
        if attempt + 1 < Constants.HTTP_RETRY_MAX:
            if deadline is not None:
                deadline.sleep(_backoff_delay(attempt))
            else:
                time.sleep(_backoff_delay(attempt))

    raise RegistryRequestError(
        f"{context} request to {safe_target} failed after "
        f"{Constants.HTTP_RETRY_MAX} attempts: {last_error}",
        url=safe_target,
        status_code=last_status,
    )


def get_json(
    url: str,
    *,
    context: str,
    deadline: Optional[Deadline] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Optional[Any]:
    """GET a JSON document.

    Returns:
        Parsed JSON, or None when the resource does not exist (404).

    Raises:
        RegistryRequestError: On other non-200 statuses or malformed JSON.
    """
    res = safe_get(url, context=context, deadline=deadline, headers=headers or HEADERS_JSON)
    if res.status_code == 404:
        return None
    if res.status_code != 200:
        raise RegistryRequestError(
            f"{context} request to {safe_url(url)} returned HTTP {res.status_code}",
            url=safe_url(url),
            status_code=res.status_code,
        )
    try:
        return json.loads(res.text)
    except json.JSONDecodeError as exc:
        if is_debug_enabled(logger):
            logger.debug(
                "JSON decode error",
                extra=extra_context(
                    event="parse",
                    component="http_client",
                    action="get_json",
                    outcome="json_decode_error",
                    target=safe_url(url),
                ),
            )
        raise RegistryRequestError(
            f"{context} returned malformed JSON from {safe_url(url)}: {exc}",
            url=safe_url(url),
            status_code=res.status_code,
        ) from exc
