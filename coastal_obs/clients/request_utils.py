from __future__ import annotations

import logging
import time
from typing import Callable, Mapping, MutableMapping, Optional

import requests


logger = logging.getLogger(__name__)

USER_AGENT = "coastal-obs-ingest/1.0"


class ApiError(RuntimeError):
    """Raised when an upstream API responds with an error or cannot be reached."""

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


def build_request_headers(
    base: Optional[Mapping[str, str]] = None,
    *,
    bearer_token: Optional[str] = None,
) -> MutableMapping[str, str]:
    """
    Return request headers for outbound API calls.

    Args:
        base: Optional mapping of headers to seed the final set (values here win over defaults).
        bearer_token: When given, sent as ``Authorization: Bearer <token>``.
    """
    headers: MutableMapping[str, str] = dict(base or {})
    headers["User-Agent"] = headers.get("User-Agent") or USER_AGENT
    headers.setdefault("Accept", "application/json,text/plain;q=0.9,*/*;q=0.8")
    headers.setdefault("Accept-Encoding", "gzip, deflate")
    if bearer_token:
        headers["Authorization"] = f"Bearer {bearer_token}"
    return headers


def get_with_retries(
    session,
    url: str,
    *,
    params: Optional[Mapping[str, object]] = None,
    headers: Optional[Mapping[str, str]] = None,
    timeout: float = 60,
    retries: int = 3,
    retry_delay: float = 1.0,
    before_attempt: Optional[Callable[[], object]] = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    GET ``url`` and return the response, retrying transport errors and 5xx replies.

    ``before_attempt`` runs before every attempt (the per-source rate limiter hooks in
    here). 4xx replies are not retried. Raises ApiError once attempts are exhausted.
    """
    attempt = 0
    last_exc: Optional[Exception] = None
    while attempt < max(1, retries):
        attempt += 1
        if before_attempt is not None:
            before_attempt()
        try:
            resp = session.get(url, params=params, headers=headers, timeout=timeout)
        except requests.RequestException as exc:
            last_exc = ApiError(f"GET {url} failed: {exc}")
        else:
            status = resp.status_code
            if status < 400:
                return resp
            last_exc = ApiError(f"GET {url} returned HTTP {status}: {(resp.text or '')[:200]}", status=status)
            if status < 500:
                break
        if attempt < retries:
            logger.debug("Retrying %s (attempt %d/%d): %s", url, attempt + 1, retries, last_exc)
            sleep(retry_delay)
    raise last_exc if last_exc else ApiError(f"Unknown error contacting {url}.")
