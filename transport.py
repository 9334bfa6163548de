import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

import requests

from exceptions import (
    ClientFailure,
    ConnectionFailure,
    Exhausted,
    RequestFailure,
    ServerFailure,
)

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings for a single logical request.

    ``max_retries`` counts the retries made after the first attempt. The delay
    before retry ``k`` is ``base_delay * k``, optionally capped by ``max_delay``.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: Optional[float] = None
    sleep: Callable[[float], Any] = time.sleep

    def delay(self, attempt: int) -> float:
        delay = self.base_delay * attempt
        if self.max_delay is not None:
            return min(delay, self.max_delay)
        return delay


DEFAULT_RETRY_POLICY = RetryPolicy()


def _attempt(
    requester: Any,
    method: str,
    url: str,
    headers: Optional[Dict[str, str]],
    data: Optional[Union[str, bytes]],
    timeout: Optional[float],
) -> str:
    try:
        response = requester.request(
            method, url, headers=headers, data=data, timeout=timeout
        )
    except (requests.ConnectionError, requests.Timeout) as e:
        raise ConnectionFailure(url, cause=e) from e
    except requests.RequestException as e:
        raise RequestFailure(url, cause=e) from e

    logging.debug("%s %s -> %s", method, url, response.status_code)
    if response.status_code >= 500:
        raise ServerFailure(
            url, cause=response.text or response.reason, status_code=response.status_code
        )
    if response.status_code >= 400:
        raise ClientFailure(
            url, cause=response.text or response.reason, status_code=response.status_code
        )
    return response.text


def send(
    method: str,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    body: Optional[Union[str, bytes]] = None,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> str:
    """Send an HTTP request, retrying connection failures and server errors.

    Args:
        method: HTTP method, e.g. ``GET`` or ``PUT``
        url: Full request URL
        headers: Request headers
        body: Raw request body, usually JSON text
        policy: Retry bound and backoff
        timeout: Per-attempt timeout passed to requests
        session: Optional session to send through instead of the requests module

    Returns:
        The raw response body.

    Raises:
        ClientFailure: on a 4xx response, after a single attempt
        Exhausted: when every allowed retry failed; wraps the last failure
        RequestFailure: on a malformed request that cannot be sent
    """
    requester = session if session is not None else requests
    data = body.encode("utf-8") if isinstance(body, str) else body

    attempt = 0
    while True:
        try:
            return _attempt(requester, method, url, headers, data, timeout)
        except (ConnectionFailure, ServerFailure) as e:
            failure = e

        if attempt >= policy.max_retries:
            logging.error(f"Giving up on {method} {url} after {attempt} retries: {failure}")
            raise Exhausted(url, cause=failure, status_code=failure.status_code) from failure

        attempt += 1
        delay = policy.delay(attempt)
        logging.warning(
            "Retry %d/%d for %s %s in %.1fs after %s: %s",
            attempt,
            policy.max_retries,
            method,
            url,
            delay,
            type(failure).__name__,
            failure.cause,
        )
        policy.sleep(delay)
