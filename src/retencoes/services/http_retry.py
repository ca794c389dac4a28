"""Retry handling for the Gemini extraction call.

A failed ``generateContent`` response is classified here: a rejected API key
is final, a rate limit or server overload is transient and retried with
exponential backoff, anything else is an extraction failure.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import requests.exceptions

from retencoes.services.exceptions import AuthenticationError, ExtractionError

T = TypeVar("T")

logger = logging.getLogger(__name__)

AUTH_STATUSES = frozenset({401, 403})
# Gemini answers 400 with these reasons when the key itself is bad
AUTH_MARKERS = ("api key not valid", "permission denied", "api_key_invalid")


class RetryableHTTPError(requests.exceptions.HTTPError):
    """Gemini answered with a transient status (rate limit or overload)."""

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"Erro Gemini ({status_code}): {body}")
        self.status_code = status_code


@dataclass(frozen=True)
class RetryPolicy:
    """How often a document is resent to the model, and how long to wait between tries."""

    attempts: int
    first_wait: float
    max_wait: float
    growth: float
    jitter: float
    transient_errors: tuple[type[Exception], ...]
    transient_statuses: frozenset[int] = frozenset()

    def wait_before(self, retry: int) -> float:
        """Seconds to wait before retry number *retry* (1 is the first retry)."""
        wait = min(self.first_wait * self.growth ** (retry - 1), self.max_wait)
        spread = wait * self.jitter
        return max(0.0, wait + random.uniform(-spread, spread))


# generateContent has no side effects, so timeouts are resent as well
GEMINI_EXTRACT = RetryPolicy(
    attempts=3,
    first_wait=2.0,
    max_wait=20.0,
    growth=2.0,
    jitter=0.25,
    transient_errors=(
        requests.exceptions.ConnectionError,
        requests.exceptions.Timeout,
        RetryableHTTPError,
    ),
    transient_statuses=frozenset({429, 500, 502, 503, 504}),
)


def is_auth_failure(status_code: int, body: str) -> bool:
    if status_code in AUTH_STATUSES:
        return True
    lowered = body.lower()
    return any(marker in lowered for marker in AUTH_MARKERS)


def raise_for_gemini_status(resp: Any, policy: RetryPolicy = GEMINI_EXTRACT) -> None:
    """Raise for a failed Gemini response; return silently when it succeeded.

    AuthenticationError for a rejected key, RetryableHTTPError for a status in
    ``policy.transient_statuses``, ExtractionError otherwise.
    """
    if resp.ok:
        return
    body = resp.text[:500] if resp.text else ""
    if is_auth_failure(resp.status_code, body):
        raise AuthenticationError(
            "Erro de autenticação. Verifique se a sua chave da API do Gemini está correta."
        )
    if resp.status_code in policy.transient_statuses:
        raise RetryableHTTPError(resp.status_code, body)
    raise ExtractionError(f"Erro Gemini ({resp.status_code}): {body}")


def retry_call(
    func: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], object] | None = None,
) -> T:
    """Call *func()* until it succeeds or *policy* gives up.

    Only ``policy.transient_errors`` are retried; the last one is re-raised
    once every attempt has failed.
    """
    sleep = sleep or time.sleep
    retry = 0
    while True:
        try:
            return func()
        except policy.transient_errors as exc:
            retry += 1
            if retry >= policy.attempts:
                logger.warning("Gemini indisponivel apos %d tentativas: %s", retry, exc)
                raise
            wait = policy.wait_before(retry)
            logger.warning(
                "Tentativa %d/%d falhou (%s), nova tentativa em %.1fs",
                retry,
                policy.attempts,
                type(exc).__name__,
                wait,
            )
            sleep(wait)
