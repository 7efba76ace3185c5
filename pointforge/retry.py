# SPDX-License-Identifier: MIT
"""Retry policy for idempotent requests to the time-series store.

Only reads go through :meth:`RetryPolicy.call`; append requests are never
replayed because the store cannot deduplicate them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, PositiveFloat, PositiveInt
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

__all__ = ["TRANSIENT_STATUS_CODES", "RetryPolicy", "is_transient"]

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({408, 429, 502, 503, 504})


def is_transient(error: BaseException) -> bool:
    """Whether *error* is worth another attempt: connection trouble or a throttling/gateway status."""

    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in TRANSIENT_STATUS_CODES
    return isinstance(error, (httpx.TransportError, TimeoutError, ConnectionError))


class RetryPolicy(BaseModel):
    """Bounded exponential backoff for store reads."""

    model_config = ConfigDict(frozen=True)

    attempts: PositiveInt = Field(4, description="Total attempts, the first request included.")
    initial_backoff: PositiveFloat = Field(0.25, description="Seconds to wait before the first retry.")
    max_backoff: PositiveFloat = Field(8.0, description="Ceiling for a single backoff interval in seconds.")
    max_jitter: NonNegativeFloat = Field(0.1, description="Upper bound of the random delay added to each wait.")

    def build(self, *, logger: logging.Logger) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential_jitter(initial=self.initial_backoff, max=self.max_backoff, jitter=self.max_jitter),
            retry=retry_if_exception(is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def call(self, operation: Callable[[], T], *, logger: logging.Logger) -> T:
        """Run *operation*, retrying transient failures and re-raising the last one."""

        return self.build(logger=logger)(operation)
