# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/appliance/utils/retry.py
from __future__ import annotations

import functools
import logging
import time
from typing import Callable, Optional

log = logging.getLogger("appliance")


class RetryError(RuntimeError):
    pass


def retry(
    *,
    retries: int,
    delay: float,
    backoff: float = 1.0,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[int, Exception], None]] = None,
    sleep: Optional[Callable[[float], None]] = None,
):
    """
    Retry an idempotent call (apt index refresh) up to *retries* times.

    Waits *delay* seconds after the first failure, multiplied by *backoff*
    after each further one. Exceptions outside *retry_on* propagate at once;
    exhausting the attempts raises RetryError chained to the last failure.
    """
    if retries < 1:
        raise ValueError("retries must be at least 1")

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            wait = delay
            attempt = 0
            while True:
                attempt += 1
                try:
                    return fn(*args, **kwargs)
                except retry_on as exc:
                    if on_retry:
                        on_retry(attempt, exc)
                    if attempt >= retries:
                        raise RetryError(f"{fn.__name__} failed after {retries} attempts: {exc}") from exc
                    log.debug("%s attempt %d/%d failed; next try in %ss", fn.__name__, attempt, retries, wait)
                    (sleep or time.sleep)(wait)
                    wait *= backoff
        return wrapper
    return decorator
