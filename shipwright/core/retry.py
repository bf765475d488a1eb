"""Bounded retry combinator for the build step.

The dominant build failure is transient resource exhaustion, and the build
tool resumes incrementally, so the identical command is rerun once with no
backoff. A second failure is fatal. The limit is fixed, not configurable.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_none,
)

from shipwright.core.errors import BuildFailedError, TransientBuildFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_BUILD_ATTEMPTS = 2  # the first attempt plus exactly one retry


def run_with_single_retry(
    fn: Callable[[], T], *, description: str = "build"
) -> tuple[T, int]:
    """Call *fn*, retrying once on ``TransientBuildFailure``.

    Returns ``(result, attempts)``. Raises ``BuildFailedError`` carrying the
    attempt count when both attempts fail. Any other exception propagates
    immediately without a retry.
    """

    def _before_sleep(retry_state) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "%s attempt %d failed (%s); retrying once",
            description, retry_state.attempt_number, exc,
        )

    retrying = Retrying(
        stop=stop_after_attempt(MAX_BUILD_ATTEMPTS),
        wait=wait_none(),
        retry=retry_if_exception_type(TransientBuildFailure),
        reraise=False,
        before_sleep=_before_sleep,
    )

    attempts = 0
    try:
        for attempt in retrying:
            attempts = attempt.retry_state.attempt_number
            with attempt:
                return fn(), attempts
    except RetryError as err:
        last = err.last_attempt.exception()
        raise BuildFailedError(err.last_attempt.attempt_number, last) from last

    raise RuntimeError("unreachable")
