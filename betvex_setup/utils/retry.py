from typing import Callable, Tuple, Type, TypeVar

import gevent
import structlog

from betvex_setup.constants import DEFAULT_RETRY_ATTEMPTS, DEFAULT_RETRY_DELAY
from betvex_setup.exceptions import RemoteCallError

log = structlog.get_logger(__name__)

T = TypeVar("T")


def with_retry(
    operation: Callable[[], T],
    max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
    delay: float = DEFAULT_RETRY_DELAY,
    retry_on: Tuple[Type[BaseException], ...] = (RemoteCallError,),
) -> T:
    """Call `operation` until it succeeds, at most `max_attempts` times.

    Between attempts we wait a fixed `delay` (seconds), there is no backoff.
    Once the attempts are exhausted the last error is re-raised unchanged.

    Only exceptions in `retry_on` are retried, anything else propagates on the
    first failure. Note that the remote service does not tell transient from
    permanent rejections apart, so a contract-level rejection that can never
    succeed is retried as well.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, not {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except retry_on as ex:
            if attempt == max_attempts:
                raise
            log.info(
                "Attempt failed, retrying",
                attempt=attempt,
                max_attempts=max_attempts,
                delay=delay,
                error=str(ex),
            )
            gevent.sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover
