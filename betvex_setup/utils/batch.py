from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, List, Optional, TypeVar

import structlog
from gevent.pool import Pool

from betvex_setup.exceptions import PhaseError

log = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class Outcome(Generic[T]):
    """Result of running one item of a batch."""

    item: T
    value: Any = None
    exception: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.exception is None


def run_batch(
    items: Iterable[T], operation: Callable[[T], Any], concurrency: Optional[int] = None
) -> List[Outcome[T]]:
    """Run `operation` for every item concurrently and wait for all of them.

    At most `concurrency` operations are pending at a time, ``None`` means
    unbounded. A failing item does not cancel its siblings. The returned
    outcomes are in the same order as `items`.
    """
    items = list(items)
    pool = Pool(size=concurrency)
    greenlets = [pool.spawn(operation, item) for item in items]
    pool.join()

    outcomes = []
    for item, greenlet in zip(items, greenlets):
        if greenlet.successful():
            outcomes.append(Outcome(item=item, value=greenlet.value))
        else:
            log.error("Batch item failed", item=item, error=repr(greenlet.exception))
            outcomes.append(Outcome(item=item, exception=greenlet.exception))
    return outcomes


def raise_for_failures(outcomes: List[Outcome], phase: str) -> None:
    """Raise a :class:`PhaseError` if any of the `outcomes` failed."""
    failed = [outcome.item for outcome in outcomes if not outcome.ok]
    if failed:
        first_error = next(outcome.exception for outcome in outcomes if not outcome.ok)
        raise PhaseError(phase, failed) from first_error
