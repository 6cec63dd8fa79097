import time
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional, TypeVar

import click
import structlog

from betvex_setup.utils.retry import with_retry

if TYPE_CHECKING:
    from betvex_setup.runner import SetupRunner

log = structlog.get_logger(__name__)

T = TypeVar("T")


class PhaseState(Enum):
    INITIALIZED = " "
    RUNNING = "•"
    FINISHED = "✔"
    ERRORED = "✗"


PHASE_STATE_COLOR = {
    PhaseState.INITIALIZED: "",
    PhaseState.RUNNING: click.style("", fg="yellow", reset=False),
    PhaseState.FINISHED: click.style("", fg="green", reset=False),
    PhaseState.ERRORED: click.style("", fg="red", reset=False),
}


class Phase:
    """One step of the setup sequence.

    Calling a phase runs :meth:`_run`, tracks its state and runtime and logs
    the outcome. Exceptions are logged and re-raised; phases that tolerate
    per-item failures handle those inside :meth:`_run`.
    """

    _name: str

    def __init__(self, runner: "SetupRunner") -> None:
        self._runner = runner
        self._state = PhaseState.INITIALIZED
        self.exception: Optional[BaseException] = None
        self._start_time: Optional[float] = None
        self._stop_time: Optional[float] = None

    def __call__(self, *args, **kwargs):
        log.info("Starting phase", phase=self._name)
        self.state = PhaseState.RUNNING
        self._start_time = time.monotonic()
        try:
            return_val = self._run(*args, **kwargs)
        except BaseException as ex:
            self.state = PhaseState.ERRORED
            log.exception("Phase errored", phase=self._name)
            self.exception = ex
            raise
        finally:
            self._stop_time = time.monotonic()

        log.info("Phase successful", phase=self._name, runtime=self._stop_time - self._start_time)
        self.state = PhaseState.FINISHED
        return return_val

    def _run(self, *args, **kwargs):  # pylint: disable=unused-argument
        raise NotImplementedError

    def retry(self, operation: Callable[[], T]) -> T:
        """Run `operation` under the retry policy configured for this run."""
        rpc_settings = self._runner.settings.rpc
        return with_retry(
            operation, max_attempts=rpc_settings.retry_attempts, delay=rpc_settings.retry_delay
        )

    def __repr__(self):
        return f"<{self.__class__.__name__}: {self.state.name}>"

    def __str__(self):
        color = PHASE_STATE_COLOR[self.state]
        reset = click.style("", reset=True)
        return (
            f"- [{color}{self.state.value}{reset}] "
            f'{color}{self.__class__.__name__.replace("Phase", "")}{reset}{self._duration}'
        )

    @property
    def _duration(self):
        duration = 0.0
        if self._start_time:
            if self._stop_time:
                duration = self._stop_time - self._start_time
            else:
                duration = time.monotonic() - self._start_time
        if duration:
            return " " + str(timedelta(seconds=duration))
        return ""

    @property
    def done(self):
        return self.state in {PhaseState.FINISHED, PhaseState.ERRORED}

    @property
    def state(self):
        return self._state

    @state.setter
    def state(self, new_state):
        self._state = new_state
        self._runner.phase_state_changed(self, self._state)
