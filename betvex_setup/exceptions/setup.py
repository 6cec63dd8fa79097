from typing import Any, List, Optional


class SetupError(Exception):
    exit_code = 10


class PreconditionError(SetupError):
    """The main account does not hold the balances the run needs."""

    exit_code = 11


class RemoteCallError(SetupError):
    """A single call to the remote ledger failed.

    The original exception is kept as ``__cause__`` and in :attr:`cause`.
    """

    exit_code = 12

    def __init__(
        self,
        message: str,
        account_id: Optional[str] = None,
        method: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.account_id = account_id
        self.method = method
        self.cause = cause


class PhaseError(SetupError):
    """One or more items of a batch failed in a phase that must not fail."""

    exit_code = 13

    def __init__(self, phase: str, failed: Optional[List[Any]] = None, message: str = "") -> None:
        self.phase = phase
        self.failed = failed or []
        if not message:
            message = f"Phase {phase!r} failed for {len(self.failed)} item(s): {self.failed}"
        super().__init__(message)


class LifecycleError(SetupError):
    exit_code = 14


class UnknownMatch(LifecycleError, KeyError):
    """The match key was never recorded as created."""


class InvalidTransition(LifecycleError):
    """The requested state change is not allowed from the match's current state."""
