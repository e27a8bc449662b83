"""
Tracks one logical outbound call (search provider, language model) through its
attempts so timeout and retry decisions can be tested apart from business logic.
"""
from enum import Enum
from typing import Any, Optional


class CallState(str, Enum):
    NOT_STARTED = "not_started"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED_RETRYABLE = "failed_retryable"
    FAILED_TERMINAL = "failed_terminal"


class ExternalCall:
    """Small state machine: NOT_STARTED -> IN_FLIGHT -> SUCCEEDED | FAILED_*.

    A retryable failure returns to FAILED_RETRYABLE only while attempts remain;
    otherwise it is terminal. There is no path back from a terminal state.
    """

    def __init__(self, name: str, max_attempts: int = 1):
        self.name = name
        self.max_attempts = max(1, int(max_attempts))
        self.state = CallState.NOT_STARTED
        self.attempts = 0
        self.result: Any = None
        self.error: Optional[BaseException] = None

    @property
    def can_attempt(self) -> bool:
        return self.state in (CallState.NOT_STARTED, CallState.FAILED_RETRYABLE)

    @property
    def done(self) -> bool:
        return self.state in (CallState.SUCCEEDED, CallState.FAILED_TERMINAL)

    def start(self) -> None:
        if not self.can_attempt:
            raise RuntimeError(f"{self.name}: cannot start from state {self.state.value}")
        self.state = CallState.IN_FLIGHT
        self.attempts += 1

    def succeed(self, result: Any = None) -> None:
        self._require_in_flight()
        self.state = CallState.SUCCEEDED
        self.result = result
        self.error = None

    def fail(self, error: BaseException, retryable: bool = False) -> None:
        self._require_in_flight()
        self.error = error
        if retryable and self.attempts < self.max_attempts:
            self.state = CallState.FAILED_RETRYABLE
        else:
            self.state = CallState.FAILED_TERMINAL

    def _require_in_flight(self) -> None:
        if self.state is not CallState.IN_FLIGHT:
            raise RuntimeError(f"{self.name}: no attempt in flight (state {self.state.value})")

    def __repr__(self) -> str:
        return f"ExternalCall({self.name!r}, state={self.state.value}, attempts={self.attempts})"
