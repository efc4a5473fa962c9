# /*
# Copyright 2026 The Elemental E2E Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Convergence poller and node-count scaled poll budgets."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from tenacity import RetryCallState, Retrying, retry_if_result, stop_after_delay, stop_when_event_set
from tenacity.stop import stop_base

from elemental_e2e import logger
from elemental_e2e.constants import MISMATCH_REPORT_EVERY


# ============================================================================
# Poll budgets
# ============================================================================

@dataclass(frozen=True)
class PollBudget:
    """How often and for how long a condition is polled.

    Attributes:
        interval: Seconds between two observations.
        deadline: Seconds after which polling gives up.
    """

    interval: float
    deadline: float

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError(f"poll interval must be positive, got {self.interval}")
        if self.deadline < self.interval:
            raise ValueError(f"poll deadline {self.deadline}s is shorter than interval {self.interval}s")


def budget(base_interval: float, base_deadline: float, entity_count: int) -> PollBudget:
    """Scale a base deadline by the number of entities under test.

    Reconciliation of N nodes takes roughly N times longer, so only the
    deadline grows; the polling frequency stays the same.

    Args:
        base_interval: Seconds between two observations.
        base_deadline: Deadline for a single entity, in seconds.
        entity_count: Number of nodes/entities being waited on.

    Returns:
        PollBudget with ``deadline = base_deadline * entity_count``.

    Raises:
        ValueError: If ``entity_count`` is lower than 1.
    """
    if entity_count < 1:
        raise ValueError(f"entity count must be at least 1, got {entity_count}")
    return PollBudget(interval=base_interval, deadline=base_deadline * entity_count)


def retry_stop(deadline: float, cancel: threading.Event | None = None) -> stop_base:
    """Tenacity stop condition for a retry loop: deadline elapsed or run cancelled."""
    stop = stop_after_delay(deadline)
    if cancel is not None:
        stop = stop | stop_when_event_set(cancel)
    return stop


def retry_sleep(cancel: threading.Event | None = None) -> Callable[[float], object]:
    """Sleep between retries, woken up early when the run is cancelled."""
    return cancel.wait if cancel is not None else time.sleep


# ============================================================================
# Poller
# ============================================================================

@dataclass(frozen=True)
class PollResult:
    """Outcome of :func:`poll_until`.

    Attributes:
        value: Last observed value (``None`` if the last observation raised).
        satisfied: Whether the last value matched the target.
        attempts: Number of observations made.
        elapsed: Seconds spent polling.
        cancelled: Whether polling stopped because the run was cancelled.
    """

    value: Any
    satisfied: bool
    attempts: int
    elapsed: float
    cancelled: bool = False


class ConvergenceTimeout(RuntimeError):
    """Raised by :func:`wait_until` when a condition never converges."""

    def __init__(self, description: str, expected: Any, result: PollResult) -> None:
        self.description = description
        self.expected = expected
        self.result = result
        reason = "Cancelled" if result.cancelled else "Timed out"
        super().__init__(
            f"{reason} after {result.elapsed:.0f}s waiting for {description}: "
            f"last value {result.value!r}, expected {expected!r}"
        )

    @property
    def last_value(self) -> Any:
        return self.result.value


class _Observer:
    """Wrap a predicate so that a failing read counts as a mismatch."""

    def __init__(self, predicate: Callable[[], Any], description: str) -> None:
        self._predicate = predicate
        self._description = description
        self.attempts = 0

    def __call__(self) -> Any:
        self.attempts += 1
        try:
            return self._predicate()
        except Exception as exc:
            logger.debug("Reading %s failed (attempt %d): %s", self._description, self.attempts, exc)
            return None


class _MismatchReporter:
    """Log one diagnostic line every ``every`` consecutive mismatches."""

    def __init__(self, description: str, expected: Any, every: int = MISMATCH_REPORT_EVERY) -> None:
        self._description = description
        self._expected = expected
        self._every = every
        self._count = 0

    def __call__(self, retry_state: RetryCallState) -> None:
        self._count += 1
        if self._count >= self._every:
            logger.warning(
                "!! %s status issue !! got %r instead of %r",
                self._description, retry_state.outcome.result(), self._expected,
            )
            self._count = 0


def poll_until(
    predicate: Callable[[], Any],
    target: Any,
    poll_budget: PollBudget,
    *,
    matcher: Callable[[Any], bool] | None = None,
    description: str = "condition",
    cancel: threading.Event | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Any] | None = None,
) -> PollResult:
    """Poll ``predicate`` until it returns ``target`` or the deadline elapses.

    The predicate is called immediately, then every ``poll_budget.interval``.
    Exceptions raised by the predicate are treated as non-matching
    observations. The final wait is clipped so the last observation happens
    at the deadline, never later.

    Args:
        predicate: Side-effect free read of the current value.
        target: Value that ends the polling.
        poll_budget: Interval and deadline.
        matcher: Custom acceptance test replacing ``value == target``.
        description: Human readable name used in diagnostics.
        cancel: Run-wide event; once set, sleeping stops and polling ends unsatisfied.
        clock: Monotonic clock, in seconds.
        sleep: Sleep function; defaults to ``cancel.wait`` or ``time.sleep``.

    Returns:
        PollResult with the last observed value.
    """
    matches = matcher or (lambda value: value == target)
    if sleep is None:
        sleep = cancel.wait if cancel is not None else time.sleep

    observer = _Observer(predicate, description)
    start = clock()

    def _elapsed() -> float:
        return clock() - start

    def _cancelled() -> bool:
        return cancel is not None and cancel.is_set()

    def _stop(retry_state: RetryCallState) -> bool:
        return _cancelled() or _elapsed() >= poll_budget.deadline

    def _wait(retry_state: RetryCallState) -> float:
        return min(poll_budget.interval, max(poll_budget.deadline - _elapsed(), 0.0))

    retrying = Retrying(
        sleep=sleep,
        stop=_stop,
        wait=_wait,
        retry=retry_if_result(lambda value: not matches(value)),
        after=_MismatchReporter(description, target),
        retry_error_callback=lambda retry_state: retry_state.outcome.result(),
    )
    value = retrying(observer)
    satisfied = matches(value)
    return PollResult(
        value=value,
        satisfied=satisfied,
        attempts=observer.attempts,
        elapsed=_elapsed(),
        cancelled=not satisfied and _cancelled(),
    )


def wait_until(
    predicate: Callable[[], Any],
    target: Any,
    poll_budget: PollBudget,
    **kwargs: Any,
) -> Any:
    """Like :func:`poll_until` but raise when the condition does not converge.

    Returns:
        The matching value.

    Raises:
        ConvergenceTimeout: If the deadline elapses (or the run is cancelled).
    """
    description = kwargs.get("description", "condition")
    result = poll_until(predicate, target, poll_budget, **kwargs)
    if not result.satisfied:
        raise ConvergenceTimeout(description, target, result)
    return result.value
