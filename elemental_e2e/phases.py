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

"""Ordered workflow phases."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from rich.panel import Panel

from elemental_e2e import console, logger
from elemental_e2e.context import RunContext


class PhaseError(RuntimeError):
    """Raised when a phase fails; wraps the original error."""

    def __init__(self, phase: str, cause: BaseException) -> None:
        self.phase = phase
        super().__init__(f"Phase '{phase}' failed: {cause}")


@dataclass(frozen=True)
class Phase:
    """A named step of a workflow.

    Attributes:
        name: Human readable step name.
        run: Step body, called with the run context.
    """

    name: str
    run: Callable[[RunContext], None]


def run_phases(phases: Sequence[Phase], ctx: RunContext) -> None:
    """Run phases in order, stopping at the first failure.

    Args:
        phases: Steps to run.
        ctx: Run context handed to every step.

    Raises:
        PhaseError: If a phase raises, or the run is cancelled before a phase starts.
    """
    for phase in phases:
        if ctx.cancel.is_set():
            raise PhaseError(phase.name, RuntimeError("run cancelled"))
        console.print(Panel.fit(phase.name, style="bold blue"))
        started = time.monotonic()
        try:
            phase.run(ctx)
        except Exception as err:
            logger.error("Phase '%s' failed after %.0fs", phase.name, time.monotonic() - started)
            raise PhaseError(phase.name, err) from err
        logger.info("Phase '%s' done in %.0fs", phase.name, time.monotonic() - started)


def run_workflow(phases: Sequence[Phase], ctx: RunContext, timeout: float | None = None) -> None:
    """Run phases under an optional overall timeout.

    When the timeout fires, the run-wide cancel event is set: pending waits
    stop early and no further phase or node is started.

    Args:
        phases: Steps to run.
        ctx: Run context.
        timeout: Overall run timeout in seconds, or None for no limit.

    Raises:
        PhaseError: If a phase fails or the run is cancelled.
    """
    timer = None
    if timeout is not None:
        timer = threading.Timer(timeout, ctx.cancel.set)
        timer.daemon = True
        timer.start()
    try:
        run_phases(phases, ctx)
    finally:
        if timer is not None:
            timer.cancel()
    console.print(f"[green]\u2705 {len(phases)} phase(s) completed[/green]")
