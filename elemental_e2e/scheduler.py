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

"""Per-node provisioning fan-out with paced launches and a completion barrier."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import TYPE_CHECKING

from elemental_e2e import console, logger

if TYPE_CHECKING:
    from elemental_e2e.remote import NodeClient


@dataclass(frozen=True)
class NodeIdentity:
    """Identity of one node, derived before its worker is launched.

    Attributes:
        index: Node index.
        hostname: Node hostname.
        mac: MAC address reserved for the node.
        client: SSH access to the node, when known.
    """

    index: int
    hostname: str
    mac: str = ""
    client: NodeClient | None = None


@dataclass(frozen=True)
class NodeOutcome:
    """Result of one node worker.

    Attributes:
        identity: Node the worker handled.
        error: Exception raised by the worker, or None on success.
        output: Console output buffered while the worker ran.
    """

    identity: NodeIdentity
    error: BaseException | None = None
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


class ProvisioningError(RuntimeError):
    """Raised after the barrier when at least one node of a phase failed."""

    def __init__(self, phase: str, failures: list[NodeOutcome], cancelled: bool = False) -> None:
        self.phase = phase
        self.failures = failures
        self.cancelled = cancelled
        details = "; ".join(f"{f.identity.hostname or f.identity.index}: {f.error}" for f in failures)
        reason = "cancelled" if cancelled and not failures else f"{len(failures)} node(s) failed"
        super().__init__(f"{phase}: {reason}" + (f" ({details})" if details else ""))


class BootPacer:
    """Bound how many nodes are booting at the same time.

    The launch loop calls :meth:`wait_turn` after each launch; it returns
    once fewer than ``max_concurrent`` nodes are in flight, after an
    optional fixed stagger delay.
    """

    def __init__(
        self,
        max_concurrent: int,
        stagger: float = 0.0,
        sleep: Callable[[float], object] | None = None,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be at least 1, got {max_concurrent}")
        self.max_concurrent = max_concurrent
        self.stagger = stagger
        self._sleep = sleep
        self._cond = threading.Condition()
        self._started = 0
        self._completed = 0

    @property
    def started(self) -> int:
        with self._cond:
            return self._started

    @property
    def in_flight(self) -> int:
        with self._cond:
            return self._started - self._completed

    def node_started(self) -> None:
        with self._cond:
            self._started += 1

    def node_completed(self) -> None:
        with self._cond:
            self._completed += 1
            self._cond.notify_all()

    def wait_turn(self, index: int, start_index: int, cancel: threading.Event | None = None) -> int:
        """Block the launch loop until another node may be started.

        Args:
            index: Index of the node just launched.
            start_index: First index of the phase.
            cancel: Run-wide cancellation event.

        Returns:
            Number of nodes started so far.
        """
        if self.stagger > 0:
            sleep = self._sleep or (cancel.wait if cancel is not None else time.sleep)
            sleep(self.stagger)

        with self._cond:
            if self._started - self._completed >= self.max_concurrent:
                logger.info(
                    "Node %d (%d launched): %d nodes booting, waiting for a free slot (max %d)",
                    index, index - start_index + 1, self._started - self._completed, self.max_concurrent,
                )
            while self._started - self._completed >= self.max_concurrent:
                if cancel is not None and cancel.is_set():
                    break
                self._cond.wait(timeout=1.0)
            return self._started


def provision_all(
    start: int,
    end: int,
    derive_identity: Callable[[int], NodeIdentity],
    work: Callable[[NodeIdentity], None],
    *,
    phase: str,
    max_concurrent: int,
    stagger: float = 0.0,
    cancel: threading.Event | None = None,
) -> list[NodeOutcome]:
    """Run ``work`` for every node index in ``start..end`` (inclusive).

    Identities are derived one after the other on the calling thread, since
    derivation may write shared configuration. Each node then runs in its
    own worker thread. The call returns only once every launched worker has
    finished, successfully or not.

    Args:
        start: First node index.
        end: Last node index (``start == end`` for a single node).
        derive_identity: Sequential identity derivation for an index.
        work: Per-node work, run concurrently.
        phase: Phase name for output and errors.
        max_concurrent: Maximum nodes in flight at once.
        stagger: Fixed delay between two launches, in seconds.
        cancel: Run-wide cancellation event; stops further launches.

    Returns:
        One outcome per launched node, in index order.

    Raises:
        ValueError: If ``end`` is lower than ``start``.
        ProvisioningError: If any node failed or the phase was cancelled.
    """
    if end < start:
        raise ValueError(f"invalid node range {start}..{end}")

    console.print(f"[yellow]\u2139\ufe0f  {phase}: launching nodes {start}..{end} (max {max_concurrent} at once)[/yellow]")
    pacer = BootPacer(max_concurrent, stagger)
    outputs: dict[int, str] = {}
    lock = threading.Lock()
    launched: dict[Future, NodeIdentity] = {}
    early_failures: list[NodeOutcome] = []

    def _run_node(identity: NodeIdentity) -> None:
        buf = None
        try:
            with console.buffered() as buf:
                work(identity)
        finally:
            with lock:
                outputs[identity.index] = buf.getvalue() if buf is not None else ""

    def _stop_launching() -> bool:
        if cancel is not None and cancel.is_set():
            return True
        return any(f.done() and f.exception() is not None for f in launched)

    with ThreadPoolExecutor(max_workers=end - start + 1, thread_name_prefix=phase.replace(" ", "-")) as executor:
        for index in range(start, end + 1):
            if _stop_launching():
                logger.warning("%s: not launching node %d and beyond", phase, index)
                break
            try:
                identity = derive_identity(index)
            except Exception as err:
                early_failures.append(NodeOutcome(NodeIdentity(index=index, hostname=""), err))
                break

            future = executor.submit(_run_node, identity)
            pacer.node_started()
            future.add_done_callback(lambda _: pacer.node_completed())
            launched[future] = identity

            if index < end:
                pacer.wait_turn(index, start, cancel)

        # Barrier: every launched worker yields a result or an exception
        wait(launched)

    outcomes = sorted(
        (NodeOutcome(identity, future.exception(), outputs.get(identity.index, ""))
         for future, identity in launched.items()),
        key=lambda o: o.identity.index,
    )
    for outcome in outcomes:
        if outcome.output:
            console.print(outcome.output, end="", markup=False, highlight=False)

    failures = early_failures + [o for o in outcomes if not o.ok]
    cancelled = len(outcomes) < end - start + 1 and cancel is not None and cancel.is_set()
    if failures or cancelled:
        for failure in failures:
            console.print(f"[red]\u2717 {failure.identity.hostname or failure.identity.index}: {failure.error}[/red]")
        error = ProvisioningError(phase, failures, cancelled=cancelled)
        if failures:
            raise error from failures[0].error
        raise error

    console.print(f"[green]\u2705 {phase}: {len(outcomes)} node(s) done[/green]")
    return outcomes
