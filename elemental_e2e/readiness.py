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

"""Readiness checks of CAPI/Elemental resources driven by the readiness matrix."""

from __future__ import annotations

import threading

from elemental_e2e import console, logger
from elemental_e2e.conditions import (
    ResourceKind,
    ResourceRef,
    StatusAccessor,
    condition_predicate,
    conditions_for,
)
from elemental_e2e.constants import (
    KIND_ELEMENTAL_REGISTRATION,
    KIND_MACHINE_REGISTRATION,
    OPERATOR_TYPE_CAPI,
)
from elemental_e2e.polling import ConvergenceTimeout, PollBudget, budget, wait_until


class ResourceNotReadyError(RuntimeError):
    """Raised when a resource condition does not reach its expected status."""

    def __init__(self, ref: ResourceRef, condition_type: str, expected: str, last_value: object) -> None:
        self.ref = ref
        self.condition_type = condition_type
        self.expected = expected
        self.last_value = last_value
        super().__init__(f"{ref}: {condition_type} is {last_value!r} instead of {expected!r}")


def wait_resource_ready(
    accessor: StatusAccessor,
    ref: ResourceRef,
    poll_budget: PollBudget,
    cancel: threading.Event | None = None,
) -> None:
    """Wait until every condition of a resource reaches its expected status.

    Conditions are checked one after the other in matrix order, each with the
    full budget. The first condition that does not converge fails the check.

    Args:
        accessor: Resource status accessor.
        ref: Resource to check.
        poll_budget: Interval and (already scaled) deadline of each condition.
        cancel: Run-wide cancellation event.

    Raises:
        UnknownResourceKindError: If the kind has no readiness conditions.
        ResourceNotReadyError: If a condition does not converge in time.
    """
    for condition in conditions_for(ref.kind):
        try:
            wait_until(
                condition_predicate(accessor, ref, condition),
                condition.status,
                poll_budget,
                description=f"{ref} {condition.type}",
                cancel=cancel,
            )
        except ConvergenceTimeout as err:
            raise ResourceNotReadyError(ref, condition.type, condition.status, err.last_value) from err
        logger.debug("%s: %s=%s", ref, condition.type, condition.status)
    console.print(f"[green]\u2705 {ref} is ready[/green]")


def wait_resources_ready(
    accessor: StatusAccessor,
    namespace: str,
    kind: ResourceKind,
    names: list[str],
    base_interval: float,
    base_deadline: float,
    used_nodes: int,
    cancel: threading.Event | None = None,
) -> None:
    """Check a list of resources of one kind, with a deadline scaled by the node count.

    Raises:
        ResourceNotReadyError: On the first resource that is not ready.
    """
    poll_budget = budget(base_interval, base_deadline, used_nodes)
    for name in names:
        console.print(f"[yellow]\u2139\ufe0f  Checking {kind.value} {name}[/yellow]")
        wait_resource_ready(accessor, ResourceRef(namespace, name, kind), poll_budget, cancel)


def registration_kind(operator_type: str) -> str:
    """Return the registration kind served by the operator flavour."""
    return KIND_ELEMENTAL_REGISTRATION if operator_type == OPERATOR_TYPE_CAPI else KIND_MACHINE_REGISTRATION


def check_created_registration(
    accessor: StatusAccessor,
    namespace: str,
    registration_name: str,
    operator_type: str,
    poll_budget: PollBudget,
    cancel: threading.Event | None = None,
) -> None:
    """Wait until the registration resource shows up in its namespace.

    Args:
        accessor: Accessor able to list resource names.
        namespace: Registration namespace.
        registration_name: Name (or name fragment) to look for.
        operator_type: Operator flavour, selecting the registration kind.
        poll_budget: Interval and deadline.
        cancel: Run-wide cancellation event.

    Raises:
        ConvergenceTimeout: If the registration never appears.
    """
    kind = registration_kind(operator_type)
    wait_until(
        lambda: " ".join(accessor.list_names(namespace, kind)),
        registration_name,
        poll_budget,
        matcher=lambda names: isinstance(names, str) and registration_name in names,
        description=f"{kind} {namespace}/{registration_name}",
        cancel=cancel,
    )
    console.print(f"[green]\u2705 {kind} {registration_name} created[/green]")
