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

"""Readiness matrix and condition predicates for CAPI/Elemental resources."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Protocol

from elemental_e2e import logger
from elemental_e2e.constants import KIND_CLUSTER, KIND_ELEMENTAL_HOST, KIND_ELEMENTAL_MACHINE


class ResourceKind(str, Enum):
    """Resource kinds whose readiness is checked, valued by their kubectl name."""

    CLUSTER = KIND_CLUSTER
    ELEMENTAL_HOST = KIND_ELEMENTAL_HOST
    ELEMENTAL_MACHINE = KIND_ELEMENTAL_MACHINE


class UnknownResourceKindError(LookupError):
    """Raised when a kind outside of the readiness matrix is requested."""


@dataclass(frozen=True)
class ResourceRef:
    """Namespaced reference to a Kubernetes resource.

    Attributes:
        namespace: Namespace of the resource.
        name: Resource name.
        kind: Resource kind.
    """

    namespace: str
    name: str
    kind: ResourceKind

    def __str__(self) -> str:
        return f"{self.kind.value} {self.namespace}/{self.name}"


@dataclass(frozen=True)
class ConditionSpec:
    """A condition and the status it must reach.

    Attributes:
        type: Condition type (or status field for clusters).
        status: Expected status string.
    """

    type: str
    status: str


READINESS_MATRIX: MappingProxyType[ResourceKind, tuple[ConditionSpec, ...]] = MappingProxyType({
    ResourceKind.CLUSTER: (
        ConditionSpec("controlPlaneReady", "true"),
        ConditionSpec("infrastructureReady", "true"),
    ),
    ResourceKind.ELEMENTAL_HOST: (
        ConditionSpec("RegistrationReady", "True"),
        ConditionSpec("InstallationReady", "True"),
        ConditionSpec("BootstrapReady", "True"),
        ConditionSpec("Ready", "True"),
    ),
    ResourceKind.ELEMENTAL_MACHINE: (
        ConditionSpec("AssociationReady", "True"),
        ConditionSpec("HostReady", "True"),
        ConditionSpec("ProviderIDReady", "True"),
        ConditionSpec("Ready", "True"),
    ),
})


def _as_kind(kind: ResourceKind | str) -> ResourceKind:
    try:
        return ResourceKind(kind)
    except ValueError as err:
        raise UnknownResourceKindError(f"No readiness conditions defined for kind {kind!r}") from err


def conditions_for(kind: ResourceKind | str) -> tuple[ConditionSpec, ...]:
    """Return the ordered conditions a resource kind must satisfy.

    Args:
        kind: Resource kind, as enum member or kubectl name.

    Returns:
        Non-empty tuple of condition specs, in diagnostic order.

    Raises:
        UnknownResourceKindError: If the kind is not part of the matrix.
    """
    resolved = _as_kind(kind)
    conditions = READINESS_MATRIX.get(resolved)
    if not conditions:
        raise UnknownResourceKindError(f"No readiness conditions defined for kind {kind!r}")
    return conditions


def condition_jsonpath(kind: ResourceKind, condition_type: str) -> str:
    """Build the kubectl jsonpath reading one condition of a resource.

    Clusters expose readiness as plain status fields; Elemental resources use
    the standard ``status.conditions`` list.

    Args:
        kind: Resource kind.
        condition_type: Condition type or status field name.

    Returns:
        A ``jsonpath=`` expression for ``kubectl get -o``.
    """
    if kind is ResourceKind.CLUSTER:
        return "jsonpath={.status." + condition_type + "}"
    return 'jsonpath={.status.conditions[?(@.type=="' + condition_type + '")].status}'


# ============================================================================
# Predicates
# ============================================================================

class StatusAccessor(Protocol):
    """Read access to a field of a Kubernetes resource."""

    def get_field(self, namespace: str, kind: str, name: str, jsonpath: str) -> str:
        """Return the field value, raising on lookup failure."""
        ...

    def list_names(self, namespace: str, kind: str) -> list[str]:
        """Return the names of all resources of a kind, raising on failure."""
        ...


def condition_predicate(
    accessor: StatusAccessor,
    ref: ResourceRef,
    condition: ConditionSpec,
) -> Callable[[], str]:
    """Build a predicate reading the current status of one condition.

    A failing read returns an empty string so that the poller treats it
    like any other mismatch.

    Args:
        accessor: Resource status accessor.
        ref: Resource to observe.
        condition: Condition to read.

    Returns:
        Zero-argument callable returning the observed status.
    """
    jsonpath = condition_jsonpath(ref.kind, condition.type)

    def _read() -> str:
        try:
            return accessor.get_field(ref.namespace, ref.kind.value, ref.name, jsonpath).strip()
        except Exception as exc:
            logger.debug("Cannot read %s of %s: %s", condition.type, ref, exc)
            return ""

    return _read
