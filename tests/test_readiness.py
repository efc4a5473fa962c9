import pytest

from elemental_e2e.conditions import ResourceKind, ResourceRef, UnknownResourceKindError, condition_jsonpath
from elemental_e2e.polling import ConvergenceTimeout, PollBudget
from elemental_e2e.readiness import (
    ResourceNotReadyError,
    check_created_registration,
    registration_kind,
    wait_resource_ready,
    wait_resources_ready,
)

FAST = PollBudget(interval=0.01, deadline=0.05)


def test_ready_host_checks_conditions_in_order(fake_accessor):
    fake_accessor.set_ready("default", ResourceKind.ELEMENTAL_HOST, "node-001")
    wait_resource_ready(fake_accessor, ResourceRef("default", "node-001", ResourceKind.ELEMENTAL_HOST), FAST)
    assert [path for _, _, path in fake_accessor.reads] == [
        condition_jsonpath(ResourceKind.ELEMENTAL_HOST, t)
        for t in ("RegistrationReady", "InstallationReady", "BootstrapReady", "Ready")
    ]


def test_first_unready_condition_fails(fake_accessor):
    fake_accessor.set_ready("default", ResourceKind.ELEMENTAL_HOST, "node-001")
    fake_accessor.set_condition("default", ResourceKind.ELEMENTAL_HOST, "node-001", "BootstrapReady", "False")
    ref = ResourceRef("default", "node-001", ResourceKind.ELEMENTAL_HOST)

    with pytest.raises(ResourceNotReadyError) as exc_info:
        wait_resource_ready(fake_accessor, ref, FAST)

    err = exc_info.value
    assert err.condition_type == "BootstrapReady"
    assert err.last_value == "False"
    assert isinstance(err.__cause__, ConvergenceTimeout)
    read_paths = {path for _, _, path in fake_accessor.reads}
    assert condition_jsonpath(ResourceKind.ELEMENTAL_HOST, "Ready") not in read_paths


def test_missing_resource_is_not_ready(fake_accessor):
    ref = ResourceRef("default", "c1", ResourceKind.CLUSTER)
    with pytest.raises(ResourceNotReadyError) as exc_info:
        wait_resource_ready(fake_accessor, ref, FAST)
    assert exc_info.value.last_value == ""


def test_unknown_kind_fails_before_polling(fake_accessor):
    with pytest.raises(UnknownResourceKindError):
        wait_resource_ready(fake_accessor, ResourceRef("default", "x", "machineinventory"), FAST)
    assert fake_accessor.reads == []


def test_wait_resources_ready_checks_every_name(fake_accessor):
    for name in ("m1", "m2"):
        fake_accessor.set_ready("ns", ResourceKind.ELEMENTAL_MACHINE, name)
    wait_resources_ready(fake_accessor, "ns", ResourceKind.ELEMENTAL_MACHINE, ["m1", "m2"], 0.01, 0.05, 2)
    assert {name for _, name, _ in fake_accessor.reads} == {"m1", "m2"}


@pytest.mark.parametrize("operator_type, kind", [
    ("capi", "ElementalRegistration"),
    ("", "MachineRegistration"),
])
def test_registration_kind(operator_type, kind):
    assert registration_kind(operator_type) == kind


def test_check_created_registration_matches_substring(fake_accessor):
    fake_accessor.names[("default", "ElementalRegistration")] = ["other", "machine-registration-master-c1"]
    check_created_registration(fake_accessor, "default", "machine-registration-master-c1", "capi", FAST)


def test_check_created_registration_times_out(fake_accessor):
    with pytest.raises(ConvergenceTimeout):
        check_created_registration(fake_accessor, "default", "machine-registration-master-c1", "capi", FAST)
