import dataclasses
import threading
import time

import pytest

from elemental_e2e import bootstrap
from elemental_e2e.conditions import ResourceKind
from elemental_e2e.readiness import ResourceNotReadyError
from elemental_e2e.remote import RemoteCommandError
from elemental_e2e.scheduler import ProvisioningError


@pytest.mark.parametrize("emulated, expected", [(False, "[[ -c /dev/tpm0 ]]"), (True, "[[ ! -e /dev/tpm0 ]]")])
def test_tpm_check_command(emulated, expected):
    assert bootstrap.tpm_check_command(emulated) == expected


def test_node_hostnames(make_context):
    ctx = make_context(vm_index=2, vm_numbers=4)
    assert bootstrap.node_hostnames(ctx) == ["node-002", "node-003", "node-004"]


def test_provision_registers_and_installs_every_node(make_context, monkeypatch):
    ctx = make_context(vm_index=1, vm_numbers=3, boot_type="iso")
    installed = []
    monkeypatch.setattr(bootstrap, "install_vm", lambda script, host, mac: installed.append((host, mac)))

    bootstrap.provision_nodes(ctx)

    assert sorted(installed) == [
        ("node-001", "52:54:00:00:01:01"),
        ("node-002", "52:54:00:00:01:02"),
        ("node-003", "52:54:00:00:01:03"),
    ]
    assert {"node-001", "node-002", "node-003"} <= {h.name for h in ctx.network.hosts()}


def test_provision_downloads_registration_unless_iso(make_context, monkeypatch):
    ctx = make_context()
    calls = []
    monkeypatch.setattr(bootstrap, "download_registration", lambda c: calls.append("download"))
    monkeypatch.setattr(bootstrap, "install_vm", lambda *args: calls.append("install"))
    bootstrap.provision_nodes(ctx)
    assert calls == ["download", "install"]


def test_provision_failure_is_raised_after_all_nodes(make_context, monkeypatch):
    ctx = make_context(vm_index=1, vm_numbers=2, boot_type="iso")

    def install(script, host, mac):
        if host == "node-001":
            raise RuntimeError("virt-install failed")

    monkeypatch.setattr(bootstrap, "install_vm", install)
    with pytest.raises(ProvisioningError):
        bootstrap.provision_nodes(ctx)


class FakeClient:

    def __init__(self, host):
        self.host = host
        self.commands = []

    def run(self, command):
        self.commands.append(command)
        if command.startswith("echo"):
            return "SSH_OK\n"
        return "NAME=SL-Micro\n"


def test_join_starts_and_checks_each_node(make_context, monkeypatch):
    ctx = make_context(vm_index=1, vm_numbers=2, emulate_tpm=True)
    ctx.network.add_node("node-001", 1)
    ctx.network.add_node("node-002", 2)
    started = []
    clients = {}

    def fake_client(hostname):
        return clients.setdefault(hostname, FakeClient(ctx.network.lookup(hostname).ip))

    monkeypatch.setattr(bootstrap, "start_vm", started.append)
    monkeypatch.setattr(type(ctx), "node_client", lambda self, hostname: fake_client(hostname))

    bootstrap.join_nodes(ctx)

    assert sorted(started) == ["node-001", "node-002"]
    for client in clients.values():
        assert client.commands == ["echo SSH_OK", "[[ ! -e /dev/tpm0 ]]", "cat /etc/os-release"]


class NoTpmClient(FakeClient):

    def run(self, command):
        if command.startswith("[["):
            self.commands.append(command)
            raise RemoteCommandError(f"'{command}' exited with 1")
        return super().run(command)


def test_join_stops_retrying_node_checks_once_cancelled(make_context, monkeypatch):
    ctx = make_context(vm_index=1)
    ctx = dataclasses.replace(
        ctx, timing=ctx.timing.model_copy(update={"command_interval": 1.0, "command_deadline": 60.0}),
    )
    ctx.network.add_node("node-001", 1)
    client = NoTpmClient(ctx.network.lookup("node-001").ip)
    monkeypatch.setattr(bootstrap, "start_vm", lambda host: None)
    monkeypatch.setattr(type(ctx), "node_client", lambda self, hostname: client)

    timer = threading.Timer(0.05, ctx.cancel.set)
    timer.start()
    start = time.monotonic()
    try:
        with pytest.raises(ProvisioningError):
            bootstrap.join_nodes(ctx)
    finally:
        timer.cancel()
    assert time.monotonic() - start < 0.5
    assert client.commands.count("[[ -c /dev/tpm0 ]]") <= 2


def test_join_fails_for_unregistered_node(make_context, monkeypatch):
    ctx = make_context(vm_index=5)
    monkeypatch.setattr(bootstrap, "start_vm", lambda host: None)
    with pytest.raises(ProvisioningError):
        bootstrap.join_nodes(ctx)


def test_verify_phases_use_the_readiness_matrix(make_context, fake_accessor):
    ctx = make_context(vm_index=1, vm_numbers=2)
    for host in ("node-001", "node-002"):
        fake_accessor.set_ready("default", ResourceKind.ELEMENTAL_HOST, host)
    fake_accessor.names[("default", "elementalmachine")] = ["c1-md-0", "c1-cp-0"]
    for machine in ("c1-md-0", "c1-cp-0"):
        fake_accessor.set_ready("default", ResourceKind.ELEMENTAL_MACHINE, machine)
    fake_accessor.set_ready("default", ResourceKind.CLUSTER, "c1")

    bootstrap.verify_hosts(ctx)
    bootstrap.verify_machines(ctx)
    bootstrap.verify_cluster(ctx)

    assert {name for _, name, _ in fake_accessor.reads} == {"node-001", "node-002", "c1-md-0", "c1-cp-0", "c1"}


def test_verify_cluster_not_ready(make_context, fake_accessor):
    ctx = make_context()
    fake_accessor.set_condition("default", ResourceKind.CLUSTER, "c1", "controlPlaneReady", "true")
    fake_accessor.set_condition("default", ResourceKind.CLUSTER, "c1", "infrastructureReady", "false")
    with pytest.raises(ResourceNotReadyError) as exc_info:
        bootstrap.verify_cluster(ctx)
    assert exc_info.value.condition_type == "infrastructureReady"


def test_bootstrap_phases_selection():
    assert [p.name for p in bootstrap.bootstrap_phases(provision=False, join=False)] == [
        "Checking elemental hosts status",
        "Checking elemental machines status",
        "Checking cluster state",
    ]
    assert len(bootstrap.bootstrap_phases()) == 5
