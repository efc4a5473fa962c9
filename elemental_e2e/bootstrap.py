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

"""Node bootstrap workflow: provision, join and verify Elemental nodes."""

from __future__ import annotations

from collections.abc import Callable

from elemental_e2e import console, logger
from elemental_e2e.conditions import ResourceKind, ResourceRef
from elemental_e2e.constants import (
    DOWNLOAD_RETRY_DEADLINE_SECONDS,
    DOWNLOAD_RETRY_INTERVAL_SECONDS,
    KIND_MACHINE_REGISTRATION,
    REGISTRATION_NAME_PREFIX,
    TPM_DEVICE,
    VM_NAME_ROOT,
)
from elemental_e2e.context import RunContext
from elemental_e2e.hypervisor import download_file, install_vm, start_vm
from elemental_e2e.kube import kubectl_output
from elemental_e2e.network import hostname_for
from elemental_e2e.phases import Phase
from elemental_e2e.polling import budget
from elemental_e2e.readiness import wait_resource_ready, wait_resources_ready
from elemental_e2e.remote import check_ssh, run_with_retry
from elemental_e2e.scheduler import NodeIdentity, provision_all


def node_hostnames(ctx: RunContext) -> list[str]:
    """Hostnames of every node handled by this run."""
    return [hostname_for(VM_NAME_ROOT, i) for i in range(ctx.suite.vm_index, ctx.suite.last_index + 1)]


def tpm_check_command(emulate_tpm: bool) -> str:
    """Shell test asserting the node TPM setup.

    Without emulation the node must expose the TPM as a character device;
    with an emulated TPM the device must not exist.
    """
    test = "! -e" if emulate_tpm else "-c"
    return f"[[ {test} {TPM_DEVICE} ]]"


# ============================================================================
# Provision
# ============================================================================

def download_registration(ctx: RunContext) -> None:
    """Fetch the install configuration served by the MachineRegistration."""
    name = REGISTRATION_NAME_PREFIX + ctx.suite.cluster_name
    url = kubectl_output([
        "get", KIND_MACHINE_REGISTRATION, "--namespace", ctx.suite.cluster_ns, name,
        "-o", "jsonpath={.status.registrationURL}",
    ]).strip()
    if not url:
        raise RuntimeError(f"{KIND_MACHINE_REGISTRATION} {name} has no registrationURL yet")
    download_file(url, ctx.install_config, DOWNLOAD_RETRY_INTERVAL_SECONDS, DOWNLOAD_RETRY_DEADLINE_SECONDS,
                  ctx.cancel)
    console.print(f"[green]\u2705 Registration config saved to {ctx.install_config}[/green]")


def _install_identity(ctx: RunContext) -> Callable[[int], NodeIdentity]:
    def _derive(index: int) -> NodeIdentity:
        hostname = hostname_for(VM_NAME_ROOT, index)
        reservation = ctx.network.add_node(hostname, index)
        return NodeIdentity(index=index, hostname=hostname, mac=reservation.mac)

    return _derive


def _install_node(ctx: RunContext) -> Callable[[NodeIdentity], None]:
    def _work(node: NodeIdentity) -> None:
        console.print(f"[yellow]\u2139\ufe0f  Installing node {node.hostname} ({node.mac})[/yellow]")
        install_vm(ctx.install_vm_script, node.hostname, node.mac)
        console.print(f"[green]\u2705 Node {node.hostname} installed[/green]")

    return _work


def provision_nodes(ctx: RunContext) -> None:
    """Install every node VM, a bounded number at a time.

    Raises:
        ProvisioningError: If at least one node install failed.
    """
    if not ctx.suite.iso_boot:
        download_registration(ctx)
    provision_all(
        ctx.suite.vm_index,
        ctx.suite.last_index,
        _install_identity(ctx),
        _install_node(ctx),
        phase="Provision nodes",
        max_concurrent=ctx.timing.max_concurrent_nodes,
        stagger=ctx.timing.boot_stagger_seconds,
        cancel=ctx.cancel,
    )


# ============================================================================
# Join
# ============================================================================

def _join_identity(ctx: RunContext) -> Callable[[int], NodeIdentity]:
    def _derive(index: int) -> NodeIdentity:
        hostname = hostname_for(VM_NAME_ROOT, index)
        reservation = ctx.network.lookup(hostname)
        return NodeIdentity(index=index, hostname=hostname, mac=reservation.mac,
                            client=ctx.node_client(hostname))

    return _derive


def _join_node(ctx: RunContext) -> Callable[[NodeIdentity], None]:
    def _work(node: NodeIdentity) -> None:
        if node.client is None:
            raise RuntimeError(f"No SSH access defined for {node.hostname}")
        start_vm(node.hostname)
        console.print(f"[yellow]\u2139\ufe0f  {node.hostname} restarted, waiting for SSH...[/yellow]")
        check_ssh(node.client, ctx.ssh_budget, ctx.cancel)
        run_with_retry(node.client, tpm_check_command(ctx.suite.emulate_tpm), ctx.command_budget, ctx.cancel)
        os_release = run_with_retry(node.client, "cat /etc/os-release", ctx.command_budget, ctx.cancel)
        console.print(f"OS version on {node.hostname}:\n{os_release}", markup=False)
        console.print(f"[green]\u2705 Node {node.hostname} joined[/green]")

    return _work


def join_nodes(ctx: RunContext) -> None:
    """Restart installed nodes so that they join the cluster.

    Raises:
        ProvisioningError: If at least one node failed its checks.
    """
    provision_all(
        ctx.suite.vm_index,
        ctx.suite.last_index,
        _join_identity(ctx),
        _join_node(ctx),
        phase="Join nodes",
        max_concurrent=ctx.timing.max_concurrent_nodes,
        stagger=ctx.timing.boot_stagger_seconds,
        cancel=ctx.cancel,
    )


# ============================================================================
# Verify
# ============================================================================

def verify_hosts(ctx: RunContext) -> None:
    """Wait for the ElementalHost of every node to be ready."""
    wait_resources_ready(
        ctx.accessor, ctx.suite.cluster_ns, ResourceKind.ELEMENTAL_HOST, node_hostnames(ctx),
        ctx.timing.resource_interval, ctx.timing.resource_deadline, ctx.suite.used_nodes, ctx.cancel,
    )


def verify_machines(ctx: RunContext) -> None:
    """Wait for every ElementalMachine of the cluster namespace to be ready."""
    names = ctx.accessor.list_names(ctx.suite.cluster_ns, ResourceKind.ELEMENTAL_MACHINE.value)
    if not names:
        logger.warning("No %s found in %s", ResourceKind.ELEMENTAL_MACHINE.value, ctx.suite.cluster_ns)
    wait_resources_ready(
        ctx.accessor, ctx.suite.cluster_ns, ResourceKind.ELEMENTAL_MACHINE, names,
        ctx.timing.resource_interval, ctx.timing.resource_deadline, ctx.suite.used_nodes, ctx.cancel,
    )


def verify_cluster(ctx: RunContext) -> None:
    """Wait for the CAPI Cluster to report control plane and infrastructure ready."""
    wait_resource_ready(
        ctx.accessor,
        ResourceRef(ctx.suite.cluster_ns, ctx.suite.cluster_name, ResourceKind.CLUSTER),
        budget(ctx.timing.cluster_interval, ctx.timing.cluster_deadline, ctx.suite.used_nodes),
        ctx.cancel,
    )


def bootstrap_phases(provision: bool = True, join: bool = True, verify: bool = True) -> list[Phase]:
    """Build the ordered bootstrap phases.

    Args:
        provision: Whether to install the node VMs.
        join: Whether to restart nodes and check them over SSH.
        verify: Whether to wait for hosts, machines and the cluster.
    """
    phases: list[Phase] = []
    if provision:
        phases.append(Phase("Provisioning nodes", provision_nodes))
    if join:
        phases.append(Phase("Adding nodes to the cluster", join_nodes))
    if verify:
        phases += [
            Phase("Checking elemental hosts status", verify_hosts),
            Phase("Checking elemental machines status", verify_machines),
            Phase("Checking cluster state", verify_cluster),
        ]
    return phases
