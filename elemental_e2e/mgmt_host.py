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

"""Management host deployment: libvirt network, VM, K3s and kubectl."""

from __future__ import annotations

import tempfile
import threading
from pathlib import Path

from elemental_e2e import console
from elemental_e2e.constants import (
    DOWNLOAD_RETRY_DEADLINE_SECONDS,
    DOWNLOAD_RETRY_INTERVAL_SECONDS,
    K3S_KUBECONFIG,
    K3S_POD_CHECKLIST,
    LOCALHOST_IP,
    MGMT_HOST_IP,
    MGMT_HOST_PASSWORD,
    MGMT_HOST_USER,
    PODS_POLL_DEADLINE_SECONDS,
    PODS_POLL_INTERVAL_SECONDS,
    REL_NET_DEFAULT_XML,
    dep_value,
)
from elemental_e2e.context import RunContext
from elemental_e2e.hypervisor import create_management_vm, download_file, recreate_network, run
from elemental_e2e.kube import pods_running
from elemental_e2e.phases import Phase
from elemental_e2e.polling import PollBudget, wait_until
from elemental_e2e.remote import NodeClient, check_ssh


def mgmt_host_client() -> NodeClient:
    """SSH access to the management host."""
    return NodeClient(host=MGMT_HOST_IP, username=MGMT_HOST_USER, password=MGMT_HOST_PASSWORD)


def local_kubeconfig() -> Path:
    return Path.home() / ".kube" / "config"


def wait_pods_running(checklist: list[tuple[str, str]], ctx: RunContext) -> None:
    """Wait until every pod of the checklist is running.

    Raises:
        ConvergenceTimeout: If some pods are still not running at the deadline.
    """
    wait_until(
        lambda: pods_running(checklist),
        True,
        PollBudget(PODS_POLL_INTERVAL_SECONDS, PODS_POLL_DEADLINE_SECONDS),
        description=f"pods of {len(checklist)} selectors",
        cancel=ctx.cancel,
    )
    console.print(f"[green]\u2705 All {len(checklist)} pod groups are running[/green]")


def install_binary(
    url: str, name: str, interval: float, deadline: float, cancel: threading.Event | None = None,
) -> None:
    """Download a binary and install it in /usr/local/bin."""
    with tempfile.TemporaryDirectory() as tmp:
        dest = Path(tmp) / name
        download_file(url, dest, interval, deadline, cancel)
        run(["sudo", "install", "-o", "root", "-g", "root", "-m", "0755", str(dest), f"/usr/local/bin/{name}"])
    console.print(f"[green]\u2705 {name} installed in /usr/local/bin[/green]")


# ============================================================================
# Phases
# ============================================================================

def setup_network(ctx: RunContext) -> None:
    recreate_network(ctx.repo_dir / REL_NET_DEFAULT_XML)


def create_vm(ctx: RunContext) -> None:
    create_management_vm(Path.home())


def install_k3s(ctx: RunContext) -> None:
    """Install K3s on the management host once it answers over SSH."""
    client = mgmt_host_client()
    check_ssh(client, ctx.ssh_budget, ctx.cancel)
    version = ctx.suite.k8s_upstream_version
    install_url = dep_value("k3s", "install_url")
    client.run(f"INSTALL_K3S_VERSION={version} bash -c 'curl -sfL {install_url} | sh -'")
    console.print(f"[green]\u2705 K3s {version or '(latest)'} installed on {client.host}[/green]")


def fetch_kubeconfig(ctx: RunContext) -> None:
    """Copy the K3s kubeconfig locally, pointing it to the management host."""
    kubeconfig = local_kubeconfig()
    kubeconfig.parent.mkdir(parents=True, exist_ok=True)
    mgmt_host_client().get_file(kubeconfig, K3S_KUBECONFIG, mode=0o600)
    kubeconfig.write_text(kubeconfig.read_text().replace(LOCALHOST_IP, MGMT_HOST_IP))
    console.print(f"[green]  \u2713 Kubeconfig written to {kubeconfig}[/green]")


def install_kubectl(ctx: RunContext) -> None:
    url = dep_value("kubectl", "url", default="").format(version=dep_value("kubectl", "version"))
    install_binary(url, "kubectl", DOWNLOAD_RETRY_INTERVAL_SECONDS, DOWNLOAD_RETRY_DEADLINE_SECONDS, ctx.cancel)


def wait_k3s_ready(ctx: RunContext) -> None:
    wait_pods_running(K3S_POD_CHECKLIST, ctx)


def mgmt_host_phases(skip_vm: bool = False) -> list[Phase]:
    """Build the management host deployment phases.

    Args:
        skip_vm: Reuse an existing management VM (network and VM creation skipped).
    """
    phases: list[Phase] = []
    if not skip_vm:
        phases += [
            Phase("Updating the default network configuration", setup_network),
            Phase("Creating the management host VM", create_vm),
        ]
    phases += [
        Phase("Installing K3s", install_k3s),
        Phase("Getting the kubeconfig file", fetch_kubeconfig),
        Phase("Installing kubectl", install_kubectl),
        Phase("Waiting for K3s to be started", wait_k3s_ready),
    ]
    return phases
