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

"""Deploy subcommands (mgmt-host)."""

from __future__ import annotations

import typer

from elemental_e2e.config import SuiteConfig, TimingConfig, display_config
from elemental_e2e.context import RunContext
from elemental_e2e.kube import require_commands
from elemental_e2e.mgmt_host import mgmt_host_phases
from elemental_e2e.phases import run_workflow

app = typer.Typer(help="Deploy the management host.")


@app.command("mgmt-host")
def mgmt_host(
    k3s_version: str | None = typer.Option(
        None, "--k3s-version", help="K3s version to install (overrides K8S_UPSTREAM_VERSION)"),
    skip_vm: bool = typer.Option(False, "--skip-vm", help="Reuse the existing network and VM"),
    timeout: float | None = typer.Option(None, "--timeout", help="Overall run timeout in seconds"),
) -> None:
    """Create the management host VM and install K3s on it."""
    prereqs = ["curl"] if skip_vm else ["curl", "virsh", "virt-install"]
    require_commands(*prereqs)

    suite = SuiteConfig()
    if k3s_version is not None:
        suite = suite.model_copy(update={"k8s_upstream_version": k3s_version})
    timing = TimingConfig()
    display_config(suite, timing)
    run_workflow(mgmt_host_phases(skip_vm=skip_vm), RunContext.from_settings(suite=suite, timing=timing), timeout)
