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

"""Install subcommands (capi)."""

from __future__ import annotations

import typer

from elemental_e2e.capi import capi_phases
from elemental_e2e.config import SuiteConfig, TimingConfig, display_config
from elemental_e2e.context import RunContext
from elemental_e2e.kube import require_commands
from elemental_e2e.phases import run_workflow

app = typer.Typer(help="Install CAPI components on the management cluster.")


@app.command()
def capi(
    cluster_name: str | None = typer.Option(None, "--cluster-name", help="CAPI cluster name (overrides CLUSTER_NAME)"),
    k8s_version: str | None = typer.Option(
        None, "--k8s-version", help="Downstream Kubernetes version (overrides K8S_DOWNSTREAM_VERSION)"),
    skip_build: bool = typer.Option(False, "--skip-build", help="Do not build and import the provider image"),
    timeout: float | None = typer.Option(None, "--timeout", help="Overall run timeout in seconds"),
) -> None:
    """Install clusterctl, the CAPI providers, the cluster and its registration."""
    prereqs = ["curl", "kubectl"] if skip_build else ["curl", "kubectl", "make"]
    require_commands(*prereqs)

    suite = SuiteConfig()
    overrides: dict = {}
    if cluster_name is not None:
        overrides["cluster_name"] = cluster_name
    if k8s_version is not None:
        overrides["k8s_downstream_version"] = k8s_version
    if overrides:
        suite = suite.model_copy(update=overrides)
    timing = TimingConfig()
    display_config(suite, timing)
    run_workflow(capi_phases(skip_build=skip_build), RunContext.from_settings(suite=suite, timing=timing), timeout)
