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

"""Bootstrap subcommands (provision, join, verify, all)."""

from __future__ import annotations

import typer

from elemental_e2e.bootstrap import bootstrap_phases
from elemental_e2e.config import SuiteConfig, TimingConfig, display_config
from elemental_e2e.context import RunContext
from elemental_e2e.phases import run_workflow

app = typer.Typer(help="Provision Elemental nodes and check they join the cluster.")

VM_INDEX_OPTION = typer.Option(None, "--vm-index", help="First node index (overrides VM_INDEX)")
VM_NUMBERS_OPTION = typer.Option(None, "--vm-numbers", help="Last node index (overrides VM_NUMBERS)")
MAX_CONCURRENT_OPTION = typer.Option(
    None, "--max-concurrent", help="Maximum nodes booting at once (overrides E2E_MAX_CONCURRENT_NODES)")
STAGGER_OPTION = typer.Option(
    None, "--boot-stagger", help="Seconds between two node launches (overrides E2E_BOOT_STAGGER_SECONDS)")
TIMEOUT_OPTION = typer.Option(None, "--timeout", help="Overall run timeout in seconds")


def _build_context(
    vm_index: int | None,
    vm_numbers: int | None,
    max_concurrent: int | None,
    boot_stagger: float | None,
) -> RunContext:
    suite = SuiteConfig()
    overrides: dict = {}
    if vm_index is not None:
        overrides["vm_index"] = vm_index
    if vm_numbers is not None:
        overrides["vm_numbers"] = vm_numbers
    if overrides:
        suite = SuiteConfig.model_validate({**suite.model_dump(), **overrides})

    timing = TimingConfig()
    timing_overrides: dict = {}
    if max_concurrent is not None:
        timing_overrides["max_concurrent_nodes"] = max_concurrent
    if boot_stagger is not None:
        timing_overrides["boot_stagger_seconds"] = boot_stagger
    if timing_overrides:
        timing = timing.model_copy(update=timing_overrides)

    display_config(suite, timing)
    return RunContext.from_settings(suite=suite, timing=timing)


def _run(
    provision: bool,
    join: bool,
    verify: bool,
    vm_index: int | None,
    vm_numbers: int | None,
    max_concurrent: int | None,
    boot_stagger: float | None,
    timeout: float | None,
) -> None:
    ctx = _build_context(vm_index, vm_numbers, max_concurrent, boot_stagger)
    run_workflow(bootstrap_phases(provision=provision, join=join, verify=verify), ctx, timeout)


@app.command()
def provision(
    vm_index: int | None = VM_INDEX_OPTION,
    vm_numbers: int | None = VM_NUMBERS_OPTION,
    max_concurrent: int | None = MAX_CONCURRENT_OPTION,
    boot_stagger: float | None = STAGGER_OPTION,
    timeout: float | None = TIMEOUT_OPTION,
) -> None:
    """Install the node VMs."""
    _run(True, False, False, vm_index, vm_numbers, max_concurrent, boot_stagger, timeout)


@app.command()
def join(
    vm_index: int | None = VM_INDEX_OPTION,
    vm_numbers: int | None = VM_NUMBERS_OPTION,
    max_concurrent: int | None = MAX_CONCURRENT_OPTION,
    boot_stagger: float | None = STAGGER_OPTION,
    timeout: float | None = TIMEOUT_OPTION,
    skip_verify: bool = typer.Option(False, "--skip-verify", help="Do not wait for hosts, machines and cluster"),
) -> None:
    """Restart installed nodes, check them, and wait for the cluster to be ready."""
    _run(False, True, not skip_verify, vm_index, vm_numbers, max_concurrent, boot_stagger, timeout)


@app.command()
def verify(
    vm_index: int | None = VM_INDEX_OPTION,
    vm_numbers: int | None = VM_NUMBERS_OPTION,
    timeout: float | None = TIMEOUT_OPTION,
) -> None:
    """Only wait for ElementalHosts, ElementalMachines and the Cluster to be ready."""
    _run(False, False, True, vm_index, vm_numbers, None, None, timeout)


@app.command("all")
def all_phases(
    vm_index: int | None = VM_INDEX_OPTION,
    vm_numbers: int | None = VM_NUMBERS_OPTION,
    max_concurrent: int | None = MAX_CONCURRENT_OPTION,
    boot_stagger: float | None = STAGGER_OPTION,
    timeout: float | None = TIMEOUT_OPTION,
) -> None:
    """Provision, join and verify in one go."""
    _run(True, True, True, vm_index, vm_numbers, max_concurrent, boot_stagger, timeout)
