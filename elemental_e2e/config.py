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

"""Configuration classes and config models."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from elemental_e2e import console
from elemental_e2e.constants import (
    CLUSTER_POLL_DEADLINE_SECONDS,
    CLUSTER_POLL_INTERVAL_SECONDS,
    COMMAND_RETRY_DEADLINE_SECONDS,
    COMMAND_RETRY_INTERVAL_SECONDS,
    DEFAULT_BOOT_STAGGER_SECONDS,
    DEFAULT_MAX_CONCURRENT_NODES,
    NS_DEFAULT,
    OPERATOR_TYPE_CAPI,
    REGISTRATION_POLL_DEADLINE_SECONDS,
    REGISTRATION_POLL_INTERVAL_SECONDS,
    RESOURCE_POLL_DEADLINE_SECONDS,
    RESOURCE_POLL_INTERVAL_SECONDS,
    SSH_POLL_DEADLINE_SECONDS,
    SSH_POLL_INTERVAL_SECONDS,
)


# ============================================================================
# Configuration classes
# ============================================================================

class SuiteConfig(BaseSettings):
    """Test run description, auto-loaded from the CI environment variables.

    Attributes:
        cluster_name: Name of the CAPI cluster under test.
        cluster_ns: Namespace of the CAPI cluster and its Elemental resources.
        cluster_type: Cluster flavour requested by the CI job.
        vm_index: Index of the first node to handle.
        vm_numbers: Index of the last node to handle, or None for a single node.
        emulate_tpm: Whether nodes run with an emulated TPM.
        boot_type: Node boot type (``iso`` skips the iPXE registration download).
        k8s_upstream_version: K3s version for the management host.
        k8s_downstream_version: Kubernetes version of the provisioned cluster.
        elemental_api_endpoint: Elemental API endpoint, possibly quoted.
        operator_repo: Elemental operator repository.
        operator_type: ``capi`` or vanilla operator.
        test_type: Test flavour selector.
        repo_dir: Root of the repository holding assets, scripts and provider sources.
    """

    model_config = SettingsConfigDict(extra="ignore", env_ignore_empty=True)

    cluster_name: str = ""
    cluster_ns: str = NS_DEFAULT
    cluster_type: str = ""
    vm_index: int = Field(default=0, ge=0)
    vm_numbers: int | None = Field(default=None, ge=0)
    emulate_tpm: bool = False
    boot_type: str = ""
    k8s_upstream_version: str = ""
    k8s_downstream_version: str = ""
    elemental_api_endpoint: str = ""
    operator_repo: str = ""
    operator_type: str = OPERATOR_TYPE_CAPI
    test_type: str = ""
    repo_dir: Path = Field(default_factory=Path.cwd)

    @field_validator("emulate_tpm", mode="before")
    @classmethod
    def _parse_emulate_tpm(cls, value: object) -> bool:
        # Only the literal "true" enables the emulated TPM, anything else disables it
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() == "true"

    @model_validator(mode="after")
    def _check_node_range(self) -> SuiteConfig:
        if self.vm_numbers is not None and self.vm_numbers < self.vm_index:
            raise ValueError(
                f"VM_NUMBERS ({self.vm_numbers}) must not be lower than VM_INDEX ({self.vm_index})"
            )
        return self

    @property
    def last_index(self) -> int:
        """Index of the last node, defaulting to ``vm_index`` for a single node."""
        return self.vm_index if self.vm_numbers is None else self.vm_numbers

    @property
    def used_nodes(self) -> int:
        """Number of nodes added (or used) by this run, always >= 1."""
        return self.last_index - self.vm_index + 1

    @property
    def iso_boot(self) -> bool:
        return self.boot_type == "iso"


class TimingConfig(BaseSettings):
    """Poll budgets and node pacing, auto-loaded from E2E_* env vars.

    Deadlines are base values: readiness checks multiply them by the
    number of nodes under test.

    Attributes:
        ssh_interval: Seconds between SSH reachability probes.
        ssh_deadline: Seconds before SSH reachability gives up.
        cluster_interval: Seconds between Cluster status reads.
        cluster_deadline: Base seconds per node for Cluster readiness.
        resource_interval: Seconds between Elemental condition reads.
        resource_deadline: Base seconds per node for Elemental conditions.
        registration_interval: Seconds between registration lookups.
        registration_deadline: Seconds before the registration lookup gives up.
        command_interval: Seconds between retries of one-shot commands.
        command_deadline: Seconds before one-shot command retries give up.
        max_concurrent_nodes: Maximum nodes booting at the same time.
        boot_stagger_seconds: Fixed delay between two node launches.
    """

    model_config = SettingsConfigDict(env_prefix="E2E_", extra="ignore")

    ssh_interval: float = Field(default=SSH_POLL_INTERVAL_SECONDS, gt=0)
    ssh_deadline: float = Field(default=SSH_POLL_DEADLINE_SECONDS, gt=0)
    cluster_interval: float = Field(default=CLUSTER_POLL_INTERVAL_SECONDS, gt=0)
    cluster_deadline: float = Field(default=CLUSTER_POLL_DEADLINE_SECONDS, gt=0)
    resource_interval: float = Field(default=RESOURCE_POLL_INTERVAL_SECONDS, gt=0)
    resource_deadline: float = Field(default=RESOURCE_POLL_DEADLINE_SECONDS, gt=0)
    registration_interval: float = Field(default=REGISTRATION_POLL_INTERVAL_SECONDS, gt=0)
    registration_deadline: float = Field(default=REGISTRATION_POLL_DEADLINE_SECONDS, gt=0)
    command_interval: float = Field(default=COMMAND_RETRY_INTERVAL_SECONDS, gt=0)
    command_deadline: float = Field(default=COMMAND_RETRY_DEADLINE_SECONDS, gt=0)
    max_concurrent_nodes: int = Field(default=DEFAULT_MAX_CONCURRENT_NODES, ge=1)
    boot_stagger_seconds: float = Field(default=DEFAULT_BOOT_STAGGER_SECONDS, ge=0)


# ============================================================================
# Display
# ============================================================================

def display_config(env_cfg: SuiteConfig, timing_cfg: TimingConfig) -> None:
    """Print the resolved run configuration.

    Args:
        env_cfg: Test run description.
        timing_cfg: Poll budgets and pacing.
    """
    console.print(Panel.fit("Configuration", style="bold blue"))
    console.print("[yellow]Cluster:[/yellow]")
    console.print(f"  cluster_name    : {env_cfg.cluster_name}")
    console.print(f"  cluster_ns      : {env_cfg.cluster_ns}")
    console.print(f"  cluster_type    : {env_cfg.cluster_type or '(unset)'}")
    console.print(f"  operator_type   : {env_cfg.operator_type}")
    console.print(f"  operator_repo   : {env_cfg.operator_repo or '(unset)'}")
    console.print(f"  test_type       : {env_cfg.test_type or '(unset)'}")
    console.print("[yellow]Nodes:[/yellow]")
    console.print(f"  indices         : {env_cfg.vm_index}..{env_cfg.last_index}")
    console.print(f"  used_nodes      : {env_cfg.used_nodes}")
    console.print(f"  emulate_tpm     : {env_cfg.emulate_tpm}")
    console.print(f"  iso_boot        : {env_cfg.iso_boot}")
    console.print("[yellow]Pacing:[/yellow]")
    console.print(f"  max_concurrent  : {timing_cfg.max_concurrent_nodes}")
    console.print(f"  boot_stagger    : {timing_cfg.boot_stagger_seconds}s")
