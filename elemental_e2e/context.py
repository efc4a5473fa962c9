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

"""Run context shared by every phase of a test run."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path

from elemental_e2e.conditions import StatusAccessor
from elemental_e2e.config import SuiteConfig, TimingConfig
from elemental_e2e.constants import (
    NODE_PASSWORD,
    NODE_USER,
    REL_CAPI_REGISTRATION_YAML,
    REL_CLUSTERCTL_YAML,
    REL_ELEMENTAL_API_YAML,
    REL_INSTALL_CONFIG_YAML,
    REL_INSTALL_VM_SCRIPT,
    REL_LOGS_DIR,
    REL_NET_DEFAULT_XML,
    REL_PROVIDER_DIR,
)
from elemental_e2e.kube import KubectlStatusAccessor
from elemental_e2e.network import NetworkConfig
from elemental_e2e.polling import PollBudget
from elemental_e2e.remote import NodeClient


@dataclass(frozen=True)
class RunContext:
    """Everything a workflow needs, built once per run and passed explicitly.

    Attributes:
        suite: Test run description.
        timing: Poll budgets and pacing.
        accessor: Resource status accessor.
        network: libvirt network file holding node reservations.
        cancel: Run-wide cancellation event.
    """

    suite: SuiteConfig
    timing: TimingConfig
    accessor: StatusAccessor
    network: NetworkConfig
    cancel: threading.Event = field(default_factory=threading.Event)

    @classmethod
    def from_settings(
        cls,
        suite: SuiteConfig | None = None,
        timing: TimingConfig | None = None,
        accessor: StatusAccessor | None = None,
    ) -> RunContext:
        """Build a context from environment settings, with optional replacements."""
        suite = suite or SuiteConfig()
        return cls(
            suite=suite,
            timing=timing or TimingConfig(),
            accessor=accessor or KubectlStatusAccessor(),
            network=NetworkConfig(suite.repo_dir / REL_NET_DEFAULT_XML),
        )

    # -- Paths --

    @property
    def repo_dir(self) -> Path:
        return self.suite.repo_dir

    @property
    def install_vm_script(self) -> Path:
        return self.repo_dir / REL_INSTALL_VM_SCRIPT

    @property
    def install_config(self) -> Path:
        return self.repo_dir / REL_INSTALL_CONFIG_YAML

    @property
    def registration_template(self) -> Path:
        return self.repo_dir / REL_CAPI_REGISTRATION_YAML

    @property
    def clusterctl_config(self) -> Path:
        return self.repo_dir / REL_CLUSTERCTL_YAML

    @property
    def elemental_api_manifest(self) -> Path:
        return self.repo_dir / REL_ELEMENTAL_API_YAML

    @property
    def provider_dir(self) -> Path:
        return self.repo_dir / REL_PROVIDER_DIR

    @property
    def logs_dir(self) -> Path:
        return self.repo_dir / REL_LOGS_DIR

    # -- Budgets --

    @property
    def ssh_budget(self) -> PollBudget:
        return PollBudget(self.timing.ssh_interval, self.timing.ssh_deadline)

    @property
    def command_budget(self) -> PollBudget:
        return PollBudget(self.timing.command_interval, self.timing.command_deadline)

    @property
    def registration_budget(self) -> PollBudget:
        return PollBudget(self.timing.registration_interval, self.timing.registration_deadline)

    def node_client(self, hostname: str) -> NodeClient:
        """Build SSH access to a node from its network reservation.

        Raises:
            LookupError: If the node is not registered in the network file.
        """
        host = self.network.lookup(hostname)
        return NodeClient(host=host.ip, username=NODE_USER, password=NODE_PASSWORD)
