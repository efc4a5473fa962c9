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

"""Constants, dependency loading, and dep_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def load_dependencies() -> dict:
    """Load tool versions and download URLs from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    deps_file = Path(__file__).resolve().parent / "dependencies.yaml"
    with open(deps_file) as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Poll intervals and base deadlines (seconds) --
SSH_POLL_INTERVAL_SECONDS = 5
SSH_POLL_DEADLINE_SECONDS = 10 * 60
CLUSTER_POLL_INTERVAL_SECONDS = 10
CLUSTER_POLL_DEADLINE_SECONDS = 2 * 60
RESOURCE_POLL_INTERVAL_SECONDS = 20
RESOURCE_POLL_DEADLINE_SECONDS = 2 * 60
REGISTRATION_POLL_INTERVAL_SECONDS = 5
REGISTRATION_POLL_DEADLINE_SECONDS = 3 * 60
COMMAND_RETRY_INTERVAL_SECONDS = 20
COMMAND_RETRY_DEADLINE_SECONDS = 2 * 60
DOWNLOAD_RETRY_INTERVAL_SECONDS = 10
DOWNLOAD_RETRY_DEADLINE_SECONDS = 2 * 60
PODS_POLL_INTERVAL_SECONDS = 30
PODS_POLL_DEADLINE_SECONDS = 4 * 60

# Consecutive mismatches between two diagnostic lines of the poller
MISMATCH_REPORT_EVERY = 10

# -- Node provisioning --
DEFAULT_MAX_CONCURRENT_NODES = 30
DEFAULT_BOOT_STAGGER_SECONDS = 0.0
VM_NAME_ROOT = "node"
NODE_USER = "root"
NODE_PASSWORD = "r0s@pwd1"
SSH_PORT = 22
SSH_OK_MARKER = "SSH_OK"
TPM_DEVICE = "/dev/tpm0"

# -- libvirt network --
LIBVIRT_NETWORK = "default"
NET_MAC_PREFIX = "52:54:00:00"
NET_IP_PREFIX = "192.168.122"
NET_FIRST_NODE_HOST = 101
NET_LAST_HOST = 254
NETWORK_RECREATE_WAIT_SECONDS = 30

# -- Management host --
MGMT_HOST_NAME = "management-host"
MGMT_HOST_IP = "192.168.122.100"
MGMT_HOST_MAC = "52:54:00:00:00:10"
MGMT_HOST_USER = "root"
MGMT_HOST_PASSWORD = "root"
MGMT_HOST_MEMORY_MB = "16384"
MGMT_HOST_VCPUS = "4"
MGMT_HOST_IMAGE = "rancher-image.qcow2"
MGMT_HOST_OS_VARIANT = "opensuse-unknown"
K3S_KUBECONFIG = "/etc/rancher/k3s/k3s.yaml"
K3S_BIN = "/usr/local/bin/k3s"
LOCALHOST_IP = "127.0.0.1"

# -- Kubernetes resource kinds (kubectl names) --
KIND_CLUSTER = "cluster"
KIND_ELEMENTAL_HOST = "elementalhost"
KIND_ELEMENTAL_MACHINE = "elementalmachine"
KIND_MACHINE_REGISTRATION = "MachineRegistration"
KIND_ELEMENTAL_REGISTRATION = "ElementalRegistration"

# -- Namespaces --
NS_DEFAULT = "default"
NS_ELEMENTAL_SYSTEM = "elemental-system"

# -- CAPI --
OPERATOR_TYPE_CAPI = "capi"
REGISTRATION_NAME_PREFIX = "machine-registration-master-"
PROVIDER_ARCHIVE = "cluster-api-provider-elemental"
CAPI_CONTROL_PLANE_MACHINES = 1
CAPI_WORKER_MACHINES = 2
CLUSTERCTL_BIN = "/usr/local/bin/clusterctl"
CLUSTER_MANIFEST = "rke2-cluster-manifest.yaml"

K3S_POD_CHECKLIST = [
    ("kube-system", "app=local-path-provisioner"),
    ("kube-system", "k8s-app=kube-dns"),
    ("kube-system", "app.kubernetes.io/name=traefik"),
    ("kube-system", "svccontroller.k3s.cattle.io/svcname=traefik"),
]

CAPI_POD_CHECKLIST = [
    ("cert-manager", "app.kubernetes.io/component=controller"),
    ("cert-manager", "app.kubernetes.io/component=webhook"),
    ("cert-manager", "app.kubernetes.io/component=cainjector"),
    ("capi-system", "control-plane=controller-manager"),
    ("rke2-bootstrap-system", "cluster.x-k8s.io/provider=bootstrap-rke2"),
    ("rke2-control-plane-system", "cluster.x-k8s.io/provider=control-plane-rke2"),
    ("elemental-system", "control-plane=controller-manager"),
]

# -- Relative paths (from the repository root) --
REL_CAPI_REGISTRATION_YAML = "tests/assets/capi_elementalRegistration.yaml"
REL_CLUSTERCTL_YAML = "tests/assets/clusterctl.yaml"
REL_ELEMENTAL_API_YAML = "tests/assets/elemental_capi_api.yaml"
REL_NET_DEFAULT_XML = "tests/assets/net-default-capi.xml"
REL_INSTALL_VM_SCRIPT = "tests/scripts/install-vm"
REL_INSTALL_CONFIG_YAML = "install-config.yaml"
REL_PROVIDER_DIR = "cluster-api-provider-elemental"
REL_PROVIDER_AGENT_CONFIG = "iso/config/my-config.yaml"
REL_PRINT_AGENT_CONFIG = "test/scripts/print_agent_config.sh"
REL_LOGS_DIR = "logs"

# -- Registration template placeholders --
TEMPLATE_CLUSTER_NAME = "%CLUSTER_NAME%"
TEMPLATE_PASSWORD = "%PASSWORD%"
TEMPLATE_API_ENDPOINT = "%ELEMENTAL_API_ENDPOINT%"
TEMPLATE_USER = "%USER%"
TEMPLATE_VM_NAME = "%VM_NAME%"

# -- Logs --
CRUST_GATHER_INSTALLER = "crust-gather-installer"
