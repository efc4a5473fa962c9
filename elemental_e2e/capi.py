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

"""CAPI installation: clusterctl, Elemental provider, cluster and registration."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path

import docker
from tenacity import retry, wait_fixed

from elemental_e2e import console, logger
from elemental_e2e.constants import (
    CAPI_CONTROL_PLANE_MACHINES,
    CAPI_POD_CHECKLIST,
    CAPI_WORKER_MACHINES,
    CLUSTER_MANIFEST,
    CLUSTERCTL_BIN,
    DOWNLOAD_RETRY_DEADLINE_SECONDS,
    DOWNLOAD_RETRY_INTERVAL_SECONDS,
    K3S_BIN,
    NODE_PASSWORD,
    NODE_USER,
    NS_ELEMENTAL_SYSTEM,
    PROVIDER_ARCHIVE,
    REGISTRATION_NAME_PREFIX,
    REL_PRINT_AGENT_CONFIG,
    REL_PROVIDER_AGENT_CONFIG,
    TEMPLATE_API_ENDPOINT,
    TEMPLATE_CLUSTER_NAME,
    TEMPLATE_PASSWORD,
    TEMPLATE_USER,
    TEMPLATE_VM_NAME,
    VM_NAME_ROOT,
    dep_value,
)
from elemental_e2e.context import RunContext
from elemental_e2e.hypervisor import run
from elemental_e2e.kube import apply_manifest
from elemental_e2e.mgmt_host import install_binary, mgmt_host_client, wait_pods_running
from elemental_e2e.phases import Phase
from elemental_e2e.polling import retry_sleep, retry_stop
from elemental_e2e.readiness import check_created_registration


def registration_name(cluster_name: str) -> str:
    return REGISTRATION_NAME_PREFIX + cluster_name


def render_registration(template: str, cluster_name: str, api_endpoint: str) -> str:
    """Fill the ElementalRegistration template placeholders.

    Args:
        template: Template text.
        cluster_name: Name of the CAPI cluster.
        api_endpoint: Elemental API endpoint; surrounding quotes are removed.

    Returns:
        The rendered manifest.
    """
    values = {
        TEMPLATE_CLUSTER_NAME: cluster_name,
        TEMPLATE_PASSWORD: NODE_PASSWORD,
        TEMPLATE_API_ENDPOINT: api_endpoint.strip('"'),
        TEMPLATE_USER: NODE_USER,
        TEMPLATE_VM_NAME: VM_NAME_ROOT,
    }
    for key, value in values.items():
        template = template.replace(key, value)
    return template


def export_image(image_name: str, archive: Path) -> None:
    """Save a local Docker image to a tar archive.

    Raises:
        RuntimeError: If the image is missing or Docker cannot be reached.
    """
    try:
        client = docker.from_env()
    except docker.errors.DockerException as err:
        raise RuntimeError(f"Failed to connect to Docker: {err}") from err
    try:
        image = client.images.get(image_name)
        with open(archive, "wb") as f:
            for chunk in image.save(named=True):
                f.write(chunk)
    except docker.errors.ImageNotFound as err:
        raise RuntimeError(f"Image {image_name} not found") from err
    except docker.errors.APIError as err:
        raise RuntimeError(f"Docker API error while saving {image_name}: {err}") from err
    finally:
        client.close()


# ============================================================================
# Phases
# ============================================================================

def install_clusterctl(ctx: RunContext) -> None:
    """Install clusterctl and its provider configuration."""
    url = dep_value("clusterctl", "url", default="").format(version=dep_value("clusterctl", "version"))
    install_binary(url, "clusterctl", DOWNLOAD_RETRY_INTERVAL_SECONDS, DOWNLOAD_RETRY_DEADLINE_SECONDS, ctx.cancel)
    config_dir = Path.home() / ".cluster-api"
    config_dir.mkdir(parents=True, exist_ok=True)
    shutil.copy(ctx.clusterctl_config, config_dir)
    console.print(f"[green]  \u2713 {ctx.clusterctl_config.name} copied to {config_dir}[/green]")


def build_provider(ctx: RunContext) -> None:
    """Build the Elemental CAPI provider image and import it in K3s."""
    image_name = dep_value("capi_providers", "image")
    console.print("[yellow]\u2139\ufe0f  Building the Elemental CAPI provider image...[/yellow]")
    run(["make", "docker-build"], cwd=ctx.provider_dir)

    client = mgmt_host_client()
    remote_archive = f"/tmp/{PROVIDER_ARCHIVE}"
    with tempfile.TemporaryDirectory() as tmp:
        archive = Path(tmp) / PROVIDER_ARCHIVE
        export_image(image_name, archive)
        client.send_file(archive, remote_archive)
    client.run(f"{K3S_BIN} ctr images import {remote_archive}")
    console.print(f"[green]\u2705 {image_name} imported on {client.host}[/green]")


def init_providers(ctx: RunContext) -> None:
    """Install CAPI core, RKE2 bootstrap/control plane and Elemental providers."""
    out = run([
        CLUSTERCTL_BIN, "--v", "4", "init",
        "--bootstrap", dep_value("capi_providers", "bootstrap"),
        "--control-plane", dep_value("capi_providers", "control_plane"),
        "--infrastructure", dep_value("capi_providers", "infrastructure"),
    ])
    logger.info("clusterctl init output:\n%s", out)
    wait_pods_running(CAPI_POD_CHECKLIST, ctx)


def expose_api(ctx: RunContext) -> None:
    apply_manifest(ctx.elemental_api_manifest, NS_ELEMENTAL_SYSTEM)
    console.print("[green]\u2705 Elemental API service exposed[/green]")


def create_cluster(ctx: RunContext) -> None:
    """Generate the RKE2 flavoured cluster manifest and apply it."""
    manifest = run([
        CLUSTERCTL_BIN, "generate", "cluster",
        f"--control-plane-machine-count={CAPI_CONTROL_PLANE_MACHINES}",
        f"--worker-machine-count={CAPI_WORKER_MACHINES}",
        "--infrastructure", dep_value("capi_providers", "infrastructure"),
        "--flavor", "rke2",
        ctx.suite.cluster_name,
        f"--kubernetes-version={ctx.suite.k8s_downstream_version}",
    ])
    manifest_file = Path.home() / CLUSTER_MANIFEST
    manifest_file.write_text(manifest)
    apply_manifest(manifest_file)
    console.print(f"[green]\u2705 Cluster {ctx.suite.cluster_name} created[/green]")


def _write_agent_config(ctx: RunContext, name: str) -> None:
    @retry(
        stop=retry_stop(ctx.timing.command_deadline, ctx.cancel),
        wait=wait_fixed(ctx.timing.command_interval),
        sleep=retry_sleep(ctx.cancel),
        before_sleep=lambda rs: logger.info("Agent config not available yet: %s", rs.outcome.exception()),
        reraise=True,
    )
    def _attempt() -> str:
        out = run(["bash", REL_PRINT_AGENT_CONFIG, "-n", ctx.suite.cluster_ns, "-r", name], cwd=ctx.provider_dir)
        if not out.strip():
            raise RuntimeError(f"Empty agent config for {name}")
        return out

    config_file = ctx.provider_dir / REL_PROVIDER_AGENT_CONFIG
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(_attempt())
    console.print(f"[green]  \u2713 Agent config written to {config_file}[/green]")


def create_registration(ctx: RunContext) -> None:
    """Render and apply the registration, then generate the agent config."""
    name = registration_name(ctx.suite.cluster_name)
    rendered = render_registration(
        ctx.registration_template.read_text(), ctx.suite.cluster_name, ctx.suite.elemental_api_endpoint,
    )
    with tempfile.NamedTemporaryFile("w", prefix="machineRegistration", suffix=".yaml") as tmp:
        tmp.write(rendered)
        tmp.flush()
        apply_manifest(tmp.name, ctx.suite.cluster_ns)

    check_created_registration(
        ctx.accessor, ctx.suite.cluster_ns, name, ctx.suite.operator_type, ctx.registration_budget, ctx.cancel,
    )
    _write_agent_config(ctx, name)


def capi_phases(skip_build: bool = False) -> list[Phase]:
    """Build the CAPI installation phases.

    Args:
        skip_build: Use the provider image already present on the management host.
    """
    phases = [Phase("Installing and configuring clusterctl", install_clusterctl)]
    if not skip_build:
        phases.append(Phase("Compiling latest elemental CAPI provider", build_provider))
    phases += [
        Phase("Installing CAPI core, control plane and bootstrap providers", init_providers),
        Phase("Exposing Elemental API server", expose_api),
        Phase("Creating Elemental cluster", create_cluster),
        Phase("Creating Elemental Machine registration", create_registration),
    ]
    return phases
