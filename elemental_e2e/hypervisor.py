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

"""Local process runner and libvirt VM lifecycle commands."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import sh
from tenacity import retry, wait_fixed

from elemental_e2e import console, logger
from elemental_e2e.constants import (
    LIBVIRT_NETWORK,
    MGMT_HOST_IMAGE,
    MGMT_HOST_MAC,
    MGMT_HOST_MEMORY_MB,
    MGMT_HOST_NAME,
    MGMT_HOST_OS_VARIANT,
    MGMT_HOST_VCPUS,
    NETWORK_RECREATE_WAIT_SECONDS,
)
from elemental_e2e.polling import retry_sleep, retry_stop


class LocalCommandError(RuntimeError):
    """Raised when a local command exits non-zero."""


def run(argv: list[str], cwd: Path | None = None) -> str:
    """Run a local command and return its output.

    Args:
        argv: Program and arguments.
        cwd: Working directory, or None for the current one.

    Raises:
        LocalCommandError: If the command is missing or exits non-zero.
    """
    kwargs = {"_cwd": str(cwd)} if cwd is not None else {}
    try:
        return str(sh.Command(argv[0])(*argv[1:], **kwargs))
    except sh.ErrorReturnCode as err:
        stderr = err.stderr.decode(errors="replace").strip()
        raise LocalCommandError(f"{' '.join(argv)} exited with {err.exit_code}: {stderr[:200]}") from err
    except sh.CommandNotFound as err:
        raise LocalCommandError(f"Command not found: {argv[0]}") from err


def install_vm(script: Path, hostname: str, mac: str) -> None:
    """Create and install a node VM with the install script."""
    run([str(script), hostname, mac])


def start_vm(hostname: str) -> None:
    """Start (restart after install) a node VM."""
    run(["sudo", "virsh", "start", hostname])


def recreate_network(net_file: Path, wait_seconds: float = NETWORK_RECREATE_WAIT_SECONDS) -> None:
    """Replace the libvirt default network with the one from ``net_file``.

    The default network may already be gone, so destroy/undefine errors
    are only logged.
    """
    for action in ("net-destroy", "net-undefine"):
        try:
            run(["sudo", "virsh", action, LIBVIRT_NETWORK])
        except LocalCommandError as err:
            logger.info("Ignoring %s failure: %s", action, err)

    console.print(f"[yellow]\u2139\ufe0f  Waiting {wait_seconds:.0f}s before creating network...[/yellow]")
    time.sleep(wait_seconds)
    run(["sudo", "virsh", "net-create", str(net_file)])
    console.print(f"[green]\u2705 Network '{LIBVIRT_NETWORK}' created from {net_file}[/green]")


def create_management_vm(image_dir: Path) -> None:
    """Import the management host VM from its qcow2 image."""
    run([
        "sudo", "virt-install",
        "--name", MGMT_HOST_NAME,
        "--memory", MGMT_HOST_MEMORY_MB,
        "--vcpus", MGMT_HOST_VCPUS,
        "--disk", f"path={image_dir / MGMT_HOST_IMAGE},bus=sata",
        "--import",
        "--os-variant", MGMT_HOST_OS_VARIANT,
        f"--network={LIBVIRT_NETWORK},mac={MGMT_HOST_MAC}",
        "--noautoconsole",
    ])
    console.print(f"[green]\u2705 VM '{MGMT_HOST_NAME}' created[/green]")


def download_file(
    url: str, dest: Path, interval: float, deadline: float, cancel: threading.Event | None = None,
) -> None:
    """Download ``url`` to ``dest`` with curl, retrying until ``deadline`` elapses or ``cancel`` is set.

    Raises:
        LocalCommandError: The last failure if every attempt failed.
    """

    @retry(
        stop=retry_stop(deadline, cancel),
        wait=wait_fixed(interval),
        sleep=retry_sleep(cancel),
        before_sleep=lambda rs: logger.info("Retrying download of %s: %s", url, rs.outcome.exception()),
        reraise=True,
    )
    def _attempt() -> None:
        run(["curl", "-fsSL", "-o", str(dest), url])

    _attempt()
    logger.info("Downloaded %s to %s", url, dest)
