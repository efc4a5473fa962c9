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

"""Cluster log collection with crust-gather."""

from __future__ import annotations

import threading
from pathlib import Path

from rich.panel import Panel

from elemental_e2e import console, logger
from elemental_e2e.constants import CRUST_GATHER_INSTALLER, dep_value
from elemental_e2e.hypervisor import LocalCommandError, download_file, run

INSTALLER_RETRY_INTERVAL_SECONDS = 5
INSTALLER_RETRY_DEADLINE_SECONDS = 60


def collect_logs(logs_dir: Path, cancel: threading.Event | None = None) -> bool:
    """Install crust-gather and collect the cluster state into ``logs_dir``.

    Failures are logged, never raised. Setting ``cancel`` stops the installer
    download retries.

    Returns:
        True if every step succeeded.
    """
    console.print(Panel.fit("Collecting cluster logs", style="bold blue"))
    logs_dir.mkdir(parents=True, exist_ok=True)
    installer = logs_dir / CRUST_GATHER_INSTALLER

    try:
        download_file(
            dep_value("crust_gather", "installer_url"), installer,
            INSTALLER_RETRY_INTERVAL_SECONDS, INSTALLER_RETRY_DEADLINE_SECONDS, cancel,
        )
    except LocalCommandError as err:
        logger.error("Cannot download crust-gather installer: %s", err)
        return False

    ok = True
    installer.chmod(0o755)
    for argv in (["sudo", str(installer), "-f", "-y"], ["crust-gather", "collect"]):
        try:
            run(argv, cwd=logs_dir)
        except LocalCommandError as err:
            logger.error("%s", err)
            ok = False

    if ok:
        console.print(f"[green]\u2705 Logs collected in {logs_dir}[/green]")
    else:
        console.print(f"[yellow]\u26a0\ufe0f  Log collection incomplete, see {logs_dir}[/yellow]")
    return ok
