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

"""
cli.py - Elemental CAPI end-to-end test driver.

Subcommands:
    deploy     Deploy the management host (mgmt-host)
    install    Install CAPI components and the Elemental cluster (capi)
    bootstrap  Provision nodes and wait for the cluster (provision, join, verify, all)
    logs       Collect cluster logs (collect)

Examples:
    # Management host with K3s
    ./cli.py deploy mgmt-host --k3s-version v1.28.5+k3s1

    # CAPI providers, cluster and registration
    ./cli.py install capi --cluster-name my-cluster

    # Nodes 1 to 5, at most 3 booting at once
    VM_INDEX=1 VM_NUMBERS=5 ./cli.py bootstrap all --max-concurrent 3

    # Logs
    ./cli.py logs collect

For detailed usage information, run: ./cli.py --help
"""

from __future__ import annotations

import logging
import sys

import typer

from elemental_e2e import console
from elemental_e2e.commands import (
    bootstrap_cmd,
    deploy_cmd,
    install_cmd,
    logs_cmd,
)

app = typer.Typer(
    help="Elemental CAPI end-to-end test driver.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.add_typer(deploy_cmd.app, name="deploy")
app.add_typer(install_cmd.app, name="install")
app.add_typer(bootstrap_cmd.app, name="bootstrap")
app.add_typer(logs_cmd.app, name="logs")


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
