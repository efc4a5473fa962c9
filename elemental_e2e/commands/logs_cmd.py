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

"""Logs subcommands (collect)."""

from __future__ import annotations

from pathlib import Path

import typer

from elemental_e2e.config import SuiteConfig
from elemental_e2e.constants import REL_LOGS_DIR
from elemental_e2e.logs import collect_logs

app = typer.Typer(help="Collect cluster logs.")


@app.command()
def collect(
    output_dir: Path | None = typer.Option(None, "--output-dir", help="Directory receiving the logs"),
) -> None:
    """Collect the cluster state with crust-gather (never fails the run)."""
    collect_logs(output_dir or SuiteConfig().repo_dir / REL_LOGS_DIR)
