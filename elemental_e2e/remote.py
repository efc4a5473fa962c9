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

"""SSH command runner, file transfer, and SSH reachability checks."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import paramiko
from tenacity import retry, wait_fixed

from elemental_e2e import logger
from elemental_e2e.constants import SSH_OK_MARKER, SSH_PORT
from elemental_e2e.polling import PollBudget, retry_sleep, retry_stop, wait_until


class RemoteCommandError(RuntimeError):
    """Raised when a remote command cannot be run or exits non-zero."""


@dataclass(frozen=True)
class NodeClient:
    """Password based SSH access to a node.

    Attributes:
        host: IP address or hostname.
        username: Login user.
        password: Login password.
        port: SSH port.
        timeout: Connection and command timeout in seconds.
    """

    host: str
    username: str
    password: str
    port: int = SSH_PORT
    timeout: float = 30.0

    def __str__(self) -> str:
        return f"{self.username}@{self.host}:{self.port}"

    @contextmanager
    def _connect(self):
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                timeout=self.timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except (paramiko.SSHException, OSError) as err:
            client.close()
            raise RemoteCommandError(f"Cannot connect to {self}: {err}") from err
        try:
            yield client
        finally:
            client.close()

    def run(self, command: str) -> str:
        """Run a command on the node and return its combined output.

        Raises:
            RemoteCommandError: If the connection fails or the command exits non-zero.
        """
        with self._connect() as client:
            try:
                _, stdout, stderr = client.exec_command(command, timeout=self.timeout)
                out = stdout.read().decode(errors="replace")
                err = stderr.read().decode(errors="replace")
                rc = stdout.channel.recv_exit_status()
            except (paramiko.SSHException, OSError) as exc:
                raise RemoteCommandError(f"'{command}' on {self} failed: {exc}") from exc
        if rc != 0:
            raise RemoteCommandError(f"'{command}' on {self} exited with {rc}: {err.strip()[:200]}")
        return out + err

    def send_file(self, local: Path | str, remote: str, mode: int = 0o644) -> None:
        """Copy a local file to the node."""
        with self._connect() as client:
            with client.open_sftp() as sftp:
                sftp.put(str(local), remote)
                sftp.chmod(remote, mode)

    def get_file(self, local: Path | str, remote: str, mode: int = 0o644) -> None:
        """Copy a file from the node to the local filesystem."""
        with self._connect() as client:
            with client.open_sftp() as sftp:
                sftp.get(remote, str(local))
        Path(local).chmod(mode)


def check_ssh(client: NodeClient, poll_budget: PollBudget, cancel: threading.Event | None = None) -> None:
    """Wait until the node answers over SSH.

    Raises:
        ConvergenceTimeout: If SSH is not reachable within the budget.
    """
    wait_until(
        lambda: client.run(f"echo {SSH_OK_MARKER}").strip(),
        SSH_OK_MARKER,
        poll_budget,
        description=f"SSH on {client.host}",
        cancel=cancel,
    )


def run_with_retry(
    client: NodeClient, command: str, poll_budget: PollBudget, cancel: threading.Event | None = None,
) -> str:
    """Run a remote command, retrying failures until the budget elapses or the run is cancelled.

    Raises:
        RemoteCommandError: The last failure if every attempt failed.
    """

    @retry(
        stop=retry_stop(poll_budget.deadline, cancel),
        wait=wait_fixed(poll_budget.interval),
        sleep=retry_sleep(cancel),
        before_sleep=lambda rs: logger.debug("Retrying '%s' on %s: %s", command, client.host,
                                             rs.outcome.exception()),
        reraise=True,
    )
    def _attempt() -> str:
        return client.run(command)

    return _attempt()
