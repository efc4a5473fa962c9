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

"""Utility functions for kubectl, resource status reads, and command checks."""

from __future__ import annotations

import subprocess
from pathlib import Path

import sh


class KubectlError(RuntimeError):
    """Raised when a kubectl invocation fails."""


def require_commands(*cmds: str) -> None:
    """Check that every command exists on the system PATH.

    Raises:
        RuntimeError: Listing all the missing commands.
    """
    missing = []
    for cmd in cmds:
        try:
            sh.which(cmd)
        except sh.ErrorReturnCode:
            missing.append(cmd)
    if missing:
        raise RuntimeError(f"Required commands not found: {', '.join(missing)}. Please install them first.")


def run_kubectl(args: list[str], timeout: int = 30) -> tuple[bool, str, str]:
    """Run a kubectl command via subprocess and return (success, stdout, stderr).

    Uses subprocess instead of sh because jsonpath reads need stdout alone,
    without stderr warnings mixed in.

    Args:
        args: kubectl arguments (e.g. ``["get", "pods", "-n", "default"]``).
        timeout: Maximum seconds to wait for the command to complete.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    try:
        result = subprocess.run(
            ["kubectl", *args],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)


def kubectl_output(args: list[str], timeout: int = 30) -> str:
    """Run kubectl and return stdout, raising on failure.

    Raises:
        KubectlError: If kubectl exits non-zero or cannot be run.
    """
    ok, stdout, stderr = run_kubectl(args, timeout=timeout)
    if not ok:
        raise KubectlError(f"kubectl {' '.join(args)} failed: {stderr.strip()[:200]}")
    return stdout


class KubectlStatusAccessor:
    """Resource status accessor backed by ``kubectl get -o jsonpath``.

    Attributes:
        timeout: Seconds allowed for each kubectl call.
    """

    def __init__(self, timeout: int = 30) -> None:
        self.timeout = timeout

    def get_field(self, namespace: str, kind: str, name: str, jsonpath: str) -> str:
        args = ["get", kind, "--namespace", namespace, name, "-o", jsonpath]
        return kubectl_output(args, timeout=self.timeout)

    def list_names(self, namespace: str, kind: str) -> list[str]:
        """List the names of all resources of a kind in a namespace."""
        out = kubectl_output(
            ["get", kind, "--namespace", namespace, "-o", "jsonpath={.items[*].metadata.name}"],
            timeout=self.timeout,
        )
        return out.split()


def apply_manifest(manifest: Path | str, namespace: str = "") -> None:
    """Apply a manifest file, optionally in a namespace.

    Raises:
        KubectlError: If the apply fails.
    """
    args = ["apply", "-f", str(manifest)]
    if namespace:
        args += ["--namespace", namespace]
    kubectl_output(args, timeout=120)


def pods_running(checklist: list[tuple[str, str]]) -> bool:
    """Check that every (namespace, label selector) pair has only running pods.

    Args:
        checklist: Pairs of namespace and pod label selector.

    Returns:
        True if each selector matches at least one pod and all are Running.
    """
    for namespace, selector in checklist:
        ok, stdout, _ = run_kubectl([
            "get", "pods", "--namespace", namespace, "-l", selector,
            "-o", "jsonpath={.items[*].status.phase}",
        ])
        phases = stdout.split()
        if not ok or not phases or any(phase != "Running" for phase in phases):
            return False
    return True
