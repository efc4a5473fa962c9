from __future__ import annotations

import threading
from pathlib import Path

import pytest

from elemental_e2e.conditions import ResourceKind, condition_jsonpath, conditions_for
from elemental_e2e.config import SuiteConfig, TimingConfig
from elemental_e2e.constants import REL_NET_DEFAULT_XML
from elemental_e2e.context import RunContext
from elemental_e2e.network import NetworkConfig

NET_XML = """<network>
  <name>default</name>
  <forward mode="nat"/>
  <bridge name="virbr0" stp="on" delay="0"/>
  <ip address="192.168.122.1" netmask="255.255.255.0">
    <dhcp>
      <range start="192.168.122.2" end="192.168.122.99"/>
      <host mac="52:54:00:00:00:10" name="management-host" ip="192.168.122.100"/>
    </dhcp>
  </ip>
</network>
"""

SUITE_ENV_VARS = (
    "CLUSTER_NAME", "CLUSTER_NS", "CLUSTER_TYPE", "VM_INDEX", "VM_NUMBERS", "EMULATE_TPM",
    "BOOT_TYPE", "K8S_UPSTREAM_VERSION", "K8S_DOWNSTREAM_VERSION", "ELEMENTAL_API_ENDPOINT",
    "OPERATOR_REPO", "OPERATOR_TYPE", "TEST_TYPE", "REPO_DIR",
)


class FakeClock:
    """Manual clock: ``sleep`` advances ``now`` instantly."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeAccessor:
    """In-memory resource status accessor."""

    def __init__(self) -> None:
        self.fields: dict[tuple[str, str, str, str], str] = {}
        self.names: dict[tuple[str, str], list[str]] = {}
        self.reads: list[tuple[str, str, str]] = []
        self._lock = threading.Lock()

    def set_condition(self, namespace: str, kind: ResourceKind, name: str, condition_type: str, value: str) -> None:
        self.fields[(namespace, kind.value, name, condition_jsonpath(kind, condition_type))] = value

    def set_ready(self, namespace: str, kind: ResourceKind, name: str) -> None:
        for condition in conditions_for(kind):
            self.set_condition(namespace, kind, name, condition.type, condition.status)

    def get_field(self, namespace: str, kind: str, name: str, jsonpath: str) -> str:
        with self._lock:
            self.reads.append((kind, name, jsonpath))
        try:
            return self.fields[(namespace, kind, name, jsonpath)]
        except KeyError:
            raise LookupError(f"{kind} {namespace}/{name} not found") from None

    def list_names(self, namespace: str, kind: str) -> list[str]:
        return list(self.names.get((namespace, kind), []))


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_accessor() -> FakeAccessor:
    return FakeAccessor()


@pytest.fixture
def clean_env(monkeypatch):
    for var in SUITE_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    net_file = tmp_path / REL_NET_DEFAULT_XML
    net_file.parent.mkdir(parents=True)
    net_file.write_text(NET_XML)
    return tmp_path


@pytest.fixture
def net_config(repo_dir: Path) -> NetworkConfig:
    return NetworkConfig(repo_dir / REL_NET_DEFAULT_XML)


@pytest.fixture
def fast_timing() -> TimingConfig:
    return TimingConfig(
        ssh_interval=0.01, ssh_deadline=0.05,
        cluster_interval=0.01, cluster_deadline=0.05,
        resource_interval=0.01, resource_deadline=0.05,
        registration_interval=0.01, registration_deadline=0.05,
        command_interval=0.01, command_deadline=0.05,
        max_concurrent_nodes=2, boot_stagger_seconds=0,
    )


@pytest.fixture
def make_context(clean_env, repo_dir, fake_accessor, fast_timing):
    def _make(**suite_values) -> RunContext:
        suite = SuiteConfig(repo_dir=repo_dir, cluster_name="c1", **suite_values)
        return RunContext.from_settings(suite=suite, timing=fast_timing, accessor=fake_accessor)

    return _make
