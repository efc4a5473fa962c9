import threading

import pytest
import sh

from elemental_e2e import hypervisor


def test_run_wraps_missing_command():
    with pytest.raises(hypervisor.LocalCommandError, match="definitely-not-a-real-binary-e2e"):
        hypervisor.run(["definitely-not-a-real-binary-e2e"])


def test_recreate_network_ignores_cleanup_errors(monkeypatch, tmp_path):
    calls = []

    def fake_run(argv, cwd=None):
        calls.append(argv[2])
        if argv[2] in ("net-destroy", "net-undefine"):
            raise hypervisor.LocalCommandError("network 'default' not found")
        return ""

    monkeypatch.setattr(hypervisor, "run", fake_run)
    monkeypatch.setattr(hypervisor.time, "sleep", lambda s: None)
    hypervisor.recreate_network(tmp_path / "net.xml")
    assert calls == ["net-destroy", "net-undefine", "net-create"]


def test_download_file_retries(monkeypatch, tmp_path):
    attempts = []

    def fake_run(argv, cwd=None):
        attempts.append(argv)
        if len(attempts) < 2:
            raise hypervisor.LocalCommandError("curl exited with 22")
        return ""

    monkeypatch.setattr(hypervisor, "run", fake_run)
    hypervisor.download_file("https://example.invalid/x", tmp_path / "x", interval=0.01, deadline=1)
    assert len(attempts) == 2
    assert attempts[0][-1] == "https://example.invalid/x"


def test_sh_error_is_wrapped(monkeypatch):
    class Failing:
        def __call__(self, *args, **kwargs):
            raise sh.ErrorReturnCode_1("virsh start node-001", b"", b"domain not found")

    monkeypatch.setattr(hypervisor.sh, "Command", lambda name: Failing())
    with pytest.raises(hypervisor.LocalCommandError, match="domain not found"):
        hypervisor.start_vm("node-001")


def test_download_file_stops_retrying_when_cancelled(monkeypatch, tmp_path):
    attempts = []

    def fake_run(argv, cwd=None):
        attempts.append(argv)
        raise hypervisor.LocalCommandError("curl exited with 7")

    cancel = threading.Event()
    cancel.set()
    monkeypatch.setattr(hypervisor, "run", fake_run)
    with pytest.raises(hypervisor.LocalCommandError):
        hypervisor.download_file("https://example.invalid/x", tmp_path / "x", interval=1, deadline=60, cancel=cancel)
    assert len(attempts) == 1
