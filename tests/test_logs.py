from elemental_e2e import logs
from elemental_e2e.hypervisor import LocalCommandError


def test_download_failure_is_not_raised(monkeypatch, tmp_path):
    def fail(*args, **kwargs):
        raise LocalCommandError("curl exited with 6")

    monkeypatch.setattr(logs, "download_file", fail)
    assert logs.collect_logs(tmp_path / "logs") is False


def test_step_failure_is_logged_and_collection_continues(monkeypatch, tmp_path):
    ran = []

    def fake_download(url, dest, interval, deadline, cancel=None):
        dest.write_text("#!/bin/sh\n")

    def fake_run(argv, cwd=None):
        ran.append(argv[0])
        if argv[0] == "sudo":
            raise LocalCommandError("installer failed")
        return ""

    monkeypatch.setattr(logs, "download_file", fake_download)
    monkeypatch.setattr(logs, "run", fake_run)
    assert logs.collect_logs(tmp_path / "logs") is False
    assert ran == ["sudo", "crust-gather"]
