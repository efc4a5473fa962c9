import pytest

from elemental_e2e import kube


def fake_kubectl(responses):
    calls = []

    def _run(args, timeout=30):
        calls.append(args)
        return responses[len(calls) - 1]

    return _run, calls


def test_pods_running_all_running(monkeypatch):
    run, calls = fake_kubectl([(True, "Running Running", ""), (True, "Running", "")])
    monkeypatch.setattr(kube, "run_kubectl", run)
    assert kube.pods_running([("kube-system", "k8s-app=kube-dns"), ("cert-manager", "app=webhook")])
    assert "k8s-app=kube-dns" in calls[0]


@pytest.mark.parametrize("response", [
    (True, "", ""),
    (True, "Running Pending", ""),
    (False, "", "connection refused"),
])
def test_pods_running_not_ready(monkeypatch, response):
    run, _ = fake_kubectl([response])
    monkeypatch.setattr(kube, "run_kubectl", run)
    assert not kube.pods_running([("kube-system", "app=local-path-provisioner")])


def test_accessor_get_field_builds_kubectl_call(monkeypatch):
    run, calls = fake_kubectl([(True, "True", "")])
    monkeypatch.setattr(kube, "run_kubectl", run)
    value = kube.KubectlStatusAccessor().get_field("default", "elementalhost", "node-001", "jsonpath={.x}")
    assert value == "True"
    assert calls == [["get", "elementalhost", "--namespace", "default", "node-001", "-o", "jsonpath={.x}"]]


def test_accessor_raises_on_failure(monkeypatch):
    run, _ = fake_kubectl([(False, "", "NotFound")])
    monkeypatch.setattr(kube, "run_kubectl", run)
    with pytest.raises(kube.KubectlError):
        kube.KubectlStatusAccessor().get_field("default", "cluster", "c1", "jsonpath={.status}")


def test_list_names(monkeypatch):
    run, _ = fake_kubectl([(True, "m1 m2\n", "")])
    monkeypatch.setattr(kube, "run_kubectl", run)
    assert kube.KubectlStatusAccessor().list_names("default", "elementalmachine") == ["m1", "m2"]
