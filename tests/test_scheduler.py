import threading
import time

import pytest

from elemental_e2e import scheduler
from elemental_e2e.scheduler import BootPacer, NodeIdentity, ProvisioningError, provision_all


def identity(index: int) -> NodeIdentity:
    return NodeIdentity(index=index, hostname=f"node-{index:03d}")


def test_single_node_failure_releases_barrier():
    def work(node):
        raise RuntimeError("install-vm failed")

    with pytest.raises(ProvisioningError) as exc_info:
        provision_all(3, 3, identity, work, phase="provision", max_concurrent=30)

    failures = exc_info.value.failures
    assert [f.identity.index for f in failures] == [3]
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_all_workers_complete_before_return():
    finished = []
    lock = threading.Lock()

    def work(node):
        # later indices finish first
        time.sleep((6 - node.index) * 0.02)
        with lock:
            finished.append(node.index)

    outcomes = provision_all(1, 5, identity, work, phase="provision", max_concurrent=5)

    assert sorted(finished) == [1, 2, 3, 4, 5]
    assert [o.identity.index for o in outcomes] == [1, 2, 3, 4, 5]
    assert all(o.ok for o in outcomes)


def test_in_flight_nodes_are_bounded():
    in_flight = 0
    peak = 0
    lock = threading.Lock()

    def work(node):
        nonlocal in_flight, peak
        with lock:
            in_flight += 1
            peak = max(peak, in_flight)
        time.sleep(0.03)
        with lock:
            in_flight -= 1

    outcomes = provision_all(0, 7, identity, work, phase="join", max_concurrent=2)
    assert len(outcomes) == 8
    assert peak <= 2


def test_identities_are_derived_sequentially_on_launch_thread():
    threads = []

    def derive(index):
        threads.append(threading.current_thread())
        return identity(index)

    provision_all(1, 4, derive, lambda node: None, phase="provision", max_concurrent=4)
    assert threads == [threading.current_thread()] * 4


def test_failure_stops_further_launches():
    started = []

    def work(node):
        started.append(node.index)
        if node.index == 1:
            raise RuntimeError("boom")

    with pytest.raises(ProvisioningError):
        provision_all(1, 4, identity, work, phase="provision", max_concurrent=1)
    assert started == [1]


def test_identity_failure_is_reported_after_barrier():
    done = []

    def derive(index):
        if index == 2:
            raise LookupError("node-002 not found")
        return identity(index)

    with pytest.raises(ProvisioningError) as exc_info:
        provision_all(1, 3, derive, lambda node: done.append(node.index), phase="join", max_concurrent=3)
    assert done == [1]
    assert isinstance(exc_info.value.failures[0].error, LookupError)


def test_cancelled_run_launches_nothing():
    cancel = threading.Event()
    cancel.set()
    started = []

    with pytest.raises(ProvisioningError) as exc_info:
        provision_all(1, 3, identity, lambda node: started.append(node), phase="provision",
                      max_concurrent=3, cancel=cancel)
    assert exc_info.value.cancelled
    assert started == []


def test_output_is_kept_per_node():
    from elemental_e2e import console

    def work(node):
        console.print(f"hello from {node.hostname}")

    outcomes = provision_all(1, 2, identity, work, phase="provision", max_concurrent=2)
    assert "hello from node-001" in outcomes[0].output
    assert "hello from node-002" in outcomes[1].output


def test_scheduler_does_not_load_the_ssh_layer():
    assert not hasattr(scheduler, "NodeClient")
    assert not hasattr(scheduler, "paramiko")


def test_invalid_range():
    with pytest.raises(ValueError):
        provision_all(5, 4, identity, lambda node: None, phase="provision", max_concurrent=1)


class TestBootPacer:

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValueError):
            BootPacer(0)

    def test_returns_immediately_below_bound(self):
        pacer = BootPacer(2)
        pacer.node_started()
        assert pacer.wait_turn(0, 0) == 1

    def test_stagger_uses_sleep(self):
        sleeps = []
        pacer = BootPacer(5, stagger=1.5, sleep=sleeps.append)
        pacer.node_started()
        pacer.wait_turn(0, 0)
        assert sleeps == [1.5]

    def test_blocks_until_a_node_completes(self):
        pacer = BootPacer(1)
        pacer.node_started()
        timer = threading.Timer(0.05, pacer.node_completed)
        timer.start()
        began = time.monotonic()
        pacer.wait_turn(0, 0)
        assert time.monotonic() - began >= 0.04
        assert pacer.in_flight == 0
        timer.join()

    def test_cancel_releases_wait(self):
        pacer = BootPacer(1)
        pacer.node_started()
        cancel = threading.Event()
        cancel.set()
        assert pacer.wait_turn(0, 0, cancel) == 1
