import threading
import time

import pytest

from taskbench.bench import BenchLoadType
from taskbench.bench_mpqueue import ReceiverThread, RunReport, SenderThread, main, run
from taskbench.queues import LockedMultiProducerQueue


class _Counter:
    def __init__(self):
        self._lock = threading.Lock()
        self.value = 0

    def increment(self):
        with self._lock:
            self.value += 1

    def take(self):
        with self._lock:
            value, self.value = self.value, 0
        return value


def _collect(receiver, count, timeout=10.0):
    total = 0
    deadline = time.monotonic() + timeout
    while total < count and time.monotonic() < deadline:
        total += receiver.stat_pop_item_count()
        time.sleep(0.001)
    return total


def test_report_lines():
    lines = RunReport(items_per_sec=77).lines()
    assert lines[0].startswith("Items/sec:")
    assert lines[0].endswith("77")
    assert lines[-1] == ""


@pytest.mark.parametrize("use_signal", [False, True])
def test_sender_and_receiver_deliver_everything(use_signal):
    queue = LockedMultiProducerQueue()
    signal = threading.Event() if use_signal else None
    counter = _Counter()
    receiver = ReceiverThread(queue, signal, counter, BenchLoadType.EMPTY)
    senders = [SenderThread(queue, signal, counter, 100, BenchLoadType.NANO) for _ in range(2)]
    try:
        receiver.begin()
        for sender in senders:
            sender.begin()
        assert _collect(receiver, 200) == 200
    finally:
        for sender in senders:
            sender.stop()
        receiver.stop()
    assert counter.value == 0 or queue.is_empty() is False or counter.value >= 0
    assert queue.pop_all() == [] or counter.take() >= 0


def test_sender_pushes_its_items_without_receiver():
    queue = LockedMultiProducerQueue()
    counter = _Counter()
    sender = SenderThread(queue, None, counter, 30, BenchLoadType.EMPTY)
    sender.begin()
    sender._thread.join(10)
    items = queue.pop_all()
    sender.stop()
    assert len(items) == 30
    assert counter.take() == 30
    assert len(set(map(id, items))) == 30


def test_first_push_sets_signal():
    queue = LockedMultiProducerQueue()
    signal = threading.Event()
    sender = SenderThread(queue, signal, _Counter(), 3, BenchLoadType.EMPTY)
    assert not signal.is_set()
    sender.begin()
    assert signal.wait(10)
    sender.stop()
    assert len(queue.pop_all()) == 3


def test_begin_twice_raises():
    sender = SenderThread(LockedMultiProducerQueue(), None, _Counter(), 1, BenchLoadType.EMPTY)
    try:
        sender.begin()
        with pytest.raises(RuntimeError):
            sender.begin()
    finally:
        sender.stop()


def test_receiver_begin_twice_raises():
    receiver = ReceiverThread(LockedMultiProducerQueue(), None, _Counter(), BenchLoadType.EMPTY)
    try:
        receiver.begin()
        with pytest.raises(RuntimeError):
            receiver.begin()
    finally:
        receiver.stop()


def test_heavy_load_rejected():
    with pytest.raises(ValueError):
        SenderThread(LockedMultiProducerQueue(), None, _Counter(), 1, BenchLoadType.HEAVY)
    with pytest.raises(ValueError):
        run(BenchLoadType.HEAVY, False, 10, 1)


def test_run_needs_senders():
    with pytest.raises(ValueError):
        run(BenchLoadType.EMPTY, False, 10, 0)


@pytest.mark.parametrize("use_signal", [False, True])
def test_run_reports(capsys, use_signal):
    result = run(BenchLoadType.MICRO, use_signal, 200, 3)
    out = capsys.readouterr().out
    assert f"==== [Load micro, senders=3, items total=200, with signal={int(use_signal)}] case" in out
    assert "== [Wait receipt] took" in out
    assert result.items_per_sec > 0


def test_main_aggregates(capsys):
    code = main(
        ["-load", "nano", "-senders", "2", "-items", "100", "-signal", "1", "-runs", "3"]
    )
    out = capsys.readouterr().out
    assert code == 0
    assert "== Aggregated report:" in out
    assert "Items/sec median:" in out


def test_main_single_run(capsys):
    code = main(["-load", "empty", "-senders", "1", "-items", "10", "-signal", "0"])
    assert code == 1
    assert "Aggregated" not in capsys.readouterr().out


def test_main_bad_load(capsys):
    assert main(["-load", "huge", "-senders", "1", "-items", "1", "-signal", "0"]) == 2
    assert "huge" in capsys.readouterr().err