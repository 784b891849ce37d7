import time

import pytest

from taskbench.bench import BenchLoadType, CommandLine, CommandLineError
from taskbench.bench_mcqueue import (
    ConsumerThread,
    RunReport,
    ThreadReport,
    main,
    run,
    run_pop,
    run_push,
    run_push_pop,
)
from taskbench.queues import LockedQueue


def _wait_for(predicate, timeout=10.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            return False
        time.sleep(0.001)
    return True


def test_report_lines_single_thread():
    lines = RunReport(items_per_sec=42, threads=[ThreadReport(7)]).lines()
    assert lines[0].startswith("Items per sec:")
    assert lines[0].endswith("42")
    assert not any("per thread" in line for line in lines)
    assert lines[-1] == ""
    assert any(line.startswith("Thread  0: pop:") and line.endswith("7") for line in lines)


def test_report_lines_many_threads():
    result = RunReport(
        items_per_sec=100, items_per_sec_per_thread=50, threads=[ThreadReport(1), ThreadReport(2)]
    )
    lines = result.lines()
    assert any(line.startswith("Items per sec per thread:") for line in lines)
    assert len([line for line in lines if line.startswith("Thread")]) == 2


def test_consumer_thread_counts_and_pauses():
    queue = LockedQueue(0)
    worker = ConsumerThread(queue, BenchLoadType.EMPTY)
    try:
        for _ in range(50):
            queue.push(object())
        assert _wait_for(lambda: worker.stat_count() == 50)
        worker.pause()
        for _ in range(10):
            queue.push(object())
        time.sleep(0.02)
        assert worker.stat_count() == 50
        assert len(queue) == 10
        worker.resume()
        assert _wait_for(lambda: worker.stat_count() == 60)
        worker.stat_clear()
        assert worker.stat_count() == 0
    finally:
        worker.stop()


def test_consumer_thread_resume_without_pause_raises():
    worker = ConsumerThread(LockedQueue(0), BenchLoadType.EMPTY)
    try:
        with pytest.raises(RuntimeError):
            worker.resume()
    finally:
        worker.stop()


def test_consumer_thread_double_pause_raises():
    worker = ConsumerThread(LockedQueue(0), BenchLoadType.EMPTY)
    try:
        worker.pause()
        with pytest.raises(RuntimeError):
            worker.pause()
        worker.resume()
    finally:
        worker.stop()


def test_run_push(capsys):
    result = run_push(1000, 5)
    out = capsys.readouterr().out
    assert "==== [Operation push, item=1000, subq=5] case" in out
    assert "== [Populate] took" in out
    assert result.items_per_sec > 0
    assert result.threads == []


def test_run_pop_consumes_every_item():
    result = run_pop(BenchLoadType.MICRO, 500, 2, 0)
    assert sum(t.pop_count for t in result.threads) == 500
    assert len(result.threads) == 2
    assert result.items_per_sec_per_thread == result.items_per_sec // 2


def test_run_push_pop_consumes_every_item():
    result = run_push_pop(BenchLoadType.EMPTY, 300, 3, 0)
    assert sum(t.pop_count for t in result.threads) == 300
    assert result.items_per_sec_per_thread == result.items_per_sec // 3


def test_run_pop_needs_threads():
    with pytest.raises(ValueError):
        run_pop(BenchLoadType.EMPTY, 10, 0, 0)


def test_run_unknown_operation():
    cmdline = CommandLine(["-op", "shuffle", "-items", "5", "-load", "empty", "-threads", "1"])
    with pytest.raises(CommandLineError):
        run(cmdline)


def test_run_dispatches_push(capsys):
    result = run(CommandLine(["-op", "push", "-items", "20"]))
    assert "Operation push, item=20, subq=0" in capsys.readouterr().out
    assert result.threads == []


def test_main_aggregates(capsys):
    code = main(["-op", "push", "-items", "200", "-runs", "3"])
    out = capsys.readouterr().out
    assert code == 0
    assert "== Aggregated report:" in out
    assert "== Median report:" in out
    assert out.count("case") == 3


def test_main_single_run_has_no_aggregate(capsys):
    code = main(["-op", "push", "-items", "10"])
    assert code == 1
    assert "Aggregated" not in capsys.readouterr().out


def test_main_missing_argument(capsys):
    assert main(["-op", "push"]) == 2
    assert "items" in capsys.readouterr().err