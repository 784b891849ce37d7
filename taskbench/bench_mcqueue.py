"""Multi-consumer queue benchmark: one producer, many consumer threads."""

from __future__ import annotations

import sys
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from taskbench.bench import (
    BenchLoadType,
    CommandLine,
    CommandLineError,
    TimedGuard,
    load_type_from_string,
    make_micro_work,
    report,
    report_case,
)
from taskbench.queues import LockedQueue, LockedQueueConsumer

WARMUP_ITEM_COUNT = 10000
_POLL_INTERVAL = 0.001


class _PauseState(Enum):
    RUNNING = 0
    REQUESTED = 1
    PAUSED = 2


class ConsumerThread:
    """A thread popping items from a queue and counting them."""

    def __init__(self, queue: LockedQueue, load_type: BenchLoadType) -> None:
        self._consumer = LockedQueueConsumer(queue)
        self._load_type = load_type
        self._count = 0
        self._cond = threading.Condition()
        self._state = _PauseState.RUNNING
        self._stop_requested = threading.Event()
        self._thread = threading.Thread(target=self._run, name="bench-consumer", daemon=True)
        self._thread.start()

    def pause(self) -> None:
        """Block until the thread has drained the queue and parked itself."""
        with self._cond:
            if self._state is not _PauseState.RUNNING:
                raise RuntimeError("Consumer is already paused")
            self._state = _PauseState.REQUESTED
            self._cond.wait_for(
                lambda: self._state is _PauseState.PAUSED or not self._thread.is_alive()
            )

    def resume(self) -> None:
        with self._cond:
            if self._state is not _PauseState.PAUSED:
                raise RuntimeError("Consumer is not paused")
            self._state = _PauseState.RUNNING
            self._cond.notify_all()

    def stat_clear(self) -> None:
        self._count = 0

    def stat_count(self) -> int:
        return self._count

    def stop(self) -> None:
        self._stop_requested.set()
        with self._cond:
            self._cond.notify_all()
        self._thread.join()
        self._consumer.detach()

    def _run(self) -> None:
        do_work = self._load_type is BenchLoadType.MICRO
        while not self._stop_requested.is_set():
            while self._consumer.pop() is not None:
                self._count += 1
                if do_work:
                    make_micro_work()
            with self._cond:
                if self._state is _PauseState.REQUESTED:
                    self._state = _PauseState.PAUSED
                    self._cond.notify_all()
                    self._cond.wait_for(
                        lambda: self._state is not _PauseState.PAUSED
                        or self._stop_requested.is_set()
                    )
            time.sleep(0)


@dataclass
class ThreadReport:
    pop_count: int = 0


@dataclass
class RunReport:
    items_per_sec: int = 0
    items_per_sec_per_thread: int = 0
    threads: list[ThreadReport] = field(default_factory=list)

    def lines(self) -> list[str]:
        result = [f"Items per sec:            {self.items_per_sec:12d}"]
        if len(self.threads) > 1:
            result.append(f"Items per sec per thread: {self.items_per_sec_per_thread:12d}")
        result.extend(
            f"Thread {index:2d}: pop: {thread.pop_count:12d}"
            for index, thread in enumerate(self.threads)
        )
        result.append("")
        return result

    def print(self) -> None:
        for line in self.lines():
            report(line)


def _rate(count: int, duration_ms: float) -> int:
    if duration_ms <= 0:
        return 0
    return int(count * 1000 / duration_ms)


def _total_count(workers: Sequence[ConsumerThread]) -> int:
    return sum(worker.stat_count() for worker in workers)


def _wait_total(workers: Sequence[ConsumerThread], count: int) -> None:
    while _total_count(workers) < count:
        time.sleep(_POLL_INTERVAL)


def _warmup(queue: LockedQueue, workers: Sequence[ConsumerThread]) -> None:
    for value in [object() for _ in range(WARMUP_ITEM_COUNT)]:
        queue.push(value)
    _wait_total(workers, WARMUP_ITEM_COUNT)
    # Clear the stats so the measured run starts clean.
    for worker in workers:
        worker.stat_clear()


def _check_threads(thread_count: int) -> None:
    if thread_count < 1:
        raise ValueError("At least one consumer thread is required")


def _finish_report(
    report_: RunReport, workers: Sequence[ConsumerThread], item_count: int, duration_ms: float
) -> None:
    report_.items_per_sec = _rate(item_count, duration_ms)
    report_.items_per_sec_per_thread = report_.items_per_sec // len(workers)
    report_.threads = [ThreadReport(worker.stat_count()) for worker in workers]


def run_push(item_count: int, sub_queue_size: int) -> RunReport:
    """Measure how fast items are pushed with no consumers."""
    report_case(f"Operation push, item={item_count}, subq={sub_queue_size}")
    queue = LockedQueue(sub_queue_size)
    queue.reserve(item_count)
    values = [object() for _ in range(item_count)]
    result = RunReport()
    timed = TimedGuard("Populate")
    for value in values:
        queue.push(value)
    timed.stop()
    timed.report()
    result.items_per_sec = _rate(item_count, timed.milliseconds())
    result.print()
    return result


def run_pop(
    load_type: BenchLoadType, item_count: int, thread_count: int, sub_queue_size: int
) -> RunReport:
    """Measure how fast consumers drain an already filled queue."""
    _check_threads(thread_count)
    report_case(
        f"Operation pop, item={item_count}, thread={thread_count}, "
        f"subq={sub_queue_size}, load={load_type}"
    )
    queue = LockedQueue(sub_queue_size)
    queue.reserve(item_count)
    workers = [ConsumerThread(queue, load_type) for _ in range(thread_count)]
    result = RunReport()
    try:
        _warmup(queue, workers)
        # Pause the consumers to isolate the push and pop phases.
        for worker in workers:
            worker.pause()
        for value in [object() for _ in range(item_count)]:
            queue.push(value)

        timed = TimedGuard("Consume")
        for worker in workers:
            worker.resume()
        _wait_total(workers, item_count)
        timed.stop()
        timed.report()
        _finish_report(result, workers, item_count, timed.milliseconds())
    finally:
        for worker in workers:
            worker.stop()
    result.print()
    return result


def run_push_pop(
    load_type: BenchLoadType, item_count: int, thread_count: int, sub_queue_size: int
) -> RunReport:
    """Measure pushing and concurrent consuming together."""
    _check_threads(thread_count)
    report_case(
        f"Operation push-pop, item={item_count}, thread={thread_count}, "
        f"subq={sub_queue_size}, load={load_type}"
    )
    queue = LockedQueue(sub_queue_size)
    queue.reserve(item_count)
    workers = [ConsumerThread(queue, load_type) for _ in range(thread_count)]
    result = RunReport()
    try:
        _warmup(queue, workers)
        values = [object() for _ in range(item_count)]
        timed = TimedGuard("Push and pop")
        for value in values:
            queue.push(value)
        _wait_total(workers, item_count)
        timed.stop()
        timed.report()
        _finish_report(result, workers, item_count, timed.milliseconds())
    finally:
        for worker in workers:
            worker.stop()
    result.print()
    return result


def run(cmdline: CommandLine) -> RunReport:
    """Run the operation selected by ``-op`` once."""
    operation = cmdline.get_str("op")
    item_count = cmdline.get_u32("items")
    # Optional for queues that are not block-based.
    sub_queue_size = cmdline.get_u32("subqsize") if cmdline.is_present("subqsize") else 0
    if operation == "push":
        return run_push(item_count, sub_queue_size)

    load_type = load_type_from_string(cmdline.get_str("load"))
    thread_count = cmdline.get_u32("threads")
    if operation == "pop":
        return run_pop(load_type, item_count, thread_count, sub_queue_size)
    if operation == "push-pop":
        return run_push_pop(load_type, item_count, thread_count, sub_queue_size)
    raise CommandLineError(f"Unknown operation '{operation}'")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the benchmark; with three runs or more print an aggregated report."""
    if argv is None:
        argv = sys.argv[1:]
    try:
        cmdline = CommandLine(argv)
        run_count = cmdline.get_u32("runs") if cmdline.is_present("runs") else 1
        reports = [run(cmdline) for _ in range(run_count)]
    except (CommandLineError, ValueError) as error:
        print(error, file=sys.stderr)
        return 2
    if run_count < 3:
        return 1
    reports.sort(key=lambda r: r.items_per_sec)
    report()
    report("== Aggregated report:")
    # With an even count the lower middle is printed on purpose.
    median = reports[run_count // 2]
    report(f"Items per second min:        {reports[0].items_per_sec:12d}")
    report(f"Items per second median:     {median.items_per_sec:12d}")
    report(f"Items per second max:        {reports[-1].items_per_sec:12d}")
    report()
    report("== Median report:")
    median.print()
    return 0


if __name__ == "__main__":
    sys.exit(main())