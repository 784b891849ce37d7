"""Multi-producer queue benchmark: many sender threads, one receiver thread."""

from __future__ import annotations

import sys
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

from taskbench.bench import (
    BenchLoadType,
    CommandLine,
    CommandLineError,
    TimedGuard,
    load_type_from_string,
    make_work,
    report,
    report_case,
)
from taskbench.queues import LockedMultiProducerQueue

_POLL_INTERVAL = 0.001


class Counter(Protocol):
    """A thread-safe counter shared by senders and the receiver."""

    def increment(self) -> None: ...

    def take(self) -> int: ...


class _SharedCounter:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    def increment(self) -> None:
        with self._lock:
            self._value += 1

    def take(self) -> int:
        with self._lock:
            value, self._value = self._value, 0
        return value


def _check_load(load_type: BenchLoadType) -> None:
    if load_type is BenchLoadType.HEAVY:
        raise ValueError("Heavy load is not supported by this benchmark")


class _GatedThread:
    """A thread that gets ready, then waits for a go signal to go on."""

    def __init__(self, name: str) -> None:
        self._ready = threading.Event()
        self._go = threading.Event()
        self._stop_requested = threading.Event()
        self._thread = threading.Thread(target=self._main, name=name, daemon=True)
        self._thread.start()
        self._ready.wait()

    def _release(self) -> None:
        if self._go.is_set():
            raise RuntimeError("Thread has already begun")
        self._go.set()

    def _prepare(self) -> None:
        pass

    def _work(self) -> None:
        raise NotImplementedError

    def _main(self) -> None:
        self._prepare()
        self._ready.set()
        self._go.wait()
        self._work()


class SenderThread(_GatedThread):
    """Pushes a prepared batch of items into the queue one by one."""

    def __init__(
        self,
        queue: LockedMultiProducerQueue,
        signal: Optional[threading.Event],
        shared_size: Counter,
        item_count: int,
        load_type: BenchLoadType,
    ) -> None:
        _check_load(load_type)
        self._queue = queue
        self._signal = signal
        self._shared_size = shared_size
        self._item_count = item_count
        self._load_type = load_type
        self._items: deque[Any] = deque()
        super().__init__("bench-sender")

    def begin(self) -> None:
        """Let the sender start pushing its items."""
        self._release()

    def stop(self) -> None:
        self._stop_requested.set()
        self._go.set()
        self._thread.join()

    def _prepare(self) -> None:
        self._items.extend(object() for _ in range(self._item_count))

    def _work(self) -> None:
        while not self._stop_requested.is_set() and self._items:
            make_work(self._load_type)
            self._shared_size.increment()
            if self._queue.push(self._items.popleft()) and self._signal is not None:
                self._signal.set()


class ReceiverThread(_GatedThread):
    """Takes everything from the queue in a loop and counts received items."""

    def __init__(
        self,
        queue: LockedMultiProducerQueue,
        signal: Optional[threading.Event],
        shared_size: Counter,
        load_type: BenchLoadType,
    ) -> None:
        _check_load(load_type)
        self._queue = queue
        self._signal = signal
        self._shared_size = shared_size
        self._load_type = load_type
        self._count_lock = threading.Lock()
        self._item_count = 0
        self._items: list[Any] = []
        super().__init__("bench-receiver")

    def begin(self) -> None:
        """Let the receiver start taking items."""
        self._release()

    def stat_pop_item_count(self) -> int:
        """Return the number of items received since the last call and reset it."""
        with self._count_lock:
            count, self._item_count = self._item_count, 0
        return count

    def stop(self) -> None:
        self._stop_requested.set()
        self._go.set()
        while self._thread.is_alive():
            if self._signal is not None:
                self._signal.set()
            self._thread.join(_POLL_INTERVAL)
        self._items.clear()

    def _work(self) -> None:
        while not self._stop_requested.is_set():
            make_work(self._load_type)
            if self._signal is not None:
                self._signal.wait()
                self._signal.clear()
            self._items.extend(self._queue.pop_all())
            received = self._shared_size.take()
            with self._count_lock:
                self._item_count += received


@dataclass
class RunReport:
    items_per_sec: int = 0

    def lines(self) -> list[str]:
        return [f"Items/sec:                  {self.items_per_sec:12d}", ""]

    def print(self) -> None:
        for line in self.lines():
            report(line)


def run(
    load_type: BenchLoadType, use_signal: bool, item_count: int, sender_count: int
) -> RunReport:
    """Measure how fast ``sender_count`` threads deliver ``item_count`` items."""
    _check_load(load_type)
    if sender_count < 1:
        raise ValueError("At least one sender thread is required")
    signal = threading.Event() if use_signal else None
    queue = LockedMultiProducerQueue()
    shared_size = _SharedCounter()
    receiver = ReceiverThread(queue, signal, shared_size, load_type)
    senders: list[SenderThread] = []
    try:
        for _ in range(sender_count):
            # +1 covers item counts not divisible by the sender count.
            senders.append(
                SenderThread(
                    queue, signal, shared_size, item_count // sender_count + 1, load_type
                )
            )
        report_case(
            f"Load {load_type}, senders={sender_count}, items total={item_count}, "
            f"with signal={int(use_signal)}"
        )
        timed = TimedGuard("Wait receipt")
        receiver.begin()
        for sender in senders:
            sender.begin()
        progress = 0
        while progress < item_count:
            progress += receiver.stat_pop_item_count()
            time.sleep(_POLL_INTERVAL)
        timed.stop()
        timed.report()
        duration_ms = timed.milliseconds()
    finally:
        receiver.stop()
        for sender in senders:
            sender.stop()

    result = RunReport(
        items_per_sec=int(item_count * 1000 / duration_ms) if duration_ms > 0 else 0
    )
    result.print()
    return result


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the benchmark; with three runs or more print an aggregated report."""
    if argv is None:
        argv = sys.argv[1:]
    try:
        cmdline = CommandLine(argv)
        load_type = load_type_from_string(cmdline.get_str("load"))
        sender_count = cmdline.get_u32("senders")
        item_count = cmdline.get_u32("items")
        use_signal = cmdline.get_u32("signal") != 0
        run_count = cmdline.get_u32("runs") if cmdline.is_present("runs") else 1
        reports = [
            run(load_type, use_signal, item_count, sender_count) for _ in range(run_count)
        ]
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
    report(f"Items/sec min:              {reports[0].items_per_sec:12d}")
    report(f"Items/sec median:           {median.items_per_sec:12d}")
    report(f"Items/sec max:              {reports[-1].items_per_sec:12d}")
    report()
    report("== Median report:")
    median.print()
    return 0


if __name__ == "__main__":
    sys.exit(main())