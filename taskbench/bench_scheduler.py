"""Task scheduler benchmark: tasks that re-post themselves until done."""

from __future__ import annotations

import random
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from taskbench.bench import (
    BenchLoadType,
    CommandLine,
    CommandLineError,
    TimedGuard,
    load_type_from_string,
    make_heavy_work,
    make_micro_work,
    report,
    report_case,
)
from taskbench.scheduler import Task, TaskScheduler

WARMUP_TASK_COUNT = 10000
_POLL_INTERVAL = 0.001


class _Counter:
    """A small thread-safe counter."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    def increment(self) -> None:
        with self._lock:
            self._value += 1

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class BenchTaskCtl:
    """Owns the benchmark tasks and tracks how far they have got."""

    def __init__(self, task_count: int, execute_count: int, scheduler: TaskScheduler) -> None:
        if task_count < 1:
            raise ValueError("At least one task is required")
        self.task_count = task_count
        self.execute_count = execute_count
        self.scheduler = scheduler
        self.tasks = [BenchTask() for _ in range(task_count)]
        self._stop_count = _Counter()
        self._total_execute_count = _Counter()
        self._error_lock = threading.Lock()
        self._error: Optional[BaseException] = None

    @property
    def stop_count(self) -> int:
        return self._stop_count.value

    @property
    def total_execute_count(self) -> int:
        return self._total_execute_count.value

    def _note_executed(self) -> None:
        self._total_execute_count.increment()

    def _note_stopped(self) -> None:
        self._stop_count.increment()

    def _fail(self, error: BaseException) -> None:
        with self._error_lock:
            if self._error is None:
                self._error = error

    def _raise_if_failed(self) -> None:
        with self._error_lock:
            error = self._error
        if error is not None:
            raise error

    def warmup(self) -> None:
        """Run a burst of one-shot tasks, then clear the worker statistics."""
        executed = _Counter()
        for _ in range(WARMUP_TASK_COUNT):
            self.scheduler.post_one_shot(executed.increment)
        while executed.value != WARMUP_TASK_COUNT:
            time.sleep(_POLL_INTERVAL)
        # Clear the stats so the measured run starts clean.
        for thread in self.scheduler.threads():
            thread.stat_pop_execute_count()
            thread.stat_pop_schedule_count()

    def create(self, load_type: BenchLoadType) -> None:
        """Prepare every task for the given load."""
        for task in self.tasks:
            task.create(self, load_type)

    def wait_all_executed(self) -> None:
        total = self.execute_count * self.task_count
        self.wait_execute_count(total)
        executed = self.total_execute_count
        if executed != total:
            raise RuntimeError(f"Expected {total} executions, got {executed}")

    def wait_execute_count(self, count: int) -> None:
        while self.total_execute_count < count:
            self._raise_if_failed()
            time.sleep(_POLL_INTERVAL)

    def wait_all_stopped(self) -> None:
        while self.stop_count != self.task_count:
            self._raise_if_failed()
            time.sleep(_POLL_INTERVAL)
        for task in self.tasks:
            if task.execute_count != self.execute_count:
                raise RuntimeError(
                    f"Task executed {task.execute_count} times, "
                    f"expected {self.execute_count}"
                )

    def post_all(self) -> None:
        for task in self.tasks:
            self.scheduler.post(task)


class BenchTask(Task):
    """A task that re-posts itself until it has run the wanted number of times."""

    def __init__(self) -> None:
        super().__init__()
        self.execute_count = 0
        self.ctl: Optional[BenchTaskCtl] = None

    def create(self, ctl: BenchTaskCtl, load_type: BenchLoadType) -> None:
        bodies: dict[BenchLoadType, Callable[[Task], None]] = {
            BenchLoadType.NANO: self._execute_nano,
            BenchLoadType.MICRO: self._execute_micro,
            BenchLoadType.HEAVY: self._execute_heavy,
        }
        body = bodies.get(load_type)
        if body is None:
            raise ValueError(f"Unsupported load type '{load_type}'")
        self.execute_count = 0
        self.ctl = ctl
        self.set_callback(self._guarded(body))

    def stop(self) -> None:
        self._ctl()._note_stopped()

    def _ctl(self) -> BenchTaskCtl:
        if self.ctl is None:
            raise RuntimeError("Task is not created")
        return self.ctl

    def _guarded(self, body: Callable[[Task], None]) -> Callable[[Task], None]:
        def callback(task: Task) -> None:
            try:
                body(task)
            except Exception as error:  # reported to the waiting thread
                self._ctl()._fail(error)

        return callback

    def _begin(self, task: Task) -> BenchTaskCtl:
        if task is not self:
            raise RuntimeError("Task executed with a foreign task object")
        ctl = self._ctl()
        self.execute_count += 1
        ctl._note_executed()
        return ctl

    def _execute_nano(self, task: Task) -> None:
        ctl = self._begin(task)
        if self.execute_count >= ctl.execute_count:
            self.stop()
        else:
            ctl.scheduler.post(task)

    def _execute_micro(self, task: Task) -> None:
        ctl = self._begin(task)
        make_micro_work()
        if self.execute_count >= ctl.execute_count:
            self.stop()
        else:
            ctl.scheduler.post(task)

    def _execute_heavy(self, task: Task) -> None:
        if task is not self:
            raise RuntimeError("Task executed with a foreign task object")
        task.receive_signal()
        ctl = self._begin(task)
        make_heavy_work()
        is_last = self.execute_count >= ctl.execute_count
        sched = ctl.scheduler
        if self.execute_count % 10 == 0:
            sched.wakeup(random.choice(ctl.tasks))
            sched.signal(random.choice(ctl.tasks))
            sched.wakeup(random.choice(ctl.tasks))
            sched.signal(random.choice(ctl.tasks))
            if is_last:
                self.stop()
            else:
                sched.post(task)
            return
        if is_last:
            self.stop()
        elif self.execute_count % 3 == 0:
            sched.post_delay(task, 2)
        elif self.execute_count % 2 == 0:
            sched.post_delay(task, 1)
        else:
            sched.post(task)


@dataclass
class ThreadReport:
    exec_count: int = 0
    sched_count: int = 0


@dataclass
class RunReport:
    exec_per_sec: int = 0
    exec_per_sec_per_thread: int = 0
    us_per_exec: float = 0.0
    threads: list[ThreadReport] = field(default_factory=list)

    def lines(self) -> list[str]:
        result = [
            f"Microseconds per exec:      {self.us_per_exec:12.6f}",
            f"Exec per second:            {self.exec_per_sec:12d}",
        ]
        if len(self.threads) > 1:
            result.append(f"Exec per second per thread: {self.exec_per_sec_per_thread:12d}")
        result.extend(
            f"Thread {index:2d}: exec: {thread.exec_count:12d}, sched: {thread.sched_count:9d}"
            for index, thread in enumerate(self.threads)
        )
        result.append("")
        return result

    def print(self) -> None:
        for line in self.lines():
            report(line)


def run(
    load_type: BenchLoadType, thread_count: int, task_count: int, execute_count: int
) -> RunReport:
    """Run ``task_count`` tasks ``execute_count`` times each on ``thread_count`` threads."""
    if thread_count < 1:
        raise ValueError("At least one worker thread is required")
    if load_type is BenchLoadType.EMPTY:
        raise ValueError(f"Unsupported load type '{load_type}'")
    result = RunReport()
    with TaskScheduler("bench", thread_count, 5000) as sched:
        sched.reserve(task_count)
        ctl = BenchTaskCtl(task_count, execute_count, sched)
        ctl.warmup()
        ctl.create(load_type)
        report_case(
            f"Load {load_type}, thread={thread_count}, task={task_count}, "
            f"exec={execute_count}"
        )
        timed = TimedGuard("Post and wait")
        ctl.post_all()
        ctl.wait_all_stopped()
        timed.stop()
        timed.report()
        duration_ms = timed.milliseconds()
    # The workers have finished, so their statistics are complete.
    total = ctl.total_execute_count
    if duration_ms > 0:
        result.exec_per_sec = int(total * 1000 / duration_ms)
    result.exec_per_sec_per_thread = result.exec_per_sec // thread_count
    if total > 0:
        result.us_per_exec = duration_ms * 1000 / total * thread_count
    result.threads = [
        ThreadReport(thread.stat_pop_execute_count(), thread.stat_pop_schedule_count())
        for thread in sched.threads()
    ]
    result.print()
    return result


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the benchmark; with three runs or more print an aggregated report."""
    if argv is None:
        argv = sys.argv[1:]
    try:
        cmdline = CommandLine(argv)
        load_type = load_type_from_string(cmdline.get_str("load"))
        thread_count = cmdline.get_u32("threads")
        task_count = cmdline.get_u32("tasks")
        execute_count = cmdline.get_u32("exes")
        run_count = cmdline.get_u32("runs") if cmdline.is_present("runs") else 1
        reports = [
            run(load_type, thread_count, task_count, execute_count) for _ in range(run_count)
        ]
    except (CommandLineError, ValueError, RuntimeError) as error:
        print(error, file=sys.stderr)
        return 2
    if run_count < 3:
        return 1
    reports.sort(key=lambda r: r.exec_per_sec)
    report()
    report("== Aggregated report:")
    # With an even count the lower middle is printed on purpose.
    median = reports[run_count // 2]
    report(f"Exec per second min:        {reports[0].exec_per_sec:12d}")
    report(f"Exec per second median:     {median.exec_per_sec:12d}")
    report(f"Exec per second max:        {reports[-1].exec_per_sec:12d}")
    report()
    report("== Median report:")
    median.print()
    return 0


if __name__ == "__main__":
    sys.exit(main())