"""A minimal task scheduler: one locked ready-queue served by worker threads.

It only executes tasks. Deadlines, wakeups and signals are not supported and
raise :class:`UnsupportedOperation`.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Callable, NoReturn, Optional

TaskCallback = Callable[["Task"], None]


class UnsupportedOperation(RuntimeError):
    """Raised for scheduler features this scheduler does not provide."""

    def __init__(self, feature: str) -> None:
        super().__init__(f"{feature} are not supported by this scheduler")
        self.feature = feature


def _refuse(feature: str) -> NoReturn:
    raise UnsupportedOperation(feature)


def _check_task(task: object) -> Task:
    if not isinstance(task, Task):
        raise TypeError(f"expected a Task, got {type(task).__name__}")
    return task


class Task:
    """A unit of work; its callback receives the task itself."""

    def __init__(self, callback: Optional[TaskCallback] = None) -> None:
        self.callback = callback

    def set_callback(self, callback: TaskCallback) -> None:
        self.callback = callback

    def receive_signal(self) -> bool:
        _refuse("signals")


class TaskScheduler:
    """Runs posted tasks on ``thread_count`` worker threads."""

    def __init__(self, name: str, thread_count: int, sub_queue_size: int = 0) -> None:
        self.name = name
        self.sub_queue_size = sub_queue_size
        self.reserved = 0
        self._cond = threading.Condition()
        self._stopped = False
        self._queue: deque[Task] = deque()
        self._workers = tuple(TaskSchedulerThread(name, self) for _ in range(thread_count))

    def post(self, task: Task) -> None:
        if task.callback is None:
            raise ValueError("Task has no callback")
        with self._cond:
            was_empty = not self._queue
            self._queue.append(task)
            # Workers only wait once the queue is drained, so waking them on
            # the empty -> non-empty transition is enough.
            if was_empty:
                self._cond.notify_all()

    def post_one_shot(self, func: Callable[[], None]) -> None:
        """Run ``func`` once on a worker thread."""
        self.post(Task(lambda _task: func()))

    def post_delay(self, task: Task, delay: int) -> None:
        _check_task(task)
        if delay < 0:
            raise ValueError("delay must not be negative")
        _refuse("delays")

    def wakeup(self, task: Task) -> None:
        _check_task(task)
        _refuse("wakeups")

    def signal(self, task: Task) -> None:
        _check_task(task)
        _refuse("signals")

    def reserve(self, count: int) -> None:
        """Record a capacity hint; the ready-queue grows on demand anyway."""
        if count < 0:
            raise ValueError("count must not be negative")
        with self._cond:
            self.reserved = max(self.reserved, count)

    def threads(self) -> tuple[TaskSchedulerThread, ...]:
        return self._workers

    def close(self) -> None:
        """Stop the workers once the queue is drained and wait for them."""
        with self._cond:
            self._stopped = True
            self._cond.notify_all()
        for worker in self._workers:
            worker.join()

    def __enter__(self) -> TaskScheduler:
        return self

    def __exit__(self, *args) -> None:
        self.close()


class TaskSchedulerThread:
    """One worker thread of a :class:`TaskScheduler`."""

    def __init__(self, name: str, scheduler: TaskScheduler) -> None:
        self._scheduler = scheduler
        self._stat_lock = threading.Lock()
        self._execute_count = 0
        self._thread = threading.Thread(target=self._run, name=f"tsksch{name}", daemon=True)
        self._thread.start()

    def stat_pop_execute_count(self) -> int:
        """Return the number of executed tasks since the last call and reset it."""
        with self._stat_lock:
            count, self._execute_count = self._execute_count, 0
        return count

    def stat_pop_schedule_count(self) -> int:
        """This scheduler has no scheduling phase, so the count is always zero."""
        return 0

    def join(self) -> None:
        self._thread.join()

    def _run(self) -> None:
        sched = self._scheduler
        cond = sched._cond
        with cond:
            while True:
                batch = 0
                while sched._queue:
                    task = sched._queue.popleft()
                    cond.release()
                    try:
                        batch += 1
                        task.callback(task)
                    finally:
                        cond.acquire()
                with self._stat_lock:
                    self._execute_count += batch
                if sched._stopped:
                    break
                cond.wait()