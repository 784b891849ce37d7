# taskbench

Small command-line benchmarks that measure how fast simple, lock-based
concurrency primitives move work between threads:

* a task scheduler whose worker threads share one lock-protected ready queue
  (`taskbench.scheduler`),
* a multi-consumer queue: one producer, many consumer threads
  (`taskbench.queues.LockedQueue`),
* a multi-producer queue: many sender threads, one receiver that takes
  everything at once (`taskbench.queues.LockedMultiProducerQueue`).

Each benchmark prints a per-run report with items (or executions) per second
and per-thread statistics. When run three or more times it also prints an
aggregated report with the minimum, median and maximum throughput, followed by
the full report of the median run.

## Installation

```
pip install .
```

Running the tests:

```
pip install ".[test]"
pytest
```

## Command-line arguments

All benchmarks take arguments as `-name value` pairs: an argument starting with
`-` is a name, and the argument right after it is its value. Arguments that do
not start with `-` and are not a value are ignored. Names may contain ASCII
letters, digits, `-` and `_`. Numeric values must be non-negative decimal
integers that fit in 32 bits.

Load types select how much simulated work is done per item:

| name    | meaning                         |
|---------|---------------------------------|
| `empty` | no extra work                   |
| `nano`  | a very small amount of work     |
| `micro` | a small amount of work          |
| `heavy` | a larger amount of work         |

`-runs N` repeats the benchmark `N` times (default 1).

Exit status:

* `0` – three or more runs; the aggregated report was printed;
* `1` – fewer than three runs; only the individual reports were printed;
* `2` – a missing or malformed argument, an unknown load type or operation,
  or an unsupported combination; the error message goes to standard error.

Every command can also be started as a module, for example
`python -m taskbench.bench_scheduler -load nano ...`.

## Task scheduler

```
taskbench-scheduler -load nano -threads 4 -tasks 10000 -exes 100 -runs 5
```

* `-load` – `nano` (no extra work) or `micro` (a little work per execution).
  `empty` is rejected. `heavy` relies on signals, wakeups and delays, which
  this scheduler does not have, so a `heavy` run stops with an error.
* `-threads` – number of worker threads (at least 1).
* `-tasks` – number of tasks posted at once (at least 1).
* `-exes` – how many times each task runs; it re-posts itself until then.

Before measuring, 10000 one-shot tasks are run as a warm-up. The report shows
microseconds per execution, executions per second (overall and, with more than
one thread, per thread) and, for every worker, how many tasks it executed. The
`sched` column is always 0, as this scheduler has no separate scheduling step.

## Multi-consumer queue

```
taskbench-mcqueue -op push-pop -load micro -items 1000000 -threads 4 -runs 3
```

* `-op` – one of
  * `push`: time pushing `-items` values into the queue with no consumers;
  * `pop`: fill the queue while the consumers are paused, then time how long
    `-threads` consumers take to drain it;
  * `push-pop`: time pushing while the consumers drain the queue at the same
    time.
* `-items` – number of values.
* `-threads` – number of consumer threads, at least 1 (not used by `push`).
* `-load` – any load type (not used by `push`). Consumers do extra work per
  value only for `micro`; the other types add none.
* `-subqsize` – optional sub-queue size; accepted for compatibility and has no
  effect on the lock-based queue.

`pop` and `push-pop` first push 10000 values as a warm-up. The report shows
items per second, items per second per thread (with more than one thread) and
how many values each consumer popped.

## Multi-producer queue

```
taskbench-mpqueue -load nano -senders 4 -items 1000000 -signal 1 -runs 3
```

* `-load` – `empty`, `nano` or `micro`: work done by each sender per item and
  by the receiver per iteration. `heavy` is rejected.
* `-senders` – number of sender threads (at least 1).
* `-items` – total number of items. Each sender prepares
  `items // senders + 1` items; timing stops once `-items` have been received.
* `-signal` – non-zero to make the receiver sleep on an event that senders set
  when they push into an empty queue, `0` to make it poll.

The report shows items received per second.

## What the package does not do

* The scheduler only executes tasks in the order they were posted.
  `TaskScheduler.post_delay`, `TaskScheduler.wakeup`, `TaskScheduler.signal`
  and `Task.receive_signal` raise `taskbench.scheduler.UnsupportedOperation`;
  there are no deadlines either.
* The queues are plain lock-protected queues; there are no lock-free or
  block-based queues to compare against, and no lock contention statistics
  are collected.

## Using the pieces from Python

```python
from taskbench.scheduler import Task, TaskScheduler

with TaskScheduler("demo", 2) as sched:
    sched.post_one_shot(lambda: print("hello from a worker"))
    sched.post(Task(lambda task: print("task", task)))
```

* `TaskScheduler(name, thread_count, sub_queue_size=0)` starts its worker
  threads at once. `post(task)` queues a `Task` (it must have a callback, which
  is called with the task itself); `post_one_shot(func)` runs a no-argument
  function once. `threads()` returns the `TaskSchedulerThread` workers, whose
  `stat_pop_execute_count()` returns and resets the number of executed tasks.
  `close()` — also called when leaving the `with` block — lets the workers
  drain the queue and waits for them to finish.
* `taskbench.queues.LockedQueue` – `push(value)` returns `True` if the queue
  was empty before; `pop()` returns the oldest value or `None` when empty.
  `LockedQueueConsumer(queue)` pops from an attached queue and raises
  `RuntimeError` when detached.
* `taskbench.queues.LockedMultiProducerQueue` – `push(value)` returns `True`
  if the queue was empty before; `pop_all()` returns every value in push order
  as a list; `is_empty()`.
* `taskbench.bench` – the argument parser `CommandLine` (raising
  `CommandLineError`), the `BenchLoadType` enum with `load_type_from_string`,
  the work helpers `make_work`, `make_nano_work`, `make_micro_work`,
  `make_heavy_work`, and the timer `TimedGuard` (`stop()`, `milliseconds()`,
  `report()`).
* Each benchmark module has a `run(...)` function returning a `RunReport`
  dataclass whose `lines()` gives the printed report.