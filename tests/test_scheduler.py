import threading

import pytest

from taskbench.scheduler import Task, TaskScheduler, UnsupportedOperation

TIMEOUT = 10


def test_task_reposted_three_times():
    seen = []
    done = threading.Event()
    with TaskScheduler("tst", 1, 5) as sched:

        def callback(task):
            seen.append(task)
            if len(seen) < 3:
                sched.post(task)
            else:
                done.set()

        task = Task(callback)
        sched.post(task)
        assert done.wait(TIMEOUT)
    assert seen == [task, task, task]


def test_set_callback_replaces_callback():
    calls = []
    done = threading.Event()
    with TaskScheduler("tst", 1, 5) as sched:
        task = Task(lambda t: calls.append("old"))

        def new_callback(t):
            calls.append("new")
            done.set()

        task.set_callback(new_callback)
        sched.post(task)
        assert done.wait(TIMEOUT)
    assert calls == ["new"]


def test_order_with_single_thread():
    order = []
    with TaskScheduler("tst", 1, 5) as sched:
        tasks = [Task(lambda t, i=i: order.append(i)) for i in range(3)]
        for task in tasks:
            sched.post(task)
    assert order == [0, 1, 2]


def test_domino_all_workers_run_in_parallel():
    started = threading.Semaphore(0)
    finish = threading.Event()
    finished = []
    lock = threading.Lock()
    with TaskScheduler("tst", 3, 5) as sched:

        def callback(task):
            started.release()
            finish.wait(TIMEOUT)
            with lock:
                finished.append(task)

        tasks = [Task(callback) for _ in range(3)]
        for task in tasks:
            sched.post(task)
        assert all(started.acquire(timeout=TIMEOUT) for _ in tasks)
        finish.set()
    assert sorted(map(id, finished)) == sorted(map(id, tasks))


def test_close_drains_pending_tasks():
    count = [0]
    lock = threading.Lock()

    def bump(task):
        with lock:
            count[0] += 1

    sched = TaskScheduler("tst", 2, 5)
    for _ in range(500):
        sched.post(Task(bump))
    sched.close()
    assert count[0] == 500
    assert sum(t.stat_pop_execute_count() for t in sched.threads()) == 500


def test_one_shot_and_stats():
    count = [0]
    lock = threading.Lock()

    def bump():
        with lock:
            count[0] += 1

    sched = TaskScheduler("tst", 5, 5000)
    for _ in range(1000):
        sched.post_one_shot(bump)
    sched.close()
    assert count[0] == 1000
    threads = sched.threads()
    assert len(threads) == 5
    assert sum(t.stat_pop_execute_count() for t in threads) == 1000
    assert sum(t.stat_pop_execute_count() for t in threads) == 0
    assert [t.stat_pop_schedule_count() for t in threads] == [0] * 5


def test_micro_tasks_repost_until_done():
    execute_count = 5
    task_count = 200
    counts = {}
    stopped = threading.Semaphore(0)
    with TaskScheduler("tst", 5, 5000) as sched:

        def callback(task):
            counts[id(task)] = counts.get(id(task), 0) + 1
            if counts[id(task)] >= execute_count:
                stopped.release()
            else:
                sched.post(task)

        tasks = [Task(callback) for _ in range(task_count)]
        for task in tasks:
            sched.post(task)
        assert all(stopped.acquire(timeout=TIMEOUT) for _ in tasks)
    assert [counts[id(t)] for t in tasks] == [execute_count] * task_count


def test_unsupported_features():
    with TaskScheduler("tst", 1, 5) as sched:
        task = Task(lambda t: None)
        with pytest.raises(UnsupportedOperation):
            sched.post_delay(task, 3)
        with pytest.raises(UnsupportedOperation):
            sched.wakeup(task)
        with pytest.raises(UnsupportedOperation):
            sched.signal(task)
        with pytest.raises(UnsupportedOperation):
            task.receive_signal()


def test_post_without_callback_rejected():
    with TaskScheduler("tst", 1, 5) as sched:
        with pytest.raises(ValueError):
            sched.post(Task())