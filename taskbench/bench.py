"""Shared benchmark helpers: reporting, timing, command line and synthetic load."""

from __future__ import annotations

import random
import time
from enum import Enum
from typing import Optional, Sequence

_U32_MAX = 2**32 - 1
_U64_MAX = 2**64 - 1


class CommandLineError(ValueError):
    """Raised when the benchmark command line is malformed or incomplete."""


class BenchLoadType(Enum):
    """How much synthetic work a benchmark does per item."""

    EMPTY = "empty"
    NANO = "nano"
    MICRO = "micro"
    HEAVY = "heavy"

    def __str__(self) -> str:
        return self.value


def report(text: str = "") -> None:
    """Print one line of benchmark output."""
    print(text)


def report_suite(name: str) -> None:
    """Announce the start of a benchmark suite."""
    report(f"======== [{name}] suite")


def report_case(title: str) -> None:
    """Announce the start of a benchmark case."""
    report(f"==== [{title}] case")


def load_type_from_string(value: str) -> BenchLoadType:
    """Parse a load type name such as ``"nano"``."""
    try:
        return BenchLoadType(value)
    except ValueError:
        raise ValueError(f"Unknown load type '{value}'") from None


def _make_work(count: int) -> None:
    flag = False
    for _ in range(count):
        flag = bool(random.getrandbits(1))
        flag = True
    del flag


def make_nano_work() -> None:
    """Burn a tiny amount of CPU."""
    _make_work(20)


def make_micro_work() -> None:
    """Burn a small amount of CPU."""
    _make_work(100)


def make_heavy_work() -> None:
    """Burn a noticeable amount of CPU."""
    _make_work(500)


def make_work(load_type: BenchLoadType) -> None:
    """Do the amount of work that ``load_type`` stands for."""
    if load_type is BenchLoadType.EMPTY:
        return
    if load_type is BenchLoadType.NANO:
        make_nano_work()
    elif load_type is BenchLoadType.MICRO:
        make_micro_work()
    elif load_type is BenchLoadType.HEAVY:
        make_heavy_work()
    else:
        raise ValueError(f"Unknown load type {load_type!r}")


class TimedGuard:
    """Measures the time from creation until :meth:`stop`."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._stopped = False
        self._duration_ms = 0.0
        self._start = time.perf_counter()

    def stop(self) -> None:
        if self._stopped:
            raise RuntimeError(f"Timer '{self.name}' is already stopped")
        self._duration_ms = (time.perf_counter() - self._start) * 1000.0
        self._stopped = True

    def _require_stopped(self) -> None:
        if not self._stopped:
            raise RuntimeError(f"Timer '{self.name}' is still running")

    def report(self) -> None:
        self._require_stopped()
        report(f"== [{self.name}] took {self._duration_ms:.6f} ms")

    def milliseconds(self) -> float:
        self._require_stopped()
        return self._duration_ms


def _is_key_char(char: str) -> bool:
    return char.isascii() and (char.isalnum() or char in "-_")


def _parse_unsigned(name: str, value: str, limit: int, kind: str) -> int:
    if not (value.isascii() and value.isdigit()):
        raise CommandLineError(f"Couldn't convert arg {name} to {kind}")
    number = int(value)
    if number > limit:
        raise CommandLineError(f"Couldn't convert arg {name} to {kind}")
    return number


class CommandLine:
    """Pairs of ``-key value`` arguments; other arguments are ignored."""

    def __init__(self, argv: Sequence[str]) -> None:
        self._args: list[tuple[str, str]] = []
        items = iter(enumerate(argv, start=1))
        for number, arg in items:
            if not arg.startswith("-"):
                continue
            key = arg[1:]
            if not key:
                raise CommandLineError(f"Argument {number} is empty")
            if not all(_is_key_char(char) for char in key):
                raise CommandLineError(f"Argument {number} has invalid chars")
            _, value = next(items, (None, ""))
            self._args.append((key, value))

    def _find(self, name: str) -> Optional[str]:
        return next((value for key, value in self._args if key == name), None)

    def _get(self, name: str) -> str:
        value = self._find(name)
        if value is None:
            raise CommandLineError(f"Couldn't get arg {name}")
        return value

    def is_present(self, name: str) -> bool:
        return self._find(name) is not None

    def get_str(self, name: str) -> str:
        return self._get(name)

    def get_u64(self, name: str) -> int:
        return _parse_unsigned(name, self._get(name), _U64_MAX, "uint64")

    def get_u32(self, name: str) -> int:
        return _parse_unsigned(name, self._get(name), _U32_MAX, "uint32")