from __future__ import annotations

import random
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, TypeVar

from blackfuzz import common, harness

ResultType = TypeVar("ResultType")


def mock_time() -> Callable[[], int]:
    current = 0

    def get_time() -> int:
        nonlocal current
        current += 1
        return current

    return get_time


class ScriptedRand(random.Random):
    """Random source returning a fixed sequence of values from randrange."""

    def __init__(self, values: list[int]) -> None:
        super().__init__(0)
        self._values = list(values)
        self.calls: list[tuple[int, Optional[int]]] = []

    def randrange(self, start: int, stop: Optional[int] = None, step: int = 1) -> int:  # type: ignore[override]  # noqa: ARG002
        self.calls.append((start, stop))
        assert self._values, "script exhausted"
        return self._values.pop(0)


class FakeRunner(harness.Runner):
    """Runner calling a Python function on the staged input instead of executing a program."""

    def __init__(self, func: Callable[[bytes], harness.Outcome]) -> None:
        self._func = func
        self.inputs: list[bytes] = []
        self.paths: list[tuple[Path, Path]] = []

    def run(self, input_path: Path, output_path: Path) -> harness.Outcome:
        data = input_path.read_bytes()
        self.inputs.append(data)
        self.paths.append((input_path, output_path))
        return self._func(data)


class UnlaunchableRunner(harness.Runner):
    def run(self, input_path: Path, output_path: Path) -> harness.Outcome:  # noqa: ARG002
        raise common.LaunchError("Cannot execute ./missing: No such file or directory")


def passing(_: bytes) -> harness.Outcome:
    return harness.Outcome(status=0, message="")


def segfault_at_offset_2(data: bytes) -> harness.Outcome:
    if len(data) > 2 and data[2] == 0:
        return harness.Outcome(status=139, message="segfault at offset 2\n")
    return harness.Outcome(status=0, message="")


class DummyPool:
    """In-process pool which, like multiprocessing.Pool, consumes its whole input up front."""

    def __init__(
        self,
        processes: int,
        initializer: Callable[..., None],
        initargs: tuple[object, ...],
    ) -> None:
        self.processes = processes
        self.terminated = False
        initializer(*initargs)

    def __enter__(self) -> DummyPool:
        return self

    def __exit__(self, *_: object) -> None:
        self.terminated = True

    def imap(
        self,
        func: Callable[[bytes], ResultType],
        iterable: Iterable[bytes],
    ) -> Iterator[ResultType]:
        tasks = list(iterable)
        return (func(t) for t in tasks)


class DummyContext:
    def __init__(self) -> None:
        self.pools: list[DummyPool] = []

    def Pool(  # noqa: N802
        self,
        processes: int,
        initializer: Callable[..., None],
        initargs: tuple[object, ...],
    ) -> DummyPool:
        pool = DummyPool(processes=processes, initializer=initializer, initargs=initargs)
        self.pools.append(pool)
        return pool


def counting(data: Iterable[bytes], counter: list[int]) -> Iterator[bytes]:
    for d in data:
        counter[0] += 1
        yield d
