from __future__ import annotations

import itertools
import logging
import multiprocessing as mp
import os
import sys
import time
from pathlib import Path
from typing import Iterator, Optional, Union, cast

import dill as pickle  # type: ignore[import-untyped]

from blackfuzz import common, harness, mutator, registry, seed

MPContext = Union[mp.context.ForkContext, mp.context.ForkServerContext, mp.context.SpawnContext]

# Mutants handed to the pool per worker before waiting for results
BATCH_SIZE = 16

_worker_harness: Optional[harness.Harness] = None


def worker_init(
    runner_bytes: bytes,
    work_dir: Path,
    input_name: str,
    output_name: str,
) -> None:
    global _worker_harness  # noqa: PLW0603

    runner = cast(harness.Runner, pickle.loads(runner_bytes))  # noqa: S301
    _worker_harness = harness.Harness(
        runner=runner,
        work_dir=work_dir / f"worker-{os.getpid()}",
        input_name=input_name,
        output_name=output_name,
    )


def worker_run(data: bytes) -> tuple[bytes, harness.Outcome]:
    assert _worker_harness is not None, "worker not initialized"
    return data, _worker_harness.run(data)


class Fuzzer:
    def __init__(  # noqa: PLR0913
        self,
        seed_file: Path,
        crash_dir: Path,
        iterations: int,
        target: Optional[list[str]] = None,
        work_dir: Optional[Path] = None,
        output_name: str = "output.dat",
        timeout: Optional[float] = None,
        rand_seed: int = mutator.DEFAULT_SEED,
        num_workers: int = 1,
        start_method: Optional[str] = None,
        stat_frequency: int = 5,
        runner: Optional[harness.Runner] = None,
    ):
        """
        Fuzz-test an external program by mutating a single seed file.

        Every byte value of the seed is nulled once, then the seed is corrupted randomly for the
        given number of iterations. Failing runs are deduplicated by their output and one sample
        per distinct failure is stored in crash_dir.

        Arguments:
        ---------
        seed_file:      Well-formed input to derive mutants from.
        crash_dir:      Directory to store crash samples in. Will be created if missing.
        iterations:     Number of random corruptions after the value sweep.
        target:         Program (and leading arguments) to test. Called with the path of the
                        mutant and the path of an output file.
        work_dir:       Directory for the mutant, the target output and the captured output
                        (default: current directory).
        output_name:    Name of the output file passed to the target. Its content is ignored.
        timeout:        Seconds after which a target run is considered hanging.
        rand_seed:      Seed of the random generator. Identical seeds yield identical mutants.
        num_workers:    Number of parallel workers executing the target.
        start_method:   Multiprocessing start method to use (spawn, forkserver or fork).
                        Defaults to "spawn".
        stat_frequency: Frequency in seconds in which to log statistics.
        runner:         Runner to use instead of executing target as a process.
        """

        if runner is None and not target:
            raise ValueError("Either target or runner must be given")
        if num_workers < 1:
            raise ValueError(f"Invalid number of workers ({num_workers})")

        self._current_runs = 0
        self._start_time = time.time()
        self._last_stats_time = time.time()

        self._mp_ctx: MPContext = (
            mp.get_context("fork")
            if start_method == "fork"
            else mp.get_context("forkserver")
            if start_method == "forkserver"
            else mp.get_context("spawn")
        )

        self._seed_file = seed_file
        self._crash_dir = crash_dir
        self._iterations = iterations
        self._work_dir = work_dir or Path()
        self._input_name = "input" + (seed_file.suffix or ".dat")
        self._output_name = output_name

        for name in [self._input_name, self._output_name]:
            if (self._work_dir / name).resolve() == seed_file.resolve():
                raise common.SetupError(
                    f"Seed file {seed_file} would be overwritten during fuzzing, "
                    "rename it or use a different work directory",
                )

        self._num_workers = num_workers
        self._stat_frequency = stat_frequency
        self._runner: harness.Runner = runner or harness.ProcessRunner(
            command=cast(list[str], target),
            timeout=timeout,
        )
        self._mutator = mutator.Mutator(seed=rand_seed)
        self._registry = registry.CrashRegistry(crash_dir=crash_dir, suffix=seed_file.suffix)

    @property
    def registry(self) -> registry.CrashRegistry:
        return self._registry

    def _log_stats(self, log_type: str) -> None:
        end_time = time.time()
        elapsed = end_time - self._start_time
        execs_per_second = int(self._current_runs / elapsed) if elapsed > 0 else 0

        self._last_stats_time = end_time

        logging.info(
            "#%9.9d %s crashes: %d, hangs: %d, exec/s: %d",
            self._current_runs,
            log_type,
            len(self._registry),
            self._registry.hangs,
            execs_per_second,
        )

    def _execute(self, mutants: Iterator[bytes]) -> Iterator[tuple[bytes, harness.Outcome]]:
        if self._num_workers == 1:
            h = harness.Harness(
                runner=self._runner,
                work_dir=self._work_dir,
                input_name=self._input_name,
                output_name=self._output_name,
            )
            for data in mutants:
                yield data, h.run(data)
            return

        with self._mp_ctx.Pool(
            processes=self._num_workers,
            initializer=worker_init,
            initargs=(
                pickle.dumps(self._runner),
                self._work_dir,
                self._input_name,
                self._output_name,
            ),
        ) as pool:
            # At most one batch is generated ahead of classification. imap returns results in
            # submission order.
            while True:
                batch = list(itertools.islice(mutants, self._num_workers * BATCH_SIZE))
                if not batch:
                    break
                yield from pool.imap(worker_run, batch)

    def run(self) -> registry.CrashRegistry:
        data = seed.load(self._seed_file)
        mutants = self._mutator.mutants(data, self._iterations)

        self._start_time = time.time()
        self._last_stats_time = self._start_time

        logging.info(
            "START size: %d, mutants: %d, workers: %d",
            len(data),
            mutator.BYTE_MAX - mutator.BYTE_MIN + 1 + self._iterations,
            self._num_workers,
        )

        for mutant, outcome in self._execute(mutants):
            self._current_runs += 1
            if self._registry.record(outcome, mutant):
                self._log_stats("  NEW")
            elif (time.time() - self._last_stats_time) > self._stat_frequency:
                self._log_stats("PULSE")

        self._log_stats(" DONE")

        if self._registry.silent:
            logging.info("Ignored %d failures without output", self._registry.silent)

        return self._registry

    def start(self) -> None:
        result = self.run()

        logging.info(result.report())

        if len(result):
            sys.exit(1)

        sys.exit(0)
