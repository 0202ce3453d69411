from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from blackfuzz import common

# Outside the range of exit codes (0..255) and signal terminations (negative signal number)
TIMEOUT_STATUS = -256


@dataclass
class Outcome:
    status: int
    message: str
    timed_out: bool = False

    @property
    def failed(self) -> bool:
        return self.status != 0


class Runner:
    def run(self, input_path: Path, output_path: Path) -> Outcome:
        raise NotImplementedError


class ProcessRunner(Runner):
    def __init__(
        self,
        command: list[str],
        timeout: Optional[float] = None,
        capture_name: str = "output.log",
    ) -> None:
        """
        Run an external program as `<command...> <input> <output>`.

        Arguments:
        ---------
        command:        Program and leading arguments.
        timeout:        Seconds after which the program is killed. No limit if None.
        capture_name:   Name of the file receiving the combined standard output and standard
                        error. It is placed next to the input file.
        """
        self.command = command
        self.timeout = timeout
        self.capture_name = capture_name

    def run(self, input_path: Path, output_path: Path) -> Outcome:
        args = [*self.command, str(input_path), str(output_path)]
        capture_path = input_path.parent / self.capture_name
        timed_out = False

        with capture_path.open("wb") as capture:
            try:
                status = subprocess.run(  # noqa: S603
                    args,
                    stdin=subprocess.DEVNULL,
                    stdout=capture,
                    stderr=subprocess.STDOUT,
                    timeout=self.timeout,
                    check=False,
                ).returncode
            except subprocess.TimeoutExpired:
                logging.debug("Target exceeded timeout of %s seconds", self.timeout)
                status = TIMEOUT_STATUS
                timed_out = True
            except OSError as e:
                raise common.LaunchError(f"Cannot execute {args[0]}: {e.strerror}") from e

        message = capture_path.read_bytes().decode("utf-8", errors="replace").strip()
        return Outcome(status=status, message=message, timed_out=timed_out)


class Harness:
    def __init__(
        self,
        runner: Runner,
        work_dir: Path,
        input_name: str = "input.dat",
        output_name: str = "output.dat",
    ) -> None:
        self._runner = runner
        self._work_dir = work_dir
        self.input_path = work_dir / input_name
        self.output_path = work_dir / output_name

    def run(self, data: bytes) -> Outcome:
        """Stage data in the input file, run the target on it and return its outcome."""

        try:
            if not self._work_dir.exists():
                self._work_dir.mkdir(parents=True)
            with self.input_path.open("wb") as f:
                f.write(data)
        except OSError as e:
            raise common.SetupError(
                f"Cannot write input file {self.input_path}: {e.strerror}",
            ) from e

        return self._runner.run(self.input_path, self.output_path)
