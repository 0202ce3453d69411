from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path

from blackfuzz import harness

MAX_NAME_LENGTH = 64

_unsafe_re = re.compile(r"[^A-Za-z0-9._-]")


def sanitize(signature: str) -> str:
    return _unsafe_re.sub("_", signature)[:MAX_NAME_LENGTH]


def evidence_name(signature: str, suffix: str = "") -> str:
    m = hashlib.sha256()
    m.update(signature.encode("utf-8", errors="replace"))
    return f"{sanitize(signature)}-{m.hexdigest()[:12]}{suffix}"


class CrashRegistry:
    def __init__(self, crash_dir: Path, suffix: str = "") -> None:
        """
        Deduplicate failures by their diagnostic output and keep one sample per failure.

        Arguments:
        ---------
        crash_dir:  Directory to store crash samples in. Will be created if missing.
        suffix:     File name suffix of crash samples (e.g. ".jpg").
        """
        self._crash_dir = crash_dir
        self._suffix = suffix
        self._counts: dict[str, int] = {}
        self.silent = 0
        self.hangs = 0
        self.write_errors = 0

    def __len__(self) -> int:
        return len(self._counts)

    def __contains__(self, signature: object) -> bool:
        return signature in self._counts

    def count(self, signature: str) -> int:
        return self._counts.get(signature, 0)

    @property
    def signatures(self) -> list[tuple[str, int]]:
        return list(self._counts.items())

    def record(self, outcome: harness.Outcome, data: bytes) -> bool:
        """
        Classify an outcome. Return true if it revealed a new failure signature.

        Arguments:
        ---------
        outcome:    Result of running the target.
        data:       Input which produced the outcome.
        """

        if not outcome.failed:
            return False

        if outcome.timed_out:
            self.hangs += 1
            return False

        signature = outcome.message.strip()

        if not signature:
            # Failures without output have nothing to deduplicate on and are dropped.
            self.silent += 1
            logging.debug("Ignoring failure without output (status %d)", outcome.status)
            return False

        if signature in self._counts:
            self._counts[signature] += 1
            return False

        self._counts[signature] = 1
        logging.info(signature)
        self._write_sample(signature, data)
        return True

    def _write_sample(self, signature: str, data: bytes) -> None:
        crash_path = self._crash_dir / evidence_name(signature, self._suffix)

        try:
            if not self._crash_dir.exists():
                self._crash_dir.mkdir(parents=True)
                logging.info("Crash dir created (%s)", self._crash_dir)
            with crash_path.open("wb") as f:
                f.write(data)
        except OSError as e:
            self.write_errors += 1
            logging.error("Cannot write sample to %s: %s", crash_path, e)  # noqa: TRY400
            return

        logging.info("sample was written to %s", crash_path)

    def report(self) -> str:
        return "\n".join(
            ["Results:"]
            + [f"\t{signature}: Found {count} times." for signature, count in self._counts.items()],
        )
