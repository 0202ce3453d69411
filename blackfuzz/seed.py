from pathlib import Path

from blackfuzz import common


def load(path: Path) -> bytes:
    """Read the seed file once, byte-for-byte."""
    try:
        with path.open("rb") as f:
            return f.read()
    except OSError as e:
        raise common.SetupError(f"Cannot read seed file {path}: {e.strerror}") from e
