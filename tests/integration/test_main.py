import shlex
import sys
from pathlib import Path

import pytest

from blackfuzz.main import BlackFuzz


def test_main(tmp_path: Path) -> None:
    script = tmp_path / "target.py"
    script.write_text("import sys\nsys.exit(0)\n")
    seed = tmp_path / "cross.jpg"
    seed.write_bytes(b"\xff\xd8\xff\xe0")

    with pytest.raises(SystemExit, match="^0$"):
        BlackFuzz(
            [
                "--seed",
                str(seed),
                "--target",
                shlex.join([sys.executable, str(script)]),
                "--crash-dir",
                str(tmp_path / "crashes"),
                "--work-dir",
                str(tmp_path / "work"),
                "10",
            ],
        )()
    assert not (tmp_path / "crashes").exists()


def test_main_missing_seed(tmp_path: Path) -> None:
    with pytest.raises(SystemExit, match=r"^Cannot read seed file .*missing\.jpg: "):
        BlackFuzz(["--seed", str(tmp_path / "missing.jpg"), "10"])()


def test_main_missing_target(tmp_path: Path) -> None:
    seed = tmp_path / "cross.jpg"
    seed.write_bytes(b"\xff\xd8\xff\xe0")
    with pytest.raises(SystemExit, match=r"^Cannot execute .*jpg2bmp: "):
        BlackFuzz(
            [
                "--seed",
                str(seed),
                "--target",
                str(tmp_path / "jpg2bmp"),
                "--work-dir",
                str(tmp_path),
                "10",
            ],
        )()


def test_main_seed_is_staging_file(tmp_path: Path) -> None:
    seed = tmp_path / "input.jpg"
    seed.write_bytes(b"\x01\x02\x03\x7f")
    with pytest.raises(SystemExit, match=r"^Seed file .*input\.jpg would be overwritten"):
        BlackFuzz(["--seed", str(seed), "--work-dir", str(tmp_path), "10"])()
    assert seed.read_bytes() == b"\x01\x02\x03\x7f"


def test_main_work_dir_is_file(tmp_path: Path) -> None:
    seed = tmp_path / "cross.jpg"
    seed.write_bytes(b"\xff\xd8\xff\xe0")
    (tmp_path / "work").write_bytes(b"")
    with pytest.raises(SystemExit, match=r"^Cannot write input file "):
        BlackFuzz(
            [
                "--seed",
                str(seed),
                "--target",
                "./jpg2bmp",
                "--work-dir",
                str(tmp_path / "work"),
                "10",
            ],
        )()
