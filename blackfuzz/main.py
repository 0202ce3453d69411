import argparse
import logging
import shlex
import sys
from pathlib import Path
from typing import Callable, Optional

from blackfuzz import common, fuzzer, mutator


def _integer(name: str, minimum: int) -> Callable[[str], int]:
    def convert(value: str) -> int:
        try:
            result = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid {name}: '{value}'") from None
        if result < minimum:
            raise argparse.ArgumentTypeError(f"{name} must be at least {minimum}: {result}")
        return result

    return convert


class BlackFuzz:
    def __init__(self, argv: Optional[list[str]] = None):
        self.argv = argv

    def __call__(self) -> None:
        parser = argparse.ArgumentParser(description="Mutation-based black-box file fuzzer")

        parser.add_argument(
            "iterations",
            type=_integer("number of iterations", 0),
            help="Number of random corruptions to perform after the value sweep.",
        )
        parser.add_argument(
            "--seed",
            type=Path,
            default=Path("cross.jpg"),
            help="Well-formed input file to mutate (default: %(default)s).",
        )
        parser.add_argument(
            "--target",
            type=str,
            default="./jpg2bmp",
            help="Program to test, called as '<target> <input> <output>' (default: %(default)s).",
        )
        parser.add_argument(
            "--crash-dir",
            type=Path,
            default=Path(),
            help="Crash output directory (default: current directory).",
        )
        parser.add_argument(
            "--work-dir",
            type=Path,
            default=Path(),
            help="Directory for mutants and target output (default: current directory).",
        )
        parser.add_argument(
            "--output-name",
            type=str,
            default="temp.bmp",
            help="Name of the output file passed to the target (default: %(default)s).",
        )
        parser.add_argument(
            "--timeout",
            type=float,
            help="Seconds after which a target run is considered hanging (default: no limit).",
        )
        parser.add_argument(
            "--rand-seed",
            type=int,
            default=mutator.DEFAULT_SEED,
            help="Seed of the random generator (default: %(default)s).",
        )
        parser.add_argument(
            "-j",
            "--num-workers",
            type=_integer("number of workers", 1),
            default=1,
            help="Number of parallel target executions (default: %(default)s).",
        )
        parser.add_argument(
            "--start-method",
            type=str,
            choices=["spawn", "forkserver", "fork"],
            default="spawn",
            help="Start method to be used for multiprocessing (default: %(default)s).",
        )
        parser.add_argument(
            "-v",
            "--verbose",
            action="store_true",
            help="Log debug messages.",
        )

        args = parser.parse_args(self.argv)

        logging.basicConfig(
            format="[%(asctime)s] %(message)s",
            level=logging.DEBUG if args.verbose else logging.INFO,
        )

        self.fuzz(args)

    def fuzz(self, args: argparse.Namespace) -> None:
        try:
            f = fuzzer.Fuzzer(
                seed_file=args.seed,
                crash_dir=args.crash_dir,
                iterations=args.iterations,
                target=shlex.split(args.target),
                work_dir=args.work_dir,
                output_name=args.output_name,
                timeout=args.timeout,
                rand_seed=args.rand_seed,
                num_workers=args.num_workers,
                start_method=args.start_method,
            )
            f.start()
        except common.FuzzError as e:
            sys.exit(str(e))
        except KeyboardInterrupt:
            sys.exit("\nUser cancellation. Exiting.\n")


def main() -> None:
    BlackFuzz()()
