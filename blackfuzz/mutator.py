from __future__ import annotations

import itertools
import random
from typing import Iterator, Optional

DEFAULT_SEED = 104729

BYTE_MIN = -128
BYTE_MAX = 127


def null_value(data: bytes, value: int) -> bytes:
    """
    Replace every occurrence of a byte value by zero.

    Arguments:
    ---------
    data: Input to mutate. Not modified.
    value: Byte value (0..255) to replace.
    """
    return bytes(data).replace(bytes([value]), b"\x00")


def corrupt(data: bytes, rand: random.Random) -> bytes:
    """
    Overwrite a random number of random positions with random byte values.

    The number of modifications is drawn from [0, len(data)), each modification draws a position
    from [0, len(data)) and a value from [0, 255]. Positions may be hit more than once and values
    may equal the original content.
    """
    result = bytearray(data)
    length = len(result)
    if not length:
        return bytes(result)

    for _ in range(rand.randrange(length)):
        result[rand.randrange(length)] = rand.randrange(256)

    return bytes(result)


class Mutator:
    def __init__(self, rand: Optional[random.Random] = None, seed: int = DEFAULT_SEED) -> None:
        """
        Produce reproducible sequences of mutants from a seed input.

        Arguments:
        ---------
        rand:   Source of random numbers. If not given, a generator seeded with seed is used.
        seed:   Seed of the default generator.
        """
        self._rand = rand if rand is not None else random.Random(seed)  # noqa: S311

    def value_sweep(self, data: bytes) -> Iterator[bytes]:
        for value in range(BYTE_MIN, BYTE_MAX + 1):
            yield null_value(data, value & 0xFF)

    def random_corruption(self, data: bytes, iterations: int) -> Iterator[bytes]:
        if iterations < 0:
            raise ValueError(f"Negative number of iterations ({iterations})")
        return self._random_corruption(data, iterations)

    def _random_corruption(self, data: bytes, iterations: int) -> Iterator[bytes]:
        for _ in range(iterations):
            yield corrupt(data, self._rand)

    def mutants(self, data: bytes, iterations: int) -> Iterator[bytes]:
        return itertools.chain(self.value_sweep(data), self.random_corruption(data, iterations))
