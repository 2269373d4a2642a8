"""
Injectable randomness and clock sources.

The variant draw and identifier synthesis take an EntropySource so tests can
run against a seeded generator.
"""

import random
import time
from dataclasses import dataclass, field
from typing import Protocol


class EntropySource(Protocol):
    def random_bit(self) -> int: ...

    def randbelow(self, n: int) -> int: ...


class SystemEntropy:
    """OS-backed randomness"""

    def __init__(self):
        self._r = random.SystemRandom()

    def random_bit(self) -> int:
        return self._r.getrandbits(1)

    def randbelow(self, n: int) -> int:
        return self._r.randrange(n)


@dataclass
class SeededEntropy:
    """Deterministic randomness for tests and replays"""
    seed: int
    _r: random.Random = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._r = random.Random(self.seed)

    def random_bit(self) -> int:
        return self._r.getrandbits(1)

    def randbelow(self, n: int) -> int:
        return self._r.randrange(n)


def now_millis() -> int:
    return int(time.time() * 1000)
