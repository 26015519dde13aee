import hashlib
import hmac
import secrets
from typing import Iterator, List, Sequence

from plinko_fair.core.exceptions import InsufficientRandomnessError


class HashRNG:
    """
    Deterministic randomness derived from a hex hash. Every value produced
    here can be recomputed by a player from the revealed hash, which is
    what makes a result verifiable.
    """

    @staticmethod
    def random_bools(count: int, hash_hex: str) -> List[int]:
        """
        One bit per requested value, read most-significant-bit first from
        the hex-decoded hash. Raises if the hash holds fewer than ``count`` bits.
        """
        raw = bytes.fromhex(hash_hex)
        if count > len(raw) * 8:
            raise InsufficientRandomnessError(
                f"hash holds {len(raw) * 8} bits, {count} requested"
            )
        return [(raw[i // 8] >> (7 - i % 8)) & 1 for i in range(count)]

    @staticmethod
    def byte_stream(hash_hex: str) -> Iterator[int]:
        """Endless bytes: HMAC(key=hash, msg=cursor) blocks for cursor = 0, 1, 2..."""
        key = hash_hex.encode("utf-8")
        cursor = 0
        while True:
            digest = hmac.new(key, str(cursor).encode("utf-8"), hashlib.sha256).digest()
            yield from digest
            cursor += 1

    @staticmethod
    def floats(count: int, hash_hex: str) -> List[float]:
        """``count`` floats in [0, 1), each built from a 4-byte window."""
        stream = HashRNG.byte_stream(hash_hex)
        values = []
        for _ in range(count):
            b0, b1, b2, b3 = (next(stream) for _ in range(4))
            values.append(b0 / 256 + b1 / 256**2 + b2 / 256**3 + b3 / 256**4)
        return values

    @staticmethod
    def shuffle(values: Sequence, randoms: Sequence[float]) -> list:
        """Fisher-Yates over a copy of ``values`` driven by pre-drawn numbers in [0, 1)."""
        if len(randoms) < len(values) - 1:
            raise InsufficientRandomnessError(
                f"shuffling {len(values)} values needs {len(values) - 1} random numbers"
            )
        shuffled = list(values)
        r = 0
        for i in range(len(shuffled) - 1, 0, -1):
            j = int(randoms[r] * (i + 1))
            shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
            r += 1
        return shuffled

    @staticmethod
    def build_group(size: int, hash_hex: str) -> List[int]:
        """A permutation of 0..size-1 seeded by the hash."""
        return HashRNG.shuffle(range(size), HashRNG.floats(max(size - 1, 0), hash_hex))

    @staticmethod
    def client_seed() -> str:
        """Default client seed for players that did not pick one."""
        return secrets.token_hex(16)


class RandomPool:
    """
    Fixed pool of numbers in [0, 1) read sequentially. Reads past the end
    wrap around to the start.
    """

    def __init__(self, numbers: Sequence[float]):
        if not numbers:
            raise InsufficientRandomnessError("random pool is empty")
        self._numbers = list(numbers)
        self.cursor = 0

    @classmethod
    def from_hash(cls, hash_hex: str, size: int = 100) -> "RandomPool":
        return cls([n / size for n in HashRNG.build_group(size, hash_hex)])

    def __len__(self):
        return len(self._numbers)

    def next(self) -> float:
        value = self._numbers[self.cursor % len(self._numbers)]
        self.cursor += 1
        return value

    def take(self, count: int) -> List[float]:
        return [self.next() for _ in range(count)]


hash_rng = HashRNG()
