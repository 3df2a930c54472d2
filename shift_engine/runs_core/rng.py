"""
RNG - Seeded Streams and Seed Codes
===================================

Deterministic random streams for procedural generation, plus the seed
helpers used by sessions: daily and random base seeds, per-rank derivation,
the retry chain, and short shareable seed codes.
"""

from __future__ import annotations

import hashlib
import numbers
import random
from datetime import date, datetime, timezone
from typing import List, Optional, Sequence, TypeVar, Union

from shift_engine.runs_core.config_loader import RunConfig, get_config
from shift_engine.runs_core.errors import InvalidParameterError
from shift_engine.runs_core.level import Rank

T = TypeVar("T")

SEED_BITS = 32
SEED_MODULUS = 1 << SEED_BITS
SEED_MASK = SEED_MODULUS - 1

# Characters accepted in place of the ones Crockford base-32 leaves out
_CODE_ALIASES = {"I": "1", "L": "1", "O": "0"}
_CODE_SEPARATORS = "- "


def validate_seed(seed: int) -> int:
    """
    Check that a seed lies in the unsigned 32-bit domain.

    Returns:
        The seed as a plain int.

    Raises:
        InvalidParameterError: For non-integers, booleans, or out-of-range values.
    """
    if isinstance(seed, bool) or not isinstance(seed, numbers.Integral):
        raise InvalidParameterError(f"Seed must be an integer, got {seed!r}")
    seed = int(seed)
    if not 0 <= seed <= SEED_MASK:
        raise InvalidParameterError(f"Seed {seed} outside [0, {SEED_MASK}]")
    return seed


def _hash_to_seed(text: str) -> int:
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big")


def derive_seed(base: int, salt: str) -> int:
    """
    Derive an independent sub-seed for one generation phase.

    Args:
        base: Parent seed.
        salt: Phase name, e.g. "variant" or "skeleton".

    Returns:
        Deterministic 32-bit seed.
    """
    return _hash_to_seed(f"{int(base)}:{salt}")


def utc_today() -> date:
    """Current calendar date in UTC."""
    return datetime.now(timezone.utc).date()


def _as_utc_date(day: Union[date, datetime, None]) -> date:
    if day is None:
        return utc_today()
    if isinstance(day, datetime):
        if day.tzinfo is not None:
            day = day.astimezone(timezone.utc)
        return day.date()
    return day


def daily_seed(day: Union[date, datetime, None] = None, config: Optional[RunConfig] = None) -> int:
    """
    Seed shared by every player for one UTC calendar date.

    Args:
        day: Date to compute the seed for. Today (UTC) if None. Aware
            datetimes are converted to UTC first; naive ones are taken as UTC.
        config: Run configuration. Uses default if None.

    Returns:
        Deterministic 32-bit seed.
    """
    if config is None:
        config = get_config()
    d = _as_utc_date(day)
    return _hash_to_seed(f"{config.seeds.daily_salt}{d:%Y%m%d}")


def random_seed() -> int:
    """Fresh seed from the OS entropy source."""
    return random.SystemRandom().getrandbits(SEED_BITS)


def rank_seed(base: int, rank: Union[Rank, str], config: Optional[RunConfig] = None) -> int:
    """
    Derive the rank-specific seed from a base seed.

    The four ranks of one base differ by distinct multiples of the rank step,
    so their seeds never collide.
    """
    if config is None:
        config = get_config()
    base = validate_seed(base)
    rank = Rank.parse(rank)
    return (base * config.seeds.rank_multiplier + rank.index * config.seeds.rank_step) & SEED_MASK


def next_attempt_seed(seed: int) -> int:
    """
    Next seed of the generation retry chain.

    Golden-ratio offset followed by the murmur3 finalizer; a bijection on
    32-bit values with no fixed point at zero.
    """
    x = (int(seed) + 0x9E3779B9) & SEED_MASK
    x ^= x >> 16
    x = (x * 0x85EBCA6B) & SEED_MASK
    x ^= x >> 13
    x = (x * 0xC2B2AE35) & SEED_MASK
    x ^= x >> 16
    return x


def seed_to_code(seed: int, config: Optional[RunConfig] = None) -> str:
    """
    Encode a seed as a short shareable code.

    Args:
        seed: Seed in the 32-bit domain.
        config: Run configuration. Uses default if None.

    Returns:
        Upper-case Crockford base-32 string, at least ``min_code_length``
        characters long.
    """
    if config is None:
        config = get_config()
    seed = validate_seed(seed)
    alphabet = config.seeds.code_alphabet
    base = len(alphabet)

    digits = []
    n = seed
    while True:
        n, rem = divmod(n, base)
        digits.append(alphabet[rem])
        if n == 0:
            break
    code = "".join(reversed(digits))
    return code.rjust(config.seeds.min_code_length, alphabet[0])


def code_to_seed(code: str, config: Optional[RunConfig] = None) -> int:
    """
    Decode a shareable code back to its seed.

    Decoding is case-insensitive, ignores dashes and spaces, and reads the
    visually confusable I/L as 1 and O as 0.

    Raises:
        InvalidParameterError: For empty codes, unknown characters, or
            values outside the seed domain.
    """
    if config is None:
        config = get_config()
    if not isinstance(code, str):
        raise InvalidParameterError(f"Seed code must be a string, got {code!r}")

    alphabet = config.seeds.code_alphabet
    base = len(alphabet)
    cleaned = [c for c in code.strip().upper() if c not in _CODE_SEPARATORS]
    if not cleaned:
        raise InvalidParameterError("Seed code is empty")

    value = 0
    for ch in cleaned:
        ch = _CODE_ALIASES.get(ch, ch)
        idx = alphabet.find(ch)
        if idx < 0:
            raise InvalidParameterError(f"Invalid character {ch!r} in seed code {code!r}")
        value = value * base + idx

    if value > SEED_MASK:
        raise InvalidParameterError(f"Seed code {code!r} exceeds the seed domain")
    return value


class SeededRNG:
    """
    Deterministic random stream for one generation phase.

    Given the same seed and the same ordered sequence of draws, two
    instances produce identical values.
    """

    def __init__(self, seed: int, config: Optional[RunConfig] = None):
        """
        Initialize the stream.

        Args:
            seed: Seed in the 32-bit domain.
            config: Run configuration used for the seed code. Uses default if None.
        """
        self._seed = validate_seed(seed)
        self._config = config
        self._rng = random.Random(self._seed)

    @classmethod
    def from_code(cls, code: str, config: Optional[RunConfig] = None) -> "SeededRNG":
        """Create from a shareable code."""
        return cls(code_to_seed(code, config), config)

    @classmethod
    def daily(cls, day: Union[date, datetime, None] = None,
              config: Optional[RunConfig] = None) -> "SeededRNG":
        """Create from a UTC date (today if None)."""
        return cls(daily_seed(day, config), config)

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def code(self) -> str:
        return seed_to_code(self._seed, self._config)

    def fork(self, salt: str) -> "SeededRNG":
        """Independent stream for a named sub-phase; does not advance this one."""
        return SeededRNG(derive_seed(self._seed, salt), self._config)

    def frac(self) -> float:
        """Random float in [0, 1)."""
        return self._rng.random()

    def integer_in_range(self, low: int, high: int) -> int:
        """Random integer between low and high (inclusive)."""
        return self._rng.randint(int(low), int(high))

    def real_in_range(self, low: float, high: float) -> float:
        """Random float between low and high."""
        return low + self._rng.random() * (high - low)

    def chance(self, probability: float) -> bool:
        """True with the given probability (0-1)."""
        return self._rng.random() < probability

    def pick(self, items: Sequence[T]) -> T:
        """Pick one element."""
        if not items:
            raise ValueError("Cannot pick from an empty sequence")
        return items[self._rng.randrange(len(items))]

    def weighted_pick(self, items: Sequence[T], weights: Sequence[float]) -> T:
        """Pick one element with probability proportional to its weight."""
        if not items or len(items) != len(weights):
            raise ValueError("items and weights must be non-empty and equally long")
        total = sum(weights)
        r = self._rng.random() * total
        cumulative = 0.0
        for item, weight in zip(items, weights):
            cumulative += weight
            if r < cumulative:
                return item
        return items[-1]

    def shuffle(self, items: Sequence[T]) -> List[T]:
        """Shuffled copy of a sequence."""
        result = list(items)
        self._rng.shuffle(result)
        return result

    def sign(self) -> int:
        """Returns -1 or +1."""
        return -1 if self._rng.random() < 0.5 else 1

    def __repr__(self) -> str:
        return f"SeededRNG(seed={self._seed})"
