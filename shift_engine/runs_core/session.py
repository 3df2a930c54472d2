"""
Run Sessions
============

Daily and random run sessions, plus the per-date completion ledger.

A RunContext is created by the caller and passed around; it owns the single
active-session slot. Starting a session swaps in a whole new frozen Session,
so a failed start leaves the previous one untouched.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qs, urlencode

from shift_engine.runs_core.config_loader import RunConfig, get_config
from shift_engine.runs_core.errors import InvalidParameterError
from shift_engine.runs_core.generator import generate_valid_level
from shift_engine.runs_core.level import RANKS, LevelDescriptor, Rank
from shift_engine.runs_core.rng import (
    code_to_seed,
    daily_seed,
    random_seed,
    rank_seed,
    seed_to_code,
    utc_today,
    validate_seed,
)

logger = logging.getLogger(__name__)


class RunMode(str, Enum):
    DAILY = "daily"
    RANDOM = "random"

    @classmethod
    def parse(cls, value: Union["RunMode", str]) -> "RunMode":
        if isinstance(value, RunMode):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidParameterError(f"Unknown run mode: {value!r}") from None


@dataclass(frozen=True)
class Session:
    """One level attempt, as handed to the game scene."""
    level: LevelDescriptor
    used_seed: int
    seed_code: str          # Code of used_seed; replays this exact level
    base_seed: int
    base_seed_code: str
    rank: Rank
    mode: RunMode
    date: str               # UTC ISO date the session was started for

    @property
    def is_daily(self) -> bool:
        return self.mode == RunMode.DAILY


@dataclass(frozen=True)
class CompletionLedger:
    """Ranks completed on one UTC date, in rank order."""
    date: str = ""
    ranks: Tuple[Rank, ...] = ()

    def ranks_for(self, day: str) -> Tuple[Rank, ...]:
        """Completed ranks for ``day``; empty when the ledger is for another date."""
        return self.ranks if self.date == day else ()

    def with_rank(self, day: str, rank: Rank) -> "CompletionLedger":
        """Ledger for ``day`` with ``rank`` marked complete."""
        done = set(self.ranks_for(day))
        done.add(rank)
        return CompletionLedger(date=day, ranks=tuple(r for r in RANKS if r in done))

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "ranks": [r.value for r in self.ranks]}

    @staticmethod
    def from_dict(data: Any) -> "CompletionLedger":
        """
        Raises:
            ValueError: If the data does not have the ledger shape.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Ledger must be an object, got {type(data).__name__}")
        day = data.get("date", "")
        ranks = data.get("ranks", [])
        if not isinstance(day, str) or not isinstance(ranks, list):
            raise ValueError("Ledger needs a string 'date' and a list 'ranks'")
        parsed = set()
        for r in ranks:
            try:
                parsed.add(Rank.parse(r))
            except InvalidParameterError:
                logger.warning("Dropping unknown rank %r from completion ledger", r)
        return CompletionLedger(date=day, ranks=tuple(r for r in RANKS if r in parsed))

    @staticmethod
    def load(path: Union[str, Path]) -> "CompletionLedger":
        """
        Load a ledger from JSON.

        A missing file gives an empty ledger. Unreadable or malformed data is
        logged and also gives an empty ledger.
        """
        path = Path(path)
        if not path.exists():
            logger.debug("No completion ledger at %s", path)
            return CompletionLedger()
        try:
            with open(path, "r", encoding="utf-8") as f:
                return CompletionLedger.from_dict(json.load(f))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring corrupt completion ledger %s: %s", path, e)
            return CompletionLedger()

    def save(self, path: Union[str, Path]) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)


class RunContext:
    """
    Holds the active session and the daily completion ledger.

    Args:
        config: Run configuration. Uses default if None.
        ledger_path: JSON file for the completion ledger. In-memory only if None.
        today: Clock returning the current UTC date.
        entropy: Source of fresh base seeds for random runs.
    """

    def __init__(
        self,
        config: Optional[RunConfig] = None,
        ledger_path: Union[str, Path, None] = None,
        today: Callable[[], date] = utc_today,
        entropy: Callable[[], int] = random_seed,
    ):
        self.config = config if config is not None else get_config()
        self.ledger_path = Path(ledger_path) if ledger_path is not None else None
        self._today = today
        self._entropy = entropy
        self._active: Optional[Session] = None
        self._ledger = (
            CompletionLedger.load(self.ledger_path)
            if self.ledger_path is not None else CompletionLedger()
        )

    @property
    def active_session(self) -> Optional[Session]:
        return self._active

    @property
    def ledger(self) -> CompletionLedger:
        return self._ledger

    def get_active_session(self) -> Optional[Session]:
        return self._active

    def clear_session(self) -> None:
        self._active = None

    def start_session(
        self,
        rank: Union[Rank, str],
        mode: Union[RunMode, str],
        base_seed: Optional[int] = None,
    ) -> Session:
        """
        Generate a level and make it the active session.

        Args:
            rank: Difficulty rank.
            mode: "daily" (seed from today's UTC date) or "random".
            base_seed: Base seed for a random run. Drawn from entropy if None.

        Returns:
            The new active Session.

        Raises:
            InvalidParameterError: For an unknown rank or mode, an invalid
                base seed, or a base seed passed with daily mode.
            GenerationExhaustedError: If no valid level could be generated;
                the previous session stays active.
        """
        rank = Rank.parse(rank)
        mode = RunMode.parse(mode)
        day = self._today()

        if mode == RunMode.DAILY:
            if base_seed is not None:
                raise InvalidParameterError("Daily sessions derive their seed from the date")
            base = daily_seed(day, self.config)
        else:
            base = validate_seed(base_seed) if base_seed is not None else self._entropy()

        return self._launch(rank_seed(base, rank, self.config), base, rank, mode, day)

    def start_from_code(self, code: str, rank: Union[Rank, str]) -> Session:
        """
        Replay a shared seed code as a random-mode session.

        The code encodes a used seed, so the same level is reproduced.
        """
        rank = Rank.parse(rank)
        seed = code_to_seed(code, self.config)
        return self._launch(seed, seed, rank, RunMode.RANDOM, self._today())

    def _launch(self, seed: int, base: int, rank: Rank, mode: RunMode, day: date) -> Session:
        level, used_seed = generate_valid_level(seed, rank, self.config).unwrap()
        session = Session(
            level=level,
            used_seed=used_seed,
            seed_code=seed_to_code(used_seed, self.config),
            base_seed=base,
            base_seed_code=seed_to_code(base, self.config),
            rank=rank,
            mode=mode,
            date=day.isoformat(),
        )
        self._active = session
        logger.info(
            "Started %s %s session %s (%s)", mode.value, rank.value, session.seed_code, level.name
        )
        return session

    def completed_ranks(self) -> Tuple[Rank, ...]:
        """Ranks completed today (UTC)."""
        return self._ledger.ranks_for(self._today().isoformat())

    def complete_active_session(self) -> bool:
        """
        Record completion of the active daily session.

        Only a daily session started on today's date counts. The ledger is
        persisted when a ledger path is configured.

        Returns:
            True if the ledger was updated.
        """
        session = self._active
        if session is None or not session.is_daily:
            return False
        day = self._today().isoformat()
        if session.date != day:
            logger.info("Daily session from %s completed on %s; not recorded", session.date, day)
            return False

        self._ledger = self._ledger.with_rank(day, session.rank)
        if self.ledger_path is not None:
            self._ledger.save(self.ledger_path)
        return True


def build_share_text(session: Session) -> str:
    """Short message identifying a level: ``"<name> - <Rank> [<CODE>]"``."""
    return f"{session.level.name} - {session.rank.value.capitalize()} [{session.seed_code}]"


def build_share_url(base_url: str, code: str, rank: Union[Rank, str]) -> str:
    """Link that opens a shared level."""
    rank = Rank.parse(rank)
    return f"{base_url}?{urlencode({'seed': code, 'rank': rank.value})}"


def parse_share_query(query: str) -> Optional[Tuple[str, Rank]]:
    """
    Read the seed code and rank from a share link's query string.

    Returns:
        (code, rank), or None when no seed is present. Unknown or missing
        ranks fall back to green.
    """
    params = parse_qs(query.lstrip("?"))
    seeds = params.get("seed")
    if not seeds or not seeds[0].strip():
        return None
    rank_values = params.get("rank") or [Rank.GREEN.value]
    try:
        rank = Rank.parse(rank_values[0])
    except InvalidParameterError:
        rank = Rank.GREEN
    return seeds[0].strip().upper(), rank
