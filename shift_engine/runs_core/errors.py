"""
Errors
======

Exceptions raised by the generation engine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shift_engine.runs_core.generator import GenerationResult


class ShiftEngineError(Exception):
    """Base class for engine errors."""


class InvalidParameterError(ShiftEngineError, ValueError):
    """Caller passed an unknown rank, mode, seed or seed code."""


class GenerationExhaustedError(ShiftEngineError, RuntimeError):
    """The validate/retry loop ran out of attempts without a valid level."""

    def __init__(self, result: "GenerationResult"):
        self.result = result
        issues = "; ".join(result.issues) if result.issues else "no candidate"
        super().__init__(
            f"No valid {result.rank.value} level from seed {result.requested_seed} "
            f"after {result.attempts} attempts ({issues})"
        )
