"""Exception hierarchy for qpmanifold.

Only malformed input is reported by raising. Infeasible and unbounded
problems are statuses on :class:`qpmanifold.core.Solution`, singular linear
systems return ``None`` and rejected sampling attempts are plain values.
"""

from __future__ import annotations

from typing import Iterable, List


class QPManifoldError(Exception):
    """Base class for all qpmanifold errors."""


class InvalidProblemError(QPManifoldError, ValueError):
    """Raised when a problem description fails validation.

    All detected problems are collected in :attr:`errors` so that callers
    can report them at once.
    """

    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors) or "invalid problem")


class SolverError(QPManifoldError, RuntimeError):
    """Raised by a QP backend when the primitive cannot produce a result."""


__all__ = ["QPManifoldError", "InvalidProblemError", "SolverError"]
