"""Exception types shared by the Qimen core and its HTTP shell."""

from __future__ import annotations

from typing import Any


class QimenError(Exception):
    """Base class for engine errors."""


class InputValidationError(QimenError, ValueError):
    """Malformed moment or query. Raised before any derivation starts."""


class InvariantViolation(QimenError, AssertionError):
    """Internal table or index invariant broken; only raised in strict mode."""


class LookupMiss(QimenError, LookupError):
    """A subject symbol is not present anywhere on the plate."""

    def __init__(self, family: str, symbol: str):
        super().__init__(f"{family} symbol {symbol!r} not found on plate")
        self.family = family
        self.symbol = symbol


class ApproximationWarning(UserWarning):
    """Non-fatal degradation: results continue with best-effort values."""

    def __init__(self, code: str, detail: str):
        super().__init__(f"{code}: {detail}")
        self.code = code
        self.detail = detail

    def as_record(self) -> dict[str, Any]:
        return {"type": "approximation", "code": self.code, "detail": self.detail}
