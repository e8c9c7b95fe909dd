"""
ARKAINX Casino — Error Taxonomy & Result Type

Every failure a caller can see is one of seven CasinoError subclasses,
each with a stable `code`. Engines and ledger primitives hand back a
tagged Result instead of raising; the service raises inside its
transaction (so SQLite rolls back) and converts to a failed Result at
the boundary. Nothing is retried: a bet is a one-shot financial action.

Usage:
    from casino.errors import Result, InsufficientBalance

    res = Result.failure(InsufficientBalance(balance=5, required=10))
    if not res.ok:
        print(res.error.code, res.error)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class CasinoError(Exception):
    """Base class. `code` is the wire-stable name of the failure."""
    code: str = "CasinoError"

    def __init__(self, message: str = "", **details):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, **self.details}


class InsufficientBalance(CasinoError):
    code = "InsufficientBalance"

    def __init__(self, message: str = "", balance: int = None, required: int = None):
        if not message and balance is not None:
            message = f"Insufficient balance: {balance} < {required}"
        super().__init__(message or "Insufficient balance",
                         balance=balance, required=required)


class InvalidBetAmount(CasinoError):
    code = "InvalidBetAmount"


class GameDisabled(CasinoError):
    code = "GameDisabled"


class SessionNotFound(CasinoError):
    code = "SessionNotFound"


class AlreadyFinished(CasinoError):
    code = "AlreadyFinished"


class InvalidAction(CasinoError):
    code = "InvalidAction"


class FairnessRecordMissing(CasinoError):
    code = "FairnessRecordMissing"


@dataclass(frozen=True)
class Result:
    """Tagged success/failure value."""
    ok: bool
    value: Any = None
    error: Optional[CasinoError] = None

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: CasinoError) -> "Result":
        return cls(ok=False, error=error)

    def unwrap(self) -> Any:
        """Return the value or raise the carried error."""
        if not self.ok:
            raise self.error
        return self.value

    def to_dict(self) -> dict:
        if self.ok:
            return {"success": True, "value": self.value}
        return {"success": False, "error": self.error.to_dict()}
