"""
Typed results for operations whose failures are expected outcomes rather
than defects. Defects still raise.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    BET_NOT_FOUND = "bet_not_found"
    ROUND_NOT_FOUND = "round_not_found"
    ROUND_NOT_CLOSABLE = "round_not_closable"
    ROUND_HASH_MISMATCH = "round_hash_mismatch"
    HOLE_MISMATCH = "hole_mismatch"
    ROWS_MISMATCH = "rows_mismatch"
    PAYOUT_MISMATCH = "payout_mismatch"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str = ""

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]
