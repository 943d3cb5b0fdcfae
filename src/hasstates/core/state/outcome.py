"""Result of firing an event."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class FireStatus(str, Enum):
    NO_MATCH = "no_match"
    APPLIED = "applied"
    REJECTED = "rejected"


@dataclass(frozen=True)
class FireOutcome:
    """What happened when ``event`` was fired.

    ``NO_MATCH`` means no transition was eligible and nothing changed.
    ``REJECTED`` carries the error that stopped the transition; the record
    was rolled back to ``from_state``.
    """

    status: FireStatus
    event: str
    from_state: Optional[str] = None
    to_state: Optional[str] = None
    error: Optional[BaseException] = None

    @classmethod
    def no_match(cls, event: str, from_state: Optional[str]) -> "FireOutcome":
        return cls(FireStatus.NO_MATCH, event, from_state)

    @classmethod
    def applied(cls, event: str, from_state: str, to_state: str) -> "FireOutcome":
        return cls(FireStatus.APPLIED, event, from_state, to_state)

    @classmethod
    def rejected(
        cls,
        event: str,
        from_state: Optional[str],
        error: BaseException,
        to_state: Optional[str] = None,
    ) -> "FireOutcome":
        return cls(FireStatus.REJECTED, event, from_state, to_state, error)

    @property
    def is_applied(self) -> bool:
        return self.status is FireStatus.APPLIED

    @property
    def is_no_match(self) -> bool:
        return self.status is FireStatus.NO_MATCH

    @property
    def is_rejected(self) -> bool:
        return self.status is FireStatus.REJECTED

    def __bool__(self) -> bool:
        return self.is_applied

    def raise_for_error(self) -> "FireOutcome":
        """Re-raise the error of a rejected outcome; return self otherwise."""
        if self.error is not None:
            raise self.error
        return self

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "status": self.status.value,
            "event": self.event,
            "from_state": self.from_state,
            "to_state": self.to_state,
        }
        if self.error is not None:
            payload["error"] = {"type": type(self.error).__name__, "message": str(self.error)}
        return payload


__all__ = ["FireStatus", "FireOutcome"]
