# tipbot/schemas.py
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class OutcomeStatus(str, Enum):
    REJECTED = "rejected"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    AMBIGUOUS = "ambiguous"


class RequestContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    chat_id: Optional[int] = None
    chat_type: str = "group"  # private / group / supergroup / channel
    reply_to_message_id: Optional[int] = None
    source_name: Optional[str] = None
    target_name: Optional[str] = None
    language: Optional[str] = None


class TransferRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_account: Optional[int] = None
    target_account: Optional[int] = None
    amount_text: Optional[str] = None
    context: RequestContext = RequestContext()


class Outcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: OutcomeStatus
    code: Optional[str] = None
    reason: Optional[str] = None
    tx_hash: Optional[str] = None
    amount: Optional[int] = None  # base units
    balance: Optional[int] = None  # base units, set on insufficient_funds

    @property
    def is_terminal(self) -> bool:
        return self.status is not OutcomeStatus.SUBMITTED

    @classmethod
    def rejected(cls, code: str, reason: str = "", **kw) -> "Outcome":
        return cls(status=OutcomeStatus.REJECTED, code=code, reason=reason or None, **kw)

    @classmethod
    def submitted(cls, tx_hash: str, amount: int) -> "Outcome":
        return cls(status=OutcomeStatus.SUBMITTED, tx_hash=tx_hash, amount=amount)

    @classmethod
    def confirmed(cls, tx_hash: str, amount: int) -> "Outcome":
        return cls(status=OutcomeStatus.CONFIRMED, tx_hash=tx_hash, amount=amount)

    @classmethod
    def ambiguous(cls, tx_hash: Optional[str], reason: str, *, code: str = "confirm_failed", amount: Optional[int] = None) -> "Outcome":
        return cls(status=OutcomeStatus.AMBIGUOUS, code=code, tx_hash=tx_hash, reason=reason, amount=amount)
