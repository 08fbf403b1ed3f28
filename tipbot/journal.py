# tipbot/journal.py
from __future__ import annotations

from typing import List

from sqlalchemy import desc
from sqlalchemy.engine import Engine

from tipbot import models
from tipbot.database import db_session, get_engine, get_sessionmaker, init_db
from tipbot.schemas import Outcome, OutcomeStatus, TransferRequest


class TipJournal:
    """Append-only audit of terminal tip outcomes.

    Ambiguous rows are the operator's follow-up list: each one has a tx hash
    that still needs manual verification on the explorer.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.SessionLocal = get_sessionmaker(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "TipJournal":
        engine = get_engine(database_url)
        init_db(engine)
        return cls(engine)

    def record(self, request: TransferRequest, outcome: Outcome) -> None:
        if not outcome.is_terminal:
            raise ValueError("only terminal outcomes are journaled")

        row = models.TipRecord(
            chat_id=request.context.chat_id,
            source_account=request.source_account,
            target_account=request.target_account,
            amount=(str(outcome.amount) if outcome.amount is not None else None),
            status=outcome.status.value,
            code=outcome.code,
            tx_hash=outcome.tx_hash,
            reason=outcome.reason,
        )
        with db_session(self.SessionLocal) as db:
            db.add(row)

    def list_ambiguous(self, limit: int = 50) -> List[dict]:
        return self.list_by_status(OutcomeStatus.AMBIGUOUS, limit=limit)

    def list_by_status(self, status: OutcomeStatus, *, limit: int = 50) -> List[dict]:
        with db_session(self.SessionLocal) as db:
            rows = (
                db.query(models.TipRecord)
                .filter(models.TipRecord.status == status.value)
                .order_by(desc(models.TipRecord.id))
                .limit(limit)
                .all()
            )
            return [_row_dict(r) for r in rows]


def _row_dict(row: models.TipRecord) -> dict:
    return {
        "id": row.id,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "chat_id": row.chat_id,
        "source_account": row.source_account,
        "target_account": row.target_account,
        "amount": row.amount,
        "status": row.status,
        "code": row.code,
        "tx_hash": row.tx_hash,
        "reason": row.reason,
    }
