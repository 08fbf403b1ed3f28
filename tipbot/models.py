# tipbot/models.py
from __future__ import annotations

from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class TipRecord(Base):
    """Terminal outcome of one /tip. Requests themselves are never stored."""

    __tablename__ = "tip_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)

    chat_id = Column(BigInteger, nullable=True)
    source_account = Column(BigInteger, nullable=True)
    target_account = Column(BigInteger, nullable=True)

    # base units (10**18 per token) do not fit NUMERIC(24,8); keep the exact integer as text
    amount = Column(String(80), nullable=True)

    status = Column(String(16), nullable=False)  # rejected / confirmed / ambiguous
    code = Column(String(32), nullable=True)
    tx_hash = Column(String(80), nullable=True)
    reason = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_tip_records_status", "status"),
        Index("ix_tip_records_source", "source_account"),
    )
