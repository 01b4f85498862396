from sqlalchemy import Column, Integer, String, DateTime, JSON, Index
from sqlalchemy.orm import declarative_base
from datetime import datetime, timezone

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# LEDGER MODEL DEFINITIONS
# ============================================================================

class LedgerEntry(Base):
    """Key-value record of ledger state; id preserves first-insertion order"""
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String, unique=True, nullable=False, index=True)
    value = Column(JSON, nullable=False)

    # Block that last wrote this entry
    block_number = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class LedgerBlock(Base):
    """One finalized transaction"""
    __tablename__ = "ledger_blocks"

    block_number = Column(Integer, primary_key=True, autoincrement=False)
    event_count = Column(Integer, default=0)
    finalized_at = Column(DateTime, default=_utcnow)


class LedgerEventRecord(Base):
    """Append-only log of events emitted by finalized transactions"""
    __tablename__ = "ledger_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    block_number = Column(Integer, nullable=False)
    event_index = Column(Integer, nullable=False)
    kind = Column(String, nullable=False)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=_utcnow)

    __table_args__ = (
        Index("ix_ledger_events_block", "block_number", "event_index"),
    )
