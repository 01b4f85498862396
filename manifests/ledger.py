"""
Manifest Ledger Adapter

Boundary between the manifest engines and the ledger that holds manifest state.
The ledger is modelled as a strongly-consistent key-value store:

- submit_transaction(operation): runs a state-transition function inside one
  serialized database transaction, commits it (finality), appends the emitted
  events to the event log and returns a receipt
- scan(prefix): ordered records under a key prefix
- fetch_one(key): single record or None
- subscribe(callback): finality notifications, one receipt per transaction

Engines never hold mutable state of their own; everything goes through here.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from manifests import config
from manifests.errors import LedgerSubmissionError, ManifestError, SubmissionTimeout
from manifests.models import LedgerBlock, LedgerEntry, LedgerEventRecord
from manifests.types import ChallengeStateValue, EventKind

logger = logging.getLogger(__name__)

MANIFEST_ROOT = "manifest"
STORAGE_ROOT = "storage"
CHALLENGE_ROOT = "challenge"


# ============================================================================
# KEY LAYOUT
# ============================================================================

def _encode(part: Any) -> str:
    return quote(str(part), safe="")


def build_key(*parts: Any) -> str:
    return "/".join(_encode(p) for p in parts)


def build_prefix(*parts: Any) -> str:
    return build_key(*parts) + "/"


def manifest_key(pool_id: int, cid: str) -> str:
    return build_key(MANIFEST_ROOT, pool_id, cid)


def manifest_prefix(pool_id: Optional[int] = None) -> str:
    if pool_id is None:
        return build_prefix(MANIFEST_ROOT)
    return build_prefix(MANIFEST_ROOT, pool_id)


def storage_key(pool_id: int, account: str, cid: str) -> str:
    return build_key(STORAGE_ROOT, pool_id, account, cid)


def storage_prefix(pool_id: Optional[int] = None, account: Optional[str] = None) -> str:
    """Storage records nest pool, then account; an account filter needs a pool."""
    if pool_id is None:
        return build_prefix(STORAGE_ROOT)
    if account is None:
        return build_prefix(STORAGE_ROOT, pool_id)
    return build_prefix(STORAGE_ROOT, pool_id, account)


def challenge_key(pool_id: int, account: str, cid: str) -> str:
    return build_key(CHALLENGE_ROOT, pool_id, account, cid)


def challenge_prefix(pool_id: Optional[int] = None) -> str:
    if pool_id is None:
        return build_prefix(CHALLENGE_ROOT)
    return build_prefix(CHALLENGE_ROOT, pool_id)


# ============================================================================
# EVENTS & RECEIPTS
# ============================================================================

@dataclass
class LedgerEvent:
    kind: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TransactionReceipt:
    block_number: int
    events: List[LedgerEvent] = field(default_factory=list)

    def find_first(self, kind) -> Optional[LedgerEvent]:
        wanted = getattr(kind, "value", kind)
        for event in self.events:
            if event.kind == wanted:
                return event
        return None


def _scan_entries(db: Session, prefix: str, page_size: int) -> List[Tuple[str, Any]]:
    results: List[Tuple[str, Any]] = []
    last_id = 0
    while True:
        page = db.scalars(
            select(LedgerEntry)
            .where(LedgerEntry.key.startswith(prefix, autoescape=True), LedgerEntry.id > last_id)
            .order_by(LedgerEntry.id)
            .limit(page_size)
        ).all()
        # LIKE is case-insensitive on SQLite
        results.extend((entry.key, entry.value) for entry in page if entry.key.startswith(prefix))
        if len(page) < page_size:
            return results
        last_id = page[-1].id


class LedgerTransaction:
    """
    Read/write view handed to a state-transition function.

    Writes are flushed into the open database transaction immediately, so later
    reads in the same transaction observe them.
    """

    def __init__(self, db: Session, block_number: int, page_size: int):
        self.db = db
        self.block_number = block_number
        self.page_size = page_size

    def _entry(self, key: str) -> Optional[LedgerEntry]:
        return self.db.scalars(select(LedgerEntry).where(LedgerEntry.key == key)).first()

    def get(self, key: str) -> Optional[Any]:
        entry = self._entry(key)
        return entry.value if entry else None

    def put(self, key: str, value: Any) -> None:
        entry = self._entry(key)
        if entry is None:
            self.db.add(LedgerEntry(key=key, value=value, block_number=self.block_number))
        else:
            entry.value = value
            entry.block_number = self.block_number
        self.db.flush()

    def delete(self, key: str) -> bool:
        entry = self._entry(key)
        if entry is None:
            return False
        self.db.delete(entry)
        self.db.flush()
        return True

    def scan(self, prefix: str) -> List[Tuple[str, Any]]:
        return _scan_entries(self.db, prefix, self.page_size)


Operation = Callable[[LedgerTransaction], Optional[List[LedgerEvent]]]
Subscriber = Callable[[TransactionReceipt], None]


class ManifestLedger:
    """
    SQLAlchemy-backed ledger with serialized writers.

    Usage:
        ledger = ManifestLedger(SessionLocal)
        receipt = ledger.submit_transaction(lambda txn: [...events...])
        records = ledger.scan(manifest_prefix(pool_id=1))
    """

    def __init__(
        self,
        session_factory,
        submission_timeout: float = config.SUBMISSION_TIMEOUT_SECONDS,
        scan_page_size: int = config.SCAN_PAGE_SIZE,
    ):
        """
        Args:
            session_factory: SQLAlchemy session factory
            submission_timeout: Seconds to wait for the write slot before
                raising SubmissionTimeout
            scan_page_size: Rows fetched per page during prefix scans
        """
        if scan_page_size < 1:
            raise ValueError("scan_page_size must be positive")
        self.session_factory = session_factory
        self.submission_timeout = submission_timeout
        self.scan_page_size = scan_page_size
        self._write_lock = threading.Lock()
        self._subscribers: List[Subscriber] = []
        self._subscribers_lock = threading.Lock()

    # ========================================================================
    # WRITES
    # ========================================================================

    def submit_transaction(self, operation: Operation, timeout: Optional[float] = None) -> TransactionReceipt:
        """
        Run operation inside one transaction and wait for finality.

        Domain errors raised by operation propagate unchanged after rollback;
        database failures surface as LedgerSubmissionError. Nothing is retried.

        Raises:
            SubmissionTimeout: If the write slot is not free within the timeout
            LedgerSubmissionError: If the database rejects the transaction
        """
        wait = self.submission_timeout if timeout is None else timeout
        if not self._write_lock.acquire(timeout=max(float(wait), 0.0)):
            logger.error(f"Ledger submission timed out after {wait}s")
            raise SubmissionTimeout(
                "Ledger submission timed out",
                f"write slot not acquired within {wait} seconds",
            )

        try:
            receipt = self._execute(operation)
        finally:
            self._write_lock.release()

        logger.debug(f"Block {receipt.block_number} finalized with {len(receipt.events)} event(s)")
        self._notify(receipt)
        return receipt

    def _execute(self, operation: Operation) -> TransactionReceipt:
        db = self.session_factory()
        try:
            last_block = db.scalar(select(func.max(LedgerBlock.block_number))) or 0
            block_number = last_block + 1
            txn = LedgerTransaction(db, block_number, self.scan_page_size)

            events = list(operation(txn) or [])

            for index, event in enumerate(events):
                db.add(LedgerEventRecord(
                    block_number=block_number,
                    event_index=index,
                    kind=event.kind,
                    data=event.data,
                ))
            db.add(LedgerBlock(block_number=block_number, event_count=len(events)))
            db.commit()
            return TransactionReceipt(block_number=block_number, events=events)
        except ManifestError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Ledger rejected transaction: {e}")
            raise LedgerSubmissionError("Transaction rejected by ledger", str(e)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def put_challenge_state(
        self, pool_id: int, account: str, cid: str, state: ChallengeStateValue
    ) -> TransactionReceipt:
        """Record a challenge outcome. Write path for the challenge subsystem."""
        state = ChallengeStateValue(state)

        def _record(txn: LedgerTransaction) -> List[LedgerEvent]:
            txn.put(challenge_key(pool_id, account, cid), {
                "pool_id": pool_id, "account": account, "cid": cid, "state": state.value,
            })
            return [LedgerEvent(EventKind.CHALLENGE_STATE_RECORDED.value, {
                "pool_id": pool_id, "account": account, "cid": cid, "state": state.value,
            })]

        return self.submit_transaction(_record)

    # ========================================================================
    # READS
    # ========================================================================

    def fetch_one(self, key: str) -> Optional[Any]:
        db = self.session_factory()
        try:
            entry = db.scalars(select(LedgerEntry).where(LedgerEntry.key == key)).first()
            return entry.value if entry else None
        except SQLAlchemyError as e:
            raise LedgerSubmissionError("Ledger read failed", str(e)) from e
        finally:
            db.close()

    def scan(self, prefix: str) -> List[Tuple[str, Any]]:
        db = self.session_factory()
        try:
            return _scan_entries(db, prefix, self.scan_page_size)
        except SQLAlchemyError as e:
            raise LedgerSubmissionError("Ledger scan failed", str(e)) from e
        finally:
            db.close()

    def events(self, since_block: int = 0) -> List[Dict[str, Any]]:
        """Events from blocks strictly after since_block, oldest first."""
        db = self.session_factory()
        try:
            rows = db.scalars(
                select(LedgerEventRecord)
                .where(LedgerEventRecord.block_number > since_block)
                .order_by(LedgerEventRecord.block_number, LedgerEventRecord.event_index)
            ).all()
            return [
                {"block_number": r.block_number, "kind": r.kind, "data": r.data}
                for r in rows
            ]
        finally:
            db.close()

    # ========================================================================
    # FINALITY SUBSCRIPTIONS
    # ========================================================================

    def subscribe(self, callback: Subscriber) -> None:
        with self._subscribers_lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._subscribers_lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def _notify(self, receipt: TransactionReceipt) -> None:
        with self._subscribers_lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(receipt)
            except Exception as e:
                # block is already final; a failing subscriber must not undo it
                logger.error(f"Finality subscriber failed for block {receipt.block_number}: {e}", exc_info=True)
