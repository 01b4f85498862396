"""
Service integration layer.

Holds the process-wide ledger and hands out engine instances bound to it, so
the API layer never constructs engines or sessions itself.
"""

import logging
from typing import Optional

from manifests.database import SessionLocal
from manifests.ledger import ManifestLedger, TransactionReceipt
from manifests.services.accounting import AccountingEngine
from manifests.services.lifecycle import ManifestLifecycleEngine
from manifests.services.queries import ManifestQueryEngine
from manifests.services.replication import ReplicationEngine

logger = logging.getLogger(__name__)

_ledger: Optional[ManifestLedger] = None


# ============================================================================
# LEDGER WIRING
# ============================================================================

def set_ledger(ledger: Optional[ManifestLedger]) -> None:
    """Install the process-wide ledger (called by service.py and tests)."""
    global _ledger
    _ledger = ledger


def get_ledger() -> ManifestLedger:
    global _ledger
    if _ledger is None:
        _ledger = ManifestLedger(SessionLocal)
    return _ledger


def log_finalized_block(receipt: TransactionReceipt) -> None:
    kinds = ", ".join(event.kind for event in receipt.events) or "no events"
    logger.info(f"Block {receipt.block_number} finalized: {kinds}")


# ============================================================================
# ENGINE ACCESSORS
# ============================================================================

def get_lifecycle_engine(ledger: ManifestLedger) -> ManifestLifecycleEngine:
    """Get manifest lifecycle engine instance."""
    return ManifestLifecycleEngine(ledger)


def get_replication_engine(ledger: ManifestLedger) -> ReplicationEngine:
    """Get replication matching engine instance."""
    return ReplicationEngine(ledger)


def get_accounting_engine(ledger: ManifestLedger) -> AccountingEngine:
    """Get accounting & verification engine instance."""
    return AccountingEngine(ledger)


def get_query_engine(ledger: ManifestLedger) -> ManifestQueryEngine:
    """Get query engine instance."""
    return ManifestQueryEngine(ledger)
