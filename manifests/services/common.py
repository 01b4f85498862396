"""
Helpers shared by the manifest engines: record loading inside a ledger
transaction, opaque metadata checks and confirmed submission.
"""

import json
import logging
from typing import Any, List, Optional

from manifests.errors import (
    ConflictError,
    EventNotFoundError,
    NotFoundError,
    ValidationError,
)
from manifests.ledger import (
    LedgerEvent,
    LedgerTransaction,
    ManifestLedger,
    manifest_key,
    storage_key,
)
from manifests.types import EventKind, Manifest, ManifestStorageData

logger = logging.getLogger(__name__)


def load_manifest(txn: LedgerTransaction, pool_id: int, cid: str) -> Optional[Manifest]:
    value = txn.get(manifest_key(pool_id, cid))
    return Manifest.from_dict(value) if value is not None else None


def save_manifest(txn: LedgerTransaction, manifest: Manifest) -> None:
    """Persist manifest, deleting the record once no uploader remains."""
    key = manifest_key(manifest.pool_id, manifest.cid)
    if manifest.uploaders:
        txn.put(key, manifest.to_dict())
    else:
        txn.delete(key)


def load_storage(txn: LedgerTransaction, pool_id: int, account: str, cid: str) -> Optional[ManifestStorageData]:
    value = txn.get(storage_key(pool_id, account, cid))
    return ManifestStorageData.from_dict(value) if value is not None else None


def save_storage(txn: LedgerTransaction, record: ManifestStorageData) -> None:
    txn.put(storage_key(record.pool_id, record.account, record.cid), record.to_dict())


def validate_metadata(manifest_metadata: Any) -> Any:
    """Metadata is opaque but must be strict JSON (no NaN or Infinity) to be stored."""
    try:
        json.dumps(manifest_metadata, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValidationError("Invalid manifest_metadata", f"metadata is not JSON-serializable: {e}") from e
    return manifest_metadata


def require_same_length(**columns: List[Any]) -> int:
    lengths = {name: len(values) for name, values in columns.items()}
    distinct = set(lengths.values())
    if len(distinct) != 1:
        detail = ", ".join(f"{name}={n}" for name, n in lengths.items())
        raise ValidationError("Batch inputs differ in length", detail)
    size = distinct.pop()
    if size == 0:
        raise ValidationError("Batch is empty", "at least one element is required")
    return size


def submit_confirmed(
    ledger: ManifestLedger,
    operation,
    expected: EventKind,
    action: str,
) -> LedgerEvent:
    """
    Submit operation and return its confirmation event.

    Caller errors are logged and re-raised unchanged. A finalized transaction
    without the expected event raises EventNotFoundError.
    """
    try:
        receipt = ledger.submit_transaction(operation)
    except (ValidationError, NotFoundError, ConflictError) as e:
        logger.warning(f"{action} rejected ({e.kind}): {e.message} {e.description}".rstrip())
        raise

    event = receipt.find_first(expected)
    if event is None:
        logger.error(f"{action}: block {receipt.block_number} finalized without {expected.value}")
        raise EventNotFoundError(
            f"Failed to find {expected.value} event",
            f"block {receipt.block_number} carried {[e.kind for e in receipt.events]}",
        )
    return event
