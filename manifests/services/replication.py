"""
Replication Matching

Storers claim and release replication slots on manifests.

Slot policy:
- a storer holds at most one slot per manifest, across all uploader entries
- a claim goes to the first uploader entry, in registration order, with
  replication_available > 0
- a release returns the slot to the entry that granted it
"""

import logging
from typing import Any, Dict, List, Optional

from manifests.errors import AlreadyStoring, ManifestNotFound, NoAvailableSlot, NotStoring
from manifests.ledger import LedgerEvent, LedgerTransaction, ManifestLedger, storage_key
from manifests.services.common import (
    load_manifest,
    load_storage,
    require_same_length,
    save_manifest,
    save_storage,
    submit_confirmed,
)
from manifests.types import (
    EventKind,
    ManifestStorageData,
    validate_account,
    validate_cid,
    validate_pool_id,
)

logger = logging.getLogger(__name__)


class ReplicationEngine:
    """
    Matches storers to open replication slots.
    """

    def __init__(self, ledger: ManifestLedger):
        self.ledger = ledger

    # ========================================================================
    # CLAIM
    # ========================================================================

    @staticmethod
    def _claim(txn: LedgerTransaction, storer: str, cid: str, pool_id: int) -> str:
        manifest = load_manifest(txn, pool_id, cid)
        if manifest is None:
            raise ManifestNotFound("Manifest not found", f"no manifest for cid '{cid}' in pool {pool_id}")

        if manifest.find_storing_entry(storer) is not None:
            raise AlreadyStoring(
                "Storer already holds a slot",
                f"{storer} already stores cid '{cid}' in pool {pool_id}",
            )

        entry = next((u for u in manifest.uploaders if u.replication_available > 0), None)
        if entry is None:
            raise NoAvailableSlot(
                "No replication slot available",
                f"every uploader of cid '{cid}' in pool {pool_id} is fully replicated",
            )

        entry.storers.append(storer)
        entry.replication_available -= 1
        save_manifest(txn, manifest)

        # accounting may already exist from an earlier update; keep its counters
        if load_storage(txn, pool_id, storer, cid) is None:
            save_storage(txn, ManifestStorageData(pool_id=pool_id, account=storer, cid=cid))
        return entry.uploader

    def claim_slot(self, storer: str, cid: str, pool_id: int) -> Dict[str, Any]:
        """
        Claim a replication slot on (pool_id, cid) for storer.

        Raises:
            ManifestNotFound: If the manifest does not exist
            AlreadyStoring: If storer already holds a slot on it
            NoAvailableSlot: If every uploader entry is fully replicated
        """
        storer = validate_account(storer)
        cid = validate_cid(cid)
        pool_id = validate_pool_id(pool_id)

        def _apply(txn: LedgerTransaction) -> List[LedgerEvent]:
            uploader = self._claim(txn, storer, cid, pool_id)
            return [LedgerEvent(EventKind.MANIFEST_STORAGE_CLAIMED.value, {
                "storer": storer,
                "uploader": uploader,
                "cid": cid,
                "pool_id": pool_id,
            })]

        event = submit_confirmed(self.ledger, _apply, EventKind.MANIFEST_STORAGE_CLAIMED, "storage claim")
        logger.info(f"Storer {storer} claimed '{cid}' in pool {pool_id} from uploader {event.data['uploader']}")
        return {"storer": event.data["storer"], "cid": event.data["cid"], "pool_id": event.data["pool_id"]}

    def batch_claim_slot(self, storer: str, pool_id: int, cids: List[str]) -> Dict[str, Any]:
        """Claim slots on several cids of one pool; all or nothing."""
        storer = validate_account(storer)
        pool_id = validate_pool_id(pool_id)
        require_same_length(cid=cids)
        cids = [validate_cid(c) for c in cids]

        def _apply(txn: LedgerTransaction) -> List[LedgerEvent]:
            for c in cids:
                self._claim(txn, storer, c, pool_id)
            return [LedgerEvent(EventKind.BATCH_MANIFEST_STORAGE_CLAIMED.value, {
                "storer": storer, "pool_id": pool_id, "cid": list(cids),
            })]

        event = submit_confirmed(self.ledger, _apply, EventKind.BATCH_MANIFEST_STORAGE_CLAIMED, "batch storage claim")
        logger.info(f"Storer {storer} claimed {len(cids)} manifest(s) in pool {pool_id}")
        return {"storer": event.data["storer"], "pool_id": event.data["pool_id"], "cid": event.data["cid"]}

    # ========================================================================
    # RELEASE
    # ========================================================================

    @staticmethod
    def _release(txn: LedgerTransaction, storer: str, cid: str, pool_id: int, strict: bool) -> Optional[str]:
        """Returns the released storer, or None for a lenient no-op."""
        manifest = load_manifest(txn, pool_id, cid)
        entry = manifest.find_storing_entry(storer) if manifest else None
        has_record = load_storage(txn, pool_id, storer, cid) is not None

        if entry is None and not has_record:
            if not strict:
                return None
            if manifest is None:
                raise ManifestNotFound("Manifest not found", f"no manifest for cid '{cid}' in pool {pool_id}")
            raise NotStoring("Storer holds no slot", f"{storer} does not store cid '{cid}' in pool {pool_id}")

        if entry is not None:
            entry.storers.remove(storer)
            entry.replication_available += 1
            save_manifest(txn, manifest)
        if has_record:
            txn.delete(storage_key(pool_id, storer, cid))
        return storer

    def release_slot(self, storer: str, cid: str, pool_id: int, strict: bool = False) -> Dict[str, Any]:
        """
        Release storer's slot on (pool_id, cid).

        Frees the slot on the uploader entry that granted it and drops the
        storer's accounting record, including one orphaned by a removed
        manifest. When storer holds nothing the call is a no-op returning
        storer=None, unless strict is set.

        Raises:
            NotStoring: strict only, storer holds no slot on an existing manifest
            ManifestNotFound: strict only, manifest does not exist
        """
        storer = validate_account(storer)
        cid = validate_cid(cid)
        pool_id = validate_pool_id(pool_id)

        def _apply(txn: LedgerTransaction) -> List[LedgerEvent]:
            released = self._release(txn, storer, cid, pool_id, strict)
            return [LedgerEvent(EventKind.MANIFEST_STORAGE_RELEASED.value, {
                "storer": released, "cid": cid, "pool_id": pool_id,
            })]

        event = submit_confirmed(self.ledger, _apply, EventKind.MANIFEST_STORAGE_RELEASED, "storage release")
        if event.data["storer"] is None:
            logger.info(f"Release of '{cid}' in pool {pool_id} by {storer} was a no-op")
        else:
            logger.info(f"Storer {storer} released '{cid}' in pool {pool_id}")
        return {"storer": event.data["storer"], "cid": event.data["cid"], "pool_id": event.data["pool_id"]}

    def batch_release_slot(self, storer: str, pool_id: int, cids: List[str]) -> Dict[str, Any]:
        """Release several slots of one pool; strict, all or nothing."""
        storer = validate_account(storer)
        pool_id = validate_pool_id(pool_id)
        require_same_length(cid=cids)
        cids = [validate_cid(c) for c in cids]

        def _apply(txn: LedgerTransaction) -> List[LedgerEvent]:
            for c in cids:
                self._release(txn, storer, c, pool_id, strict=True)
            return [LedgerEvent(EventKind.BATCH_MANIFEST_STORAGE_RELEASED.value, {
                "storer": storer, "pool_id": pool_id, "cid": list(cids),
            })]

        event = submit_confirmed(
            self.ledger, _apply, EventKind.BATCH_MANIFEST_STORAGE_RELEASED, "batch storage release"
        )
        logger.info(f"Storer {storer} released {len(cids)} manifest(s) in pool {pool_id}")
        return {"storer": event.data["storer"], "pool_id": event.data["pool_id"], "cid": event.data["cid"]}
