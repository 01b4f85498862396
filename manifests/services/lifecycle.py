"""
Manifest Lifecycle Engine

Upload, batch upload, removal and batch removal of manifests.
Owns the invariants of manifest creation, mutation and deletion:
- (pool_id, cid, uploader) is registered at most once
- uploader entries keep registration order
- a manifest with no uploader entries does not exist
"""

import logging
from typing import Any, Dict, List

from manifests.errors import DuplicateUpload, ManifestNotFound
from manifests.ledger import LedgerEvent, LedgerTransaction, ManifestLedger
from manifests.services.common import (
    load_manifest,
    require_same_length,
    save_manifest,
    submit_confirmed,
    validate_metadata,
)
from manifests.types import (
    EventKind,
    Manifest,
    UploaderData,
    validate_account,
    validate_cid,
    validate_pool_id,
    validate_replication_factor,
)

logger = logging.getLogger(__name__)


class ManifestLifecycleEngine:
    """
    Manages manifest lifecycle: upload, batch upload, removal and batch removal.
    """

    def __init__(self, ledger: ManifestLedger):
        """
        Initialize lifecycle engine.

        Args:
            ledger: Ledger adapter holding manifest state
        """
        self.ledger = ledger

    # ========================================================================
    # UPLOAD
    # ========================================================================

    @staticmethod
    def _append_uploader(
        txn: LedgerTransaction,
        uploader: str,
        cid: str,
        pool_id: int,
        manifest_metadata: Any,
        replication_factor: int,
    ) -> Manifest:
        manifest = load_manifest(txn, pool_id, cid)
        if manifest is None:
            manifest = Manifest(pool_id=pool_id, cid=cid, manifest_metadata=manifest_metadata)
        elif manifest.find_uploader(uploader) is not None:
            raise DuplicateUpload(
                "Manifest already uploaded",
                f"uploader {uploader} already registered cid '{cid}' in pool {pool_id}",
            )

        manifest.uploaders.append(UploaderData(
            uploader=uploader,
            storers=[],
            replication_available=replication_factor,
        ))
        save_manifest(txn, manifest)
        return manifest

    def upload(
        self,
        uploader: str,
        cid: str,
        pool_id: int,
        manifest_metadata: Any,
        replication_factor: int,
    ) -> Dict[str, Any]:
        """
        Register uploader's copy of (pool_id, cid).

        Creates the manifest on first upload; otherwise appends a new uploader
        entry. The manifest keeps the metadata of its first upload.

        Returns:
            dict with uploader, storers, manifest_metadata, pool_id

        Raises:
            ValidationError: On malformed input
            DuplicateUpload: If uploader already registered this (pool_id, cid)
        """
        uploader = validate_account(uploader)
        cid = validate_cid(cid)
        pool_id = validate_pool_id(pool_id)
        replication_factor = validate_replication_factor(replication_factor)
        manifest_metadata = validate_metadata(manifest_metadata)

        def _apply(txn: LedgerTransaction) -> List[LedgerEvent]:
            manifest = self._append_uploader(
                txn, uploader, cid, pool_id, manifest_metadata, replication_factor
            )
            return [LedgerEvent(EventKind.MANIFEST_UPLOADED.value, {
                "uploader": uploader,
                "storers": [],
                "cid": cid,
                "pool_id": pool_id,
                "manifest_metadata": manifest.manifest_metadata,
                "replication_factor": replication_factor,
            })]

        event = submit_confirmed(self.ledger, _apply, EventKind.MANIFEST_UPLOADED, "upload")
        logger.info(f"Uploaded manifest '{cid}' to pool {pool_id} by {uploader} (replication={replication_factor})")
        return {
            "uploader": event.data["uploader"],
            "storers": event.data["storers"],
            "manifest_metadata": event.data["manifest_metadata"],
            "pool_id": event.data["pool_id"],
        }

    def batch_upload(
        self,
        uploader: str,
        manifest_metadata: List[Any],
        cid: List[str],
        pool_id: List[int],
        replication_factor: List[int],
    ) -> Dict[str, Any]:
        """
        Upload several manifests for one uploader in a single transaction.

        The lists are read element-wise. Any failure, including a duplicate
        inside the batch itself, leaves the ledger untouched.
        """
        uploader = validate_account(uploader)
        require_same_length(
            manifest_metadata=manifest_metadata,
            cid=cid,
            pool_id=pool_id,
            replication_factor=replication_factor,
        )
        items = [
            (
                validate_metadata(meta),
                validate_cid(c),
                validate_pool_id(p),
                validate_replication_factor(r),
            )
            for meta, c, p, r in zip(manifest_metadata, cid, pool_id, replication_factor)
        ]

        def _apply(txn: LedgerTransaction) -> List[LedgerEvent]:
            for meta, c, p, r in items:
                self._append_uploader(txn, uploader, c, p, meta, r)
            return [LedgerEvent(EventKind.BATCH_MANIFEST_UPLOADED.value, {
                "uploader": uploader,
                "cid": [c for _, c, _, _ in items],
                "pool_id": [p for _, _, p, _ in items],
                "manifest_metadata": [meta for meta, _, _, _ in items],
            })]

        event = submit_confirmed(self.ledger, _apply, EventKind.BATCH_MANIFEST_UPLOADED, "batch upload")
        logger.info(f"Batch uploaded {len(items)} manifest(s) by {uploader}")
        return {
            "uploader": event.data["uploader"],
            "pool_id": event.data["pool_id"],
            "manifest_metadata": event.data["manifest_metadata"],
        }

    # ========================================================================
    # REMOVAL
    # ========================================================================

    @staticmethod
    def _remove_uploader(txn: LedgerTransaction, uploader: str, cid: str, pool_id: int) -> Manifest:
        manifest = load_manifest(txn, pool_id, cid)
        entry = manifest.find_uploader(uploader) if manifest else None
        if entry is None:
            raise ManifestNotFound(
                "Manifest not found",
                f"no upload of cid '{cid}' in pool {pool_id} by {uploader}",
            )
        # storers of this entry keep their storage records; verify flags them
        manifest.uploaders.remove(entry)
        save_manifest(txn, manifest)
        return manifest

    def remove(self, uploader: str, cid: str, pool_id: int) -> Dict[str, Any]:
        """
        Remove uploader's entry from (pool_id, cid).

        Deletes the manifest when it was the last entry. Existing storers are
        not evicted.

        Raises:
            ManifestNotFound: If uploader has no entry for this manifest
        """
        uploader = validate_account(uploader)
        cid = validate_cid(cid)
        pool_id = validate_pool_id(pool_id)

        def _apply(txn: LedgerTransaction) -> List[LedgerEvent]:
            manifest = self._remove_uploader(txn, uploader, cid, pool_id)
            return [LedgerEvent(EventKind.MANIFEST_REMOVED.value, {
                "uploader": uploader,
                "cid": cid,
                "pool_id": pool_id,
                "manifest_deleted": not manifest.uploaders,
            })]

        event = submit_confirmed(self.ledger, _apply, EventKind.MANIFEST_REMOVED, "remove")
        if event.data["manifest_deleted"]:
            logger.info(f"Removed manifest '{cid}' from pool {pool_id} (last uploader {uploader})")
        else:
            logger.info(f"Removed upload of '{cid}' in pool {pool_id} by {uploader}")
        return {
            "uploader": event.data["uploader"],
            "cid": event.data["cid"],
            "pool_id": event.data["pool_id"],
        }

    def batch_remove(self, uploader: str, pool_id: List[int], cid: List[str]) -> Dict[str, Any]:
        """Remove several uploads in one transaction; all or nothing."""
        uploader = validate_account(uploader)
        require_same_length(pool_id=pool_id, cid=cid)
        items = [(validate_pool_id(p), validate_cid(c)) for p, c in zip(pool_id, cid)]

        def _apply(txn: LedgerTransaction) -> List[LedgerEvent]:
            for p, c in items:
                self._remove_uploader(txn, uploader, c, p)
            return [LedgerEvent(EventKind.BATCH_MANIFEST_REMOVED.value, {
                "uploader": uploader,
                "pool_id": [p for p, _ in items],
                "cid": [c for _, c in items],
            })]

        event = submit_confirmed(self.ledger, _apply, EventKind.BATCH_MANIFEST_REMOVED, "batch remove")
        logger.info(f"Batch removed {len(items)} upload(s) by {uploader}")
        return {
            "uploader": event.data["uploader"],
            "pool_id": event.data["pool_id"],
            "cid": event.data["cid"],
        }
