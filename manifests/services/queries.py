"""
Manifest queries: filtered manifest listings, open replication slots and
storer accounting snapshots. All queries are snapshot scans of the ledger.
"""

import logging
from typing import Dict, List, Optional, Tuple

from manifests.errors import LedgerSubmissionError
from manifests.ledger import ManifestLedger, challenge_prefix, manifest_prefix, storage_prefix
from manifests.types import (
    ChallengeStateValue,
    Manifest,
    ManifestAvailable,
    ManifestStorageData,
    parse_challenge_state,
    validate_account,
    validate_pool_id,
)

logger = logging.getLogger(__name__)


class ManifestQueryEngine:

    def __init__(self, ledger: ManifestLedger):
        self.ledger = ledger

    def _manifests(self, pool_id: Optional[int]) -> List[Manifest]:
        return [Manifest.from_dict(value) for _, value in self.ledger.scan(manifest_prefix(pool_id))]

    def list_manifests(
        self,
        pool_id: Optional[int] = None,
        uploader: Optional[str] = None,
        storer: Optional[str] = None,
    ) -> List[Manifest]:
        """
        Manifests matching every given filter, in ledger insertion order.

        With an uploader or storer filter, each manifest keeps only the
        uploader entries that match.
        """
        if pool_id is not None:
            pool_id = validate_pool_id(pool_id)
        if uploader is not None:
            uploader = validate_account(uploader)
        if storer is not None:
            storer = validate_account(storer)

        results = []
        for manifest in self._manifests(pool_id):
            entries = manifest.uploaders
            if uploader is not None:
                entries = [u for u in entries if u.uploader == uploader]
            if storer is not None:
                entries = [u for u in entries if storer in u.storers]
            if not entries:
                continue
            manifest.uploaders = entries
            results.append(manifest)
        return results

    def list_available(self, pool_id: Optional[int] = None) -> List[ManifestAvailable]:
        """One projection per uploader entry that still has open slots."""
        if pool_id is not None:
            pool_id = validate_pool_id(pool_id)

        return [
            ManifestAvailable(
                pool_id=manifest.pool_id,
                cid=manifest.cid,
                manifest_metadata=manifest.manifest_metadata,
                replication_available=entry.replication_available,
            )
            for manifest in self._manifests(pool_id)
            for entry in manifest.uploaders
            if entry.replication_available > 0
        ]

    def list_storer_data(
        self,
        pool_id: Optional[int] = None,
        storer: Optional[str] = None,
    ) -> List[ManifestStorageData]:
        """Accounting records joined with their challenge state."""
        if pool_id is not None:
            pool_id = validate_pool_id(pool_id)
        if storer is not None:
            storer = validate_account(storer)

        states: Dict[Tuple[int, str, str], ChallengeStateValue] = {}
        for key, value in self.ledger.scan(challenge_prefix(pool_id)):
            try:
                identity = (int(value["pool_id"]), value["account"], value["cid"])
            except (KeyError, TypeError, ValueError) as e:
                raise LedgerSubmissionError("Failed to decode challenge record", f"{key}: {e!r}") from e
            states[identity] = parse_challenge_state(value.get("state"))

        results = []
        for _, value in self.ledger.scan(storage_prefix(pool_id, storer)):
            record = ManifestStorageData.from_dict(value)
            if storer is not None and record.account != storer:
                continue
            record.state = states.get((record.pool_id, record.account, record.cid), ChallengeStateValue.OPEN)
            results.append(record)
        return results
