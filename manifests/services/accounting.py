"""
Accounting & Verification

Proof-of-activity bookkeeping per (pool_id, storer, cid) and reconciliation of
a storer's claims against ledger state.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from manifests import config
from manifests.errors import ManifestNotFound, ValidationError
from manifests.ledger import (
    LedgerEvent,
    LedgerTransaction,
    ManifestLedger,
    manifest_prefix,
    storage_prefix,
)
from manifests.services.common import load_manifest, load_storage, save_storage, submit_confirmed
from manifests.types import (
    EventKind,
    Manifest,
    ManifestStorageData,
    VerificationResult,
    validate_account,
    validate_cid,
    validate_pool_id,
)

logger = logging.getLogger(__name__)


def _require_int(name: str, value: Any, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Invalid {name}", f"{name} must be an integer")
    if value < low or value > high:
        raise ValidationError(f"Invalid {name}", f"{name} must be in range {low}..{high}")
    return value


class AccountingEngine:
    """
    Maintains storer accounting records and verifies storer claims.
    """

    def __init__(self, ledger: ManifestLedger):
        self.ledger = ledger

    def update_accounting(
        self,
        storer: str,
        cid: str,
        pool_id: int,
        active_days: int,
        active_cycles: int,
        missed_cycles: int,
    ) -> Dict[str, Any]:
        """
        Upsert the accounting record of storer for (pool_id, cid).

        active_days overwrites the stored value; active_cycles and
        missed_cycles are added to the stored counters.

        Returns:
            dict with storer, pool_id, cid and the stored values after update

        Raises:
            ManifestNotFound: If no manifest exists for (pool_id, cid)
            ValidationError: If a value is out of range or a counter would overflow
        """
        storer = validate_account(storer)
        cid = validate_cid(cid)
        pool_id = validate_pool_id(pool_id)
        active_days = _require_int("active_days", active_days, config.MIN_ACTIVE_DAYS, config.MAX_ACTIVE_DAYS)
        active_cycles = _require_int("active_cycles", active_cycles, 0, config.MAX_CYCLE_COUNT)
        missed_cycles = _require_int("missed_cycles", missed_cycles, 0, config.MAX_CYCLE_COUNT)

        def _apply(txn: LedgerTransaction) -> List[LedgerEvent]:
            if load_manifest(txn, pool_id, cid) is None:
                raise ManifestNotFound("Manifest not found", f"no manifest for cid '{cid}' in pool {pool_id}")

            record = load_storage(txn, pool_id, storer, cid) or ManifestStorageData(
                pool_id=pool_id, account=storer, cid=cid
            )
            record.active_days = active_days
            record.active_cycles += active_cycles
            record.missed_cycles += missed_cycles
            if record.active_cycles > config.MAX_CYCLE_COUNT or record.missed_cycles > config.MAX_CYCLE_COUNT:
                raise ValidationError(
                    "Cycle counter overflow",
                    f"counters for cid '{cid}' in pool {pool_id} would exceed {config.MAX_CYCLE_COUNT}",
                )
            save_storage(txn, record)

            return [LedgerEvent(EventKind.MANIFEST_STORAGE_UPDATED.value, {
                "storer": storer,
                "pool_id": pool_id,
                "cid": cid,
                "active_days": record.active_days,
                "active_cycles": record.active_cycles,
                "missed_cycles": record.missed_cycles,
            })]

        event = submit_confirmed(self.ledger, _apply, EventKind.MANIFEST_STORAGE_UPDATED, "accounting update")
        logger.info(
            f"Accounting for {storer} on '{cid}' in pool {pool_id}: "
            f"days={event.data['active_days']} active={event.data['active_cycles']} "
            f"missed={event.data['missed_cycles']}"
        )
        return dict(event.data)

    def verify(self, storer: str) -> VerificationResult:
        """
        Partition the cids storer has claimed into valid and invalid.

        Claims are gathered from storer's accounting records and from manifests
        listing storer. A claim is valid when its manifest exists and lists
        storer. A cid claimed in several pools is invalid if any of those
        claims is stale, so every cid lands in exactly one list.
        """
        storer = validate_account(storer)

        manifests: Dict[Tuple[int, str], Manifest] = {}
        claims: Dict[Tuple[int, str], None] = {}

        for _, value in self.ledger.scan(storage_prefix()):
            record = ManifestStorageData.from_dict(value)
            if record.account == storer:
                claims.setdefault((record.pool_id, record.cid), None)

        for _, value in self.ledger.scan(manifest_prefix()):
            manifest = Manifest.from_dict(value)
            manifests[(manifest.pool_id, manifest.cid)] = manifest
            if manifest.find_storing_entry(storer) is not None:
                claims.setdefault((manifest.pool_id, manifest.cid), None)

        status: Dict[str, bool] = {}
        for pool_id, cid in claims:
            manifest: Optional[Manifest] = manifests.get((pool_id, cid))
            valid = manifest is not None and manifest.find_storing_entry(storer) is not None
            status[cid] = status.get(cid, True) and valid

        result = VerificationResult(
            storer=storer,
            valid_manifests=[cid for cid, ok in status.items() if ok],
            invalid_manifests=[cid for cid, ok in status.items() if not ok],
        )
        if result.invalid_manifests:
            logger.warning(f"Storer {storer} holds {len(result.invalid_manifests)} stale claim(s)")
        return result
