"""
Identifier and value types for manifests, uploader entries and storer
accounting records, plus the validators applied before any ledger interaction.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from manifests import config
from manifests.errors import LedgerSubmissionError, ValidationError
from shared.accounts import account_from_seed, normalize_account

Cid = str
PoolId = int
Account = str
ReplicationFactor = int


class ChallengeStateValue(str, enum.Enum):
    """Proof-of-activity state produced by the challenge subsystem"""
    OPEN = "Open"
    SUCCESSFUL = "Successful"
    FAILED = "Failed"


class EventKind(str, enum.Enum):
    """Confirmation events emitted by finalized manifest transactions"""
    MANIFEST_UPLOADED = "ManifestUploaded"
    BATCH_MANIFEST_UPLOADED = "BatchManifestUploaded"
    MANIFEST_REMOVED = "ManifestRemoved"
    BATCH_MANIFEST_REMOVED = "BatchManifestRemoved"
    MANIFEST_STORAGE_UPDATED = "ManifestStorageUpdated"
    MANIFEST_STORAGE_CLAIMED = "ManifestStorageClaimed"
    BATCH_MANIFEST_STORAGE_CLAIMED = "BatchManifestStorageClaimed"
    MANIFEST_STORAGE_RELEASED = "ManifestStorageReleased"
    BATCH_MANIFEST_STORAGE_RELEASED = "BatchManifestStorageReleased"
    CHALLENGE_STATE_RECORDED = "ChallengeStateRecorded"


# ============================================================================
# VALIDATORS
# ============================================================================

def validate_cid(cid: Any) -> Cid:
    if not isinstance(cid, str) or not cid.strip():
        raise ValidationError("Invalid cid", "cid must be a non-empty string")
    if len(cid.encode("utf-8")) > config.MAX_CID_LENGTH:
        raise ValidationError(
            "Invalid cid", f"cid exceeds {config.MAX_CID_LENGTH} bytes"
        )
    return cid


def validate_pool_id(pool_id: Any) -> PoolId:
    if isinstance(pool_id, bool) or not isinstance(pool_id, int):
        raise ValidationError("Invalid pool_id", "pool_id must be an integer")
    if pool_id < 0 or pool_id > config.MAX_POOL_ID:
        raise ValidationError("Invalid pool_id", f"pool_id must be in range 0..{config.MAX_POOL_ID}")
    return pool_id


def validate_replication_factor(replication_factor: Any) -> ReplicationFactor:
    if isinstance(replication_factor, bool) or not isinstance(replication_factor, int):
        raise ValidationError("Invalid replication_factor", "replication_factor must be an integer")
    if replication_factor < 1 or replication_factor > config.MAX_REPLICATION_FACTOR:
        raise ValidationError(
            "Invalid replication_factor",
            f"replication_factor must be in range 1..{config.MAX_REPLICATION_FACTOR}",
        )
    return replication_factor


def validate_account(account: Any) -> Account:
    try:
        return normalize_account(account)
    except ValueError as e:
        raise ValidationError("Invalid account", str(e)) from e


def resolve_account(seed: Any) -> Account:
    """Derive the signer account from a seed, rejecting malformed seeds."""
    try:
        return account_from_seed(seed)
    except ValueError as e:
        raise ValidationError("Invalid seed", str(e)) from e


def derive_size(manifest_metadata: Any) -> Optional[int]:
    """Size hint for display: metadata['size'], else metadata['job']['size']."""
    if not isinstance(manifest_metadata, dict):
        return None
    candidates = [manifest_metadata.get("size")]
    job = manifest_metadata.get("job")
    if isinstance(job, dict):
        candidates.append(job.get("size"))
    for value in candidates:
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            return value
    return None


# ============================================================================
# RECORDS
# ============================================================================

@dataclass
class UploaderData:
    uploader: Account
    storers: List[Account] = field(default_factory=list)
    replication_available: ReplicationFactor = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uploader": self.uploader,
            "storers": list(self.storers),
            "replication_available": self.replication_available,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UploaderData":
        return cls(
            uploader=data["uploader"],
            storers=list(data.get("storers") or []),
            replication_available=int(data["replication_available"]),
        )


@dataclass
class Manifest:
    """A manifest keyed by (pool_id, cid) with its uploader entries in registration order."""
    pool_id: PoolId
    cid: Cid
    manifest_metadata: Any
    uploaders: List[UploaderData] = field(default_factory=list)

    @property
    def size(self) -> Optional[int]:
        return derive_size(self.manifest_metadata)

    def find_uploader(self, uploader: Account) -> Optional[UploaderData]:
        for entry in self.uploaders:
            if entry.uploader == uploader:
                return entry
        return None

    def find_storing_entry(self, storer: Account) -> Optional[UploaderData]:
        for entry in self.uploaders:
            if storer in entry.storers:
                return entry
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool_id": self.pool_id,
            "cid": self.cid,
            "manifest_metadata": self.manifest_metadata,
            "uploaders": [u.to_dict() for u in self.uploaders],
        }

    def to_output(self) -> Dict[str, Any]:
        output = self.to_dict()
        output["size"] = self.size
        return output

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Manifest":
        try:
            return cls(
                pool_id=int(data["pool_id"]),
                cid=data["cid"],
                manifest_metadata=data.get("manifest_metadata"),
                uploaders=[UploaderData.from_dict(u) for u in data.get("uploaders") or []],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerSubmissionError("Failed to decode manifest record", repr(e)) from e


@dataclass
class ManifestStorageData:
    """Per-storer accounting record for (pool_id, account, cid)."""
    pool_id: PoolId
    account: Account
    cid: Cid
    active_days: int = 0
    active_cycles: int = 0
    missed_cycles: int = 0
    state: ChallengeStateValue = ChallengeStateValue.OPEN

    def to_dict(self) -> Dict[str, Any]:
        # state lives in the challenge key space and is not persisted here
        return {
            "pool_id": self.pool_id,
            "account": self.account,
            "cid": self.cid,
            "active_days": self.active_days,
            "active_cycles": self.active_cycles,
            "missed_cycles": self.missed_cycles,
        }

    def to_output(self) -> Dict[str, Any]:
        output = self.to_dict()
        output["state"] = self.state.value
        return output

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        state: ChallengeStateValue = ChallengeStateValue.OPEN,
    ) -> "ManifestStorageData":
        try:
            return cls(
                pool_id=int(data["pool_id"]),
                account=data["account"],
                cid=data["cid"],
                active_days=int(data.get("active_days", 0)),
                active_cycles=int(data.get("active_cycles", 0)),
                missed_cycles=int(data.get("missed_cycles", 0)),
                state=state,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerSubmissionError("Failed to decode storage record", repr(e)) from e


@dataclass
class ManifestAvailable:
    pool_id: PoolId
    cid: Cid
    manifest_metadata: Any
    replication_available: ReplicationFactor

    def to_output(self) -> Dict[str, Any]:
        return {
            "pool_id": self.pool_id,
            "cid": self.cid,
            "manifest_metadata": self.manifest_metadata,
            "replication_available": self.replication_available,
        }


@dataclass
class VerificationResult:
    storer: Account
    valid_manifests: List[Cid] = field(default_factory=list)
    invalid_manifests: List[Cid] = field(default_factory=list)


def parse_challenge_state(value: Any) -> ChallengeStateValue:
    if value is None:
        return ChallengeStateValue.OPEN
    try:
        return ChallengeStateValue(value)
    except ValueError as e:
        raise LedgerSubmissionError("Failed to decode challenge state", f"unknown state {value!r}") from e
