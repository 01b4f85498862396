"""
Replication Slot API

Storer nodes claim and release replication slots on manifests.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from manifests.ledger import ManifestLedger
from manifests.logic import get_ledger, get_replication_engine
from manifests.types import resolve_account

router = APIRouter(prefix="/fula/manifest", tags=["storage"])


class StorageManifestInput(BaseModel):
    seed: str
    cid: str
    pool_id: int


class StorageManifestOutput(BaseModel):
    storer: str
    cid: str
    pool_id: int


class BatchStorageManifestInput(BaseModel):
    seed: str
    pool_id: int
    cid: List[str]


class BatchStorageManifestOutput(BaseModel):
    storer: str
    pool_id: int
    cid: List[str]


class RemoveStoringManifestInput(BaseModel):
    seed: str
    cid: str
    pool_id: int
    strict: bool = False  # fail with not_storing instead of a no-op


class RemoveStoringManifestOutput(BaseModel):
    storer: Optional[str] = None
    cid: str
    pool_id: int


@router.post("/storage", response_model=StorageManifestOutput)
def storage_manifest(req: StorageManifestInput, ledger: ManifestLedger = Depends(get_ledger)):
    storer = resolve_account(req.seed)
    return get_replication_engine(ledger).claim_slot(storer, req.cid, req.pool_id)


@router.post("/batch_storage", response_model=BatchStorageManifestOutput)
def batch_storage_manifest(req: BatchStorageManifestInput, ledger: ManifestLedger = Depends(get_ledger)):
    storer = resolve_account(req.seed)
    return get_replication_engine(ledger).batch_claim_slot(storer, req.pool_id, req.cid)


@router.post("/remove_stored_manifest", response_model=RemoveStoringManifestOutput)
def remove_stored_manifest(req: RemoveStoringManifestInput, ledger: ManifestLedger = Depends(get_ledger)):
    storer = resolve_account(req.seed)
    return get_replication_engine(ledger).release_slot(storer, req.cid, req.pool_id, strict=req.strict)


@router.post("/batch_remove_stored_manifest", response_model=BatchStorageManifestOutput)
def batch_remove_stored_manifest(req: BatchStorageManifestInput, ledger: ManifestLedger = Depends(get_ledger)):
    storer = resolve_account(req.seed)
    return get_replication_engine(ledger).batch_release_slot(storer, req.pool_id, req.cid)
