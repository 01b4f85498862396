"""
Manifest Lifecycle API

Upload, removal and accounting updates. The caller is identified by the
account derived from its seed.
"""

from typing import Any, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from manifests.ledger import ManifestLedger
from manifests.logic import get_accounting_engine, get_ledger, get_lifecycle_engine
from manifests.types import resolve_account

router = APIRouter(prefix="/fula/manifest", tags=["manifest"])


class UploadManifestInput(BaseModel):
    seed: str
    manifest_metadata: Any = None
    cid: str
    pool_id: int
    replication_factor: int


class UploadManifestOutput(BaseModel):
    uploader: str
    storers: List[str]
    manifest_metadata: Any = None
    pool_id: int


class BatchUploadManifestInput(BaseModel):
    seed: str
    manifest_metadata: List[Any]
    cid: List[str]
    pool_id: List[int]
    replication_factor: List[int]


class BatchUploadManifestOutput(BaseModel):
    uploader: str
    pool_id: List[int]
    manifest_metadata: List[Any]


class UpdateManifestInput(BaseModel):
    seed: str
    cid: str
    pool_id: int
    active_days: int
    active_cycles: int
    missed_cycles: int


class UpdatedManifestOutput(BaseModel):
    storer: str
    pool_id: int
    cid: str
    active_days: int
    active_cycles: int
    missed_cycles: int


class RemoveManifestInput(BaseModel):
    seed: str
    cid: str
    pool_id: int


class RemoveManifestOutput(BaseModel):
    uploader: str
    cid: str
    pool_id: int


class BatchRemoveManifestInput(BaseModel):
    seed: str
    pool_id: List[int]
    cid: List[str]


class BatchRemoveManifestOutput(BaseModel):
    uploader: str
    pool_id: List[int]
    cid: List[str]


@router.post("/upload", response_model=UploadManifestOutput)
def upload_manifest(req: UploadManifestInput, ledger: ManifestLedger = Depends(get_ledger)):
    uploader = resolve_account(req.seed)
    return get_lifecycle_engine(ledger).upload(
        uploader, req.cid, req.pool_id, req.manifest_metadata, req.replication_factor
    )


@router.post("/batch_upload", response_model=BatchUploadManifestOutput)
def batch_upload_manifest(req: BatchUploadManifestInput, ledger: ManifestLedger = Depends(get_ledger)):
    uploader = resolve_account(req.seed)
    return get_lifecycle_engine(ledger).batch_upload(
        uploader, req.manifest_metadata, req.cid, req.pool_id, req.replication_factor
    )


@router.post("/update", response_model=UpdatedManifestOutput)
def update_manifest(req: UpdateManifestInput, ledger: ManifestLedger = Depends(get_ledger)):
    storer = resolve_account(req.seed)
    return get_accounting_engine(ledger).update_accounting(
        storer, req.cid, req.pool_id, req.active_days, req.active_cycles, req.missed_cycles
    )


@router.post("/remove", response_model=RemoveManifestOutput)
def remove_manifest(req: RemoveManifestInput, ledger: ManifestLedger = Depends(get_ledger)):
    uploader = resolve_account(req.seed)
    return get_lifecycle_engine(ledger).remove(uploader, req.cid, req.pool_id)


@router.post("/batch_remove", response_model=BatchRemoveManifestOutput)
def batch_remove_manifest(req: BatchRemoveManifestInput, ledger: ManifestLedger = Depends(get_ledger)):
    uploader = resolve_account(req.seed)
    return get_lifecycle_engine(ledger).batch_remove(uploader, req.pool_id, req.cid)
