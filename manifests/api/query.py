"""
Manifest Query API

Read-only views used by storer nodes to find work and by operators to audit
state. Every call is a fresh snapshot scan; results of separate calls are not
mutually consistent.

Endpoints:
- POST /fula/manifest: manifests filtered by pool, uploader and storer
- POST /fula/manifest/available: open replication slots
- POST /fula/manifest/storer_data: storer accounting with challenge state
- POST /fula/manifest/verify: caller's valid and stale claims
- GET /ledger/events: finalized ledger events
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from manifests.ledger import ManifestLedger
from manifests.logic import get_accounting_engine, get_ledger, get_query_engine
from manifests.types import resolve_account

router = APIRouter(tags=["query"])


class GetAllManifestsInput(BaseModel):
    pool_id: Optional[int] = None
    uploader: Optional[str] = None
    storer: Optional[str] = None


class GetAvailableManifestsInput(BaseModel):
    pool_id: Optional[int] = None


class GetAllManifestsStorerDataInput(BaseModel):
    pool_id: Optional[int] = None
    storer: Optional[str] = None


class VerifyManifestsInput(BaseModel):
    seed: str


class VerifyManifestsOutput(BaseModel):
    storer: str
    valid_manifests: List[str]
    invalid_manifests: List[str]


@router.post("/fula/manifest")
def get_all_manifests(
    req: Optional[GetAllManifestsInput] = None, ledger: ManifestLedger = Depends(get_ledger)
) -> Dict[str, Any]:
    req = req or GetAllManifestsInput()
    manifests = get_query_engine(ledger).list_manifests(
        pool_id=req.pool_id, uploader=req.uploader, storer=req.storer
    )
    return {"manifests": [m.to_output() for m in manifests]}


@router.post("/fula/manifest/available")
def get_available_manifests(
    req: Optional[GetAvailableManifestsInput] = None, ledger: ManifestLedger = Depends(get_ledger)
) -> Dict[str, Any]:
    req = req or GetAvailableManifestsInput()
    available = get_query_engine(ledger).list_available(pool_id=req.pool_id)
    return {"manifests": [a.to_output() for a in available]}


@router.post("/fula/manifest/storer_data")
def get_all_manifests_storer_data(
    req: Optional[GetAllManifestsStorerDataInput] = None, ledger: ManifestLedger = Depends(get_ledger)
) -> Dict[str, Any]:
    req = req or GetAllManifestsStorerDataInput()
    records = get_query_engine(ledger).list_storer_data(pool_id=req.pool_id, storer=req.storer)
    return {"manifests": [r.to_output() for r in records]}


@router.post("/fula/manifest/verify", response_model=VerifyManifestsOutput)
def verify_manifests(req: VerifyManifestsInput, ledger: ManifestLedger = Depends(get_ledger)):
    storer = resolve_account(req.seed)
    result = get_accounting_engine(ledger).verify(storer)
    return {
        "storer": result.storer,
        "valid_manifests": result.valid_manifests,
        "invalid_manifests": result.invalid_manifests,
    }


@router.get("/ledger/events")
def get_ledger_events(
    since_block: int = Query(0, ge=0), ledger: ManifestLedger = Depends(get_ledger)
) -> Dict[str, Any]:
    return {"events": ledger.events(since_block=since_block)}
