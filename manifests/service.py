"""
Manifest Tracker Service Entrypoint

FastAPI application exposing manifest lifecycle, replication matching,
accounting and query routes. Initializes the ledger schema on startup and logs
every finalized block.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from manifests import config
from manifests.api import manifest, query, storage
from manifests.database import init_db
from manifests.errors import ManifestError, ValidationError
from manifests.logic import get_ledger, log_finalized_block
from manifests.startup_profile import StartupProfile, validate_service_profile

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the ledger and subscribe the finality logger"""
    validate_service_profile(StartupProfile(
        role="MANIFESTS",
        host=config.BIND_HOST,
        port=config.API_PORT,
        database_url=config.DATABASE_URL,
    ))

    init_db()
    ledger = get_ledger()
    ledger.subscribe(log_finalized_block)
    logger.info("Manifest service startup complete")

    yield

    ledger.unsubscribe(log_finalized_block)
    logger.info("Manifest service shutdown complete")


app = FastAPI(title="FULA Manifest Tracker", lifespan=lifespan)

app.include_router(manifest.router)
app.include_router(storage.router)
app.include_router(query.router)


@app.exception_handler(ManifestError)
async def manifest_error_handler(request: Request, exc: ManifestError):
    if exc.status_code >= 500:
        logger.error(f"{request.url.path} failed ({exc.kind}): {exc.message} {exc.description}".rstrip())
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}"
        for error in exc.errors()
    )
    error = ValidationError("Invalid request body", details)
    logger.warning(f"{request.url.path} rejected ({error.kind}): {details}")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/")
def root():
    return {
        "service": "manifests",
        "message": "FULA manifest tracker running",
    }
