"""
Manifest Tracker Service Launcher

Starts the manifest tracker API from the manifests/ package.

This service provides:
- Manifest upload and removal (single and batch)
- Replication slot claims and releases for storer nodes
- Storer accounting updates and claim verification
- Availability and audit queries

Usage:
    python scripts/run_manifest_service.py --host 0.0.0.0 --port 8002

Environment Variables:
    FULA_API_PORT: API port (default: 8002)
    FULA_BIND_HOST: Bind address (default: 0.0.0.0)
    FULA_DATABASE_URL: Ledger database URL (default: sqlite:///./data/manifests.db)
    FULA_SUBMISSION_TIMEOUT_SECONDS: Ledger submission timeout (default: 30)
    FULA_LOG_LEVEL / FULA_LOG_FILE: Logging level and optional log file
"""
import argparse
import os
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import uvicorn

from shared.logging_config import setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the FULA manifest tracker service")
    parser.add_argument("--host", default=os.getenv("FULA_BIND_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("FULA_API_PORT", "8002")))
    parser.add_argument("--database-url", default=os.getenv("FULA_DATABASE_URL", "sqlite:///./data/manifests.db"))
    parser.add_argument("--log-level", default=os.getenv("FULA_LOG_LEVEL", "INFO"))
    parser.add_argument("--log-file", default=os.getenv("FULA_LOG_FILE"))
    args = parser.parse_args()

    # manifests.config reads these at import time
    os.environ["FULA_API_PORT"] = str(args.port)
    os.environ["FULA_BIND_HOST"] = args.host
    os.environ["FULA_DATABASE_URL"] = args.database_url

    logger = setup_logging("manifests", level=args.log_level, log_file=args.log_file)
    logger.info(f"API address: {args.host}:{args.port}")
    logger.info(f"Ledger database: {args.database_url}")

    uvicorn.run("manifests.service:app", host=args.host, port=args.port, reload=False)


if __name__ == "__main__":
    main()
