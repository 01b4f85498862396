"""
Storer Sync Launcher

Runs the storer-side sync loop against a manifest tracker: claims open
replication slots in one pool and releases claims on removed manifests.

Usage:
    python scripts/run_storer_sync.py --seed //Bob --pool-id 1

Environment variables:
    FULA_BASE_URL: Manifest tracker base URL (default: http://127.0.0.1:8002)
    FULA_SEED: Storer seed, used when --seed is not given
"""

import argparse
import os
import signal
import sys
import time
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from manifests import config
from manifests.startup_profile import validate_client_base_url
from shared.logging_config import setup_logging
from shared.manifest_client import ManifestClient
from shared.storer_sync import StorerSync


def main():
    parser = argparse.ArgumentParser(description="Run the FULA storer sync loop")
    parser.add_argument("--base-url", default=config.BASE_URL, help="Manifest tracker URL (default: $FULA_BASE_URL)")
    parser.add_argument("--seed", default=os.getenv("FULA_SEED"), help="Storer seed (default: $FULA_SEED)")
    parser.add_argument("--pool-id", type=int, required=True, help="Pool to claim slots in")
    parser.add_argument("--limit", type=int, default=10, help="Maximum claims per round (default: 10)")
    parser.add_argument("--interval", type=int, default=30, help="Seconds between rounds (default: 30)")
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    args = parser.parse_args()

    logger = setup_logging("storer_sync", level=args.log_level, log_file=config.LOG_FILE)

    if not args.seed:
        logger.error("A storer seed is required (--seed or FULA_SEED)")
        sys.exit(1)
    try:
        validate_client_base_url(args.base_url)
    except ValueError as e:
        logger.error(f"Invalid tracker URL: {e}")
        sys.exit(1)

    client = ManifestClient(base_url=args.base_url, seed=args.seed)
    sync = StorerSync(client, pool_id=args.pool_id, claim_limit=args.limit, interval_seconds=args.interval)

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        sync.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    sync.start()

    # Keep alive
    try:
        while sync.running:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt, shutting down...")
        sync.stop()


if __name__ == "__main__":
    main()
