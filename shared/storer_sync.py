"""
Storer Sync

Background thread run by storer nodes: periodically claims open replication
slots in one pool and releases claims on manifests that were removed.
"""

import logging
import threading
import time
from typing import Any, Dict

import requests

from shared.manifest_client import ManifestAPIError, ManifestClient

logger = logging.getLogger(__name__)


class StorerSync:
    """
    Keeps a storer's claims in step with the manifest tracker.
    """

    def __init__(
        self,
        client: ManifestClient,
        pool_id: int,
        claim_limit: int = 10,
        interval_seconds: int = 30
    ):
        """
        Initialize storer sync.

        Args:
            client: Manifest client holding this storer's seed
            pool_id: Pool whose open slots are claimed
            claim_limit: Maximum claims per round
            interval_seconds: Delay between rounds
        """
        self.client = client
        self.pool_id = pool_id
        self.claim_limit = claim_limit
        self.interval_seconds = interval_seconds

        self.running = False
        self.thread = None

        logger.info(
            f"Storer sync initialized: tracker={client.base_url}, pool={pool_id}, "
            f"limit={claim_limit}, interval={interval_seconds}s"
        )

    def start(self):
        """Start sync thread"""
        if self.running:
            logger.warning("Storer sync already running")
            return

        self.running = True
        self.thread = threading.Thread(target=self._run, daemon=True)
        self.thread.start()

        logger.info("Storer sync started")

    def stop(self):
        """Stop sync thread"""
        self.running = False
        if self.thread:
            self.thread.join(timeout=5)

        logger.info("Storer sync stopped")

    def _run(self):
        while self.running:
            self.sync_once()

            # Sleep in small increments for responsive shutdown
            for _ in range(self.interval_seconds * 10):
                if not self.running:
                    break
                time.sleep(0.1)

    def sync_once(self) -> Dict[str, Any]:
        """
        Run one round: release stale claims, then claim open slots.

        Tracker and transport errors are logged; the round reports what
        completed before the failure.
        """
        result: Dict[str, Any] = {"released": 0, "claimed": []}
        try:
            result["released"] = len(self.client.reconcile())
            result["claimed"] = self.client.claim_available(self.pool_id, limit=self.claim_limit)
        except ManifestAPIError as e:
            logger.warning(f"Storer sync round rejected: {e}")
        except requests.exceptions.RequestException as e:
            logger.error(f"Storer sync request error: {e}")
        return result
