"""
Manifest Client

Shared utility for storer nodes and operators to talk to the manifest tracker.
Storers use it to find open replication slots, claim them, report accounting
and reconcile their local state after concurrent removals.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from shared.accounts import account_from_seed

logger = logging.getLogger(__name__)


class ManifestAPIError(Exception):
    """Non-2xx response from the manifest tracker."""

    def __init__(self, status_code: int, kind: str, message: str, description: str = ""):
        super().__init__(f"HTTP {status_code} {kind}: {message}")
        self.status_code = status_code
        self.kind = kind
        self.message = message
        self.description = description


class ManifestClient:
    """
    Client for the manifest tracker API.

    Usage:
        client = ManifestClient(
            base_url="http://10.0.1.1:8002",
            seed="//Alice"
        )

        # Find and claim work
        slots = client.get_available_manifests(pool_id=1)
        client.claim_available(pool_id=1, limit=5)

        # Report proof-of-activity
        client.update_manifest(cid="bafy...", pool_id=1, active_days=3,
                               active_cycles=1, missed_cycles=0)

        # Drop claims on manifests that were removed
        client.reconcile()
    """

    def __init__(
        self,
        base_url: str,
        seed: Optional[str] = None,
        timeout: int = 10,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize manifest client.

        Args:
            base_url: Manifest tracker base URL (e.g., 'http://10.0.1.1:8002')
            seed: Signing seed of this node; required for mutating calls
            timeout: Request timeout in seconds
            session: Optional requests session to reuse connections
        """
        self.base_url = base_url.rstrip("/")
        self.seed = seed
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        response = self.session.post(url, json=payload, timeout=self.timeout)
        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text}

        if 200 <= response.status_code < 300:
            return body

        if not isinstance(body, dict):
            body = {"message": str(body)}
        detail = body.get("detail")
        raise ManifestAPIError(
            status_code=response.status_code,
            kind=str(body.get("kind") or "http_error"),
            message=str(body.get("message") or detail or getattr(response, "reason", "")),
            description=str(body.get("description") or ""),
        )

    @property
    def account(self) -> str:
        """Account of this node, derived locally from its seed."""
        if not self.seed:
            raise ValueError("seed is required to derive the account")
        return account_from_seed(self.seed)

    def _signed(self, **fields) -> Dict[str, Any]:
        if not self.seed:
            raise ValueError("seed is required for this call")
        return {"seed": self.seed, **fields}

    # ========================================================================
    # UPLOADER CALLS
    # ========================================================================

    def upload_manifest(self, cid: str, pool_id: int, manifest_metadata: Any, replication_factor: int) -> Dict:
        return self._post("/fula/manifest/upload", self._signed(
            cid=cid, pool_id=pool_id, manifest_metadata=manifest_metadata,
            replication_factor=replication_factor,
        ))

    def batch_upload_manifest(
        self,
        cid: List[str],
        pool_id: List[int],
        manifest_metadata: List[Any],
        replication_factor: List[int],
    ) -> Dict:
        return self._post("/fula/manifest/batch_upload", self._signed(
            cid=cid, pool_id=pool_id, manifest_metadata=manifest_metadata,
            replication_factor=replication_factor,
        ))

    def remove_manifest(self, cid: str, pool_id: int) -> Dict:
        return self._post("/fula/manifest/remove", self._signed(cid=cid, pool_id=pool_id))

    def batch_remove_manifest(self, cid: List[str], pool_id: List[int]) -> Dict:
        return self._post("/fula/manifest/batch_remove", self._signed(cid=cid, pool_id=pool_id))

    # ========================================================================
    # STORER CALLS
    # ========================================================================

    def storage_manifest(self, cid: str, pool_id: int) -> Dict:
        return self._post("/fula/manifest/storage", self._signed(cid=cid, pool_id=pool_id))

    def batch_storage_manifest(self, cid: List[str], pool_id: int) -> Dict:
        return self._post("/fula/manifest/batch_storage", self._signed(cid=cid, pool_id=pool_id))

    def remove_stored_manifest(self, cid: str, pool_id: int, strict: bool = False) -> Dict:
        return self._post(
            "/fula/manifest/remove_stored_manifest",
            self._signed(cid=cid, pool_id=pool_id, strict=strict),
        )

    def batch_remove_stored_manifest(self, cid: List[str], pool_id: int) -> Dict:
        return self._post("/fula/manifest/batch_remove_stored_manifest", self._signed(cid=cid, pool_id=pool_id))

    def update_manifest(
        self, cid: str, pool_id: int, active_days: int, active_cycles: int, missed_cycles: int
    ) -> Dict:
        return self._post("/fula/manifest/update", self._signed(
            cid=cid, pool_id=pool_id, active_days=active_days,
            active_cycles=active_cycles, missed_cycles=missed_cycles,
        ))

    def verify_manifests(self) -> Dict:
        return self._post("/fula/manifest/verify", self._signed())

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_all_manifests(
        self,
        pool_id: Optional[int] = None,
        uploader: Optional[str] = None,
        storer: Optional[str] = None
    ) -> List[Dict]:
        body = self._post("/fula/manifest", {"pool_id": pool_id, "uploader": uploader, "storer": storer})
        return body.get("manifests", [])

    def get_available_manifests(self, pool_id: Optional[int] = None) -> List[Dict]:
        body = self._post("/fula/manifest/available", {"pool_id": pool_id})
        return body.get("manifests", [])

    def get_storer_data(self, pool_id: Optional[int] = None, storer: Optional[str] = None) -> List[Dict]:
        body = self._post("/fula/manifest/storer_data", {"pool_id": pool_id, "storer": storer})
        return body.get("manifests", [])

    # ========================================================================
    # STORER WORKFLOWS
    # ========================================================================

    def claim_available(self, pool_id: int, limit: int = 10) -> List[str]:
        """
        Claim up to limit open manifests in pool_id with one batch call.

        Manifests this node already stores are skipped. Returns the claimed cids.
        """
        held = {m["cid"] for m in self.get_all_manifests(pool_id=pool_id, storer=self.account)}

        wanted: List[str] = []
        for slot in self.get_available_manifests(pool_id=pool_id):
            cid = slot.get("cid")
            if cid and cid not in held and cid not in wanted:
                wanted.append(cid)
            if len(wanted) >= limit:
                break

        if not wanted:
            logger.info(f"No open replication slots in pool {pool_id}")
            return []

        result = self.batch_storage_manifest(cid=wanted, pool_id=pool_id)
        logger.info(f"Claimed {len(result.get('cid', []))} manifest(s) in pool {pool_id}")
        return result.get("cid", [])

    def reconcile(self) -> List[Dict]:
        """
        Release every stale claim reported by verify.

        Returns the release responses, one per (pool_id, cid) released.
        """
        verification = self.verify_manifests()
        invalid = set(verification.get("invalid_manifests", []))
        if not invalid:
            return []

        storer = verification["storer"]
        # a cid can be stale in one pool and still held in another
        held = {(m["pool_id"], m["cid"]) for m in self.get_all_manifests(storer=storer)}
        released = []
        for record in self.get_storer_data(storer=storer):
            key = (record.get("pool_id"), record.get("cid"))
            if key[1] in invalid and key not in held:
                released.append(self.remove_stored_manifest(cid=record["cid"], pool_id=record["pool_id"]))
        logger.info(f"Reconciled {len(released)} stale claim(s) for {storer}")
        return released
