"""Tests for the storer-side manifest client and sync loop."""

from unittest.mock import MagicMock, patch

import pytest
import requests
from fastapi.testclient import TestClient

from manifests.logic import get_ledger
from manifests.service import app
from shared.manifest_client import ManifestAPIError, ManifestClient
from shared.storer_sync import StorerSync

from tests.conftest import ALICE_SEED, BOB, BOB_SEED


@pytest.fixture
def http(ledger):
    app.dependency_overrides[get_ledger] = lambda: ledger
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def uploader(http):
    return ManifestClient("http://testserver/", seed=ALICE_SEED, session=http)


@pytest.fixture
def storer(http):
    return ManifestClient("http://testserver", seed=BOB_SEED, session=http)


class TestManifestClient:

    def test_error_response_is_raised(self, uploader):
        uploader.upload_manifest("abc", 1, {}, 1)

        with pytest.raises(ManifestAPIError) as exc_info:
            uploader.upload_manifest("abc", 1, {}, 1)

        assert exc_info.value.status_code == 409
        assert exc_info.value.kind == "duplicate_upload"

    def test_signed_call_requires_seed(self, http):
        with pytest.raises(ValueError):
            ManifestClient("http://testserver", session=http).verify_manifests()

    def test_queries_return_lists(self, uploader, storer):
        uploader.upload_manifest("abc", 1, {"job": {"size": 5}}, 1)
        storer.storage_manifest("abc", 1)

        assert [m["cid"] for m in storer.get_all_manifests(storer=BOB)] == ["abc"]
        assert storer.get_available_manifests(pool_id=1) == []
        assert [r["state"] for r in storer.get_storer_data(storer=BOB)] == ["Open"]

    def test_claim_available(self, uploader, storer):
        uploader.batch_upload_manifest(["a", "b", "c"], [1, 1, 2], [{}, {}, {}], [1, 1, 1])
        storer.storage_manifest("a", 1)

        assert storer.claim_available(pool_id=1) == ["b"]
        assert storer.claim_available(pool_id=1) == []

    def test_account_is_derived_locally(self, storer, http):
        assert storer.account == BOB
        with pytest.raises(ValueError):
            ManifestClient("http://testserver", session=http).account

    def test_claim_available_skips_verify(self, uploader, storer):
        uploader.upload_manifest("a", 1, {}, 1)

        with patch.object(storer, "verify_manifests") as verify:
            assert storer.claim_available(pool_id=1) == ["a"]

        verify.assert_not_called()

    def test_claim_available_respects_limit(self, uploader, storer):
        uploader.batch_upload_manifest(["a", "b"], [1, 1], [{}, {}], [1, 1])
        assert storer.claim_available(pool_id=1, limit=1) == ["a"]

    def test_reconcile_releases_stale_claims(self, uploader, storer):
        uploader.batch_upload_manifest(["a", "b"], [1, 1], [{}, {}], [1, 1])
        storer.batch_storage_manifest(["a", "b"], 1)
        uploader.remove_manifest("b", 1)

        released = storer.reconcile()

        assert [r["cid"] for r in released] == ["b"]
        assert storer.verify_manifests()["invalid_manifests"] == []
        assert storer.reconcile() == []


class TestStorerSync:

    def test_sync_once_reconciles_then_claims(self, uploader, storer):
        uploader.batch_upload_manifest(["a", "b"], [1, 1], [{}, {}], [1, 1])
        storer.storage_manifest("a", 1)
        uploader.remove_manifest("a", 1)

        result = StorerSync(storer, pool_id=1).sync_once()

        assert result == {"released": 1, "claimed": ["b"]}

    def test_sync_once_logs_transport_errors(self):
        client = MagicMock(spec=ManifestClient)
        client.base_url = "http://tracker"
        client.reconcile.side_effect = requests.exceptions.ConnectionError("down")

        result = StorerSync(client, pool_id=1).sync_once()

        assert result == {"released": 0, "claimed": []}
        client.claim_available.assert_not_called()
