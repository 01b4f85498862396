"""HTTP-level tests for the manifest tracker routes."""

import pytest
from fastapi.testclient import TestClient

from manifests.logic import get_ledger
from manifests.service import app
from manifests.types import ChallengeStateValue

from tests.conftest import ALICE, ALICE_SEED, BOB, BOB_SEED, CHARLIE_SEED

METADATA = {"job": {"uri": "abc", "size": 100}}


@pytest.fixture
def client(ledger):
    app.dependency_overrides[get_ledger] = lambda: ledger
    yield TestClient(app)
    app.dependency_overrides.clear()


def _upload(client, seed=ALICE_SEED, cid="abc", pool_id=1, replication_factor=2):
    return client.post("/fula/manifest/upload", json={
        "seed": seed, "cid": cid, "pool_id": pool_id,
        "manifest_metadata": METADATA, "replication_factor": replication_factor,
    })


class TestManifestRoutes:

    def test_root(self, client):
        assert client.get("/").json()["service"] == "manifests"

    def test_upload(self, client):
        response = _upload(client)

        assert response.status_code == 200
        assert response.json() == {"uploader": ALICE, "storers": [], "manifest_metadata": METADATA, "pool_id": 1}

    def test_duplicate_upload_is_conflict(self, client):
        _upload(client)
        response = _upload(client)

        assert response.status_code == 409
        assert response.json()["kind"] == "duplicate_upload"

    def test_bad_seed_is_validation_error(self, client):
        response = _upload(client, seed="not a seed")

        assert response.status_code == 422
        assert response.json()["kind"] == "validation_error"

    def test_malformed_body_is_validation_error(self, client):
        response = client.post("/fula/manifest/upload", json={
            "seed": ALICE_SEED, "cid": "abc", "pool_id": "not-a-pool",
            "manifest_metadata": METADATA, "replication_factor": 1,
        })

        assert response.status_code == 422
        body = response.json()
        assert body["kind"] == "validation_error"
        assert "pool_id" in body["description"]

    def test_missing_field_is_validation_error(self, client):
        response = client.post("/fula/manifest/storage", json={"seed": BOB_SEED, "pool_id": 1})

        assert response.status_code == 422
        assert response.json()["kind"] == "validation_error"
        assert "cid" in response.json()["description"]

    def test_bad_replication_factor_is_validation_error(self, client):
        response = _upload(client, replication_factor=0)
        assert response.status_code == 422
        assert response.json()["kind"] == "validation_error"

    def test_batch_upload_and_remove(self, client):
        response = client.post("/fula/manifest/batch_upload", json={
            "seed": ALICE_SEED, "cid": ["a", "b"], "pool_id": [1, 1],
            "manifest_metadata": [{}, {}], "replication_factor": [1, 1],
        })
        assert response.status_code == 200
        assert response.json()["pool_id"] == [1, 1]

        response = client.post("/fula/manifest/batch_remove", json={
            "seed": ALICE_SEED, "cid": ["a", "b"], "pool_id": [1, 1],
        })
        assert response.json() == {"uploader": ALICE, "pool_id": [1, 1], "cid": ["a", "b"]}

    def test_remove_unknown_is_not_found(self, client):
        response = client.post("/fula/manifest/remove", json={"seed": ALICE_SEED, "cid": "abc", "pool_id": 1})

        assert response.status_code == 404
        assert response.json()["kind"] == "manifest_not_found"


class TestStorageRoutes:

    def test_claim_update_verify_release(self, client):
        _upload(client, replication_factor=1)

        response = client.post("/fula/manifest/storage", json={"seed": BOB_SEED, "cid": "abc", "pool_id": 1})
        assert response.json() == {"storer": BOB, "cid": "abc", "pool_id": 1}

        response = client.post("/fula/manifest/storage", json={"seed": CHARLIE_SEED, "cid": "abc", "pool_id": 1})
        assert response.status_code == 409
        assert response.json()["kind"] == "no_available_slot"

        response = client.post("/fula/manifest/update", json={
            "seed": BOB_SEED, "cid": "abc", "pool_id": 1,
            "active_days": 3, "active_cycles": 1, "missed_cycles": 0,
        })
        assert response.json()["active_cycles"] == 1

        response = client.post("/fula/manifest/verify", json={"seed": BOB_SEED})
        assert response.json() == {"storer": BOB, "valid_manifests": ["abc"], "invalid_manifests": []}

        response = client.post("/fula/manifest/remove_stored_manifest", json={
            "seed": BOB_SEED, "cid": "abc", "pool_id": 1,
        })
        assert response.json() == {"storer": BOB, "cid": "abc", "pool_id": 1}

    def test_lenient_and_strict_release(self, client):
        _upload(client)
        payload = {"seed": BOB_SEED, "cid": "abc", "pool_id": 1}

        response = client.post("/fula/manifest/remove_stored_manifest", json=payload)
        assert response.status_code == 200
        assert response.json()["storer"] is None

        response = client.post("/fula/manifest/remove_stored_manifest", json={**payload, "strict": True})
        assert response.status_code == 404
        assert response.json()["kind"] == "not_storing"

    def test_batch_claim_and_release(self, client):
        for cid in ["a", "b"]:
            _upload(client, cid=cid, replication_factor=1)
        payload = {"seed": BOB_SEED, "cid": ["a", "b"], "pool_id": 1}

        assert client.post("/fula/manifest/batch_storage", json=payload).json()["cid"] == ["a", "b"]
        response = client.post("/fula/manifest/batch_remove_stored_manifest", json=payload)
        assert response.json() == {"storer": BOB, "pool_id": 1, "cid": ["a", "b"]}


class TestQueryRoutes:

    def test_get_all_without_body(self, client):
        _upload(client)

        manifests = client.post("/fula/manifest").json()["manifests"]

        assert len(manifests) == 1
        assert manifests[0]["size"] == 100
        assert manifests[0]["uploaders"][0]["uploader"] == ALICE

    def test_get_all_with_filters(self, client):
        _upload(client)
        _upload(client, pool_id=2)

        body = client.post("/fula/manifest", json={"pool_id": 2}).json()
        assert [m["pool_id"] for m in body["manifests"]] == [2]

        body = client.post("/fula/manifest", json={"storer": BOB}).json()
        assert body["manifests"] == []

    def test_available(self, client):
        _upload(client)
        body = client.post("/fula/manifest/available", json={}).json()
        assert body["manifests"] == [
            {"pool_id": 1, "cid": "abc", "manifest_metadata": METADATA, "replication_available": 2}
        ]

    def test_storer_data_carries_state(self, client, ledger):
        _upload(client)
        client.post("/fula/manifest/storage", json={"seed": BOB_SEED, "cid": "abc", "pool_id": 1})
        ledger.put_challenge_state(1, BOB, "abc", ChallengeStateValue.SUCCESSFUL)

        body = client.post("/fula/manifest/storer_data", json={"storer": BOB}).json()

        assert body["manifests"] == [{
            "pool_id": 1, "account": BOB, "cid": "abc",
            "active_days": 0, "active_cycles": 0, "missed_cycles": 0, "state": "Successful",
        }]

    def test_ledger_events(self, client):
        _upload(client)
        client.post("/fula/manifest/storage", json={"seed": BOB_SEED, "cid": "abc", "pool_id": 1})

        events = client.get("/ledger/events").json()["events"]
        assert [e["kind"] for e in events] == ["ManifestUploaded", "ManifestStorageClaimed"]

        events = client.get("/ledger/events", params={"since_block": 1}).json()["events"]
        assert [e["block_number"] for e in events] == [2]
