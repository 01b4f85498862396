"""Tests for manifest upload and removal."""

import pytest

from manifests.errors import ConflictError, DuplicateUpload, ManifestNotFound, ValidationError
from manifests.ledger import manifest_key

from tests.conftest import ALICE, BOB

METADATA = {"job": {"uri": "abc", "size": 2048}}


class TestUpload:

    def test_upload_creates_manifest(self, lifecycle, queries):
        result = lifecycle.upload(ALICE, "abc", 1, METADATA, 2)

        assert result == {"uploader": ALICE, "storers": [], "manifest_metadata": METADATA, "pool_id": 1}
        manifests = queries.list_manifests(pool_id=1)
        assert len(manifests) == 1
        assert manifests[0].cid == "abc"
        assert manifests[0].size == 2048
        assert [u.to_dict() for u in manifests[0].uploaders] == [
            {"uploader": ALICE, "storers": [], "replication_available": 2}
        ]

    def test_second_upload_by_same_uploader_conflicts(self, lifecycle):
        lifecycle.upload(ALICE, "abc", 1, METADATA, 2)

        with pytest.raises(DuplicateUpload) as exc_info:
            lifecycle.upload(ALICE, "abc", 1, METADATA, 3)
        assert isinstance(exc_info.value, ConflictError)

    def test_other_uploader_appends_entry_and_keeps_first_metadata(self, lifecycle, queries):
        lifecycle.upload(ALICE, "abc", 1, METADATA, 2)
        lifecycle.upload(BOB, "abc", 1, {"job": {"uri": "other"}}, 1)

        manifest = queries.list_manifests(pool_id=1)[0]
        assert [u.uploader for u in manifest.uploaders] == [ALICE, BOB]
        assert manifest.manifest_metadata == METADATA

    def test_same_cid_in_other_pool_is_independent(self, lifecycle, queries):
        lifecycle.upload(ALICE, "abc", 1, METADATA, 2)
        lifecycle.upload(ALICE, "abc", 2, METADATA, 2)
        assert len(queries.list_manifests()) == 2

    @pytest.mark.parametrize("replication_factor", [0, -1, 2**16, "2"])
    def test_rejects_bad_replication_factor(self, lifecycle, ledger, replication_factor):
        with pytest.raises(ValidationError):
            lifecycle.upload(ALICE, "abc", 1, METADATA, replication_factor)
        assert ledger.events() == []

    def test_rejects_bad_identifiers(self, lifecycle):
        with pytest.raises(ValidationError):
            lifecycle.upload(ALICE, "", 1, METADATA, 1)
        with pytest.raises(ValidationError):
            lifecycle.upload(ALICE, "abc", -1, METADATA, 1)
        with pytest.raises(ValidationError):
            lifecycle.upload("not-an-account", "abc", 1, METADATA, 1)
        with pytest.raises(ValidationError):
            lifecycle.upload(ALICE, "abc", 1, {"bad": object()}, 1)

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_rejects_non_finite_numbers_in_metadata(self, lifecycle, queries, value):
        with pytest.raises(ValidationError):
            lifecycle.upload(ALICE, "abc", 1, {"size": value}, 1)
        assert queries.list_manifests() == []


class TestBatchUpload:

    def test_batch_upload_applies_every_element(self, lifecycle, queries):
        result = lifecycle.batch_upload(ALICE, [{"n": 1}, {"n": 2}], ["a", "b"], [1, 2], [1, 3])

        assert result == {"uploader": ALICE, "pool_id": [1, 2], "manifest_metadata": [{"n": 1}, {"n": 2}]}
        assert [(m.pool_id, m.cid) for m in queries.list_manifests()] == [(1, "a"), (2, "b")]

    def test_duplicate_inside_batch_applies_nothing(self, lifecycle, ledger, queries):
        with pytest.raises(DuplicateUpload):
            lifecycle.batch_upload(ALICE, [{}, {}, {}], ["a", "b", "a"], [1, 1, 1], [1, 1, 1])

        assert queries.list_manifests() == []
        assert ledger.events() == []

    def test_conflict_with_existing_upload_applies_nothing(self, lifecycle, queries):
        lifecycle.upload(ALICE, "b", 1, {}, 1)

        with pytest.raises(DuplicateUpload):
            lifecycle.batch_upload(ALICE, [{}, {}], ["a", "b"], [1, 1], [1, 1])

        assert [m.cid for m in queries.list_manifests()] == ["b"]

    def test_mismatched_lengths_are_rejected(self, lifecycle):
        with pytest.raises(ValidationError):
            lifecycle.batch_upload(ALICE, [{}], ["a", "b"], [1, 1], [1, 1])
        with pytest.raises(ValidationError):
            lifecycle.batch_upload(ALICE, [], [], [], [])


class TestRemove:

    def test_removing_last_uploader_deletes_manifest(self, lifecycle, ledger, queries):
        lifecycle.upload(ALICE, "abc", 1, METADATA, 2)

        result = lifecycle.remove(ALICE, "abc", 1)

        assert result == {"uploader": ALICE, "cid": "abc", "pool_id": 1}
        assert ledger.fetch_one(manifest_key(1, "abc")) is None
        assert queries.list_manifests() == []

    def test_removing_one_of_two_uploaders_keeps_manifest(self, lifecycle, queries):
        lifecycle.upload(ALICE, "abc", 1, METADATA, 2)
        lifecycle.upload(BOB, "abc", 1, METADATA, 1)

        lifecycle.remove(ALICE, "abc", 1)

        manifest = queries.list_manifests()[0]
        assert [u.uploader for u in manifest.uploaders] == [BOB]

    def test_remove_unknown_upload_fails(self, lifecycle):
        with pytest.raises(ManifestNotFound):
            lifecycle.remove(ALICE, "abc", 1)

        lifecycle.upload(ALICE, "abc", 1, METADATA, 2)
        with pytest.raises(ManifestNotFound):
            lifecycle.remove(BOB, "abc", 1)

    def test_reupload_after_remove_is_allowed(self, lifecycle):
        lifecycle.upload(ALICE, "abc", 1, METADATA, 2)
        lifecycle.remove(ALICE, "abc", 1)
        assert lifecycle.upload(ALICE, "abc", 1, METADATA, 2)["uploader"] == ALICE


class TestBatchRemove:

    def test_batch_remove(self, lifecycle, queries):
        lifecycle.batch_upload(ALICE, [{}, {}], ["a", "b"], [1, 1], [1, 1])

        result = lifecycle.batch_remove(ALICE, [1, 1], ["a", "b"])

        assert result == {"uploader": ALICE, "pool_id": [1, 1], "cid": ["a", "b"]}
        assert queries.list_manifests() == []

    def test_missing_element_applies_nothing(self, lifecycle, queries):
        lifecycle.upload(ALICE, "a", 1, {}, 1)

        with pytest.raises(ManifestNotFound):
            lifecycle.batch_remove(ALICE, [1, 1], ["a", "missing"])

        assert [m.cid for m in queries.list_manifests()] == ["a"]
