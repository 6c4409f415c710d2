"""
Tests for upload batch persistence and duplicate handling.
"""

import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from qaflow.errors import BlobStoreError, DependencyError
from qaflow.models.enums import FileStatus, Role, SoldStatus
from qaflow.models.tables import FileRecord
from qaflow.storage.blob_store import LocalBlobStore
from qaflow.workflow import uploads
from qaflow.workflow.uploads import UploadBatchAborted, process_upload_batch


class FailingBlobStore(LocalBlobStore):
    """Local store that refuses to store one base name."""

    def __init__(self, root, fail_on):
        super().__init__(root=root, public_base_url="http://test/blobs")
        self.fail_on = fail_on

    def put(self, key, data, content_type):
        if f"-{self.fail_on}." in key:
            raise BlobStoreError(f"Simulated outage for {key}")
        return super().put(key, data, content_type)


async def _count_records(session):
    return await session.scalar(select(func.count(FileRecord.id)))


class TestProcessUploadBatch:

    async def test_mixed_batch(self, session, store, staged, make_user):
        owner, _ = await make_user(Role.USER.value)
        blobs = [staged("a.mp3", b"ID3audio", "audio/mpeg"), staged("a.txt", b"hello"), staged("b.mp3")]

        result = await process_upload_batch(session, store, blobs, owner.id, owner.name)

        assert result.duplicates == []
        assert result.summary.total_files == 3
        assert result.summary.uploaded_records == 2
        assert result.summary.fully_mapped == 1
        assert result.summary.audio_only == 1
        assert result.summary.text_only == 0

        by_name = {r.base_name: r for r in result.created}
        a, b = by_name["a"], by_name["b"]
        assert a.audio_available and a.text_available
        assert b.audio_available and not b.text_available
        assert b.text_key is None
        assert a.status == FileStatus.PROCESSING.value
        assert a.sold_status == SoldStatus.UNSOLD.value
        assert a.owner_name == owner.name
        assert store.get(a.text_key) == b"hello"
        assert store.get(a.audio_key) == b"ID3audio"

    async def test_storage_keys_are_namespaced_by_owner(self, session, store, staged, make_user):
        owner, _ = await make_user()
        result = await process_upload_batch(session, store, [staged("my call.mp3")], owner.id, owner.name)
        key = result.created[0].audio_key
        assert key.startswith(f"uploads/{owner.id}/")
        assert key.endswith("-my_call.mp3")

    async def test_second_batch_is_duplicate(self, session, store, staged, make_user):
        owner, _ = await make_user()
        await process_upload_batch(session, store, [staged("a.mp3"), staged("a.txt")], owner.id, owner.name)

        second = staged("a.mp3")
        result = await process_upload_batch(session, store, [second], owner.id, owner.name)

        assert result.created == []
        assert result.duplicates == ["a"]
        assert result.summary.uploaded_records == 0
        assert not second.path.exists()
        assert await _count_records(session) == 1

    async def test_same_base_name_for_different_owners(self, session, store, staged, make_user):
        first, _ = await make_user()
        other, _ = await make_user()
        await process_upload_batch(session, store, [staged("a.mp3")], first.id, first.name)
        result = await process_upload_batch(session, store, [staged("a.mp3")], other.id, other.name)
        assert len(result.created) == 1
        assert result.duplicates == []

    async def test_temp_files_removed(self, session, store, staged, make_user):
        owner, _ = await make_user()
        blobs = [staged("a.mp3"), staged("a.txt"), staged("c.doc")]
        await process_upload_batch(session, store, blobs, owner.id, owner.name)
        assert not any(b.path.exists() for b in blobs)

    async def test_text_only_record(self, session, store, staged, make_user):
        owner, _ = await make_user()
        result = await process_upload_batch(session, store, [staged("t.txt")], owner.id, owner.name)
        record = result.created[0]
        assert record.text_available and not record.audio_available
        assert record.audio_key is None
        assert result.summary.text_only == 1

    async def test_audio_mime_type_defaults(self, session, store, staged, make_user):
        owner, _ = await make_user()
        result = await process_upload_batch(session, store, [staged("a.mp3")], owner.id, owner.name)
        assert result.created[0].audio_mime_type == "audio/mpeg"

    async def test_storage_failure_aborts_rest_of_batch(self, session, staged, make_user, tmp_path):
        owner, _ = await make_user()
        failing = FailingBlobStore(str(tmp_path / "failing"), fail_on="b")
        blobs = [staged("a.mp3"), staged("a.txt"), staged("b.mp3"), staged("b.txt"), staged("c.txt")]

        with pytest.raises(UploadBatchAborted) as exc_info:
            await process_upload_batch(session, failing, blobs, owner.id, owner.name)

        partial = exc_info.value.partial
        assert [r.base_name for r in partial.created] == ["a"]
        assert exc_info.value.status_code == 502
        assert exc_info.value.details["created_ids"] == [str(partial.created[0].id)]
        # Earlier pair stays persisted, failing and later pairs do not
        names = (await session.execute(select(FileRecord.base_name))).scalars().all()
        assert names == ["a"]
        assert not any(b.path.exists() for b in blobs)

    async def test_failed_pair_leaves_no_orphan_blob(self, session, staged, make_user, tmp_path):
        owner, _ = await make_user()

        class TextOutage(LocalBlobStore):
            def put(self, key, data, content_type):
                if key.endswith(".txt"):
                    raise BlobStoreError("text bucket down")
                return super().put(key, data, content_type)

        store = TextOutage(root=str(tmp_path / "outage"), public_base_url="http://test/blobs")
        with pytest.raises(UploadBatchAborted):
            await process_upload_batch(session, store, [staged("a.mp3"), staged("a.txt")], owner.id, owner.name)

        leftovers = [p for p in (tmp_path / "outage").rglob("*") if p.is_file()]
        assert leftovers == []

    async def test_lost_duplicate_race_reported_as_duplicate(self, session, store, staged, make_user, monkeypatch):
        owner, _ = await make_user()
        await process_upload_batch(session, store, [staged("a.mp3")], owner.id, owner.name)

        async def no_existing(*args, **kwargs):
            return None

        # Both requests passed the duplicate check; the unique constraint decides
        monkeypatch.setattr(uploads, "find_existing", no_existing)
        result = await process_upload_batch(
            session, store, [staged("a.txt"), staged("z.mp3")], owner.id, owner.name
        )

        assert result.duplicates == ["a"]
        assert [r.base_name for r in result.created] == ["z"]
        assert await _count_records(session) == 2

    async def test_record_store_failure_aborts_rest_of_batch(self, session, store, staged, make_user, monkeypatch):
        owner, _ = await make_user()
        real_find_existing = uploads.find_existing

        async def locked_on_b(session, owner_id, base_name):
            if base_name == "b":
                raise OperationalError("SELECT file_records", {}, Exception("database is locked"))
            return await real_find_existing(session, owner_id, base_name)

        monkeypatch.setattr(uploads, "find_existing", locked_on_b)
        blobs = [staged("a.mp3"), staged("b.mp3"), staged("c.mp3")]

        with pytest.raises(UploadBatchAborted) as exc_info:
            await process_upload_batch(session, store, blobs, owner.id, owner.name)

        assert isinstance(exc_info.value.__cause__, DependencyError)
        assert [r.base_name for r in exc_info.value.partial.created] == ["a"]
        assert exc_info.value.details["summary"]["uploaded_records"] == 1
        assert not any(b.path.exists() for b in blobs)
        names = (await session.execute(select(FileRecord.base_name))).scalars().all()
        assert names == ["a"]

    async def test_failed_commit_removes_uploaded_blobs(self, session, store, staged, make_user, monkeypatch):
        owner, _ = await make_user()

        async def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(session, "commit", failing_commit)
        blobs = [staged("a.mp3"), staged("a.txt")]

        with pytest.raises(UploadBatchAborted):
            await process_upload_batch(session, store, blobs, owner.id, owner.name)

        assert [p for p in store.root.rglob("*") if p.is_file()] == []
        assert not any(b.path.exists() for b in blobs)
        assert await _count_records(session) == 0

    async def test_foreign_key_violation_is_not_a_duplicate(self, session, store, staged):
        unknown_owner = uuid.uuid4()

        with pytest.raises(UploadBatchAborted) as exc_info:
            await process_upload_batch(session, store, [staged("a.mp3")], unknown_owner, "ghost")

        assert exc_info.value.partial.duplicates == []
        assert [p for p in store.root.rglob("*") if p.is_file()] == []

    async def test_unique_filenames_counts_created_records(self, session, store, staged, make_user):
        owner, _ = await make_user()
        await process_upload_batch(session, store, [staged("a.mp3")], owner.id, owner.name)

        result = await process_upload_batch(
            session, store, [staged("a.txt"), staged("n.mp3"), staged("n.txt")], owner.id, owner.name
        )

        assert result.duplicates == ["a"]
        assert result.summary.unique_filenames == 1
        assert result.summary.uploaded_records == 1
