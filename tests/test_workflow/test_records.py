"""
Tests for file record operations: sold status, comments, review text,
download links, deletion and stats.
"""

import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from qaflow.errors import DependencyError, ForbiddenError, NotFoundError, ValidationError
from qaflow.models.enums import AssetKind, Role
from qaflow.models.tables import Assignment, Comment, FileRecord, Review
from qaflow.workflow import records
from qaflow.workflow.assignments import assign_or_reassign
from qaflow.workflow.reviews import ReviewVerdict, submit_review


class TestAccessAndListing:

    async def test_owner_sees_own_record_only(self, session, make_user, make_record):
        owner, owner_principal = await make_user(Role.AGENT.value)
        _, stranger = await make_user(Role.USER.value)
        _, qa = await make_user(Role.QA2.value)
        record = await make_record(owner)

        assert (await records.get_accessible_record(session, record.id, owner_principal)).id == record.id
        assert (await records.get_accessible_record(session, record.id, qa)).id == record.id
        with pytest.raises(ForbiddenError):
            await records.get_accessible_record(session, record.id, stranger)

    async def test_missing_record(self, session, make_user):
        _, admin = await make_user(Role.ADMIN.value)
        with pytest.raises(NotFoundError):
            await records.get_accessible_record(session, uuid.uuid4(), admin)

    async def test_list_records_filters(self, session, make_user, make_record):
        owner, _ = await make_user()
        other, _ = await make_user()
        await make_record(owner, base_name="alpha")
        await make_record(owner, base_name="beta")
        await make_record(other, base_name="alpha")

        items, total = await records.list_records(session, owner_id=owner.id)
        assert total == 2
        assert {r.base_name for r in items} == {"alpha", "beta"}

        _, total = await records.list_records(session, search="ALP")
        assert total == 2

        items, total = await records.list_records(session, limit=1)
        assert total == 3
        assert len(items) == 1


class TestSoldStatus:

    async def test_owner_updates(self, session, make_user, make_record):
        owner, principal = await make_user()
        record = await make_record(owner)
        updated = await records.update_sold_status(session, record.id, "Sold", principal)
        assert updated.sold_status == "Sold"

    async def test_manager_updates(self, session, make_user, make_record):
        owner, _ = await make_user()
        _, monitor = await make_user(Role.MONITOR.value)
        record = await make_record(owner)
        updated = await records.update_sold_status(session, record.id, "Sold", monitor)
        assert updated.sold_status == "Sold"

    async def test_other_user_forbidden(self, session, make_user, make_record):
        owner, _ = await make_user()
        _, qa = await make_user(Role.QA1.value)
        record = await make_record(owner)
        with pytest.raises(ForbiddenError):
            await records.update_sold_status(session, record.id, "Sold", qa)

    async def test_invalid_value(self, session, make_user, make_record):
        owner, principal = await make_user()
        record = await make_record(owner)
        with pytest.raises(ValidationError):
            await records.update_sold_status(session, record.id, "sold", principal)


class TestComments:

    async def test_qa_adds_comment(self, session, make_user, make_record):
        owner, _ = await make_user()
        _, qa = await make_user(Role.QA1.value, name="Quinn")
        record = await make_record(owner)

        comments = await records.add_comment(session, record.id, "check minute 3", qa)

        assert len(comments) == 1
        assert comments[0].author_name == "Quinn"
        assert comments[0].role == Role.QA1.value
        assert comments[0].message == "check minute 3"

    async def test_uploader_cannot_comment(self, session, make_user, make_record):
        owner, principal = await make_user()
        record = await make_record(owner)
        with pytest.raises(ForbiddenError):
            await records.add_comment(session, record.id, "hi", principal)

    async def test_blank_message_rejected(self, session, make_user, make_record):
        owner, _ = await make_user()
        _, qa = await make_user(Role.QA1.value)
        record = await make_record(owner)
        with pytest.raises(ValidationError):
            await records.add_comment(session, record.id, "   ", qa)

    async def test_delete_rules(self, session, make_user, make_record):
        owner, _ = await make_user()
        _, author = await make_user(Role.QA1.value)
        _, other_qa = await make_user(Role.QA2.value)
        _, admin = await make_user(Role.ADMIN.value)
        record = await make_record(owner)
        await records.add_comment(session, record.id, "one", author)
        comments = await records.add_comment(session, record.id, "two", author)
        first, second = (next(c for c in comments if c.message == m) for m in ("one", "two"))

        with pytest.raises(ForbiddenError):
            await records.delete_comment(session, record.id, first.id, other_qa)

        await records.delete_comment(session, record.id, first.id, author)
        await records.delete_comment(session, record.id, second.id, admin)
        remaining = await session.scalar(
            select(func.count(Comment.id)).where(Comment.file_record_id == record.id)
        )
        assert remaining == 0

        with pytest.raises(NotFoundError):
            await records.delete_comment(session, record.id, first.id, admin)


class TestReviewText:

    async def test_first_save_mints_key_then_reuses(self, session, store, make_user, make_record):
        owner, _ = await make_user()
        _, qa = await make_user(Role.QA2.value)
        record = await make_record(owner, base_name="call 7")

        key = await records.save_review_text(session, store, record.id, "edited once", qa)
        assert key.startswith(f"uploads/{owner.id}/")
        assert key.endswith("-call_7.F.txt")

        again = await records.save_review_text(session, store, record.id, "edited twice", qa)
        assert again == key
        assert store.get(key) == b"edited twice"

    async def test_empty_string_is_valid_content(self, session, store, make_user, make_record):
        owner, _ = await make_user()
        _, monitor = await make_user(Role.MONITOR.value)
        record = await make_record(owner)
        key = await records.save_review_text(session, store, record.id, "", monitor)
        assert store.get(key) == b""

    async def test_requires_content_and_role(self, session, store, make_user, make_record):
        owner, principal = await make_user()
        _, qa = await make_user(Role.QA1.value)
        record = await make_record(owner)
        with pytest.raises(ValidationError):
            await records.save_review_text(session, store, record.id, None, qa)
        with pytest.raises(ForbiddenError):
            await records.save_review_text(session, store, record.id, "x", principal)


class TestTextContent:

    async def test_original_and_review(self, session, store, make_user, make_record):
        owner, principal = await make_user()
        _, qa = await make_user(Role.QA1.value)
        record = await make_record(owner, text_body="original words")
        await records.save_review_text(session, store, record.id, "fixed words", qa)

        content = await records.get_text_content(session, store, record.id, principal)

        assert content.text_content == "original words"
        assert content.review_content == "fixed words"
        assert content.original_key == record.text_key

    async def test_audio_only_record(self, session, store, make_user, make_record):
        owner, principal = await make_user()
        record = await make_record(owner, text=False)

        content = await records.get_text_content(session, store, record.id, principal)

        assert content.text_content is None
        assert content.review_content == ""
        assert content.review_key is None


class TestDownloadLinks:

    async def test_audio_link(self, session, store, make_user, make_record):
        owner, principal = await make_user()
        record = await make_record(owner, base_name="track")

        link = await records.mint_file_url(session, store, record.id, "audio", principal)

        assert link.url.startswith(f"http://test/blobs/{record.audio_key}?expires=")
        assert link.filename == "track.mp3"
        assert link.kind is AssetKind.AUDIO
        assert link.expires_in > 0

    async def test_missing_side_is_not_found(self, session, store, make_user, make_record):
        owner, principal = await make_user()
        record = await make_record(owner, audio=False)
        with pytest.raises(NotFoundError):
            await records.mint_file_url(session, store, record.id, "audio", principal)
        with pytest.raises(NotFoundError):
            await records.mint_file_url(session, store, record.id, "review", principal)

    async def test_unknown_type(self, session, store, make_user, make_record):
        owner, principal = await make_user()
        record = await make_record(owner)
        with pytest.raises(ValidationError):
            await records.mint_file_url(session, store, record.id, "video", principal)


class TestAdministration:

    async def test_delete_cascades(self, session, store, make_user, make_record):
        owner, _ = await make_user()
        _, manager = await make_user(Role.ADMIN.value)
        qa, qa_principal = await make_user(Role.QA1.value)
        record = await make_record(owner)
        record_id, text_key = record.id, record.text_key
        result = await assign_or_reassign(session, record_id, qa.id, manager)
        await submit_review(session, result.assignment.id, ReviewVerdict("Sold", "OK"), qa_principal)
        await records.add_comment(session, record_id, "note", qa_principal)
        await session.commit()

        await records.delete_file_record(session, store, record_id)
        await session.commit()

        for model in (Review, Assignment, Comment):
            count = await session.scalar(
                select(func.count(model.id)).where(model.file_record_id == record_id)
            )
            assert count == 0
        assert await session.scalar(select(func.count(FileRecord.id))) == 0
        assert not store.exists(text_key)

    async def test_delete_is_committed_before_blobs_go(self, session, store, make_user, make_record):
        owner, _ = await make_user()
        record = await make_record(owner)
        record_id, text_key = record.id, record.text_key

        await records.delete_file_record(session, store, record_id)
        await session.rollback()

        remaining = await session.scalar(select(func.count(FileRecord.id)).where(FileRecord.id == record_id))
        assert remaining == 0
        assert not store.exists(text_key)

    async def test_failed_delete_keeps_blobs(self, session, store, make_user, make_record, monkeypatch):
        owner, _ = await make_user()
        record = await make_record(owner)
        record_id, text_key = record.id, record.text_key

        async def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(session, "commit", failing_commit)
        with pytest.raises(DependencyError):
            await records.delete_file_record(session, store, record_id)

        remaining = await session.scalar(select(func.count(FileRecord.id)).where(FileRecord.id == record_id))
        assert remaining == 1
        assert store.exists(text_key)

    async def test_delete_missing(self, session, store):
        with pytest.raises(NotFoundError):
            await records.delete_file_record(session, store, uuid.uuid4())

    async def test_stats(self, session, make_user, make_record):
        owner, _ = await make_user()
        _, manager = await make_user(Role.MONITOR.value)
        qa, qa_principal = await make_user(Role.QA2.value)
        done = await make_record(owner)
        await make_record(owner)
        result = await assign_or_reassign(session, done.id, qa.id, manager)
        await submit_review(session, result.assignment.id, ReviewVerdict("Unsold", "Issue"), qa_principal)

        stats = await records.get_stats(session)

        assert stats["total_users"] == 3
        assert stats["total_file_records"] == 2
        assert stats["processing_count"] == 1
        assert stats["completed_count"] == 1
        assert len(stats["uploads"]) == 2
        assert len(stats["assignments"]) == 1
        assert stats["reviews"][0].team_tag == Role.QA2.value
