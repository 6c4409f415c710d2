"""
Shared test fixtures.
"""

import itertools
import uuid

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker

from qaflow.models.database import Base, build_engine
from qaflow.models.enums import FileStatus, Role, SoldStatus
from qaflow.models.tables import FileRecord, User, utcnow
from qaflow.storage.blob_store import LocalBlobStore
from qaflow.workflow.identity import Principal
from qaflow.workflow.pairing import UploadedBlob

_counter = itertools.count()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'qaflow.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(tmp_path):
    return LocalBlobStore(root=str(tmp_path / "blobs"), public_base_url="http://test/blobs")


@pytest.fixture
def staged(tmp_path):
    """Write a file into the staging area and return it as an UploadedBlob."""
    staging = tmp_path / "staging"
    staging.mkdir()

    def _stage(filename: str, content: bytes = b"data", content_type=None) -> UploadedBlob:
        path = staging / f"{next(_counter)}-{filename.replace('/', '_')}"
        path.write_bytes(content)
        return UploadedBlob(filename=filename, path=path, content_type=content_type)

    return _stage


@pytest.fixture
def make_user(session):
    """Persist a user and return (User, Principal)."""

    async def _make(role: str = Role.USER.value, name: str = None):
        n = next(_counter)
        user = User(
            id=uuid.uuid4(),
            name=name or f"{role} user {n}",
            email=f"user{n}@example.com",
            role=role,
        )
        session.add(user)
        await session.commit()
        return user, Principal(id=user.id, name=user.name, role=user.role)

    return _make


@pytest.fixture
def make_record(session, store):
    """Persist a file record directly, storing its text blob when present."""

    async def _make(owner: User, base_name: str = None, audio: bool = True, text: bool = True,
                    text_body: str = "hello transcript"):
        base_name = base_name or f"track{next(_counter)}"
        text_key = f"uploads/{owner.id}/1-{base_name}.txt" if text else None
        if text_key:
            store.put(text_key, text_body.encode("utf-8"), "text/plain; charset=utf-8")
        record = FileRecord(
            base_name=base_name,
            audio_key=f"uploads/{owner.id}/1-{base_name}.mp3" if audio else None,
            text_key=text_key,
            audio_available=audio,
            text_available=text,
            owner_id=owner.id,
            owner_name=owner.name,
            status=FileStatus.PROCESSING.value,
            sold_status=SoldStatus.UNSOLD.value,
            uploaded_at=utcnow(),
        )
        session.add(record)
        await session.commit()
        return record

    return _make
