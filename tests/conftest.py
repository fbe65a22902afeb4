from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from .models import Comment, Post, User


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    sess = AsyncSession(engine, expire_on_commit=False)
    yield sess
    await sess.close()


@pytest.fixture
async def seed_data(session: AsyncSession) -> dict[str, list]:
    alice = User(name="alice")
    bob = User(name="bob")
    await User.add(session, [alice, bob])

    hello = Post(title="Hello", user_id=alice.id)
    again = Post(title="Again", user_id=alice.id)
    bobs = Post(title="Bob's", user_id=bob.id)
    await Post.add(session, [hello, again, bobs])

    comments = [
        Comment(body="First!", post_id=hello.id, user_id=bob.id),
        Comment(body="Nice", post_id=again.id, user_id=bob.id),
        Comment(body="Thanks", post_id=again.id, user_id=alice.id),
    ]
    await Comment.add(session, comments)

    session.expunge_all()

    return {
        "users": [alice, bob],
        "posts": [hello, again, bobs],
        "comments": comments,
    }
