"""Shared fixtures: a fresh SQLite database per test and a small card catalog."""

import os
import random
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

# Point the app-level engine and model path somewhere harmless before any
# srs_backend module reads settings.
_TEST_DIR = Path(tempfile.mkdtemp(prefix="flashcard_srs_tests_"))
os.environ.setdefault("FLASHCARD_SRS_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("FLASHCARD_SRS_MODEL_PATH", str(_TEST_DIR / "review_model.joblib"))

import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from srs_backend.models import Base, CardSet, Flashcard, ProgressRecord, User  # noqa: E402


@dataclass
class Catalog:
    """Two users, a public set with two cards and a private set with one."""

    owner_id: int
    student_id: int
    public_set_id: int
    card_a: int
    card_b: int
    private_set_id: int
    private_card: int


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def catalog(session_factory) -> Catalog:
    async with session_factory() as session:
        owner = User(name="Owner")
        student = User(name="Student")
        session.add_all([owner, student])
        await session.flush()

        public_set = CardSet(owner_id=owner.id, title="Capitals", is_public=True)
        private_set = CardSet(owner_id=owner.id, title="Drafts", is_public=False)
        session.add_all([public_set, private_set])
        await session.flush()

        card_a = Flashcard(set_id=public_set.id, question="Capital of France?", answer="Paris", order_index=0)
        card_b = Flashcard(set_id=public_set.id, question="Capital of Peru?", answer="Lima", order_index=1)
        private_card = Flashcard(set_id=private_set.id, question="Draft?", answer="Yes")
        session.add_all([card_a, card_b, private_card])
        await session.commit()

        return Catalog(
            owner_id=owner.id,
            student_id=student.id,
            public_set_id=public_set.id,
            card_a=card_a.id,
            card_b=card_b.id,
            private_set_id=private_set.id,
            private_card=private_card.id,
        )


@pytest_asyncio.fixture
async def seed_progress(session_factory):
    """Insert reviewed progress rows for one fresh user and return the user id.

    ``recent`` rows fall inside the training window, ``stale`` rows are 120
    days old and ``unlearned`` rows have no successful repetition.
    """

    async def seed(now: datetime, recent: int, stale: int = 0, unlearned: int = 0) -> int:
        async with session_factory() as session:
            user = User(name="Trainer")
            session.add(user)
            await session.flush()
            card_set = CardSet(owner_id=user.id, title="Bulk", is_public=False)
            session.add(card_set)
            await session.flush()

            rng = random.Random(5)
            rows = (
                [(now - timedelta(days=rng.randint(0, 60)), rng.randint(1, 6)) for _ in range(recent)]
                + [(now - timedelta(days=120), 3) for _ in range(stale)]
                + [(now - timedelta(days=1), 0) for _ in range(unlearned)]
            )
            for i, (reviewed_at, repetitions) in enumerate(rows):
                card = Flashcard(set_id=card_set.id, question=f"Q{i}", answer=f"A{i}", order_index=i)
                session.add(card)
                await session.flush()
                interval = [1, 1, 6, 15, 38, 95, 240][repetitions]
                session.add(
                    ProgressRecord(
                        user_id=user.id,
                        flashcard_id=card.id,
                        ease_factor=rng.uniform(1.3, 3.0),
                        interval=interval,
                        repetitions=repetitions,
                        last_reviewed_at=reviewed_at,
                        next_review_date=reviewed_at + timedelta(days=interval),
                        total_reviews=repetitions + 1,
                        correct_reviews=repetitions,
                    )
                )
            await session.commit()
            return user.id

    return seed
