"""
Pytest configuration and fixtures for QuizForge tests.
"""
import os
import sys

import pytest
import pytest_asyncio

# Point settings at SQLite before any project module builds the default engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUTH_SECRET", "test-secret")

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

from core.security import issue_token
from db.session import init_models, make_engine, make_sessionmaker
from services.game_events import GameEvents
from services.quiz_service import QuizService


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, start_ms: int = 1_760_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float):
        self.now += int(seconds * 1000)


class FakeGenerator:
    """Stands in for the AI collaborator; records calls and can be told to fail."""

    def __init__(self, result=None, error: Exception = None):
        self.result = result or {
            "questions": [{
                "prompt": "What do plants absorb?",
                "options": [
                    {"text": "Carbon dioxide", "is_correct": True},
                    {"text": "Helium", "is_correct": False},
                ],
            }],
            "flashcards": [{"term": "Chlorophyll", "definition": "Green pigment"}],
        }
        self.error = error
        self.calls = []

    async def generate(self, title, content, difficulty, topic, count):
        self.calls.append({"title": title, "content": content, "difficulty": difficulty, "topic": topic, "count": count})
        if self.error:
            raise self.error
        return self.result


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'quizforge.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    async with make_sessionmaker(engine)() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def redis():
    client = FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def events(redis):
    return GameEvents(redis, block_ms=50)


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def sample_questions():
    """Two questions: Q0 correct option is 1, Q1 correct option is 2."""
    return [
        {
            "prompt": "What is 2+2?",
            "options": [
                {"text": "3", "is_correct": False},
                {"text": "4", "is_correct": True},
                {"text": "5", "is_correct": False},
            ],
        },
        {
            "prompt": "What is the capital of Uzbekistan?",
            "options": [
                {"text": "Samarkand", "is_correct": False},
                {"text": "Bukhara", "is_correct": False},
                {"text": "Tashkent", "is_correct": True},
            ],
        },
    ]


@pytest.fixture
def sample_flashcards():
    return [{"term": "Tashkent", "definition": "Capital of Uzbekistan"}]


@pytest_asyncio.fixture
async def quiz(db, sample_questions, sample_flashcards):
    return await QuizService(db).save_quiz("owner-1", "Basics", sample_questions, sample_flashcards)


@pytest.fixture
def auth():
    """Build identity headers for a user id."""
    def headers(user_id: str) -> dict:
        return {"X-Auth-Token": issue_token(user_id)}
    return headers


@pytest_asyncio.fixture
async def api_client(engine, clock, events, generator):
    from api.deps import get_clock, get_events
    from api.main import app
    from api.routers.account import get_generator
    from db.session import get_db

    sessionmaker = make_sessionmaker(engine)

    async def override_db():
        async with sessionmaker() as session:
            yield session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_events] = lambda: events
    app.dependency_overrides[get_generator] = lambda: generator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client

    app.dependency_overrides.clear()
