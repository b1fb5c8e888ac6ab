import asyncio

import pytest
from sqlalchemy import func, select

from conftest import FakeGenerator
from core.errors import InternalError, QuotaError, ValidationError
from db.session import make_sessionmaker
from models.limits import Feedback, UsageCounter
from services.feedback_service import FeedbackService
from services.generation_service import GenerationService

CONTENT = "Photosynthesis converts light energy into chemical energy in plants."


async def _feedback_count(db):
    return (await db.execute(select(func.count(Feedback.id)))).scalar()


async def test_feedback_cooldown(db, clock):
    service = FeedbackService(db, clock=clock)
    assert await service.submit_feedback("user-1", "Great app, thanks!") == {"ok": True, "cooldown_seconds": 300}

    clock.advance(10)
    with pytest.raises(QuotaError) as exc:
        await service.submit_feedback("user-1", "Another message")
    assert 0 < exc.value.retry_after_seconds <= 300
    assert await _feedback_count(db) == 1

    clock.advance(300)
    await service.submit_feedback("user-1", "Third time lucky")
    assert await _feedback_count(db) == 2


async def test_feedback_validation_happens_before_cooldown(db, clock):
    service = FeedbackService(db, clock=clock)
    with pytest.raises(ValidationError):
        await service.submit_feedback("user-1", "hey")
    with pytest.raises(ValidationError):
        await service.submit_feedback("user-1", "Valid message", platform="desktop")

    # Rejected payloads did not start a cooldown
    await service.submit_feedback("user-1", "Valid message", platform="mobile", app_version="1.2.3")


async def test_generate_fills_ids_and_counts_usage(db, clock, generator):
    service = GenerationService(db, generator=generator, clock=clock)
    result = await service.generate_quiz("user-1", "Plants", CONTENT, topic="Biology", count=5)

    question = result["questions"][0]
    assert question["id"]
    assert all(option["id"] for option in question["options"])
    assert result["flashcards"][0]["id"]
    assert generator.calls[0]["difficulty"] == "medium"

    counter = (await db.execute(select(UsageCounter))).scalar_one()
    assert counter.count == 1


async def test_generate_truncates_content(db, clock, generator):
    await GenerationService(db, generator=generator, clock=clock).generate_quiz("user-1", "Plants", "x" * 20_000)
    assert len(generator.calls[0]["content"]) == 12_000


@pytest.mark.parametrize("kwargs", [
    {"title": " ", "content": CONTENT},
    {"title": "Plants", "content": "too short"},
    {"title": "Plants", "content": CONTENT, "difficulty": "extreme"},
    {"title": "Plants", "content": CONTENT, "count": 4},
    {"title": "Plants", "content": CONTENT, "count": 31},
])
async def test_generate_validation(db, clock, generator, kwargs):
    with pytest.raises(ValidationError):
        await GenerationService(db, generator=generator, clock=clock).generate_quiz("user-1", **kwargs)
    assert generator.calls == []


async def test_generate_daily_limit(db, clock, generator, monkeypatch):
    from core.config import settings
    monkeypatch.setattr(settings, "DAILY_GENERATION_LIMIT", 2)

    service = GenerationService(db, generator=generator, clock=clock)
    await service.generate_quiz("user-1", "Plants", CONTENT)
    await service.generate_quiz("user-1", "Plants", CONTENT)
    with pytest.raises(QuotaError) as exc:
        await service.generate_quiz("user-1", "Plants", CONTENT)

    assert exc.value.details == {"dailyLimit": 2, "currentCount": 2}
    assert len(generator.calls) == 2


async def test_generator_failure_releases_quota(db, clock):
    failing = FakeGenerator(error=InternalError("AI response did not match schema."))
    with pytest.raises(InternalError):
        await GenerationService(db, generator=failing, clock=clock).generate_quiz("user-1", "Plants", CONTENT)

    counter = (await db.execute(select(UsageCounter))).scalar_one()
    assert counter.count == 0


async def test_concurrent_feedback_accepts_one(engine, db, clock):
    sessionmaker = make_sessionmaker(engine)

    async def submit(message):
        async with sessionmaker() as session:
            return await FeedbackService(session, clock=clock).submit_feedback("user-1", message)

    outcomes = await asyncio.gather(submit("First message"), submit("Second message"), return_exceptions=True)

    assert [o for o in outcomes if not isinstance(o, Exception)] == [{"ok": True, "cooldown_seconds": 300}]
    assert [type(o) for o in outcomes if isinstance(o, Exception)] == [QuotaError]
    assert await _feedback_count(db) == 1
