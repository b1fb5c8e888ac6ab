import asyncio

import pytest
from sqlalchemy import select

from core.errors import QuotaError
from db.session import make_sessionmaker
from models.limits import CooldownRecord, UsageCounter
from services.rate_limiter import RateLimiter

COOLDOWN_MS = 300_000


async def test_first_call_passes_and_stamps(db, clock):
    limiter = RateLimiter(db, clock=clock)
    await limiter.guard("feedback", "user-1", COOLDOWN_MS)

    record = await db.get(CooldownRecord, ("feedback", "user-1"))
    assert record.last_submitted_at == clock.now


async def test_second_call_inside_cooldown_fails_without_write(db, clock):
    limiter = RateLimiter(db, clock=clock)
    await limiter.guard("feedback", "user-1", COOLDOWN_MS)
    stamped = clock.now

    clock.advance(100)
    with pytest.raises(QuotaError) as exc:
        await limiter.guard("feedback", "user-1", COOLDOWN_MS)

    assert exc.value.retry_after_seconds == 200
    record = await db.get(CooldownRecord, ("feedback", "user-1"), populate_existing=True)
    assert record.last_submitted_at == stamped


async def test_retry_after_rounds_up(db, clock):
    limiter = RateLimiter(db, clock=clock)
    await limiter.guard("feedback", "user-1", COOLDOWN_MS)

    clock.now += 299_999
    with pytest.raises(QuotaError) as exc:
        await limiter.guard("feedback", "user-1", COOLDOWN_MS)
    assert exc.value.retry_after_seconds == 1


async def test_passes_again_after_cooldown(db, clock):
    limiter = RateLimiter(db, clock=clock)
    await limiter.guard("feedback", "user-1", COOLDOWN_MS)
    clock.advance(300)
    await limiter.guard("feedback", "user-1", COOLDOWN_MS)

    record = await db.get(CooldownRecord, ("feedback", "user-1"), populate_existing=True)
    assert record.last_submitted_at == clock.now


async def test_scopes_and_subjects_are_independent(db, clock):
    limiter = RateLimiter(db, clock=clock)
    await limiter.guard("feedback", "user-1", COOLDOWN_MS)
    await limiter.guard("feedback", "user-2", COOLDOWN_MS)
    await limiter.guard("other", "user-1", COOLDOWN_MS)


async def test_action_rolls_back_with_guard(db, clock):
    limiter = RateLimiter(db, clock=clock)

    async def failing(session):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await limiter.guard("feedback", "user-1", COOLDOWN_MS, action=failing)

    # Nothing was stamped, so the next call passes
    await limiter.guard("feedback", "user-1", COOLDOWN_MS)


async def test_daily_quota(db, clock):
    limiter = RateLimiter(db, clock=clock)
    assert await limiter.consume_daily("user-1", 2) == 1
    assert await limiter.consume_daily("user-1", 2) == 2

    with pytest.raises(QuotaError) as exc:
        await limiter.consume_daily("user-1", 2)
    assert exc.value.details == {"dailyLimit": 2, "currentCount": 2}


async def test_daily_quota_resets_next_day(db, clock):
    limiter = RateLimiter(db, clock=clock)
    await limiter.consume_daily("user-1", 1)
    clock.advance(24 * 3600)
    assert await limiter.consume_daily("user-1", 1) == 1


async def test_release_daily_gives_unit_back(db, clock):
    limiter = RateLimiter(db, clock=clock)
    await limiter.consume_daily("user-1", 1, day="2026-01-01")
    await limiter.release_daily("user-1", "2026-01-01")

    result = await db.execute(select(UsageCounter).filter(UsageCounter.subject_id == "user-1"))
    assert result.scalar_one().count == 0
    assert await limiter.consume_daily("user-1", 1, day="2026-01-01") == 1


async def _race(engine, clock, call):
    """Run ``call`` twice at once, each with a limiter on its own session."""
    sessionmaker = make_sessionmaker(engine)

    async def run():
        async with sessionmaker() as session:
            return await call(RateLimiter(session, clock=clock))

    return await asyncio.gather(run(), run(), return_exceptions=True)


@pytest.mark.parametrize("stamped_before", [False, True])
async def test_concurrent_guards_pass_once(engine, db, clock, stamped_before):
    if stamped_before:
        await RateLimiter(db, clock=clock).guard("feedback", "user-1", COOLDOWN_MS)
        clock.advance(COOLDOWN_MS / 1000)

    async def passed(session):
        return "passed"

    outcomes = await _race(engine, clock, lambda limiter: limiter.guard("feedback", "user-1", COOLDOWN_MS, action=passed))

    assert [o for o in outcomes if not isinstance(o, Exception)] == ["passed"]
    assert [type(o) for o in outcomes if isinstance(o, Exception)] == [QuotaError]
    record = await db.get(CooldownRecord, ("feedback", "user-1"), populate_existing=True)
    assert record.last_submitted_at == clock.now


async def test_concurrent_consume_at_limit_minus_one(engine, db, clock):
    await RateLimiter(db, clock=clock).consume_daily("user-1", 2)

    outcomes = await _race(engine, clock, lambda limiter: limiter.consume_daily("user-1", 2))

    assert [o for o in outcomes if not isinstance(o, Exception)] == [2]
    assert [type(o) for o in outcomes if isinstance(o, Exception)] == [QuotaError]
    counter = (await db.execute(select(UsageCounter).execution_options(populate_existing=True))).scalar_one()
    assert counter.count == 2
