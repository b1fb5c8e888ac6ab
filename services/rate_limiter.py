import math
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import QuotaError
from core.logger import logger
from db.session import for_update, run_transaction
from models.limits import CooldownRecord, UsageCounter
from utils.clock import Clock, now_ms, utc_day

# Effect committed in the same transaction as the cooldown stamp
GuardedAction = Callable[[AsyncSession], Awaitable[Any]]


class RateLimiter:
    """Cooldown and daily-quota guards; check and commit always share one transaction."""

    def __init__(self, db: AsyncSession, clock: Clock = now_ms):
        self.db = db
        self.clock = clock

    async def guard(
        self,
        scope: str,
        subject_id: str,
        cooldown_ms: int,
        action: Optional[GuardedAction] = None,
    ) -> Any:
        """
        Pass at most once per ``cooldown_ms`` for (scope, subject).

        On success stamps ``last_submitted_at = now`` and runs ``action`` inside the
        same transaction, returning its result. Inside the cooldown raises QuotaError
        with ``retryAfterSeconds`` and writes nothing.
        """
        async def work():
            now = self.clock()
            result = await self.db.execute(
                for_update(select(CooldownRecord).filter(
                    CooldownRecord.scope == scope, CooldownRecord.subject_id == subject_id
                ))
            )
            record = result.scalar_one_or_none()

            if record is not None:
                elapsed = now - record.last_submitted_at
                if elapsed < cooldown_ms:
                    retry_after = math.ceil((cooldown_ms - elapsed) / 1000)
                    retry_after = min(retry_after, math.ceil(cooldown_ms / 1000))
                    logger.warning("Cooldown active", scope=scope, subject_id=subject_id, retry_after=retry_after)
                    raise QuotaError(
                        "Too many requests. Please wait.",
                        details={"retryAfterSeconds": retry_after},
                    )
                record.last_submitted_at = now
            else:
                self.db.add(CooldownRecord(scope=scope, subject_id=subject_id, last_submitted_at=now))

            if action is not None:
                return await action(self.db)
            return None

        return await run_transaction(self.db, work)

    async def consume_daily(self, subject_id: str, limit: int, day: Optional[str] = None) -> int:
        """Atomically take one unit of today's quota; returns the new count."""
        day = day or utc_day(self.clock())

        async def work():
            counter = await self._lock_counter(subject_id, day)
            current = counter.count if counter else 0
            if current >= limit:
                logger.warning("Daily limit reached", subject_id=subject_id, day=day, count=current)
                raise QuotaError(
                    "Daily limit reached.",
                    details={"dailyLimit": limit, "currentCount": current},
                )
            if counter is None:
                self.db.add(UsageCounter(subject_id=subject_id, day=day, count=1))
            else:
                counter.count = current + 1
            return current + 1

        return await run_transaction(self.db, work)

    async def release_daily(self, subject_id: str, day: str) -> None:
        """Give back a unit taken by ``consume_daily`` whose action did not happen."""
        async def work():
            counter = await self._lock_counter(subject_id, day)
            if counter is not None and counter.count > 0:
                counter.count -= 1

        await run_transaction(self.db, work)

    async def _lock_counter(self, subject_id: str, day: str) -> Optional[UsageCounter]:
        result = await self.db.execute(
            for_update(select(UsageCounter).filter(
                UsageCounter.subject_id == subject_id, UsageCounter.day == day
            ))
        )
        return result.scalar_one_or_none()
