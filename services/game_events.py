"""
Per-game event feed over redis streams.

The coordinator appends an event only after its transaction has committed, so
subscribers never observe in-flight state. Each stream is trimmed to a bounded
length; a late subscriber starts from the newest event, and the retained tail
is readable through ``history``.
"""
import json
from typing import AsyncIterator, Optional

from redis.asyncio import Redis

from core.config import settings
from core.logger import logger

GAME_EVENTS_KEY = "game_events:{game_id}"


class GameEvents:
    def __init__(self, redis: Redis, maxlen: int = None, block_ms: int = None):
        self.redis = redis
        self.maxlen = maxlen or settings.GAME_EVENTS_MAXLEN
        self.block_ms = block_ms if block_ms is not None else settings.GAME_EVENTS_BLOCK_MS

    async def publish(self, game_id: str, event_type: str, state: dict) -> Optional[str]:
        body = json.dumps({"type": event_type, "game_id": game_id, "state": state}, default=str)
        try:
            return await self.redis.xadd(
                GAME_EVENTS_KEY.format(game_id=game_id),
                {"event": body},
                maxlen=self.maxlen,
                approximate=True,
            )
        except Exception as e:
            # The write is already committed; subscribers recover on the next event or by re-reading
            logger.error("Failed to publish game event", game_id=game_id, event_type=event_type, error=str(e))
            return None

    async def history(self, game_id: str, count: int = 50) -> list[dict]:
        """The newest ``count`` events, oldest first, each tagged with its stream id."""
        entries = await self.redis.xrevrange(GAME_EVENTS_KEY.format(game_id=game_id), count=count)
        return [self._entry(entry_id, fields) for entry_id, fields in reversed(entries)]

    async def subscribe(self, game_id: str, last_id: str = "$") -> AsyncIterator[dict]:
        """Yield events as they are appended; yields None on each idle block so callers can heartbeat."""
        key = GAME_EVENTS_KEY.format(game_id=game_id)
        while True:
            messages = await self.redis.xread({key: last_id}, count=20, block=self.block_ms)
            if not messages:
                yield None
                continue
            for _, entries in messages:
                for entry_id, fields in entries:
                    last_id = entry_id
                    yield self._entry(entry_id, fields)

    @staticmethod
    def _entry(entry_id, fields) -> dict:
        raw = fields.get("event") if "event" in fields else fields.get(b"event")
        if isinstance(raw, bytes):
            raw = raw.decode()
        event = json.loads(raw)
        event["id"] = entry_id.decode() if isinstance(entry_id, bytes) else entry_id
        return event
