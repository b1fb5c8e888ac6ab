from redis.asyncio import Redis

from core.logger import logger
from db.session import AsyncSessionLocal
from services.game_events import GameEvents
from services.game_service import GameService


async def monitor_games(redis: Redis = None):
    """
    Scheduled sweep that settles live questions whose timer ran out.
    Readers also settle lazily, so this only bounds how long an idle game
    keeps showing an open question to its subscribers.
    """
    logger.debug("Starting game expiry scan...")

    events = GameEvents(redis) if redis is not None else None
    async with AsyncSessionLocal() as db:
        try:
            expired = await GameService(db, events=events).sweep_expired()
        except Exception as e:
            logger.error("Monitor: game expiry scan failed", error=str(e))
            return []

    if expired:
        logger.info(f"Monitor: Settled {len(expired)} expired questions", game_ids=expired)
    logger.debug("Game expiry scan completed.")
    return expired
