import asyncio
import sys

import uvicorn
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from redis.asyncio import Redis

from core.config import settings
from core.logger import setup_logging, logger
from db.session import init_models
from services.monitoring_service import monitor_games


async def start_api():
    from api.main import app
    config = uvicorn.Config(app, host=settings.API_HOST, port=settings.API_PORT, log_level="info")
    server = uvicorn.Server(config)
    await server.serve()


async def main():
    # Parse mode from CLI args first
    mode = "all"
    if len(sys.argv) > 1:
        if "api" in sys.argv: mode = "api"
        elif "worker" in sys.argv: mode = "worker"

    # Setup structured logging
    setup_logging()

    if settings.ENV == "development":
        # Production schema comes from `alembic upgrade head`
        await init_models()

    if mode == "api":
        # For scaling, run `uvicorn api.main:app` on several nodes and one `worker`
        logger.info("Starting API Only Mode...")
        await start_api()
        return

    redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)

    scheduler = AsyncIOScheduler(timezone="UTC")

    # Settle questions whose timer ran out even when no client is watching
    scheduler.add_job(
        monitor_games,
        trigger="interval",
        seconds=settings.EXPIRY_SWEEP_SECONDS,
        args=[redis],
        id="game_expiry_monitor",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info("Scheduler started (Game expiry monitor).", interval=settings.EXPIRY_SWEEP_SECONDS)

    try:
        if mode == "worker":
            logger.info("Starting Worker Mode...", env=settings.ENV)
            await asyncio.Event().wait()
        else:  # mode == "all"
            logger.info("Starting All (API + Worker)...", env=settings.ENV)
            await start_api()
    finally:
        scheduler.shutdown(wait=False)
        await redis.aclose()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logger.info("Application stopped.")
