from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from models.limits import Feedback
from core.config import settings
from core.errors import ValidationError
from core.logger import logger
from services.rate_limiter import RateLimiter
from utils.clock import Clock, now_ms

FEEDBACK_SCOPE = "feedback"
PLATFORMS = ("web", "mobile")


class FeedbackService:
    def __init__(self, db: AsyncSession, clock: Clock = now_ms):
        self.db = db
        self.limiter = RateLimiter(db, clock=clock)
        self.cooldown_seconds = settings.FEEDBACK_COOLDOWN_SECONDS

    async def submit_feedback(
        self,
        user_id: str,
        message: str,
        platform: Optional[str] = None,
        app_version: Optional[str] = None,
    ) -> dict:
        message = (message or "").strip()
        if not 5 <= len(message) <= 2000:
            raise ValidationError("Feedback must be between 5 and 2000 characters.")
        platform = platform or "web"
        if platform not in PLATFORMS:
            raise ValidationError("Unknown platform.", details={"allowed": list(PLATFORMS)})
        if app_version is not None and len(app_version) > 50:
            raise ValidationError("App version is too long.")

        async def create(db: AsyncSession):
            feedback = Feedback(user_id=user_id, message=message, platform=platform, app_version=app_version)
            db.add(feedback)
            return feedback

        # The cooldown stamp and the feedback row commit together or not at all
        feedback = await self.limiter.guard(
            FEEDBACK_SCOPE, user_id, self.cooldown_seconds * 1000, action=create
        )
        logger.info("Feedback received", user_id=user_id, feedback_id=feedback.id, platform=platform)
        return {"ok": True, "cooldown_seconds": self.cooldown_seconds}
