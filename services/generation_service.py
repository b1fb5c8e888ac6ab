from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from core.config import settings
from core.errors import ValidationError
from core.logger import logger
from services.ai_service import AIService, ContentGenerator
from services.quiz_service import assign_ids
from services.rate_limiter import RateLimiter
from utils.clock import Clock, now_ms, utc_day

DIFFICULTIES = ("easy", "medium", "hard")
MIN_CONTENT_CHARS = 20
MIN_COUNT, MAX_COUNT, DEFAULT_COUNT = 5, 30, 10


class GenerationService:
    """Quota-guarded front door to the content generator."""

    def __init__(self, db: AsyncSession, generator: Optional[ContentGenerator] = None, clock: Clock = now_ms):
        self.db = db
        self.generator = generator or AIService()
        self.clock = clock
        self.limiter = RateLimiter(db, clock=clock)

    async def generate_quiz(
        self,
        user_id: str,
        title: str,
        content: str,
        difficulty: Optional[str] = None,
        topic: Optional[str] = None,
        count: Optional[int] = None,
    ) -> dict:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required.")
        if len(content or "") < MIN_CONTENT_CHARS:
            raise ValidationError(f"Content must be at least {MIN_CONTENT_CHARS} characters.")
        difficulty = difficulty or "medium"
        if difficulty not in DIFFICULTIES:
            raise ValidationError("Unknown difficulty.", details={"allowed": list(DIFFICULTIES)})
        count = DEFAULT_COUNT if count is None else count
        if not MIN_COUNT <= count <= MAX_COUNT:
            raise ValidationError(f"Count must be between {MIN_COUNT} and {MAX_COUNT}.")

        content = content[:settings.GENERATION_CONTENT_MAX_CHARS]

        # Reserve a unit up front so concurrent requests cannot overshoot the limit
        day = utc_day(self.clock())
        used = await self.limiter.consume_daily(user_id, settings.DAILY_GENERATION_LIMIT, day=day)
        try:
            generated = await self.generator.generate(title, content, difficulty, topic, count)
        except Exception:
            await self.limiter.release_daily(user_id, day)
            logger.warning("Generation failed, quota unit released", user_id=user_id, day=day)
            raise

        questions, flashcards = assign_ids(generated.get("questions", []), generated.get("flashcards", []))
        logger.info("Quiz content generated", user_id=user_id, questions=len(questions), used_today=used)
        return {"questions": questions, "flashcards": flashcards}
