from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models.attempt import QuizAttempt, AttemptStatus
from core.config import settings
from core.errors import NotFoundError
from core.logger import logger
from db.session import for_update, run_transaction
from services.grading import grade, answer_map
from services.quiz_service import QuizService
from services.share_service import ShareService
from utils.clock import Clock, now_ms


def _summary(attempt: QuizAttempt) -> dict:
    return {
        "id": attempt.id,
        "name": attempt.name or "Anonymous",
        "score": attempt.score or 0,
        "total": attempt.total or 0,
        "status": attempt.status,
        "started_at_ms": attempt.started_at_ms or 0,
        "completed_at_ms": attempt.completed_at_ms,
    }


class AttemptService:
    """Timed solo passes through a shared quiz, graded once and then frozen."""

    def __init__(self, db: AsyncSession, clock: Clock = now_ms):
        self.db = db
        self.clock = clock
        self.time_limit_ms = settings.ATTEMPT_TIME_LIMIT_SECONDS * 1000
        self.grace_ms = settings.ATTEMPT_SUBMIT_GRACE_SECONDS * 1000

    async def start(self, token: str, name: Optional[str] = None, password: Optional[str] = None) -> dict:
        share = await ShareService(self.db).verify(token, password)

        # Server clock only; a client-supplied start time is never trusted
        started_at_ms = self.clock()
        attempt = QuizAttempt(
            token=token,
            quiz_id=share.quiz_id,
            owner_id=share.owner_id,
            name=name,
            status=AttemptStatus.IN_PROGRESS.value,
            started_at_ms=started_at_ms,
        )
        self.db.add(attempt)
        await self.db.commit()

        logger.info("Quiz attempt started", attempt_id=attempt.id, token=token)
        return {"attempt_id": attempt.id, "started_at_ms": started_at_ms}

    def deadline_ms(self, attempt: QuizAttempt) -> int:
        return attempt.started_at_ms + self.time_limit_ms + self.grace_ms

    async def submit(self, attempt_id: str, answers: List[dict]) -> dict:
        async def work():
            result = await self.db.execute(
                for_update(select(QuizAttempt).filter(QuizAttempt.id == attempt_id))
            )
            attempt = result.scalar_one_or_none()
            if not attempt:
                raise NotFoundError("Attempt not found.")

            # Completed attempts are frozen: replay the stored grade, never re-grade
            if attempt.is_completed:
                return attempt.graded()

            quiz = await QuizService(self.db).get_quiz(attempt.quiz_id)
            if not quiz:
                raise NotFoundError("Quiz not found.")

            submitted = answer_map(answers)
            now = self.clock()
            late = now > self.deadline_ms(attempt)
            if late:
                logger.warning("Late attempt submission, answers discarded",
                               attempt_id=attempt_id, overdue_ms=now - self.deadline_ms(attempt))
                submitted = {}

            # Graded against the quiz as stored now, even if it was edited after start
            graded = grade(quiz.questions_json or [], submitted)

            attempt.status = AttemptStatus.COMPLETED.value
            attempt.score = graded["score"]
            attempt.total = graded["total"]
            attempt.results = graded["results"]
            attempt.answers = [
                {"question_index": q, "option_index": o} for q, o in sorted(answer_map(answers).items())
            ]
            attempt.completed_at_ms = now
            attempt.late = late

            logger.info("Quiz attempt completed", attempt_id=attempt_id,
                        score=graded["score"], total=graded["total"], late=late)
            return graded

        return await run_transaction(self.db, work)

    async def list_by_token(self, token: str, password: Optional[str] = None, limit: Optional[int] = None) -> List[dict]:
        await ShareService(self.db).verify(token, password)
        attempts = await self._list(QuizAttempt.token == token, limit)
        return [_summary(a) for a in attempts]

    async def list_for_quiz(self, owner_id: str, quiz_id: str, limit: Optional[int] = None) -> List[dict]:
        # Only attempts against the caller's own quiz are visible
        attempts = await self._list(
            (QuizAttempt.quiz_id == quiz_id) & (QuizAttempt.owner_id == owner_id), limit
        )
        return [{**_summary(a), "results": a.results or []} for a in attempts]

    async def _list(self, criteria, limit: Optional[int]) -> List[QuizAttempt]:
        limit = min(limit or settings.ATTEMPT_LIST_MAX, settings.ATTEMPT_LIST_MAX)
        result = await self.db.execute(
            select(QuizAttempt)
            .filter(criteria)
            .order_by(QuizAttempt.started_at_ms.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
