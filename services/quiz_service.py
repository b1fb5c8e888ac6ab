import uuid
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models.quiz import Quiz
from core.errors import NotFoundError
from core.logger import logger


def _with_id(item: dict) -> dict:
    return {**item, "id": item.get("id") or str(uuid.uuid4())}


def assign_ids(questions: List[dict], flashcards: List[dict]) -> tuple[List[dict], List[dict]]:
    """Give every question, option and flashcard a stable id if it lacks one."""
    questions = [
        {**_with_id(q), "options": [_with_id(o) for o in q.get("options", [])]}
        for q in questions
    ]
    return questions, [_with_id(card) for card in flashcards]


class QuizService:
    """Owner-scoped quiz library. Other services only read from it."""

    RECENT_LIMIT = 5

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save_quiz(
        self,
        user_id: str,
        title: str,
        questions: list,
        flashcards: list,
        difficulty: str = "medium",
        source_text: str = "",
    ) -> Quiz:
        questions, flashcards = assign_ids(questions, flashcards)
        quiz = Quiz(
            user_id=user_id,
            title=title,
            difficulty=difficulty,
            source_text=source_text,
            questions_json=questions,
            flashcards_json=flashcards,
        )
        self.db.add(quiz)
        await self.db.commit()
        await self.db.refresh(quiz)
        logger.info("Quiz saved", user_id=user_id, quiz_id=quiz.id, title=title)
        return quiz

    async def get_quiz(self, quiz_id: str) -> Optional[Quiz]:
        result = await self.db.execute(select(Quiz).filter(Quiz.id == quiz_id))
        return result.scalar_one_or_none()

    async def get_quiz_by_id_and_user(self, quiz_id: str, user_id: str) -> Optional[Quiz]:
        """Get a specific quiz ensuring it belongs to the user."""
        result = await self.db.execute(
            select(Quiz).filter(Quiz.id == quiz_id, Quiz.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_user_quizzes(self, user_id: str, limit: int = RECENT_LIMIT) -> List[Quiz]:
        result = await self.db.execute(
            select(Quiz).filter(Quiz.user_id == user_id).order_by(Quiz.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def update_quiz(
        self,
        quiz_id: str,
        user_id: str,
        title: Optional[str] = None,
        questions: Optional[list] = None,
        flashcards: Optional[list] = None,
        difficulty: Optional[str] = None,
    ) -> Quiz:
        """Partial update. Attempts still in progress are graded against whatever is stored at submit time."""
        quiz = await self.get_quiz_by_id_and_user(quiz_id, user_id)
        if not quiz:
            raise NotFoundError("Quiz not found.")

        if title is not None:
            quiz.title = title
        if difficulty is not None:
            quiz.difficulty = difficulty
        if questions is not None or flashcards is not None:
            new_questions, new_flashcards = assign_ids(
                questions if questions is not None else quiz.questions_json,
                flashcards if flashcards is not None else quiz.flashcards_json,
            )
            quiz.questions_json = new_questions
            quiz.flashcards_json = new_flashcards

        await self.db.commit()
        await self.db.refresh(quiz)
        logger.info("Quiz updated", quiz_id=quiz_id, user_id=user_id)
        return quiz
