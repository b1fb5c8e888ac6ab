from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user
from api.schemas import (
    AttemptDetail, QuizCreate, QuizDetail, QuizListItem, QuizUpdate, ShareCreate, ShareCreated,
)
from core.errors import NotFoundError
from db.session import get_db
from models.quiz import Quiz
from services.attempt_service import AttemptService
from services.quiz_service import QuizService
from services.share_service import ShareService

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])


def _detail(quiz: Quiz) -> dict:
    return {
        "id": quiz.id,
        "title": quiz.title,
        "difficulty": quiz.difficulty,
        "source_text": quiz.source_text,
        "questions": quiz.questions_json,
        "flashcards": quiz.flashcards_json,
        "share_enabled": quiz.share_enabled,
        "share_token": quiz.share_token,
        "created_at": quiz.created_at,
    }


@router.post(
    "",
    response_model=QuizDetail,
    status_code=201,
    summary="Save a quiz",
    responses={401: {"description": "Authentication required"}},
)
async def create_quiz(body: QuizCreate, user_id: str = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    quiz = await QuizService(db).save_quiz(
        user_id,
        body.title,
        [q.model_dump(exclude_none=True) for q in body.questions],
        [f.model_dump(exclude_none=True) for f in body.flashcards],
        difficulty=body.difficulty,
        source_text=body.source_text,
    )
    return _detail(quiz)


@router.get(
    "",
    response_model=List[QuizListItem],
    summary="List recent quizzes",
    description="Returns the caller's most recent quizzes, newest first.",
)
async def list_quizzes(user_id: str = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    quizzes = await QuizService(db).get_user_quizzes(user_id)
    return [{
        "id": q.id,
        "title": q.title,
        "difficulty": q.difficulty,
        "questions_count": len(q.questions_json or []),
        "share_enabled": q.share_enabled,
        "created_at": q.created_at,
    } for q in quizzes]


@router.get(
    "/{quiz_id}",
    response_model=QuizDetail,
    summary="Get quiz details",
    responses={404: {"description": "Quiz not found"}},
)
async def get_quiz(quiz_id: str, user_id: str = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    quiz = await QuizService(db).get_quiz_by_id_and_user(quiz_id, user_id)
    if not quiz:
        raise NotFoundError("Quiz not found.")
    return _detail(quiz)


@router.put(
    "/{quiz_id}",
    response_model=QuizDetail,
    summary="Update quiz",
    responses={404: {"description": "Quiz not found or not owned by user"}},
)
async def update_quiz(
    quiz_id: str,
    update: QuizUpdate,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    quiz = await QuizService(db).update_quiz(
        quiz_id,
        user_id,
        title=update.title,
        questions=[q.model_dump(exclude_none=True) for q in update.questions] if update.questions is not None else None,
        flashcards=[f.model_dump(exclude_none=True) for f in update.flashcards] if update.flashcards is not None else None,
        difficulty=update.difficulty,
    )
    return _detail(quiz)


@router.post(
    "/{quiz_id}/share",
    response_model=ShareCreated,
    summary="Create a share link",
    description="Issues a new share token for the quiz, optionally protected by a password.",
    responses={404: {"description": "Quiz not found or not owned by user"}},
)
async def create_share_link(
    quiz_id: str,
    body: Optional[ShareCreate] = None,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    token = await ShareService(db).create_share_link(user_id, quiz_id, password=body.password if body else None)
    return {"token": token}


@router.get(
    "/{quiz_id}/attempts",
    response_model=List[AttemptDetail],
    summary="List attempts on an owned quiz",
)
async def list_quiz_attempts(
    quiz_id: str,
    limit: Optional[int] = Query(None, ge=1, le=200),
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await AttemptService(db).list_for_quiz(user_id, quiz_id, limit=limit)
