from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_clock, get_current_user
from api.schemas import FeedbackAccepted, FeedbackCreate, GeneratedContent, GenerateRequest
from db.session import get_db
from services.ai_service import AIService
from services.feedback_service import FeedbackService
from services.generation_service import GenerationService

router = APIRouter(prefix="/api", tags=["account"])


def get_generator():
    return AIService()


@router.post(
    "/feedback",
    response_model=FeedbackAccepted,
    summary="Send feedback",
    description="Rate limited to one submission per cooldown window per user.",
    responses={429: {"description": "Cooldown active; see details.retryAfterSeconds"}},
)
async def submit_feedback(
    body: FeedbackCreate,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock=Depends(get_clock),
):
    return await FeedbackService(db, clock=clock).submit_feedback(
        user_id, body.message, platform=body.platform, app_version=body.app_version
    )


@router.post(
    "/generate",
    response_model=GeneratedContent,
    summary="Generate questions and flashcards",
    responses={429: {"description": "Daily limit reached; see details.dailyLimit"}},
)
async def generate_quiz(
    body: GenerateRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    generator=Depends(get_generator),
    clock=Depends(get_clock),
):
    return await GenerationService(db, generator=generator, clock=clock).generate_quiz(
        user_id, body.title, body.content,
        difficulty=body.difficulty, topic=body.topic, count=body.count,
    )
