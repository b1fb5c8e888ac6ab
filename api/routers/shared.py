"""Public endpoints reached through a share token."""
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_clock
from api.schemas import (
    AttemptListRequest, AttemptStart, AttemptStarted, AttemptSubmit, AttemptSummary,
    GradeResult, QuizSnapshot, ShareAccess,
)
from db.session import get_db
from services.attempt_service import AttemptService
from services.share_service import ShareService

router = APIRouter(prefix="/api", tags=["shared"])


@router.post(
    "/shared/{token}",
    response_model=QuizSnapshot,
    summary="Read a shared quiz",
    responses={403: {"description": "Wrong password"}, 404: {"description": "Unknown token"}},
)
async def get_shared_quiz(token: str, body: Optional[ShareAccess] = None, db: AsyncSession = Depends(get_db)):
    return await ShareService(db).get_shared_quiz(token, password=body.password if body else None)


@router.post("/shared/{token}/views", summary="Count a view of a shared quiz")
async def log_share_view(token: str, db: AsyncSession = Depends(get_db)):
    await ShareService(db).log_share_view(token)
    return {"ok": True}


@router.post(
    "/shared/{token}/attempts",
    response_model=AttemptStarted,
    status_code=201,
    summary="Start a timed attempt",
)
async def start_attempt(
    token: str,
    body: Optional[AttemptStart] = None,
    db: AsyncSession = Depends(get_db),
    clock=Depends(get_clock),
):
    body = body or AttemptStart()
    return await AttemptService(db, clock=clock).start(token, name=body.name, password=body.password)


@router.post(
    "/shared/{token}/attempts/list",
    response_model=List[AttemptSummary],
    summary="List attempts made through a share link",
)
async def list_attempts_by_token(token: str, body: Optional[AttemptListRequest] = None, db: AsyncSession = Depends(get_db)):
    body = body or AttemptListRequest()
    return await AttemptService(db).list_by_token(token, password=body.password, limit=body.limit)


@router.post(
    "/attempts/{attempt_id}/submit",
    response_model=GradeResult,
    summary="Submit an attempt",
    description=(
        "Grades the attempt once; later submissions return the stored result unchanged. "
        "Answers are accepted until the time limit plus a short grace period "
        "(ATTEMPT_TIME_LIMIT_SECONDS + ATTEMPT_SUBMIT_GRACE_SECONDS, 15 min + 30 s by default); "
        "a later submission completes the attempt with every question unanswered."
    ),
)
async def submit_attempt(
    attempt_id: str,
    body: AttemptSubmit,
    db: AsyncSession = Depends(get_db),
    clock=Depends(get_clock),
):
    answers = [a.model_dump() for a in body.answers]
    return await AttemptService(db, clock=clock).submit(attempt_id, answers)
