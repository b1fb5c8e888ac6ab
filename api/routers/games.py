import json
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_clock, get_current_user, get_events
from api.schemas import GameAnswer, GameAnswerResult, GameJoin, GameQuestionsLoad, GameState, ParticipantEntry
from core.errors import NotFoundError
from core.logger import logger
from db.session import get_db
from services.game_events import GameEvents
from services.game_service import GameService, public_state

router = APIRouter(prefix="/api/games", tags=["games"])

HEARTBEAT = ": keep-alive\n\n"


def _service(
    db: AsyncSession = Depends(get_db),
    events: Optional[GameEvents] = Depends(get_events),
    clock=Depends(get_clock),
) -> GameService:
    return GameService(db, events=events, clock=clock)


def _camelize(value):
    if isinstance(value, dict):
        return {to_camel(k): _camelize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_camelize(v) for v in value]
    return value


def _state(service: GameService, game, user_id: str) -> dict:
    return public_state(game, service.clock(), include_answers=game.host_id == user_id)


@router.post("", response_model=GameState, status_code=201, summary="Create a live game")
async def create_game(user_id: str = Depends(get_current_user), service: GameService = Depends(_service)):
    game = await service.create_game(user_id)
    return _state(service, game, user_id)


@router.get(
    "/{game_id}",
    response_model=GameState,
    summary="Read game state",
    description="Settles an expired question before returning. Correct options are only shown to the host until revealed.",
)
async def get_game(game_id: str, user_id: str = Depends(get_current_user), service: GameService = Depends(_service)):
    game = await service.get_game(game_id)
    return _state(service, game, user_id)


@router.post("/{game_id}/join", response_model=ParticipantEntry, summary="Join a game")
async def join_game(
    game_id: str,
    body: Optional[GameJoin] = None,
    user_id: str = Depends(get_current_user),
    service: GameService = Depends(_service),
):
    participant = await service.join(game_id, user_id, (body or GameJoin()).name)
    return participant.to_entry()


@router.get("/{game_id}/participants", response_model=List[ParticipantEntry], summary="Leaderboard")
async def list_participants(game_id: str, user_id: str = Depends(get_current_user), service: GameService = Depends(_service)):
    return [p.to_entry() for p in await service.participants(game_id)]


@router.post(
    "/{game_id}/answers",
    response_model=GameAnswerResult,
    summary="Answer the current question",
    responses={409: {"description": "Answers are closed"}},
)
async def submit_answer(
    game_id: str,
    body: GameAnswer,
    user_id: str = Depends(get_current_user),
    service: GameService = Depends(_service),
):
    return await service.submit_answer(game_id, user_id, body.question_index, body.option_index)


# --- host controls ---

@router.post("/{game_id}/questions/start", response_model=GameState, summary="Start the next question")
async def start_question(game_id: str, user_id: str = Depends(get_current_user), service: GameService = Depends(_service)):
    return _state(service, await service.start_question(game_id, user_id), user_id)


@router.post("/{game_id}/questions/end", response_model=GameState, summary="End the running question")
async def end_question(game_id: str, user_id: str = Depends(get_current_user), service: GameService = Depends(_service)):
    return _state(service, await service.end_question(game_id, user_id), user_id)


@router.post("/{game_id}/lock", response_model=GameState, summary="Toggle answer lock")
async def lock_answers(game_id: str, user_id: str = Depends(get_current_user), service: GameService = Depends(_service)):
    return _state(service, await service.lock_answers(game_id, user_id), user_id)


@router.post("/{game_id}/reveal", response_model=GameState, summary="Toggle answer reveal")
async def reveal_answers(game_id: str, user_id: str = Depends(get_current_user), service: GameService = Depends(_service)):
    return _state(service, await service.reveal_answers(game_id, user_id), user_id)


@router.post("/{game_id}/auto-reveal", response_model=GameState, summary="Toggle auto reveal on expiry")
async def toggle_auto_reveal(game_id: str, user_id: str = Depends(get_current_user), service: GameService = Depends(_service)):
    return _state(service, await service.toggle_auto_reveal(game_id, user_id), user_id)


@router.put("/{game_id}/questions", response_model=GameState, summary="Load a question set")
async def load_questions(
    game_id: str,
    body: GameQuestionsLoad,
    user_id: str = Depends(get_current_user),
    service: GameService = Depends(_service),
):
    questions = [q.model_dump(exclude_none=True) for q in body.questions]
    return _state(service, await service.load_questions(game_id, user_id, questions), user_id)


@router.post("/{game_id}/reset-scores", response_model=GameState, summary="Reset every participant's score")
async def reset_scores(game_id: str, user_id: str = Depends(get_current_user), service: GameService = Depends(_service)):
    return _state(service, await service.reset_scores(game_id, user_id), user_id)


# --- event feed ---

@router.get("/{game_id}/events/history", summary="Recent committed game events, oldest first")
async def game_event_history(
    game_id: str,
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user),
    service: GameService = Depends(_service),
):
    await service.get_game(game_id)
    if service.events is None:
        raise NotFoundError("Event feed is not available.")
    # Ids double as Last-Event-ID values for resuming the live stream
    return [_camelize(event) for event in await service.events.history(game_id, count=limit)]


@router.get("/{game_id}/events", summary="Server-sent events for committed game changes")
async def game_events(
    game_id: str,
    request: Request,
    user_id: str = Depends(get_current_user),
    service: GameService = Depends(_service),
):
    await service.get_game(game_id)
    if service.events is None:
        raise NotFoundError("Event feed is not available.")

    feed = service.events
    last_id = request.headers.get("last-event-id") or "$"

    async def stream():
        logger.info("Event subscriber connected", game_id=game_id, user_id=user_id)
        try:
            async for event in feed.subscribe(game_id, last_id=last_id):
                if await request.is_disconnected():
                    break
                if event is None:
                    yield HEARTBEAT
                    continue
                entry_id = event.pop("id")
                yield f"id: {entry_id}\nevent: {event['type']}\ndata: {json.dumps(_camelize(event), default=str)}\n\n"
        finally:
            logger.info("Event subscriber disconnected", game_id=game_id, user_id=user_id)

    return StreamingResponse(stream(), media_type="text/event-stream", headers={"Cache-Control": "no-store"})
