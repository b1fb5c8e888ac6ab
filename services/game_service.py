"""
Live game coordination.

Every host operation runs as one transaction on the game row: lock it, check the
caller is the host, settle a lapsed question timer, apply the change, commit, and
only then publish the committed state to the game's event feed.
"""
from typing import Awaitable, Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import AuthorizationError, NotFoundError, PreconditionError, ValidationError
from core.logger import logger
from db.session import for_update, run_transaction
from models.game import GameSession, GameStatus, Participant
from services.game_events import GameEvents
from services.participant_ledger import ParticipantLedger
from utils.clock import Clock, now_ms

Mutation = Callable[[GameSession, int], Optional[Awaitable[None]]]


def normalize_questions(questions: List[dict]) -> List[dict]:
    """Reduce quiz questions to what a live game needs: prompt and options with correctness."""
    if not questions:
        raise ValidationError("At least one question is required.")

    normalized = []
    for index, question in enumerate(questions):
        options = question.get("options") or []
        if not question.get("prompt") or len(options) < 2:
            raise ValidationError(
                "Each question needs a prompt and at least two options.",
                details={"questionIndex": index},
            )
        normalized.append({
            "prompt": question["prompt"],
            "options": [
                {"text": option.get("text", ""), "is_correct": bool(option.get("is_correct"))}
                for option in options
            ],
        })
    return normalized


def public_state(game: GameSession, now: int, include_answers: bool = False) -> dict:
    """Game state as seen by players: option correctness stays hidden until revealed."""
    state = game.to_state(now)
    if include_answers or game.show_answers:
        return state
    state["questions"] = [
        {**q, "options": [{"text": o["text"]} for o in q.get("options", [])]}
        for q in state["questions"]
    ]
    return state


class GameService:
    def __init__(self, db: AsyncSession, events: Optional[GameEvents] = None, clock: Clock = now_ms):
        self.db = db
        self.events = events
        self.clock = clock
        self.ledger = ParticipantLedger(db, clock=clock)
        self.question_duration_ms = settings.QUESTION_DURATION_SECONDS * 1000

    # --- lifecycle -------------------------------------------------------

    async def create_game(self, host_id: str) -> GameSession:
        game = GameSession(
            host_id=host_id,
            status=GameStatus.WAITING.value,
            current_question_index=None,
            ends_at=0,
            answers_locked=False,
            show_answers=False,
            auto_reveal=False,
            questions=[],
        )
        self.db.add(game)
        await self.db.commit()
        logger.info("Game created", game_id=game.id, host_id=host_id)
        await self._publish(game, "created")
        return game

    async def get_game(self, game_id: str) -> GameSession:
        """Read a game, settling a lapsed question first so every reader sees the same state."""
        game = await self.db.get(GameSession, game_id, populate_existing=True)
        if not game:
            raise NotFoundError("Game not found.")
        if game.needs_expiry(self.clock()):
            await self.expire_if_due(game_id)
            game = await self.db.get(GameSession, game_id, populate_existing=True)
        return game

    async def expire_if_due(self, game_id: str) -> bool:
        async def work():
            game = await self._lock(game_id)
            if game is None or not game.needs_expiry(self.clock()):
                return None
            self._apply_expiry(game)
            return game

        game = await run_transaction(self.db, work)
        if game is None:
            return False
        logger.info("Question expired", game_id=game_id, question_index=game.current_question_index)
        await self._publish(game, "question_expired")
        return True

    async def sweep_expired(self) -> List[str]:
        """Settle every live question whose timer has run out; returns the affected game ids."""
        now = self.clock()
        result = await self.db.execute(
            select(GameSession.id).filter(
                GameSession.status == GameStatus.LIVE.value,
                GameSession.answers_locked.is_(False),
                GameSession.ends_at > 0,
                GameSession.ends_at <= now,
            )
        )
        expired = []
        for game_id in result.scalars().all():
            if await self.expire_if_due(game_id):
                expired.append(game_id)
        return expired

    # --- host operations ---------------------------------------------------

    async def start_question(self, game_id: str, caller_id: str) -> GameSession:
        def mutate(game: GameSession, now: int):
            count = len(game.questions or [])
            if not count:
                raise PreconditionError("No questions loaded.")
            previous = game.current_question_index
            game.current_question_index = 0 if previous is None else (previous + 1) % count
            game.ends_at = now + self.question_duration_ms
            game.show_answers = False
            game.answers_locked = False
            game.status = GameStatus.LIVE.value

        game = await self._host_update(game_id, caller_id, "question_started", mutate)
        logger.info("Question started", game_id=game_id, question_index=game.current_question_index)
        return game

    async def end_question(self, game_id: str, caller_id: str) -> GameSession:
        def mutate(game: GameSession, now: int):
            game.status = GameStatus.WAITING.value
            game.ends_at = 0

        return await self._host_update(game_id, caller_id, "question_ended", mutate)

    async def lock_answers(self, game_id: str, caller_id: str) -> GameSession:
        def mutate(game: GameSession, now: int):
            game.answers_locked = not game.answers_locked

        return await self._host_update(game_id, caller_id, "answers_lock_toggled", mutate)

    async def reveal_answers(self, game_id: str, caller_id: str) -> GameSession:
        def mutate(game: GameSession, now: int):
            game.show_answers = not game.show_answers

        return await self._host_update(game_id, caller_id, "answers_reveal_toggled", mutate)

    async def toggle_auto_reveal(self, game_id: str, caller_id: str) -> GameSession:
        def mutate(game: GameSession, now: int):
            game.auto_reveal = not game.auto_reveal

        return await self._host_update(game_id, caller_id, "auto_reveal_toggled", mutate)

    async def load_questions(self, game_id: str, caller_id: str, questions: List[dict]) -> GameSession:
        """
        Replace the question set. Participants keep their scores and answered indices;
        use ``reset_scores`` for a clean round. Until then an index a participant
        already answered cannot score again: answering it replays the correctness
        stored for the previous set's question. A running question is ended because
        its index may not exist in the new set.
        """
        normalized = normalize_questions(questions)

        def mutate(game: GameSession, now: int):
            game.questions = normalized
            if game.status == GameStatus.LIVE.value:
                game.status = GameStatus.WAITING.value
                game.ends_at = 0
            if game.current_question_index is not None and game.current_question_index >= len(normalized):
                game.current_question_index = None

        game = await self._host_update(game_id, caller_id, "questions_loaded", mutate)
        logger.info("Questions loaded", game_id=game_id, count=len(normalized))
        return game

    async def reset_scores(self, game_id: str, caller_id: str) -> GameSession:
        async def mutate(game: GameSession, now: int):
            count = await self.ledger.reset_all(game_id)
            logger.info("Scores reset", game_id=game_id, participants=count)

        return await self._host_update(game_id, caller_id, "scores_reset", mutate)

    # --- participants ----------------------------------------------------

    async def join(self, game_id: str, participant_id: str, name: str) -> Participant:
        participant = await self.ledger.join(game_id, participant_id, name)
        await self._publish_participant(game_id, participant)
        return participant

    async def submit_answer(self, game_id: str, participant_id: str, question_index: int, option_index: int) -> dict:
        outcome = await self.ledger.submit_answer(game_id, participant_id, question_index, option_index)
        if not outcome["already_answered"]:
            participant = await self.ledger.get(game_id, participant_id)
            if participant is not None:
                await self._publish_participant(game_id, participant)
        return outcome

    async def participants(self, game_id: str) -> List[Participant]:
        if not await self.db.get(GameSession, game_id):
            raise NotFoundError("Game not found.")
        return await self.ledger.leaderboard(game_id)

    # --- internals -------------------------------------------------------

    async def _host_update(self, game_id: str, caller_id: str, event_type: str, mutate: Mutation) -> GameSession:
        async def work():
            game = await self._lock(game_id)
            if game is None:
                raise NotFoundError("Game not found.")
            # Authority is checked on the locked row, in the same transaction as the write
            if game.host_id != caller_id:
                logger.warning("Host-only operation rejected", game_id=game_id, caller_id=caller_id, op=event_type)
                raise AuthorizationError("Only the host can control this game.")

            now = self.clock()
            if game.needs_expiry(now):
                self._apply_expiry(game)
            pending = mutate(game, now)
            if pending is not None:
                await pending
            return game

        game = await run_transaction(self.db, work)
        await self._publish(game, event_type)
        return game

    @staticmethod
    def _apply_expiry(game: GameSession):
        game.answers_locked = True
        game.status = GameStatus.WAITING.value
        game.ends_at = 0
        if game.auto_reveal:
            game.show_answers = True

    async def _lock(self, game_id: str) -> Optional[GameSession]:
        result = await self.db.execute(for_update(select(GameSession).filter(GameSession.id == game_id)))
        return result.scalar_one_or_none()

    async def _publish(self, game: GameSession, event_type: str):
        if self.events is not None:
            await self.events.publish(game.id, event_type, public_state(game, self.clock()))

    async def _publish_participant(self, game_id: str, participant: Participant):
        if self.events is not None:
            await self.events.publish(game_id, "participant_updated", participant.to_entry())
