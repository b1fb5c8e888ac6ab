from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models.game import GameSession, GameStatus, Participant
from core.errors import NotFoundError, PreconditionError, ValidationError
from core.logger import logger
from db.session import for_update, run_transaction
from utils.clock import Clock, now_ms

DEFAULT_PLAYER_NAME = "Player"


class ParticipantLedger:
    """Per-(game, participant) answer recording and score accrual."""

    def __init__(self, db: AsyncSession, clock: Clock = now_ms):
        self.db = db
        self.clock = clock

    async def join(self, game_id: str, participant_id: str, name: str) -> Participant:
        async def work():
            if not await self.db.get(GameSession, game_id):
                raise NotFoundError("Game not found.")

            participant = await self._lock(game_id, participant_id)
            if participant is None:
                participant = Participant(
                    game_id=game_id,
                    participant_id=participant_id,
                    name=name,
                    score=0,
                    last_answered_question_index=-1,
                    answers={},
                )
                self.db.add(participant)
            else:
                # Re-joining only renames; progress and score stay
                participant.name = name
            return participant

        participant = await run_transaction(self.db, work)
        logger.info("Participant joined", game_id=game_id, participant_id=participant_id)
        return participant

    async def submit_answer(self, game_id: str, participant_id: str, question_index: int, option_index: int) -> dict:
        async def work():
            game = await self.db.get(GameSession, game_id, populate_existing=True)
            if not game:
                raise NotFoundError("Game not found.")

            now = self.clock()
            if game.status != GameStatus.LIVE.value or game.answers_locked or game.is_expired(now):
                raise PreconditionError("Answers are closed.")

            questions = game.questions or []
            if not 0 <= question_index < len(questions):
                raise ValidationError("Question not found.")
            options = questions[question_index].get("options") or []
            if not 0 <= option_index < len(options):
                raise ValidationError("Option not found.")
            correct = bool(options[option_index].get("is_correct"))

            # The participant row is the unit of atomicity: read, compare and write under its lock
            participant = await self._lock(game_id, participant_id)
            previous = participant.recorded(question_index) if participant is not None else None
            if previous is not None:
                return {"correct": bool(previous), "already_answered": True}

            if participant is None:
                participant = Participant(
                    game_id=game_id,
                    participant_id=participant_id,
                    name=DEFAULT_PLAYER_NAME,
                    score=0,
                    answers={},
                )
                self.db.add(participant)

            # Reassign so the JSON column is flagged dirty
            participant.answers = {**(participant.answers or {}), str(question_index): correct}
            participant.last_answered_question_index = question_index
            if correct:
                participant.score = (participant.score or 0) + 1
            return {"correct": correct, "already_answered": False}

        outcome = await run_transaction(self.db, work)
        if not outcome["already_answered"]:
            logger.info("Answer recorded", game_id=game_id, participant_id=participant_id,
                        question_index=question_index, correct=outcome["correct"])
        return outcome

    async def get(self, game_id: str, participant_id: str) -> Optional[Participant]:
        return await self.db.get(Participant, (game_id, participant_id), populate_existing=True)

    async def leaderboard(self, game_id: str) -> List[Participant]:
        result = await self.db.execute(
            select(Participant)
            .filter(Participant.game_id == game_id)
            .order_by(Participant.score.desc(), Participant.name)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def reset_all(self, game_id: str) -> int:
        """Zero every participant of a game. Runs inside the caller's transaction."""
        result = await self.db.execute(
            for_update(select(Participant).filter(Participant.game_id == game_id))
        )
        participants = result.scalars().all()
        for participant in participants:
            participant.score = 0
            participant.last_answered_question_index = -1
            participant.answers = {}
        return len(participants)

    async def _lock(self, game_id: str, participant_id: str) -> Optional[Participant]:
        result = await self.db.execute(
            for_update(select(Participant).filter(
                Participant.game_id == game_id, Participant.participant_id == participant_id
            ))
        )
        return result.scalar_one_or_none()
