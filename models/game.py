import enum
from sqlalchemy import Column, Integer, String, BigInteger, ForeignKey, Boolean, JSON
from models.base import Base, TimestampMixin, new_id


class GameStatus(str, enum.Enum):
    WAITING = "waiting"
    LIVE = "live"
    # Declared for completeness; no operation currently moves a game here
    FINISHED = "finished"


class GameSession(Base, TimestampMixin):
    __tablename__ = "games"

    id = Column(String(64), primary_key=True, default=new_id)
    host_id = Column(String(128), index=True, nullable=False)
    status = Column(String(16), default=GameStatus.WAITING.value, nullable=False)

    # None until the first question is started
    current_question_index = Column(Integer, nullable=True)
    ends_at = Column(BigInteger, default=0, nullable=False)  # epoch ms, 0 = no running timer

    answers_locked = Column(Boolean, default=False, nullable=False)
    show_answers = Column(Boolean, default=False, nullable=False)
    auto_reveal = Column(Boolean, default=False, nullable=False)

    # [{prompt, options: [{text, is_correct}]}]
    questions = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def is_expired(self, now_ms: int) -> bool:
        return bool(self.ends_at) and now_ms >= self.ends_at

    def needs_expiry(self, now_ms: int) -> bool:
        return (
            self.status == GameStatus.LIVE.value
            and not self.answers_locked
            and self.is_expired(now_ms)
        )

    def to_state(self, now_ms: int) -> dict:
        return {
            "id": self.id,
            "host_id": self.host_id,
            "status": self.status,
            "current_question_index": self.current_question_index,
            "ends_at": self.ends_at,
            "expired": self.is_expired(now_ms),
            "answers_locked": self.answers_locked,
            "show_answers": self.show_answers,
            "auto_reveal": self.auto_reveal,
            "questions": self.questions or [],
        }


class Participant(Base, TimestampMixin):
    __tablename__ = "game_participants"

    game_id = Column(String(64), ForeignKey("games.id", ondelete="CASCADE"), primary_key=True)
    participant_id = Column(String(128), primary_key=True)
    name = Column(String(120), nullable=False, default="Player")
    score = Column(Integer, default=0, nullable=False)
    last_answered_question_index = Column(Integer, default=-1, nullable=False)
    # {"<question_index>": correct} for every index ever answered, replayed on duplicates
    answers = Column(JSON, nullable=False, default=dict)
    # Bumped on every write; an UPDATE from an older copy matches no row and is retried
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def recorded(self, question_index: int):
        """Correctness stored for an index, or None if it was never answered."""
        return (self.answers or {}).get(str(question_index))

    def to_entry(self) -> dict:
        return {
            "id": self.participant_id,
            "name": self.name,
            "score": self.score,
            "last_answered_question_index": self.last_answered_question_index,
        }
