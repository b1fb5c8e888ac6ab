import enum
from sqlalchemy import Column, Integer, String, BigInteger, Boolean, JSON
from models.base import Base, TimestampMixin, new_id


class AttemptStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class QuizAttempt(Base, TimestampMixin):
    __tablename__ = "quiz_attempts"

    id = Column(String(64), primary_key=True, default=new_id)
    token = Column(String(64), index=True, nullable=False)
    quiz_id = Column(String(64), index=True, nullable=False)
    owner_id = Column(String(128), nullable=True)
    name = Column(String(120), nullable=True)

    status = Column(String(16), default=AttemptStatus.IN_PROGRESS.value, nullable=False)
    started_at_ms = Column(BigInteger, nullable=False)
    completed_at_ms = Column(BigInteger, nullable=True)

    # Filled once on completion, never rewritten
    answers = Column(JSON, nullable=True)
    score = Column(Integer, nullable=True)
    total = Column(Integer, nullable=True)
    results = Column(JSON, nullable=True)
    late = Column(Boolean, default=False, nullable=False)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_completed(self) -> bool:
        return self.status == AttemptStatus.COMPLETED.value

    def graded(self) -> dict:
        return {
            "score": self.score or 0,
            "total": self.total or 0,
            "results": self.results or [],
        }
