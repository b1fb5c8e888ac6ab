from sqlalchemy import Column, String, JSON, Boolean, Text
from models.base import Base, TimestampMixin, new_id

class Quiz(Base, TimestampMixin):
    __tablename__ = "quizzes"

    id = Column(String(64), primary_key=True, default=new_id)
    user_id = Column(String(128), index=True, nullable=False)
    title = Column(String(255), nullable=False)
    difficulty = Column(String(16), default="medium", nullable=False)
    source_text = Column(Text, default="", nullable=False)

    # [{id, prompt, options: [{id, text, is_correct, explanation?}], hint?, topic?, difficulty?}]
    questions_json = Column(JSON, nullable=False)
    # [{id, term, definition}]
    flashcards_json = Column(JSON, nullable=False)

    share_enabled = Column(Boolean, default=False, nullable=False)
    share_token = Column(String(64), nullable=True)

    def to_snapshot(self) -> dict:
        """Public view of the quiz handed out through share links."""
        return {
            "id": self.id,
            "title": self.title,
            "difficulty": self.difficulty,
            "created_at": self.created_at,
            "questions": self.questions_json or [],
            "flashcards": self.flashcards_json or [],
        }
