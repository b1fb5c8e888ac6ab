"""
Request and response bodies. Everything on the wire is camelCase; services work
with snake_case dicts, so every model accepts both.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Difficulty = Literal["easy", "medium", "hard"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# === Quiz content ===

class Option(CamelModel):
    """One answer option."""
    id: Optional[str] = None
    text: str = Field(..., max_length=500)
    is_correct: bool = Field(False, description="Whether this option is a correct answer")
    explanation: Optional[str] = None


class Question(CamelModel):
    """A multiple-choice question."""
    id: Optional[str] = None
    prompt: str = Field(..., min_length=1, max_length=1000, examples=["What is 2+2?"])
    options: List[Option] = Field(..., min_length=2, max_length=10)
    hint: Optional[str] = None
    topic: Optional[str] = None
    difficulty: Optional[Difficulty] = None


class Flashcard(CamelModel):
    id: Optional[str] = None
    term: str
    definition: str


class QuizCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255, examples=["Photosynthesis"])
    difficulty: Difficulty = "medium"
    source_text: str = ""
    questions: List[Question] = Field(..., min_length=1)
    flashcards: List[Flashcard] = Field(default_factory=list)


class QuizUpdate(CamelModel):
    """Partial update; omitted fields are left unchanged."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    difficulty: Optional[Difficulty] = None
    questions: Optional[List[Question]] = Field(None, min_length=1)
    flashcards: Optional[List[Flashcard]] = None


class QuizListItem(CamelModel):
    id: str
    title: str
    difficulty: str
    questions_count: int
    share_enabled: bool
    created_at: Optional[datetime] = None


class QuizDetail(CamelModel):
    id: str
    title: str
    difficulty: str
    source_text: str
    questions: List[Question]
    flashcards: List[Flashcard]
    share_enabled: bool
    share_token: Optional[str] = None
    created_at: Optional[datetime] = None


class QuizSnapshot(CamelModel):
    """What a share link exposes: no source text, token or password."""
    id: str
    title: str
    difficulty: str
    created_at: Optional[datetime] = None
    questions: List[Question]
    flashcards: List[Flashcard]


# === Sharing & attempts ===

class ShareCreate(CamelModel):
    password: Optional[str] = Field(None, max_length=128)


class ShareCreated(CamelModel):
    token: str


class ShareAccess(CamelModel):
    password: Optional[str] = None


class AttemptStart(CamelModel):
    name: Optional[str] = Field(None, max_length=120)
    password: Optional[str] = None


class AttemptStarted(CamelModel):
    attempt_id: str
    started_at_ms: int


class AnswerItem(CamelModel):
    question_index: int = Field(..., ge=0)
    option_index: int = Field(..., ge=0)


class AttemptSubmit(CamelModel):
    answers: List[AnswerItem] = Field(default_factory=list)


class QuestionResult(CamelModel):
    question_index: int
    option_index: int
    correct_index: int
    correct: bool


class GradeResult(CamelModel):
    score: int
    total: int
    results: List[QuestionResult]


class AttemptListRequest(CamelModel):
    password: Optional[str] = None
    limit: Optional[int] = Field(None, ge=1, le=200)


class AttemptSummary(CamelModel):
    id: str
    name: str
    score: int
    total: int
    status: str
    started_at_ms: int
    completed_at_ms: Optional[int] = None


class AttemptDetail(AttemptSummary):
    results: List[QuestionResult] = Field(default_factory=list)


# === Live games ===

class GameOption(CamelModel):
    text: str
    # Hidden (null) for players until answers are revealed
    is_correct: Optional[bool] = None


class GameQuestion(CamelModel):
    prompt: str
    options: List[GameOption]


class GameState(CamelModel):
    id: str
    host_id: str
    status: str
    current_question_index: Optional[int] = None
    ends_at: int
    expired: bool
    answers_locked: bool
    show_answers: bool
    auto_reveal: bool
    questions: List[GameQuestion]


class GameQuestionsLoad(CamelModel):
    questions: List[Question] = Field(..., min_length=1)


class GameJoin(CamelModel):
    name: str = Field("Player", min_length=1, max_length=120)


class ParticipantEntry(CamelModel):
    id: str
    name: str
    score: int
    last_answered_question_index: int


class GameAnswer(CamelModel):
    question_index: int = Field(..., ge=0)
    option_index: int = Field(..., ge=0)


class GameAnswerResult(CamelModel):
    correct: bool
    already_answered: bool


# === Account ===

class FeedbackCreate(CamelModel):
    message: str = Field(..., min_length=5, max_length=2000)
    platform: Literal["web", "mobile"] = "web"
    app_version: Optional[str] = Field(None, max_length=50)


class FeedbackAccepted(CamelModel):
    ok: bool
    cooldown_seconds: int


class GenerateRequest(CamelModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=20)
    difficulty: Difficulty = "medium"
    topic: Optional[str] = None
    count: int = Field(10, ge=5, le=30)


class GeneratedContent(CamelModel):
    questions: List[Question]
    flashcards: List[Flashcard]


class Health(BaseModel):
    status: str = "ok"
