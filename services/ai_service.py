import json
import httpx
from typing import Dict, List, Literal, Optional, Protocol
from pydantic import BaseModel, ConfigDict, Field, ValidationError as SchemaError
from core.config import settings
from core.errors import InternalError
from core.logger import logger

Difficulty = Literal["easy", "medium", "hard"]

SYSTEM_PROMPT = (
    "You are an expert instructional designer. Generate multiple-choice questions "
    "and flashcards. Return valid JSON only."
)


class ContentGenerator(Protocol):
    async def generate(self, title: str, content: str, difficulty: str, topic: Optional[str], count: int) -> Dict:
        """Return ``{"questions": [...], "flashcards": [...]}`` built from the source content."""
        ...


class TextExtractor(Protocol):
    async def extract(self, data: bytes, mime_type: str) -> Dict:
        """Return ``{"text": ...}`` extracted from an uploaded document."""
        ...


# --- expected model output ---

class GeneratedOption(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    text: str
    is_correct: bool = Field(alias="isCorrect")
    explanation: Optional[str] = None


class GeneratedQuestion(BaseModel):
    id: Optional[str] = None
    prompt: str
    options: List[GeneratedOption]
    hint: Optional[str] = None
    topic: Optional[str] = None
    difficulty: Optional[Difficulty] = None


class GeneratedFlashcard(BaseModel):
    id: Optional[str] = None
    term: str
    definition: str


class GeneratedQuiz(BaseModel):
    questions: List[GeneratedQuestion]
    flashcards: List[GeneratedFlashcard]


class AIService:
    """Quiz generation through an OpenAI-compatible chat completions API."""

    def __init__(self, api_key: str = None, model: str = None, base_url: str = None,
                 transport: httpx.AsyncBaseTransport = None):
        self.api_key = api_key if api_key is not None else settings.AI_API_KEY
        self.model = model or settings.AI_MODEL
        self.base_url = base_url or settings.AI_BASE_URL
        self.transport = transport

    def _log_rate_limits(self, headers: httpx.Headers):
        """Extract and log provider rate limit information."""
        remaining_requests = headers.get("x-ratelimit-remaining-requests")
        remaining_tokens = headers.get("x-ratelimit-remaining-tokens")

        if remaining_requests or remaining_tokens:
            logger.info(
                "AI rate limits",
                rem_req=remaining_requests,
                rem_tok=remaining_tokens,
                reset_req=headers.get("x-ratelimit-reset-requests"),
                reset_tok=headers.get("x-ratelimit-reset-tokens")
            )

    def _build_prompt(self, title: str, content: str, difficulty: str, topic: Optional[str], count: int) -> str:
        flashcards = max(6, int(count * 0.6))
        return (
            f"Title: {title}\nTopic: {topic or 'General'}\nDifficulty: {difficulty}\n\n"
            f"Content:\n{content}\n\n"
            "Requirements:\n"
            f"- Create {count} multiple-choice questions.\n"
            "- Each question has 4 options with exactly one correct answer.\n"
            "- Include a concise explanation for the correct answer.\n"
            f"- Generate at least {flashcards} flashcards.\n"
            '- JSON shape: { "questions": [...], "flashcards": [...] }'
        )

    async def generate(self, title: str, content: str, difficulty: str, topic: Optional[str], count: int) -> Dict:
        if not self.api_key:
            raise InternalError("AI_API_KEY is not configured.")

        async with httpx.AsyncClient(timeout=float(settings.AI_TIMEOUT_SECONDS), transport=self.transport) as client:
            try:
                response = await client.post(
                    self.base_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json"
                    },
                    json={
                        "model": self.model,
                        "messages": [
                            {"role": "system", "content": SYSTEM_PROMPT},
                            {"role": "user", "content": self._build_prompt(title, content, difficulty, topic, count)}
                        ],
                        "response_format": {"type": "json_object"},
                        "temperature": 0.3,
                    }
                )
            except httpx.HTTPError as e:
                logger.error("AI request failed", error=str(e))
                raise InternalError("Content generation is unavailable.") from e

        self._log_rate_limits(response.headers)

        if response.status_code != 200:
            logger.error("AI API error", status=response.status_code, error=response.text[:500])
            raise InternalError("Content generation failed.", details={"status": response.status_code})

        try:
            content_json = response.json()["choices"][0]["message"]["content"] or "{}"
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise InternalError("AI response was not valid JSON.") from e

        parsed = self._parse_response(content_json)
        if parsed is None:
            raise InternalError("AI response was not valid JSON.")

        try:
            quiz = GeneratedQuiz.model_validate(parsed)
        except SchemaError as e:
            logger.error("AI response did not match schema", errors=e.error_count())
            raise InternalError("AI response did not match schema.") from e

        logger.info("AI quiz generated", title=title, questions=len(quiz.questions), flashcards=len(quiz.flashcards))
        return quiz.model_dump(exclude_none=True)

    def _parse_response(self, content: str) -> Optional[Dict]:
        """Parse the JSON object from an AI response, tolerating a markdown code fence."""
        content = content.strip()

        def try_parse(s):
            try:
                value = json.loads(s)
            except json.JSONDecodeError:
                return None
            return value if isinstance(value, dict) else None

        parsed = try_parse(content)
        if parsed is not None:
            return parsed

        if "```json" in content:
            start = content.find("```json") + 7
            end = content.find("```", start)
            parsed = try_parse(content[start:end if end > start else None].strip())
            if parsed is not None:
                return parsed

        if "{" in content:
            start = content.find("{")
            end = content.rfind("}") + 1
            if end > start:
                parsed = try_parse(content[start:end])
                if parsed is not None:
                    return parsed

        logger.error("Failed to parse AI response", content=content[:500])
        return None
