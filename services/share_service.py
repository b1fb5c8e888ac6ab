import uuid
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models.quiz import Quiz
from models.share import ShareLink, ShareView
from core.errors import AuthorizationError, NotFoundError
from core.security import hash_share_password, share_password_matches
from core.logger import logger
from services.quiz_service import QuizService


class ShareService:
    """Gate for every unauthenticated read of a quiz: token lookup plus optional password."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_share_link(self, owner_id: str, quiz_id: str, password: Optional[str] = None) -> str:
        quiz = await QuizService(self.db).get_quiz_by_id_and_user(quiz_id, owner_id)
        if not quiz:
            raise NotFoundError("Quiz not found.")

        # Fresh random token per call; the primary key keeps it from ever pointing at another quiz
        token = str(uuid.uuid4())
        self.db.add(ShareLink(
            token=token,
            quiz_id=quiz.id,
            owner_id=owner_id,
            password_hash=hash_share_password(password) if password else None,
        ))
        quiz.share_enabled = True
        quiz.share_token = token
        await self.db.commit()

        logger.info("Share link created", quiz_id=quiz_id, owner_id=owner_id, protected=bool(password))
        return token

    async def verify(self, token: str, password: Optional[str] = None) -> ShareLink:
        result = await self.db.execute(select(ShareLink).filter(ShareLink.token == token))
        share = result.scalar_one_or_none()
        if not share:
            raise NotFoundError("Share link not found.")

        if share.password_hash and not share_password_matches(password, share.password_hash):
            logger.warning("Share password rejected", token=token)
            raise AuthorizationError("Invalid password.")

        return share

    async def get_shared_quiz(self, token: str, password: Optional[str] = None) -> dict:
        share = await self.verify(token, password)
        quiz = await self._quiz_for(share)
        return quiz.to_snapshot()

    async def log_share_view(self, token: str) -> None:
        # Unknown tokens are recorded as well; counting views never fails the caller
        self.db.add(ShareView(token=token))
        await self.db.commit()

    async def _quiz_for(self, share: ShareLink) -> Quiz:
        quiz = await QuizService(self.db).get_quiz(share.quiz_id)
        if not quiz:
            raise NotFoundError("Quiz not found.")
        return quiz
