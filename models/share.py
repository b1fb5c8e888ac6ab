from sqlalchemy import Column, String, Text, DateTime, func
from models.base import Base, new_id

class ShareLink(Base):
    """Immutable pointer from a public token to one quiz."""
    __tablename__ = "share_links"

    token = Column(String(64), primary_key=True)
    quiz_id = Column(String(64), index=True, nullable=False)
    owner_id = Column(String(128), nullable=False)
    password_hash = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class ShareView(Base):
    __tablename__ = "share_views"

    id = Column(String(64), primary_key=True, default=new_id)
    token = Column(Text, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
