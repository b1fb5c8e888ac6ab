from sqlalchemy import Column, Integer, String, BigInteger, Text, DateTime, func
from models.base import Base, new_id

class CooldownRecord(Base):
    """Last time a subject performed a throttled action, per scope (e.g. 'feedback')."""
    __tablename__ = "cooldowns"

    scope = Column(String(32), primary_key=True)
    subject_id = Column(String(128), primary_key=True)
    last_submitted_at = Column(BigInteger, nullable=False)  # epoch ms, only ever increases
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class UsageCounter(Base):
    __tablename__ = "usage_counters"

    subject_id = Column(String(128), primary_key=True)
    day = Column(String(10), primary_key=True)  # YYYY-MM-DD (UTC)
    count = Column(Integer, default=0, nullable=False)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class Feedback(Base):
    __tablename__ = "feedback"

    id = Column(String(64), primary_key=True, default=new_id)
    user_id = Column(String(128), index=True, nullable=False)
    message = Column(Text, nullable=False)
    platform = Column(String(16), default="web", nullable=False)
    app_version = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
