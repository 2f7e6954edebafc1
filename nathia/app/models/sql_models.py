from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..db.base import Base


def generate_uuid():
    return str(uuid4())


def utcnow():
    return datetime.now(timezone.utc)


class AiMessage(Base):
    """Chat message persisted after sanitisation."""

    __tablename__ = "ai_messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    session_id = Column(String(64), nullable=False, index=True)
    role = Column(String(20), nullable=False)  # 'user' or 'assistant'
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    # Turn safety metadata (path, risk level, moderation decision...)
    metadata_json = Column("metadata", JSON, default=dict)

    def __repr__(self):
        return f"<AiMessage(id='{self.id}', role='{self.role}')>"


class CommunityPost(Base):
    __tablename__ = "community_posts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    content = Column(Text, nullable=False)
    report_count = Column(Integer, nullable=False, default=0)
    hidden = Column(Boolean, nullable=False, default=False)
    moderation_status = Column(String(20), nullable=False, default="approved")
    judgement_score = Column(Float, nullable=True)
    toxicity_score = Column(Float, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    reports = relationship("PostReport", back_populates="post", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<CommunityPost(id='{self.id}', hidden={self.hidden})>"


class PostReport(Base):
    __tablename__ = "post_reports"
    # One report per user per post
    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_post_reports_post_user"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    post_id = Column(String(36), ForeignKey("community_posts.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False)
    reason = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    post = relationship("CommunityPost", back_populates="reports")


class SosEvent(Base):
    __tablename__ = "sos_events"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    session_id = Column(String(64), nullable=True)
    risk_level = Column(String(10), nullable=True)
    signals = Column(JSON, default=list)
    created_at = Column(DateTime, default=utcnow)


class HabitProgressRecord(Base):
    __tablename__ = "habit_progress"
    __table_args__ = (UniqueConstraint("user_id", "habit_id", name="uq_habit_progress_user_habit"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    habit_id = Column(String(64), nullable=False)
    streak = Column(Integer, nullable=False, default=0)
    completion = Column(Integer, nullable=False, default=0)  # 0-100
    total_completions = Column(Integer, nullable=False, default=0)
    last_completed = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
