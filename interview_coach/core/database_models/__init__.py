from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Engine,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def enable_sqlite_foreign_keys(engine: Engine):
    """Enable foreign key enforcement for SQLite connections on an engine."""

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
        if engine.dialect.name == "sqlite":
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()


class InterviewTable(Base):
    """One mock interview. `version` guards every write."""

    __tablename__ = "interviews"

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False)
    role = Column(String, nullable=False)
    experience_level = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="in-progress")
    total_questions = Column(Integer, nullable=False)
    seconds_per_question = Column(Integer, nullable=False)
    estimated_duration_minutes = Column(Integer, nullable=False)
    # denormalized from results for history filters
    overall_score = Column(Integer, nullable=True)
    results = Column(JSON, nullable=True)
    started_at = Column(DateTime, nullable=False, default=lambda: datetime.now(UTC))
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)

    questions = relationship(
        "QuestionTable",
        back_populates="interview",
        cascade="all, delete-orphan",
        order_by="QuestionTable.order_index",
    )
    answers = relationship(
        "AnswerTable",
        back_populates="interview",
        cascade="all, delete-orphan",
        order_by="AnswerTable.order_index",
    )

    __table_args__ = (
        Index("ix_interviews_owner_status", "owner_id", "status"),
        Index("ix_interviews_completed_at", "completed_at"),
    )


class QuestionTable(Base):
    __tablename__ = "interview_questions"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    interview_id = Column(String, ForeignKey("interviews.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(String, nullable=False)
    text = Column(Text, nullable=False)
    category = Column(String, nullable=False)
    difficulty = Column(String, nullable=False)
    expected_duration_seconds = Column(Integer, nullable=False)
    order_index = Column(Integer, nullable=False)

    interview = relationship("InterviewTable", back_populates="questions")

    __table_args__ = (
        UniqueConstraint("interview_id", "question_id", name="uq_question_per_interview"),
        UniqueConstraint("interview_id", "order_index", name="uq_question_position"),
    )


class AnswerTable(Base):
    __tablename__ = "interview_answers"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    interview_id = Column(String, ForeignKey("interviews.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(String, nullable=False)
    question_text = Column(Text, nullable=False)
    text = Column(Text, nullable=False)
    time_spent_seconds = Column(Integer, nullable=False, default=0)
    score = Column(Float, nullable=False)
    feedback = Column(Text, nullable=False)
    strengths = Column(JSON, nullable=False, default=list)
    improvements = Column(JSON, nullable=False, default=list)
    submitted_at = Column(DateTime, nullable=False, default=lambda: datetime.now(UTC))
    order_index = Column(Integer, nullable=False)

    interview = relationship("InterviewTable", back_populates="answers")

    __table_args__ = (UniqueConstraint("interview_id", "question_id", name="uq_answer_per_question"),)


class UserProfileTable(Base):
    """Per-user counters, bumped once per completed interview."""

    __tablename__ = "user_profiles"

    owner_id = Column(String, primary_key=True)
    total_interviews = Column(Integer, nullable=False, default=0)
    total_score = Column(Integer, nullable=False, default=0)
    total_practice_time = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=True)


__all__ = [
    "Base",
    "InterviewTable",
    "QuestionTable",
    "AnswerTable",
    "UserProfileTable",
    "enable_sqlite_foreign_keys",
]
