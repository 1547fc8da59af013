"""
Learning Content Models
Tracks contain ordered lessons; lessons carry quizzes; learners accumulate
attempts, lesson progress and track certificates.
"""
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

DIFFICULTIES = ("beginner", "intermediate", "advanced")
QUESTION_TYPES = ("multiple_choice", "true_false", "short_answer")


class Track(Base):
    __tablename__ = "tracks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    summary = Column(Text, nullable=True)
    difficulty = Column(String(20), default="beginner", nullable=False)
    estimated_hours = Column(Integer, default=0, nullable=False)
    is_published = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    lessons = relationship(
        "Lesson",
        back_populates="track",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Lesson.order",
    )


class Lesson(Base):
    __tablename__ = "lessons"

    id = Column(Integer, primary_key=True, index=True)
    track_id = Column(Integer, ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    order = Column(Integer, nullable=False, default=0)
    content = Column(Text, nullable=False, default="")
    objectives = Column(JSON, default=list)
    estimated_minutes = Column(Integer, default=60, nullable=False)
    is_required = Column(Boolean, default=True, nullable=False)
    # Media attachments: lists of {"title", "url", ...}
    videos = Column(JSON, default=list)
    documents = Column(JSON, default=list)
    embeds = Column(JSON, default=list)
    links = Column(JSON, default=list)
    images = Column(JSON, default=list)
    audio = Column(JSON, default=list)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    track = relationship("Track", back_populates="lessons")
    quizzes = relationship(
        "Quiz", back_populates="lesson", cascade="all, delete-orphan", passive_deletes=True
    )


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    lesson_id = Column(Integer, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    time_limit = Column(Integer, default=30, nullable=False)  # minutes
    passing_score = Column(Integer, default=70, nullable=False)  # percentage
    max_attempts = Column(Integer, default=3, nullable=False)
    show_feedback = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    lesson = relationship("Lesson", back_populates="quizzes")
    questions = relationship(
        "Question",
        back_populates="quiz",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Question.order",
    )


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), default="multiple_choice", nullable=False)
    prompt = Column(Text, nullable=False)
    options = Column(JSON, default=list)
    correct_answer = Column(Text, nullable=False)
    explanation = Column(Text, nullable=True)
    points = Column(Integer, default=1, nullable=False)
    order = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, server_default=func.now())

    quiz = relationship("Quiz", back_populates="questions")


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    score = Column(Integer, default=0, nullable=False)
    max_score = Column(Integer, default=0, nullable=False)
    percentage = Column(Integer, default=0, nullable=False)
    passed = Column(Boolean, default=False, nullable=False)
    time_spent = Column(Integer, default=0, nullable=False)  # seconds
    answers = Column(JSON, default=dict)  # {question_id: answer}
    feedback = Column(JSON, nullable=True)  # per-question feedback when enabled
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())


class UserProgress(Base):
    __tablename__ = "user_progress"
    __table_args__ = (UniqueConstraint("user_id", "lesson_id", name="uq_user_progress_lesson"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    lesson_id = Column(Integer, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False)
    time_spent = Column(Integer, default=0, nullable=False)  # seconds
    completion_rate = Column(Integer, default=0, nullable=False)  # 0-100
    last_accessed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)


class Certificate(Base):
    __tablename__ = "certificates"
    __table_args__ = (UniqueConstraint("user_id", "track_id", name="uq_certificate_track"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    track_id = Column(Integer, ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False)
    certificate_number = Column(String(50), unique=True, nullable=False)
    progress = Column(Integer, default=100, nullable=False)
    final_score = Column(Integer, nullable=True)
    issued_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=True)
