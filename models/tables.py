"""
Database Tables - SQLAlchemy models for topics, lessons, code examples and quiz questions
"""

from sqlalchemy import (
    JSON, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer,
    String, Text, UniqueConstraint, func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

LESSON_DIFFICULTIES = ("beginner", "intermediate", "advanced")
QUIZ_DIFFICULTIES = ("easy", "medium", "hard")
QUESTION_TYPES = ("multiple_choice", "true_false", "code_challenge")

# Ordered string lists: TEXT[] / JSONB on PostgreSQL, JSON text elsewhere
StringList = JSON().with_variant(ARRAY(Text), "postgresql")
OptionList = JSON().with_variant(JSONB(), "postgresql")


def _in_check(column: str, values) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class Topic(TimestampMixin, Base):
    """A named curriculum area."""

    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String(200), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    estimated_time = Column(Integer)  # minutes
    order_index = Column(Integer, nullable=False, default=0)

    lessons = relationship(
        "Lesson",
        back_populates="topic",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Lesson.order_index",
    )

    __table_args__ = (
        CheckConstraint("order_index >= 0", name="ck_topics_order_index"),
    )

    def __repr__(self) -> str:
        return f"<Topic {self.slug}>"


class Lesson(TimestampMixin, Base):
    """One readable unit of instruction within a topic."""

    __tablename__ = "lessons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    topic_id = Column(ForeignKey("topics.id", ondelete="CASCADE"), nullable=False)
    slug = Column(String(300), nullable=False)
    title = Column(String(300), nullable=False)
    summary = Column(Text)
    difficulty_level = Column(String(20), nullable=False)
    estimated_time = Column(Integer)
    order_index = Column(Integer, nullable=False, default=0)
    key_points = Column(StringList, nullable=False, default=list)
    content = Column(Text, nullable=False)

    topic = relationship("Topic", back_populates="lessons")
    code_examples = relationship(
        "CodeExample",
        back_populates="lesson",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CodeExample.order_index",
    )
    quiz_questions = relationship(
        "QuizQuestion",
        back_populates="lesson",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="QuizQuestion.order_index",
    )

    __table_args__ = (
        UniqueConstraint("topic_id", "slug", name="uq_lessons_topic_slug"),
        CheckConstraint(_in_check("difficulty_level", LESSON_DIFFICULTIES), name="ck_lessons_difficulty_level"),
        CheckConstraint("order_index >= 0", name="ck_lessons_order_index"),
        Index("idx_lessons_topic", "topic_id"),
    )

    def __repr__(self) -> str:
        return f"<Lesson {self.slug} (topic_id={self.topic_id})>"


class CodeExample(TimestampMixin, Base):
    """A labelled code snippet attached to a lesson."""

    __tablename__ = "code_examples"

    id = Column(Integer, primary_key=True, autoincrement=True)
    lesson_id = Column(ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(300), nullable=False)
    description = Column(Text)
    language = Column(String(50), nullable=False)
    code = Column(Text, nullable=False)
    explanation = Column(Text)
    order_index = Column(Integer, nullable=False, default=0)

    lesson = relationship("Lesson", back_populates="code_examples")

    __table_args__ = (
        CheckConstraint("order_index >= 0", name="ck_code_examples_order_index"),
        Index("idx_code_examples_lesson", "lesson_id"),
    )


class QuizQuestion(TimestampMixin, Base):
    """A multiple-choice prompt with exactly one correct option."""

    __tablename__ = "quiz_questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    lesson_id = Column(ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False)
    question_text = Column(Text, nullable=False)
    question_type = Column(String(20), nullable=False, default="multiple_choice")
    options = Column(OptionList, nullable=False)
    correct_answer = Column(Text, nullable=False)
    explanation = Column(Text)
    difficulty = Column(String(20), nullable=False)
    points = Column(Integer, nullable=False, default=10)
    order_index = Column(Integer, nullable=False, default=0)

    lesson = relationship("Lesson", back_populates="quiz_questions")

    __table_args__ = (
        CheckConstraint(_in_check("question_type", QUESTION_TYPES), name="ck_quiz_questions_type"),
        CheckConstraint(_in_check("difficulty", QUIZ_DIFFICULTIES), name="ck_quiz_questions_difficulty"),
        CheckConstraint("order_index >= 0", name="ck_quiz_questions_order_index"),
        Index("idx_quiz_questions_lesson", "lesson_id"),
    )


class Migration(Base):
    """Bookkeeping row marking a content bundle as ingested."""

    __tablename__ = "migrations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(500), unique=True, nullable=False)
    applied_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self) -> str:
        return f"<Migration {self.name}>"
