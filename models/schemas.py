"""
Data Models - Pydantic schemas for curriculum content bundles and seed reports
"""

import json
from enum import Enum
from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Optional

class TopicData(BaseModel):
    """A curriculum topic as declared by a content bundle."""
    slug: str = Field(min_length=1, description="Globally unique topic identifier")
    name: str = Field(min_length=1, description="Display name of the topic")
    description: Optional[str] = Field(None, description="Short description of the topic")
    estimated_time: Optional[int] = Field(None, ge=0, description="Estimated time in minutes")
    order_index: int = Field(0, ge=0, description="Position among topics")

    def comparable_fields(self) -> dict:
        """Attributes that must agree with an already stored topic of the same slug."""
        return {
            "name": self.name,
            "description": self.description,
            "estimated_time": self.estimated_time,
            "order_index": self.order_index,
        }

class LessonData(BaseModel):
    """One lesson of a topic, carrying the markdown body."""
    slug: str = Field(min_length=1, description="Identifier unique within the topic")
    title: str
    summary: Optional[str] = None
    difficulty_level: str = Field(description="beginner, intermediate or advanced")
    estimated_time: Optional[int] = Field(None, ge=0)
    order_index: int = Field(0, ge=0)
    key_points: List[str] = Field(default_factory=list)
    content: str = Field(description="Markdown body, stored verbatim")

class CodeExampleData(BaseModel):
    """A labelled code snippet attached to a lesson."""
    title: str
    description: Optional[str] = None
    language: str
    code: str
    explanation: Optional[str] = None
    order_index: int = Field(0, ge=0)

class QuizQuestionData(BaseModel):
    """A multiple-choice question attached to a lesson."""
    question_text: str
    question_type: str = "multiple_choice"
    options: List[str] = Field(description="Ordered answer options")
    correct_answer: str
    explanation: Optional[str] = None
    difficulty: str = Field(description="easy, medium or hard")
    points: int = Field(10, ge=0)
    order_index: int = Field(0, ge=0)

    @field_validator("options", mode="before")
    @classmethod
    def decode_options(cls, v):
        # Some bundles ship the options as a JSON-encoded string
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError as e:
                raise ValueError(f"options is not a JSON array: {e}")
        if not isinstance(v, list):
            raise ValueError("options must be a list of strings")
        return v

    def answer_is_valid(self) -> bool:
        return self.correct_answer in self.options

class ContentBundle(BaseModel):
    """A self-contained unit of content ingested atomically."""
    bundle_id: str = Field(description="Stable ingestion-tracking key")
    area: Optional[str] = Field(None, description="Curriculum area, e.g. architecture")
    difficulty: Optional[str] = Field(None, description="Curriculum tier, e.g. beginner")
    topic: TopicData
    lessons: List[LessonData] = Field(default_factory=list)
    examples: Dict[str, List[CodeExampleData]] = Field(default_factory=dict)
    quiz: Dict[str, List[QuizQuestionData]] = Field(default_factory=dict)

    def examples_for(self, lesson_slug: str) -> List[CodeExampleData]:
        return self.examples.get(lesson_slug, [])

    def quiz_for(self, lesson_slug: str) -> List[QuizQuestionData]:
        return self.quiz.get(lesson_slug, [])

# --- Seed run reporting ---

class BundleState(str, Enum):
    PENDING = "pending"
    CHECKING = "checking"
    APPLYING = "applying"
    COMMITTED = "committed"
    SKIPPED = "skipped"
    ROLLED_BACK = "rolled_back"

class BundleOutcome(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    VALIDATED = "validated"
    FAILED = "failed"

class BundleFailure(BaseModel):
    bundle_id: str
    stage: str
    cause: str
    summary: str

class BundleResult(BaseModel):
    """Final state of one bundle after a seed run."""
    bundle_id: str
    state: BundleState
    outcome: BundleOutcome
    lessons: int = 0
    code_examples: int = 0
    quiz_questions: int = 0
    topic_created: bool = False
    failure: Optional[BundleFailure] = None

class SeedReport(BaseModel):
    """Results of a seed run, in processing order."""
    dry_run: bool = False
    started_at: datetime
    finished_at: Optional[datetime] = None
    results: List[BundleResult] = Field(default_factory=list)
    aborted: bool = Field(False, description="True when fail-fast stopped the run early")

    def count(self, outcome: BundleOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    @property
    def failures(self) -> List[BundleFailure]:
        return [r.failure for r in self.results if r.failure is not None]

    @property
    def succeeded(self) -> bool:
        return not self.failures
