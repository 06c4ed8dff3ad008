"""
Errors - Failure kinds raised while loading and seeding curriculum content
"""

from models.schemas import BundleFailure


class SeedError(Exception):
    """A failure scoped to one bundle; the bundle is rolled back."""

    cause = "Seed Error"

    def __init__(self, bundle_id: str, stage: str, summary: str):
        super().__init__(f"[{bundle_id}] {stage}: {summary}")
        self.bundle_id = bundle_id
        self.stage = stage
        self.summary = summary

    def to_failure(self) -> BundleFailure:
        return BundleFailure(
            bundle_id=self.bundle_id,
            stage=self.stage,
            cause=self.cause,
            summary=self.summary,
        )


class TopicConflictError(SeedError):
    cause = "Topic Conflict"


class LessonCollisionError(SeedError):
    cause = "Lesson Collision"


class QuizIntegrityError(SeedError):
    cause = "Quiz Integrity"


class SchemaViolationError(SeedError):
    cause = "Schema Violation"

    def __init__(self, bundle_id: str, stage: str, summary: str, db_error: str = ""):
        super().__init__(bundle_id, stage, summary)
        self.db_error = db_error


class BundleTimeoutError(SeedError):
    cause = "Bundle Timeout"


class SeedConfigurationError(Exception):
    """A process-level problem: the run cannot start or continue."""


class SeedConnectionError(SeedConfigurationError):
    """The database cannot be reached or authenticated against."""


class ContentError(SeedConfigurationError):
    """A bundle on disk cannot be read or parsed."""

    def __init__(self, bundle_id: str, message: str):
        super().__init__(f"{bundle_id}: {message}")
        self.bundle_id = bundle_id


class UnknownBundleError(ContentError):
    """A bundle id requested by the caller is not in the dataset."""

    def __init__(self, bundle_id: str):
        super().__init__(bundle_id, "no such bundle in the content directory")
