"""
Seed Runner - Applies content bundles to the database, one transaction per bundle
"""

import time
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from sqlalchemy import select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from core.database import make_session_factory
from core.errors import (
    BundleTimeoutError,
    LessonCollisionError,
    QuizIntegrityError,
    SchemaViolationError,
    SeedConnectionError,
    SeedError,
    TopicConflictError,
)
from models.schemas import (
    BundleOutcome,
    BundleResult,
    BundleState,
    ContentBundle,
    LessonData,
    QuizQuestionData,
    SeedReport,
    TopicData,
)
from models.tables import CodeExample, Lesson, Migration, QuizQuestion, Topic

MIN_OPTIONS = 2
MAX_OPTIONS = 6

# PostgreSQL SQLSTATE for statements cancelled by statement_timeout
QUERY_CANCELED = "57014"

def order_bundles(bundles: Iterable[ContentBundle]) -> List[ContentBundle]:
    """Processing order: lexicographic over bundle id."""
    return sorted(bundles, key=lambda b: b.bundle_id)

class _BundleRun:
    """Tracks state, current stage and row counts for one bundle."""

    def __init__(self, bundle: ContentBundle, timeout: Optional[float]):
        self.bundle = bundle
        self.state = BundleState.PENDING
        self.stage = "check"
        self.deadline = time.monotonic() + timeout if timeout else None
        self.result = BundleResult(
            bundle_id=bundle.bundle_id,
            state=BundleState.PENDING,
            outcome=BundleOutcome.FAILED,
        )

    def move_to(self, state: BundleState):
        logging.debug(f"{self.bundle.bundle_id}: {self.state.value} -> {state.value}")
        self.state = state
        self.result.state = state

    def enter(self, stage: str):
        self.stage = stage
        self.check_deadline()

    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check_deadline(self):
        if self.expired():
            raise BundleTimeoutError(self.bundle.bundle_id, self.stage, "bundle transaction timed out")

class SeedRunner:
    """Ingests content bundles idempotently.

    Each bundle runs in its own session and transaction: a bundle either
    lands completely or not at all. Applied bundles are recorded in the
    ``migrations`` table under their bundle id and skipped on later runs.
    A dry run shares one session across bundles, one SAVEPOINT each, and
    rolls everything back once the last bundle has been validated.
    """

    def __init__(self, engine: Engine, dry_run: bool = False, fail_fast: bool = False,
                 bundle_timeout: Optional[float] = None):
        self.engine = engine
        self.session_factory = make_session_factory(engine)
        self.dry_run = dry_run
        self.fail_fast = fail_fast
        self.bundle_timeout = bundle_timeout

    def ingest(self, bundles: Iterable[ContentBundle]) -> SeedReport:
        """Process every bundle in order and return the run report."""
        report = SeedReport(dry_run=self.dry_run, started_at=datetime.now(timezone.utc))
        ordered = order_bundles(bundles)

        mode = " (dry run)" if self.dry_run else ""
        logging.info(f"Seeding {len(ordered)} bundles{mode}")

        # A dry run validates every bundle inside one outer transaction so later
        # bundles see the rows of earlier ones; the whole run is rolled back at the end.
        dry_session = self.session_factory() if self.dry_run else None
        try:
            for bundle in ordered:
                result = self.ingest_bundle(bundle, session=dry_session)
                report.results.append(result)
                if result.outcome == BundleOutcome.FAILED and self.fail_fast:
                    logging.warning(f"Fail-fast: stopping after {bundle.bundle_id}")
                    report.aborted = True
                    break
        finally:
            if dry_session is not None:
                self._rollback_quietly(dry_session, None, "dry run")
                dry_session.close()

        report.finished_at = datetime.now(timezone.utc)
        return report

    def ingest_bundle(self, bundle: ContentBundle, session: Optional[Session] = None) -> BundleResult:
        """Apply one bundle atomically.

        With a caller-owned ``session`` the bundle runs in a SAVEPOINT; a
        successful bundle releases it and the caller decides the outer outcome.
        """
        run = _BundleRun(bundle, self.bundle_timeout)
        owns_session = session is None
        if owns_session:
            session = self.session_factory()
        savepoint = None
        try:
            if not owns_session:
                savepoint = session.begin_nested()
            run.move_to(BundleState.CHECKING)
            if self._already_applied(session, bundle.bundle_id):
                self._discard(session, savepoint)
                run.move_to(BundleState.SKIPPED)
                run.result.outcome = BundleOutcome.SKIPPED
                logging.info(f"skipped {bundle.bundle_id} (already applied)")
                return run.result

            run.move_to(BundleState.APPLYING)
            self._apply_statement_timeout(session, run)
            self._apply(session, bundle, run)

            run.enter("commit")
            if savepoint is not None:
                savepoint.commit()
            elif self.dry_run:
                session.rollback()
            else:
                session.commit()

            if self.dry_run:
                run.move_to(BundleState.ROLLED_BACK)
                run.result.outcome = BundleOutcome.VALIDATED
                logging.info(f"validated {bundle.bundle_id} (dry run)")
            else:
                run.move_to(BundleState.COMMITTED)
                run.result.outcome = BundleOutcome.APPLIED
                logging.info(
                    f"applied {bundle.bundle_id} (topic={bundle.topic.slug}, "
                    f"lessons={run.result.lessons}, examples={run.result.code_examples}, "
                    f"quiz={run.result.quiz_questions})"
                )
            return run.result

        except SeedError as e:
            return self._fail(session, savepoint, run, e)
        except PoolTimeoutError as e:
            return self._fail(session, savepoint, run, BundleTimeoutError(
                bundle.bundle_id, run.stage, f"timed out waiting for a database connection: {e}"))
        except OperationalError as e:
            if run.expired() or getattr(e.orig, "pgcode", None) == QUERY_CANCELED:
                return self._fail(session, savepoint, run, BundleTimeoutError(
                    bundle.bundle_id, run.stage, "bundle transaction timed out"))
            if e.connection_invalidated:
                self._rollback_quietly(session, savepoint, bundle.bundle_id)
                raise SeedConnectionError(f"Lost database connection during {bundle.bundle_id}: {e}") from e
            return self._fail(session, savepoint, run, self._schema_violation(run, e))
        except SQLAlchemyError as e:
            return self._fail(session, savepoint, run, self._schema_violation(run, e))
        finally:
            if owns_session:
                session.close()

    # --- steps ---

    def _already_applied(self, session: Session, bundle_id: str) -> bool:
        row = session.execute(select(Migration.id).where(Migration.name == bundle_id)).first()
        return row is not None

    def _apply_statement_timeout(self, session: Session, run: _BundleRun):
        if not self.bundle_timeout or self.engine.dialect.name != "postgresql":
            return
        millis = max(1, int(self.bundle_timeout * 1000))
        session.execute(text(f"SET LOCAL statement_timeout = {millis}"))

    def _apply(self, session: Session, bundle: ContentBundle, run: _BundleRun):
        run.enter("topic")
        topic = self._resolve_topic(session, bundle, run)

        for lesson_data in bundle.lessons:
            run.enter("lesson")
            lesson = self._insert_lesson(session, bundle, topic, lesson_data)
            run.result.lessons += 1

            run.enter("example")
            for example in bundle.examples_for(lesson_data.slug):
                session.add(CodeExample(
                    lesson_id=lesson.id,
                    title=example.title,
                    description=example.description,
                    language=example.language,
                    code=example.code,
                    explanation=example.explanation,
                    order_index=example.order_index,
                ))
                run.result.code_examples += 1
            session.flush()

            run.enter("quiz")
            for question in bundle.quiz_for(lesson_data.slug):
                self._check_quiz_integrity(bundle.bundle_id, lesson_data, question)
                session.add(QuizQuestion(
                    lesson_id=lesson.id,
                    question_text=question.question_text,
                    question_type=question.question_type,
                    options=list(question.options),
                    correct_answer=question.correct_answer,
                    explanation=question.explanation,
                    difficulty=question.difficulty,
                    points=question.points,
                    order_index=question.order_index,
                ))
                run.result.quiz_questions += 1
            session.flush()

        run.enter("bookkeeping")
        session.add(Migration(name=bundle.bundle_id, applied_at=datetime.now(timezone.utc)))
        session.flush()

    def _resolve_topic(self, session: Session, bundle: ContentBundle, run: _BundleRun) -> Topic:
        data: TopicData = bundle.topic
        topic = session.execute(select(Topic).where(Topic.slug == data.slug)).scalar_one_or_none()

        if topic is None:
            topic = Topic(slug=data.slug, **data.comparable_fields())
            session.add(topic)
            session.flush()
            run.result.topic_created = True
            logging.debug(f"{bundle.bundle_id}: created topic {data.slug} (id={topic.id})")
            return topic

        wanted = data.comparable_fields()
        differing = [field for field, value in wanted.items() if getattr(topic, field) != value]
        if differing:
            details = ", ".join(
                f"{field}: stored={getattr(topic, field)!r} bundle={wanted[field]!r}" for field in differing
            )
            raise TopicConflictError(
                bundle.bundle_id, "topic", f"topic '{data.slug}' disagrees with stored row ({details})"
            )

        logging.debug(f"{bundle.bundle_id}: reusing topic {data.slug} (id={topic.id})")
        return topic

    def _insert_lesson(self, session: Session, bundle: ContentBundle, topic: Topic,
                       data: LessonData) -> Lesson:
        existing = session.execute(
            select(Lesson.id).where(Lesson.topic_id == topic.id, Lesson.slug == data.slug)
        ).first()
        if existing is not None:
            raise LessonCollisionError(
                bundle.bundle_id, "lesson", f"lesson '{data.slug}' already exists in topic '{topic.slug}'"
            )

        lesson = Lesson(
            topic_id=topic.id,
            slug=data.slug,
            title=data.title,
            summary=data.summary,
            difficulty_level=data.difficulty_level,
            estimated_time=data.estimated_time,
            order_index=data.order_index,
            key_points=list(data.key_points),
            content=data.content,
        )
        session.add(lesson)
        session.flush()
        return lesson

    def _check_quiz_integrity(self, bundle_id: str, lesson: LessonData, question: QuizQuestionData):
        label = f"lesson '{lesson.slug}', question #{question.order_index}"
        if not MIN_OPTIONS <= len(question.options) <= MAX_OPTIONS:
            raise QuizIntegrityError(
                bundle_id, "quiz",
                f"{label} has {len(question.options)} options (expected {MIN_OPTIONS}-{MAX_OPTIONS})",
            )
        if not question.answer_is_valid():
            raise QuizIntegrityError(
                bundle_id, "quiz", f"{label}: correct answer {question.correct_answer!r} is not one of its options"
            )

    # --- failure handling ---

    def _schema_violation(self, run: _BundleRun, error: SQLAlchemyError) -> SchemaViolationError:
        db_error = str(getattr(error, "orig", None) or error)
        logging.error(f"Database rejected {run.bundle.bundle_id} at {run.stage}: {error}")
        return SchemaViolationError(
            run.bundle.bundle_id, run.stage, db_error.splitlines()[0] if db_error else type(error).__name__,
            db_error=db_error,
        )

    def _fail(self, session: Session, savepoint, run: _BundleRun, error: SeedError) -> BundleResult:
        self._rollback_quietly(session, savepoint, run.bundle.bundle_id)
        run.move_to(BundleState.ROLLED_BACK)
        # Nothing from a rolled back bundle persists
        run.result = run.result.model_copy(update={
            "outcome": BundleOutcome.FAILED,
            "failure": error.to_failure(),
            "lessons": 0,
            "code_examples": 0,
            "quiz_questions": 0,
            "topic_created": False,
        })
        logging.error(f"failed {error.bundle_id} [{error.stage}] {error.cause}: {error.summary}")
        return run.result

    def _discard(self, session: Session, savepoint):
        """Roll back the bundle's own scope: its SAVEPOINT, or the whole session."""
        if savepoint is not None:
            savepoint.rollback()
        else:
            session.rollback()

    def _rollback_quietly(self, session: Session, savepoint, label: str):
        try:
            self._discard(session, savepoint)
        except SQLAlchemyError as e:
            # The server discards the transaction when the connection drops
            logging.warning(f"Rollback of {label} failed: {e}")
