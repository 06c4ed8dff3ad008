#!/usr/bin/env python3
"""
Test script for the seed runner.

Runs content bundles against throwaway SQLite databases and checks that every
bundle lands completely or not at all, that reruns are no-ops and that each
failure kind is reported with the right stage.
"""

import sys
import itertools
from unittest import mock
from sqlalchemy import delete, func, select
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

# Add the current directory to the path so we can import our modules
sys.path.insert(0, '.')

from core.database import make_session_factory
from core.seed_runner import SeedRunner, order_bundles
from models.schemas import BundleOutcome, BundleState, QuizQuestionData
from models.tables import CodeExample, Lesson, Migration, QuizQuestion, Topic
from seed_testkit import example, lesson, make_bundle, question, temp_database

def row_count(engine, model) -> int:
    with make_session_factory(engine)() as session:
        return session.scalar(select(func.count(model.id)))

def migration_names(engine):
    with make_session_factory(engine)() as session:
        return session.scalars(select(Migration.name).order_by(Migration.name)).all()

def test_fresh_ingest():
    """Two bundles on distinct topics land with all their rows."""
    print("Testing fresh ingest...")
    with temp_database() as (engine, _):
        first = make_bundle("backend/beginner/oop", "oop", lessons=[lesson("classes", 1), lesson("inheritance", 2)])
        second = make_bundle("frontend/beginner/react", "react", lessons=[lesson("jsx", 1)])

        report = SeedRunner(engine).ingest([second, first])

        assert [r.bundle_id for r in report.results] == ["backend/beginner/oop", "frontend/beginner/react"]
        assert report.count(BundleOutcome.APPLIED) == 2
        assert report.succeeded
        assert report.results[0].lessons == 2
        assert report.results[0].code_examples == 2
        assert report.results[0].quiz_questions == 2
        assert report.results[0].topic_created
        assert report.results[0].state == BundleState.COMMITTED

        assert row_count(engine, Topic) == 2
        assert row_count(engine, Lesson) == 3
        assert row_count(engine, CodeExample) == 3
        assert row_count(engine, QuizQuestion) == 3
        assert migration_names(engine) == ["backend/beginner/oop", "frontend/beginner/react"]

    print("✅ Fresh ingest tests passed")

def test_shared_topic_reused():
    """A second bundle declaring an identical topic reuses the stored row."""
    print("Testing shared topic reuse...")
    with temp_database() as (engine, _):
        first = make_bundle("backend/beginner/a", "oop", lessons=[lesson("classes", 1)])
        second = make_bundle("backend/beginner/b", "oop", lessons=[lesson("interfaces", 2)])

        report = SeedRunner(engine).ingest([first, second])

        assert report.count(BundleOutcome.APPLIED) == 2
        assert report.results[0].topic_created
        assert not report.results[1].topic_created
        assert row_count(engine, Topic) == 1

        with make_session_factory(engine)() as session:
            topic = session.scalars(select(Topic).where(Topic.slug == "oop")).one()
            assert [l.slug for l in topic.lessons] == ["classes", "interfaces"]

    print("✅ Shared topic tests passed")

def test_topic_conflict_and_rerun():
    """A conflicting topic fails only its bundle; the corrected bundle applies on rerun."""
    print("Testing topic conflict...")
    with temp_database() as (engine, _):
        first = make_bundle("backend/beginner/a", "oop", lessons=[lesson("classes", 1)])
        conflicting = make_bundle("backend/beginner/b", "oop", lessons=[lesson("interfaces", 1)],
                                  name="Object Orientation")

        report = SeedRunner(engine).ingest([first, conflicting])

        assert report.results[0].outcome == BundleOutcome.APPLIED
        failed = report.results[1]
        assert failed.outcome == BundleOutcome.FAILED
        assert failed.state == BundleState.ROLLED_BACK
        assert failed.failure.cause == "Topic Conflict"
        assert failed.failure.stage == "topic"
        assert "name" in failed.failure.summary
        assert failed.lessons == 0
        assert not report.succeeded

        assert migration_names(engine) == ["backend/beginner/a"]
        assert row_count(engine, Lesson) == 1

        corrected = make_bundle("backend/beginner/b", "oop", lessons=[lesson("interfaces", 1)])
        rerun = SeedRunner(engine).ingest([first, corrected])

        assert [r.outcome for r in rerun.results] == [BundleOutcome.SKIPPED, BundleOutcome.APPLIED]
        assert row_count(engine, Topic) == 1
        assert row_count(engine, Lesson) == 2

    print("✅ Topic conflict tests passed")

def test_quiz_integrity_rolls_back_whole_bundle():
    """A bad answer in the last lesson leaves no trace of the bundle."""
    print("Testing quiz integrity atomicity...")
    with temp_database() as (engine, _):
        lessons = [lesson("one", 1), lesson("two", 2)]
        quiz = {
            "one": [question(1)],
            "two": [question(1), question(2, correct_answer="epsilon")],
        }
        bundle = make_bundle("backend/beginner/quiz", "quiz-topic", lessons=lessons, quiz=quiz)

        report = SeedRunner(engine).ingest([bundle])

        result = report.results[0]
        assert result.outcome == BundleOutcome.FAILED
        assert result.failure.cause == "Quiz Integrity"
        assert result.failure.stage == "quiz"
        assert "two" in result.failure.summary
        assert result.quiz_questions == 0

        assert row_count(engine, Topic) == 0
        assert row_count(engine, Lesson) == 0
        assert row_count(engine, CodeExample) == 0
        assert row_count(engine, QuizQuestion) == 0
        assert migration_names(engine) == []

    print("✅ Quiz integrity tests passed")

def test_option_count_out_of_range():
    print("Testing option count bounds...")
    with temp_database() as (engine, _):
        quiz = {"intro": [question(1, options=["beta"])]}
        bundle = make_bundle("backend/beginner/one-option", "single", quiz=quiz)

        result = SeedRunner(engine).ingest_bundle(bundle)

        assert result.outcome == BundleOutcome.FAILED
        assert result.failure.cause == "Quiz Integrity"
        assert "1 options" in result.failure.summary

    print("✅ Option count tests passed")

def test_idempotent_rerun():
    """Running the same dataset twice changes nothing the second time."""
    print("Testing idempotent rerun...")
    with temp_database() as (engine, _):
        bundles = [
            make_bundle("architecture/beginner/basics", "basics", lessons=[lesson("what", 1), lesson("why", 2)]),
            make_bundle("backend/beginner/api", "api"),
        ]
        SeedRunner(engine).ingest(bundles)
        counts = [row_count(engine, model) for model in (Topic, Lesson, CodeExample, QuizQuestion, Migration)]

        report = SeedRunner(engine).ingest(bundles)

        assert report.count(BundleOutcome.SKIPPED) == 2
        assert all(r.state == BundleState.SKIPPED for r in report.results)
        assert report.succeeded
        assert [row_count(engine, model) for model in (Topic, Lesson, CodeExample, QuizQuestion, Migration)] == counts

    print("✅ Idempotent rerun tests passed")

def test_dry_run_writes_nothing():
    print("Testing dry run...")
    with temp_database() as (engine, _):
        bundles = [
            make_bundle("backend/beginner/a", "shared", lessons=[lesson("one", 1)]),
            make_bundle("backend/beginner/b", "shared", lessons=[lesson("two", 2)]),
            make_bundle("backend/beginner/c", "broken", quiz={"intro": [question(1, correct_answer="nope")]}),
        ]

        report = SeedRunner(engine, dry_run=True).ingest(bundles)

        assert report.dry_run
        assert [r.outcome for r in report.results] == [
            BundleOutcome.VALIDATED, BundleOutcome.VALIDATED, BundleOutcome.FAILED,
        ]
        assert report.results[0].state == BundleState.ROLLED_BACK
        assert report.results[0].lessons == 1
        assert row_count(engine, Topic) == 0
        assert row_count(engine, Lesson) == 0
        assert migration_names(engine) == []

        # Nothing was recorded, so a real run still applies everything valid
        real = SeedRunner(engine).ingest(bundles[:2])
        assert real.count(BundleOutcome.APPLIED) == 2

    print("✅ Dry run tests passed")

def test_dry_run_matches_real_run():
    """Conflicts between bundles of the same run fail in a dry run exactly as in a real one."""
    print("Testing dry run against earlier bundles...")
    with temp_database() as (engine, _):
        bundles = [
            make_bundle("backend/beginner/a", "shared", lessons=[lesson("l1", 1)]),
            make_bundle("backend/beginner/b", "shared", lessons=[lesson("l2", 2)], estimated_time=160),
            make_bundle("backend/beginner/c", "shared", lessons=[lesson("l1", 3)]),
            make_bundle("backend/beginner/d", "shared", lessons=[lesson("l4", 4)]),
        ]

        dry = SeedRunner(engine, dry_run=True).ingest(bundles)

        assert [r.outcome for r in dry.results] == [
            BundleOutcome.VALIDATED, BundleOutcome.FAILED, BundleOutcome.FAILED, BundleOutcome.VALIDATED,
        ]
        assert dry.results[1].failure.cause == "Topic Conflict"
        assert "estimated_time" in dry.results[1].failure.summary
        assert dry.results[2].failure.cause == "Lesson Collision"
        assert not dry.succeeded
        assert row_count(engine, Topic) == 0
        assert row_count(engine, Lesson) == 0
        assert migration_names(engine) == []

        real = SeedRunner(engine).ingest(bundles)

        assert [(r.outcome, r.failure.cause if r.failure else None) for r in real.results] == [
            (BundleOutcome.APPLIED, None),
            (BundleOutcome.FAILED, "Topic Conflict"),
            (BundleOutcome.FAILED, "Lesson Collision"),
            (BundleOutcome.APPLIED, None),
        ]

        # Applied bundles are skipped by a later dry run too
        again = SeedRunner(engine, dry_run=True).ingest([bundles[0], bundles[3]])
        assert again.count(BundleOutcome.SKIPPED) == 2
        assert row_count(engine, Lesson) == 2

    print("✅ Dry run consistency tests passed")

def test_children_order_round_trip():
    """Examples and questions read back by order_index follow the bundle's sequence."""
    print("Testing child ordering...")
    with temp_database() as (engine, _):
        examples = {"intro": [example(i, title=f"Step {i}") for i in (1, 2, 3, 4)]}
        quiz = {"intro": [question(i, question_text=f"Q{i}?") for i in (1, 2, 3)]}
        bundle = make_bundle("backend/beginner/ordered", "ordered", examples=examples, quiz=quiz)

        SeedRunner(engine).ingest([bundle])

        with make_session_factory(engine)() as session:
            stored = session.scalars(select(Lesson).where(Lesson.slug == "intro")).one()
            assert [e.title for e in stored.code_examples] == [e.title for e in bundle.examples_for("intro")]
            assert [q.question_text for q in stored.quiz_questions] == [
                q.question_text for q in bundle.quiz_for("intro")
            ]
            by_index = session.scalars(
                select(QuizQuestion.question_text).order_by(QuizQuestion.order_index)
            ).all()
            assert by_index == ["Q1?", "Q2?", "Q3?"]

    print("✅ Child ordering tests passed")

def test_cascade_delete():
    """Deleting a lesson or topic row removes everything it owns."""
    print("Testing cascade deletes...")
    with temp_database() as (engine, _):
        bundle = make_bundle("backend/beginner/cascade", "cascade", lessons=[lesson("one", 1), lesson("two", 2)])
        SeedRunner(engine).ingest([bundle])
        assert row_count(engine, CodeExample) == 2
        assert row_count(engine, QuizQuestion) == 2

        with make_session_factory(engine)() as session:
            session.execute(delete(Lesson).where(Lesson.slug == "one"))
            session.commit()

        assert row_count(engine, Lesson) == 1
        assert row_count(engine, CodeExample) == 1
        assert row_count(engine, QuizQuestion) == 1

        with make_session_factory(engine)() as session:
            session.execute(delete(Topic).where(Topic.slug == "cascade"))
            session.commit()

        assert row_count(engine, Topic) == 0
        assert row_count(engine, Lesson) == 0
        assert row_count(engine, CodeExample) == 0
        assert row_count(engine, QuizQuestion) == 0

    print("✅ Cascade delete tests passed")

def test_lesson_collision():
    print("Testing lesson collision...")
    with temp_database() as (engine, _):
        first = make_bundle("backend/beginner/a", "shared", lessons=[lesson("intro", 1)])
        second = make_bundle("backend/beginner/b", "shared", lessons=[lesson("extra", 2), lesson("intro", 3)])

        report = SeedRunner(engine).ingest([first, second])

        failed = report.results[1]
        assert failed.failure.cause == "Lesson Collision"
        assert failed.failure.stage == "lesson"
        assert "intro" in failed.failure.summary
        # The lesson inserted before the collision was rolled back with its bundle
        assert row_count(engine, Lesson) == 1

    print("✅ Lesson collision tests passed")

def test_schema_violation():
    """Values the database rejects surface as Schema Violation."""
    print("Testing schema violation...")
    with temp_database() as (engine, _):
        bundle = make_bundle("backend/expert/deep", "deep", lessons=[lesson("internals", 1, difficulty_level="expert")])

        result = SeedRunner(engine).ingest_bundle(bundle)

        assert result.outcome == BundleOutcome.FAILED
        assert result.failure.cause == "Schema Violation"
        assert result.failure.stage == "lesson"
        assert row_count(engine, Topic) == 0

    print("✅ Schema violation tests passed")

def test_fail_fast_stops_run():
    print("Testing fail-fast...")
    with temp_database() as (engine, _):
        bundles = [
            make_bundle("a/beginner/broken", "broken", quiz={"intro": [question(1, correct_answer="nope")]}),
            make_bundle("b/beginner/fine", "fine"),
        ]

        report = SeedRunner(engine, fail_fast=True).ingest(bundles)

        assert report.aborted
        assert len(report.results) == 1
        assert row_count(engine, Topic) == 0

        # Without fail-fast the valid bundle still applies
        report = SeedRunner(engine).ingest(bundles)
        assert not report.aborted
        assert [r.outcome for r in report.results] == [BundleOutcome.FAILED, BundleOutcome.APPLIED]

    print("✅ Fail-fast tests passed")

def test_bundle_timeout():
    print("Testing bundle timeout...")
    with temp_database() as (engine, _):
        bundle = make_bundle("backend/beginner/slow", "slow")
        clock = itertools.count(start=0, step=10)

        with mock.patch("core.seed_runner.time.monotonic", side_effect=lambda: next(clock)):
            result = SeedRunner(engine, bundle_timeout=5).ingest_bundle(bundle)

        assert result.outcome == BundleOutcome.FAILED
        assert result.failure.cause == "Bundle Timeout"
        assert result.failure.stage == "topic"
        assert migration_names(engine) == []

    print("✅ Bundle timeout tests passed")

def test_pool_timeout_is_bundle_timeout():
    print("Testing connection pool timeout...")
    with temp_database() as (engine, _):
        bundle = make_bundle("backend/beginner/busy", "busy")
        runner = SeedRunner(engine)

        with mock.patch.object(runner, "_apply", side_effect=PoolTimeoutError("QueuePool limit reached")):
            result = runner.ingest_bundle(bundle)

        assert result.failure.cause == "Bundle Timeout"
        assert "waiting for a database connection" in result.failure.summary

    print("✅ Pool timeout tests passed")

def test_content_round_trip():
    """Lesson bodies, key points and options come back byte-for-byte."""
    print("Testing UTF-8 content round trip...")
    body = "# Café 日本語\n\n```js\nconst s = `template ${x}`;\n```\n\n— quotes \"double\" and 'single' — ✅\n"
    options = ["`map()`", "Ünïcödé", "a, b", "naïve"]
    with temp_database() as (engine, _):
        bundle = make_bundle(
            "frontend/beginner/unicode", "unicode",
            lessons=[lesson("text", 1, content=body, key_points=["一", "two — 2"])],
            quiz={"text": [question(1, options=options, correct_answer="naïve")]},
        )
        SeedRunner(engine).ingest([bundle])

        with make_session_factory(engine)() as session:
            stored = session.scalars(select(Lesson)).one()
            assert stored.content == body
            assert stored.key_points == ["一", "two — 2"]
            stored_question = session.scalars(select(QuizQuestion)).one()
            assert stored_question.options == options
            assert stored_question.correct_answer == "naïve"

    print("✅ Round trip tests passed")

def test_options_normalization():
    """JSON-encoded option strings decode to the same list as a plain array."""
    print("Testing option normalization...")
    encoded = QuizQuestionData(**question(1, options='["alpha", "beta", "gamma", "delta"]'))
    plain = QuizQuestionData(**question(1))

    assert encoded.options == plain.options
    assert encoded.answer_is_valid()
    assert not QuizQuestionData(**question(1, correct_answer="Beta")).answer_is_valid()

    print("✅ Option normalization tests passed")

def test_bundle_order():
    bundles = [make_bundle(bundle_id, "t") for bundle_id in ("frontend/x/a", "architecture/x/b", "backend/x/c")]
    assert [b.bundle_id for b in order_bundles(bundles)] == ["architecture/x/b", "backend/x/c", "frontend/x/a"]
    print("✅ Bundle order tests passed")

def main():
    """Run all tests."""
    print("🧪 Testing Seed Runner")
    print("=" * 50)

    try:
        test_fresh_ingest()
        test_shared_topic_reused()
        test_topic_conflict_and_rerun()
        test_quiz_integrity_rolls_back_whole_bundle()
        test_option_count_out_of_range()
        test_idempotent_rerun()
        test_dry_run_writes_nothing()
        test_dry_run_matches_real_run()
        test_children_order_round_trip()
        test_cascade_delete()
        test_lesson_collision()
        test_schema_violation()
        test_fail_fast_stops_run()
        test_bundle_timeout()
        test_pool_timeout_is_bundle_timeout()
        test_content_round_trip()
        test_options_normalization()
        test_bundle_order()

        print("=" * 50)
        print("🎉 All tests passed! The seed runner is working correctly.")

    except Exception as e:
        print(f"❌ Test failed: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)

if __name__ == "__main__":
    main()
