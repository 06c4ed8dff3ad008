"""
Report Service - Read-only view of what the seeder has put in the database
"""

from typing import Iterable, List, Optional
from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from core.database import make_session_factory
from models.schemas import ContentBundle
from models.tables import CodeExample, Lesson, Migration, QuizQuestion, Topic

class ReportService:
    """Summaries of topics, lessons and applied bundles."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = make_session_factory(engine)

    def topic_status(self) -> List[dict]:
        """Every topic with its lesson count, ordered by order_index then slug."""
        with self.session_factory() as session:
            rows = session.execute(
                select(Topic.slug, Topic.name, Topic.order_index, func.count(Lesson.id))
                .outerjoin(Lesson, Lesson.topic_id == Topic.id)
                .group_by(Topic.id, Topic.slug, Topic.name, Topic.order_index)
                .order_by(Topic.order_index, Topic.slug)
            ).all()
        return [
            {"slug": slug, "name": name, "order_index": order_index, "lesson_count": count}
            for slug, name, order_index, count in rows
        ]

    def topic_detail(self, slug: str) -> Optional[dict]:
        """A topic with its lessons in presentation order, or None."""
        with self.session_factory() as session:
            topic = session.execute(select(Topic).where(Topic.slug == slug)).scalar_one_or_none()
            if topic is None:
                return None
            lessons = session.execute(
                select(Lesson).where(Lesson.topic_id == topic.id).order_by(Lesson.order_index, Lesson.id)
            ).scalars().all()
            return {
                "slug": topic.slug,
                "name": topic.name,
                "description": topic.description,
                "estimated_time": topic.estimated_time,
                "order_index": topic.order_index,
                "lessons": [
                    {
                        "slug": lesson.slug,
                        "title": lesson.title,
                        "difficulty_level": lesson.difficulty_level,
                        "estimated_time": lesson.estimated_time,
                        "order_index": lesson.order_index,
                    }
                    for lesson in lessons
                ],
            }

    def applied_bundles(self) -> List[dict]:
        with self.session_factory() as session:
            rows = session.execute(
                select(Migration.name, Migration.applied_at).order_by(Migration.applied_at, Migration.id)
            ).all()
        return [{"name": name, "applied_at": applied_at} for name, applied_at in rows]

    def pending_bundles(self, bundles: Iterable[ContentBundle]) -> List[str]:
        """Ids of dataset bundles that have no migration record yet."""
        applied = {row["name"] for row in self.applied_bundles()}
        return sorted(b.bundle_id for b in bundles if b.bundle_id not in applied)

    def totals(self) -> dict:
        with self.session_factory() as session:
            return {
                "topics": session.scalar(select(func.count(Topic.id))),
                "lessons": session.scalar(select(func.count(Lesson.id))),
                "code_examples": session.scalar(select(func.count(CodeExample.id))),
                "quiz_questions": session.scalar(select(func.count(QuizQuestion.id))),
                "migrations": session.scalar(select(func.count(Migration.id))),
            }
