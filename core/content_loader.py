"""
Content Loader - Discovers and parses curriculum bundles stored as JSON on disk
"""

import os
import json
import logging
from typing import List, Optional
from pydantic import ValidationError

import config
from core.errors import ContentError
from models.schemas import ContentBundle
from models.tables import LESSON_DIFFICULTIES

CONTENT_FILE = "content.json"
EXAMPLES_FILE = "examples.json"
QUIZ_FILE = "quiz.json"

class ContentLoader:
    """Loads every bundle under a content root.

    A bundle is a directory holding ``content.json`` and optionally
    ``examples.json`` and ``quiz.json``. Its id is the directory path
    relative to the root, e.g. ``architecture/beginner/basic-architecture``.
    """

    def __init__(self, content_root: Optional[str] = None):
        self.content_root = os.path.abspath(content_root or config.CONTENT_DIR)

    def discover(self) -> List[str]:
        """Return the ids of all bundles under the content root, sorted."""
        if not os.path.isdir(self.content_root):
            raise ContentError(self.content_root, "content directory not found")

        bundle_ids = []
        for dirpath, dirnames, filenames in os.walk(self.content_root):
            dirnames.sort()
            if CONTENT_FILE in filenames:
                rel = os.path.relpath(dirpath, self.content_root)
                bundle_ids.append(rel.replace(os.sep, "/"))

        logging.debug(f"Discovered {len(bundle_ids)} bundles in {self.content_root}")
        return sorted(bundle_ids)

    def load_all(self, area: Optional[str] = None) -> List[ContentBundle]:
        """Load every bundle, optionally restricted to one curriculum area."""
        bundles = []
        for bundle_id in self.discover():
            if area and bundle_id.split("/", 1)[0] != area:
                continue
            bundles.append(self.load(bundle_id))
        logging.info(f"Loaded {len(bundles)} content bundles from {self.content_root}")
        return bundles

    def load(self, bundle_id: str) -> ContentBundle:
        """Load and validate a single bundle by id."""
        bundle_dir = os.path.join(self.content_root, *bundle_id.split("/"))
        content_path = os.path.join(bundle_dir, CONTENT_FILE)
        if not os.path.isfile(content_path):
            raise ContentError(bundle_id, f"missing {CONTENT_FILE}")

        content = self._read_json(bundle_id, content_path)
        examples = self._read_optional(bundle_id, os.path.join(bundle_dir, EXAMPLES_FILE))
        quiz = self._read_optional(bundle_id, os.path.join(bundle_dir, QUIZ_FILE))

        if not isinstance(content, dict):
            raise ContentError(bundle_id, f"{CONTENT_FILE} must hold an object with 'topic' and 'lessons'")

        parts = bundle_id.split("/")
        area = parts[0] if len(parts) > 2 else None
        difficulty = parts[1] if len(parts) > 2 else None
        lessons = content.get("lessons", [])
        if isinstance(lessons, list):
            lessons = [self._with_default_level(lesson, difficulty) for lesson in lessons]

        try:
            bundle = ContentBundle(
                bundle_id=bundle_id,
                area=area,
                difficulty=difficulty,
                topic=content.get("topic"),
                lessons=lessons,
                examples=examples,
                quiz=quiz,
            )
        except ValidationError as e:
            raise ContentError(bundle_id, f"invalid content: {e}") from e

        self._drop_unknown_lesson_keys(bundle)
        logging.debug(
            f"Loaded bundle {bundle_id}: topic={bundle.topic.slug}, lessons={len(bundle.lessons)}"
        )
        return bundle

    def _read_json(self, bundle_id: str, path: str):
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ContentError(bundle_id, f"{os.path.basename(path)} is not valid JSON: {e}") from e
        except OSError as e:
            raise ContentError(bundle_id, f"cannot read {os.path.basename(path)}: {e}") from e

    def _read_optional(self, bundle_id: str, path: str) -> dict:
        if not os.path.exists(path):
            return {}
        data = self._read_json(bundle_id, path)
        if not isinstance(data, dict):
            raise ContentError(bundle_id, f"{os.path.basename(path)} must map lesson slugs to lists")
        return data

    def _with_default_level(self, lesson, tier: Optional[str]):
        """Lessons without a difficulty_level take the bundle's curriculum tier."""
        if isinstance(lesson, dict) and "difficulty_level" not in lesson and tier in LESSON_DIFFICULTIES:
            return {**lesson, "difficulty_level": tier}
        return lesson

    def _drop_unknown_lesson_keys(self, bundle: ContentBundle):
        # Children of a lesson the bundle does not define have no parent to attach to
        lesson_slugs = {lesson.slug for lesson in bundle.lessons}
        for name, mapping in ((EXAMPLES_FILE, bundle.examples), (QUIZ_FILE, bundle.quiz)):
            for slug in sorted(set(mapping) - lesson_slugs):
                logging.warning(
                    f"{bundle.bundle_id}: ignoring {len(mapping[slug])} entries in {name} "
                    f"for unknown lesson '{slug}'"
                )
                del mapping[slug]
