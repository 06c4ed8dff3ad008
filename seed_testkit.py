"""
Helpers shared by the test scripts: throwaway SQLite databases and bundle builders.
"""

import os
import json
import shutil
import tempfile
from contextlib import contextmanager

from core.database import create_db_engine, init_schema
from models.schemas import ContentBundle

@contextmanager
def temp_database(with_schema=True):
    """Yield (engine, url) for a fresh SQLite file that is removed afterwards."""
    workdir = tempfile.mkdtemp(prefix="seed-test-")
    url = f"sqlite:///{os.path.join(workdir, 'seed.db')}"
    engine = create_db_engine(url)
    if with_schema:
        init_schema(engine)
    try:
        yield engine, url
    finally:
        engine.dispose()
        shutil.rmtree(workdir, ignore_errors=True)

@contextmanager
def temp_content_dir():
    workdir = tempfile.mkdtemp(prefix="seed-content-")
    try:
        yield workdir
    finally:
        shutil.rmtree(workdir, ignore_errors=True)

def lesson(slug, order_index=1, **overrides):
    data = {
        "slug": slug,
        "title": slug.replace("-", " ").title(),
        "summary": f"Summary of {slug}",
        "difficulty_level": "beginner",
        "estimated_time": 30,
        "order_index": order_index,
        "key_points": ["first point", "second point"],
        "content": f"# {slug}\n\nLesson body.",
    }
    data.update(overrides)
    return data

def question(order_index=1, **overrides):
    data = {
        "question_text": f"Question {order_index}?",
        "options": ["alpha", "beta", "gamma", "delta"],
        "correct_answer": "beta",
        "explanation": "Because beta.",
        "difficulty": "easy",
        "points": 10,
        "order_index": order_index,
    }
    data.update(overrides)
    return data

def example(order_index=1, **overrides):
    data = {
        "title": f"Example {order_index}",
        "description": "Shows the idea",
        "language": "python",
        "code": "print('hello')",
        "explanation": "Prints hello.",
        "order_index": order_index,
    }
    data.update(overrides)
    return data

def topic(slug, **overrides):
    data = {
        "slug": slug,
        "name": slug.replace("-", " ").title(),
        "description": f"All about {slug}",
        "estimated_time": 120,
        "order_index": 1,
    }
    data.update(overrides)
    return data

def bundle_payload(topic_slug, lessons=None, examples=None, quiz=None, **topic_overrides):
    """content.json, examples.json and quiz.json bodies for one bundle."""
    lessons = lessons if lessons is not None else [lesson("intro")]
    if examples is None:
        examples = {l["slug"]: [example()] for l in lessons}
    if quiz is None:
        quiz = {l["slug"]: [question()] for l in lessons}
    content = {"topic": topic(topic_slug, **topic_overrides), "lessons": lessons}
    return content, examples, quiz

def make_bundle(bundle_id, topic_slug, lessons=None, examples=None, quiz=None, **topic_overrides) -> ContentBundle:
    content, examples, quiz = bundle_payload(topic_slug, lessons, examples, quiz, **topic_overrides)
    parts = bundle_id.split("/")
    return ContentBundle(
        bundle_id=bundle_id,
        area=parts[0] if len(parts) > 2 else None,
        difficulty=parts[1] if len(parts) > 2 else None,
        topic=content["topic"],
        lessons=content["lessons"],
        examples=examples,
        quiz=quiz,
    )

def write_bundle(root, bundle_id, content, examples=None, quiz=None):
    """Write a bundle directory under root the way the dataset lays it out."""
    bundle_dir = os.path.join(root, *bundle_id.split("/"))
    os.makedirs(bundle_dir, exist_ok=True)
    files = {"content.json": content, "examples.json": examples, "quiz.json": quiz}
    for name, body in files.items():
        if body is None:
            continue
        with open(os.path.join(bundle_dir, name), 'w', encoding='utf-8') as f:
            if isinstance(body, str):
                f.write(body)
            else:
                json.dump(body, f, ensure_ascii=False, indent=2)
    return bundle_dir
