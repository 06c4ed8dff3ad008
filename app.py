"""
Curriculum Seeder - Status API
Read-only view of seeded topics and of which content bundles have been applied.
"""

import logging
from typing import List
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

import config
from core.content_loader import ContentLoader
from core.database import create_db_engine
from core.errors import ContentError
from services.report_service import ReportService

# Initialize FastAPI app
app = FastAPI(
    title="Curriculum Seeder API",
    description="Status of curriculum content bundles and seeded topics.",
    version="1.0.0"
)

# Status endpoints are read-only and public
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Configure logging
logging.basicConfig(level=logging.INFO, format=config.LOG_FORMAT)

_report_service = None

def get_report_service() -> ReportService:
    global _report_service
    if _report_service is None:
        _report_service = ReportService(create_db_engine())
    return _report_service

def get_content_loader() -> ContentLoader:
    return ContentLoader()

@app.get("/health")
async def health():
    return {"status": "ok"}

@app.get("/api/bundles")
def list_bundles(report: ReportService = Depends(get_report_service),
                 loader: ContentLoader = Depends(get_content_loader)) -> List[dict]:
    """Content bundles with their applied/pending state."""
    try:
        bundles = loader.load_all()
        applied = {row["name"]: row["applied_at"] for row in report.applied_bundles()}
    except ContentError as e:
        logging.error(f"Error loading content bundles: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except SQLAlchemyError as e:
        logging.error(f"Error reading migrations: {e}")
        raise HTTPException(status_code=503, detail="Database not available")

    return [
        {
            "bundle_id": bundle.bundle_id,
            "area": bundle.area,
            "difficulty": bundle.difficulty,
            "topic_slug": bundle.topic.slug,
            "lesson_count": len(bundle.lessons),
            "applied": bundle.bundle_id in applied,
            "applied_at": applied.get(bundle.bundle_id),
        }
        for bundle in bundles
    ]

@app.get("/api/topics")
def list_topics(report: ReportService = Depends(get_report_service)) -> List[dict]:
    """Seeded topics with lesson counts."""
    try:
        return report.topic_status()
    except SQLAlchemyError as e:
        logging.error(f"Error fetching topics: {e}")
        raise HTTPException(status_code=503, detail="Database not available")

@app.get("/api/topics/{slug}")
def get_topic(slug: str, report: ReportService = Depends(get_report_service)) -> dict:
    """One seeded topic with its lessons in order."""
    try:
        topic = report.topic_detail(slug)
    except SQLAlchemyError as e:
        logging.error(f"Error fetching topic {slug}: {e}")
        raise HTTPException(status_code=503, detail="Database not available")
    if topic is None:
        raise HTTPException(status_code=404, detail="Topic not found")
    return topic

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=5001)
