"""
Database initialization script.
"""
import logging
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from kneecare.db.base import Base
# Imported so every table is registered on Base.metadata
from kneecare.models import (  # noqa: F401
    audit_log, clinical, communication, consultation, forum,
    lifestyle, medication, progress, relationship, user, xray,
)
from kneecare.models.clinical import KLGrade

logger = logging.getLogger(__name__)


KL_GRADE_SEED = [
    {
        "grade": 0,
        "description": "No radiographic features of OA",
        "severity": "Normal",
        "recommendations": ["Maintain healthy lifestyle", "Regular exercise", "Balanced diet"],
    },
    {
        "grade": 1,
        "description": "Doubtful narrowing of joint space and possible osteophytic lipping",
        "severity": "Mild",
        "recommendations": ["Low-impact exercises", "Weight management", "Joint supplements", "Regular monitoring"],
    },
    {
        "grade": 2,
        "description": "Definite osteophytes and possible narrowing of joint space",
        "severity": "Moderate",
        "recommendations": ["Physical therapy", "Anti-inflammatory diet", "Strength training", "Pain management"],
    },
    {
        "grade": 3,
        "description": (
            "Moderate multiple osteophytes, definite narrowing of joint space, "
            "some sclerosis and possible deformity of bone ends"
        ),
        "severity": "Severe",
        "recommendations": ["Supervised exercise", "Pain management", "Medical consultation", "Activity modification"],
    },
    {
        "grade": 4,
        "description": (
            "Large osteophytes, marked narrowing of joint space, "
            "severe sclerosis and definite deformity of bone ends"
        ),
        "severity": "Very Severe",
        "recommendations": [
            "Surgical consultation", "Intensive therapy", "Mobility aids", "Comprehensive pain management",
        ],
    },
]


def create_db(engine: Engine) -> None:
    """Create all database tables."""
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")


def drop_db(engine: Engine) -> None:
    """Drop all database tables."""
    Base.metadata.drop_all(bind=engine)


def seed_kl_grades(db: Session) -> int:
    """Insert the reference KL grades that are missing. Returns how many were added."""
    existing = {grade for (grade,) in db.query(KLGrade.grade).all()}
    added = 0
    for data in KL_GRADE_SEED:
        if data["grade"] in existing:
            continue
        db.add(KLGrade(**data))
        added += 1
    if added:
        db.commit()
        logger.info(f"Seeded {added} KL grade reference rows")
    return added


def init_db(engine: Engine, session_factory: sessionmaker, seed: bool = True) -> None:
    """Initialize the database."""
    logger.info("Initializing database...")
    create_db(engine)
    if not seed:
        return

    db = session_factory()
    try:
        seed_kl_grades(db)
    except Exception as e:
        db.rollback()
        logger.error(f"Error seeding database: {e}")
        raise
    finally:
        db.close()
    logger.info("Database initialization completed")


if __name__ == "__main__":
    from kneecare.core.config import settings
    from kneecare.db.session import build_engine, build_session_factory

    engine = build_engine(settings.DATABASE_URL)
    init_db(engine, build_session_factory(engine))
