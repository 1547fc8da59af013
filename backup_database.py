"""
Database backup script
Usage:
    python backup_database.py export
    python backup_database.py restore <backup_file.json>

export writes tracks (with ordered lessons, quizzes and questions) plus the
salvage and sponsor tables to a timestamped JSON file in BACKUP_DIR.
restore re-imports the tracks of an export; tracks whose slug already
exists are left untouched.
"""
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from diverwell import models, models_affiliate, models_calendar, models_crm  # noqa: F401
from diverwell.config import BACKUP_DIR
from diverwell.database import Base, SessionLocal, engine
from diverwell.models_learning import Lesson, Question, Quiz, Track
from diverwell.models_salvage import CrewMember, Project, SalvageOperation, SalvageWreck, Vessel
from diverwell.models_sponsor import Sponsor, SponsorPlacement

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)

TABLE_MODELS = {
    "salvageWrecks": SalvageWreck,
    "vessels": Vessel,
    "crewMembers": CrewMember,
    "projects": Project,
    "salvageOperations": SalvageOperation,
    "sponsors": Sponsor,
    "sponsorPlacements": SponsorPlacement,
}

TRACK_FIELDS = ("title", "slug", "summary", "difficulty", "estimated_hours", "is_published")
LESSON_FIELDS = (
    "title", "order", "content", "objectives", "estimated_minutes", "is_required",
    "videos", "documents", "embeds", "links", "images", "audio",
)
QUIZ_FIELDS = ("title", "description", "time_limit", "passing_score", "max_attempts", "show_feedback")
QUESTION_FIELDS = ("type", "prompt", "options", "correct_answer", "explanation", "points", "order")


def _pick(row, fields: tuple) -> dict:
    return {field: getattr(row, field) for field in fields}


def row_columns(row) -> dict:
    return {attr.key: getattr(row, attr.key) for attr in row.__mapper__.column_attrs}


def export_track(track: Track) -> dict:
    return {
        **_pick(track, TRACK_FIELDS),
        "lessons": [
            {
                **_pick(lesson, LESSON_FIELDS),
                "quizzes": [
                    {
                        **_pick(quiz, QUIZ_FIELDS),
                        "questions": [_pick(q, QUESTION_FIELDS) for q in quiz.questions],
                    }
                    for quiz in lesson.quizzes
                ],
            }
            for lesson in track.lessons
        ],
    }


def export_database(db) -> dict:
    backup = {
        "exportedAt": datetime.utcnow().isoformat(),
        "tracks": [export_track(track) for track in db.query(Track).order_by(Track.id).all()],
    }
    for name, model in TABLE_MODELS.items():
        backup[name] = [row_columns(row) for row in db.query(model).order_by(model.id).all()]
    return backup


def restore_tracks(db, backup: dict) -> dict:
    created = 0
    skipped = 0
    for track_data in backup.get("tracks", []):
        if db.query(Track).filter(Track.slug == track_data["slug"]).first():
            logger.info(f"⏭️ Track '{track_data['slug']}' already exists, skipping")
            skipped += 1
            continue

        track = Track(**{field: track_data.get(field) for field in TRACK_FIELDS if field in track_data})
        for position, lesson_data in enumerate(track_data.get("lessons", []), start=1):
            lesson_values = {field: lesson_data.get(field) for field in LESSON_FIELDS if field in lesson_data}
            lesson_values.setdefault("order", position)
            lesson = Lesson(**lesson_values)
            for quiz_data in lesson_data.get("quizzes", []):
                quiz = Quiz(**{field: quiz_data.get(field) for field in QUIZ_FIELDS if field in quiz_data})
                quiz.questions = [
                    Question(**{field: q.get(field) for field in QUESTION_FIELDS if field in q})
                    for q in quiz_data.get("questions", [])
                ]
                lesson.quizzes.append(quiz)
            track.lessons.append(lesson)

        db.add(track)
        db.commit()
        created += 1
        logger.info(f"✅ Restored track '{track.slug}' with {len(track.lessons)} lessons")
    return {"created": created, "skipped": skipped}


def run_export() -> Path:
    backup_dir = Path(BACKUP_DIR)
    backup_dir.mkdir(parents=True, exist_ok=True)
    output = backup_dir / f"diverwell-backup-{datetime.utcnow():%Y%m%d-%H%M%S}.json"

    db = SessionLocal()
    try:
        backup = export_database(db)
    finally:
        db.close()

    with open(output, "w") as f:
        json.dump(backup, f, indent=2, default=str)
    logger.info(f"✅ Backup written to {output} ({len(backup['tracks'])} tracks)")
    return output


def run_restore(backup_file: str) -> dict:
    path = Path(backup_file)
    if not path.exists():
        logger.error(f"Backup file not found: {path}")
        sys.exit(1)

    with open(path) as f:
        backup = json.load(f)

    Base.metadata.create_all(bind=engine, checkfirst=True)
    db = SessionLocal()
    try:
        result = restore_tracks(db, backup)
    finally:
        db.close()
    logger.info(f"✅ Restore complete: {result['created']} created, {result['skipped']} skipped")
    return result


if __name__ == "__main__":
    if len(sys.argv) < 2 or sys.argv[1] not in ("export", "restore"):
        logger.error("Usage: python backup_database.py export | restore <backup_file.json>")
        sys.exit(1)

    try:
        if sys.argv[1] == "export":
            run_export()
        elif len(sys.argv) < 3:
            logger.error("Usage: python backup_database.py restore <backup_file.json>")
            sys.exit(1)
        else:
            run_restore(sys.argv[2])
    except Exception as e:
        logger.error(f"❌ Backup failed: {e}")
        sys.exit(1)
