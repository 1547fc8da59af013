import json

import pytest

import backup_database
from diverwell.models_learning import Lesson, Question, Quiz, Track
from diverwell.models_salvage import SalvageWreck


@pytest.fixture
def track(db):
    quiz = Quiz(title="Gas laws check", passing_score=80)
    quiz.questions = [
        Question(type="true_false", prompt="Boyle's law relates pressure and volume", correct_answer="true", order=1),
        Question(prompt="Which gas narcoses first?", options=["A", "B"], correct_answer="B", points=2, order=2),
    ]
    intro = Lesson(title="Dive physics", order=1, content="Pressure and volume", objectives=["Apply Boyle's law"])
    intro.quizzes.append(quiz)
    track = Track(title="Commercial Air Diving", slug="commercial-air-diving", difficulty="intermediate")
    track.lessons = [intro, Lesson(title="Surface supply", order=2, videos=[{"url": "https://video.example/1"}])]
    db.add(track)
    db.add(SalvageWreck(name="SS Meridian", location={"lat": 29.1, "lng": -89.4}, hull_type="steel"))
    db.commit()
    return track


def test_export_then_restore_recreates_tracks(db, track, tmp_path, monkeypatch):
    monkeypatch.setattr(backup_database, "BACKUP_DIR", str(tmp_path / "backups"))

    output = backup_database.run_export()

    backup = json.loads(output.read_text())
    assert output.parent == tmp_path / "backups"
    assert [t["slug"] for t in backup["tracks"]] == ["commercial-air-diving"]
    assert [w["name"] for w in backup["salvageWrecks"]] == ["SS Meridian"]
    assert backup["sponsors"] == []

    db.delete(track)
    db.commit()
    assert db.query(Track).count() == 0

    result = backup_database.run_restore(str(output))

    assert result == {"created": 1, "skipped": 0}
    db.expire_all()
    restored = db.query(Track).one()
    assert restored.difficulty == "intermediate"
    assert [lesson.title for lesson in restored.lessons] == ["Dive physics", "Surface supply"]
    assert restored.lessons[0].objectives == ["Apply Boyle's law"]
    assert restored.lessons[1].videos == [{"url": "https://video.example/1"}]
    quiz = restored.lessons[0].quizzes[0]
    assert quiz.passing_score == 80
    assert [(q.type, q.points) for q in quiz.questions] == [("true_false", 1), ("multiple_choice", 2)]


def test_restore_skips_existing_slug(db, track):
    backup = {
        "tracks": [
            {"title": "Renamed", "slug": "commercial-air-diving", "lessons": [{"title": "Extra"}]},
            {"title": "Saturation Diving", "slug": "saturation-diving", "lessons": [{"title": "Bell runs"}]},
        ]
    }

    result = backup_database.restore_tracks(db, backup)

    assert result == {"created": 1, "skipped": 1}
    existing = db.query(Track).filter(Track.slug == "commercial-air-diving").one()
    assert existing.title == "Commercial Air Diving"
    assert len(existing.lessons) == 2
    new_track = db.query(Track).filter(Track.slug == "saturation-diving").one()
    assert [(lesson.title, lesson.order) for lesson in new_track.lessons] == [("Bell runs", 1)]


def test_restore_missing_file_exits(tmp_path):
    with pytest.raises(SystemExit):
        backup_database.run_restore(str(tmp_path / "nope.json"))
