"""Learning service - Business logic for course content, quizzes and learner progress"""

import logging
import uuid
from datetime import datetime, timedelta

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import ADMIN_ROLES, User
from ...models_learning import Certificate, Lesson, Question, Quiz, QuizAttempt, Track, UserProgress
from ...shared.serialization import schema_to_columns
from ...shared.validators import slugify
from .grading import grade_attempt
from .repository import LearningRepository
from .schemas import (
    AttemptSubmit,
    LessonCreate,
    LessonUpdate,
    ProgressUpdate,
    QuestionCreate,
    QuestionUpdate,
    QuizCreate,
    QuizUpdate,
    ReorderLessonsRequest,
    TrackCreate,
    TrackUpdate,
)

logger = logging.getLogger(__name__)

CERTIFICATE_VALIDITY_DAYS = 730


def is_admin(user: User) -> bool:
    return user.role in ADMIN_ROLES


class LearningService:
    """Service layer for tracks, lessons, quizzes, attempts and progress"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = LearningRepository()

    # ------------------------------------------------------------------
    # Tracks
    # ------------------------------------------------------------------

    def get_tracks(self, user: User, include_unpublished: bool = False) -> list[Track]:
        published_only = not (include_unpublished and is_admin(user))
        return self.repo.get_tracks(self.db, published_only=published_only)

    def get_track(self, track_id: int) -> Track:
        track = self.repo.get_track(self.db, track_id)
        if not track:
            raise HTTPException(status_code=404, detail="Track not found")
        return track

    def get_track_by_slug(self, slug: str, user: User) -> Track:
        track = self.repo.get_track_by_slug(self.db, slug)
        # Drafts are invisible to learners
        if not track or (not track.is_published and not is_admin(user)):
            raise HTTPException(status_code=404, detail="Track not found")
        return track

    def _unique_slug(self, base: str, track_id: int = None) -> str:
        slug = base
        suffix = 2
        while True:
            existing = self.repo.get_track_by_slug(self.db, slug)
            if not existing or existing.id == track_id:
                return slug
            slug = f"{base}-{suffix}"
            suffix += 1

    def create_track(self, data: TrackCreate) -> Track:
        columns = schema_to_columns(data)
        if data.slug:
            if self.repo.get_track_by_slug(self.db, data.slug):
                raise HTTPException(status_code=409, detail="A track with this slug already exists")
        else:
            columns["slug"] = self._unique_slug(slugify(data.title))
        track = self.repo.save(self.db, Track(**columns))
        logger.info(f"📚 Track created: {track.title} ({track.slug})")
        return track

    def update_track(self, track_id: int, data: TrackUpdate) -> Track:
        track = self.get_track(track_id)
        if data.slug and data.slug != track.slug and self.repo.get_track_by_slug(self.db, data.slug):
            raise HTTPException(status_code=409, detail="A track with this slug already exists")
        return self.repo.update(self.db, track, **schema_to_columns(data, exclude_unset=True))

    def set_published(self, track_id: int, published: bool) -> Track:
        track = self.get_track(track_id)
        track.is_published = published
        self.db.commit()
        self.db.refresh(track)
        logger.info(f"📢 Track {track_id} {'published' if published else 'unpublished'}")
        return track

    def delete_track(self, track_id: int) -> dict:
        self.repo.delete(self.db, self.get_track(track_id))
        return {"message": "Track deleted"}

    # ------------------------------------------------------------------
    # Lessons
    # ------------------------------------------------------------------

    def get_lesson(self, lesson_id: int) -> Lesson:
        lesson = self.repo.get_lesson(self.db, lesson_id)
        if not lesson:
            raise HTTPException(status_code=404, detail="Lesson not found")
        return lesson

    def create_lesson(self, track_id: int, data: LessonCreate) -> Lesson:
        track = self.get_track(track_id)
        columns = schema_to_columns(data)
        position = columns.pop("order")
        lessons = list(track.lessons)
        lesson = Lesson(track_id=track.id, **columns)
        if position is None or position > len(lessons):
            lessons.append(lesson)
        else:
            lessons.insert(max(position - 1, 0), lesson)
        self.db.add(lesson)
        self._renumber(lessons)
        self.db.commit()
        self.db.refresh(lesson)
        return lesson

    def update_lesson(self, lesson_id: int, data: LessonUpdate) -> Lesson:
        lesson = self.get_lesson(lesson_id)
        return self.repo.update(self.db, lesson, **schema_to_columns(data, exclude_unset=True))

    def delete_lesson(self, lesson_id: int) -> dict:
        lesson = self.get_lesson(lesson_id)
        track = lesson.track
        self.db.delete(lesson)
        self.db.flush()
        self._renumber([item for item in track.lessons if item.id != lesson_id])
        self.db.commit()
        return {"message": "Lesson deleted"}

    def reorder_lessons(self, track_id: int, data: ReorderLessonsRequest) -> list[Lesson]:
        track = self.get_track(track_id)
        by_id = {lesson.id: lesson for lesson in track.lessons}
        if sorted(data.lessonIds) != sorted(by_id):
            raise HTTPException(
                status_code=400, detail="Lesson ids must list every lesson of the track exactly once"
            )
        ordered = [by_id[lesson_id] for lesson_id in data.lessonIds]
        self._renumber(ordered)
        self.db.commit()
        self.db.expire(track, ["lessons"])
        return ordered

    @staticmethod
    def _renumber(lessons: list[Lesson]) -> None:
        """Lesson order is kept dense and 1-based"""
        for position, lesson in enumerate(lessons, start=1):
            lesson.order = position

    # ------------------------------------------------------------------
    # Quizzes
    # ------------------------------------------------------------------

    def get_quiz(self, quiz_id: int) -> Quiz:
        quiz = self.repo.get_quiz(self.db, quiz_id)
        if not quiz:
            raise HTTPException(status_code=404, detail="Quiz not found")
        return quiz

    def create_quiz(self, lesson_id: int, data: QuizCreate) -> Quiz:
        self.get_lesson(lesson_id)
        columns = schema_to_columns(data)
        columns.pop("questions")
        questions = [schema_to_columns(question) for question in data.questions]
        quiz = Quiz(lesson_id=lesson_id, **columns)
        for position, question in enumerate(questions, start=1):
            if question.get("order") is None:
                question["order"] = position
            quiz.questions.append(Question(**question))
        quiz = self.repo.save(self.db, quiz)
        logger.info(f"📝 Quiz created: {quiz.title} with {len(quiz.questions)} question(s)")
        return quiz

    def update_quiz(self, quiz_id: int, data: QuizUpdate) -> Quiz:
        quiz = self.get_quiz(quiz_id)
        return self.repo.update(self.db, quiz, **schema_to_columns(data, exclude_unset=True))

    def delete_quiz(self, quiz_id: int) -> dict:
        self.repo.delete(self.db, self.get_quiz(quiz_id))
        return {"message": "Quiz deleted"}

    def add_question(self, quiz_id: int, data: QuestionCreate) -> Question:
        quiz = self.get_quiz(quiz_id)
        columns = schema_to_columns(data)
        if columns["order"] is None:
            columns["order"] = len(quiz.questions) + 1
        return self.repo.save(self.db, Question(quiz_id=quiz.id, **columns))

    def update_question(self, question_id: int, data: QuestionUpdate) -> Question:
        question = self.repo.get_question(self.db, question_id)
        if not question:
            raise HTTPException(status_code=404, detail="Question not found")
        return self.repo.update(self.db, question, **schema_to_columns(data, exclude_unset=True))

    def delete_question(self, question_id: int) -> dict:
        question = self.repo.get_question(self.db, question_id)
        if not question:
            raise HTTPException(status_code=404, detail="Question not found")
        self.repo.delete(self.db, question)
        return {"message": "Question deleted"}

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    def submit_attempt(self, quiz_id: int, data: AttemptSubmit, user: User) -> tuple[QuizAttempt, int]:
        """Grade and store an attempt. Returns the attempt and its 1-based attempt number."""
        quiz = self.get_quiz(quiz_id)
        completed = self.repo.count_completed_attempts(self.db, user.id, quiz.id)
        if completed >= quiz.max_attempts:
            logger.warning(f"⚠️ User {user.id} exhausted attempts for quiz {quiz.id}")
            raise HTTPException(
                status_code=409,
                detail=f"Maximum attempts ({quiz.max_attempts}) reached for this quiz",
            )

        result = grade_attempt(quiz.questions, data.answers, quiz.passing_score)
        now = datetime.utcnow()
        attempt = QuizAttempt(
            user_id=user.id,
            quiz_id=quiz.id,
            score=result.score,
            max_score=result.max_score,
            percentage=result.percentage,
            passed=result.passed,
            time_spent=data.timeSpent,
            answers=data.answers,
            feedback=result.feedback if quiz.show_feedback else None,
            started_at=data.startedAt or now - timedelta(seconds=data.timeSpent),
            completed_at=now,
        )
        self.db.add(attempt)

        if result.passed:
            self._mark_lesson_complete(user.id, quiz.lesson_id, now)

        self.db.commit()
        self.db.refresh(attempt)
        logger.info(
            f"{'✅' if result.passed else '❌'} Quiz {quiz.id} attempt by user {user.id}: "
            f"{result.percentage}% ({result.score}/{result.max_score})"
        )
        return attempt, completed + 1

    def get_attempts(self, quiz_id: int, user: User) -> list[QuizAttempt]:
        self.get_quiz(quiz_id)
        return self.repo.get_attempts(self.db, user.id, quiz_id)

    def get_quiz_analytics(self) -> list[dict]:
        return [
            {
                "quizId": quiz_id,
                "title": title,
                "attempts": attempts,
                "passRate": round(100 * (passed or 0) / attempts, 1) if attempts else 0.0,
                "averagePercentage": round(float(average), 1) if average is not None else 0.0,
            }
            for quiz_id, title, attempts, passed, average in self.repo.get_quiz_analytics(self.db)
        ]

    # ------------------------------------------------------------------
    # Progress and certificates
    # ------------------------------------------------------------------

    def _mark_lesson_complete(self, user_id: int, lesson_id: int, now: datetime) -> UserProgress:
        progress = self.repo.get_progress(self.db, user_id, lesson_id)
        if not progress:
            progress = UserProgress(user_id=user_id, lesson_id=lesson_id, time_spent=0)
            self.db.add(progress)
        progress.completion_rate = 100
        progress.last_accessed_at = now
        progress.completed_at = progress.completed_at or now
        return progress

    def update_lesson_progress(self, lesson_id: int, data: ProgressUpdate, user: User) -> UserProgress:
        self.get_lesson(lesson_id)
        now = datetime.utcnow()
        progress = self.repo.get_progress(self.db, user.id, lesson_id)
        if not progress:
            progress = UserProgress(user_id=user.id, lesson_id=lesson_id, time_spent=0, completion_rate=0)
            self.db.add(progress)

        progress.time_spent = (progress.time_spent or 0) + data.timeSpent
        # Completion never goes backwards
        progress.completion_rate = max(progress.completion_rate or 0, data.completionRate)
        progress.last_accessed_at = now
        if progress.completion_rate == 100 and not progress.completed_at:
            progress.completed_at = now
        self.db.commit()
        self.db.refresh(progress)
        return progress

    def get_track_progress(self, track_id: int, user: User) -> dict:
        """Completion of required lessons; issues the track certificate at 100%"""
        track = self.get_track(track_id)
        lessons = list(track.lessons)
        progress_rows = {
            p.lesson_id: p
            for p in self.repo.get_progress_for_lessons(self.db, user.id, [lesson.id for lesson in lessons])
        }
        required = [lesson for lesson in lessons if lesson.is_required]
        completed = [
            lesson for lesson in required
            if progress_rows.get(lesson.id) and progress_rows[lesson.id].completion_rate >= 100
        ]
        percent = round(100 * len(completed) / len(required)) if required else 0

        certificate = self.repo.get_certificate(self.db, user.id, track.id)
        if percent == 100 and not certificate:
            certificate = self._issue_certificate(track, user)

        return {
            "track_id": track.id,
            "required_lessons": len(required),
            "completed_lessons": len(completed),
            "progress": percent,
            "lessons": [progress_rows[lesson.id] for lesson in lessons if lesson.id in progress_rows],
            "certificate": certificate,
        }

    def _issue_certificate(self, track: Track, user: User) -> Certificate:
        best_scores = [
            score
            for score in (
                self.repo.get_best_percentage(self.db, user.id, quiz.id)
                for quiz in self.repo.get_quizzes_for_track(self.db, track.id)
            )
            if score is not None
        ]
        now = datetime.utcnow()
        certificate = Certificate(
            user_id=user.id,
            track_id=track.id,
            certificate_number=f"DWT-{now:%Y%m}-{uuid.uuid4().hex[:8].upper()}",
            progress=100,
            final_score=round(sum(best_scores) / len(best_scores)) if best_scores else None,
            issued_at=now,
            expires_at=now + timedelta(days=CERTIFICATE_VALIDITY_DAYS),
        )
        certificate = self.repo.save(self.db, certificate)
        logger.info(f"🎓 Certificate {certificate.certificate_number} issued to user {user.id} for track {track.id}")
        return certificate

    def get_certificates(self, user: User) -> list[Certificate]:
        return self.repo.get_certificates(self.db, user.id)
