"""Learning repository - Database operations for tracks, lessons, quizzes and progress"""

from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session, selectinload

from ...models_learning import (
    Certificate,
    Lesson,
    Question,
    Quiz,
    QuizAttempt,
    Track,
    UserProgress,
)


class LearningRepository:
    """Repository for learning content database operations"""

    @staticmethod
    def save(db: Session, row):
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def update(db: Session, row, **updates):
        for key, value in updates.items():
            if value is not None and hasattr(row, key):
                setattr(row, key, value)
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def delete(db: Session, row) -> None:
        db.delete(row)
        db.commit()

    # Tracks
    @staticmethod
    def get_tracks(db: Session, published_only: bool = True) -> list[Track]:
        query = db.query(Track).options(selectinload(Track.lessons))
        if published_only:
            query = query.filter(Track.is_published.is_(True))
        return query.order_by(Track.title).all()

    @staticmethod
    def get_track(db: Session, track_id: int) -> Optional[Track]:
        return db.query(Track).filter(Track.id == track_id).first()

    @staticmethod
    def get_track_by_slug(db: Session, slug: str) -> Optional[Track]:
        return db.query(Track).filter(Track.slug == slug).first()

    # Lessons
    @staticmethod
    def get_lesson(db: Session, lesson_id: int) -> Optional[Lesson]:
        return db.query(Lesson).filter(Lesson.id == lesson_id).first()

    @staticmethod
    def get_max_lesson_order(db: Session, track_id: int) -> int:
        return db.query(func.max(Lesson.order)).filter(Lesson.track_id == track_id).scalar() or 0

    # Quizzes
    @staticmethod
    def get_quiz(db: Session, quiz_id: int) -> Optional[Quiz]:
        return db.query(Quiz).filter(Quiz.id == quiz_id).first()

    @staticmethod
    def get_question(db: Session, question_id: int) -> Optional[Question]:
        return db.query(Question).filter(Question.id == question_id).first()

    @staticmethod
    def get_quizzes_for_track(db: Session, track_id: int) -> list[Quiz]:
        return db.query(Quiz).join(Lesson).filter(Lesson.track_id == track_id).all()

    # Attempts
    @staticmethod
    def count_completed_attempts(db: Session, user_id: int, quiz_id: int) -> int:
        return (
            db.query(func.count(QuizAttempt.id))
            .filter(
                QuizAttempt.user_id == user_id,
                QuizAttempt.quiz_id == quiz_id,
                QuizAttempt.completed_at.isnot(None),
            )
            .scalar()
        )

    @staticmethod
    def get_attempts(db: Session, user_id: int, quiz_id: int) -> list[QuizAttempt]:
        return (
            db.query(QuizAttempt)
            .filter(QuizAttempt.user_id == user_id, QuizAttempt.quiz_id == quiz_id)
            .order_by(QuizAttempt.id)
            .all()
        )

    @staticmethod
    def get_best_percentage(db: Session, user_id: int, quiz_id: int) -> Optional[int]:
        return (
            db.query(func.max(QuizAttempt.percentage))
            .filter(QuizAttempt.user_id == user_id, QuizAttempt.quiz_id == quiz_id)
            .scalar()
        )

    @staticmethod
    def get_quiz_analytics(db: Session) -> list[tuple]:
        return (
            db.query(
                Quiz.id,
                Quiz.title,
                func.count(QuizAttempt.id),
                func.sum(case((QuizAttempt.passed.is_(True), 1), else_=0)),
                func.avg(QuizAttempt.percentage),
            )
            .outerjoin(QuizAttempt, QuizAttempt.quiz_id == Quiz.id)
            .group_by(Quiz.id, Quiz.title)
            .order_by(Quiz.id)
            .all()
        )

    # Progress
    @staticmethod
    def get_progress(db: Session, user_id: int, lesson_id: int) -> Optional[UserProgress]:
        return (
            db.query(UserProgress)
            .filter(UserProgress.user_id == user_id, UserProgress.lesson_id == lesson_id)
            .first()
        )

    @staticmethod
    def get_progress_for_lessons(db: Session, user_id: int, lesson_ids: list[int]) -> list[UserProgress]:
        if not lesson_ids:
            return []
        return (
            db.query(UserProgress)
            .filter(UserProgress.user_id == user_id, UserProgress.lesson_id.in_(lesson_ids))
            .all()
        )

    # Certificates
    @staticmethod
    def get_certificate(db: Session, user_id: int, track_id: int) -> Optional[Certificate]:
        return (
            db.query(Certificate)
            .filter(Certificate.user_id == user_id, Certificate.track_id == track_id)
            .first()
        )

    @staticmethod
    def get_certificates(db: Session, user_id: int) -> list[Certificate]:
        return (
            db.query(Certificate)
            .filter(Certificate.user_id == user_id)
            .order_by(Certificate.issued_at.desc())
            .all()
        )
