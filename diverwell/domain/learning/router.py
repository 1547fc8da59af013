"""Learning router - FastAPI endpoints for tracks, lessons, quizzes and progress"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_admin, get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    AttemptResponse,
    AttemptSubmit,
    CertificateResponse,
    LessonCreate,
    LessonProgressResponse,
    LessonResponse,
    LessonUpdate,
    ProgressUpdate,
    QuestionCreate,
    QuestionResponse,
    QuestionUpdate,
    QuizCreate,
    QuizResponse,
    QuizUpdate,
    ReorderLessonsRequest,
    TrackCreate,
    TrackProgressResponse,
    TrackResponse,
    TrackUpdate,
)
from .service import LearningService, is_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Learning"])


def get_learning_service(db: Session = Depends(get_db)) -> LearningService:
    """Dependency injection for LearningService"""
    return LearningService(db)


def _lesson_response(lesson) -> LessonResponse:
    return LessonResponse(
        id=lesson.id,
        trackId=lesson.track_id,
        title=lesson.title,
        order=lesson.order,
        content=lesson.content or "",
        objectives=lesson.objectives or [],
        estimatedMinutes=lesson.estimated_minutes,
        isRequired=lesson.is_required,
        videos=lesson.videos or [],
        documents=lesson.documents or [],
        embeds=lesson.embeds or [],
        links=lesson.links or [],
        images=lesson.images or [],
        audio=lesson.audio or [],
    )


def _track_response(track, include_lessons: bool = False) -> TrackResponse:
    return TrackResponse(
        id=track.id,
        title=track.title,
        slug=track.slug,
        summary=track.summary,
        difficulty=track.difficulty,
        estimatedHours=track.estimated_hours,
        isPublished=track.is_published,
        lessonCount=len(track.lessons),
        lessons=[_lesson_response(lesson) for lesson in track.lessons] if include_lessons else None,
    )


def _quiz_response(quiz, include_answers: bool) -> QuizResponse:
    return QuizResponse(
        id=quiz.id,
        lessonId=quiz.lesson_id,
        title=quiz.title,
        description=quiz.description,
        timeLimit=quiz.time_limit,
        passingScore=quiz.passing_score,
        maxAttempts=quiz.max_attempts,
        showFeedback=quiz.show_feedback,
        questions=[_question_response(q, include_answers) for q in quiz.questions],
    )


def _question_response(question, include_answers: bool) -> QuestionResponse:
    return QuestionResponse(
        id=question.id,
        type=question.type,
        prompt=question.prompt,
        options=question.options or [],
        points=question.points,
        order=question.order,
        correctAnswer=question.correct_answer if include_answers else None,
        explanation=question.explanation if include_answers else None,
    )


def _attempt_response(attempt, attempt_number: int, max_attempts: int) -> AttemptResponse:
    return AttemptResponse(
        id=attempt.id,
        quizId=attempt.quiz_id,
        score=attempt.score,
        maxScore=attempt.max_score,
        percentage=attempt.percentage,
        passed=attempt.passed,
        timeSpent=attempt.time_spent,
        feedback=attempt.feedback,
        attemptNumber=attempt_number,
        attemptsRemaining=max(max_attempts - attempt_number, 0),
        completedAt=attempt.completed_at,
    )


def _progress_response(progress) -> LessonProgressResponse:
    return LessonProgressResponse(
        lessonId=progress.lesson_id,
        timeSpent=progress.time_spent,
        completionRate=progress.completion_rate,
        lastAccessedAt=progress.last_accessed_at,
        completedAt=progress.completed_at,
    )


def _certificate_response(certificate) -> CertificateResponse:
    return CertificateResponse(
        id=certificate.id,
        trackId=certificate.track_id,
        certificateNumber=certificate.certificate_number,
        finalScore=certificate.final_score,
        issuedAt=certificate.issued_at,
        expiresAt=certificate.expires_at,
    )


# ============================================================================
# TRACKS
# ============================================================================


@router.get("/tracks", response_model=list[TrackResponse])
async def list_tracks(
    include_unpublished: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: LearningService = Depends(get_learning_service),
):
    """Published tracks; admins may include drafts"""
    return [_track_response(t) for t in service.get_tracks(current_user, include_unpublished)]


@router.get("/tracks/{slug}", response_model=TrackResponse)
async def get_track(
    slug: str,
    current_user: User = Depends(get_current_user),
    service: LearningService = Depends(get_learning_service),
):
    return _track_response(service.get_track_by_slug(slug, current_user), include_lessons=True)


@router.post("/tracks", response_model=TrackResponse, status_code=201)
async def create_track(
    data: TrackCreate,
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return _track_response(service.create_track(data))


@router.put("/tracks/{track_id}", response_model=TrackResponse)
async def update_track(
    track_id: int,
    data: TrackUpdate,
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return _track_response(service.update_track(track_id, data))


@router.post("/tracks/{track_id}/publish", response_model=TrackResponse)
async def publish_track(
    track_id: int,
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return _track_response(service.set_published(track_id, True))


@router.post("/tracks/{track_id}/unpublish", response_model=TrackResponse)
async def unpublish_track(
    track_id: int,
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return _track_response(service.set_published(track_id, False))


@router.delete("/tracks/{track_id}")
async def delete_track(
    track_id: int,
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return service.delete_track(track_id)


# ============================================================================
# LESSONS
# ============================================================================


@router.post("/tracks/{track_id}/lessons", response_model=LessonResponse, status_code=201)
async def create_lesson(
    track_id: int,
    data: LessonCreate,
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return _lesson_response(service.create_lesson(track_id, data))


@router.post("/tracks/{track_id}/lessons/reorder", response_model=list[LessonResponse])
async def reorder_lessons(
    track_id: int,
    data: ReorderLessonsRequest,
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return [_lesson_response(lesson) for lesson in service.reorder_lessons(track_id, data)]


@router.get("/lessons/{lesson_id}", response_model=LessonResponse)
async def get_lesson(
    lesson_id: int,
    current_user: User = Depends(get_current_user),
    service: LearningService = Depends(get_learning_service),
):
    return _lesson_response(service.get_lesson(lesson_id))


@router.put("/lessons/{lesson_id}", response_model=LessonResponse)
async def update_lesson(
    lesson_id: int,
    data: LessonUpdate,
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return _lesson_response(service.update_lesson(lesson_id, data))


@router.delete("/lessons/{lesson_id}")
async def delete_lesson(
    lesson_id: int,
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return service.delete_lesson(lesson_id)


# ============================================================================
# QUIZZES
# ============================================================================


@router.get("/quizzes/analytics")
async def quiz_analytics(
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return service.get_quiz_analytics()


@router.post("/lessons/{lesson_id}/quizzes", response_model=QuizResponse, status_code=201)
async def create_quiz(
    lesson_id: int,
    data: QuizCreate,
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return _quiz_response(service.create_quiz(lesson_id, data), include_answers=True)


@router.get("/quizzes/{quiz_id}", response_model=QuizResponse)
async def get_quiz(
    quiz_id: int,
    current_user: User = Depends(get_current_user),
    service: LearningService = Depends(get_learning_service),
):
    """Answers and explanations are only returned to admins"""
    return _quiz_response(service.get_quiz(quiz_id), include_answers=is_admin(current_user))


@router.put("/quizzes/{quiz_id}", response_model=QuizResponse)
async def update_quiz(
    quiz_id: int,
    data: QuizUpdate,
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return _quiz_response(service.update_quiz(quiz_id, data), include_answers=True)


@router.delete("/quizzes/{quiz_id}")
async def delete_quiz(
    quiz_id: int,
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return service.delete_quiz(quiz_id)


@router.post("/quizzes/{quiz_id}/questions", response_model=QuestionResponse, status_code=201)
async def add_question(
    quiz_id: int,
    data: QuestionCreate,
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return _question_response(service.add_question(quiz_id, data), include_answers=True)


@router.put("/questions/{question_id}", response_model=QuestionResponse)
async def update_question(
    question_id: int,
    data: QuestionUpdate,
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return _question_response(service.update_question(question_id, data), include_answers=True)


@router.delete("/questions/{question_id}")
async def delete_question(
    question_id: int,
    current_user: User = Depends(get_current_admin),
    service: LearningService = Depends(get_learning_service),
):
    return service.delete_question(question_id)


@router.post("/quizzes/{quiz_id}/attempts", response_model=AttemptResponse, status_code=201)
async def submit_attempt(
    quiz_id: int,
    data: AttemptSubmit,
    current_user: User = Depends(get_current_user),
    service: LearningService = Depends(get_learning_service),
):
    attempt, attempt_number = service.submit_attempt(quiz_id, data, current_user)
    quiz = service.get_quiz(quiz_id)
    return _attempt_response(attempt, attempt_number, quiz.max_attempts)


@router.get("/quizzes/{quiz_id}/attempts", response_model=list[AttemptResponse])
async def list_attempts(
    quiz_id: int,
    current_user: User = Depends(get_current_user),
    service: LearningService = Depends(get_learning_service),
):
    quiz = service.get_quiz(quiz_id)
    attempts = service.get_attempts(quiz_id, current_user)
    return [_attempt_response(a, n, quiz.max_attempts) for n, a in enumerate(attempts, start=1)]


# ============================================================================
# PROGRESS
# ============================================================================


@router.post("/progress/lessons/{lesson_id}", response_model=LessonProgressResponse)
async def update_lesson_progress(
    lesson_id: int,
    data: ProgressUpdate,
    current_user: User = Depends(get_current_user),
    service: LearningService = Depends(get_learning_service),
):
    return _progress_response(service.update_lesson_progress(lesson_id, data, current_user))


@router.get("/progress/tracks/{track_id}", response_model=TrackProgressResponse)
async def get_track_progress(
    track_id: int,
    current_user: User = Depends(get_current_user),
    service: LearningService = Depends(get_learning_service),
):
    progress = service.get_track_progress(track_id, current_user)
    certificate = progress["certificate"]
    return TrackProgressResponse(
        trackId=progress["track_id"],
        requiredLessons=progress["required_lessons"],
        completedLessons=progress["completed_lessons"],
        progress=progress["progress"],
        lessons=[_progress_response(p) for p in progress["lessons"]],
        certificate=_certificate_response(certificate) if certificate else None,
    )


@router.get("/certificates", response_model=list[CertificateResponse])
async def list_certificates(
    current_user: User = Depends(get_current_user),
    service: LearningService = Depends(get_learning_service),
):
    return [_certificate_response(c) for c in service.get_certificates(current_user)]


__all__ = ["router"]
