"""Learning domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

from ...models_learning import DIFFICULTIES, QUESTION_TYPES
from ...shared.validators import validate_choice, validate_percentage, validate_slug


class TrackCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = None  # derived from title when omitted
    summary: Optional[str] = None
    difficulty: str = "beginner"
    estimatedHours: int = Field(0, ge=0)
    isPublished: bool = False

    @field_validator("slug")
    @classmethod
    def validate_slug_field(cls, v):
        return validate_slug(v) if v else v

    @field_validator("difficulty")
    @classmethod
    def validate_difficulty(cls, v):
        return validate_choice(v, DIFFICULTIES, "difficulty")


class TrackUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = None
    summary: Optional[str] = None
    difficulty: Optional[str] = None
    estimatedHours: Optional[int] = Field(None, ge=0)
    isPublished: Optional[bool] = None

    @field_validator("slug")
    @classmethod
    def validate_slug_field(cls, v):
        return validate_slug(v) if v else v

    @field_validator("difficulty")
    @classmethod
    def validate_difficulty(cls, v):
        return validate_choice(v, DIFFICULTIES, "difficulty")


class LessonCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    order: Optional[int] = Field(None, ge=0)  # appended at the end when omitted
    content: str = ""
    objectives: list[str] = []
    estimatedMinutes: int = Field(60, ge=0)
    isRequired: bool = True
    videos: list[dict] = []
    documents: list[dict] = []
    embeds: list[dict] = []
    links: list[dict] = []
    images: list[dict] = []
    audio: list[dict] = []


class LessonUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = None
    objectives: Optional[list[str]] = None
    estimatedMinutes: Optional[int] = Field(None, ge=0)
    isRequired: Optional[bool] = None
    videos: Optional[list[dict]] = None
    documents: Optional[list[dict]] = None
    embeds: Optional[list[dict]] = None
    links: Optional[list[dict]] = None
    images: Optional[list[dict]] = None
    audio: Optional[list[dict]] = None


class ReorderLessonsRequest(BaseModel):
    lessonIds: list[int] = Field(..., min_length=1)


class LessonResponse(BaseModel):
    id: int
    trackId: int
    title: str
    order: int
    content: str
    objectives: list
    estimatedMinutes: int
    isRequired: bool
    videos: list
    documents: list
    embeds: list
    links: list
    images: list
    audio: list


class TrackResponse(BaseModel):
    id: int
    title: str
    slug: str
    summary: Optional[str]
    difficulty: str
    estimatedHours: int
    isPublished: bool
    lessonCount: int = 0
    lessons: Optional[list[LessonResponse]] = None


class QuestionCreate(BaseModel):
    type: str = "multiple_choice"
    prompt: str = Field(..., min_length=1)
    options: list[str] = []
    correctAnswer: str = Field(..., min_length=1)
    explanation: Optional[str] = None
    points: int = Field(1, ge=1)
    order: Optional[int] = Field(None, ge=0)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return validate_choice(v, QUESTION_TYPES, "question type")


class QuestionUpdate(BaseModel):
    type: Optional[str] = None
    prompt: Optional[str] = Field(None, min_length=1)
    options: Optional[list[str]] = None
    correctAnswer: Optional[str] = Field(None, min_length=1)
    explanation: Optional[str] = None
    points: Optional[int] = Field(None, ge=1)
    order: Optional[int] = Field(None, ge=0)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return validate_choice(v, QUESTION_TYPES, "question type")


class QuestionResponse(BaseModel):
    id: int
    type: str
    prompt: str
    options: list
    points: int
    order: int
    # Only included for admins
    correctAnswer: Optional[str] = None
    explanation: Optional[str] = None


class QuizCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    timeLimit: int = Field(30, ge=1)
    passingScore: int = 70
    maxAttempts: int = Field(3, ge=1)
    showFeedback: bool = True
    questions: list[QuestionCreate] = []

    @field_validator("passingScore")
    @classmethod
    def validate_passing_score(cls, v):
        return validate_percentage(v)


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    timeLimit: Optional[int] = Field(None, ge=1)
    passingScore: Optional[int] = None
    maxAttempts: Optional[int] = Field(None, ge=1)
    showFeedback: Optional[bool] = None

    @field_validator("passingScore")
    @classmethod
    def validate_passing_score(cls, v):
        return validate_percentage(v)


class QuizResponse(BaseModel):
    id: int
    lessonId: int
    title: str
    description: Optional[str]
    timeLimit: int
    passingScore: int
    maxAttempts: int
    showFeedback: bool
    questions: list[QuestionResponse] = []


class AttemptSubmit(BaseModel):
    # Keys are question ids; JSON object keys arrive as strings
    answers: dict[str, Union[str, bool, int]]
    timeSpent: int = Field(0, ge=0)
    startedAt: Optional[datetime] = None


class AttemptResponse(BaseModel):
    id: int
    quizId: int
    score: int
    maxScore: int
    percentage: int
    passed: bool
    timeSpent: int
    feedback: Optional[list[dict]] = None
    attemptNumber: int
    attemptsRemaining: int
    completedAt: Optional[datetime] = None


class ProgressUpdate(BaseModel):
    timeSpent: int = Field(0, ge=0)  # seconds to add
    completionRate: int

    @field_validator("completionRate")
    @classmethod
    def validate_completion(cls, v):
        return validate_percentage(v)


class LessonProgressResponse(BaseModel):
    lessonId: int
    timeSpent: int
    completionRate: int
    lastAccessedAt: Optional[datetime]
    completedAt: Optional[datetime]


class CertificateResponse(BaseModel):
    id: int
    trackId: int
    certificateNumber: str
    finalScore: Optional[int]
    issuedAt: datetime
    expiresAt: Optional[datetime]


class TrackProgressResponse(BaseModel):
    trackId: int
    requiredLessons: int
    completedLessons: int
    progress: int
    lessons: list[LessonProgressResponse]
    certificate: Optional[CertificateResponse] = None
