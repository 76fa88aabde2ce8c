"""Pydantic models for CMS entries and API responses.

This module defines schemas for:
- Contentful entries as returned by the Delivery API (sys + fields)
- Typed field records per content type (lesson, quiz, module, course, tutorial)
- Response bodies of the JSON API routes

Entries are validated here, at the boundary, so route handlers and page
renderers only ever read typed attributes.
"""

from datetime import datetime
from typing import Any, Literal, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)


class EntryValidationError(ValueError):
    """Raised when a CMS entry does not match the expected shape."""


# ============================================================================
# Entry Models
# ============================================================================


class EntrySys(BaseModel):
    """System metadata attached to every entry, asset and link."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1, description="Opaque CMS identifier")
    type: str = Field(default="Entry", description="Entry, Asset or Link")
    link_type: Optional[str] = Field(default=None, alias="linkType")
    content_type: Optional[str] = Field(default=None, alias="contentType")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @field_validator("content_type", mode="before")
    @classmethod
    def unwrap_content_type_link(cls, v: Any) -> Any:
        """Content types arrive as a link object; keep only the id."""
        if isinstance(v, dict):
            return (v.get("sys") or {}).get("id")
        return v


class Entry(BaseModel):
    """A single CMS record: an opaque id plus a field mapping."""

    model_config = ConfigDict(extra="ignore")

    sys: EntrySys
    fields: dict[str, Any] = Field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.sys.id

    @property
    def content_type(self) -> Optional[str]:
        return self.sys.content_type

    @property
    def is_link(self) -> bool:
        """True for a reference the API did not resolve."""
        return self.sys.type == "Link"

    def fields_as(self, schema: type["FieldsT"]) -> "FieldsT":
        """Validate this entry's fields against a typed schema.

        Args:
            schema: One of the *Fields models below

        Returns:
            Validated field record

        Raises:
            EntryValidationError: If the fields do not match the schema
        """
        try:
            return schema.model_validate(self.fields)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise EntryValidationError(
                f"Entry {self.sys.id} ({self.content_type or 'unknown'}) "
                f"has invalid fields: {problems}"
            ) from e


def parse_entry(data: Any) -> Entry:
    """Validate a raw entry dict into an Entry.

    Raises:
        EntryValidationError: If the payload is not an entry
    """
    try:
        return Entry.model_validate(data)
    except ValidationError as e:
        raise EntryValidationError(f"Malformed entry: {e.errors()[0]['msg']}") from e


# ============================================================================
# Typed Field Records
# ============================================================================


class BaseFields(BaseModel):
    """Fields shared by most content types.

    Empty strings are treated as absent, matching how the CMS web app
    leaves cleared text fields.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    title: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None

    @field_validator("title", "slug", "description", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


def _check_rich_text(v: Any) -> Any:
    if v is None:
        return None
    if not isinstance(v, dict) or "nodeType" not in v:
        raise ValueError("expected a rich-text document")
    return v


class LessonFields(BaseFields):
    """Lesson (chapter) entry fields."""

    course: Optional[Any] = None
    program: Optional[Any] = None
    content: Optional[dict[str, Any]] = None
    lesson_quiz: list[Entry] = Field(default_factory=list, alias="lessonQuiz")
    tutorial: list[Entry] = Field(default_factory=list)

    @field_validator("course", "program", mode="before")
    @classmethod
    def falsy_to_none(cls, v: Any) -> Any:
        return v or None

    @field_validator("content", mode="before")
    @classmethod
    def content_is_document(cls, v: Any) -> Any:
        return _check_rich_text(v)


class QuizQuestionFields(BaseModel):
    """One question of a quiz entry, linked or inline."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    question: str = ""
    options: list[str] = Field(default_factory=list)
    correct_answer: int = Field(default=0, alias="correctAnswer")
    explanation: str = ""

    @field_validator("question", "explanation", mode="before")
    @classmethod
    def text_default(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("options", mode="before")
    @classmethod
    def options_default(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("correct_answer", mode="before")
    @classmethod
    def correct_answer_default(cls, v: Any) -> Any:
        return 0 if v is None else v


class QuizFields(BaseFields):
    """Quiz entry fields; either a list of questions or one inline question."""

    questions: list[QuizQuestionFields] = Field(default_factory=list)
    question: Optional[str] = None
    options: list[str] = Field(default_factory=list)
    correct_answer: int = Field(default=0, alias="correctAnswer")
    explanation: Optional[str] = None

    @field_validator("questions", mode="before")
    @classmethod
    def unwrap_question_entries(cls, v: Any) -> Any:
        # Linked question entries carry their data under "fields"
        if not v:
            return []
        if isinstance(v, list):
            return [
                (q.get("fields") or q) if isinstance(q, dict) else q
                for q in v
            ]
        return v

    @field_validator("options", mode="before")
    @classmethod
    def options_default(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("correct_answer", mode="before")
    @classmethod
    def correct_answer_default(cls, v: Any) -> Any:
        return 0 if v is None else v


class AnswerFields(BaseFields):
    """Answer entry linked from a module quiz question."""

    answer: Optional[dict[str, Any]] = None
    is_correct: Optional[bool] = Field(default=None, alias="isCorrect")
    explanation: Optional[dict[str, Any]] = None

    @field_validator("answer", "explanation", mode="before")
    @classmethod
    def answer_is_document(cls, v: Any) -> Any:
        return _check_rich_text(v)


class ModuleQuizQuestionFields(BaseFields):
    """Question entry linked from a module's ``quiz`` list.

    Older entries spell the question field ``quesionText``.
    """

    quesion_text: Optional[str] = Field(default=None, alias="quesionText")
    question_text: Optional[str] = Field(default=None, alias="questionText")
    answers: list[Entry] = Field(default_factory=list)

    @property
    def text(self) -> Optional[str]:
        return self.quesion_text or self.question_text


class TutorialFields(BaseFields):
    """Tutorial entry fields. Older entries carry the title as ``topic``."""

    topic: Optional[str] = None

    @property
    def display_title(self) -> Optional[str]:
        return self.topic or self.title


class AssetFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url: str
    content_type: Optional[str] = Field(default=None, alias="contentType")
    details: dict[str, Any] = Field(default_factory=dict)


class AssetFields(BaseFields):
    """Fields of an uploaded asset (image or file)."""

    file: Optional[AssetFile] = None


class CourseFields(BaseFields):
    """Course entry fields."""

    chapters: list[Entry] = Field(default_factory=list)


class ModuleFields(BaseFields):
    """Module entry fields."""

    quiz: Optional[Any] = None
    courses: list[Entry] = Field(default_factory=list)
    module_quiz: list[Entry] = Field(default_factory=list, alias="moduleQuiz")
    module_project: list[Any] = Field(default_factory=list, alias="moduleProject")
    module_review: Optional[Any] = Field(default=None, alias="moduleReview")


FieldsT = TypeVar("FieldsT", bound=BaseFields)


# ============================================================================
# API Response Models
# ============================================================================


class LessonMeta(BaseModel):
    """Body of GET /api/lesson-meta."""

    title: Optional[str]
    slug: str
    course: Optional[Any]
    program: Optional[Any]
    content: Optional[dict[str, Any]]


class QuizSummary(BaseModel):
    title: str
    slug: str
    type: Literal["quiz", "module-quiz"]


class QuizListResponse(BaseModel):
    """Body of GET /api/quizzes."""

    quizzes: list[QuizSummary]


class ContentItem(BaseModel):
    """One row of the lessons listing: a chapter, tutorial or quiz."""

    title: str
    slug: str
    type: Literal["chapter", "tutorial", "quiz"]
    chapter_slug: Optional[str] = Field(default=None, serialization_alias="chapterSlug")


class LessonListResponse(BaseModel):
    """Body of GET /api/lessons."""

    lessons: list[ContentItem]
    tutorials: list[ContentItem]
    quizzes: list[ContentItem]
    all_content: list[ContentItem] = Field(serialization_alias="allContent")


class EntryLink(BaseModel):
    """Compact reference to a related entry."""

    id: str
    title: Optional[str] = None
    slug: Optional[str] = None


class CourseSummary(BaseModel):
    id: str
    title: Optional[str]
    slug: Optional[str]
    chapters: list[EntryLink]


class ModuleSummary(BaseModel):
    id: str
    title: str
    slug: str
    courses: list[EntryLink]
    module_quiz: list[EntryLink] = Field(serialization_alias="moduleQuiz")
    module_project: list[Any] = Field(serialization_alias="moduleProject")
    module_review: Optional[Any] = Field(serialization_alias="moduleReview")
