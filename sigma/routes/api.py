"""JSON API routes for Sigma LMS.

Each handler follows the same flow: validate required parameters, query
Contentful, shape a JSON body, and map failures to status codes:
- 400 for missing required input (Contentful is not called)
- 404 when a singular resource has no matching entry
- 500 for anything else, with the error message passed through
Listing routes are cached per tag; failures are never cached.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response

from sigma.cache import ResponseCache
from sigma.contentful import ContentfulClient, to_json_tree
from sigma.dependencies import get_cache, get_contentful, get_tracker
from sigma.models import (
    BaseFields,
    ContentItem,
    CourseFields,
    CourseSummary,
    Entry,
    EntryLink,
    LessonFields,
    LessonListResponse,
    LessonMeta,
    ModuleFields,
    ModuleSummary,
    QuizListResponse,
    QuizSummary,
    TutorialFields,
)
from sigma.tracker import ApiCallTracker

logger = logging.getLogger("sigma.routes.api")


router = APIRouter(prefix="/api", tags=["api"])

# Cache lifetimes in seconds
LESSONS_TTL = 5 * 60
COURSES_TTL = 10 * 60
QUIZZES_TTL = 30 * 60
MODULES_TTL = 60 * 60

LISTING_QUERY = {"limit": 1000, "include": 10}


def lesson_query(slug: str) -> dict:
    """Contentful query for the single lesson with the given slug."""
    return {"limit": 1, "fields.slug": slug, "include": 10}


def _error_response(e: Exception, action: str) -> JSONResponse:
    logger.error(f"✗ Failed to {action}: {type(e).__name__}: {e}", exc_info=True)
    return JSONResponse(status_code=500, content={"error": str(e) or "Unknown error"})


def _json(payload: str) -> Response:
    return Response(content=payload, media_type="application/json")


def _created_order(entry: Entry) -> tuple:
    # Oldest first; entries without a timestamp go last
    created: Optional[datetime] = entry.sys.created_at
    return (created is None, created.timestamp() if created else 0.0)


def _link_summary(entry: Entry) -> EntryLink:
    return EntryLink(
        id=entry.id,
        title=entry.fields.get("title"),
        slug=entry.fields.get("slug"),
    )


# ============================================================================
# Lessons
# ============================================================================


@router.get("/lesson-meta")
async def get_lesson_meta(
    slug: Optional[str] = Query(default=None),
    contentful: ContentfulClient = Depends(get_contentful),
):
    """Metadata and rich-text content for one lesson."""
    if not slug:
        return JSONResponse(status_code=400, content={"error": "Missing slug"})

    try:
        items = await contentful.get_entries("lesson", lesson_query(slug))
        if not items:
            logger.info(f"Lesson not found: {slug}")
            return JSONResponse(status_code=404, content={"error": "Not found"})

        lesson = items[0].fields_as(LessonFields)
        meta = LessonMeta(
            title=lesson.title,
            slug=slug,
            course=lesson.course,
            program=lesson.program,
            content=to_json_tree(lesson.content),
        )
        return JSONResponse(meta.model_dump(mode="json"))

    except Exception as e:
        return _error_response(e, f"load lesson '{slug}'")


async def load_lessons(contentful: ContentfulClient) -> dict:
    """Build the chapter listing with each chapter's tutorials and quizzes.

    Chapters are sorted by slug; each is followed in ``allContent`` by its
    linked tutorials and quizzes, also sorted by slug.
    """
    entries = await contentful.get_entries("lesson", LISTING_QUERY)
    lessons = sorted(
        (entry.fields_as(LessonFields) for entry in entries),
        key=lambda lesson: lesson.slug or "",
    )

    all_content: list[ContentItem] = []
    for lesson in lessons:
        if not lesson.title or not lesson.slug:
            continue
        all_content.append(ContentItem(title=lesson.title, slug=lesson.slug, type="chapter"))

        children: list[ContentItem] = []
        for link in lesson.tutorial:
            tutorial = link.fields_as(TutorialFields)
            if tutorial.display_title and tutorial.slug:
                children.append(ContentItem(
                    title=tutorial.display_title,
                    slug=tutorial.slug,
                    type="tutorial",
                    chapter_slug=lesson.slug,
                ))
        for link in lesson.lesson_quiz:
            quiz = link.fields_as(BaseFields)
            if quiz.title and quiz.slug:
                children.append(ContentItem(
                    title=quiz.title,
                    slug=quiz.slug,
                    type="quiz",
                    chapter_slug=lesson.slug,
                ))
        all_content.extend(sorted(children, key=lambda item: item.slug))

    listing = LessonListResponse(
        lessons=[item for item in all_content if item.type == "chapter"],
        tutorials=[item for item in all_content if item.type == "tutorial"],
        quizzes=[item for item in all_content if item.type == "quiz"],
        all_content=all_content,
    )
    return listing.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.get("/lessons")
async def list_lessons(
    contentful: ContentfulClient = Depends(get_contentful),
    cache: ResponseCache = Depends(get_cache),
):
    """Chapters with their tutorials and quizzes (cached 5 minutes)."""
    try:
        payload = await cache.get_or_load(
            "lessons", lambda: load_lessons(contentful), ttl=LESSONS_TTL, tags=["lessons"]
        )
        return _json(payload)
    except Exception as e:
        return _error_response(e, "list lessons")


# ============================================================================
# Quizzes
# ============================================================================


async def load_quizzes(contentful: ContentfulClient) -> dict:
    """Collect standalone quizzes and modules that carry quiz data."""
    quiz_entries = await contentful.get_entries("quiz", LISTING_QUERY)
    module_entries = await contentful.get_entries("module", LISTING_QUERY)

    quizzes: list[QuizSummary] = []
    for entry in quiz_entries:
        quiz = entry.fields_as(BaseFields)
        if quiz.title and quiz.slug:
            quizzes.append(QuizSummary(title=quiz.title, slug=quiz.slug, type="quiz"))

    for entry in module_entries:
        module = entry.fields_as(ModuleFields)
        # An empty quiz list still marks the module as having a quiz
        has_quiz = isinstance(module.quiz, list) or bool(module.quiz)
        if module.title and module.slug and has_quiz:
            quizzes.append(QuizSummary(
                title=f"{module.title} Quiz",
                slug=module.slug,
                type="module-quiz",
            ))

    return QuizListResponse(quizzes=quizzes).model_dump(mode="json")


@router.get("/quizzes")
async def list_quizzes(
    contentful: ContentfulClient = Depends(get_contentful),
    cache: ResponseCache = Depends(get_cache),
):
    """All quizzes (cached 30 minutes, tag "quizzes")."""
    try:
        payload = await cache.get_or_load(
            "quizzes", lambda: load_quizzes(contentful), ttl=QUIZZES_TTL, tags=["quizzes"]
        )
        return _json(payload)
    except Exception as e:
        return _error_response(e, "list quizzes")


# ============================================================================
# Courses & Modules
# ============================================================================


async def load_courses(contentful: ContentfulClient) -> list:
    entries = sorted(await contentful.get_entries("course"), key=_created_order)

    courses = []
    for entry in entries:
        course = entry.fields_as(CourseFields)
        courses.append(CourseSummary(
            id=entry.id,
            title=course.title,
            slug=course.slug,
            chapters=[_link_summary(chapter) for chapter in course.chapters],
        ).model_dump(mode="json"))
    return courses


@router.get("/courses")
async def list_courses(
    contentful: ContentfulClient = Depends(get_contentful),
    cache: ResponseCache = Depends(get_cache),
):
    """All courses, oldest first (cached 10 minutes)."""
    try:
        payload = await cache.get_or_load(
            "courses", lambda: load_courses(contentful), ttl=COURSES_TTL, tags=["courses"]
        )
        return _json(payload)
    except Exception as e:
        return _error_response(e, "list courses")


async def load_modules(contentful: ContentfulClient) -> list:
    """Module summaries, oldest first.

    A module without linked quizzes gets a synthesized "Module Quiz" entry
    pointing at the module's own slug.
    """
    entries = sorted(await contentful.get_entries("module", {"include": 3}), key=_created_order)

    modules = []
    for entry in entries:
        module = entry.fields_as(ModuleFields)
        slug = module.slug or ""
        if module.module_quiz:
            module_quiz = [_link_summary(quiz) for quiz in module.module_quiz]
        else:
            module_quiz = [EntryLink(
                id=f"module-quiz-{slug or entry.id}",
                title="Module Quiz",
                slug=slug or entry.id,
            )]
        modules.append(ModuleSummary(
            id=entry.id,
            title=module.title or "Untitled Module",
            slug=slug,
            courses=[_link_summary(course) for course in module.courses],
            module_quiz=module_quiz,
            module_project=to_json_tree(module.module_project),
            module_review=to_json_tree(module.module_review),
        ).model_dump(mode="json", by_alias=True))
    return modules


@router.get("/modules")
async def list_modules(
    contentful: ContentfulClient = Depends(get_contentful),
    cache: ResponseCache = Depends(get_cache),
):
    """All modules, oldest first (cached 1 hour)."""
    try:
        payload = await cache.get_or_load(
            "modules", lambda: load_modules(contentful), ttl=MODULES_TTL, tags=["modules"]
        )
        return _json(payload)
    except Exception as e:
        return _error_response(e, "list modules")


# ============================================================================
# Cache & Usage
# ============================================================================


@router.post("/revalidate")
async def revalidate(
    tag: Optional[str] = Query(default=None),
    cache: ResponseCache = Depends(get_cache),
):
    """Drop cached responses carrying a tag (e.g. "quizzes")."""
    if not tag:
        return JSONResponse(status_code=400, content={"error": "Missing tag"})

    try:
        removed = cache.revalidate_tag(tag)
        return {"revalidated": True, "tag": tag, "removed": removed}
    except Exception as e:
        return _error_response(e, f"revalidate tag '{tag}'")


@router.get("/stats")
async def get_stats(tracker: ApiCallTracker = Depends(get_tracker)):
    """Outbound CMS call count and cache hit/miss counts."""
    return tracker.snapshot()
