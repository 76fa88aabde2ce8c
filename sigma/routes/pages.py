"""Server-rendered pages for Sigma LMS.

This module handles:
- Homepage with the chapter listing
- Lesson and chapter pages rendering rich-text content
- The not-found page for unknown slugs
"""

import json
import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from sigma.cache import ResponseCache
from sigma.contentful import ContentfulClient
from sigma.dependencies import get_cache, get_contentful, select_contentful
from sigma.models import EntryValidationError, LessonFields
from sigma.richtext import extract_description, render_rich_text
from sigma.routes.api import LESSONS_TTL, lesson_query, load_lessons

logger = logging.getLogger("sigma.routes.pages")

SITE_NAME = "Sigma LMS"

templates = Jinja2Templates(directory=str(Path(__file__).parent.parent / "templates"))


router = APIRouter(prefix="", tags=["pages"])


def _not_found(request: Request, kind: str, slug: str) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "not_found.html",
        {
            "page_title": f"{kind} Not Found | {SITE_NAME}",
            "description": f"The requested {kind.lower()} could not be found.",
            "kind": kind,
            "slug": slug,
        },
        status_code=404,
    )


async def _load_lesson(contentful: ContentfulClient, slug: str):
    """Fetch and validate the lesson with this slug, or None."""
    try:
        items = await contentful.get_entries("lesson", lesson_query(slug))
        return items[0].fields_as(LessonFields) if items else None
    except Exception as e:
        logger.error(f"Failed to load lesson '{slug}': {type(e).__name__}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to load lesson: {str(e)}")


# ============================================================================
# Homepage
# ============================================================================


@router.get("/", response_class=HTMLResponse)
async def homepage(
    request: Request,
    contentful: ContentfulClient = Depends(get_contentful),
    cache: ResponseCache = Depends(get_cache),
):
    """Homepage listing every chapter."""
    try:
        payload = await cache.get_or_load(
            "lessons", lambda: load_lessons(contentful), ttl=LESSONS_TTL, tags=["lessons"]
        )
    except Exception as e:
        logger.error(f"Failed to load chapters: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to load chapters: {str(e)}")

    return templates.TemplateResponse(
        request,
        "home.html",
        {
            "page_title": SITE_NAME,
            "chapters": json.loads(payload)["lessons"],
        },
    )


# ============================================================================
# Lesson & Chapter Pages
# ============================================================================


def _render_lesson(request: Request, lesson: LessonFields, kind: str, subtitle: str) -> HTMLResponse:
    try:
        content_html = render_rich_text(lesson.content)
    except EntryValidationError as e:
        logger.error(f"Failed to render {kind.lower()} '{lesson.slug}': {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to render {kind.lower()}: {str(e)}")

    return templates.TemplateResponse(
        request,
        "lesson.html",
        {
            "page_title": f"{lesson.title or kind} | {SITE_NAME}",
            "description": extract_description(lesson.content),
            "title": lesson.title,
            "subtitle": subtitle,
            "content_html": content_html,
        },
    )


@router.get("/lesson/{slug}", response_class=HTMLResponse)
async def lesson_page(
    request: Request,
    slug: str,
    contentful: ContentfulClient = Depends(select_contentful),
):
    """Render a lesson with its rich-text content."""
    lesson = await _load_lesson(contentful, slug)
    if lesson is None:
        return _not_found(request, "Lesson", slug)

    return _render_lesson(
        request, lesson, "Lesson", "Software Development Programme · Module: Web Foundations"
    )


@router.get("/chapter/{slug}", response_class=HTMLResponse)
async def chapter_page(
    request: Request,
    slug: str,
    contentful: ContentfulClient = Depends(select_contentful),
):
    """Render a chapter. Chapters are lesson entries viewed from a course."""
    chapter = await _load_lesson(contentful, slug)
    if chapter is None:
        return _not_found(request, "Chapter", slug)

    return _render_lesson(request, chapter, "Chapter", "Software Development Programme · Course")
