"""FastAPI dependencies exposing per-app collaborators to route handlers.

Everything lives on ``app.state`` and is created by ``create_app``; tests
swap collaborators with ``app.dependency_overrides``.
"""

import logging

from fastapi import Request

from sigma.cache import ResponseCache
from sigma.contentful import ContentfulClient
from sigma.tracker import ApiCallTracker

logger = logging.getLogger("sigma.dependencies")


def get_contentful(request: Request) -> ContentfulClient:
    return request.app.state.contentful


def get_preview_contentful(request: Request) -> ContentfulClient:
    """Preview client, or the delivery client when no preview token is set."""
    client = request.app.state.preview_contentful
    if client is None:
        logger.warning("Preview requested but CONTENTFUL_PREVIEW_TOKEN is not set; using delivery API")
        return request.app.state.contentful
    return client


def get_cache(request: Request) -> ResponseCache:
    return request.app.state.cache


def get_tracker(request: Request) -> ApiCallTracker:
    return request.app.state.tracker


def select_contentful(request: Request, preview: bool = False) -> ContentfulClient:
    """Client for page routes; ``?preview=true`` switches to the preview API."""
    return get_preview_contentful(request) if preview else get_contentful(request)
