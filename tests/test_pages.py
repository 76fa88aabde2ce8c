"""Tests for the server-rendered pages."""

from sigma.contentful import ContentfulError
from tests.conftest import fake_contentful, make_entry

LONG_PARAGRAPH = (
    "Git is a distributed version control system that tracks changes to files "
    "and lets many people work on the same codebase at the same time without "
    "overwriting each other's work."
)


def _lesson_cms():
    document = {
        "nodeType": "document",
        "data": {},
        "content": [
            {
                "nodeType": "heading-2",
                "data": {},
                "content": [{"nodeType": "text", "value": "Why Git?", "marks": [], "data": {}}],
            },
            {
                "nodeType": "paragraph",
                "data": {},
                "content": [{"nodeType": "text", "value": LONG_PARAGRAPH, "marks": [], "data": {}}],
            },
        ],
    }
    return {"lesson": [
        make_entry("l1", "lesson", title="Intro to Git", slug="intro-to-git", content=document),
        make_entry("l2", "lesson", title="Branching", slug="branching"),
    ]}


def test_lesson_page_renders_content(make_client):
    with make_client(fake_contentful(_lesson_cms())) as client:
        response = client.get("/lesson/intro-to-git")

    assert response.status_code == 200
    assert "<title>Intro to Git | Sigma LMS</title>" in response.text
    assert "<h2>Why Git?</h2>" in response.text
    assert "Module: Web Foundations" in response.text
    assert f'content="{LONG_PARAGRAPH[:150]}..."' in response.text


def test_lesson_page_without_content(make_client):
    with make_client(fake_contentful(_lesson_cms())) as client:
        response = client.get("/lesson/branching")

    assert response.status_code == 200
    assert "Branching" in response.text
    assert 'class="rich-text"' not in response.text
    assert "Learn software development concepts" in response.text


def test_lesson_page_unknown_slug_is_404(make_client):
    with make_client(fake_contentful(_lesson_cms())) as client:
        response = client.get("/lesson/missing")

    assert response.status_code == 404
    assert "Lesson Not Found | Sigma LMS" in response.text
    assert "Lesson not found" in response.text


def test_chapter_page(make_client):
    with make_client(fake_contentful(_lesson_cms())) as client:
        found = client.get("/chapter/intro-to-git")
        missing = client.get("/chapter/missing")

    assert found.status_code == 200
    assert "Software Development Programme · Course" in found.text
    assert missing.status_code == 404
    assert "Chapter not found" in missing.text


def test_page_cms_failure_is_500(make_client):
    contentful = fake_contentful({})
    contentful.get_entries.side_effect = ContentfulError("ECONNRESET")

    with make_client(contentful) as client:
        response = client.get("/lesson/intro-to-git")

    assert response.status_code == 500
    assert "ECONNRESET" in response.json()["detail"]


def test_lesson_with_malformed_embedded_quiz_is_500(make_client):
    quiz = {
        "sys": {"id": "quiz1", "type": "Entry", "contentType": {"sys": {"id": "quiz"}}},
        "fields": {"question": "Pick one", "options": ["a", "b"], "correctAnswer": "second"},
    }
    document = {
        "nodeType": "document",
        "data": {},
        "content": [{"nodeType": "embedded-entry-block", "content": [], "data": {"target": quiz}}],
    }
    cms = {"lesson": [make_entry("l1", "lesson", title="Quiz Time", slug="quiz-time", content=document)]}

    with make_client(fake_contentful(cms)) as client:
        response = client.get("/lesson/quiz-time")

    assert response.status_code == 500
    assert "invalid fields" in response.json()["detail"]


def test_preview_falls_back_to_delivery_client(make_client):
    contentful = fake_contentful(_lesson_cms())

    with make_client(contentful) as client:
        response = client.get("/lesson/intro-to-git?preview=true")

    assert response.status_code == 200
    contentful.get_entries.assert_awaited_once()


def test_preview_uses_preview_client(make_client):
    delivery = fake_contentful({})
    preview = fake_contentful({"lesson": [make_entry("l9", "lesson", title="Draft", slug="draft")]})

    with make_client(delivery, preview_contentful=preview) as client:
        response = client.get("/lesson/draft?preview=true")

    assert response.status_code == 200
    assert "Draft" in response.text
    delivery.get_entries.assert_not_called()


def test_homepage_lists_chapters(make_client):
    with make_client(fake_contentful(_lesson_cms())) as client:
        response = client.get("/")

    assert response.status_code == 200
    assert '<a href="/chapter/branching">Branching</a>' in response.text
    assert '<a href="/chapter/intro-to-git">Intro to Git</a>' in response.text
