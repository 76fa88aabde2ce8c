"""Tests for rich-text rendering and text extraction."""

import pytest
from markupsafe import Markup

from sigma.models import EntryValidationError
from sigma.richtext import (
    DEFAULT_DESCRIPTION,
    extract_description,
    extract_quiz_questions,
    render_rich_text,
    rich_text_to_plain_text,
)
from tests.conftest import make_entry


def text(value, *marks):
    return {"nodeType": "text", "value": value, "marks": [{"type": m} for m in marks], "data": {}}


def block(node_type, *children, data=None):
    return {"nodeType": node_type, "data": data or {}, "content": list(children)}


def doc(*children):
    return block("document", *children)


def embedded_entry(content_type, **fields):
    return block("embedded-entry-block", data={"target": {
        "sys": {"id": "e1", "type": "Entry", "contentType": {"sys": {"id": content_type}}},
        "fields": fields,
    }})


# ============================================================================
# HTML Rendering
# ============================================================================


def test_render_paragraph_with_marks():
    html = render_rich_text(doc(block("paragraph", text("Hello", "bold"), text(" world", "italic"))))

    assert isinstance(html, Markup)
    assert html == "<p><strong>Hello</strong><em> world</em></p>"


def test_render_escapes_text():
    html = render_rich_text(doc(block("paragraph", text("<script>alert(1)</script>"))))

    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_render_preserves_line_breaks():
    html = render_rich_text(doc(block("paragraph", text("git add .\ngit commit", "code"))))

    assert html == "<p><code>git add .<br>git commit</code></p>"


def test_render_lists_headings_and_rules():
    html = render_rich_text(doc(
        block("heading-1", text("Title")),
        block("unordered-list", block("list-item", block("paragraph", text("one")))),
        block("hr"),
    ))

    assert "<h1>Title</h1>" in html
    assert "<ul><li><p>one</p></li></ul>" in html
    assert "<hr" in html


def test_render_hyperlink():
    html = render_rich_text(doc(block(
        "paragraph",
        block("hyperlink", text("docs"), data={"uri": "https://git-scm.com/doc"}),
    )))

    assert '<a href="https://git-scm.com/doc">docs</a>' in html


def test_render_embedded_asset():
    asset = block("embedded-asset-block", data={"target": {
        "sys": {"id": "a1", "type": "Asset"},
        "fields": {
            "title": "Commit graph",
            "file": {"url": "//images.ctfassets.net/graph.png", "details": {"image": {"width": 640, "height": 480}}},
        },
    }})

    html = render_rich_text(doc(asset))

    assert 'src="https://images.ctfassets.net/graph.png"' in html
    assert 'width="640" height="480"' in html
    assert "<figcaption>Commit graph</figcaption>" in html


def test_render_unresolved_asset_is_skipped():
    asset = block("embedded-asset-block", data={"target": {"sys": {"type": "Link", "id": "a1"}}})

    assert render_rich_text(doc(asset)) == ""


def test_render_embedded_quiz():
    quiz = embedded_entry(
        "quiz",
        title="Check yourself",
        question="Which command stages changes?",
        options=["git add", "git push"],
        correctAnswer=0,
        explanation="git add moves changes to the index.",
    )

    html = render_rich_text(doc(quiz))

    assert "<h3>Check yourself</h3>" in html
    assert "Which command stages changes?" in html
    assert "<li>git push</li>" in html
    assert "Answer: git add" in html


def test_render_other_embedded_entry_placeholder():
    html = render_rich_text(doc(embedded_entry("video", title="Demo")))

    assert "[Embedded Content: video]" in html


def test_render_unresolved_embedded_entry_is_skipped():
    unresolved = block("embedded-entry-block", data={"target": {"sys": {"type": "Link", "id": "e1"}}})

    assert render_rich_text(doc(block("paragraph", text("Before")), unresolved)) == "<p>Before</p>"


def test_render_entry_hyperlink_to_lesson():
    target = {
        "sys": {"id": "l2", "type": "Entry", "contentType": {"sys": {"id": "lesson"}}},
        "fields": {"title": "Branching", "slug": "branching"},
    }
    html = render_rich_text(doc(block(
        "paragraph",
        block("entry-hyperlink", text("next lesson"), data={"target": target}),
    )))

    assert '<a href="/lesson/branching">next lesson</a>' in html


def test_render_malformed_embedded_quiz_raises():
    quiz = embedded_entry("quiz", question="Pick one", options="git add or git push")

    with pytest.raises(EntryValidationError):
        render_rich_text(doc(quiz))


def test_render_empty_document():
    assert render_rich_text(None) == ""


# ============================================================================
# Text Extraction
# ============================================================================


def test_plain_text_collapses_whitespace():
    document = doc(block("paragraph", text("  Hello \n"), text("world  ")))

    assert rich_text_to_plain_text(document) == "Hello world"
    assert rich_text_to_plain_text(None) == ""


def test_description_short_paragraph_kept_whole():
    document = doc(block("heading-1", text("Skip me")), block("paragraph", text("Short intro.")))

    assert extract_description(document) == "Short intro."


def test_description_long_paragraph_truncated():
    long_text = "x" * 200

    assert extract_description(doc(block("paragraph", text(long_text)))) == "x" * 150 + "..."


def test_description_defaults_without_paragraph():
    assert extract_description(None) == DEFAULT_DESCRIPTION
    assert extract_description(doc(block("heading-1", text("Only a heading")))) == DEFAULT_DESCRIPTION


# ============================================================================
# Quiz Extraction
# ============================================================================


def test_quiz_questions_from_linked_entries():
    quiz = make_entry("quiz1", "Quiz", questions=[
        {"sys": {"id": "q1"}, "fields": {"question": "What is HEAD?", "options": ["a", "b"], "correctAnswer": 1}},
        {"question": "Inline question", "options": ["x"]},
    ])

    questions = extract_quiz_questions(quiz)

    assert questions == [
        {
            "id": "q0",
            "question": "What is HEAD?",
            "options": ["a", "b"],
            "correctAnswer": 1,
            "explanation": "",
        },
        {
            "id": "q1",
            "question": "Inline question",
            "options": ["x"],
            "correctAnswer": 0,
            "explanation": "",
        },
    ]


def test_numeric_string_answer_index_is_coerced():
    quiz = make_entry("quiz1", "quiz", question="Pick b", options=["a", "b"], correctAnswer="1")

    assert extract_quiz_questions(quiz)[0]["correctAnswer"] == 1


def test_malformed_quiz_raises_validation_error():
    quiz = make_entry("quiz1", "quiz", question="Pick one", options=["a", "b"], correctAnswer="second")

    with pytest.raises(EntryValidationError) as exc_info:
        extract_quiz_questions(quiz)

    assert "quiz1" in str(exc_info.value)
    assert "correctAnswer" in str(exc_info.value)


def test_module_quiz_questions_use_answer_entries():
    def answer(value, correct=False, explanation=None):
        fields = {"answer": doc(block("paragraph", text(value))), "isCorrect": correct}
        if explanation:
            fields["explanation"] = doc(block("paragraph", text(explanation)))
        return {"sys": {"id": value}, "fields": fields}

    module = make_entry("m1", "module", quiz=[
        # Unresolved link, skipped
        {"sys": {"type": "Link", "id": "q0"}},
        {"sys": {"id": "q1"}, "fields": {
            "quesionText": "Which command creates a branch?",
            "answers": [answer("git merge"), answer("git branch", True, "It creates a new ref.")],
        }},
    ])

    questions = extract_quiz_questions(module)

    assert len(questions) == 1
    assert questions[0]["id"] == "q0"
    assert questions[0]["question"] == "Which command creates a branch?"
    assert questions[0]["options"] == ["git merge", "git branch"]
    assert questions[0]["correctAnswer"] == 1
    assert questions[0]["explanation"] == "It creates a new ref."


def test_non_quiz_entry_has_no_questions():
    assert extract_quiz_questions(make_entry("v1", "video", title="Video")) == []
