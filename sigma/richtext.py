"""Contentful rich-text rendering.

Turns the tree-shaped rich-text documents stored on lessons into escaped
HTML for the Jinja2 templates, and into plain text for meta descriptions
and quiz answers. Block structure is rendered by ``rich_text_renderer``;
the renderers below cover text escaping, links, assets and embedded
quizzes.
"""

import logging
import re
from typing import Any, Optional, TypedDict

from markupsafe import Markup, escape
from rich_text_renderer import RichTextRenderer
from rich_text_renderer.base_node_renderer import BaseNodeRenderer

from sigma.models import (
    AnswerFields,
    AssetFields,
    BaseFields,
    Entry,
    ModuleFields,
    ModuleQuizQuestionFields,
    QuizFields,
    parse_entry,
)

logger = logging.getLogger("sigma.richtext")

MARK_TAGS = {
    "bold": "strong",
    "italic": "em",
    "underline": "u",
    "code": "code",
    "superscript": "sup",
    "subscript": "sub",
}

DEFAULT_DESCRIPTION = "Learn software development concepts and programming fundamentals."


class QuizQuestionDict(TypedDict):
    """Type definition for a normalized quiz question."""
    id: str
    question: str
    options: list[str]
    correctAnswer: int
    explanation: str


# ============================================================================
# Plain Text
# ============================================================================


def rich_text_to_plain_text(document: Any) -> str:
    """Concatenate all text nodes of a document and collapse whitespace."""
    if not document:
        return ""

    def walk(node: Any) -> str:
        if not node:
            return ""
        if isinstance(node, str):
            return node
        if not isinstance(node, dict):
            return ""
        if node.get("nodeType") == "text":
            return node.get("value") or ""
        children = node.get("content")
        return "".join(walk(child) for child in children) if isinstance(children, list) else ""

    return re.sub(r"\s+", " ", walk(document)).strip()


def extract_description(document: Optional[dict], default: str = DEFAULT_DESCRIPTION) -> str:
    """Build a meta description from the first paragraph of a document.

    Long paragraphs (over 50 characters) are cut to 150 characters plus "...".
    """
    if not document or not isinstance(document.get("content"), list):
        return default

    first_paragraph = next(
        (node for node in document["content"] if node.get("nodeType") == "paragraph"),
        None,
    )
    if not first_paragraph or not first_paragraph.get("content"):
        return default

    text = " ".join(
        node.get("value", "")
        for node in first_paragraph["content"]
        if node.get("nodeType") == "text"
    )
    if not text.strip():
        return default
    if len(text) > 50:
        return text[:150] + "..."
    return text


# ============================================================================
# Quiz Extraction
# ============================================================================


def is_quiz_type(content_type: Optional[str]) -> bool:
    return bool(content_type) and "quiz" in content_type.lower()


def _module_quiz_questions(module: ModuleFields) -> list[QuizQuestionDict]:
    questions: list[QuizQuestionDict] = []
    for item in module.quiz:
        entry = parse_entry(item)
        # Links that were not resolved have no fields and are skipped
        if entry.is_link:
            continue
        question = entry.fields_as(ModuleQuizQuestionFields)
        if not question.text:
            continue

        answers = [answer.fields_as(AnswerFields) for answer in question.answers]
        correct = next((i for i, a in enumerate(answers) if a.is_correct is True), 0)
        explanation = answers[correct].explanation if answers else None
        questions.append({
            "id": f"q{len(questions)}",
            "question": question.text,
            "options": [rich_text_to_plain_text(a.answer) for a in answers],
            "correctAnswer": correct,
            "explanation": rich_text_to_plain_text(explanation),
        })
    return questions


def extract_quiz_questions(entry: Entry) -> list[QuizQuestionDict]:
    """Normalize the quiz shapes used across content types.

    Handles:
    - quiz entries with a ``questions`` list of linked or inline questions
    - quiz entries carrying a single inline ``question``
    - module entries with a ``quiz`` list whose answers are linked entries
      flagged with ``isCorrect``

    Args:
        entry: The embedded entry

    Returns:
        Questions in display order; empty if the entry holds no quiz

    Raises:
        EntryValidationError: If the quiz data does not match its schema
    """
    if is_quiz_type(entry.content_type):
        quiz = entry.fields_as(QuizFields)
        if quiz.questions:
            return [
                {
                    "id": f"q{index}",
                    "question": q.question,
                    "options": q.options,
                    "correctAnswer": q.correct_answer,
                    "explanation": q.explanation,
                }
                for index, q in enumerate(quiz.questions)
            ]
        if quiz.question:
            return [{
                "id": "q0",
                "question": quiz.question,
                "options": quiz.options,
                "correctAnswer": quiz.correct_answer,
                "explanation": quiz.explanation or "",
            }]
        return []

    if entry.content_type == "module":
        module = entry.fields_as(ModuleFields)
        if isinstance(module.quiz, list):
            return _module_quiz_questions(module)

    return []


# ============================================================================
# HTML Rendering
# ============================================================================


def _render_quiz(title: str, questions: list[QuizQuestionDict]) -> str:
    items = []
    for q in questions:
        options = "".join(f"<li>{escape(opt)}</li>" for opt in q["options"])
        answer = ""
        if 0 <= q["correctAnswer"] < len(q["options"]):
            answer = f"<p>Answer: {escape(q['options'][q['correctAnswer']])}</p>"
        explanation = f"<p>{escape(q['explanation'])}</p>" if q["explanation"] else ""
        reveal = (
            f"<details><summary>Show answer</summary>{answer}{explanation}</details>"
            if answer or explanation else ""
        )
        items.append(
            f'<li id="{escape(q["id"])}"><p class="quiz-question">{escape(q["question"])}</p>'
            f'<ul class="quiz-options">{options}</ul>{reveal}</li>'
        )
    return (
        f'<section class="quiz"><h3>{escape(title)}</h3>'
        f'<ol class="quiz-questions">{"".join(items)}</ol></section>'
    )


class _NodeRenderer(BaseNodeRenderer):
    """Shared helpers; child nodes go back through the registered mappings."""

    def _render_children(self, node: dict) -> str:
        renderer = RichTextRenderer(self.mappings)
        return "".join(renderer.render(child) for child in node.get("content") or [])

    @staticmethod
    def _target(node: dict) -> Optional[Entry]:
        """The resolved entry or asset a node points at, or None for a bare link."""
        target = (node.get("data") or {}).get("target")
        if not isinstance(target, dict):
            return None
        entry = parse_entry(target)
        return None if entry.is_link else entry


class DocumentRenderer(_NodeRenderer):
    def render(self, node):
        return self._render_children(node)


class TextRenderer(BaseNodeRenderer):
    """Escaped text with marks applied; newlines become ``<br>``."""

    def render(self, node):
        html = str(Markup("<br>").join(escape(node.get("value", "")).split("\n")))
        for mark in node.get("marks") or []:
            tag = MARK_TAGS.get(mark.get("type"))
            if tag:
                html = f"<{tag}>{html}</{tag}>"
        return html


class HyperlinkRenderer(_NodeRenderer):
    def render(self, node):
        uri = (node.get("data") or {}).get("uri", "")
        return f'<a href="{escape(uri)}">{self._render_children(node)}</a>'


class EntryHyperlinkRenderer(_NodeRenderer):
    """Links to another lesson by its slug."""

    def render(self, node):
        children = self._render_children(node)
        entry = self._target(node)
        slug = entry.fields_as(BaseFields).slug if entry else None
        return f'<a href="/lesson/{escape(slug)}">{children}</a>' if slug else children


class AssetHyperlinkRenderer(_NodeRenderer):
    def render(self, node):
        children = self._render_children(node)
        asset = self._target(node)
        file = asset.fields_as(AssetFields).file if asset else None
        return f'<a href="https:{escape(file.url)}">{children}</a>' if file else children


class AssetBlockRenderer(_NodeRenderer):
    """Embedded image as a figure; assets without a file are skipped."""

    def render(self, node):
        asset = self._target(node)
        if asset is None:
            return ""
        fields = asset.fields_as(AssetFields)
        if fields.file is None:
            return ""

        image = fields.file.details.get("image") or {}
        caption = f"<figcaption>{escape(fields.title)}</figcaption>" if fields.title else ""
        return (
            f'<figure class="embedded-asset">'
            f'<img src="https:{escape(fields.file.url)}" alt="{escape(fields.title or "Contentful image")}"'
            f' width="{int(image.get("width") or 800)}" height="{int(image.get("height") or 600)}">'
            f"{caption}</figure>"
        )


class EmbeddedEntryRenderer(_NodeRenderer):
    """Quizzes render inline; other embedded entries get a placeholder."""

    def render(self, node):
        entry = self._target(node)
        if entry is None:
            return ""

        questions = extract_quiz_questions(entry)
        if questions:
            return _render_quiz(entry.fields_as(BaseFields).title or "Quiz", questions)

        logger.debug(f"No renderer for embedded entry of type {entry.content_type}")
        return (
            f'<div class="embedded-entry">[Embedded Content: '
            f'{escape(entry.content_type or "unknown")}]</div>'
        )


class EmbeddedInlineRenderer(BaseNodeRenderer):
    def render(self, node):
        return '<span class="embedded-entry">[Embedded Content]</span>'


RENDERERS = {
    "document": DocumentRenderer,
    "text": TextRenderer,
    "hyperlink": HyperlinkRenderer,
    "entry-hyperlink": EntryHyperlinkRenderer,
    "asset-hyperlink": AssetHyperlinkRenderer,
    "embedded-asset-block": AssetBlockRenderer,
    "embedded-entry-block": EmbeddedEntryRenderer,
    "embedded-entry-inline": EmbeddedInlineRenderer,
}

_renderer = RichTextRenderer(RENDERERS)


def render_rich_text(document: Optional[dict]) -> Markup:
    """Render a rich-text document to HTML safe for templates.

    Raises:
        EntryValidationError: If an embedded entry or asset is malformed
    """
    if not document:
        return Markup("")
    return Markup(_renderer.render(document))
