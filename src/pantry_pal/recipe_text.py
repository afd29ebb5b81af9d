"""
Recipe text helpers: HTML stripping and instruction step parsing.

Recipe summaries and instructions arrive as loosely formatted HTML. These
helpers turn them into plain text and numbered steps for the detail view.
"""

import re
from typing import Dict, List

from bs4 import BeautifulSoup

SUMMARY_LIMIT = 200
MIN_STEP_LENGTH = 10

_NARRATIVE_PHRASES = re.compile(
    r"\b(I like to|You can|If you want|I recommend|Feel free to|I usually|"
    r"You could|You may want to|I prefer to)\b",
    re.IGNORECASE,
)
_FILLER_WORDS = re.compile(
    r"\b(actually|basically|simply|just|really|very|quite|literally|honestly)\b",
    re.IGNORECASE,
)
_NUMBERED_STEP = re.compile(r"\d+\.\s+([^.!?]+[.!?])")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_BR_TAG = re.compile(r"<br\s*/?>", re.IGNORECASE)


def strip_html(html: str) -> str:
    """Plain text content of an HTML fragment, whitespace collapsed."""
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text(" ")
    return " ".join(text.split())


def first_paragraph(text: str, limit: int = SUMMARY_LIMIT) -> str:
    """First paragraph of a summary, truncated to `limit` characters."""
    if not text:
        return ""
    cleaned = _BR_TAG.sub(" ", text)
    paragraph = re.split(r"\n|</p>|</div>", cleaned)[0]
    paragraph = strip_html(paragraph)
    if len(paragraph) > limit:
        return f"{paragraph[:limit]}..."
    return paragraph


def clean_narrative_language(text: str) -> str:
    """Drop blog-style phrasing and filler words from an instruction."""
    text = _NARRATIVE_PHRASES.sub("", text)
    text = _FILLER_WORDS.sub("", text)
    return " ".join(text.split())


def _numbered(texts: List[str]) -> List[Dict]:
    return [{"number": i + 1, "step": text} for i, text in enumerate(texts)]


def parse_instructions_into_steps(instructions: str) -> List[Dict]:
    """Split instructions into steps.

    Numbered steps ("1. Preheat the oven.") win; otherwise each sentence
    longer than MIN_STEP_LENGTH becomes a step.
    """
    if not instructions:
        return []

    numbered = _NUMBERED_STEP.findall(instructions)
    if numbered:
        return _numbered([clean_narrative_language(strip_html(m)) for m in numbered])

    sentences = _SENTENCE_SPLIT.split(strip_html(instructions))
    return _numbered([
        clean_narrative_language(s)
        for s in sentences
        if len(s.strip()) > MIN_STEP_LENGTH
    ])


def parse_instructions_from_html(html: str) -> List[Dict]:
    """Steps from HTML structure (<p>/<li>, then <br>), falling back to sentences."""
    if not html:
        return []

    soup = BeautifulSoup(html, "html.parser")
    blocks = [el.get_text(" ", strip=True) for el in soup.find_all(["p", "li"])]
    blocks = [b for b in blocks if len(b) > MIN_STEP_LENGTH]
    if blocks:
        return _numbered([clean_narrative_language(b) for b in blocks])

    pieces = _BR_TAG.split(html)
    if len(pieces) > 1:
        texts = [strip_html(p) for p in pieces]
        return _numbered([clean_narrative_language(t) for t in texts if len(t) > MIN_STEP_LENGTH])

    return parse_instructions_into_steps(html)
