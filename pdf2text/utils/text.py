"""Text post-processing for extracted documents.

``paginate`` inserts inferred ``--- PAGE n ---`` markers into text that came
back from the parser without page structure. ``html_to_markdown`` flattens the
small subset of HTML the parser emits into markdown-like text.
"""
from __future__ import annotations

import html
import re
from typing import List

TARGET_PAGE_CHARS = 3000

PAGE_BREAK = "\x00PAGE_BREAK\x00"

_PARAGRAPH_GAP = re.compile(r"\n(?:[ \t]*\n){2,}")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
_MARKER_LINE = re.compile(r"^--- PAGE \d+ ---$", flags=re.MULTILINE)

_MD_HEADING = re.compile(r"^#{1,6}\s+\S")
_CAPS_HEADING = re.compile(r"^[A-Z0-9][A-Z0-9 \t\-:&,.'()/]{9,}$")
_NUMBERED_SECTION = re.compile(r"^\d+(?:\.\d+)*[.)]?\s+\S")

LONG_PARAGRAPH_CHARS = 500


def looks_like_section_start(paragraph: str) -> bool:
    """True if a paragraph reads like the start of a new section."""
    if len(paragraph) > LONG_PARAGRAPH_CHARS:
        return True
    first_line = paragraph.strip().split("\n", 1)[0].strip()
    if not first_line:
        return False
    if _MD_HEADING.match(first_line):
        return True
    if _CAPS_HEADING.match(first_line) and any(ch.isalpha() for ch in first_line):
        return True
    return bool(_NUMBERED_SECTION.match(first_line))


def _split_paragraphs(text: str) -> List[str]:
    normalized = text.replace("\f", f"\n\n\n{PAGE_BREAK}\n\n\n")
    units: List[str] = []
    for raw in _PARAGRAPH_GAP.split(normalized):
        unit = raw.strip()
        if unit:
            units.append(unit)
    return units


def _accumulate(units: List[str], target: int) -> List[str]:
    pages: List[str] = []
    current: List[str] = []
    length = 0

    def flush() -> None:
        nonlocal current, length
        if current:
            pages.append("\n\n".join(current))
        current = []
        length = 0

    for unit in units:
        if unit == PAGE_BREAK:
            flush()
            continue
        if current and length + len(unit) > target and looks_like_section_start(unit):
            flush()
        current.append(unit)
        length += len(unit)
        if length > target * 1.5:
            flush()
    flush()
    return pages


def _split_sentences(page: str, target: int) -> List[str]:
    chunks: List[str] = []
    current = ""
    for sentence in _SENTENCE_END.split(page):
        if not sentence:
            continue
        if current and len(current) + len(sentence) > target:
            chunks.append(current)
            current = sentence
        else:
            current = f"{current} {sentence}" if current else sentence
    if current:
        chunks.append(current)
    return chunks


def paginate(text: str, target_chars: int = TARGET_PAGE_CHARS) -> str:
    """Insert ``--- PAGE n ---`` markers at inferred page boundaries.

    Boundaries come from form feeds, from paragraph gaps once a page has grown
    past ``target_chars`` and the next paragraph opens a section, and from a
    hard overflow at 1.5x the target. A single page longer than twice the
    target is re-split on sentence ends. Text that stays one page comes back
    unchanged.
    """
    if not text or not text.strip():
        return text

    pages = _accumulate(_split_paragraphs(text), target_chars)
    if len(pages) == 1 and len(pages[0]) > target_chars * 2:
        pages = _split_sentences(pages[0], target_chars)

    if len(pages) <= 1:
        return text

    return "\n\n".join(f"--- PAGE {n} ---\n\n{content}" for n, content in enumerate(pages, start=1))


def count_page_markers(text: str) -> int:
    return len(_MARKER_LINE.findall(text or ""))


def strip_page_markers(text: str) -> str:
    return _MARKER_LINE.sub("", text or "")


_HTML_RULES = [
    (re.compile(r"<h([1-6])(?:\s[^>]*)?>(.*?)</h\1\s*>", re.I | re.S), lambda m: "#" * int(m.group(1)) + " " + m.group(2).strip() + "\n\n"),
    (re.compile(r"<(strong|b)(?:\s[^>]*)?>(.*?)</\1\s*>", re.I | re.S), lambda m: f"**{m.group(2)}**"),
    (re.compile(r"<(em|i)(?:\s[^>]*)?>(.*?)</\1\s*>", re.I | re.S), lambda m: f"*{m.group(2)}*"),
    (re.compile(r"<p(?:\s[^>]*)?>(.*?)</p\s*>", re.I | re.S), lambda m: m.group(1) + "\n\n"),
    (re.compile(r"<br\s*/?>", re.I), lambda m: "\n"),
    (re.compile(r"<div(?:\s[^>]*)?>(.*?)</div\s*>", re.I | re.S), lambda m: m.group(1) + "\n"),
    (re.compile(r"<span(?:\s[^>]*)?>(.*?)</span\s*>", re.I | re.S), lambda m: m.group(1)),
]

_ANY_TAG = re.compile(r"<[^>]*>")
_EXTRA_NEWLINES = re.compile(r"\n\s*\n\s*\n+")


def html_to_markdown(markup: str) -> str:
    """Best-effort HTML to markdown; not a validating parser."""
    out = markup or ""
    for pattern, repl in _HTML_RULES:
        out = pattern.sub(repl, out)
    out = _ANY_TAG.sub("", out)
    out = html.unescape(out)
    out = _EXTRA_NEWLINES.sub("\n\n", out)
    return out.strip()
