"""PDF validation and Upstage document parsing.

The parser's JSON comes in two shapes, one entry per page or a single
document body. resolve_response() turns it into one of the response
dataclasses below so nothing downstream handles raw API output.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import PyPDF2
import requests

from pdf2text.config import setting
from pdf2text.utils.text import count_page_markers, html_to_markdown, paginate

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("markdown", "text")


@dataclass
class ParsedPage:
    number: int
    text: str = ""
    html: str = ""
    markdown: str = ""


@dataclass
class PageSplitResponse:
    pages: List[ParsedPage]
    api: str = ""


@dataclass
class LegacyContentResponse:
    html: str = ""
    text: str = ""
    markdown: str = ""
    api: str = ""
    element_count: int = 0


@dataclass
class UnknownResponse:
    keys: List[str] = field(default_factory=list)


ParseResponse = Union[PageSplitResponse, LegacyContentResponse, UnknownResponse]


@dataclass
class ConversionResult:
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


def _str(v: Any) -> str:
    return v if isinstance(v, str) else ""


def resolve_response(data: Any) -> ParseResponse:
    if not isinstance(data, dict):
        return UnknownResponse()

    api = _str(data.get("api"))
    pages = data.get("pages")
    if isinstance(pages, list):
        parsed: List[ParsedPage] = []
        for i, page in enumerate(pages):
            if not isinstance(page, dict):
                continue
            number = page.get("page")
            parsed.append(ParsedPage(
                number=number if isinstance(number, int) and number > 0 else i + 1,
                text=_str(page.get("text")),
                html=_str(page.get("html")),
                markdown=_str(page.get("markdown")),
            ))
        return PageSplitResponse(pages=parsed, api=api)

    content = data.get("content")
    if isinstance(content, dict):
        elements = data.get("elements")
        return LegacyContentResponse(
            html=_str(content.get("html")),
            text=_str(content.get("text")),
            markdown=_str(content.get("markdown")),
            api=api,
            element_count=len(elements) if isinstance(elements, list) else 0,
        )

    return UnknownResponse(keys=sorted(str(k) for k in data.keys()))


# ============ Readiness ============

def upstage_ready() -> Tuple[bool, str]:
    key = (setting("UPSTAGE_API_KEY") or "").strip()
    if not key:
        return False, "UPSTAGE_API_KEY is not configured. Please contact the administrator."
    return True, ""


def inspect_pdf(path: str) -> Tuple[int, str]:
    """Return (page_count, error) for a file that should be a PDF."""
    try:
        reader = PyPDF2.PdfReader(path)
        return len(reader.pages), ""
    except Exception as e:
        return 0, f"Uploaded file is not a readable PDF: {e}"


# ============ Upstage ============

def parse_document(path: str) -> Tuple[Optional[Dict[str, Any]], str]:
    ok, msg = upstage_ready()
    if not ok:
        return None, msg

    key = setting("UPSTAGE_API_KEY").strip()
    url = setting("UPSTAGE_API_URL", "https://api.upstage.ai/v1/document-digitization")
    form = {
        "output_formats": json.dumps(["html", "text"]),
        "ocr": "auto",
        "coordinates": "true",
        "model": setting("UPSTAGE_MODEL", "document-parse"),
    }
    try:
        with open(path, "rb") as f:
            res = requests.post(
                url,
                headers={"Authorization": f"Bearer {key}"},
                files={"document": (os.path.basename(path), f, "application/pdf")},
                data=form,
                timeout=int(setting("UPSTAGE_TIMEOUT", 120)),
            )
    except requests.RequestException as e:
        return None, f"Error parsing document: {type(e).__name__}: {e}"
    except OSError as e:
        return None, f"Error parsing document: {e}"

    if not res.ok:
        return None, f"Upstage API error: {res.status_code} - {res.text.strip()[:500]}"
    try:
        data = res.json()
    except ValueError:
        return None, "Upstage API returned a non-JSON response"
    if not isinstance(data, dict):
        return None, "Upstage API returned an unexpected response"
    return data, ""


def _page_content(page: ParsedPage, output_format: str) -> str:
    if output_format == "markdown":
        if page.markdown:
            return page.markdown
        if page.html:
            return html_to_markdown(page.html)
        return page.text
    return page.text


def render_page_split(resp: PageSplitResponse, output_format: str) -> str:
    blocks: List[str] = []
    for page in resp.pages:
        body = _page_content(page, output_format).strip()
        blocks.append(f"--- PAGE {page.number} ---\n\n{body}" if body else f"--- PAGE {page.number} ---")
    return "\n\n".join(blocks)


def render_legacy(resp: LegacyContentResponse, output_format: str) -> str:
    if output_format == "markdown":
        if resp.html:
            body = html_to_markdown(resp.html)
        else:
            body = resp.text or resp.markdown
    else:
        body = resp.text or resp.markdown
    return paginate(body)


def convert_pdf(path: str, output_format: str = "markdown", include_metadata: bool = False) -> Tuple[Optional[ConversionResult], str]:
    if output_format not in OUTPUT_FORMATS:
        return None, f"Invalid output format {output_format!r}. Must be markdown or text"

    data, err = parse_document(path)
    if err:
        return None, err

    resp = resolve_response(data)
    if isinstance(resp, PageSplitResponse):
        content = render_page_split(resp, output_format)
        metadata = {
            "api_version": resp.api or "Unknown",
            "total_pages": len(resp.pages),
            "pages_processed": len(resp.pages),
            "has_page_splitting": True,
            "processing_mode": "page-split",
        }
    elif isinstance(resp, LegacyContentResponse):
        content = render_legacy(resp, output_format)
        metadata = {
            "api_version": resp.api or "Unknown",
            "total_elements": resp.element_count,
            "has_html": bool(resp.html),
            "has_text": bool(resp.text),
            "has_markdown": bool(resp.markdown),
            "processing_mode": "single-document",
        }
    else:
        logger.warning("Unrecognised Upstage response with keys %s", resp.keys)
        return None, "Upstage API returned an unrecognised response format"

    content = content.strip()
    if not content:
        return None, "No content available in the expected format"

    metadata["page_markers"] = count_page_markers(content)
    return ConversionResult(content=content, metadata=metadata if include_metadata else {}), ""
