"""OpenAI wrapper for table conversion, translation and keyword/summary extraction."""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from pdf2text.config import setting

try:
    from openai import OpenAI
except ImportError:
    OpenAI = None

logger = logging.getLogger(__name__)

NOT_TABULAR_TOKEN = "NOT_TABULAR_DATA"
NOT_TABULAR_ERROR = "The selected text does not contain tabular data that can be converted to a table"

TABLE_PROMPT = """You are a Markdown table generator.

Instructions:
1. Convert the given text into a Markdown table.
2. Only output the Markdown table. Do NOT output any explanations, comments, or extra text.
3. Maintain headers and columns as clearly as possible.
4. If the text has no rows and columns that could form a table, output exactly NOT_TABULAR_DATA.

Here is the input text:

{text}"""

TRANSLATE_SYSTEM_PROMPT = (
    "You are a professional translator. Translate the given text to {language} while preserving "
    "the original formatting, including markdown syntax, line breaks, and structure. Return only "
    "the translated text without any additional explanations or comments."
)

KEYWORDS_SYSTEM_PROMPT = """You are a text analysis expert. Extract key information from the given text and return a JSON response with the following structure:
{
  "keywords": ["keyword1", "keyword2", "keyword3", ...],
  "summary": "A concise summary of the main points in 2-3 sentences"
}

For keywords:
- Extract 5-10 most important and relevant keywords/phrases
- Include both single words and short phrases (2-3 words max)
- Focus on main topics, concepts, and key terms
- Avoid common words like "the", "and", "of", etc.

For summary:
- Provide a clear, concise summary in 2-3 sentences
- Capture the main points and key information
- Use simple, clear language

Return only the JSON object, no additional text or formatting."""


def client_ready() -> Tuple[bool, str]:
    if OpenAI is None:
        return False, "OpenAI SDK not installed"
    key = (setting("OPENAI_API_KEY") or "").strip()
    if not key:
        return False, "OPENAI_API_KEY is not configured. Please contact the administrator."
    return True, ""


def model_name() -> str:
    return (setting("OPENAI_MODEL") or "").strip() or "gpt-4o-mini"


def get_client():
    ok, _ = client_ready()
    if not ok:
        return None
    key = setting("OPENAI_API_KEY").strip()
    return OpenAI(api_key=key, timeout=int(setting("OPENAI_TIMEOUT", 60)))


def safe_json_loads(s: str) -> Tuple[Optional[Dict[str, Any]], str]:
    if not s:
        return None, "Empty model output"

    # Strip markdown code blocks if present
    text = s.strip()
    if text.startswith("```"):
        lines = text.split("\n", 1)
        if len(lines) > 1:
            text = lines[1]
        if text.endswith("```"):
            text = text[:-3].strip()
        elif "```" in text:
            text = text.rsplit("```", 1)[0].strip()

    try:
        obj = json.loads(text)
        if isinstance(obj, dict):
            return obj, ""
    except ValueError:
        pass

    # Fallback: extract first JSON object from text
    m = re.search(r"\{.*\}", text, flags=re.DOTALL)
    if m:
        try:
            obj = json.loads(m.group(0))
            if isinstance(obj, dict):
                return obj, ""
        except ValueError:
            pass
    return None, "Failed to parse analysis result"


def llm_text(messages: List[Dict[str, str]], temperature: float, max_tokens: int) -> Tuple[str, str]:
    client = get_client()
    if client is None:
        ok, msg = client_ready()
        return "", msg or "Client not available"
    try:
        res = client.chat.completions.create(
            model=model_name(),
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        text = (res.choices[0].message.content or "").strip()
    except Exception as e:
        logger.warning("OpenAI request failed: %s", e)
        return "", f"LLM request failed: {type(e).__name__}: {e}"
    if not text:
        return "", "No response from LLM"
    return text, ""


def text_to_table(text: str) -> Tuple[str, str]:
    table, err = llm_text(
        [{"role": "user", "content": TABLE_PROMPT.format(text=text)}],
        temperature=0.1,
        max_tokens=2000,
    )
    if err:
        return "", f"Error converting to table: {err}"
    if table.strip("` \n") == NOT_TABULAR_TOKEN:
        return "", NOT_TABULAR_ERROR
    return table, ""


def translate_text(text: str, target_language: str) -> Tuple[str, str]:
    translated, err = llm_text(
        [
            {"role": "system", "content": TRANSLATE_SYSTEM_PROMPT.format(language=target_language)},
            {"role": "user", "content": text},
        ],
        temperature=0.3,
        max_tokens=4000,
    )
    if err:
        return "", f"Translation failed: {err}"
    return translated, ""


def extract_keywords_summary(text: str) -> Tuple[Optional[Dict[str, Any]], str]:
    raw, err = llm_text(
        [
            {"role": "system", "content": KEYWORDS_SYSTEM_PROMPT},
            {"role": "user", "content": text},
        ],
        temperature=0.2,
        max_tokens=1000,
    )
    if err:
        return None, f"Keyword extraction failed: {err}"

    obj, err = safe_json_loads(raw)
    if err or obj is None:
        return None, err or "Failed to parse analysis result"

    keywords = obj.get("keywords")
    summary = obj.get("summary")
    if not isinstance(keywords, list) or not isinstance(summary, str):
        return None, "Invalid analysis result format"

    cleaned = [str(k).strip() for k in keywords if str(k).strip()]
    return {"keywords": cleaned, "summary": summary.strip()}, ""
