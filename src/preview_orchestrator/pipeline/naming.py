"""Project name detection for incoming briefs."""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 60
DEFAULT_TITLE = "New Project"

_QUOTES = "\"'“”"
_CAPTURE = r"[\"'“”]?([A-Za-z0-9][A-Za-z0-9\s&'\-]{0,58}?)(?=[,\.!\?]|$)"

NAME_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bname\s+it\s+" + _CAPTURE, re.IGNORECASE),
    re.compile(r"\b(?:named|called|titled|codenamed)\s+" + _CAPTURE, re.IGNORECASE),
    re.compile(r"\bknown\s+as\s+" + _CAPTURE, re.IGNORECASE),
    re.compile(
        r"\b(?:project|app|product|platform|startup|brand|dapp)\s+(?:name|title)\s*(?:is|=|:)\s*" + _CAPTURE,
        re.IGNORECASE,
    ),
    re.compile(
        r"[\"'“]([A-Za-z0-9][A-Za-z0-9\s&'\-]{1,58})[\"'”]\s+(?:app|platform|project|startup|dapp)\b",
        re.IGNORECASE,
    ),
)

_LEADING_LETTER = re.compile(r"^[a-z]\s+", re.IGNORECASE)
_TRAILING_CONNECTOR = re.compile(r"\s+(?:that|which|with|for|featuring|featur(?:es|ing)|and)\s*$", re.IGNORECASE)
_TRAILING_KIND = re.compile(
    r"\s+(?:platform|app|dapp|project|startup|marketplace|wallet|exchange|trading|minting)$",
    re.IGNORECASE,
)
_INVALID_CHARS = re.compile(r"[^A-Za-z0-9&'\- ]+")


def sanitize_name(raw: str) -> str | None:
    value = re.sub(f"[{_QUOTES}]", "", raw).strip()
    value = re.sub(r"\s+", " ", value)
    if not value:
        return None
    value = _LEADING_LETTER.sub("", value).strip()
    value = _TRAILING_CONNECTOR.sub("", value).strip()
    value = _INVALID_CHARS.sub("", value).strip()
    if len(value) > MAX_NAME_LENGTH:
        value = " ".join(value.split(" ")[:6]).strip()
    return value or None


def to_title_case(text: str) -> str:
    """Capitalize each word; 2-6 letter all-caps words are kept as acronyms."""
    if not text:
        return ""
    if _is_acronym(text):
        return text
    return " ".join(word if _is_acronym(word) else word[:1].upper() + word[1:].lower() for word in text.split(" "))


def extract_project_name(brief: str) -> str | None:
    """Title-cased project name named in ``brief``, or None when the brief names none."""
    for index, pattern in enumerate(NAME_PATTERNS, start=1):
        match = pattern.search(brief)
        if not match:
            continue
        cleaned = sanitize_name(match.group(1).strip())
        if not cleaned:
            continue
        cleaned = _LEADING_LETTER.sub("", cleaned).strip()
        cleaned = _TRAILING_KIND.sub("", cleaned).strip()
        if MIN_NAME_LENGTH <= len(cleaned) <= MAX_NAME_LENGTH:
            logger.debug("naming event=matched pattern=%s name=%r", index, cleaned)
            return to_title_case(cleaned)
    return None


def extract_user_provided_name(reply: str) -> str | None:
    """Lenient parse of a chat reply that is expected to be just a name."""
    cleaned = re.sub(f"^[{_QUOTES}]|[{_QUOTES}]$", "", reply.strip())
    cleaned = _INVALID_CHARS.sub(" ", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    if not cleaned or not MIN_NAME_LENGTH <= len(cleaned) <= MAX_NAME_LENGTH:
        return None
    return cleaned


def _is_acronym(word: str) -> bool:
    return 2 <= len(word) <= 6 and word == word.upper()
