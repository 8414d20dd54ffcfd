"""Tolerant extraction of ``{"files": [{path, content}]}`` manifests from model output."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from preview_orchestrator.build.models import GeneratedFile

logger = logging.getLogger(__name__)

AGGREGATED_PATHS = frozenset({"code.txt", "code.json"})

_FILES_OBJECT = re.compile(r"\{[\s\S]*\"files\"[\s\S]*\}")
_FENCED_BLOCK = re.compile(r"```(?:\w+)?\s*\n([\s\S]*?)\n```")


def strip_outer_fence(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = re.sub(r"\n?```$", "", re.sub(r"^```json\s*\n?", "", cleaned))
    elif cleaned.startswith("```"):
        cleaned = re.sub(r"\n?```$", "", re.sub(r"^```\w*\s*\n?", "", cleaned))
    return cleaned


def unwrap_file_content(content: str) -> str:
    if not content.strip().startswith("```"):
        return content
    block = _FENCED_BLOCK.search(content)
    if block:
        return block.group(1)
    return re.sub(r"\n?```$", "", re.sub(r"^\s*```\w*\s*\n?", "", content))


def find_files_object(text: str) -> dict[str, Any] | None:
    """First well-formed JSON object in ``text`` that carries a ``files`` list; prose around it is ignored."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            candidate, _end = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            candidate = None
        if isinstance(candidate, dict) and isinstance(candidate.get("files"), list):
            return candidate
        start = text.find("{", start + 1)
    return None


def parse_manifest(raw: str) -> list[GeneratedFile] | None:
    """Return the files of the first ``files`` object in ``raw``, or None when none parses.

    Entries without a non-empty ``path`` and ``content`` are skipped.
    """
    if not raw or not raw.strip():
        return None
    cleaned = strip_outer_fence(raw)
    payload = find_files_object(cleaned)
    if payload is None:
        match = _FILES_OBJECT.search(cleaned)
        try:
            payload = json.loads(match.group(0) if match else cleaned)
        except json.JSONDecodeError:
            logger.warning("manifest event=parse_failed preview=%r", raw[:200])
            return None
    if not isinstance(payload, dict) or not isinstance(payload.get("files"), list):
        return None

    files: list[GeneratedFile] = []
    for entry in payload["files"]:
        if not isinstance(entry, dict) or not entry.get("path") or not entry.get("content"):
            logger.debug("manifest event=entry_skipped entry=%r", str(entry)[:120])
            continue
        files.append(GeneratedFile(path=str(entry["path"]).strip(), content=unwrap_file_content(str(entry["content"]))))
    return files


def is_aggregated(path: str) -> bool:
    return path.rsplit("/", 1)[-1] in AGGREGATED_PATHS


def expand_aggregated_files(files: list[GeneratedFile]) -> list[GeneratedFile]:
    """Replace ``code.txt``/``code.json`` bundles with the files they contain."""
    expanded: list[GeneratedFile] = []
    for item in files:
        if not is_aggregated(item.path):
            expanded.append(item)
            continue
        inner = parse_manifest(item.content)
        if inner:
            logger.info("manifest event=bundle_expanded path=%s files=%s", item.path, len(inner))
            expanded.extend(inner)
        else:
            expanded.append(item)
    return expanded
