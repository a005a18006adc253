"""
Pure helpers that turn a raw completion API payload into usable data.

Providers disagree on where the generated text lives, so `extract_text` walks an
ordered list of extractor strategies and returns the first non-empty string.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Optional

from schemas.assessment import AssessmentVerdict
from schemas.job import NO_TASKS, UNTITLED_JOB, JobDraft

REJECTION_KEYWORDS = ("reject", "incomplete", "insufficient")
HEURISTIC_REASON_MAX_CHARS = 200

_CODE_FENCE_JSON = re.compile(r"```json\s*")
_CODE_FENCE = re.compile(r"```\s*")


class JobParseError(ValueError):
    pass


# ── Text extraction ───────────────────────────────────────────────────────────


def _first_choice(raw: Any) -> Optional[dict]:
    if not isinstance(raw, dict):
        return None
    choices = raw.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return None


def _choice_message_content(raw: Any) -> Any:
    choice = _first_choice(raw)
    message = choice.get("message") if choice else None
    return message.get("content") if isinstance(message, dict) else None


def _choice_text(raw: Any) -> Any:
    choice = _first_choice(raw)
    return choice.get("text") if choice else None


def _choice_delta_content(raw: Any) -> Any:
    choice = _first_choice(raw)
    delta = choice.get("delta") if choice else None
    return delta.get("content") if isinstance(delta, dict) else None


def _raw_string(raw: Any) -> Any:
    return raw if isinstance(raw, str) else None


def _top_level_content(raw: Any) -> Any:
    return raw.get("content") if isinstance(raw, dict) else None


def _top_level_message(raw: Any) -> Any:
    if not isinstance(raw, dict):
        return None
    message = raw.get("message")
    if isinstance(message, dict):
        return message.get("content")
    return message


def _top_level_output_text(raw: Any) -> Any:
    return raw.get("output_text") if isinstance(raw, dict) else None


TEXT_EXTRACTORS: tuple[Callable[[Any], Any], ...] = (
    _choice_message_content,
    _choice_text,
    _choice_delta_content,
    _raw_string,
    _top_level_content,
    _top_level_message,
    _top_level_output_text,
)


def extract_text(raw: Any) -> Optional[str]:
    """Return the completion text from any supported response shape, else None."""
    for extractor in TEXT_EXTRACTORS:
        value = extractor(raw)
        if isinstance(value, str) and value.strip():
            return value
    return None


def choice_error(raw: Any) -> Optional[str]:
    """Error message reported inside the first choice of a 2xx response, if any."""
    choice = _first_choice(raw)
    if not choice or not choice.get("error"):
        return None
    err = choice["error"]
    if isinstance(err, dict):
        return str(err.get("message") or "Unknown error")
    return str(err)


# ── JSON extraction ───────────────────────────────────────────────────────────


def strip_code_fences(text: str) -> str:
    text = _CODE_FENCE_JSON.sub("", text)
    return _CODE_FENCE.sub("", text)


def extract_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced `{...}` span in `text`, or None.

    Braces inside JSON string literals (including escaped quotes) do not count.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # Unbalanced from this brace; try the next one
        start = text.find("{", start + 1)
    return None


def _load_json_object(text: str) -> Any:
    span = extract_json_object(text)
    return json.loads(span if span is not None else text)


# ── Classifier ────────────────────────────────────────────────────────────────


def heuristic_verdict(text: str) -> AssessmentVerdict:
    lowered = text.lower()
    rejected = any(keyword in lowered for keyword in REJECTION_KEYWORDS)
    return AssessmentVerdict(
        rejected=rejected,
        reason=text[:HEURISTIC_REASON_MAX_CHARS],
        heuristic=True,
    )


def parse_verdict(text: str) -> AssessmentVerdict:
    """Parse `{"rejected": bool, "reason": str}`; fall back to keywords over the raw text."""
    try:
        payload = _load_json_object(text)
    except (json.JSONDecodeError, ValueError):
        return heuristic_verdict(text)
    if not isinstance(payload, dict):
        return heuristic_verdict(text)

    reason = payload.get("reason")
    return AssessmentVerdict(
        rejected=bool(payload.get("rejected")),
        reason=str(reason) if reason else None,
    )


# ── Splitter ──────────────────────────────────────────────────────────────────


def _coerce_job(entry: Any) -> JobDraft:
    entry = entry if isinstance(entry, dict) else {}
    title = entry.get("title")
    tasks = entry.get("tasks")
    return JobDraft(
        title=str(title) if title else UNTITLED_JOB,
        tasks=str(tasks) if tasks else NO_TASKS,
    )


def parse_job_drafts(text: str) -> list[JobDraft]:
    """
    Parse `{"jobs": [{"title", "tasks"}, ...]}` strictly.

    Raises JobParseError when no JSON object can be read or it has no `jobs`
    array. Individual malformed entries are kept with placeholder text.
    """
    cleaned = strip_code_fences(text)
    try:
        payload = _load_json_object(cleaned)
    except (json.JSONDecodeError, ValueError) as exc:
        raise JobParseError("Failed to parse job splitting response") from exc

    if not isinstance(payload, dict) or not isinstance(payload.get("jobs"), list):
        raise JobParseError("Invalid job splitting response structure")

    return [_coerce_job(entry) for entry in payload["jobs"]]
