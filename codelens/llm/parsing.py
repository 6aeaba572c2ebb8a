"""
Model reply parsing.

Turns the free-form reply of a vision model into a structured result. Each
mode has an ordered list of strategies; the first one that returns a result
wins. The last strategy of every list is a text heuristic that always
succeeds, so a malformed reply degrades to a best-effort result instead of
an error.
"""

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from ..config import AnalysisMode
from .results import AnalysisResult, CodeAnalysisResult, GeneralAnalysisResult

logger = logging.getLogger(__name__)

# Field defaults when the JSON reply omits a key
DEFAULT_CODE = ""
DEFAULT_SUMMARY = ""
DEFAULT_COMPLEXITY = "O(?)"
DEFAULT_LANGUAGE = "Unknown"
DEFAULT_ANSWER = ""
DEFAULT_EXPLANATION = ""
DEFAULT_TEST = ""

# Text-extraction fallbacks
CODE_EXTRACTION_FAILED = "Code extraction failed"
COMPLEXITY_NOT_IDENTIFIED = "Not identified"
NO_ANSWER_EXTRACTED = "No answer could be extracted from the response"
NO_EXPLANATION_EXTRACTED = "No explanation provided"
NO_TEST_EXTRACTED = "No test plan provided"

SUMMARY_PREVIEW_CHARS = 200
RAW_CODE_PREVIEW_CHARS = 500

_JSON_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_CODE_BLOCK_RE = re.compile(r"```(?:\w+)?\s*([\s\S]*?)\s*```")
_FENCE_LANGUAGE_RE = re.compile(r"```(\w+)")
_EXPLICIT_LANGUAGE_RE = re.compile(r"language[:\s]+(\w+)", re.IGNORECASE)

_GENERAL_SECTIONS = {
    "answer": "answer|solution|response",
    "explanation": "explanation|reason|rationale",
    "test": "test|verification|checklist",
}
_LABEL_WORDS = r"(?:{keywords})s?\b(?:[ \t]+plan)?"
# Markdown heading, "Label:" / "**Label:**", or a bold label on its own line
_SECTION_LABEL = (
    r"^[ \t]*(?:"
    r"#+[ \t]*(?:\*\*)?" + _LABEL_WORDS + r"(?:\*\*)?[ \t]*:?(?:\*\*)?"
    r"|(?:\*\*)?" + _LABEL_WORDS + r"(?:\*\*)?[ \t]*:(?:\*\*)?"
    r"|\*\*" + _LABEL_WORDS + r"\*\*[ \t]*$"
    r")[ \t]*"
)
_ANY_SECTION_RE = re.compile(
    _SECTION_LABEL.format(keywords="|".join(_GENERAL_SECTIONS.values())),
    re.IGNORECASE | re.MULTILINE,
)

Strategy = Callable[[str], Optional[AnalysisResult]]


# ---------------------------------------------------------------------------
# JSON strategy
# ---------------------------------------------------------------------------


def _load_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Find a JSON-looking payload and decode it.

    Uses the first fenced block (``json`` or unlabeled) whose body starts
    with ``{``, otherwise the whole reply. Only payloads starting with ``{``
    are tried.
    """
    candidate = text
    for match in _JSON_BLOCK_RE.finditer(text):
        if match.group(1).lstrip().startswith("{"):
            candidate = match.group(1)
            break

    candidate = candidate.strip()
    if not candidate.startswith("{"):
        return None

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.warning("JSON parsing failed, falling back to text extraction: %s", e)
        return None

    if not isinstance(parsed, dict):
        return None
    # Some models wrap the payload as {"analysis": {...}}
    inner = parsed.get("analysis")
    if isinstance(inner, dict):
        return inner
    return parsed


def _field(data: Dict[str, Any], key: str, default: str) -> str:
    value = data.get(key)
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        return json.dumps(value) if isinstance(value, (dict, list)) else str(value)
    return value


def parse_code_json(text: str) -> Optional[CodeAnalysisResult]:
    data = _load_json_object(text)
    if data is None:
        return None
    return CodeAnalysisResult(
        code=_field(data, "code", DEFAULT_CODE),
        summary=_field(data, "summary", DEFAULT_SUMMARY),
        time_complexity=_field(data, "timeComplexity", DEFAULT_COMPLEXITY),
        space_complexity=_field(data, "spaceComplexity", DEFAULT_COMPLEXITY),
        language=_field(data, "language", DEFAULT_LANGUAGE),
    )


def parse_general_json(text: str) -> Optional[GeneralAnalysisResult]:
    data = _load_json_object(text)
    if data is None:
        return None
    return GeneralAnalysisResult(
        answer=_field(data, "answer", DEFAULT_ANSWER),
        explanation=_field(data, "explanation", DEFAULT_EXPLANATION),
        test=_field(data, "test", DEFAULT_TEST),
    )


# ---------------------------------------------------------------------------
# Text heuristics
# ---------------------------------------------------------------------------


def extract_code(text: str) -> str:
    """Concatenate every fenced block, or the head of the raw text."""
    blocks = [m.group(1) for m in _CODE_BLOCK_RE.finditer(text)]
    extracted = "\n\n".join(blocks).strip()
    return extracted or text[:RAW_CODE_PREVIEW_CHARS]


def extract_complexity(text: str, kind: str) -> Optional[str]:
    """Capture what follows 'time complexity' / 'space complexity'."""
    pattern = re.compile(rf"{kind}\s*complexity[\s:]*([^\n.]+)", re.IGNORECASE)
    match = pattern.search(text)
    return match.group(1).strip() if match else None


def extract_language(text: str) -> Optional[str]:
    """Explicit 'language: X' mention, else the first non-JSON fence tag."""
    match = _EXPLICIT_LANGUAGE_RE.search(text)
    if match:
        return match.group(1)

    fence = _FENCE_LANGUAGE_RE.search(text)
    if fence and fence.group(1).lower() != "json":
        return fence.group(1)
    return None


def _summary_preview(text: str) -> str:
    if len(text) > SUMMARY_PREVIEW_CHARS:
        return text[:SUMMARY_PREVIEW_CHARS] + "..."
    return text


def parse_code_text(text: str) -> CodeAnalysisResult:
    return CodeAnalysisResult(
        code=extract_code(text) or CODE_EXTRACTION_FAILED,
        summary=_summary_preview(text),
        time_complexity=extract_complexity(text, "time") or COMPLEXITY_NOT_IDENTIFIED,
        space_complexity=extract_complexity(text, "space") or COMPLEXITY_NOT_IDENTIFIED,
        language=extract_language(text) or DEFAULT_LANGUAGE,
    )


def extract_section(text: str, keywords: str) -> Optional[str]:
    """
    Body of the first section whose label matches *keywords*.

    A label is a line starting with one of the keywords, optionally as a
    markdown heading or bold text and followed by a colon. The body runs
    until the next recognised label.
    """
    label = re.compile(
        _SECTION_LABEL.format(keywords=keywords), re.IGNORECASE | re.MULTILINE
    )
    match = label.search(text)
    if not match:
        return None

    body_start = match.end()
    next_label = _ANY_SECTION_RE.search(text, body_start)
    body_end = next_label.start() if next_label else len(text)

    body = text[body_start:body_end].strip()
    return body or None


def parse_general_text(text: str) -> GeneralAnalysisResult:
    answer = extract_section(text, _GENERAL_SECTIONS["answer"])
    return GeneralAnalysisResult(
        answer=answer or text.strip() or NO_ANSWER_EXTRACTED,
        explanation=extract_section(text, _GENERAL_SECTIONS["explanation"])
        or NO_EXPLANATION_EXTRACTED,
        test=extract_section(text, _GENERAL_SECTIONS["test"]) or NO_TEST_EXTRACTED,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

STRATEGIES: Dict[str, List[Strategy]] = {
    AnalysisMode.CODE: [parse_code_json, parse_code_text],
    AnalysisMode.GENERAL: [parse_general_json, parse_general_text],
}


def parse_response(text: str, mode: str) -> AnalysisResult:
    """Run the mode's strategies in order and return the first result."""
    text = text or ""
    for strategy in STRATEGIES[mode]:
        result = strategy(text)
        if result is not None:
            logger.debug("Reply parsed with %s", strategy.__name__)
            return result
    # The text strategies always return; this is unreachable in practice
    raise ValueError(f"No parser produced a result for mode {mode}")
