"""Turn raw LLM completions into candidates and evaluation bundles.

Models are asked for JSON but regularly wrap it in code fences, leave strings
unescaped, or run out of tokens halfway through a large payload. Parsing is a
plain ``json.loads`` first; on failure an ordered list of recovery strategies
is tried and the first one that yields an object wins.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, NamedTuple

from pydantic import ValidationError

from songmaster.agent.errors import ParseError
from songmaster.models.song import EvaluationBundle, SongCandidate

log = logging.getLogger(__name__)

RAW_PREVIEW_CHARS = 200
EVALUATIONS_MARKER = '"evaluations"'

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?[ \t]*\n?", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\n?[ \t]*```$")

_STRING_BODY = r'"((?:[^"\\]|\\.)*)"'
_LYRICS_RE = re.compile(r'"lyrics"\s*:\s*' + _STRING_BODY, re.DOTALL)
_NAME_RE = re.compile(r'"name"\s*:\s*' + _STRING_BODY, re.DOTALL)
_STYLE_RE = re.compile(r'"(?:style|style_description)"\s*:\s*' + _STRING_BODY, re.DOTALL)

# A scalar cut off by the token limit right after ':' '[' or ','.
_PARTIAL_LITERAL_RE = re.compile(
    r"(?<=[:\[,])\s*(?:-|\d+\.|\d+(?:\.\d+)?[eE][+-]?|t|tr|tru|f|fa|fal|fals|n|nu|nul)$"
)

_CLOSERS = {"{": "}", "[": "]"}
_OPENERS = {"}": "{", "]": "["}

RecoveryStrategy = Callable[[str], "dict[str, Any] | None"]


def strip_code_fences(raw: str) -> str:
    """Remove one leading ```json / ``` fence and one trailing ``` fence."""
    text = raw.strip()
    text = _FENCE_OPEN_RE.sub("", text, count=1)
    text = _FENCE_CLOSE_RE.sub("", text, count=1)
    return text.strip()


def _unescape(value: str) -> str:
    try:
        return json.loads(f'"{value}"', strict=False)
    except json.JSONDecodeError:
        return value.replace("\\n", "\n").replace('\\"', '"')


def recover_fields(text: str) -> dict[str, Any] | None:
    """Pull name/style/lyrics out of otherwise broken JSON.

    Lyrics are the success criterion; name and style are best effort.
    """
    lyrics_match = _LYRICS_RE.search(text)
    if not lyrics_match:
        return None
    name_match = _NAME_RE.search(text)
    style_match = _STYLE_RE.search(text)
    return {
        "name": _unescape(name_match.group(1)) if name_match else "Untitled",
        "style": _unescape(style_match.group(1)) if style_match else "",
        "lyrics": _unescape(lyrics_match.group(1)),
    }


class _ScanState(NamedTuple):
    stack: list[str]
    in_string: bool
    last_string_start: int
    last_string_end: int


def _scan(text: str) -> _ScanState | None:
    """Track open containers outside string literals. None on a mismatched closer."""
    stack: list[str] = []
    in_string = False
    escaped = False
    string_start = string_end = -1
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
                string_end = i
            continue
        if ch == '"':
            in_string = True
            string_start = i
        elif ch in _CLOSERS:
            stack.append(ch)
        elif ch in _OPENERS:
            if not stack or stack[-1] != _OPENERS[ch]:
                return None
            stack.pop()
    return _ScanState(stack, in_string, string_start, string_end)


def _trim_dangling_tail(text: str) -> str | None:
    while True:
        text = text.rstrip()
        state = _scan(text)
        if state is None or state.in_string:
            return None
        if text.endswith(","):
            text = text[:-1]
            continue
        if text.endswith(":"):
            # drop the key that lost its value
            text = text[: state.last_string_start]
            continue
        partial = _PARTIAL_LITERAL_RE.search(text)
        if partial:
            text = text[: partial.start()]
            continue
        if (
            text.endswith('"')
            and state.last_string_end == len(text) - 1
            and state.stack
            and state.stack[-1] == "{"
        ):
            before = text[: state.last_string_start].rstrip()
            if before.endswith(("{", ",")):
                text = before
                continue
        return text


def balance_braces(text: str) -> str | None:
    """Close every unmatched ``{`` / ``[`` after trimming a dangling tail.

    Returns None when the text is cut inside a string literal or has a
    mismatched closer; those are not guessed at.
    """
    trimmed = _trim_dangling_tail(text)
    if trimmed is None:
        return None
    state = _scan(trimmed)
    if state is None:
        return None
    return trimmed + "".join(_CLOSERS[opener] for opener in reversed(state.stack))


def recover_balanced(text: str) -> dict[str, Any] | None:
    if EVALUATIONS_MARKER not in text:
        return None
    repaired = balance_braces(text)
    if repaired is None:
        return None
    try:
        parsed = json.loads(repaired)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


CANDIDATE_STRATEGIES: tuple[RecoveryStrategy, ...] = (recover_fields, recover_balanced)
EVALUATION_STRATEGIES: tuple[RecoveryStrategy, ...] = (recover_balanced,)


def _parse_object(raw: str, strategies: tuple[RecoveryStrategy, ...]) -> dict[str, Any]:
    text = strip_code_fences(raw)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        for strategy in strategies:
            recovered = strategy(text)
            if recovered is not None:
                log.warning(
                    "Recovered malformed completion via %s (%s)", strategy.__name__, e
                )
                return recovered
        raise ParseError(str(e), raw[:RAW_PREVIEW_CHARS]) from e
    if not isinstance(parsed, dict):
        raise ParseError(
            f"Expected a JSON object, got {type(parsed).__name__}",
            raw[:RAW_PREVIEW_CHARS],
        )
    return parsed


def _text(value: Any) -> str:
    return value if isinstance(value, str) else str(value)


def parse_candidate(raw: str) -> SongCandidate:
    """Parse a song generation completion into a ``SongCandidate``."""
    data = _parse_object(raw, CANDIDATE_STRATEGIES)
    name = data.get("name")
    style = data.get("style")
    if style is None:
        style = data.get("style_description")
    lyrics = data.get("lyrics")
    return SongCandidate(
        name=_text(name) if name is not None else "Untitled",
        style=_text(style) if style is not None else "",
        lyrics=_text(lyrics) if lyrics is not None else "",
    )


def parse_json_object(raw: str) -> dict[str, Any]:
    """Fence-stripped strict parse with no recovery."""
    return _parse_object(raw, ())


def parse_evaluation_payload(raw: str) -> dict[str, Any]:
    """Parse an orchestrator completion, returning the object as-is."""
    return _parse_object(raw, EVALUATION_STRATEGIES)


def parse_evaluation_bundle(raw: str) -> EvaluationBundle:
    """Parse an orchestrator completion into a validated ``EvaluationBundle``."""
    data = parse_evaluation_payload(raw)
    try:
        return EvaluationBundle.model_validate(data)
    except ValidationError as e:
        raise ParseError(
            f"Evaluation payload has an unexpected shape: {e.error_count()} error(s)",
            raw[:RAW_PREVIEW_CHARS],
        ) from e
