"""Recovery of JSON payloads from free-text model completions.

Completions routinely arrive as near-JSON: wrapped in markdown fences, with
trailing commas, single quotes, bare keys or an array cut off mid-object.
``recover`` runs an ordered list of strategies over the text and returns the
first payload one of them produces:

1. ``direct``    strict parse of the fence-stripped text
2. ``repaired``  fixed set of idempotent rewrites, then strict parse
3. ``extracted`` flat item objects pulled out one by one and re-enveloped

Strategies return a ``RecoveryResult``; only ``recover`` raises.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, List, Optional, Tuple

from .config import MAX_RESPONSE_CHARS
from .errors import ParseError
from .models import (
    TIER_DIRECT,
    TIER_EXTRACTED,
    TIER_FAILED,
    TIER_REPAIRED,
    RecoveryResult,
)

logger = logging.getLogger(__name__)

ENVELOPE_FLASHCARDS = "flashcards"
ENVELOPE_QUESTIONS = "questions"
NAMED_ARRAYS = (ENVELOPE_FLASHCARDS, ENVELOPE_QUESTIONS)

FENCE_RE = re.compile(r"```(?:json|JSON)?\s*")
THINK_TAG_RE = re.compile(r"^\s*<think>.*?</think>", re.DOTALL | re.IGNORECASE)
BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z0-9_]+)(\s*:)")
TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
FLAT_OBJECT_RE = re.compile(r"\{[^{}]*\}")

LOG_PREVIEW_CHARS = 500

Strategy = Callable[[str, Optional[str]], RecoveryResult]


def normalize(text: str) -> str:
    cleaned = THINK_TAG_RE.sub("", text or "")
    cleaned = FENCE_RE.sub("", cleaned)
    return cleaned.strip()


def _loads(text: str) -> Tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (ValueError, RecursionError):
        return False, None


# ---------------------------------------------------------------------------
# Lexical helpers
# ---------------------------------------------------------------------------


def _split_literals(text: str) -> List[Tuple[bool, str]]:
    """Split text into (is_string_literal, chunk) pieces.

    Both double- and single-quoted literals are recognised and escapes are
    honoured. An unterminated literal runs to the end of the text.
    """
    pieces: List[Tuple[bool, str]] = []
    code_start = 0
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        if char not in "\"'":
            index += 1
            continue
        if index > code_start:
            pieces.append((False, text[code_start:index]))
        end = index + 1
        escaped = False
        while end < length:
            current = text[end]
            if escaped:
                escaped = False
            elif current == "\\":
                escaped = True
            elif current == char:
                break
            end += 1
        pieces.append((True, text[index : end + 1]))
        index = end + 1
        code_start = index
    if code_start < length:
        pieces.append((False, text[code_start:]))
    return pieces


def _double_quote(literal: str) -> str:
    if not literal.startswith("'") or len(literal) < 2 or not literal.endswith("'"):
        return literal
    inner = literal[1:-1].replace("\\'", "'")
    inner = re.sub(r'(?<!\\)"', r'\\"', inner)
    return f'"{inner}"'


def _rewrite_syntax(text: str) -> str:
    """Quote fixes and trailing-comma removal, applied outside string literals."""
    out = []
    for is_literal, chunk in _split_literals(text):
        if is_literal:
            out.append(_double_quote(chunk))
        else:
            chunk = BARE_KEY_RE.sub(r'\1"\2"\3', chunk)
            chunk = TRAILING_COMMA_RE.sub(r"\1", chunk)
            out.append(chunk)
    return "".join(out)


def _strip_trailing_commas(text: str) -> str:
    return "".join(
        chunk if is_literal else TRAILING_COMMA_RE.sub(r"\1", chunk)
        for is_literal, chunk in _split_literals(text)
    )


def _scan_structure(text: str, start: int = 0):
    """Yield (index, char, in_string) for every character from ``start``."""
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            yield index, char, True
            continue
        if char == '"':
            in_string = True
            yield index, char, True
            continue
        yield index, char, False


def _open_brackets(text: str) -> List[str]:
    stack: List[str] = []
    for _, char, in_string in _scan_structure(text):
        if in_string:
            continue
        if char in "{[":
            stack.append(char)
        elif char in "}]" and stack:
            stack.pop()
    return stack


def _close_named_array(text: str, name: str) -> str:
    """Cut a truncated ``"name": [`` array back to its complete objects.

    Returns the text unchanged when the array is already closed or when no
    complete object precedes the truncation point.
    """
    match = re.search(r'"%s"\s*:\s*\[' % re.escape(name), text)
    if not match:
        return text
    body_start = match.end()

    depth = 0
    last_complete_end = -1
    for index, char, in_string in _scan_structure(text, body_start):
        if in_string:
            continue
        if char in "{[":
            depth += 1
        elif char in "}]":
            if depth == 0:
                if char == "]":
                    return text
                break
            depth -= 1
            if depth == 0 and char == "}":
                last_complete_end = index + 1

    if last_complete_end < 0:
        return text

    closers = {"{": "}", "[": "]"}
    opened = _open_brackets(text[:body_start])
    tail = "".join(closers[char] for char in reversed(opened))
    return text[:last_complete_end] + tail


def repair_json_text(text: str) -> str:
    cleaned = text.strip()
    if not cleaned.startswith("{"):
        cleaned = "{" + cleaned
    cleaned = _rewrite_syntax(cleaned)
    # Arrays are re-closed before the closing brace is added so a brace
    # appended to truncated text cannot complete a half-written item.
    for name in NAMED_ARRAYS:
        if f'"{name}"' in cleaned:
            cleaned = _close_named_array(cleaned, name)
    if not cleaned.endswith("}"):
        cleaned = _strip_trailing_commas(cleaned + "}")
    return cleaned


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def _has_key(text: str, key: str) -> bool:
    return re.search(r"""(?:["']|\b)%s["']?\s*:""" % re.escape(key), text) is not None


def _guess_envelope(text: str) -> Optional[str]:
    if not _has_key(text, "question"):
        return None
    if _has_key(text, "answer"):
        return ENVELOPE_FLASHCARDS
    if _has_key(text, "A") or _has_key(text, "correct"):
        return ENVELOPE_QUESTIONS
    return None


def _is_item_fragment(fragment: str, envelope: str) -> bool:
    if not _has_key(fragment, "question"):
        return False
    if envelope == ENVELOPE_FLASHCARDS:
        return _has_key(fragment, "answer")
    return _has_key(fragment, "A") or _has_key(fragment, "correct")


def parse_direct(text: str, envelope: Optional[str] = None) -> RecoveryResult:
    ok, payload = _loads(text)
    if ok:
        return RecoveryResult(TIER_DIRECT, payload)
    return RecoveryResult(TIER_FAILED)


def parse_repaired(text: str, envelope: Optional[str] = None) -> RecoveryResult:
    repaired = repair_json_text(text[:MAX_RESPONSE_CHARS])
    ok, payload = _loads(repaired)
    if ok:
        return RecoveryResult(TIER_REPAIRED, payload)
    logger.debug("Repaired text still not valid JSON: %s", repaired[:LOG_PREVIEW_CHARS])
    return RecoveryResult(TIER_FAILED)


def parse_extracted(text: str, envelope: Optional[str] = None) -> RecoveryResult:
    bounded = text[:MAX_RESPONSE_CHARS]
    envelope = envelope or _guess_envelope(bounded)
    if envelope not in NAMED_ARRAYS:
        return RecoveryResult(TIER_FAILED)

    items = []
    for fragment in FLAT_OBJECT_RE.findall(bounded):
        if not _is_item_fragment(fragment, envelope):
            continue
        ok, item = _loads(_rewrite_syntax(fragment))
        if ok and isinstance(item, dict):
            items.append(item)
    if not items:
        return RecoveryResult(TIER_FAILED)
    return RecoveryResult(TIER_EXTRACTED, {envelope: items})


STRATEGIES: Tuple[Strategy, ...] = (parse_direct, parse_repaired, parse_extracted)


def run_recovery(raw_text: str, envelope: Optional[str] = None) -> RecoveryResult:
    text = normalize(raw_text)
    for strategy in STRATEGIES:
        result = strategy(text, envelope)
        if result.ok:
            if result.tier != TIER_DIRECT:
                logger.info("Recovered model output via %s tier", result.tier)
            return result
    return RecoveryResult(TIER_FAILED)


def recover(raw_text: str, envelope: Optional[str] = None) -> Any:
    """Return the JSON payload contained in ``raw_text`` or raise ``ParseError``."""
    result = run_recovery(raw_text, envelope)
    if result.ok:
        return result.payload
    preview = (raw_text or "")[:LOG_PREVIEW_CHARS]
    logger.error("Failed to parse model output after all repair attempts: %s", preview)
    raise ParseError("Failed to parse AI response after all repair attempts")
