"""JSON repair for model output.

Models asked for JSON regularly wrap it in markdown fences, add prose around
it, leave trailing commas, forget to quote keys, or get cut off mid-value.
``repair`` applies a fixed sequence of textual fixes, re-trying a strict
parse after each one, and reports which fixes it needed.

Text that already parses is returned untouched with an empty fix list.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..utils import truncate

EXCERPT_LENGTH = 500

# Fix names, in the order they are tried.
EXTRACT_JSON = "extract_json"
REMOVE_TRAILING_COMMAS = "remove_trailing_commas"
QUOTE_BARE_KEYS = "quote_bare_keys"
REMOVE_CONTROL_CHARACTERS = "remove_control_characters"
CLOSE_UNTERMINATED_STRING = "close_unterminated_string"
BALANCE_BRACKETS = "balance_brackets"
TRIM_INCOMPLETE_TAIL = "trim_incomplete_tail"

_FENCE_OPEN_RE = re.compile(r"```[a-zA-Z0-9_-]*[ \t]*\n?")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_$][A-Za-z0-9_$]*)(\s*:)")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

_CLOSERS = {"{": "}", "[": "]"}


@dataclass(frozen=True)
class RepairResult:
    """Outcome of a repair attempt.

    On success ``value`` holds the parsed data and ``fixes`` names every
    transform that was applied. On failure ``error`` holds the original parse
    error and ``excerpt`` the start of the input.
    """

    success: bool
    value: Any = None
    fixes: tuple[str, ...] = field(default_factory=tuple)
    error: Optional[str] = None
    excerpt: str = ""

    @property
    def repaired(self) -> bool:
        return self.success and bool(self.fixes)


# ---------------------------------------------------------------------------
# String-aware scanning
# ---------------------------------------------------------------------------

def _split_strings(text: str) -> list[tuple[bool, str]]:
    """Split *text* into ``(is_string, chunk)`` segments.

    String chunks keep their quotes. A string that never closes runs to the
    end of the text.
    """
    segments: list[tuple[bool, str]] = []
    buf: list[str] = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            buf.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                segments.append((True, "".join(buf)))
                buf = []
                in_string = False
        elif char == '"':
            if buf:
                segments.append((False, "".join(buf)))
            buf = [char]
            in_string = True
        else:
            buf.append(char)
    if buf:
        segments.append((in_string, "".join(buf)))
    return segments


def _outside_strings(text: str, fn: Callable[[str], str]) -> str:
    """Apply *fn* to every part of *text* that is not inside a string literal."""
    return "".join(chunk if is_string else fn(chunk) for is_string, chunk in _split_strings(text))


def _ends_inside_string(text: str) -> bool:
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
    return in_string


# ---------------------------------------------------------------------------
# Transforms
# ---------------------------------------------------------------------------

def _outermost(text: str) -> tuple[str, bool]:
    """Return the outermost ``{...}``/``[...]`` of *text* and whether it closes.

    The scan skips string literals, so brackets and fences inside values are
    ignored. A value that never closes runs to the end of the text.
    """
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return text.strip(), False
    start = min(starts)
    opener = text[start]
    closer = _CLOSERS[opener]

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[start:i + 1], True
    return text[start:].rstrip(), False


def _strip_fences(text: str) -> str:
    """Remove a fence opening before the JSON and the last fence closing after it."""
    opening = _FENCE_OPEN_RE.search(text)
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if opening and (not starts or opening.start() < min(starts)):
        text = text[opening.end():]
    closing = text.rfind("```")
    if closing != -1 and not _ends_inside_string(text[:closing]):
        text = text[:closing]
    return text


def _parses(text: str) -> bool:
    try:
        json.loads(text)
    except json.JSONDecodeError:
        return False
    return True


def _extract_json(text: str) -> str:
    """Drop markdown fences and any prose outside the outermost ``{...}``/``[...]``.

    The raw text is scanned first, so a fence inside a string value (a README
    in a code response) never cuts the payload short. Fences are stripped
    only when that scan gives nothing that parses.
    """
    candidate, closed = _outermost(text)
    if closed and _parses(candidate):
        return candidate
    if "```" in text:
        fenced, fenced_closed = _outermost(_strip_fences(text))
        if fenced_closed or not closed:
            return fenced
    # Never closed: keep everything from the start, later fixes may close it.
    return candidate


def _remove_trailing_commas(text: str) -> str:
    return _outside_strings(text, lambda chunk: _TRAILING_COMMA_RE.sub(r"\1", chunk))


def _quote_bare_keys(text: str) -> str:
    return _outside_strings(text, lambda chunk: _BARE_KEY_RE.sub(r'\1"\2"\3', chunk))


def _remove_control_characters(text: str) -> str:
    # Raw newlines and tabs are legal between tokens; inside strings they are not.
    def _clean_string(chunk: str) -> str:
        chunk = _CONTROL_CHARS_RE.sub("", chunk)
        return chunk.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")

    return "".join(
        _clean_string(chunk) if is_string else _CONTROL_CHARS_RE.sub("", chunk)
        for is_string, chunk in _split_strings(text)
    )


def _close_unterminated_string(text: str) -> str:
    if not _ends_inside_string(text):
        return text
    if text.endswith("\\"):
        text = text[:-1]
    return text + '"'


def _balance_brackets(text: str) -> str:
    """Append the closers for every still-open brace/bracket.

    Leaves the text unchanged when a closer without a matching opener is
    found, since the right fix is then ambiguous.
    """
    stack: list[str] = []
    for is_string, chunk in _split_strings(text):
        if is_string:
            continue
        for char in chunk:
            if char in _CLOSERS:
                stack.append(_CLOSERS[char])
            elif char in ("}", "]"):
                if not stack or stack[-1] != char:
                    return text
                stack.pop()
    if not stack:
        return text

    body = text.rstrip()
    while body.endswith(",") or body.endswith(":"):
        if body.endswith(":"):
            # Dangling key with no value: give it one.
            body = body + " null"
            break
        body = body[:-1].rstrip()
    return body + "".join(reversed(stack))


def _trim_incomplete_tail(text: str) -> str:
    """Cut everything after the last member separator and close what was open there.

    Last resort for output truncated in the middle of a member, e.g. a key
    with no value yet.
    """
    stack: list[str] = []
    cut: Optional[tuple[int, list[str]]] = None
    pos = 0
    for is_string, chunk in _split_strings(text):
        if not is_string:
            for offset, char in enumerate(chunk):
                if char in _CLOSERS:
                    stack.append(_CLOSERS[char])
                elif char in ("}", "]"):
                    if not stack or stack[-1] != char:
                        return text
                    stack.pop()
                elif char == "," and stack:
                    cut = (pos + offset, list(stack))
        pos += len(chunk)
    if cut is None:
        return text
    index, open_closers = cut
    return text[:index].rstrip() + "".join(reversed(open_closers))


_TRANSFORMS: tuple[tuple[str, Callable[[str], str]], ...] = (
    (EXTRACT_JSON, _extract_json),
    (REMOVE_TRAILING_COMMAS, _remove_trailing_commas),
    (QUOTE_BARE_KEYS, _quote_bare_keys),
    (REMOVE_CONTROL_CHARACTERS, _remove_control_characters),
    (CLOSE_UNTERMINATED_STRING, _close_unterminated_string),
    (BALANCE_BRACKETS, _balance_brackets),
    (TRIM_INCOMPLETE_TAIL, _trim_incomplete_tail),
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def repair(text: str) -> RepairResult:
    """Recover a JSON value from *text*.

    Tries a strict parse first. If that fails, applies each transform in
    order (extract, trailing commas, bare keys, control characters,
    unterminated string, bracket balancing, truncated tail), keeping every
    change and re-parsing after each one. Stops at the first successful parse.

    Returns:
        A successful ``RepairResult`` with the fixes that were applied, or a
        failed one carrying the original parse error and an excerpt.
    """
    try:
        return RepairResult(success=True, value=json.loads(text))
    except (json.JSONDecodeError, TypeError) as exc:
        original_error = str(exc)

    fixes: list[str] = []
    current = text
    for name, transform in _TRANSFORMS:
        fixed = transform(current)
        if fixed == current:
            continue
        fixes.append(name)
        current = fixed
        try:
            value = json.loads(current)
        except json.JSONDecodeError:
            continue
        return RepairResult(success=True, value=value, fixes=tuple(fixes))

    return RepairResult(
        success=False,
        fixes=tuple(fixes),
        error=original_error,
        excerpt=truncate(text, EXCERPT_LENGTH),
    )
