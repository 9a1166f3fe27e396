"""Recovery of bounding boxes from recognizer text.

Vision models do not reliably return bare JSON. The text goes through an
ordered chain of parse attempts, stopping at the first that yields boxes:

1. direct: the whole text is JSON
2. fenced: JSON inside a ```json ... ``` block
3. bare_object: the outermost {...} span
4. array_recovery: every complete [a, b, c, d] array with values in [0, 1]
   (handles truncated responses)

Each attempt returns a tagged result, Parsed or Unparsable.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, List, Sequence, Union

log = logging.getLogger("Recognizer")

_FENCED_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_NUMBER = r"\s*(\d+\.?\d*|\.\d+)\s*"
_BOX_ARRAY_RE = re.compile(r"\[" + ",".join([_NUMBER] * 4) + r"\]")


@dataclass(frozen=True)
class Parsed:
    """Boxes recovered by one strategy."""
    boxes: List[Any]
    strategy: str


@dataclass(frozen=True)
class Unparsable:
    """No usable boxes; ``reason`` says why."""
    reason: str


ParseResult = Union[Parsed, Unparsable]


def _boxes_from_json(text: str, strategy: str) -> ParseResult:
    try:
        data = json.loads(text)
    except ValueError as e:
        return Unparsable(f"{strategy}: invalid JSON ({e})")

    if isinstance(data, dict):
        boxes = data.get("boxes")
    elif isinstance(data, list):
        boxes = data
    else:
        boxes = None

    if not isinstance(boxes, list) or not boxes:
        return Unparsable(f"{strategy}: no boxes")
    return Parsed(boxes, strategy)


def parse_direct(text: str) -> ParseResult:
    return _boxes_from_json(text.strip(), "direct")


def parse_fenced(text: str) -> ParseResult:
    match = _FENCED_RE.search(text)
    if not match:
        return Unparsable("fenced: no code block")
    return _boxes_from_json(match.group(1).strip(), "fenced")


def parse_bare_object(text: str) -> ParseResult:
    match = _OBJECT_RE.search(text)
    if not match:
        return Unparsable("bare_object: no object")
    return _boxes_from_json(match.group(0), "bare_object")


def recover_arrays(text: str) -> ParseResult:
    """Collect complete 4-number arrays whose values all lie in [0, 1]."""
    boxes = []
    for match in _BOX_ARRAY_RE.finditer(text):
        nums = [float(g) for g in match.groups()]
        if all(0.0 <= n <= 1.0 for n in nums):
            boxes.append(nums)

    if not boxes:
        return Unparsable("array_recovery: no box arrays")
    log.info(f"[JSON Recovery] Extracted {len(boxes)} boxes from truncated response")
    return Parsed(boxes, "array_recovery")


PARSE_CHAIN: Sequence[Callable[[str], ParseResult]] = (
    parse_direct,
    parse_fenced,
    parse_bare_object,
    recover_arrays,
)


def parse_boxes(text: str) -> ParseResult:
    """Run the parse chain over recognizer text.

    Returns:
        The first Parsed result, or Unparsable listing every failure
    """
    reasons = []
    for attempt in PARSE_CHAIN:
        result = attempt(text)
        if isinstance(result, Parsed):
            log.debug(f"Parsed {len(result.boxes)} boxes via {result.strategy}")
            return result
        reasons.append(result.reason)
    return Unparsable("; ".join(reasons))
