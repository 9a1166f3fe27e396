"""External recognizer result handling.

- parse.py: ordered recovery of boxes from free-form model text
- normalizer.py: scale / axis-order disambiguation into Regions
- response.py: text extraction from provider response bodies

Network transport and authentication are left to the caller.
"""

from __future__ import annotations

from .normalizer import detect_scale, normalize, regions_from_text, resolve_box
from .parse import Parsed, Unparsable, parse_boxes
from .response import extract_response_text

__all__ = [
    "Parsed",
    "Unparsable",
    "parse_boxes",
    "detect_scale",
    "resolve_box",
    "normalize",
    "regions_from_text",
    "extract_response_text",
]
