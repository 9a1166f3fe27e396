"""Text extraction from recognizer response bodies.

Two response shapes are understood:
- OpenAI-compatible chat completions (used by most proxies)
- Google generative-language ``generateContent``
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from ..exceptions import RecognizerError


def _chat_text(choice: Any) -> Optional[str]:
    if not isinstance(choice, Mapping):
        return None
    message = choice.get("message") or {}
    content = message.get("content") if isinstance(message, Mapping) else None
    if isinstance(content, list):
        # Some proxies return content as a list of typed parts
        content = "".join(
            part.get("text", "") for part in content if isinstance(part, Mapping)
        )
    return content or choice.get("text")


def _google_text(payload: Mapping[str, Any]) -> Optional[str]:
    try:
        return payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None


def extract_response_text(payload: Mapping[str, Any]) -> str:
    """Return the model's text from a response body.

    Raises:
        RecognizerError: the body reports an error or holds no text
    """
    if not isinstance(payload, Mapping):
        raise RecognizerError(f"Unexpected response body: {type(payload).__name__}")

    text: Optional[str] = None
    choices = payload.get("choices")
    if isinstance(choices, list) and choices:
        text = _chat_text(choices[0])
    elif "candidates" in payload:
        text = _google_text(payload)

    if not text and payload.get("error"):
        error = payload["error"]
        message = error.get("message") if isinstance(error, Mapping) else None
        raise RecognizerError(f"Recognizer error: {message or json.dumps(error)}")

    if not text:
        raise RecognizerError("Recognizer returned empty content")
    return text
