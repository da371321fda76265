"""
Persona marker parsing.

When the persona is unknown the model is asked to append a marker such as
``[GENDER: female]`` once it can tell from the customer's wording. The
marker must never reach the customer or the stored history.
"""

import re
from typing import Optional

_MARKER_RE = re.compile(r"[ \t]*\[\s*GENDER\s*:\s*(male|female)\s*\][ \t]*", re.IGNORECASE)


def _replace(match: re.Match) -> str:
    # Keep a single space only when the marker sat between two words
    token = match.group(0)
    if token[:1] in (" ", "\t") and token[-1:] in (" ", "\t"):
        return " "
    return ""


def extract_persona_marker(text: str) -> tuple[str, Optional[str]]:
    """
    Strip persona markers from model output.

    Args:
        text: Raw model text

    Returns:
        (cleaned text, persona) where persona is "male", "female" or None.
        The first marker decides the persona; all markers are removed.
    """
    if not text:
        return text or "", None

    match = _MARKER_RE.search(text)
    if match is None:
        return text, None

    persona = match.group(1).lower()
    cleaned = _MARKER_RE.sub(_replace, text)
    return cleaned.strip(), persona


def contains_persona_marker(text: str) -> bool:
    return bool(text) and _MARKER_RE.search(text) is not None
