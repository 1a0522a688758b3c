"""
Defensive parsing of JSON embedded in model output.

Models wrap JSON in markdown fences or surround it with prose; these helpers
pull out the first object or array and return None instead of raising.
"""

import json
import re
from typing import Any, Dict, List, Optional

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def _strip_fences(text: str) -> str:
    match = _FENCE_RE.search(text)
    return match.group(1) if match else text


def _extract_balanced(text: str, open_char: str, close_char: str) -> Optional[str]:
    """First balanced open/close span, ignoring brackets inside strings."""
    start = text.find(open_char)
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
            elif ch == open_char:
                depth += 1
            elif ch == close_char:
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        start = text.find(open_char, start + 1)
    return None


def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Parse the first JSON object found in `text`, or None."""
    if not text:
        return None
    candidate = _extract_balanced(_strip_fences(text), "{", "}")
    if candidate is None:
        return None
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def extract_json_array(text: Optional[str]) -> Optional[List[Any]]:
    """Parse the first JSON array found in `text`, or None."""
    if not text:
        return None
    candidate = _extract_balanced(_strip_fences(text), "[", "]")
    if candidate is None:
        return None
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, list) else None
