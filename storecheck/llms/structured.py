from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```$", re.DOTALL)


def _loads(s: str) -> Optional[Any]:
    try:
        return json.loads(s)
    except ValueError:
        return None


def strip_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) block."""
    s = text.strip()
    m = _FENCE_RE.match(s)
    if m:
        return m.group(1).strip()
    return s


def decode_json(text: Optional[str], *, array: bool = False) -> Optional[Any]:
    """
    Best-effort structured decoder. Attempts, in order:
    - strict parse of the raw text
    - parse after stripping markdown fences
    - parse of the outermost {...} (or [...]) substring
    Returns None when every attempt fails; never raises.
    """
    if not text:
        return None

    want = list if array else dict
    open_ch, close_ch = ("[", "]") if array else ("{", "}")

    obj = _loads(text.strip())
    if isinstance(obj, want):
        return obj

    s = strip_fences(text)
    obj = _loads(s)
    if isinstance(obj, want):
        return obj

    start = s.find(open_ch)
    end = s.rfind(close_ch)
    if start != -1 and end > start:
        obj = _loads(s[start : end + 1])
        if isinstance(obj, want):
            return obj

    return None


def extract_json(text: str) -> Dict[str, Any]:
    """Decode a JSON object; {} on failure."""
    obj = decode_json(text)
    return obj if obj is not None else {}


def extract_json_array(text: str) -> List[Any]:
    """Decode a JSON array; [] on failure."""
    obj = decode_json(text, array=True)
    return obj if obj is not None else []

