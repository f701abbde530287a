"""
Permissive JSON recovery for model output.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")


def parse_ai_json(content: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Parse a JSON object out of model text.

    Tries the raw text, then the text with code fences stripped, then the
    widest {...} span. Anything that is not an object yields None.
    """
    if not content or not content.strip():
        return None
    try:
        parsed: Any = json.loads(content)
    except json.JSONDecodeError:
        cleaned = _FENCE.sub("", content).strip()
        match = _OBJECT_SPAN.search(cleaned)
        if not match:
            return None
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None
