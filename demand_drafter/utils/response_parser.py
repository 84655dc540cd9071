"""
Model response parsing
The model is asked for bare JSON but often wraps it in markdown fences or
adds a sentence around it.
"""

import json
import re
from typing import Any, Dict

from ..errors import ResponseParseError


def strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith('```'):
        text = re.sub(r'^```\w*\n?', '', text)
        text = re.sub(r'\n?```\s*$', '', text)
    return text.strip()


def parse_json_object(text: str) -> Dict[str, Any]:
    """Parse a JSON object out of a raw model response."""
    cleaned = strip_code_fences(text or '')

    try:
        result = json.loads(cleaned)
    except json.JSONDecodeError:
        # Try the outermost {...} span
        start = cleaned.find('{')
        end = cleaned.rfind('}') + 1
        if start < 0 or end <= start:
            raise ResponseParseError('Model response did not contain a JSON object', text or '')
        try:
            result = json.loads(cleaned[start:end])
        except json.JSONDecodeError as e:
            raise ResponseParseError(f'Model response was not valid JSON: {e}', text or '') from e

    if not isinstance(result, dict):
        raise ResponseParseError('Model response was JSON but not an object', text or '')
    return result
