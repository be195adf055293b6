"""Assemble streamed function-call arguments into JSON objects."""

import json
from typing import Any, Dict, Optional, Tuple

from .errors import ARGS_JSON_PARSE_ERROR, ARGS_NOT_OBJECT, Diagnostic


def is_complete_json_object(text: str) -> bool:
    """
    Cheap balance check run before attempting a real parse.

    True when the trimmed text starts with '{', ends with '}', brace depth
    returns to zero and no string literal is left open. Braces inside
    string literals (including escaped quotes) are ignored.
    """
    stripped = text.strip()
    if not stripped.startswith('{') or not stripped.endswith('}'):
        return False

    depth = 0
    in_string = False
    escaped = False
    for ch in stripped:
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth = max(0, depth - 1)

    return depth == 0 and not in_string


def parse_arguments(text: str) -> Tuple[Optional[Dict[str, Any]], Optional[Diagnostic]]:
    """
    Parse an argument buffer that passed the balance check.

    Returns (object, None) on success, or (None, diagnostic) when the text
    is not valid JSON or decodes to something other than an object.
    """
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        return None, Diagnostic.for_buffer(ARGS_JSON_PARSE_ERROR, str(e), text)

    if not isinstance(value, dict):
        return None, Diagnostic.for_buffer(
            ARGS_NOT_OBJECT, 'Function call arguments is not an object', text
        )
    return value, None
