"""
AI Response Parsing

Turns raw model output into validated Python structures. Models sometimes
wrap JSON in markdown fences even when asked not to, so fences are stripped
before decoding.
"""

import json
import re
from typing import Any, Dict, List, Sequence, Tuple

from ..config.constants import ERROR_EMPTY_AI_RESPONSE
from ..exceptions import ResponseParseError, ResponseShapeError

FENCE_PATTERN = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?\s*```$", re.DOTALL | re.IGNORECASE)

KIND_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
}


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` or ``` ... ``` fence, if present."""
    cleaned = (text or "").strip()
    match = FENCE_PATTERN.match(cleaned)
    if match:
        return match.group(1).strip()
    return cleaned


def parse_json_response(text: str) -> Any:
    """
    Decode model output as JSON.

    Raises:
        ResponseParseError: Empty text or invalid JSON
    """
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise ResponseParseError(ERROR_EMPTY_AI_RESPONSE)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ResponseParseError(
            f"Failed to parse AI response as JSON: {e}. Response was: {cleaned[:500]}"
        ) from e


def validate_items(
    data: Any,
    items_key: str,
    fields: Sequence[Tuple[str, str]],
) -> List[Dict[str, Any]]:
    """
    Check decoded JSON against an item schema.

    Args:
        data: Decoded JSON
        items_key: Key holding the result array (e.g. "meals")
        fields: (key, kind) descriptors, kind being "string" or "number"

    Returns:
        The list of result objects

    Raises:
        ResponseShapeError: Missing array or any element not matching
    """
    if not isinstance(data, dict):
        raise ResponseShapeError(f"Expected a JSON object with '{items_key}'")

    items = data.get(items_key)
    if not isinstance(items, list):
        raise ResponseShapeError(f"Response missing '{items_key}' array")

    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ResponseShapeError(f"'{items_key}'[{index}] is not an object")
        for key, kind in fields:
            check = KIND_CHECKS.get(kind)
            if check is None:
                raise ResponseShapeError(f"Unknown field kind '{kind}' for '{key}'")
            if not check(item.get(key)):
                raise ResponseShapeError(
                    f"'{items_key}'[{index}].{key} should be a {kind}, "
                    f"got {type(item.get(key)).__name__}"
                )
    return items


def validate_categorized(data: Any) -> Dict[str, List[str]]:
    """
    Check a {"categorized": {heading: [item, ...]}} response.

    Raises:
        ResponseShapeError: If the mapping or any list is malformed
    """
    if not isinstance(data, dict) or not isinstance(data.get("categorized"), dict):
        raise ResponseShapeError("Response missing 'categorized' object")

    categorized = data["categorized"]
    for heading, items in categorized.items():
        if not isinstance(items, list) or not all(isinstance(i, str) for i in items):
            raise ResponseShapeError(
                f"'categorized'.{heading} should be a list of strings"
            )
    return categorized
