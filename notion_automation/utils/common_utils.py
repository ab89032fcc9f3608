"""
Common Utilities

This module provides common utility functions used across the project.
"""

import time
from typing import Any, Dict, List, Optional


def safe_get(obj, path, default=None):
    """
    Safely get a value from a nested dictionary or list using a path.
    Args:
        obj: Dictionary or list to get value from
        path: List of keys/indices or a single key/index
        default: Value to return if path is not found
    Returns:
        Value at path or default if not found
    """
    if obj is None:
        return default
    if path is None or path == []:
        return default
    if not isinstance(path, list):
        path = [path]
    current = obj
    for key in path:
        if isinstance(current, dict):
            if key not in current:
                return default
            current = current[key]
        elif isinstance(current, list) and isinstance(key, int):
            if 0 <= key < len(current):
                current = current[key]
            else:
                return default
        else:
            return default
    return current


def extract_text_from_rich_text(rich_text_array: Optional[List[Dict[str, Any]]]) -> str:
    """Extract plain text from Notion rich_text array."""
    if not rich_text_array:
        return ""
    return "".join(
        item.get("plain_text") or safe_get(item, ["text", "content"], "")
        for item in rich_text_array
    )


def pause(seconds: float) -> None:
    """Sleep between sequential third-party calls."""
    if seconds > 0:
        time.sleep(seconds)
