"""
Notion Property Codecs

Pure functions turning a scalar value into the request shape Notion expects
for a property update.
"""

from typing import Any, Callable, Dict, List, Union

Codec = Callable[[Any], Dict[str, Any]]


def _text_spans(value: str) -> List[Dict[str, Any]]:
    return [{"text": {"content": str(value)}}]


def parse_multi_select(text: str) -> List[Dict[str, str]]:
    """
    Split a comma-separated string into multi-select options.

    Whitespace is trimmed, empty entries dropped and duplicates collapsed,
    keeping the first occurrence.

    Args:
        text: e.g. "Hiking, Kayaking, Hiking"

    Returns:
        [{"name": "Hiking"}, {"name": "Kayaking"}]
    """
    seen = set()
    options = []
    for part in str(text).split(","):
        name = part.strip()
        if name and name not in seen:
            seen.add(name)
            options.append({"name": name})
    return options


def rich_text(value: str) -> Dict[str, Any]:
    return {"rich_text": _text_spans(value)}


def title(value: str) -> Dict[str, Any]:
    return {"title": _text_spans(value)}


def select(value: str) -> Dict[str, Any]:
    return {"select": {"name": str(value).strip()}}


def multi_select(value: Union[str, List[str]]) -> Dict[str, Any]:
    if isinstance(value, (list, tuple)):
        value = ",".join(str(v) for v in value)
    return {"multi_select": parse_multi_select(value)}


def number(value: Union[int, float]) -> Dict[str, Any]:
    return {"number": value}


CODECS: Dict[str, Codec] = {
    "rich_text": rich_text,
    "title": title,
    "select": select,
    "multi_select": multi_select,
    "number": number,
}
