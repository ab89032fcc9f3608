"""
Notion Property Readers

Kind-aware helpers for reading page properties, deciding emptiness, and
building "fill only what is empty" update sets.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..config.constants import UNNAMED_FALLBACK
from ..utils.common_utils import extract_text_from_rich_text, safe_get

TEXT_KINDS = ("rich_text", "title")


def _kind(prop: Dict[str, Any]) -> Optional[str]:
    """Resolve a property's kind, tolerating payloads without a "type" key."""
    kind = prop.get("type")
    if kind:
        return kind
    for candidate in ("number", "rich_text", "title", "select", "multi_select"):
        if candidate in prop:
            return candidate
    return None


def is_empty(prop: Optional[Dict[str, Any]]) -> bool:
    """
    Decide whether a property value is empty.

    Empty means: no spans for text and title, unset select, no options for
    multi-select, null number. Absent properties and unknown kinds count as
    empty.
    """
    if not prop:
        return True

    kind = _kind(prop)
    if kind == "number":
        return prop.get("number") is None
    if kind in TEXT_KINDS:
        return len(prop.get(kind) or []) == 0
    if kind == "select":
        return not prop.get("select")
    if kind == "multi_select":
        return len(prop.get("multi_select") or []) == 0
    return True


def has_empty_properties(page: Dict[str, Any], property_names: Iterable[str]) -> bool:
    """
    Return True if any of the named properties is empty on the page.

    Pages without a properties map are never eligible.
    """
    properties = page.get("properties")
    if properties is None:
        return False
    return any(is_empty(properties.get(name)) for name in property_names)


def extract_title(
    page: Dict[str, Any],
    fallback: str = UNNAMED_FALLBACK,
    property_name: str = "Name",
) -> str:
    """Return the page's title text, or the fallback when it is blank."""
    prop = safe_get(page, ["properties", property_name])
    if not prop or _kind(prop) != "title":
        return fallback
    text = extract_text_from_rich_text(prop.get("title")).strip()
    return text or fallback


def get_text(prop: Optional[Dict[str, Any]]) -> str:
    """Plain text of a rich_text or title property ("" when empty)."""
    if not prop:
        return ""
    kind = _kind(prop)
    if kind not in TEXT_KINDS:
        return ""
    return extract_text_from_rich_text(prop.get(kind))


def get_select(prop: Optional[Dict[str, Any]]) -> Optional[str]:
    return safe_get(prop, ["select", "name"])


def get_multi_select(prop: Optional[Dict[str, Any]]) -> List[str]:
    options = safe_get(prop, ["multi_select"], []) or []
    return [o.get("name") for o in options if o.get("name")]


def get_number(prop: Optional[Dict[str, Any]]) -> Optional[float]:
    return safe_get(prop, ["number"])


def get_checkbox(prop: Optional[Dict[str, Any]]) -> bool:
    return bool(safe_get(prop, ["checkbox"], False))


def get_date_start(prop: Optional[Dict[str, Any]]) -> str:
    return safe_get(prop, ["date", "start"]) or ""


def get_relation_ids(prop: Optional[Dict[str, Any]]) -> List[str]:
    relations = safe_get(prop, ["relation"], []) or []
    return [r["id"] for r in relations if r.get("id")]


def build_property_updates(
    page: Dict[str, Any],
    data: Dict[str, Any],
    field_mappings: Sequence,
) -> Dict[str, Dict[str, Any]]:
    """
    Build a property update containing only currently-empty targets.

    Args:
        page: Notion page dict
        data: One AI result object
        field_mappings: FieldMapping objects or (property, key, codec) tuples

    Returns:
        Mapping of property name to request fragment; empty when nothing to do
    """
    properties = page.get("properties")
    if properties is None:
        return {}

    updates = {}
    for mapping in field_mappings:
        if isinstance(mapping, tuple):
            property_name, result_key, codec = mapping
        else:
            property_name, result_key, codec = (
                mapping.property_name, mapping.result_key, mapping.codec
            )

        value = data.get(result_key)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        if is_empty(properties.get(property_name)):
            update = codec(value)
            if update.get("multi_select") == []:
                continue
            updates[property_name] = update
    return updates
