"""Helpers for reading and building Notion blocks."""

from typing import Any, Dict, Optional

from ..utils.common_utils import extract_text_from_rich_text


def block_type(block: Dict[str, Any]) -> Optional[str]:
    return block.get("type")


def block_text(block: Dict[str, Any]) -> str:
    """Plain text of a block's rich_text, "" for blocks without text."""
    kind = block.get("type")
    data = block.get(kind) or {}
    return extract_text_from_rich_text(data.get("rich_text"))


def is_heading(block: Dict[str, Any], level: Optional[int] = None) -> bool:
    kind = block.get("type") or ""
    if level is None:
        return kind.startswith("heading_")
    return kind == f"heading_{level}"


def is_todo(block: Dict[str, Any]) -> bool:
    return block.get("type") == "to_do"


def is_checked_todo(block: Dict[str, Any]) -> bool:
    return is_todo(block) and bool((block.get("to_do") or {}).get("checked"))


def _text(content: str):
    return [{"type": "text", "text": {"content": content}}] if content else []


def todo_block(content: str = "", checked: bool = False) -> Dict[str, Any]:
    return {
        "object": "block",
        "type": "to_do",
        "to_do": {"rich_text": _text(content), "checked": checked},
    }


def heading_block(content: str, level: int = 2) -> Dict[str, Any]:
    kind = f"heading_{level}"
    return {"object": "block", "type": kind, kind: {"rich_text": _text(content)}}


def bookmark_block(url: str) -> Dict[str, Any]:
    return {"object": "block", "type": "bookmark", "bookmark": {"url": url}}
