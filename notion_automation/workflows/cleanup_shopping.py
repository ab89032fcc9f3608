"""
Shopping List Cleanup

Nightly tidy of a shopping list page: removes ticked to-dos anywhere in the
block tree and makes sure every section heading keeps an empty to-do under it
so the list is ready to type into.

Required environment variables:
  - NOTION_TOKEN: Notion integration token
  - NOTION_PAGE_ID: Shopping list page ID
"""

from typing import Any, Dict, List, Tuple

from ..config.settings import require_env
from ..exceptions import NotionAPIError
from ..notion.blocks import block_text, is_checked_todo, is_heading, is_todo, todo_block
from ..utils.structured_logger import StructuredLogger
from .runner import build_notion_client, main_for


def find_todo_after_heading(
    blocks: List[Dict[str, Any]], heading_index: int
) -> Tuple[bool, List[Dict[str, Any]]]:
    """
    Look at the blocks following a heading.

    Paragraphs are skipped over and collected; a to-do means the section is
    fine; anything else ends the search.

    Returns:
        (has_todo, paragraphs_between)
    """
    paragraphs = []
    for block in blocks[heading_index + 1:]:
        if block.get("type") == "paragraph":
            paragraphs.append(block)
            continue
        return is_todo(block), paragraphs
    return False, paragraphs


class ShoppingListCleaner:
    """Walks a page's block tree with an explicit stack, parents before children."""

    def __init__(self, notion, logger: StructuredLogger):
        self.notion = notion
        self.logger = logger
        self.stats = {"deleted": 0, "todos_added": 0, "paragraphs_removed": 0}
        self.errors: List[Dict[str, Any]] = []

    def _delete(self, block: Dict[str, Any]) -> bool:
        try:
            self.notion.delete_block(block["id"])
        except NotionAPIError as e:
            self.logger.log_error_with_context(e, operation="delete_block", block_id=block["id"])
            self.errors.append({"block_id": block["id"], "error": str(e)})
            return False
        return True

    def _ensure_todo_under_headings(self, parent_id: str, blocks: List[Dict[str, Any]]):
        for index, block in enumerate(blocks):
            if not is_heading(block, level=2):
                continue

            has_todo, paragraphs = find_todo_after_heading(blocks, index)
            if has_todo:
                continue

            for paragraph in paragraphs:
                if self._delete(paragraph):
                    self.stats["paragraphs_removed"] += 1

            try:
                self.notion.append_block_children(parent_id, [todo_block()], after=block["id"])
            except NotionAPIError as e:
                self.logger.log_error_with_context(e, operation="append_todo", block_id=block["id"])
                self.errors.append({"block_id": block["id"], "error": str(e)})
                continue

            self.stats["todos_added"] += 1
            self.logger.success(f"Added empty to-do under: {block_text(block) or 'section'}")

    def run(self, page_id: str) -> Dict[str, Any]:
        stack = [page_id]
        while stack:
            parent_id = stack.pop()
            surviving = []

            for block in self.notion.list_block_children(parent_id):
                if is_checked_todo(block):
                    if self._delete(block):
                        self.stats["deleted"] += 1
                        self.logger.info(f"Deleted: {block_text(block) or '<empty>'}")
                        continue
                surviving.append(block)

            self._ensure_todo_under_headings(parent_id, surviving)

            children = [b["id"] for b in surviving if b.get("has_children")]
            stack.extend(reversed(children))

        return {
            "status": "Partial" if self.errors else "Completed",
            **self.stats,
            "errors": self.errors,
        }


def cleanup_shopping_list(notion, page_id: str, logger: StructuredLogger) -> Dict[str, Any]:
    logger.info("Starting nightly shopping list cleanup...")
    summary = ShoppingListCleaner(notion, logger).run(page_id)
    logger.info("Cleanup complete!")
    return summary


def _job(logger):
    page_id = require_env("NOTION_PAGE_ID")
    return cleanup_shopping_list(build_notion_client(logger), page_id, logger)


def main():
    main_for("cleanup-shopping", _job)
