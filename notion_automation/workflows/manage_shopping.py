"""
Shopping Helper

Two jobs in one run:

1. Keep the shopping helper database in step with the meal planner: every
   ingredient of a meal planned in the next week gets a helper item, and
   stale items are archived.
2. Items ticked for a shopping list are sorted under that list page's section
   headings by Gemini, added as to-dos, then archived from the helper.

Required environment variables:
  - NOTION_TOKEN, GEMINI_API_KEY
  - MEAL_PLANNER_DATABASE_ID
  - SHOPPING_HELPER_DATABASE_ID
  - GROCERY_SHOPPING_LIST_PAGE_ID
  - TURKISH_SUPERMARKET_LIST_PAGE_ID
  - ASIAN_SUPERMARKET_LIST_PAGE_ID
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set

from ..ai.parsing import parse_json_response, validate_categorized
from ..annotation.prompt import load_prompt_template, number_items, render_prompt
from ..config.constants import SHOPPING_LOOKAHEAD_DAYS
from ..config.settings import require_env
from ..exceptions import NotionAPIError
from ..notion import codecs
from ..notion.blocks import block_text, is_heading, is_todo, todo_block
from ..notion.properties import (
    extract_title,
    get_checkbox,
    get_date_start,
    get_multi_select,
    get_relation_ids,
)
from ..utils.structured_logger import StructuredLogger
from .runner import build_gemini_client, build_notion_client, main_for

MEAL_SLOTS = ("Breakfast", "Lunch", "Dinner")


@dataclass(frozen=True)
class ShoppingList:
    key: str
    label: str
    checkbox: str
    page_env: str


SHOPPING_LISTS = (
    ShoppingList("grocery", "grocery", "Add to shopping list", "GROCERY_SHOPPING_LIST_PAGE_ID"),
    ShoppingList(
        "turkish", "Turkish supermarket",
        "Add to Turkish supermarket shopping list", "TURKISH_SUPERMARKET_LIST_PAGE_ID",
    ),
    ShoppingList(
        "asian", "Asian supermarket",
        "Add to Asian supermarket shopping list", "ASIAN_SUPERMARKET_LIST_PAGE_ID",
    ),
)


@dataclass
class HelperItem:
    id: str
    item: str
    ticked: Dict[str, bool]
    delete: bool
    meal_id: Optional[str]
    created_time: datetime

    @property
    def ticked_any(self) -> bool:
        return any(self.ticked.values())


def _parse_created_time(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_helper_items(pages: List[Dict[str, Any]]) -> List[HelperItem]:
    items = []
    for page in pages:
        props = page.get("properties", {})
        relations = get_relation_ids(props.get("Meal"))
        items.append(HelperItem(
            id=page["id"],
            item=extract_title(page, fallback="", property_name="Item"),
            ticked={s.key: get_checkbox(props.get(s.checkbox)) for s in SHOPPING_LISTS},
            delete=get_checkbox(props.get("Delete")),
            meal_id=relations[0] if relations else None,
            created_time=_parse_created_time(page.get("created_time")),
        ))
    return items


def archive_reason(
    item: HelperItem,
    upcoming_meal_ids: Set[str],
    needed: Set[str],
    cutoff: datetime,
) -> Optional[str]:
    """
    Why a helper item should be archived, or None to keep it.

    Items flagged Delete but needed again are kept so they can be un-flagged.
    """
    older = item.created_time < cutoff
    if item.meal_id and item.meal_id not in upcoming_meal_ids:
        return "meal no longer upcoming"
    if item.delete and older and item.item.lower() not in needed:
        return "marked for deletion (>7 days)"
    if older and not item.ticked_any:
        return "older than 7 days"
    return None


def heading_names(blocks: List[Dict[str, Any]]) -> List[str]:
    return [block_text(b) for b in blocks if is_heading(b, level=2) and block_text(b)]


def unchecked_todo_texts(blocks: List[Dict[str, Any]]) -> Set[str]:
    return {
        block_text(b).strip().lower()
        for b in blocks
        if is_todo(b) and not (b.get("to_do") or {}).get("checked") and block_text(b).strip()
    }


class ShoppingHelper:
    def __init__(
        self,
        notion,
        ai,
        planner_db_id: str,
        helper_db_id: str,
        list_pages: Dict[str, str],
        logger: StructuredLogger,
    ):
        self.notion = notion
        self.ai = ai
        self.planner_db_id = planner_db_id
        self.helper_db_id = helper_db_id
        self.list_pages = list_pages
        self.logger = logger
        self.errors: List[Dict[str, Any]] = []

    def _record_error(self, error: NotionAPIError, operation: str, **context):
        self.logger.log_error_with_context(error, operation=operation, **context)
        self.errors.append({"operation": operation, "error": str(error), **context})

    # --- Step 1: helper database ---

    def upcoming_meals(self, today: date) -> List[Dict[str, Any]]:
        """Meals related from planner days in [today, today + 7 days)."""
        end = today + timedelta(days=SHOPPING_LOOKAHEAD_DAYS)
        days = self.notion.query_database(
            self.planner_db_id,
            filter={"and": [
                {"property": "Date", "date": {"on_or_after": today.isoformat()}},
                {"property": "Date", "date": {"before": end.isoformat()}},
            ]},
        )

        meal_dates: Dict[str, str] = {}
        for day in days:
            props = day.get("properties", {})
            for slot in MEAL_SLOTS:
                for meal_id in get_relation_ids(props.get(slot)):
                    meal_dates.setdefault(meal_id, get_date_start(props.get("Date")))

        if not meal_dates:
            self.logger.info("No meals found in the next 7 days")
            return []

        meals = []
        for meal_id, day in meal_dates.items():
            try:
                page = self.notion.retrieve_page(meal_id)
            except NotionAPIError as e:
                self.logger.alert("Failed to fetch meal", meal_id=meal_id, error=str(e))
                continue
            name = extract_title(page, fallback="")
            ingredients = get_multi_select(page.get("properties", {}).get("Ingredients"))
            if name and ingredients:
                meals.append({"id": meal_id, "name": name, "date": day, "ingredients": ingredients})
        return meals

    def sync_helper_items(self, meals, items: List[HelperItem], now: datetime) -> Set[str]:
        """Archive stale items, un-flag needed ones and add new ingredients; returns archived ids."""
        upcoming_ids = {m["id"] for m in meals}
        needed = {i.lower() for m in meals for i in m["ingredients"]}
        cutoff = now - timedelta(days=SHOPPING_LOOKAHEAD_DAYS)
        archived: Set[str] = set()

        for item in items:
            reason = archive_reason(item, upcoming_ids, needed, cutoff)
            if not reason:
                continue
            try:
                self.notion.archive_page(item.id)
            except NotionAPIError as e:
                self._record_error(e, "archive_helper_item", item=item.item)
                continue
            archived.add(item.id)
            self.logger.info("Removed item", item=item.item, reason=reason)

        for item in items:
            if item.id in archived or not item.delete or item.item.lower() not in needed:
                continue
            try:
                self.notion.update_page(item.id, properties={"Delete": {"checkbox": False}})
            except NotionAPIError as e:
                self._record_error(e, "resurrect_helper_item", item=item.item)
                continue
            self.logger.info("Resurrected item (unchecked Delete)", item=item.item)

        known = {i.item.lower() for i in items if i.id not in archived}
        added = 0
        for meal in meals:
            for ingredient in meal["ingredients"]:
                if ingredient.lower() in known:
                    continue
                known.add(ingredient.lower())
                properties = {
                    "Item": codecs.title(ingredient),
                    "Delete": {"checkbox": False},
                    "Meal": {"relation": [{"id": meal["id"]}]},
                }
                for shopping_list in SHOPPING_LISTS:
                    properties[shopping_list.checkbox] = {"checkbox": False}
                try:
                    self.notion.create_page(self.helper_db_id, properties)
                except NotionAPIError as e:
                    self._record_error(e, "add_helper_item", item=ingredient)
                    continue
                added += 1
                self.logger.info("Added ingredient to helper", ingredient=ingredient, meal=meal["name"])

        if added:
            self.logger.success("Added new ingredients", count=added)
        return archived

    # --- Step 2: shopping lists ---

    def categorize(self, label: str, items: List[str], headings: List[str]) -> Dict[str, List[str]]:
        prompt = render_prompt(load_prompt_template("categorize_shopping.md"), {
            "LIST_NAME": f"{label} shopping list",
            "HEADINGS_LIST": number_items(headings),
            "ITEMS_LIST": number_items(items),
        })
        raw = self.ai.generate(prompt, json_output=True)
        return validate_categorized(parse_json_response(raw))

    def add_to_list(self, page_id: str, blocks, categorized: Dict[str, List[str]]) -> int:
        headings = {block_text(b): b for b in blocks if is_heading(b, level=2)}
        added = 0
        for heading, names in categorized.items():
            if not names:
                continue
            block = headings.get(heading)
            if not block:
                self.logger.alert("Heading not found, skipping items", heading=heading, items=names)
                continue
            try:
                self.notion.append_block_children(
                    page_id, [todo_block(name) for name in names], after=block["id"]
                )
            except NotionAPIError as e:
                self._record_error(e, "add_to_list", heading=heading)
                continue
            added += len(names)
            self.logger.success("Added items to shopping list", heading=heading, count=len(names))
        return added

    def process_list(self, shopping_list: ShoppingList, items: List[HelperItem]) -> int:
        ticked = [i for i in items if i.ticked[shopping_list.key] and i.item]
        if not ticked:
            self.logger.info(f"No items checked for {shopping_list.label} shopping list")
            return 0

        page_id = self.list_pages[shopping_list.key]
        blocks = self.notion.list_block_children(page_id)
        already = unchecked_todo_texts(blocks)

        seen: Set[str] = set()
        new_items = []
        for item in ticked:
            key = item.item.lower()
            if key in already or key in seen:
                continue
            seen.add(key)
            new_items.append(item.item)

        if not new_items:
            self.logger.info(f"All checked items already exist on {shopping_list.label} shopping list")
            return 0

        headings = heading_names(blocks)
        self.logger.info(
            f"Items to add to {shopping_list.label} shopping list",
            total=len(ticked), new=len(new_items), headings=headings,
        )
        categorized = self.categorize(shopping_list.label, new_items, headings)
        return self.add_to_list(page_id, blocks, categorized)

    def run(self, today: Optional[date] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        today = today or date.today()

        self.logger.info("Fetching upcoming meals (next 7 days)...")
        meals = self.upcoming_meals(today)
        self.logger.info("Found upcoming meals", count=len(meals))

        self.logger.info("Updating shopping helper database...")
        items = parse_helper_items(self.notion.query_database(self.helper_db_id))
        archived = self.sync_helper_items(meals, items, now)

        added = {s.key: self.process_list(s, items) for s in SHOPPING_LISTS}

        processed = 0
        for item in items:
            if not item.ticked_any or item.id in archived:
                continue
            try:
                self.notion.archive_page(item.id)
            except NotionAPIError as e:
                self._record_error(e, "archive_ticked_item", item=item.item)
                continue
            processed += 1

        self.logger.success(
            "Shopping helper workflow complete",
            total_added=sum(added.values()), items_processed=processed,
        )
        return {
            "status": "Partial" if self.errors else "Completed",
            "meals": len(meals),
            "added": added,
            "items_processed": processed,
            "errors": self.errors,
        }


def _job(logger):
    helper = ShoppingHelper(
        build_notion_client(logger),
        build_gemini_client(logger),
        require_env("MEAL_PLANNER_DATABASE_ID"),
        require_env("SHOPPING_HELPER_DATABASE_ID"),
        {s.key: require_env(s.page_env) for s in SHOPPING_LISTS},
        logger,
    )
    return helper.run()


def main():
    main_for("manage-shopping", _job)
