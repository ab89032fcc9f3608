"""
Meal Planner Maintenance

Keeps a rolling window of day pages in the meal planner database: archives
days before today, creates any missing day in the window, and fixes names
that drifted from the "Mon 1 Jan" format.

Required environment variables:
  - NOTION_TOKEN: Notion integration token
  - MEAL_PLANNER_DATABASE_ID: Meal planner database ID
"""

from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from ..config.constants import MEAL_PLANNER_WINDOW_DAYS
from ..config.settings import require_env
from ..exceptions import NotionAPIError
from ..notion import codecs
from ..notion.properties import extract_title, get_date_start
from ..utils.structured_logger import StructuredLogger
from .runner import build_notion_client, main_for

DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def format_day_name(day: date) -> str:
    """Format a date as e.g. "Mon 1 Jan"."""
    return f"{DAY_NAMES[day.weekday()]} {day.day} {MONTH_NAMES[day.month - 1]}"


def date_window(start: date, days: int = MEAL_PLANNER_WINDOW_DAYS) -> List[date]:
    return [start + timedelta(days=i) for i in range(days)]


def parse_planner_days(pages: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Reduce pages to {id, name, date}; pages without a date are ignored."""
    days = []
    for page in pages:
        start = get_date_start(page.get("properties", {}).get("Date"))
        if not start:
            continue
        days.append({
            "id": page["id"],
            "name": extract_title(page, fallback=""),
            "date": start[:10],
        })
    return days


class MealPlannerMaintainer:
    def __init__(self, notion, database_id: str, logger: StructuredLogger):
        self.notion = notion
        self.database_id = database_id
        self.logger = logger
        self.errors: List[Dict[str, Any]] = []

    def _record_error(self, error: NotionAPIError, operation: str, **context):
        self.logger.log_error_with_context(error, operation=operation, **context)
        self.errors.append({"operation": operation, "error": str(error), **context})

    def archive_past_days(self, days, today_iso: str) -> int:
        archived = 0
        for day in days:
            if day["date"] >= today_iso:
                continue
            try:
                self.notion.archive_page(day["id"])
            except NotionAPIError as e:
                self._record_error(e, "archive_day", date=day["date"])
                continue
            self.logger.info("Deleted old meal plan day", name=day["name"], date=day["date"])
            archived += 1
        return archived

    def create_missing_days(self, days, window: List[date]) -> int:
        existing = {day["date"] for day in days}
        created = 0
        for day in window:
            iso = day.isoformat()
            if iso in existing:
                continue
            properties = {
                "Name": codecs.title(format_day_name(day)),
                "Date": {"date": {"start": iso}},
            }
            try:
                self.notion.create_page(self.database_id, properties)
            except NotionAPIError as e:
                self._record_error(e, "create_day", date=iso)
                continue
            self.logger.info("Created meal plan day", name=format_day_name(day), date=iso)
            created += 1
        return created

    def fix_day_names(self, days) -> int:
        renamed = 0
        for day in days:
            correct = format_day_name(date.fromisoformat(day["date"]))
            if day["name"] == correct:
                continue
            try:
                self.notion.update_page(day["id"], properties={"Name": codecs.title(correct)})
            except NotionAPIError as e:
                self._record_error(e, "rename_day", date=day["date"])
                continue
            self.logger.info(
                "Updated meal plan day name",
                old_name=day["name"], new_name=correct, date=day["date"],
            )
            renamed += 1
        return renamed

    def run(self, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or date.today()
        today_iso = today.isoformat()

        self.logger.info("Fetching meal plan pages from database...")
        days = parse_planner_days(self.notion.query_database(self.database_id))
        self.logger.info("Current meal plan days", count=len(days))

        archived = self.archive_past_days(days, today_iso)
        remaining = [d for d in days if d["date"] >= today_iso]
        created = self.create_missing_days(remaining, date_window(today))
        renamed = self.fix_day_names(remaining)

        if archived or created or renamed:
            self.logger.success(
                "Meal planner maintenance complete",
                archived=archived, created=created, renamed=renamed,
            )
        else:
            self.logger.info("Meal planner is up to date - no changes needed")

        return {
            "status": "Partial" if self.errors else "Completed",
            "archived": archived,
            "created": created,
            "renamed": renamed,
            "errors": self.errors,
        }


def _job(logger):
    database_id = require_env("MEAL_PLANNER_DATABASE_ID")
    return MealPlannerMaintainer(build_notion_client(logger), database_id, logger).run()


def main():
    main_for("manage-meal-planner", _job)
