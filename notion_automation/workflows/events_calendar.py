"""
Repeat Events Calendar

Expands repeating event templates ("last Friday of the month", "2nd Tuesday")
into dated pages in the events database for the coming year. Each generated
page carries a "Generated id" of template id plus date, so reruns only create
what is missing.

Required environment variables:
  - NOTION_TOKEN: Notion integration token
  - EVENTS_DATABASE_ID: Events database ID
  - REPEAT_EVENTS_DATABASE_ID: Repeating event templates database ID
"""

import calendar
from datetime import date
from typing import Any, Dict, List, Optional

from ..config.constants import EVENTS_HORIZON_MONTHS
from ..config.settings import require_env
from ..exceptions import NotionAPIError
from ..notion import codecs
from ..notion.properties import extract_title, get_multi_select, get_select, get_text
from ..utils.structured_logger import StructuredLogger
from .runner import build_notion_client, main_for

WEEKDAYS = {
    "Monday": 0, "Tuesday": 1, "Wednesday": 2, "Thursday": 3,
    "Friday": 4, "Saturday": 5, "Sunday": 6,
}
MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
]

OPTIONAL_TEXT_PROPERTIES = ("Where", "Overview", "Start time", "End time")


def add_months(year: int, month: int, offset: int):
    """Return (year, month) offset months after the given month."""
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def nth_weekday_of_month(year: int, month: int, weekday: int, ordinal: str) -> Optional[date]:
    """
    Find e.g. the 2nd Tuesday or the last Friday of a month.

    Args:
        year, month: Target month
        weekday: 0 = Monday ... 6 = Sunday
        ordinal: "1".."5" or "last"

    Returns:
        The date, or None when the month has no such occurrence
    """
    days_in_month = calendar.monthrange(year, month)[1]
    matches = [
        date(year, month, d)
        for d in range(1, days_in_month + 1)
        if date(year, month, d).weekday() == weekday
    ]
    if ordinal == "last":
        return matches[-1] if matches else None
    try:
        index = int(ordinal) - 1
    except ValueError:
        return None
    return matches[index] if 0 <= index < len(matches) else None


def generated_id(template_id: str, day: date) -> str:
    return f"{template_id}_{day.isoformat()}"


def occurrence_dates(
    weekday: int,
    ordinal: str,
    excluded_months,
    today: date,
    horizon_months: int = EVENTS_HORIZON_MONTHS,
) -> List[date]:
    """All occurrences from today up to the horizon, skipping excluded months."""
    year, month = today.year, today.month
    end_year, end_month = add_months(year, month, horizon_months)
    end = date(end_year, end_month, min(today.day, calendar.monthrange(end_year, end_month)[1]))

    dates = []
    for offset in range(horizon_months + 1):
        y, m = add_months(year, month, offset)
        if MONTH_NAMES[m - 1] in excluded_months:
            continue
        day = nth_weekday_of_month(y, m, weekday, ordinal)
        if day and today <= day <= end:
            dates.append(day)
    return dates


def build_event_properties(template: Dict[str, Any], title: str, day: date, gen_id: str):
    """Properties for a generated event; optional fields copied when set."""
    props = template.get("properties", {})
    properties = {
        "Event": codecs.title(title),
        "Date": {"date": {"start": day.isoformat()}},
        "Generated id": codecs.rich_text(gen_id),
    }
    for name in OPTIONAL_TEXT_PROPERTIES:
        text = get_text(props.get(name))
        if text:
            properties[name] = codecs.rich_text(text)

    website = (props.get("Website") or {}).get("url")
    if website:
        properties["Website"] = {"url": website}

    location = (props.get("Geolocation") or {}).get("location")
    if location:
        properties["Geolocation"] = {"location": location}
    return properties


class EventsCalendarGenerator:
    def __init__(self, notion, events_db_id: str, templates_db_id: str, logger: StructuredLogger):
        self.notion = notion
        self.events_db_id = events_db_id
        self.templates_db_id = templates_db_id
        self.logger = logger
        self.errors: List[Dict[str, Any]] = []

    def event_exists(self, gen_id: str) -> bool:
        page = self.notion.query_first(
            self.events_db_id,
            filter={"property": "Generated id", "rich_text": {"equals": gen_id}},
        )
        return page is not None

    def process_template(self, template: Dict[str, Any], today: date):
        """Create the missing occurrences of one template; returns (created, existing)."""
        props = template.get("properties", {})
        title = extract_title(template, fallback="", property_name="Event")
        if not title:
            self.logger.alert("Skipping page - no event title found", page_id=template.get("id"))
            return 0, 0

        weekday_name = get_select(props.get("Weekday"))
        if weekday_name not in WEEKDAYS:
            self.logger.alert(f'Skipping event "{title}" - no weekday specified')
            return 0, 0

        ordinal = get_select(props.get("Week ordinal"))
        if not ordinal:
            self.logger.alert(f'Skipping event "{title}" - no week ordinal specified')
            return 0, 0

        excluded = set(get_multi_select(props.get("Excluded months")))
        self.logger.info(
            f'Processing repeat event: "{title}"',
            weekday=weekday_name, ordinal=ordinal, excluded=sorted(excluded),
        )

        created, existing = 0, 0
        for day in occurrence_dates(WEEKDAYS[weekday_name], ordinal, excluded, today):
            gen_id = generated_id(template["id"], day)
            if self.event_exists(gen_id):
                existing += 1
                continue
            try:
                self.notion.create_page(
                    self.events_db_id, build_event_properties(template, title, day, gen_id)
                )
            except NotionAPIError as e:
                self.logger.log_error_with_context(e, operation="create_event", generated_id=gen_id)
                self.errors.append({"generated_id": gen_id, "error": str(e)})
                continue
            self.logger.success(f"Created event: {title} on {day.isoformat()}")
            created += 1

        self.logger.info(f'Completed "{title}": created {created}, skipped {existing} existing')
        return created, existing

    def run(self, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or date.today()
        self.logger.info("Fetching repeat events", database_id=self.templates_db_id)
        templates = self.notion.query_database(self.templates_db_id)
        self.logger.info(f"Found {len(templates)} repeat events to process")

        total_created, total_existing = 0, 0
        for template in templates:
            created, existing = self.process_template(template, today)
            total_created += created
            total_existing += existing

        return {
            "status": "Partial" if self.errors else "Completed",
            "templates": len(templates),
            "created": total_created,
            "existing": total_existing,
            "errors": self.errors,
        }


def _job(logger):
    generator = EventsCalendarGenerator(
        build_notion_client(logger),
        require_env("EVENTS_DATABASE_ID"),
        require_env("REPEAT_EVENTS_DATABASE_ID"),
        logger,
    )
    return generator.run()


def main():
    main_for("events-calendar", _job)
