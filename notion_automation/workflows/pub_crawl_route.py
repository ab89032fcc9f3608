"""
Pub Crawl Route

Orders the pubs database into a walking route from the station, writes each
pub's stop number and distance from the previous stop, and replaces the
route link on the pubs page.

Required environment variables:
  - NOTION_TOKEN: Notion integration token
  - PUBS_DATABASE_ID: Pubs database ID
  - PUBS_PAGE_ID: Page holding the route link
  - STATION_WAYPOINT: Start and end point (address or "lat,lon")
Optional:
  - GOOGLE_MAPS_API_KEY: use Google Directions; otherwise Nominatim geocoding
    and a nearest-neighbour ordering
"""

from typing import Any, Dict, List, Optional, Tuple

from ..config.constants import MAX_DIRECTIONS_WAYPOINTS, NOMINATIM_DELAY, PUB_CRAWL_HEADING
from ..config.settings import optional_env, require_env
from ..exceptions import ExternalServiceError, PerRecordWriteError
from ..integrations.maps import (
    DirectionsClient,
    NominatimClient,
    build_directions_url,
    nearest_neighbour_order,
)
from ..notion import codecs
from ..notion.blocks import block_text, bookmark_block, heading_block, is_heading
from ..notion.properties import extract_title, get_text
from ..utils.common_utils import pause
from ..utils.structured_logger import StructuredLogger
from .runner import build_notion_client, main_for


def extract_pubs(pages: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Pubs with a name; the Location text falls back to the name."""
    pubs = []
    for page in pages:
        name = extract_title(page, fallback="", property_name="Pub")
        if not name:
            continue
        location = get_text(page.get("properties", {}).get("Location")).strip()
        pubs.append({"id": page["id"], "name": name, "location": location or name})
    return pubs


class PubCrawlPlanner:
    def __init__(
        self,
        notion,
        database_id: str,
        page_id: str,
        station: str,
        logger: StructuredLogger,
        directions: Optional[DirectionsClient] = None,
        geocoder: Optional[NominatimClient] = None,
        geocode_delay: float = NOMINATIM_DELAY,
    ):
        self.notion = notion
        self.database_id = database_id
        self.page_id = page_id
        self.station = station
        self.logger = logger
        self.directions = directions
        self.geocoder = geocoder or NominatimClient(logger=logger)
        self.geocode_delay = geocode_delay

    def _order_with_directions(self, pubs) -> Tuple[List[Dict[str, str]], List[int]]:
        if len(pubs) > MAX_DIRECTIONS_WAYPOINTS:
            self.logger.alert(
                f"Too many pubs ({len(pubs)}). Google Maps supports max "
                f"{MAX_DIRECTIONS_WAYPOINTS} waypoints. Using first {MAX_DIRECTIONS_WAYPOINTS}."
            )
            pubs = pubs[:MAX_DIRECTIONS_WAYPOINTS]

        self.logger.info("Calling Google Maps Directions API...")
        order, legs = self.directions.optimize_walking_route(
            self.station, [p["location"] for p in pubs]
        )
        return [pubs[i] for i in order], legs[:len(order)]

    def _order_with_geocoding(self, pubs) -> Tuple[List[Dict[str, str]], List[int]]:
        self.logger.info("No Google Maps key, geocoding with Nominatim...")
        origin = self.geocoder.geocode(self.station)
        if origin is None:
            raise ExternalServiceError("nominatim", f"could not geocode station '{self.station}'")

        located, points = [], []
        for pub in pubs:
            pause(self.geocode_delay)
            point = self.geocoder.geocode(pub["location"])
            if point is None:
                self.logger.alert(f"Could not geocode {pub['name']}, leaving it out of the route")
                continue
            located.append(pub)
            points.append(point)

        order, distances = nearest_neighbour_order(origin, points)
        return [located[i] for i in order], distances

    def plan_route(self, pubs) -> Tuple[List[Dict[str, str]], List[int]]:
        """Return pubs in visiting order and each stop's distance from the previous one."""
        if self.directions:
            return self._order_with_directions(pubs)
        return self._order_with_geocoding(pubs)

    def write_route_data(self, ordered, distances) -> List[Dict[str, Any]]:
        errors = []
        for position, (pub, distance) in enumerate(zip(ordered, distances), 1):
            updates = {
                "Route order": codecs.number(position),
                "Distance from station (metres)": codecs.number(distance),
            }
            try:
                self.notion.update_page(pub["id"], properties=updates)
            except PerRecordWriteError as e:
                self.logger.log_error_with_context(e, operation="update_pub", name=pub["name"])
                errors.append({"page_id": pub["id"], "name": pub["name"], "error": str(e)})
                continue
            self.logger.info(f"Updated {pub['name']}: order={position}, distance={distance}m")
        return errors

    def replace_route_link(self, ordered) -> str:
        """Delete the old route heading and bookmark, then append fresh ones."""
        url = build_directions_url(self.station, [p["location"] for p in ordered])

        blocks = self.notion.list_block_children(self.page_id)
        for index, block in enumerate(blocks):
            if is_heading(block, level=2) and block_text(block) == PUB_CRAWL_HEADING:
                self.notion.delete_block(block["id"])
                following = blocks[index + 1] if index + 1 < len(blocks) else None
                if following and following.get("type") == "bookmark":
                    self.notion.delete_block(following["id"])
                self.logger.info("Deleted existing route blocks")
                break

        self.notion.append_block_children(
            self.page_id, [heading_block(PUB_CRAWL_HEADING), bookmark_block(url)]
        )
        self.logger.success("Added Google Maps route to page", url=url)
        return url

    def run(self) -> Dict[str, Any]:
        self.logger.info("Fetching all pages from pubs database...")
        pubs = extract_pubs(self.notion.query_database(self.database_id))
        if not pubs:
            self.logger.alert("No pubs found in database")
            return {"status": "Completed", "pubs": 0, "routed": 0, "errors": []}

        self.logger.info(f"Found {len(pubs)} pubs, optimizing route...")
        ordered, distances = self.plan_route(pubs)
        self.logger.success("Route: " + " → ".join(p["name"] for p in ordered))

        errors = self.write_route_data(ordered, distances)
        url = self.replace_route_link(ordered) if ordered else None

        return {
            "status": "Partial" if errors else "Completed",
            "pubs": len(pubs),
            "routed": len(ordered),
            "route_url": url,
            "errors": errors,
        }


def _job(logger):
    maps_key = optional_env("GOOGLE_MAPS_API_KEY")
    planner = PubCrawlPlanner(
        build_notion_client(logger),
        require_env("PUBS_DATABASE_ID"),
        require_env("PUBS_PAGE_ID"),
        require_env("STATION_WAYPOINT"),
        logger,
        directions=DirectionsClient(maps_key, logger=logger) if maps_key else None,
    )
    return planner.run()


def main():
    main_for("pub-crawl-route", _job)
