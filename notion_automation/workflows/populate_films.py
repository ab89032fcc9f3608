"""
Films & TV Metadata

Completes the films database from TMDB (overview, type, year, runtime,
genres, credits, country, IMDb id, poster) and OMDb (IMDb, Rotten Tomatoes
and Metacritic scores). Only empty properties are written; genres are merged.

Required environment variables:
  - NOTION_TOKEN: Notion integration token
  - FILMS_DATABASE_ID: Films database ID
Optional:
  - TMDB_API_KEY: without it no metadata is fetched
  - OMDB_API_KEY: without it no scores are fetched
"""

from typing import Any, Dict, List, Optional

from ..config.constants import METADATA_LOOKUP_DELAY
from ..config.settings import optional_env, require_env
from ..exceptions import ExternalServiceError, PerRecordWriteError
from ..integrations.omdb import OMDbClient, Ratings
from ..integrations.tmdb import TMDBClient, TitleMetadata, extract_year_from_title
from ..notion import codecs
from ..notion.properties import (
    extract_title,
    get_multi_select,
    get_select,
    get_text,
    is_empty,
)
from ..utils.common_utils import pause
from ..utils.structured_logger import StructuredLogger
from .runner import build_notion_client, main_for

METADATA_PROPERTIES = (
    "Overview", "Type", "Year", "Runtime (Raw)", "Genre", "Director(s)",
    "Writer(s)", "Country", "IMDB ID", "IMDB Score", "Tomatometer (Raw)",
    "Metascore",
)


def needs_metadata(page: Dict[str, Any]) -> bool:
    """True when the cover, any metadata property or the year in the title is missing."""
    props = page.get("properties", {})
    if not page.get("cover"):
        return True
    if any(is_empty(props.get(name)) for name in METADATA_PROPERTIES):
        return True
    year = (props.get("Year") or {}).get("number")
    return bool(year) and extract_year_from_title(extract_title(page)) is None


def merge_genres(existing: List[str], found: List[str]) -> Optional[List[str]]:
    """Existing genres plus any new ones (case-insensitive); None when nothing is new."""
    known = {g.lower() for g in existing}
    new = [g for g in found if g.lower() not in known]
    if not new:
        return None
    return list(existing) + new


def build_film_updates(
    page: Dict[str, Any],
    metadata: Optional[TitleMetadata],
    ratings: Optional[Ratings],
) -> Dict[str, Any]:
    """
    Property updates for one film page.

    Never overwrites a filled property, except Genre (merged) and the title
    (year appended when missing).
    """
    props = page.get("properties", {})
    title = extract_title(page)
    updates: Dict[str, Any] = {}

    def fill(name: str, value, codec):
        if value in (None, "", []) or not is_empty(props.get(name)):
            return
        updates[name] = codec(value)

    existing_type = get_select(props.get("Type"))
    if metadata:
        fill("Type", metadata.type_label, codecs.select)
        fill("Overview", metadata.overview, codecs.rich_text)
        if (existing_type or metadata.type_label) == "Film":
            fill("Runtime (Raw)", metadata.runtime, codecs.number)
        fill("Director(s)", ", ".join(metadata.directors), codecs.rich_text)
        fill("Writer(s)", ", ".join(metadata.writers), codecs.rich_text)
        fill("Country", ", ".join(metadata.countries), codecs.rich_text)
        fill("IMDB ID", metadata.imdb_id, codecs.rich_text)

        existing_genres = get_multi_select(props.get("Genre"))
        genres = merge_genres(existing_genres, metadata.genres)
        if genres:
            updates["Genre"] = {"multi_select": [{"name": g} for g in genres]}

    year = (props.get("Year") or {}).get("number")
    if year is None:
        year = (metadata.year if metadata else None) or extract_year_from_title(title)
        fill("Year", year, codecs.number)

    if ratings:
        fill("IMDB Score", ratings.imdb_rating, codecs.number)
        fill("Tomatometer (Raw)", ratings.tomatometer, codecs.number)
        fill("Metascore", ratings.metascore, codecs.number)

    if year and extract_year_from_title(title) is None:
        updates["Name"] = codecs.title(f"{title} ({year})")

    return updates


class FilmsMetadataPopulator:
    def __init__(
        self,
        notion,
        database_id: str,
        logger: StructuredLogger,
        tmdb: Optional[TMDBClient] = None,
        omdb: Optional[OMDbClient] = None,
        delay: float = METADATA_LOOKUP_DELAY,
    ):
        self.notion = notion
        self.database_id = database_id
        self.logger = logger
        self.tmdb = tmdb
        self.omdb = omdb
        self.delay = delay

    def _lookup(self, page: Dict[str, Any]) -> Optional[TitleMetadata]:
        if not self.tmdb:
            return None
        props = page.get("properties", {})
        title = extract_title(page)
        year = extract_year_from_title(title) or (props.get("Year") or {}).get("number")
        return self.tmdb.lookup(
            title,
            year=int(year) if year else None,
            imdb_id=get_text(props.get("IMDB ID")) or None,
            existing_type=get_select(props.get("Type")),
            existing_genres=get_multi_select(props.get("Genre")),
        )

    def process_page(self, page: Dict[str, Any]) -> str:
        """Enrich one page; returns "updated", "unchanged" or "not_found"."""
        title = extract_title(page)
        props = page.get("properties", {})
        self.logger.info(f"Processing: {title}")

        metadata = self._lookup(page)
        if not metadata and not get_select(props.get("Type")):
            self.logger.alert(f"Could not find TMDB data for {title}")
            return "not_found"

        if not page.get("cover") and metadata and metadata.poster_url:
            self.notion.update_page(
                page["id"],
                cover={"type": "external", "external": {"url": metadata.poster_url}},
            )
            self.logger.success(f"Set cover image for {title}")

        ratings = None
        imdb_id = get_text(props.get("IMDB ID")) or (metadata.imdb_id if metadata else None)
        if imdb_id and self.omdb:
            ratings = self.omdb.fetch_ratings(imdb_id)

        updates = build_film_updates(page, metadata, ratings)
        if not updates:
            self.logger.skip(f"Nothing new for {title}")
            return "unchanged"

        self.notion.update_page(page["id"], properties=updates)
        self.logger.success(f"Set fields for {title}: {', '.join(updates)}")
        return "updated"

    def run(self) -> Dict[str, Any]:
        self.logger.info("Fetching all pages from films database...")
        pages = self.notion.query_database(self.database_id)
        pending = [p for p in pages if needs_metadata(p)]
        self.logger.info(f"Found {len(pending)} pages needing metadata", total=len(pages))

        counts = {"updated": 0, "unchanged": 0, "not_found": 0}
        errors = []
        for index, page in enumerate(pending):
            if index:
                pause(self.delay)
            try:
                counts[self.process_page(page)] += 1
            except (ExternalServiceError, PerRecordWriteError) as e:
                self.logger.log_error_with_context(e, operation="populate_film", page_id=page.get("id"))
                errors.append({"page_id": page.get("id"), "error": str(e)})

        if not pending:
            self.logger.info("All pages already have complete metadata!")

        return {
            "status": "Partial" if errors else "Completed",
            "pending": len(pending),
            **counts,
            "errors": errors,
        }


def _job(logger):
    tmdb_key = optional_env("TMDB_API_KEY")
    omdb_key = optional_env("OMDB_API_KEY")
    if not tmdb_key:
        logger.alert("TMDB_API_KEY is not defined - metadata will not be fetched")
    if not omdb_key:
        logger.alert("OMDB_API_KEY is not defined - IMDB and Rotten Tomatoes scores will not be fetched")

    populator = FilmsMetadataPopulator(
        build_notion_client(logger),
        require_env("FILMS_DATABASE_ID"),
        logger,
        tmdb=TMDBClient(tmdb_key, logger=logger) if tmdb_key else None,
        omdb=OMDbClient(omdb_key, logger=logger) if omdb_key else None,
    )
    return populator.run()


def main():
    main_for("populate-films", _job)
