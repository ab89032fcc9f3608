"""
TMDB Integration

Looks up films and TV series on The Movie Database and flattens the details
into the fields the films database stores.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from ..config.constants import DEFAULT_TIMEOUT, TMDB_API_BASE_URL, TMDB_POSTER_BASE_URL
from ..exceptions import ExternalServiceError
from ..utils.structured_logger import StructuredLogger, get_logger

YEAR_IN_TITLE = re.compile(r"\((\d{4})\)")
WRITER_JOBS = ("Writer", "Screenplay", "Story")
CANDIDATE_LIMIT = 5

MEDIA_TYPE_LABELS = {"movie": "Film", "tv": "TV Series"}


@dataclass
class TitleMetadata:
    """Flattened TMDB details for one film or series."""

    media_type: str
    poster_url: Optional[str] = None
    overview: Optional[str] = None
    runtime: Optional[int] = None
    genres: List[str] = field(default_factory=list)
    directors: List[str] = field(default_factory=list)
    writers: List[str] = field(default_factory=list)
    countries: List[str] = field(default_factory=list)
    imdb_id: Optional[str] = None
    year: Optional[int] = None

    @property
    def type_label(self) -> str:
        return MEDIA_TYPE_LABELS[self.media_type]


def extract_year_from_title(title: str) -> Optional[int]:
    """Return the year from a "Title (1999)" style name, if present."""
    match = YEAR_IN_TITLE.search(title or "")
    return int(match.group(1)) if match else None


def strip_year(title: str) -> str:
    return re.sub(r"\s*\(\d{4}\)", "", title or "").strip()


def release_year(details: Dict[str, Any], media_type: str) -> Optional[int]:
    date = details.get("release_date") if media_type == "movie" else details.get("first_air_date")
    if not date:
        return None
    try:
        return int(date.split("-")[0])
    except ValueError:
        return None


def year_match_score(target: Optional[int], candidate: Optional[int]) -> int:
    """100 for the same year, 50 one year off, 25 two years off, else 0."""
    if not target or not candidate:
        return 0
    return {0: 100, 1: 50, 2: 25}.get(abs(target - candidate), 0)


def genre_match_count(existing: Sequence[str], candidate: Sequence[str]) -> int:
    lowered = {g.lower() for g in candidate}
    return sum(1 for g in existing if g.lower() in lowered)


def metadata_from_details(
    details: Dict[str, Any],
    media_type: str,
    search_result: Optional[Dict[str, Any]] = None,
    imdb_id: Optional[str] = None,
) -> TitleMetadata:
    """
    Flatten a TMDB details response (with credits appended).

    Series have no single director or writer, so their creators fill both.
    """
    search_result = search_result or {}
    crew = (details.get("credits") or {}).get("crew") or []

    if media_type == "movie":
        directors = [c["name"] for c in crew if c.get("job") == "Director"]
        writers = [c["name"] for c in crew if c.get("job") in WRITER_JOBS]
        runtime = details.get("runtime") or None
    else:
        creators = [c["name"] for c in details.get("created_by") or []]
        directors, writers = creators, list(creators)
        runtime = None

    poster_path = search_result.get("poster_path") or details.get("poster_path")
    return TitleMetadata(
        media_type=media_type,
        poster_url=f"{TMDB_POSTER_BASE_URL}{poster_path}" if poster_path else None,
        overview=search_result.get("overview") or details.get("overview") or None,
        runtime=runtime,
        genres=[g["name"] for g in details.get("genres") or []],
        directors=directors,
        writers=writers,
        countries=[c["name"] for c in details.get("production_countries") or []],
        imdb_id=(
            imdb_id
            or details.get("imdb_id")
            or (details.get("external_ids") or {}).get("imdb_id")
        ),
        year=release_year(details, media_type),
    )


class TMDBClient:
    """
    Small TMDB v3 client.

    Args:
        api_key: TMDB v3 API key
        session: Optional requests.Session for connection pooling
        logger: Optional StructuredLogger
    """

    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        logger: Optional[StructuredLogger] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.logger = logger or get_logger(__name__)
        self.timeout = timeout

    def _get(self, path: str, **params) -> Dict[str, Any]:
        url = f"{TMDB_API_BASE_URL}{path}"
        self.logger.log_api_call("tmdb", url)
        try:
            response = self.session.get(
                url, params={"api_key": self.api_key, **params}, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise ExternalServiceError("tmdb", f"request to {path} failed: {e}") from e

        if not response.ok:
            raise ExternalServiceError(
                "tmdb", f"{path} returned {response.status_code}: {response.text[:200]}"
            )
        return response.json()

    def find_by_imdb_id(self, imdb_id: str) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """Return (result, media_type) for an IMDb id, movies first."""
        data = self._get(f"/find/{imdb_id}", external_source="imdb_id")
        if data.get("movie_results"):
            return data["movie_results"][0], "movie"
        if data.get("tv_results"):
            return data["tv_results"][0], "tv"
        return None, None

    def search(self, media_type: str, query: str, year: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {"query": query}
        if year:
            params["year"] = year
        return self._get(f"/search/{media_type}", **params).get("results") or []

    def details(self, media_type: str, tmdb_id: int, with_credits: bool = False) -> Dict[str, Any]:
        params = {"append_to_response": "credits,external_ids"} if with_credits else {}
        return self._get(f"/{media_type}/{tmdb_id}", **params)

    def _pick_candidate(
        self,
        candidates: List[Tuple[Dict[str, Any], str]],
        year: Optional[int],
        existing_genres: Sequence[str],
    ) -> Tuple[Dict[str, Any], str]:
        """Score the top candidates on year and genre overlap; fall back to the first."""
        if not year and not existing_genres:
            return candidates[0]

        best, best_score = None, 0
        for result, media_type in candidates[:CANDIDATE_LIMIT]:
            try:
                details = self.details(media_type, result["id"])
            except ExternalServiceError as e:
                self.logger.debug("Skipping candidate", tmdb_id=result.get("id"), error=str(e))
                continue
            score = year_match_score(year, release_year(details, media_type))
            genres = [g["name"] for g in details.get("genres") or []]
            score += 10 * genre_match_count(existing_genres, genres)
            if score > best_score:
                best, best_score = (result, media_type), score

        if best:
            self.logger.info("Found better match", tmdb_id=best[0].get("id"), score=best_score)
            return best
        return candidates[0]

    def lookup(
        self,
        title: str,
        year: Optional[int] = None,
        imdb_id: Optional[str] = None,
        existing_type: Optional[str] = None,
        existing_genres: Sequence[str] = (),
    ) -> Optional[TitleMetadata]:
        """
        Find the best TMDB match for a title.

        An existing IMDb id wins. Otherwise movies are searched, then series,
        restricted by an existing Type, and ambiguous results are ranked.

        Returns:
            TitleMetadata, or None when nothing matched
        """
        if imdb_id:
            self.logger.info(f"Using existing IMDB ID: {imdb_id}")
            result, media_type = self.find_by_imdb_id(imdb_id)
            if result:
                details = self.details(media_type, result["id"], with_credits=True)
                return metadata_from_details(details, media_type, result, imdb_id=imdb_id)

        query = strip_year(title)
        media_types = []
        if existing_type != "TV Series":
            media_types.append("movie")
        if existing_type != "Film":
            media_types.append("tv")

        candidates: List[Tuple[Dict[str, Any], str]] = []
        for media_type in media_types:
            candidates = [(r, media_type) for r in self.search(media_type, query, year)]
            if candidates:
                break

        if not candidates:
            return None

        result, media_type = self._pick_candidate(candidates, year, existing_genres)
        details = self.details(media_type, result["id"], with_credits=True)
        return metadata_from_details(details, media_type, result)
