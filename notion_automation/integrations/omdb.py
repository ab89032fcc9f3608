"""OMDb Integration: IMDb, Rotten Tomatoes and Metacritic scores by IMDb id."""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from ..config.constants import DEFAULT_TIMEOUT, OMDB_API_URL
from ..exceptions import ExternalServiceError
from ..utils.structured_logger import StructuredLogger, get_logger


@dataclass
class Ratings:
    imdb_rating: Optional[float] = None
    tomatometer: Optional[int] = None
    metascore: Optional[int] = None


def _number(value: Optional[str], cast):
    if not value or value == "N/A":
        return None
    try:
        return cast(value)
    except ValueError:
        return None


def parse_omdb_ratings(data: Dict[str, Any]) -> Ratings:
    """Convert an OMDb response body to Ratings; unknown values stay None."""
    if data.get("Response") == "False":
        return Ratings()

    tomatometer = None
    for rating in data.get("Ratings") or []:
        if rating.get("Source") == "Rotten Tomatoes":
            match = re.search(r"(\d+)%", rating.get("Value", ""))
            if match:
                tomatometer = int(match.group(1))
            break

    return Ratings(
        imdb_rating=_number(data.get("imdbRating"), float),
        tomatometer=tomatometer,
        metascore=_number(data.get("Metascore"), int),
    )


class OMDbClient:
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

    def fetch_ratings(self, imdb_id: str) -> Ratings:
        """
        Fetch scores for one IMDb id.

        Raises:
            ExternalServiceError: Transport failure or non-2xx status
        """
        self.logger.log_api_call("omdb", OMDB_API_URL, imdb_id=imdb_id)
        try:
            response = self.session.get(
                OMDB_API_URL,
                params={"apikey": self.api_key, "i": imdb_id},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ExternalServiceError("omdb", f"request for {imdb_id} failed: {e}") from e

        if not response.ok:
            raise ExternalServiceError(
                "omdb", f"lookup for {imdb_id} returned {response.status_code}"
            )
        return parse_omdb_ratings(response.json())
