"""Tests for the films metadata workflow."""

from unittest.mock import MagicMock

import pytest

from notion_automation.exceptions import ExternalServiceError
from notion_automation.integrations.omdb import Ratings
from notion_automation.integrations.tmdb import TitleMetadata
from notion_automation.workflows.populate_films import (
    FilmsMetadataPopulator,
    build_film_updates,
    merge_genres,
    needs_metadata,
)


@pytest.fixture
def heat_metadata():
    return TitleMetadata(
        media_type="movie",
        poster_url="https://image.tmdb.org/t/p/w500/heat.jpg",
        overview="A detective pursues a thief.",
        runtime=170,
        genres=["Crime", "Drama"],
        directors=["Michael Mann"],
        writers=["Michael Mann"],
        countries=["United States of America"],
        imdb_id="tt0113277",
        year=1995,
    )


@pytest.fixture
def blank_film(make_page, prop):
    def _make(name, **overrides):
        properties = {
            "Name": prop.title(name),
            "Overview": prop.rich_text(),
            "Type": prop.select(),
            "Year": prop.number(),
            "Runtime (Raw)": prop.number(),
            "Genre": prop.multi_select(),
            "Director(s)": prop.rich_text(),
            "Writer(s)": prop.rich_text(),
            "Country": prop.rich_text(),
            "IMDB ID": prop.rich_text(),
            "IMDB Score": prop.number(),
            "Tomatometer (Raw)": prop.number(),
            "Metascore": prop.number(),
        }
        properties.update(overrides)
        return make_page(f"page-{name}", **properties)
    return _make


class TestMergeGenres:
    def test_adds_new_genres(self):
        assert merge_genres(["crime"], ["Crime", "Drama"]) == ["crime", "Drama"]

    def test_nothing_new(self):
        assert merge_genres(["Crime"], ["crime"]) is None


class TestNeedsMetadata:
    def test_missing_cover(self, blank_film):
        assert needs_metadata(blank_film("Heat"))

    def test_complete_page(self, make_page, prop):
        page = make_page(
            "p1",
            Name=prop.title("Heat (1995)"),
            Overview=prop.rich_text("x"),
            Type=prop.select("Film"),
            Year=prop.number(1995),
            Genre=prop.multi_select("Crime"),
            Country=prop.rich_text("USA"),
            Metascore=prop.number(76),
            **{
                "Runtime (Raw)": prop.number(170),
                "Director(s)": prop.rich_text("Michael Mann"),
                "Writer(s)": prop.rich_text("Michael Mann"),
                "IMDB ID": prop.rich_text("tt0113277"),
                "IMDB Score": prop.number(8.3),
                "Tomatometer (Raw)": prop.number(83),
            },
        )
        page["cover"] = {"type": "external", "external": {"url": "x"}}
        assert not needs_metadata(page)

        page["properties"]["Name"] = prop.title("Heat")
        assert needs_metadata(page)


class TestBuildFilmUpdates:
    """Tests for build_film_updates."""

    def test_fills_everything_for_blank_page(self, blank_film, heat_metadata):
        updates = build_film_updates(
            blank_film("Heat"), heat_metadata, Ratings(imdb_rating=8.3, tomatometer=83, metascore=76)
        )

        assert updates["Type"] == {"select": {"name": "Film"}}
        assert updates["Runtime (Raw)"] == {"number": 170}
        assert updates["Year"] == {"number": 1995}
        assert updates["Genre"] == {"multi_select": [{"name": "Crime"}, {"name": "Drama"}]}
        assert updates["Metascore"] == {"number": 76}
        assert updates["Tomatometer (Raw)"] == {"number": 83}
        assert updates["Name"]["title"][0]["text"]["content"] == "Heat (1995)"

    def test_keeps_filled_properties(self, blank_film, heat_metadata, prop):
        page = blank_film("Heat", Overview=prop.rich_text("My own summary"),
                          Genre=prop.multi_select("Thriller"))

        updates = build_film_updates(page, heat_metadata, None)

        assert "Overview" not in updates
        assert updates["Genre"] == {"multi_select": [
            {"name": "Thriller"}, {"name": "Crime"}, {"name": "Drama"}
        ]}

    def test_series_gets_no_runtime(self, blank_film, heat_metadata):
        heat_metadata.media_type = "tv"
        updates = build_film_updates(blank_film("Heat"), heat_metadata, None)
        assert updates["Type"] == {"select": {"name": "TV Series"}}
        assert "Runtime (Raw)" not in updates

    def test_year_from_title_without_metadata(self, blank_film):
        updates = build_film_updates(blank_film("Heat (1995)"), None, None)
        assert updates == {"Year": {"number": 1995}}


class TestFilmsMetadataPopulator:
    """Tests for FilmsMetadataPopulator."""

    def test_sets_cover_and_fields(self, fake_notion, blank_film, heat_metadata, logger):
        notion = fake_notion(pages=[blank_film("Heat")])
        tmdb = MagicMock()
        tmdb.lookup.return_value = heat_metadata
        omdb = MagicMock()
        omdb.fetch_ratings.return_value = Ratings(imdb_rating=8.3)

        summary = FilmsMetadataPopulator(notion, "films", logger, tmdb=tmdb, omdb=omdb, delay=0).run()

        assert summary["updated"] == 1
        cover_update, property_update = notion.updates
        assert cover_update["cover"]["external"]["url"] == heat_metadata.poster_url
        assert property_update["properties"]["IMDB Score"] == {"number": 8.3}
        omdb.fetch_ratings.assert_called_once_with("tt0113277")

    def test_not_found(self, fake_notion, blank_film, logger):
        notion = fake_notion(pages=[blank_film("Obscure")])
        tmdb = MagicMock()
        tmdb.lookup.return_value = None

        summary = FilmsMetadataPopulator(notion, "films", logger, tmdb=tmdb, delay=0).run()

        assert summary["not_found"] == 1
        assert notion.updates == []

    def test_lookup_failure_is_per_record(self, fake_notion, blank_film, heat_metadata, logger):
        notion = fake_notion(pages=[blank_film("Heat"), blank_film("Ronin")])
        tmdb = MagicMock()
        tmdb.lookup.side_effect = [ExternalServiceError("tmdb", "timed out"), heat_metadata]

        summary = FilmsMetadataPopulator(notion, "films", logger, tmdb=tmdb, delay=0).run()

        assert summary["status"] == "Partial"
        assert summary["updated"] == 1
        assert summary["errors"][0]["page_id"] == "page-Heat"
