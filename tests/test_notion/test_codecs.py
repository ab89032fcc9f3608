"""Tests for Notion property codecs."""

from notion_automation.notion.codecs import (
    CODECS,
    multi_select,
    number,
    parse_multi_select,
    rich_text,
    select,
    title,
)


class TestParseMultiSelect:
    """Tests for parse_multi_select."""

    def test_splits_and_trims(self):
        assert parse_multi_select(" Hiking ,Kayaking") == [
            {"name": "Hiking"}, {"name": "Kayaking"}
        ]

    def test_collapses_duplicates_keeping_first(self):
        assert parse_multi_select("A, B, B, C") == [
            {"name": "A"}, {"name": "B"}, {"name": "C"}
        ]

    def test_drops_empty_entries(self):
        assert parse_multi_select("A,, ,B,") == [{"name": "A"}, {"name": "B"}]

    def test_empty_string(self):
        assert parse_multi_select("") == []


class TestCodecs:
    """Tests for the individual codecs."""

    def test_rich_text(self):
        assert rich_text("Boil water") == {
            "rich_text": [{"text": {"content": "Boil water"}}]
        }

    def test_title(self):
        assert title("Lasagne") == {"title": [{"text": {"content": "Lasagne"}}]}

    def test_select_trims(self):
        assert select(" Summer ") == {"select": {"name": "Summer"}}

    def test_multi_select_from_string(self):
        assert multi_select("Leeds, Manchester") == {
            "multi_select": [{"name": "Leeds"}, {"name": "Manchester"}]
        }

    def test_multi_select_from_list(self):
        assert multi_select(["Leeds", "Leeds", "London"]) == {
            "multi_select": [{"name": "Leeds"}, {"name": "London"}]
        }

    def test_number(self):
        assert number(12.5) == {"number": 12.5}

    def test_registry_names(self):
        assert set(CODECS) == {"rich_text", "title", "select", "multi_select", "number"}
