"""Tests for common utility functions."""

from unittest.mock import patch

from notion_automation.utils.common_utils import extract_text_from_rich_text, pause, safe_get


def test_safe_get_nested_access():
    """Test safe_get over Notion-shaped dicts and lists."""
    page = {
        "properties": {
            "Name": {"title": [{"plain_text": "Lasagne"}]},
            "Season": {"select": None},
        }
    }

    assert safe_get(page, ["properties", "Name", "title", 0, "plain_text"]) == "Lasagne"
    assert safe_get(page, ["properties", "Name", "title", 3], "default") == "default"
    assert safe_get(page, ["properties", "Season", "select", "name"]) is None
    assert safe_get(page, ["properties", "Missing"], "default") == "default"


def test_safe_get_edge_cases():
    assert safe_get(None, "a", "default") == "default"
    assert safe_get({"a": 1}, [], "default") == "default"
    assert safe_get({"a": 1}, "a") == 1
    assert safe_get([1, 2], 1) == 2


def test_extract_text_from_rich_text():
    spans = [
        {"plain_text": "Boil "},
        {"text": {"content": "water"}},
    ]
    assert extract_text_from_rich_text(spans) == "Boil water"
    assert extract_text_from_rich_text([]) == ""
    assert extract_text_from_rich_text(None) == ""


@patch("notion_automation.utils.common_utils.time.sleep")
def test_pause(mock_sleep):
    pause(0)
    mock_sleep.assert_not_called()
    pause(0.3)
    mock_sleep.assert_called_once_with(0.3)
