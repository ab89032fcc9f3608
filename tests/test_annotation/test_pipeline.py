"""Tests for the batch annotation pipeline."""

import logging
from unittest.mock import MagicMock

import pytest
import requests

from notion_automation.annotation.pipeline import _correlate, batch_annotate, run_annotation_workflow
from notion_automation.config.settings import AnnotationWorkflow, FieldMapping
from notion_automation.exceptions import AIGenerationError, ResponseShapeError
from notion_automation.notion.client import NotionClient


@pytest.fixture
def meals_workflow():
    return AnnotationWorkflow(
        key="meals",
        database_id="meals-db",
        item_type="meal",
        items_key="meals",
        prompt="meals.md",
        list_placeholder="MEALS_LIST",
        field_mappings=[
            FieldMapping("Ingredients", "ingredients", "multi_select"),
            FieldMapping("Cooking instructions", "cookingInstructions", "rich_text"),
        ],
    )


@pytest.fixture
def empty_meal(make_page, prop):
    def _make(page_id, name):
        return make_page(
            page_id,
            Name=prop.title(name),
            Ingredients=prop.multi_select(),
            **{"Cooking instructions": prop.rich_text()},
        )
    return _make


def _meal(ingredients="Egg", instructions="Fry", name=None):
    result = {"ingredients": ingredients, "cookingInstructions": instructions}
    if name is not None:
        result["name"] = name
    return result


class TestCorrelate:
    def test_positional(self):
        results = [{"x": 1}, {"x": 2}]
        assert _correlate(["a", "b", "c"], results, None) == [{"x": 1}, {"x": 2}, None]

    def test_by_echoed_name(self):
        results = [{"name": "chilli", "x": 2}, {"name": "Lasagne", "x": 1}]
        assert _correlate(["Lasagne", "Chilli"], results, "name") == [results[1], results[0]]

    def test_falls_back_to_position_when_any_name_missing(self):
        results = [{"name": "Chilli"}, {"x": 1}]
        assert _correlate(["Lasagne", "Chilli"], results, "name") == results

    def test_shared_names_take_results_in_order(self):
        results = [{"name": "Unnamed", "x": 1}, {"name": "unnamed", "x": 2}]
        assert _correlate(["Unnamed", "Unnamed"], results, "name") == results

    def test_extra_record_with_shared_name_gets_nothing(self):
        results = [{"name": "Curry", "x": 1}]
        assert _correlate(["Curry", "Curry"], results, "name") == [results[0], None]


class TestRunAnnotationWorkflow:
    """End-to-end tests against fake Notion and AI clients."""

    def test_fills_empty_fields(self, meals_workflow, empty_meal, fake_notion, fake_ai, logger):
        notion = fake_notion(pages=[empty_meal("p1", "Lasagne")])
        ai = fake_ai({"meals": [_meal("Pasta, Beef, Tomato", "Layer and bake")]})

        summary = run_annotation_workflow(meals_workflow, notion, ai, logger)

        assert summary["status"] == "Completed"
        assert summary["updated"] == 1
        assert notion.updates[0]["properties"] == {
            "Ingredients": {"multi_select": [
                {"name": "Pasta"}, {"name": "Beef"}, {"name": "Tomato"}
            ]},
            "Cooking instructions": {"rich_text": [{"text": {"content": "Layer and bake"}}]},
        }
        assert "1. Lasagne" in ai.prompts[0]

    def test_fewer_results_than_records(
        self, meals_workflow, empty_meal, fake_notion, fake_ai, logger, caplog
    ):
        pages = [empty_meal("p0", "A"), empty_meal("p1", "B"), empty_meal("p2", "C")]
        notion = fake_notion(pages=pages)
        ai = fake_ai({"meals": [_meal("Egg"), _meal("Ham")]})

        with caplog.at_level(logging.WARNING):
            summary = run_annotation_workflow(meals_workflow, notion, ai, logger)

        assert notion.updated_ids() == ["p0", "p1"]
        assert summary["missing"] == 1
        assert summary["received"] == 2
        assert "Expected 3 meals but got 2" in caplog.text
        assert "No data for: C" in caplog.text

    def test_never_overwrites_filled_fields(self, meals_workflow, make_page, prop,
                                            fake_notion, fake_ai, logger):
        page = make_page(
            "p1",
            Name=prop.title("Omelette"),
            Ingredients=prop.multi_select("Egg", "Cheese"),
            **{"Cooking instructions": prop.rich_text()},
        )
        notion = fake_notion(pages=[page])
        ai = fake_ai({"meals": [_meal("Something else", "Whisk and fry")]})

        run_annotation_workflow(meals_workflow, notion, ai, logger)

        assert list(notion.updates[0]["properties"]) == ["Cooking instructions"]

    def test_nothing_to_do_skips_ai(self, meals_workflow, make_page, prop,
                                    fake_notion, fake_ai, logger):
        page = make_page(
            "p1",
            Name=prop.title("Omelette"),
            Ingredients=prop.multi_select("Egg"),
            **{"Cooking instructions": prop.rich_text("Fry")},
        )
        notion = fake_notion(pages=[page])
        ai = fake_ai("")

        summary = run_annotation_workflow(meals_workflow, notion, ai, logger)

        assert summary["status"] == "Completed"
        assert summary["message"] == "No items need annotation"
        assert ai.prompts == []
        assert notion.updates == []

    def test_duplicate_tags_are_collapsed(self, meals_workflow, empty_meal,
                                          fake_notion, fake_ai, logger):
        notion = fake_notion(pages=[empty_meal("p1", "Stew")])
        ai = fake_ai({"meals": [_meal("A, B, B, C", "Simmer")]})

        run_annotation_workflow(meals_workflow, notion, ai, logger)

        assert notion.updates[0]["properties"]["Ingredients"] == {
            "multi_select": [{"name": "A"}, {"name": "B"}, {"name": "C"}]
        }

    def test_malformed_element_writes_nothing(self, meals_workflow, empty_meal,
                                              fake_notion, fake_ai, logger):
        notion = fake_notion(pages=[empty_meal("p1", "A"), empty_meal("p2", "B")])
        ai = fake_ai({"meals": [_meal("Egg"), {"ingredients": 3, "cookingInstructions": "x"}]})

        with pytest.raises(ResponseShapeError):
            run_annotation_workflow(meals_workflow, notion, ai, logger)

        assert notion.updates == []

    def test_parse_failure_is_logged_as_failed_step(self, meals_workflow, empty_meal,
                                                    fake_notion, fake_ai, logger, caplog):
        notion = fake_notion(pages=[empty_meal("p1", "A")])

        with caplog.at_level(logging.ERROR):
            with pytest.raises(ResponseShapeError):
                run_annotation_workflow(meals_workflow, notion, fake_ai({"meals": "none"}), logger)

        assert "Step failed: parse_response" in caplog.text

    def test_matches_by_echoed_name(self, meals_workflow, empty_meal, fake_notion, fake_ai, logger):
        meals_workflow.echo_key = "name"
        notion = fake_notion(pages=[empty_meal("p1", "Lasagne"), empty_meal("p2", "Chilli")])
        ai = fake_ai({"meals": [
            _meal("Beans", "Simmer", name="Chilli"),
            _meal("Pasta", "Bake", name="Lasagne"),
        ]})

        run_annotation_workflow(meals_workflow, notion, ai, logger)

        by_id = {u["page_id"]: u["properties"] for u in notion.updates}
        assert by_id["p1"]["Ingredients"] == {"multi_select": [{"name": "Pasta"}]}
        assert by_id["p2"]["Ingredients"] == {"multi_select": [{"name": "Beans"}]}

    def test_same_named_records_each_get_their_own_result(
        self, meals_workflow, empty_meal, fake_notion, fake_ai, logger
    ):
        meals_workflow.echo_key = "name"
        notion = fake_notion(pages=[empty_meal("p1", "Curry"), empty_meal("p2", "Curry")])
        ai = fake_ai({"meals": [
            _meal("Lamb", "first", name="Curry"),
            _meal("Chickpeas", "second", name="Curry"),
        ]})

        run_annotation_workflow(meals_workflow, notion, ai, logger)

        by_id = {u["page_id"]: u["properties"] for u in notion.updates}
        assert by_id["p1"]["Ingredients"] == {"multi_select": [{"name": "Lamb"}]}
        assert by_id["p2"]["Ingredients"] == {"multi_select": [{"name": "Chickpeas"}]}

    def test_write_failure_continues_and_reports_partial(
        self, meals_workflow, empty_meal, fake_notion, fake_ai, logger
    ):
        pages = [empty_meal("p1", "A"), empty_meal("p2", "B"), empty_meal("p3", "C")]
        notion = fake_notion(pages=pages, failing_ids={"p2"})
        ai = fake_ai({"meals": [_meal(), _meal(), _meal()]})

        summary = run_annotation_workflow(meals_workflow, notion, ai, logger)

        assert summary["status"] == "Partial"
        assert notion.updated_ids() == ["p1", "p3"]
        assert summary["errors"][0]["page_id"] == "p2"

    def test_dropped_connection_fails_one_record_only(
        self, meals_workflow, empty_meal, fake_ai, logger
    ):
        pages = [empty_meal("p1", "A"), empty_meal("p2", "B")]

        def request(method, url, **kwargs):
            if method == "PATCH" and url.endswith("/p1"):
                raise requests.ConnectionError("reset")
            response = MagicMock(ok=True, status_code=200)
            if method == "POST":
                response.json.return_value = {"results": pages, "has_more": False}
            else:
                response.json.return_value = {"id": url.rsplit("/", 1)[-1]}
            return response

        session = MagicMock()
        session.headers = {}
        session.request.side_effect = request
        notion = NotionClient("secret_token", session=session, logger=logger)

        summary = run_annotation_workflow(
            meals_workflow, notion, fake_ai({"meals": [_meal(), _meal()]}), logger
        )

        assert summary["status"] == "Partial"
        assert summary["updated"] == 1
        assert summary["errors"][0]["page_id"] == "p1"
        patched = [c.args[1] for c in session.request.call_args_list if c.args[0] == "PATCH"]
        assert patched[-1] == "https://api.notion.com/v1/pages/p2"

    def test_second_run_is_idempotent(self, meals_workflow, empty_meal,
                                      fake_notion, fake_ai, logger, make_page, prop):
        notion = fake_notion(pages=[empty_meal("p1", "Lasagne")])
        run_annotation_workflow(
            meals_workflow, notion, fake_ai({"meals": [_meal("Pasta", "Bake")]}), logger
        )

        filled = make_page(
            "p1",
            Name=prop.title("Lasagne"),
            Ingredients=prop.multi_select("Pasta"),
            **{"Cooking instructions": prop.rich_text("Bake")},
        )
        second = fake_notion(pages=[filled])
        summary = run_annotation_workflow(meals_workflow, second, fake_ai(""), logger)

        assert summary["updated"] == 0
        assert second.updates == []


class TestBatchAnnotate:
    def test_generation_failure_propagates(self, fake_notion, logger):
        class FailingAI:
            def generate(self, prompt, json_output=True):
                raise AIGenerationError("quota exceeded")

        with pytest.raises(AIGenerationError):
            batch_annotate(
                FailingAI(),
                [{"id": "p1"}],
                extract_name=lambda page: "A",
                build_prompt=lambda names: "prompt",
                parse_response=lambda data: data,
                build_updates=lambda page, data: {},
                update_page=lambda page, updates: None,
                logger=logger,
            )

    def test_empty_updates_are_skipped(self, fake_ai, logger):
        written = []
        summary = batch_annotate(
            fake_ai({"items": [{"k": "v"}]}),
            [{"id": "p1"}],
            extract_name=lambda page: "A",
            build_prompt=lambda names: "prompt",
            parse_response=lambda data: data["items"],
            build_updates=lambda page, data: {},
            update_page=lambda page, updates: written.append(page),
            logger=logger,
        )
        assert summary["skipped"] == 1
        assert written == []
