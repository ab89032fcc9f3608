"""Tests for the command-line runner."""

import os
from unittest.mock import patch

import pytest

from notion_automation.exceptions import ConfigurationError
from notion_automation.workflows import populate
from notion_automation.workflows.runner import build_gemini_client, main_for, run_cli


@pytest.fixture(autouse=True)
def quiet_env():
    with patch.dict(os.environ, {"LOG_SILENT": "true"}), \
            patch("notion_automation.workflows.runner.load_environment"):
        yield


class TestRunCli:
    """Tests for run_cli exit codes."""

    def test_success_returns_zero(self):
        assert run_cli("test-job", lambda logger: {"status": "Completed", "updated": 2}) == 0

    def test_partial_still_returns_zero(self):
        assert run_cli("test-job", lambda logger: {"status": "Partial", "errors": [{}]}) == 0

    def test_error_returns_one_and_prints_guidance(self, capsys):
        def job(logger):
            raise ConfigurationError("NOTION_TOKEN is not defined")

        assert run_cli("test-job", job) == 1

        err = capsys.readouterr().err
        assert "Configuration error: NOTION_TOKEN is not defined" in err
        assert "Operation: test-job" in err

    def test_main_for_exits(self):
        with pytest.raises(SystemExit) as exc_info:
            main_for("test-job", lambda logger: None)
        assert exc_info.value.code == 0


class TestClientBuilders:
    @patch.dict(os.environ, {"GEMINI_API_KEY": "k", "GEMINI_MODEL": "gemini-2.5-pro"})
    def test_gemini_model_override(self, logger):
        assert build_gemini_client(logger).model == "gemini-2.5-pro"

    @patch.dict(os.environ, {"GEMINI_API_KEY": "k", "GEMINI_MODEL": ""})
    def test_gemini_default_model(self, logger):
        assert build_gemini_client(logger).model == "gemini-2.5-flash"


class TestPopulateEntryPoints:
    @patch.dict(os.environ, {"WALKS_DATABASE_ID": "w"}, clear=False)
    def test_missing_home_location_exits_one(self):
        os.environ.pop("HOME_LOCATION", None)
        with pytest.raises(SystemExit) as exc_info:
            populate.walks_main()
        assert exc_info.value.code == 1

    @patch.dict(os.environ, {"MEALS_DATABASE_ID": "m", "NOTION_TOKEN": "t", "GEMINI_API_KEY": "g"})
    def test_populate_wires_clients(self, logger):
        with patch.object(populate, "run_annotation_workflow", return_value={"status": "Completed"}) as run:
            assert populate.populate("meals", logger) == {"status": "Completed"}

        workflow, notion, ai = run.call_args.args
        assert workflow.database_id == "m"
        assert notion.session.headers["Authorization"] == "Bearer t"
        assert ai.api_key == "g"
