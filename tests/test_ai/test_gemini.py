"""Tests for the Gemini client."""

from unittest.mock import MagicMock

import pytest
import requests

from notion_automation.ai.gemini import GeminiClient
from notion_automation.config.constants import GEMINI_DEFAULT_MODEL
from notion_automation.exceptions import AIGenerationError


def _response(status=200, body=None):
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.json.return_value = body
    response.text = "error body"
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session, logger):
    return GeminiClient("test-key", session=session, logger=logger)


class TestGeminiClient:
    """Tests for GeminiClient.generate."""

    def test_default_model_url(self, client):
        assert client.model == GEMINI_DEFAULT_MODEL
        assert client.url.endswith(f"/models/{GEMINI_DEFAULT_MODEL}:generateContent")

    def test_returns_concatenated_text(self, client, session):
        session.post.return_value = _response(body={
            "candidates": [{"content": {"parts": [{"text": '{"meals": '}, {"text": "[]}"}]}}]
        })

        assert client.generate("List meals") == '{"meals": []}'

        call = session.post.call_args
        assert call.kwargs["headers"]["x-goog-api-key"] == "test-key"
        assert call.kwargs["json"]["contents"] == [{"parts": [{"text": "List meals"}]}]
        assert call.kwargs["json"]["generationConfig"] == {"responseMimeType": "application/json"}

    def test_plain_text_mode_omits_generation_config(self, client, session):
        session.post.return_value = _response(body={
            "candidates": [{"content": {"parts": [{"text": "hello"}]}}]
        })
        client.generate("Say hello", json_output=False)
        assert "generationConfig" not in session.post.call_args.kwargs["json"]

    def test_api_error(self, client, session):
        session.post.return_value = _response(400, {"error": {"message": "API key not valid"}})

        with pytest.raises(AIGenerationError, match="API key not valid"):
            client.generate("x")

    def test_transport_error(self, client, session):
        session.post.side_effect = requests.ConnectionError("connection reset")

        with pytest.raises(AIGenerationError, match="request failed"):
            client.generate("x")

    def test_no_text_reports_reason(self, client, session):
        session.post.return_value = _response(body={"promptFeedback": {"blockReason": "SAFETY"}})

        with pytest.raises(AIGenerationError, match="SAFETY"):
            client.generate("x")
