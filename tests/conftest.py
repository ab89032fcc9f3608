"""
Shared test fixtures for the workflow tests.

These fixtures provide in-memory stand-ins for the Notion and Gemini clients
and builders for Notion-shaped page and block dicts, so unit tests run
without API connections.
"""
import json
import logging

import pytest

from notion_automation.exceptions import PerRecordWriteError
from notion_automation.utils.structured_logger import StructuredLogger


class FakeNotionClient:
    """Records writes and serves canned query results."""

    def __init__(self, pages=None, blocks=None, failing_ids=()):
        self.pages = list(pages or [])
        self.blocks = dict(blocks or {})
        self.failing_ids = set(failing_ids)
        self.queries = []
        self.updates = []
        self.created = []
        self.deleted = []
        self.appended = []
        self.retrieved = {}

    def query_database(self, database_id, filter=None, sorts=None, page_size=100):
        self.queries.append({"database_id": database_id, "filter": filter})
        return list(self.pages)

    def query_first(self, database_id, filter=None):
        self.queries.append({"database_id": database_id, "filter": filter})
        return None

    def retrieve_page(self, page_id):
        return self.retrieved[page_id]

    def create_page(self, database_id, properties, children=None):
        self.created.append({"database_id": database_id, "properties": properties})
        return {"id": f"new-{len(self.created)}"}

    def update_page(self, page_id, properties=None, archived=None, cover=None):
        if page_id in self.failing_ids:
            raise PerRecordWriteError(page_id, "validation_error", status_code=400)
        self.updates.append({
            "page_id": page_id,
            "properties": properties,
            "archived": archived,
            "cover": cover,
        })
        return {"id": page_id}

    def archive_page(self, page_id):
        return self.update_page(page_id, archived=True)

    def list_block_children(self, block_id):
        return list(self.blocks.get(block_id, []))

    def append_block_children(self, block_id, children, after=None):
        self.appended.append({"block_id": block_id, "children": children, "after": after})
        return {"results": children}

    def delete_block(self, block_id):
        self.deleted.append(block_id)
        return {"id": block_id, "archived": True}

    def updated_ids(self):
        return [u["page_id"] for u in self.updates]


class FakeAIClient:
    """Returns a canned response and remembers the prompts it was given."""

    def __init__(self, response=""):
        self.response = response if isinstance(response, str) else json.dumps(response)
        self.prompts = []

    def generate(self, prompt, json_output=True):
        self.prompts.append(prompt)
        return self.response


@pytest.fixture
def fake_notion():
    return FakeNotionClient


@pytest.fixture
def fake_ai():
    return FakeAIClient


@pytest.fixture
def logger():
    """Quiet StructuredLogger; records still propagate to caplog."""
    return StructuredLogger("notion_automation.tests", level=logging.DEBUG)


# --- Notion-shaped builders ---

def _spans(text):
    return [{"type": "text", "plain_text": text, "text": {"content": text}}] if text else []


@pytest.fixture
def prop():
    """Builders for property values as returned by the Notion API."""

    class Prop:
        @staticmethod
        def title(text=""):
            return {"type": "title", "title": _spans(text)}

        @staticmethod
        def rich_text(text=""):
            return {"type": "rich_text", "rich_text": _spans(text)}

        @staticmethod
        def select(name=None):
            return {"type": "select", "select": {"name": name} if name else None}

        @staticmethod
        def multi_select(*names):
            return {"type": "multi_select", "multi_select": [{"name": n} for n in names]}

        @staticmethod
        def number(value=None):
            return {"type": "number", "number": value}

        @staticmethod
        def checkbox(value=False):
            return {"type": "checkbox", "checkbox": value}

        @staticmethod
        def date(start=None):
            return {"type": "date", "date": {"start": start} if start else None}

        @staticmethod
        def relation(*ids):
            return {"type": "relation", "relation": [{"id": i} for i in ids]}

    return Prop


@pytest.fixture
def make_page():
    def _make(page_id, **properties):
        return {"object": "page", "id": page_id, "properties": properties}
    return _make


@pytest.fixture
def make_block():
    def _make(block_id, kind, text="", checked=None, has_children=False):
        data = {"rich_text": _spans(text)}
        if checked is not None:
            data["checked"] = checked
        return {
            "object": "block",
            "id": block_id,
            "type": kind,
            "has_children": has_children,
            kind: data,
        }
    return _make
