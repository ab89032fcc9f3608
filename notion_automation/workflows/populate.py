"""
Database annotation workflows.

Fill missing fields in the meals, travel, walks and pubs databases with one
Gemini call per run. The per-database details live in config/annotations.yaml.

Required environment variables:
  - NOTION_TOKEN, GEMINI_API_KEY
  - meals: MEALS_DATABASE_ID
  - travel: TRAVEL_DATABASE_ID
  - walks: WALKS_DATABASE_ID, HOME_LOCATION
  - pubs: PUBS_DATABASE_ID, LOCATION
Optional: GEMINI_MODEL
"""

from ..annotation.pipeline import run_annotation_workflow
from ..config.settings import load_annotation_workflow
from .runner import build_gemini_client, build_notion_client, main_for


def populate(key, logger):
    """Load the named workflow definition and run it against live clients."""
    workflow = load_annotation_workflow(key)
    notion = build_notion_client(logger)
    ai = build_gemini_client(logger)
    return run_annotation_workflow(workflow, notion, ai, logger=logger)


def meals_main():
    main_for("populate-meals", lambda logger: populate("meals", logger))


def travel_main():
    main_for("populate-travel", lambda logger: populate("travel", logger))


def walks_main():
    main_for("populate-walks", lambda logger: populate("walks", logger))


def pubs_main():
    main_for("populate-pubs", lambda logger: populate("pubs", logger))
