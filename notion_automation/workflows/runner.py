"""
Command-line plumbing shared by every workflow.

Each console script loads .env, builds its clients from the environment,
runs inside a logged run context and exits 1 on any uncaught error.
"""

import sys
from typing import Any, Callable, Dict, Optional

from ..ai.gemini import GeminiClient
from ..config.settings import load_environment, optional_env, require_env
from ..notion.client import NotionClient
from ..utils.error_enrichment import format_error
from ..utils.structured_logger import StructuredLogger, get_workflow_logger

Job = Callable[[StructuredLogger], Optional[Dict[str, Any]]]


def build_notion_client(logger: StructuredLogger) -> NotionClient:
    return NotionClient(require_env("NOTION_TOKEN"), logger=logger)


def build_gemini_client(logger: StructuredLogger) -> GeminiClient:
    return GeminiClient(
        require_env("GEMINI_API_KEY"),
        model=optional_env("GEMINI_MODEL"),
        logger=logger,
    )


def run_cli(workflow_name: str, job: Job) -> int:
    """
    Run a workflow job and translate the outcome into an exit code.

    Args:
        workflow_name: Name used for the logger and run context
        job: Callable receiving the logger and returning a summary dict

    Returns:
        0 when the job returns, 1 when it raises
    """
    load_environment()
    logger = get_workflow_logger(workflow_name)

    try:
        with logger.run_context(workflow_name):
            summary = job(logger)
    except Exception as e:
        logger.log_error_with_context(e, operation=workflow_name)
        print(format_error(e, operation=workflow_name), file=sys.stderr)
        return 1

    if summary:
        logger.info("Summary", **summary)
    return 0


def main_for(workflow_name: str, job: Job) -> None:
    sys.exit(run_cli(workflow_name, job))
