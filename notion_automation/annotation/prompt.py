"""Prompt templates for the batch annotation workflows."""

from importlib import resources
from typing import Dict, Sequence

PROMPTS_PACKAGE = "notion_automation.prompts"


def number_items(names: Sequence[str]) -> str:
    """Render names as a 1-based numbered list, one per line."""
    return "\n".join(f"{i}. {name}" for i, name in enumerate(names, 1))


def render_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace every {{KEY}} occurrence in the template."""
    prompt = template
    for key, value in values.items():
        prompt = prompt.replace("{{" + key + "}}", str(value))
    return prompt


def load_prompt_template(name: str) -> str:
    """Read a prompt template shipped in the prompts package."""
    return resources.files(PROMPTS_PACKAGE).joinpath(name).read_text(encoding="utf-8")
