"""Environment and workflow configuration loading."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from ..exceptions import ConfigurationError
from ..notion.codecs import CODECS, Codec
from .constants import ERROR_MISSING_ENV


# Pattern to match ${VAR_NAME} or ${VAR_NAME:-default}
ENV_VAR_PATTERN = re.compile(r'\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}')

DEFAULT_ANNOTATIONS_PATH = Path(__file__).with_name("annotations.yaml")

NUMBER_CODECS = {"number"}


def load_environment(dotenv_path: Optional[str] = None) -> None:
    """Load variables from a .env file without overriding the real environment."""
    load_dotenv(dotenv_path, override=False)


def require_env(name: str) -> str:
    """
    Return a mandatory environment variable.

    Raises:
        ConfigurationError: If the variable is unset or blank
    """
    value = os.environ.get(name)
    if not value:
        raise ConfigurationError(ERROR_MISSING_ENV.format(name))
    return value


def optional_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Return an optional environment variable, treating blanks as unset."""
    value = os.environ.get(name)
    return value if value else default


def _substitute_env_vars(value: Any) -> Any:
    """
    Recursively substitute environment variables in configuration values.

    Supports patterns:
        ${VAR_NAME} - Required variable, raises error if not set
        ${VAR_NAME:-default} - Optional variable with default value
    """
    if isinstance(value, str):
        def replace_match(match: re.Match) -> str:
            var_name = match.group(1)
            default = match.group(2)
            env_value = os.environ.get(var_name)

            if env_value:
                return env_value
            elif default is not None:
                return default
            else:
                raise ConfigurationError(ERROR_MISSING_ENV.format(var_name))

        return ENV_VAR_PATTERN.sub(replace_match, value)

    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]

    else:
        return value


@dataclass(frozen=True)
class FieldMapping:
    """How one AI result field becomes one Notion property update."""

    property_name: str
    result_key: str
    codec_name: str

    @property
    def codec(self) -> Codec:
        return CODECS[self.codec_name]

    @property
    def kind(self) -> str:
        """Primitive JSON kind the AI must return for this field."""
        return "number" if self.codec_name in NUMBER_CODECS else "string"


@dataclass
class AnnotationWorkflow:
    """Declarative description of one batch annotation job."""

    key: str
    database_id: str
    item_type: str
    items_key: str
    prompt: str
    list_placeholder: str
    field_mappings: list[FieldMapping]
    required_properties: list[str] = field(default_factory=list)
    placeholders: dict[str, str] = field(default_factory=dict)
    echo_key: Optional[str] = None
    title_property: str = "Name"

    def __post_init__(self):
        if not self.required_properties:
            self.required_properties = [m.property_name for m in self.field_mappings]

    @property
    def result_fields(self) -> list[tuple[str, str]]:
        """(key, kind) descriptors used to validate the AI response."""
        return [(m.result_key, m.kind) for m in self.field_mappings]

    def validate(self) -> None:
        """Validate the workflow definition."""
        if not self.database_id:
            raise ConfigurationError(f"Workflow '{self.key}' is missing a database_id")
        if not self.items_key:
            raise ConfigurationError(f"Workflow '{self.key}' is missing an items_key")
        if not self.field_mappings:
            raise ConfigurationError(f"Workflow '{self.key}' has no field mappings")

        for mapping in self.field_mappings:
            if mapping.codec_name not in CODECS:
                available = ", ".join(sorted(CODECS))
                raise ConfigurationError(
                    f"Workflow '{self.key}': unknown codec '{mapping.codec_name}' "
                    f"for '{mapping.property_name}'. Available: {available}"
                )


def _read_annotations_file(config_path: Optional[str]) -> dict[str, Any]:
    config_file = Path(config_path) if config_path else DEFAULT_ANNOTATIONS_PATH
    if not config_file.exists():
        raise ConfigurationError(f"Configuration file not found: {config_file}")

    try:
        with open(config_file, encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_file}: {e}")

    if not raw_data or not raw_data.get("workflows"):
        raise ConfigurationError(f"No workflows defined in {config_file}")

    return raw_data["workflows"]


def _parse_workflow(key: str, data: dict[str, Any]) -> AnnotationWorkflow:
    mappings = [
        FieldMapping(
            property_name=m.get("property", ""),
            result_key=m.get("key", ""),
            codec_name=m.get("codec", ""),
        )
        for m in data.get("fields", [])
    ]
    workflow = AnnotationWorkflow(
        key=key,
        database_id=data.get("database_id", ""),
        item_type=data.get("item_type", "item"),
        items_key=data.get("items_key", ""),
        prompt=data.get("prompt", f"{key}.md"),
        list_placeholder=data.get("list_placeholder", "ITEMS_LIST"),
        field_mappings=mappings,
        required_properties=list(data.get("required_properties", [])),
        placeholders=dict(data.get("placeholders", {})),
        echo_key=data.get("echo_key"),
        title_property=data.get("title_property", "Name"),
    )
    workflow.validate()
    return workflow


def list_annotation_workflows(config_path: Optional[str] = None) -> list[str]:
    """Return the keys of all configured annotation workflows."""
    return list(_read_annotations_file(config_path).keys())


def load_annotation_workflow(
    key: str, config_path: Optional[str] = None
) -> AnnotationWorkflow:
    """
    Load one annotation workflow definition.

    Environment variables are substituted only for the selected workflow, so
    running one job never requires another job's variables.

    Args:
        key: Workflow key in the YAML file (e.g. "meals")
        config_path: Optional path overriding the packaged annotations.yaml

    Returns:
        Parsed and validated AnnotationWorkflow

    Raises:
        ConfigurationError: Unknown key, missing variable or invalid definition
    """
    workflows = _read_annotations_file(config_path)
    if key not in workflows:
        available = ", ".join(workflows.keys())
        raise ConfigurationError(
            f"Workflow '{key}' not found. Available: {available}"
        )

    data = _substitute_env_vars(workflows[key])
    return _parse_workflow(key, data)
