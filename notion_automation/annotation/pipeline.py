"""
Batch Annotation Pipeline

Fills empty Notion properties for many records with a single text-generation
call:

    collect names -> build prompt -> generate -> parse/validate
        -> for each record: compute update of still-empty fields -> write

Results are matched to records by position unless every result echoes the
record name back, in which case they are matched by (case-insensitive) name;
records sharing a name take the results echoing that name in order.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

from ..ai.parsing import parse_json_response, validate_items
from ..exceptions import PerRecordWriteError
from ..notion.properties import build_property_updates, extract_title, has_empty_properties
from ..utils.structured_logger import StructuredLogger, get_logger
from .prompt import load_prompt_template, number_items, render_prompt


def _correlate(
    names: Sequence[str],
    results: List[Dict[str, Any]],
    echo_key: Optional[str],
) -> List[Optional[Dict[str, Any]]]:
    """Pair each record name with its result (or None)."""
    if echo_key and results and all(isinstance(r.get(echo_key), str) for r in results):
        by_name: Dict[str, List[Dict[str, Any]]] = {}
        for result in results:
            by_name.setdefault(result[echo_key].strip().lower(), []).append(result)
        paired = []
        for name in names:
            queue = by_name.get(name.strip().lower())
            paired.append(queue.pop(0) if queue else None)
        return paired

    return [results[i] if i < len(results) else None for i in range(len(names))]


def batch_annotate(
    ai,
    pages: Sequence[Dict[str, Any]],
    extract_name: Callable[[Dict[str, Any]], str],
    build_prompt: Callable[[List[str]], str],
    parse_response: Callable[[Any], List[Dict[str, Any]]],
    build_updates: Callable[[Dict[str, Any], Dict[str, Any]], Dict[str, Any]],
    update_page: Callable[[Dict[str, Any], Dict[str, Any]], Any],
    item_type: str = "item",
    echo_key: Optional[str] = None,
    logger: Optional[StructuredLogger] = None,
) -> Dict[str, Any]:
    """
    Annotate a batch of records with one AI call.

    Args:
        ai: Client exposing generate(prompt, json_output=True) -> str
        pages: Eligible Notion pages, in the order they will be listed
        extract_name: Page -> display name
        build_prompt: Ordered names -> prompt text
        parse_response: Decoded JSON -> list of result objects (validates)
        build_updates: (page, result) -> property updates, empty to skip
        update_page: (page, updates) -> writes the update
        item_type: Noun used in log lines ("meal", "walk", ...)
        echo_key: Result key carrying the echoed record name, if any
        logger: Optional StructuredLogger

    Returns:
        Summary dict with status and per-outcome counts

    Raises:
        AIGenerationError: The generate call failed
        ResponseParseError: Output was empty, not JSON, or wrongly shaped
    """
    log = logger or get_logger(__name__)

    names = [extract_name(page) for page in pages]
    prompt = build_prompt(names)

    log.info(f"Annotating all {item_type}s in one API call...", count=len(names))
    raw = ai.generate(prompt, json_output=True)
    log.debug("AI response", response=raw)

    with log.step_context("parse_response"):
        results = parse_response(parse_json_response(raw))

    if len(results) != len(pages):
        log.alert(
            f"Expected {len(pages)} {item_type}s but got {len(results)}",
            expected=len(pages),
            received=len(results),
        )

    updated, skipped, missing = 0, 0, 0
    errors = []

    for page, name, data in zip(pages, names, _correlate(names, results, echo_key)):
        if not data:
            log.alert(f"No data for: {name}", page_id=page.get("id"))
            missing += 1
            continue

        updates = build_updates(page, data)
        if not updates:
            log.skip(f"Skipped {name} - all fields already filled")
            skipped += 1
            continue

        try:
            update_page(page, updates)
        except PerRecordWriteError as e:
            log.log_error_with_context(e, operation="update_page", page_id=page.get("id"), name=name)
            errors.append({"page_id": page.get("id"), "name": name, "error": str(e)})
            continue

        log.success(f"Updated {len(updates)} fields for: {name}")
        updated += 1

    return {
        "status": "Partial" if errors else "Completed",
        "requested": len(pages),
        "received": len(results),
        "updated": updated,
        "skipped": skipped,
        "missing": missing,
        "errors": errors,
    }


def run_annotation_workflow(
    workflow,
    notion,
    ai,
    logger: Optional[StructuredLogger] = None,
) -> Dict[str, Any]:
    """
    Run one declarative annotation workflow end to end.

    Args:
        workflow: AnnotationWorkflow definition
        notion: NotionClient (or anything with query_database/update_page)
        ai: Text generation client
        logger: Optional StructuredLogger

    Returns:
        Summary dict; "nothing to do" runs report zero counts
    """
    log = logger or get_logger(__name__)

    log.info("Fetching all pages from database...", database_id=workflow.database_id)
    pages = notion.query_database(workflow.database_id)
    log.info(f"Total pages retrieved: {len(pages)}")

    eligible = [p for p in pages if has_empty_properties(p, workflow.required_properties)]
    log.info(f"Found {len(eligible)} {workflow.item_type}s with empty fields")

    if not eligible:
        log.info("No items need annotation. All done!")
        return {
            "status": "Completed",
            "message": "No items need annotation",
            "requested": 0,
            "received": 0,
            "updated": 0,
            "skipped": 0,
            "missing": 0,
            "errors": [],
        }

    template = load_prompt_template(workflow.prompt)

    def build_prompt(names):
        values = dict(workflow.placeholders)
        values[workflow.list_placeholder] = number_items(names)
        return render_prompt(template, values)

    return batch_annotate(
        ai,
        eligible,
        extract_name=lambda page: extract_title(page, property_name=workflow.title_property),
        build_prompt=build_prompt,
        parse_response=lambda data: validate_items(
            data, workflow.items_key, workflow.result_fields
        ),
        build_updates=lambda page, data: build_property_updates(
            page, data, workflow.field_mappings
        ),
        update_page=lambda page, updates: notion.update_page(page["id"], properties=updates),
        item_type=workflow.item_type,
        echo_key=workflow.echo_key,
        logger=log,
    )
