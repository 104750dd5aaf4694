"""CLI entry point: summarize the resources of one recorded page load."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml

from .budget import BudgetConfigError, BudgetRow, evaluate_budget, get_matching_budget, load_budgets
from .computed import ComputedContext, request_network_records, request_resource_summary
from .config import load_config
from .entity_db import EntityDatabase
from .models import BudgetResourceType, LinkElement, ResourceSummary, URLArtifact
from .network_records import RecordParsingError, find_main_document_url, load_devtools_log

logger = logging.getLogger(__name__)

ROW_LABELS = {
    BudgetResourceType.TOTAL: "Total",
    BudgetResourceType.SCRIPT: "Script",
    BudgetResourceType.IMAGE: "Image",
    BudgetResourceType.MEDIA: "Media",
    BudgetResourceType.FONT: "Font",
    BudgetResourceType.STYLESHEET: "Stylesheet",
    BudgetResourceType.DOCUMENT: "Document",
    BudgetResourceType.OTHER: "Other",
    BudgetResourceType.THIRD_PARTY: "Third-party",
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="page_budget",
        description="Summarize request counts and bytes per resource type for a page load",
    )
    parser.add_argument(
        "--devtools-log", type=str, required=True,
        help="Path to the devtools log JSON recorded while loading the page",
    )
    parser.add_argument(
        "--url", type=str, required=True,
        help="URL that was requested",
    )
    parser.add_argument(
        "--final-url", type=str, default=None,
        help="URL displayed once the page settled (default: main document URL)",
    )
    parser.add_argument(
        "--links", type=str, default=None,
        help="JSON file with the page's <link> elements ([{\"rel\": ..., \"href\": ...}])",
    )
    parser.add_argument(
        "--budgets", type=str, default=None,
        help="Override budgets file (YAML or JSON)",
    )
    parser.add_argument(
        "--entities", type=str, default=None,
        help="Override third-party-web style entities JSON file",
    )
    parser.add_argument(
        "--config", type=str, default="config.yaml",
        help="Path to config.yaml (default: ./config.yaml)",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Print the summary as JSON",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    return parser.parse_args(argv)


def load_link_elements(path: Path) -> list[LinkElement]:
    """Load link elements from a JSON list of {rel, href} objects."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return [
        LinkElement(rel=item.get("rel"), href=item.get("href"))
        for item in data if isinstance(item, dict)
    ]


def _format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KiB"
    return f"{size / (1024 * 1024):.2f} MiB"


def print_summary(summary: ResourceSummary, rows: list[BudgetRow]) -> None:
    print("=" * 60)
    print(f"  {'Resource type':<14} {'Requests':>9} {'Transfer size':>15} {'Resource size':>15}")
    print("-" * 60)
    for resource_type, label in ROW_LABELS.items():
        entry = summary[resource_type]
        print(
            f"  {label:<14} {entry.count:>9} "
            f"{_format_bytes(entry.transfer_size):>15} {_format_bytes(entry.resource_size):>15}"
        )
    print("=" * 60)

    if not rows:
        return
    print("BUDGET")
    for row in rows:
        over = []
        if row.size_over_budget:
            over.append(f"+{_format_bytes(row.size_over_budget)}")
        if row.count_over_budget:
            over.append(f"+{row.count_over_budget} requests")
        status = ", ".join(over) if over else "within budget"
        print(f"  {ROW_LABELS[row.resource_type]:<14} {status}")


def _summary_json(summary: ResourceSummary, rows: list[BudgetRow]) -> str:
    return json.dumps({
        "resourceSummary": summary.to_dict(),
        "budget": [
            {
                "resourceType": row.resource_type.value,
                "count": row.count,
                "transferSize": row.transfer_size,
                "sizeOverBudget": row.size_over_budget,
                "countOverBudget": row.count_over_budget,
            }
            for row in rows
        ],
    }, indent=2)


async def main(args: argparse.Namespace) -> None:
    """Load the inputs, compute the resource summary and print it."""
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    config_path = Path(args.config).resolve()
    try:
        config = load_config(config_path)
        if not args.verbose:
            logging.getLogger().setLevel(config.logging.level.upper())
    except (ValueError, yaml.YAMLError) as e:
        logger.error("Invalid config %s: %s", config_path, e)
        sys.exit(1)
    for name in config.logging.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Apply CLI overrides
    if args.budgets:
        config.summary.budgets_path = args.budgets
    if args.entities:
        config.summary.entities_path = args.entities
    if args.json:
        config.summary.output_format = "json"

    try:
        devtools_log = load_devtools_log(args.devtools_log)
        link_elements = load_link_elements(Path(args.links)) if args.links else []
        budgets = None
        if config.summary.budgets_path:
            budgets = load_budgets(config.resolve_path(config.summary.budgets_path))
    except FileNotFoundError as e:
        logger.error("File not found: %s", e.filename)
        sys.exit(1)
    except (RecordParsingError, BudgetConfigError, json.JSONDecodeError) as e:
        logger.error("%s", e)
        sys.exit(1)

    entities_path = None
    if config.summary.entities_path:
        entities_path = config.resolve_path(config.summary.entities_path)
    context = ComputedContext(EntityDatabase(entities_path))

    try:
        records = await request_network_records({"devtoolsLog": devtools_log}, context)
        main_document_url = find_main_document_url(records, args.url)
        url_artifact = URLArtifact(
            requested_url=args.url,
            main_document_url=main_document_url,
            final_displayed_url=args.final_url or main_document_url or args.url,
        )
        summary = await request_resource_summary({
            "URL": url_artifact,
            "devtoolsLog": devtools_log,
            "budgets": budgets,
            "LinkElements": link_elements,
        }, context)
    except RecordParsingError as e:
        logger.error("Malformed devtools log: %s", e)
        sys.exit(1)

    logger.info("Summarized %d requests (%d third-party) for %s",
                summary[BudgetResourceType.TOTAL].count,
                summary[BudgetResourceType.THIRD_PARTY].count,
                main_document_url)

    budget = get_matching_budget(budgets, main_document_url)
    rows = evaluate_budget(summary, budget) if budget else []

    if config.summary.output_format == "json":
        print(_summary_json(summary, rows))
    else:
        print_summary(summary, rows)
