"""Command-line entry point for the autofill engine."""

import argparse
import asyncio
import json
import logging
import sys
import time
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from autofill_engine.agents.field_classifier_agent import ClassificationContext
from autofill_engine.config import Config
from autofill_engine.core.answer_store import InMemoryAnswerStore, InMemoryExperienceStore, ProfileLoader
from autofill_engine.core.diagnostics_manager import DiagnosticsManager
from autofill_engine.core.engine import build_engine
from autofill_engine.core.models import FieldDescriptor

logger = logging.getLogger(__name__)


def load_fields(path: str) -> Tuple[List[FieldDescriptor], Optional[ClassificationContext]]:
    """
    Load scanned fields from a JSON file.

    The file holds either a list of field dicts, or an object with `fields`
    and an optional `page` block (`title`, `url`, `keywords`).

    Args:
        path: Path to the JSON file

    Returns:
        Tuple of (fields, page context or None)
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    page: Dict[str, Any] = {}
    if isinstance(data, dict):
        page = data.get("page") or {}
        data = data.get("fields") or []
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of fields in {path}")

    fields = [FieldDescriptor.from_dict(item) for item in data]
    context = None
    if page:
        context = ClassificationContext(
            page_title=page.get("title", ""),
            url_path=urlparse(page.get("url", "")).path,
            keywords=list(page.get("keywords") or []),
        )
    return fields, context


def write_output(payload: Dict[str, Any], output: Optional[str]) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text)
        logger.info(f"Wrote results to {output}")
    else:
        print(text)


async def run_plan(args: argparse.Namespace, config: Config) -> Dict[str, Any]:
    """Run one planning pass against a profile and return the bucketed result."""
    fields, context = load_fields(args.fields)
    if args.profile:
        answers, experiences = ProfileLoader(args.profile).load()
    else:
        answers, experiences = InMemoryAnswerStore(), InMemoryExperienceStore()

    diagnostics = DiagnosticsManager(run_id=time.strftime("%Y%m%d_%H%M%S"),
                                     output_dir=config.get("diagnostics.output_dir"))
    engine = build_engine(config, answers, experiences, use_classifier=not args.no_llm,
                          diagnostics=diagnostics)
    result = await engine.plan(fields, context)

    payload = result.to_dict()
    if args.report:
        payload["diagnostics"] = diagnostics.get_report()
    diagnostics.save_intermediate_result("plan_result", payload)
    return payload


async def run_classify(args: argparse.Namespace, config: Config) -> Dict[str, Any]:
    """Classify fields and return every field's ranked candidates."""
    fields, context = load_fields(args.fields)
    engine = build_engine(config, InMemoryAnswerStore(), use_classifier=not args.no_llm)
    classified = await engine.classify(fields, context, engine.start_pass())
    return {
        "fields": [
            {
                "index": item.field.index,
                "label": item.field.label_text,
                "candidates": [c.to_dict() for c in item.candidates],
            }
            for item in classified
        ]
    }


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-c", "--config", help="Path to the configuration JSON file.")
    common.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging.")
    common.add_argument("--no-llm", action="store_true", help="Classify with rules only.")
    common.add_argument("-o", "--output", help="Write the JSON result to this file.")

    parser = argparse.ArgumentParser(description="Classify form fields and build fill plans.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    plan = subparsers.add_parser("plan", parents=[common], help="Build a fill plan for scanned fields.")
    plan.add_argument("fields", help="JSON file with scanned field descriptors.")
    plan.add_argument("-p", "--profile", help="Path to the profile JSON or YAML file.")
    plan.add_argument("--report", action="store_true", help="Include the diagnostics report.")

    classify = subparsers.add_parser("classify", parents=[common], help="Print ranked candidates per field.")
    classify.add_argument("fields", help="JSON file with scanned field descriptors.")
    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)

    config = Config(args.config)
    config.configure_logging("DEBUG" if args.verbose else None)

    runner = run_plan if args.command == "plan" else run_classify
    try:
        payload = asyncio.run(runner(args, config))
    except (OSError, ValueError) as e:
        logger.critical(f"Could not read input: {e}")
        sys.exit(1)
    except Exception as e:
        logger.critical(f"Run failed with unhandled exception: {e}", exc_info=True)
        sys.exit(1)

    write_output(payload, args.output)


if __name__ == "__main__":
    main()
