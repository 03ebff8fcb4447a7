"""Command-line entry point for the breach checker."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import List

from .checks import ChecksDocument, load_checks, load_facts
from .facts import FactStore
from .renderer import BreachRenderer
from .result import CheckResult, RenderResult, format_breaches, format_summary_table
from .template.config import DEFAULT_OUTPUT_FORMAT, OUTPUT_FORMAT_JSON, OUTPUT_FORMATS

DEFAULT_CONFIG = "breachcheck.yml"

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Render check breaches through their breach templates",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=DEFAULT_CONFIG,
        help="Path to the checks document to render.",
    )
    parser.add_argument(
        "--facts",
        default=None,
        help="YAML file of collected facts, merged over the document's inline facts.",
    )
    parser.add_argument(
        "--format",
        choices=list(OUTPUT_FORMATS),
        default=DEFAULT_OUTPUT_FORMAT,
        help="Output format the breach templates are rendered for (defaults to pretty).",
    )
    parser.add_argument(
        "--out",
        "--output",
        dest="output_path",
        type=str,
        default=None,
        help="Path to write the report (e.g., artifacts/breaches.json).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    return parser


def run_checks(document: ChecksDocument, output_format: str, facts: FactStore) -> RenderResult:
    renderer = BreachRenderer.with_facts(facts)
    result = RenderResult()
    for check in document.checks:
        check_result = CheckResult(
            name=check.name,
            check_type=check.check_type,
            severity=check.severity,
            breach_template=check.breach_template,
        )
        for breach in check.breaches:
            renderer.render(check_result, breach, output_format=output_format)
        logger.info("Rendered %d breach(es) for check %s", len(check_result.breaches), check.name)
        result.add_check_result(check_result)
    return result


def write_output(result: RenderResult, output_path: str | None, report_format: str) -> None:
    summary = format_summary_table(result)
    print(summary)

    if report_format == OUTPUT_FORMAT_JSON:
        title = "JSON Report"
        payload = json.dumps(result.to_dict(), indent=2, default=str)
    else:
        title = "Breaches"
        payload = format_breaches(result)

    if output_path:
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(payload, encoding="utf-8")
        print(f"\nReport written to {output_path}")
    elif payload:
        print(f"\n{title}")
        print(payload)


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        document = load_checks(Path(args.config))
        if document is None:
            raise SystemExit(f"Failed to load checks document: {args.config}")
        facts = dict(document.facts)
        if args.facts:
            facts_path = Path(args.facts)
            if not facts_path.exists():
                raise SystemExit(f"Failed to load facts file: {args.facts}")
            facts.update(load_facts(facts_path))
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    result = run_checks(document, args.format, FactStore(facts))
    write_output(result, args.output_path, args.format)
    return result.exit_code()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
