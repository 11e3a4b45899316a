from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from tqdm import tqdm

from structaudit.controllers.analysis_controller import AnalysisController, parse_enabled_types
from structaudit.dom.document import MarkupDocument
from structaudit.exceptions import StructAuditError
from structaudit.managers.config_manager import config_manager
from structaudit.model import AnalysisResult, HeadingNode, StructureTag
from structaudit.services.content_fetcher_service import HttpContentFetcher
from structaudit.services.report_service import ReportService
from structaudit.utils.configure_logging import configure_logger
from structaudit.utils.rule_labels import get_rule_label, get_severity_label

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_FAILURE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="structaudit",
        description="Audit heading and landmark structure of rendered pages."
    )
    parser.add_argument("sources", nargs="+", help="URLs or local HTML files to audit.")
    parser.add_argument("--headings", action="store_true", help="Only run the heading analysis.")
    parser.add_argument("--landmarks", action="store_true", help="Only run the landmark analysis.")
    parser.add_argument("--json", action="store_true", help="Print results as JSON.")
    parser.add_argument("--export", "-o", help="Write the summary to a .csv, .json or .xlsx file.")
    parser.add_argument("--tree", action="store_true", help="Print the structure trees as well.")
    parser.add_argument("--locale", help="Locale for rule labels (default from settings).")
    parser.add_argument("--log-level", help="Override the configured log level.")
    return parser


def _is_url(source: str) -> bool:
    return urlparse(source).scheme in ("http", "https")


def _enabled_types(args: argparse.Namespace) -> List[StructureTag]:
    if args.headings or args.landmarks:
        enabled = []
        if args.headings:
            enabled.append(StructureTag.HEADINGS)
        if args.landmarks:
            enabled.append(StructureTag.LANDMARKS)
        return enabled
    return sorted(parse_enabled_types(config_manager.get_nested("analysis.enabled")), key=list(StructureTag).index)


async def audit_sources(
        sources: List[str],
        enabled: List[StructureTag]
) -> Tuple[Dict[str, AnalysisResult], Dict[str, str]]:
    """Analyzes every source; returns results and per-source failure messages."""
    results: Dict[str, AnalysisResult] = {}
    failures: Dict[str, str] = {}

    async with HttpContentFetcher() as fetcher:
        controller = AnalysisController(fetch=fetcher)

        # Warm the cache concurrently; repeated URLs share one fetch
        urls = list(dict.fromkeys(s for s in sources if _is_url(s)))
        outcomes = await asyncio.gather(
            *(controller.content_cache.fetch_content(u) for u in urls), return_exceptions=True
        )
        fetch_errors = {u: o for u, o in zip(urls, outcomes) if isinstance(o, Exception)}

        for source in tqdm(sources, desc="Auditing", unit="page", disable=len(sources) < 2):
            if source in fetch_errors:
                logger.error("Could not audit %s: %s", source, fetch_errors[source])
                failures[source] = str(fetch_errors[source])
                continue
            try:
                if _is_url(source):
                    results[source] = await controller.analyze_url(source, enabled)
                else:
                    html = Path(source).read_text(encoding="utf-8")
                    results[source] = controller.analyze(MarkupDocument(html, url=source), enabled)
            except (StructAuditError, OSError, UnicodeDecodeError) as e:
                logger.error("Could not audit %s: %s", source, e)
                failures[source] = str(e)

    return results, failures


def _format_tree(nodes, locale: Optional[str]) -> List[str]:
    lines = []
    stack = [(node, 0) for node in reversed(nodes)]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, HeadingNode):
            head = f"{node.tag_name} {node.label or '(empty)'}"
        else:
            head = f"{node.role} {node.label}".rstrip()
        marks = ", ".join(get_rule_label(f.rule_id, locale) for f in node.findings)
        lines.append("    " + "  " * depth + head + (f"  <- {marks}" if marks else ""))
        stack.extend((child, depth + 1) for child in reversed(node.children))
    return lines


def render_text(results: Dict[str, AnalysisResult], show_tree: bool, locale: Optional[str]) -> str:
    lines = []
    for source, result in results.items():
        lines.append(f"== {source}")
        findings = result.all_findings()
        if not findings:
            lines.append("  No structure issues found.")
        for finding in findings:
            lines.append(
                f"  [{get_severity_label(finding.severity, locale)}] "
                f"{get_rule_label(finding.rule_id, locale)} ({finding.count})"
            )
        if show_tree:
            for tag, tree in result.trees.items():
                lines.append(f"  {tag.value}:")
                lines.extend(_format_tree(tree, locale))
    return "\n".join(lines)


def render_json(results: Dict[str, AnalysisResult], failures: Dict[str, str]) -> str:
    payload = {
        source: {
            "findings": [f.model_dump(mode="json") for f in result.all_findings()],
            "trees": {
                tag.value: [node.model_dump(mode="json") for node in tree]
                for tag, tree in result.trees.items()
            },
        }
        for source, result in results.items()
    }
    for source, message in failures.items():
        payload[source] = {"error": message}
    return json.dumps(payload, indent=2, ensure_ascii=False)


def main(argv: Optional[List[str]] = None) -> int:
    """Entrypoint for the structaudit command."""
    args = build_parser().parse_args(argv)

    configure_logger(
        args.log_level or config_manager.get_nested("debug.level", "WARNING"),
        silenced_loggers=config_manager.get_nested("debug.silenced_loggers")
    )

    try:
        enabled = _enabled_types(args)
    except ValueError as e:
        logger.error("Invalid analysis.enabled setting: %s", e)
        return EXIT_FAILURE

    results, failures = asyncio.run(audit_sources(args.sources, enabled))

    if args.json:
        print(render_json(results, failures))
    else:
        print(render_text(results, args.tree, args.locale))

    if args.export and results:
        path = ReportService(args.locale).export(results, Path(args.export))
        print(f"Report written to {path}")

    if failures:
        return EXIT_FAILURE
    if any(result.has_errors for result in results.values()):
        return EXIT_FINDINGS
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
