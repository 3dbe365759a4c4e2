"""Run one visibility analysis from the command line.

Requires at least one provider key (OPENAI_API_KEY, GEMINI_API_KEY,
ANTHROPIC_API_KEY, PERPLEXITY_API_KEY) and, for snippet metrics,
GOOGLE_API_KEY + GOOGLE_CSE_ID.

Usage:
    python -m ravi.cli <target> [--peer NAME ...] [--industry X] [--full] [--json]

Examples:
    python -m ravi.cli CloudFuze --peer Box --peer Dropbox --industry "cloud migration"
    python -m ravi.cli Flipkart --peer Amazon --product phones --city Bangalore --country India --json
"""

import argparse
import asyncio
import json
import sys

from ravi.config import Settings, get_settings
from ravi.events import EventSink, drain_pending_deliveries
from ravi.logging import setup_logging
from ravi.questions.pool import GeoContext
from ravi.tasks.visibility import VisibilityReport, VisibilityRequest, run_visibility_analysis


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ravi",
        description="Compute the Relative AI Visibility Index for a company and its peers",
    )
    parser.add_argument("target", help="Target company or brand")
    parser.add_argument(
        "--peer",
        action="append",
        default=[],
        dest="peers",
        help="Peer entity (repeatable)",
    )
    parser.add_argument("--industry", default="", help="Industry; detected when omitted")
    parser.add_argument("--product", default="", help="Main product for purchase-intent queries")
    parser.add_argument("--city", default="")
    parser.add_argument("--region", default="")
    parser.add_argument("--country", default="")
    parser.add_argument("--competitor-b", default="", help="Second competitor in comparison queries")
    parser.add_argument("--full", action="store_true", help="Full mode: more queries, longer timeouts")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    return parser


def request_from_args(args: argparse.Namespace) -> VisibilityRequest:
    geo = None
    if args.city or args.region or args.country or args.competitor_b:
        geo = GeoContext(
            city=args.city,
            region=args.region,
            country=args.country,
            competitor_b=args.competitor_b,
        )
    return VisibilityRequest(
        target_entity=args.target,
        peer_entities=list(args.peers),
        industry=args.industry,
        product=args.product,
        fast_mode=not args.full,
        geo_context=geo,
    )


def format_report(report: VisibilityReport) -> str:
    """Plain-text table of the report."""
    providers = report.models_available
    lines = [
        f"Target:   {report.target}",
        f"Industry: {report.industry or '-'}",
        f"Product:  {report.product or '-'}",
        f"Queries:  {len(report.queries)}",
        "Services: "
        + ", ".join(f"{p.value}={'ok' if ok else 'down'}" for p, ok in report.service_status.items()),
        "",
    ]

    header = f"{'Entity':<24} {'RAVI':>6} {'Traffic':>8} {'Citation':>9}"
    header += "".join(f" {p.value:>10}" for p in providers)
    lines.append(header)
    lines.append("-" * len(header))

    for scores in sorted(report.entities, key=lambda s: -s.composite_index.rounded):
        row = (
            f"{scores.name[:24]:<24} "
            f"{scores.composite_index.rounded:>6.1f} "
            f"{scores.traffic_share.global_share:>8.1f} "
            f"{scores.citation.global_.display_score_volume:>9.1f}"
        )
        row += "".join(f" {scores.ai_scores.get(p, 0.0):>10.2f}" for p in providers)
        lines.append(row)

    return "\n".join(lines)


async def run_and_deliver(
    request: VisibilityRequest,
    settings: Settings | None = None,
    sink: EventSink | None = None,
) -> VisibilityReport:
    """Run one analysis, then wait for its events before the loop closes."""
    settings = settings or get_settings()
    report = await run_visibility_analysis(request, settings, sink=sink)
    await drain_pending_deliveries(timeout=settings.events_drain_timeout_seconds)
    return report


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        request = request_from_args(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    report = asyncio.run(run_and_deliver(request))

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(format_report(report))
    return 0


if __name__ == "__main__":
    sys.exit(main())
