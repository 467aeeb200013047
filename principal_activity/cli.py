"""
Principal Activity Engine CLI

Reports over a JSON snapshot file of the form
{"timeline": [...entries...], "summaries": [...summaries...]}.

Usage:
    python -m principal_activity timeline snapshot.json [--type INTERACTION] [--search TEXT]
        [--start DATE] [--end DATE] [--principal ID] [--follow-up true|false] [--overdue]
        [--sort FIELD] [--order asc|desc] [--page N] [--limit N] [--format table|csv|json]
    python -m principal_activity analytics snapshot.json [--top N] [--format table|csv|json]
        [--benchmarks FILE] [--executive]
    python -m principal_activity report snapshot.json [--format summary|detailed] [filters...]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from principal_activity import config
from principal_activity.analytics import benchmark, load_thresholds
from principal_activity.config import EngineConfig
from principal_activity.engine import TimelineEngine
from principal_activity.errors import FilterValidationError
from principal_activity.export import (
    FilterState,
    analytics_to_csv,
    analytics_to_json,
    executive_summary,
    generate_report,
    import_filter_state,
    shareable_url,
    timeline_to_csv,
    timeline_to_json,
)
from principal_activity.filtering import filter_records, is_overdue
from principal_activity.formatting import format_activity_date, format_percentage
from principal_activity.models import parse_datetime
from principal_activity.observability import configure_logging
from principal_activity.providers import InMemoryProvider
from principal_activity.query import require_valid

logger = logging.getLogger(__name__)


def print_header(text: str):
    """Print a section header."""
    print(f"\n{'═' * 50}")
    print(f"  {text}")
    print(f"{'═' * 50}")


def print_table(headers: list, rows: list, widths: list = None):
    """Print a simple table."""
    if not widths:
        widths = [max(len(str(row[i])) for row in [headers] + rows) for i in range(len(headers))]

    header_str = " │ ".join(str(h).ljust(w) for h, w in zip(headers, widths))
    print(header_str)
    print("─" * len(header_str))

    for row in rows:
        print(" │ ".join(str(c)[:w].ljust(w) for c, w in zip(row, widths)))


def _filter_input(args) -> dict:
    """Collect only the filter options that were given."""
    raw = {}
    if args.type:
        raw["activity_types"] = args.type
    if args.search:
        raw["search"] = args.search
    if args.start:
        raw["date_start"] = args.start
    if args.end:
        raw["date_end"] = args.end
    if args.principal:
        raw["principal_ids"] = args.principal
    if args.source:
        raw["source_tables"] = args.source
    if args.follow_up is not None:
        raw["follow_up_required"] = args.follow_up
    if args.overdue:
        raw["overdue_only"] = True
    return raw


def _build_engine(args) -> TimelineEngine:
    provider = InMemoryProvider.from_snapshot(args.snapshot)
    engine_config = EngineConfig.from_env()
    engine_config.auto_refresh = False
    now = parse_datetime(args.now) if args.now else None
    return TimelineEngine(provider, config=engine_config, now=(lambda: now) if now else None)


async def _prepare(engine: TimelineEngine, args) -> None:
    """Apply state file, filters and sort, then load."""
    if getattr(args, "state", None):
        ok, state = import_filter_state(Path(args.state).read_text(), FilterState())
        if not ok:
            raise FilterValidationError({"state": f"Unreadable filter state: {args.state}"})
        state.apply_to(engine.query)

    raw = _filter_input(args)
    if raw:
        require_valid(raw)
        engine.query.apply_filter_input(raw)
    if getattr(args, "sort", None):
        engine.query.update_sort(args.sort, args.order or "desc")
    if getattr(args, "limit", None):
        engine.query.set_page_size(args.limit)

    await engine.load()
    if engine.error is not None:
        raise engine.error
    if getattr(args, "page", None):
        engine.go_to_page(args.page)


def cmd_timeline(args):
    """Filtered, sorted page of timeline entries."""

    async def run():
        async with _build_engine(args) as engine:
            await _prepare(engine, args)
            view = engine.view
            now = engine.now()

            if args.format == "csv":
                print(timeline_to_csv(view.entries, engine.query.filters), end="")
            elif args.format == "json":
                print(
                    timeline_to_json(
                        view.entries,
                        engine.analytics.timeline_summary if engine.analytics else None,
                        engine.query.filters,
                    )
                )
            else:
                page = view.pagination
                print_header(
                    f"TIMELINE  page {page.page}/{max(page.total_pages, 1)}  "
                    f"({view.filtered_count} matching)"
                )
                if not view.entries:
                    print("No matching entries.")
                else:
                    rows = [
                        [
                            format_activity_date(e.activity_date, "short"),
                            e.activity_type.value,
                            e.principal_name[:24],
                            e.activity_subject[:40],
                            "overdue" if is_overdue(e, now) else ("yes" if e.follow_up_required else ""),
                        ]
                        for e in view.entries
                    ]
                    print_table(["Date", "Type", "Principal", "Subject", "Follow-up"], rows)

            if args.url:
                print(f"\nShare: {shareable_url(args.url, FilterState.from_query(engine.query))}")

    asyncio.run(run())
    return 0


def cmd_analytics(args):
    """KPIs, distributions and benchmark."""

    async def run():
        async with _build_engine(args) as engine:
            engine.config.top_performers = args.top
            await engine.load()
            if engine.error is not None:
                raise engine.error
            analytics = engine.analytics
            thresholds = load_thresholds(Path(args.benchmarks)) if args.benchmarks else None
            result = benchmark(analytics, thresholds)

            if args.format == "json":
                print(analytics_to_json(analytics, result))
                return
            if args.format == "csv":
                print(analytics_to_csv(analytics, result), end="")
                return

            print_header("PRINCIPAL ANALYTICS")
            kpis = analytics.kpis
            print(f"  Principals: {analytics.total_principals} ({analytics.active_principals} active)")
            print(f"  Avg engagement: {analytics.average_engagement_score:.1f}")
            print(f"  Conversion rate: {format_percentage(kpis.conversion_rate)}")
            print(f"  Top status: {kpis.top_activity_status.value}")
            print(f"  Follow-ups: {kpis.pending_follow_ups} pending, {kpis.overdue_follow_ups} overdue")
            print(f"  Engagement trend: {kpis.engagement_trend}")

            print_header("STATUS DISTRIBUTION")
            print_table(
                ["Status", "Count", "Share"],
                [
                    [b.label, b.count, format_percentage(b.percentage)]
                    for b in analytics.activity_status_distribution.values()
                ],
            )

            if analytics.top_performers:
                print_header("TOP PERFORMERS")
                print_table(
                    ["#", "Principal", "Score", "Opps", "Won"],
                    [
                        [p.rank, p.principal_name[:30], f"{p.engagement_score:.1f}",
                         p.total_opportunities, p.won_opportunities]
                        for p in analytics.top_performers
                    ],
                )

            print_header("BENCHMARK")
            print(f"  Engagement: {result.engagement_benchmark.value}")
            print(f"  Opportunity rate: {result.opportunity_benchmark.value}")
            print(f"  Activity rate: {result.activity_benchmark.value}")
            print(f"  Overall score: {result.overall_score:.0f}/100")

            if args.executive:
                print_header("EXECUTIVE SUMMARY")
                print(executive_summary(analytics).to_text())

    asyncio.run(run())
    return 0


def cmd_report(args):
    """Summary or detailed timeline report over the filtered entries."""

    async def run():
        async with _build_engine(args) as engine:
            await _prepare(engine, args)
            now = engine.now()
            records = filter_records(engine.records, engine.query.filters, now=now)
            report = generate_report(
                records, format=args.format, filters=engine.query.filters, now=now
            )
            if args.json:
                print(json.dumps(report.to_dict(), indent=2, default=str))
            else:
                print_header(report.title.upper())
                print(report.content)

    asyncio.run(run())
    return 0


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("snapshot", help="JSON snapshot file")
    p.add_argument("--now", help="Reference time (ISO) for overdue and trend calculations")


def _add_filters(p: argparse.ArgumentParser) -> None:
    p.add_argument("--type", action="append", help="Activity type (repeatable)")
    p.add_argument("--search", help="Text in subject, details or principal name")
    p.add_argument("--start", help="Start date (YYYY-MM-DD)")
    p.add_argument("--end", help="End date (YYYY-MM-DD), inclusive")
    p.add_argument("--principal", action="append", help="Principal ID (repeatable)")
    p.add_argument("--source", action="append", help="Source table (repeatable)")
    p.add_argument("--follow-up", dest="follow_up", choices=["true", "false"])
    p.add_argument("--overdue", action="store_true", help="Only overdue follow-ups")
    p.add_argument("--state", help="Filter state JSON file to start from")
    p.add_argument("--sort", choices=["activity_date", "timeline_rank", "activity_type"])
    p.add_argument("--order", choices=["asc", "desc"])


def main(argv=None):
    parser = argparse.ArgumentParser(description="Principal Activity Engine CLI")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Log level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # timeline
    p = subparsers.add_parser("timeline", help="Filtered timeline page")
    _add_common(p)
    _add_filters(p)
    p.add_argument("--page", type=int, help="Page number")
    p.add_argument("--limit", type=int, help="Entries per page")
    p.add_argument("--format", choices=["table", "csv", "json"], default="table")
    p.add_argument("--url", help="Base URL to print a shareable link for")

    # analytics
    p = subparsers.add_parser("analytics", help="KPIs and benchmark")
    _add_common(p)
    p.add_argument("--top", type=int, default=config.TOP_PERFORMERS_LIMIT, help="Top performers")
    p.add_argument("--format", choices=["table", "csv", "json"], default="table")
    p.add_argument("--benchmarks", help="Benchmark thresholds YAML file")
    p.add_argument("--executive", action="store_true", help="Include executive summary")

    # report
    p = subparsers.add_parser("report", help="Timeline report")
    _add_common(p)
    _add_filters(p)
    p.add_argument("--format", choices=["summary", "detailed"], default="summary")
    p.add_argument("--json", action="store_true", help="Print report as JSON")

    args = parser.parse_args(argv)
    configure_logging(level=args.log_level, json_format=config.LOG_JSON)

    commands = {
        "timeline": cmd_timeline,
        "analytics": cmd_analytics,
        "report": cmd_report,
    }

    try:
        return commands[args.command](args)
    except FilterValidationError as e:
        for field, message in sorted(e.field_errors.items()):
            print(f"❌ {field}: {message}", file=sys.stderr)
        return 2
    except (OSError, json.JSONDecodeError) as e:
        print(f"❌ Cannot read snapshot: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
