"""logpulse: merge, filter, and summarise execution log files."""

import logging
import sys
from argparse import ArgumentParser

from logpulse.config import Config
from logpulse.formatter import format_metrics_text, format_timeline_text, get_formatter, to_json_rows
from logpulse.ingest import IngestionError
from logpulse.merger import EmptyDatasetError
from logpulse.metrics import downsample
from logpulse.models import LogFilter, TimeRange
from logpulse.pagination import paginate
from logpulse.parser import parse_timestamp, to_epoch_ms
from logpulse.session import LogSession
from logpulse.stats import compute_stats, format_stats_json, format_stats_text

logger = logging.getLogger("logpulse")

MODES = ("stats", "timeline", "metrics", "serve")


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="logpulse",
        description="Merge, filter, and summarise JSON-lines execution logs.",
    )
    parser.add_argument(
        "files",
        nargs="+",
        help="Log file path(s), directories or glob pattern(s)",
    )
    parser.add_argument(
        "--search",
        default="",
        help="Keyword in message or operation name (case-insensitive)",
    )
    parser.add_argument(
        "--level",
        default="",
        help="Exact trace level (e.g. Error, Warning, Info)",
    )
    parser.add_argument(
        "--component",
        default="",
        help="Exact component name",
    )
    parser.add_argument(
        "--start",
        help="Range start, ISO-8601 or epoch milliseconds (inclusive)",
    )
    parser.add_argument(
        "--end",
        help="Range end, ISO-8601 or epoch milliseconds (inclusive)",
    )
    parser.add_argument(
        "--page",
        type=int,
        help="Show only this 1-based page of results",
    )
    parser.add_argument(
        "--output",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument(
        "--color",
        action="store_true",
        help="Colorize output by trace level (ANSI)",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Show overview statistics instead of log entries",
    )
    parser.add_argument(
        "--timeline",
        action="store_true",
        help="Show volume/error buckets over the whole dataset",
    )
    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Show downsampled performance metrics",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Serve the loaded dataset over the JSON API",
    )
    parser.add_argument(
        "--config",
        help="Path to a YAML config file (default: $CONFIG_PATH or ./config.yaml)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug details to stderr",
    )
    return parser


def parse_time_arg(value: str) -> int:
    """Epoch milliseconds from an ISO-8601 string or an integer."""
    if value.strip().lstrip("-").isdigit():
        return int(value)
    ts = parse_timestamp(value)
    if ts is None:
        raise ValueError(f"Invalid time: {value}")
    return to_epoch_ms(ts)


def _fail(message: str):
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def build_time_range(args) -> TimeRange | None:
    if args.start is None and args.end is None:
        return None
    try:
        start = parse_time_arg(args.start) if args.start is not None else -sys.maxsize
        end = parse_time_arg(args.end) if args.end is not None else sys.maxsize
    except ValueError as exc:
        _fail(str(exc))
    return TimeRange(start=start, end=end)


def run_pipeline(args, config: Config):
    """Ingest the files and run the requested query."""
    # Validate incompatible combos
    selected_modes = [m for m in MODES if getattr(args, m)]
    if len(selected_modes) > 1:
        _fail(" and ".join(f"--{m}" for m in selected_modes) + " cannot be used together")

    if args.page is not None and args.page < 1:
        _fail("--page must be at least 1")

    time_range = build_time_range(args)
    log_filter = LogFilter(search=args.search, level=args.level, component=args.component)

    session = LogSession.from_config(config)
    try:
        dataset = session.load_paths(args.files)
    except EmptyDatasetError as exc:
        _fail(str(exc))
    except IngestionError as exc:
        _fail(str(exc))

    if args.serve:
        from logpulse.app import create_app
        app = create_app(config=config, session=session)
        server = config["server"]
        app.run(host=server["host"], port=server["port"], debug=server["debug"])
        return

    # The timeline always covers the full dataset
    if args.timeline:
        buckets = session.timeline()
        print(to_json_rows(buckets) if args.output == "json" else format_timeline_text(buckets))
        return

    logger.debug("Querying %r with %s, range=%s", dataset.name, log_filter, time_range)
    session.set_filter(log_filter)
    session.set_time_range(time_range)
    entries = session.visible_entries()

    if args.stats:
        stats = compute_stats(entries)
        if args.output == "json":
            print(format_stats_json(stats))
        else:
            print(f"Dataset: {dataset.name}")
            print(format_stats_text(stats))
        return

    if args.metrics:
        points = downsample(entries, config["metrics"]["max_points"])
        print(to_json_rows(points) if args.output == "json" else format_metrics_text(points))
        return

    if args.page is not None:
        page = paginate(entries, args.page, config["pagination"]["page_size"])
        entries = page.items
        print(
            f"Page {page.page} of {page.total_pages} "
            f"(showing {page.first_item} to {page.last_item} of {page.total_items} entries)",
            file=sys.stderr,
        )

    formatter = get_formatter(output_format=args.output, color=args.color)
    for entry in entries:
        print(formatter(entry))


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    config = Config(args.config) if args.config else Config.from_env()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config["logging"]["level"],
        format=config["logging"]["format"],
        stream=sys.stderr,
    )
    run_pipeline(args, config)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        sys.exit(0)
    except BrokenPipeError:
        sys.exit(0)
