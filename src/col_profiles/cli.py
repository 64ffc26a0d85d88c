import argparse
import asyncio
import logging
import sys
from pathlib import Path

from col_profiles import __version_date__
from col_profiles.cache import DiskCache
from col_profiles.catalogue import JsonCatalogueStore
from col_profiles.config import load_config
from col_profiles.elevation_api import PROVIDERS, create_provider
from col_profiles.models import ElevationProfile, RegenerationMetrics, RegenerationOptions
from col_profiles.ratelimit import RateLimiter
from col_profiles.regeneration import RegenerationOrchestrator

logger = logging.getLogger(__name__)

# Default values for CLI options
DEFAULTS = {
    "concurrency": 3,
    "backup": True,
    "validate": True,
    "force": False,
    "test": False,
}

TRUE_VALUES = {"true", "yes", "1", "on"}
FALSE_VALUES = {"false", "no", "0", "off"}


def parse_bool(value: str) -> bool:
    """Parse a --flag=true|false style value."""
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise argparse.ArgumentTypeError(f"Expected true or false, got {value!r}")


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"Must be >= 1, got {value}")
    return number


def build_parser(config: dict | None = None) -> argparse.ArgumentParser:
    """Build argument parser with defaults from config file."""
    if config is None:
        config = {}

    parser = argparse.ArgumentParser(
        description="Regenerate elevation profiles for every catalogued col."
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version_date__}")
    parser.add_argument(
        "--concurrency",
        type=positive_int,
        default=DEFAULTS["concurrency"],
        help=f"Cols processed at the same time (default: {DEFAULTS['concurrency']})",
    )
    parser.add_argument(
        "--backup",
        type=parse_bool,
        default=DEFAULTS["backup"],
        help="Snapshot the catalogue before regenerating (default: true)",
    )
    parser.add_argument(
        "--validate",
        type=parse_bool,
        default=DEFAULTS["validate"],
        help="Check each profile against the catalogue before saving (default: true)",
    )
    parser.add_argument(
        "--force",
        type=parse_bool,
        default=DEFAULTS["force"],
        help="Ignore cached profiles (default: false)",
    )
    parser.add_argument(
        "--test",
        type=parse_bool,
        default=DEFAULTS["test"],
        help="Only process a small sample of the steepest cols (default: false)",
    )
    parser.add_argument(
        "--catalogue",
        default=config.get("catalogue_path", "cols.json"),
        help="Path to the col catalogue JSON file",
    )
    parser.add_argument(
        "--cache-dir",
        default=config.get("cache_dir"),
        help="Directory for cached profiles",
    )
    parser.add_argument(
        "--provider",
        choices=sorted(PROVIDERS),
        default=config.get("provider", "openrouteservice"),
        help="Elevation provider; 'fallback' tries openrouteservice then opentopodata (default: openrouteservice)",
    )
    parser.add_argument(
        "--col",
        default=None,
        help="Regenerate a single col by id, with retries",
    )
    parser.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Stop submitting new cols after this many seconds",
    )
    parser.add_argument(
        "--smoothing",
        type=float,
        default=0.0,
        help="Elevation smoothing radius in meters (default: 0, disabled)",
    )
    parser.add_argument(
        "--charts-dir",
        default=None,
        help="Write a PNG elevation chart per regenerated col into this directory",
    )
    parser.add_argument(
        "--log-level",
        default=config.get("log_level", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser


def build_orchestrator(args: argparse.Namespace, config: dict) -> RegenerationOrchestrator:
    store = JsonCatalogueStore(Path(args.catalogue))
    cache = DiskCache(Path(args.cache_dir or config["cache_dir"]) / "profiles")
    provider = create_provider(args.provider, config)
    rate_limiter = RateLimiter(
        max_requests=int(config.get("rate_limit_max_requests", 40)),
        window_seconds=float(config.get("rate_limit_window_seconds", 60.0)),
        retry_after_seconds=float(config.get("rate_limit_retry_after_seconds", 2.0)),
    )
    return RegenerationOrchestrator(store, provider, cache, rate_limiter=rate_limiter)


def format_report(metrics: RegenerationMetrics) -> str:
    lines = [
        "=== Elevation Profile Regeneration ===",
        f"Processed:      {metrics.cols_processed}",
        f"Errors:         {metrics.errors}",
        f"Skipped:        {metrics.skipped}",
        f"Cache hits:     {metrics.cache_hits}",
        f"API calls:      {metrics.api_calls}",
        f"Total time:     {metrics.total_time:.1f}s",
        f"Avg per col:    {metrics.average_time_per_col:.2f}s",
    ]
    if metrics.error_details:
        lines.append("")
        lines.append("Errors:")
        for detail in metrics.error_details:
            lines.append(f"  - {detail.col_name} ({detail.col_id}): {detail.error}")
    return "\n".join(lines)


def format_profile(col_id: str, profile: ElevationProfile) -> str:
    lines = [
        f"=== Col {col_id} ===",
        f"Points:         {len(profile.points)}",
        f"Segments:       {len(profile.segments)}",
        f"Length:         {profile.length:.2f} km",
        f"Ascent:         {profile.total_ascent:.0f} m",
        f"Max elevation:  {profile.max_elevation:.0f} m",
        f"Avg gradient:   {profile.avg_gradient:.1f}%",
    ]
    for segment in profile.segments:
        lines.append(
            f"  {segment.start_distance:5.2f}-{segment.end_distance:5.2f} km  "
            f"{segment.avg_gradient:5.1f}%  {segment.classification}"
        )
    return "\n".join(lines)


async def _run(args: argparse.Namespace, config: dict) -> str:
    orchestrator = build_orchestrator(args, config)

    if args.col:
        try:
            profile = await orchestrator.regenerate_col(args.col, smoothing_radius_m=args.smoothing)
        finally:
            await orchestrator.store.close()
        return format_profile(args.col, profile)

    options = RegenerationOptions(
        concurrency=args.concurrency,
        backup=args.backup,
        validate=args.validate,
        force_refresh=args.force,
        test_mode=args.test,
        deadline_seconds=args.deadline,
        smoothing_radius_m=args.smoothing,
        charts_dir=args.charts_dir,
    )
    metrics = await orchestrator.regenerate_all(options)
    return format_report(metrics)


def main(argv: list[str] | None = None) -> None:
    config = load_config()
    parser = build_parser(config)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        report = asyncio.run(_run(args, config))
    except Exception as e:
        logger.debug("Regeneration failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(report)
