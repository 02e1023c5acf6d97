"""Command line entry point: record a launch or list recorded launches.

Usage:
    appusage record <package_name> [--config config/default.toml]
    appusage list [--config config/default.toml]
"""

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Optional, Sequence

from ..capabilities.signals import SignalSources
from ..config.manager import ConfigManager, initialize_config
from ..observability.logging_setup import configure_logging, on_config_updated
from ..observability.platform_signals import default_signal_sources
from ..observability.usage_collector import UsageDataCollector
from ..persistence.db import AppUsageDatabase, StorageError, get_instance
from .launch_recorder import LaunchRecorder


def build_collector(
    config: ConfigManager, sources: Optional[SignalSources] = None
) -> UsageDataCollector:
    """Collector configured from config, following trace_enabled updates."""
    collector = UsageDataCollector(
        sources or default_signal_sources(),
        brightness_default=config.get("collector.brightness_unavailable"),
        trace_enabled=config.get("collector.trace_enabled"),
    )

    def _apply(key: str, value: Any) -> None:
        if key == "collector.trace_enabled":
            collector.trace_enabled = value

    config.subscribe(_apply)
    return collector


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="appusage", description="Record app launch context")
    parser.add_argument("--config", type=Path, default=Path("config/default.toml"))
    parser.add_argument("--env-file", type=Path, default=Path(".env"))
    commands = parser.add_subparsers(dest="command", required=True)

    record = commands.add_parser("record", help="Record one launch of an app")
    record.add_argument("package_name")

    commands.add_parser("list", help="Print every recorded launch")
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace, config: ConfigManager, database: AppUsageDatabase) -> int:
    try:
        if args.command == "record":
            recorder = LaunchRecorder(build_collector(config), database)
            usage = await recorder.record_launch(args.package_name)
            print(json.dumps(asdict(usage)))
        else:
            for usage in await database.app_usage_dao().get_all():
                print(json.dumps(asdict(usage)))
    except StorageError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    finally:
        await database.close()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    args = _parse_args(argv)

    try:
        config = initialize_config(args.config, args.env_file)
    except ValueError as e:
        print(f"✗ Invalid configuration: {e}", file=sys.stderr)
        return 1

    configure_logging(config.get("logging.level"), config.get("logging.file_path") or None)
    config.subscribe(on_config_updated)

    database = get_instance(config.database_config())
    return asyncio.run(_run(args, config, database))


if __name__ == "__main__":
    sys.exit(main())
