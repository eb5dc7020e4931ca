import argparse
import json
import sys
from logging import Logger
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from event_exporter.config import (
    Credentials,
    RunConfig,
    prepare_credentials,
    prepare_run_config,
)
from event_exporter.errors import ConfigurationError, TransportError
from event_exporter.exporter import EventExporter
from event_exporter.service import AnalyticsService
from logger.basic_logger import setup_logger
from utils.config_reader import ConfigReader

DEFAULT_CONFIG_PATH = "config/exporter.yml"
DEFAULT_CREDENTIALS_PATH = "config/credentials.yml"


def load_settings(
    log: Logger,
    config_path: str,
    credentials_path: str,
    overrides: Optional[Dict[str, Any]] = None,
) -> Tuple[RunConfig, Credentials]:
    """Read and validate both startup documents; raises ConfigurationError."""
    raw_config = ConfigReader(log, Path(config_path)).load_configurations().configs_data
    raw_creds = (
        ConfigReader(log, Path(credentials_path)).load_configurations().configs_data
    )
    config = prepare_run_config(raw_config, overrides)
    credentials = prepare_credentials(raw_creds)
    log.info("Configuration loaded successfully.")
    return config, credentials


def run_exporter(
    config: RunConfig,
    credentials: Credentials,
    log: Logger,
    service: Optional[AnalyticsService] = None,
) -> Dict[str, Any]:
    """Export every selected event once and return the run summary."""
    service = service or AnalyticsService(credentials, config, log)
    return EventExporter(config, service, log).run()


def _parse_args(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="Export analytics event streams to one CSV per event."
    )
    parser.add_argument("-c", "--config", default=DEFAULT_CONFIG_PATH, help="Run configuration YAML")
    parser.add_argument(
        "--credentials",
        default=DEFAULT_CREDENTIALS_PATH,
        help="YAML with api_key and api_secret",
    )
    parser.add_argument("--from_days_ago", type=int)
    parser.add_argument("--to_days_ago", type=int)
    parser.add_argument("--output_directory")
    parser.add_argument("--log_level", default="INFO")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    log = setup_logger(args.log_level)
    overrides = {
        "from_days_ago": args.from_days_ago,
        "to_days_ago": args.to_days_ago,
        "output_directory": args.output_directory,
    }

    try:
        config, credentials = load_settings(
            log, args.config, args.credentials, overrides
        )
    except ConfigurationError as e:
        log.error(f"Fatal configuration error: {e}")
        return 1

    if config.log_directory:
        log = setup_logger(args.log_level, config.log_directory)

    log.info(
        f"Starting export: config={args.config} output={config.output_root} "
        f"from_days_ago={config.from_days_ago} to_days_ago={config.to_days_ago}"
    )
    try:
        summary = run_exporter(config, credentials, log)
    except TransportError as e:
        log.error(f"Could not retrieve the event catalog: {e}")
        return 1

    print(json.dumps({"status": "ok", "summary": summary}, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
