"""
Exporter configuration.

Every setting can be given as a command-line flag or through an environment
variable; the flag wins when both are present.
"""
import argparse
import math
import os
from collections.abc import Mapping, Sequence
from typing import TypedDict

from jenkins_exporter.hosts import parse_hosts

# ======================
# Defaults
# ======================

DEFAULT_POLL_DELAY = 60.0  # seconds
DEFAULT_EXPORTER_PORT = 9001
# Per-request timeout to Jenkins; bounds how long one slow target delays a cycle
DEFAULT_FETCH_TIMEOUT = 10.0
DEFAULT_LOG_LEVEL = "INFO"

TRUTHY = ("1", "true", "yes", "on")


class ExporterConfig(TypedDict):
    """Validated exporter settings."""
    urls: list[str]
    poll_delay: float
    one_shot: bool
    port: int
    timeout: float
    evict_stale: bool
    log_level: str


def env_flag(value: str | None) -> bool:
    """Interpret an environment variable as a boolean switch."""
    return (value or "").strip().lower() in TRUTHY


def build_arg_parser(environ: Mapping[str, str]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jenkins-exporter",
        description="Export Jenkins node online/offline status as Prometheus metrics.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "-urls", dest="urls",
        default=environ.get("JENKINS_URLS", ""),
        help="remote Jenkins URLs - comma separated (env: JENKINS_URLS)",
    )
    parser.add_argument(
        "-pollDelay", dest="poll_delay", type=float,
        default=environ.get("POLL_DELAY", str(DEFAULT_POLL_DELAY)),
        help="seconds between poll cycles (env: POLL_DELAY, default: %(default)s)",
    )
    parser.add_argument(
        "-oneShot", dest="one_shot", action="store_true",
        default=env_flag(environ.get("ONE_SHOT")),
        help="poll once, print metrics to stdout and exit (env: ONE_SHOT)",
    )
    parser.add_argument(
        "-port", dest="port", type=int,
        default=environ.get("EXPORTER_PORT", str(DEFAULT_EXPORTER_PORT)),
        help="port to serve /metrics on (env: EXPORTER_PORT, default: %(default)s)",
    )
    parser.add_argument(
        "-timeout", dest="timeout", type=float,
        default=environ.get("FETCH_TIMEOUT", str(DEFAULT_FETCH_TIMEOUT)),
        help="HTTP timeout per Jenkins request in seconds (env: FETCH_TIMEOUT, default: %(default)s)",
    )
    parser.add_argument(
        "-evictStale", dest="evict_stale", action="store_true",
        default=env_flag(environ.get("EVICT_STALE")),
        help="drop samples for nodes no longer reported by their target (env: EVICT_STALE)",
    )
    parser.add_argument(
        "-logLevel", dest="log_level",
        default=environ.get("LOG_LEVEL", DEFAULT_LOG_LEVEL),
        help="DEBUG, INFO, WARNING, ERROR or CRITICAL (env: LOG_LEVEL, default: %(default)s)",
    )
    return parser


def validate_configuration(config: ExporterConfig) -> None:
    """Validate configuration values and raise SystemExit on error."""
    errors: list[str] = []

    if not math.isfinite(config["poll_delay"]) or config["poll_delay"] <= 0:
        errors.append(f"-pollDelay must be a finite number > 0, got {config['poll_delay']}")

    if not (1 <= config["port"] <= 65535):
        errors.append(f"-port must be between 1 and 65535, got {config['port']}")

    if not math.isfinite(config["timeout"]) or config["timeout"] <= 0:
        errors.append(f"-timeout must be a finite number > 0, got {config['timeout']}")

    if errors:
        raise SystemExit("Configuration errors:\n  " + "\n  ".join(errors))


def load_config(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ExporterConfig:
    """
    Parse flags (falling back to environment variables) into an ExporterConfig.

    Raises:
        SystemExit: if no target URL was supplied or a value is out of range.
    """
    if environ is None:
        environ = os.environ
    args = build_arg_parser(environ).parse_args(argv)

    urls = parse_hosts(args.urls)
    if not urls:
        raise SystemExit(
            "The -urls flag is required - supply a comma separated list "
            "(or set JENKINS_URLS)"
        )

    config = ExporterConfig(
        urls=urls,
        poll_delay=args.poll_delay,
        one_shot=args.one_shot,
        port=args.port,
        timeout=args.timeout,
        evict_stale=args.evict_stale,
        log_level=str(args.log_level).upper(),
    )
    validate_configuration(config)
    return config
