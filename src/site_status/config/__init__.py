"""
Configuration module for the site status dashboard.

This module provides functionality to parse command-line arguments and environment
variables to create a configuration context. It defines default values and help
text for all configurable parameters.
"""

import argparse
import os
from typing import Any, Optional, Sequence
from uuid import uuid4

from site_status.config.constants import (
    DEFAULT_CACHE_SECONDS,
    DEFAULT_CONSTRAINED_CLIENT,
    DEFAULT_DB_CA_FILE,
    DEFAULT_DB_COMMAND_TIMEOUT,
    DEFAULT_DB_POOL_SIZE,
    DEFAULT_DSN,
    DEFAULT_ENVIRONMENT,
    DEFAULT_FETCH_TIMEOUT_MS,
    DEFAULT_HOST,
    DEFAULT_INSTANCE_ID_PREFIX,
    DEFAULT_LOAD_TIMEOUT_MS,
    DEFAULT_LOGGING_CONFIG_FILE,
    DEFAULT_LOGGING_TYPE,
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_PORT,
    DEFAULT_PREVIEW_USER_AGENT,
    DEFAULT_PROBE_USER_AGENT,
    DEFAULT_PROJECTS_FILE,
    DEFAULT_REDIRECT_DELAY_JITTER_MS,
    DEFAULT_REDIRECT_DELAY_MIN_MS,
    DEFAULT_REDUCED_FREQUENCY_FACTOR,
    DEFAULT_REQUEST_DELAY_MS,
    DEFAULT_SERVER_URL,
    DEFAULT_STALE_MINUTES,
    DEFAULT_WAIT_FOR_FULL_LOAD,
)
from site_status.config.status_context import StatusContext


def _as_bool(value: str) -> bool:
    return str(value).lower() == "true"


def get_context(argv: Optional[Sequence[str]] = None) -> StatusContext:
    """
    Parse command-line arguments and environment variables to create a configuration context.

    For each option, it first checks for a command-line argument, then falls back
    to a SITE_STATUS_* environment variable, and finally uses a default value.

    Args:
        argv: Arguments to parse; defaults to sys.argv[1:].

    Returns:
        StatusContext: A configuration context object containing all parsed settings.

    Raises:
        SystemExit: If an argument cannot be parsed or a value is out of range.
    """
    parser = argparse.ArgumentParser(
        description="Site status dashboard: safe preview proxy and route health probes."
    )

    parser.add_argument(
        "command",
        nargs="?",
        choices=["serve", "autocheck"],
        default="serve",
        help="serve: run the web server (default). autocheck: run the staleness scheduler client.",
    )

    parser.add_argument(
        "--site",
        type=str,
        default="",
        help="Project slug the autocheck client is limited to. All projects when omitted.",
    )

    parser.add_argument(
        "-dsn",
        "--dsn",
        type=str,
        default=os.getenv("SITE_STATUS_DSN", DEFAULT_DSN),
        help="Specifies the DSN (connection string) for the PostgreSQL database.\n"
        "If not provided, the value is read from the SITE_STATUS_DSN environment variable.\n"
        "If that is also absent, a default value for a local database is used.",
    )

    parser.add_argument(
        "-iid",
        "--instance-id",
        type=str,
        default=os.getenv("SITE_STATUS_INSTANCE_ID", f"{DEFAULT_INSTANCE_ID_PREFIX}{uuid4()}"),
        help="Identifier of this process, injected into every log record.\n"
        f"Defaults to SITE_STATUS_INSTANCE_ID, then {DEFAULT_INSTANCE_ID_PREFIX}uuid4().",
    )

    parser.add_argument(
        "--environment",
        type=str,
        default=os.getenv("SITE_STATUS_ENVIRONMENT", DEFAULT_ENVIRONMENT),
        help="Deployment environment. Administrative endpoints refuse to run in 'production'.\n"
        f"Defaults to SITE_STATUS_ENVIRONMENT, then '{DEFAULT_ENVIRONMENT}'.",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=os.getenv("SITE_STATUS_HOST", DEFAULT_HOST),
        help=f"Interface the web server binds to. Defaults to SITE_STATUS_HOST, then {DEFAULT_HOST}.",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("SITE_STATUS_PORT", DEFAULT_PORT)),
        help=f"Port the web server listens on. Defaults to SITE_STATUS_PORT, then {DEFAULT_PORT}.",
    )

    parser.add_argument(
        "-pf",
        "--projects-file",
        type=str,
        default=os.getenv("SITE_STATUS_PROJECTS_FILE", DEFAULT_PROJECTS_FILE),
        help="Path to the JSON file describing the monitored projects.\n"
        f"Defaults to SITE_STATUS_PROJECTS_FILE, then {DEFAULT_PROJECTS_FILE}.",
    )

    parser.add_argument(
        "-ps",
        "--db-pool-size",
        type=int,
        default=int(os.getenv("SITE_STATUS_DB_POOL_SIZE", DEFAULT_DB_POOL_SIZE)),
        help="Specifies the maximum number of connections in the database connection pool.\n"
        f"Defaults to SITE_STATUS_DB_POOL_SIZE, then {DEFAULT_DB_POOL_SIZE}.",
    )

    parser.add_argument(
        "--db-ca-file",
        type=str,
        default=os.getenv("SITE_STATUS_DB_CA_FILE", DEFAULT_DB_CA_FILE),
        help="Path to a PEM CA bundle. When set, database connections use TLS and the\n"
        "server certificate must verify against it. Defaults to SITE_STATUS_DB_CA_FILE.",
    )

    parser.add_argument(
        "--db-command-timeout",
        type=float,
        default=float(os.getenv("SITE_STATUS_DB_COMMAND_TIMEOUT", DEFAULT_DB_COMMAND_TIMEOUT)),
        help="Seconds after which a database query is cancelled.\n"
        f"Defaults to SITE_STATUS_DB_COMMAND_TIMEOUT, then {DEFAULT_DB_COMMAND_TIMEOUT}.",
    )

    parser.add_argument(
        "-lt",
        "--logging-type",
        type=str,
        default=os.getenv("SITE_STATUS_LOGGING_TYPE", DEFAULT_LOGGING_TYPE),
        help="Specifies the logging configuration type to use.\n"
        "Allowed values: dev, prod, custom (case insensitive).\n"
        "For 'custom', the --logging-config-file argument is required.",
    )

    parser.add_argument(
        "-lcf",
        "--logging-config-file",
        type=str,
        default=os.getenv("SITE_STATUS_LOGGING_CONFIG_FILE", DEFAULT_LOGGING_CONFIG_FILE),
        help="Path to custom logging configuration file.\n"
        "Required when --logging-type is set to 'custom'.",
    )

    parser.add_argument(
        "--max-redirects",
        type=int,
        default=int(os.getenv("SITE_STATUS_MAX_REDIRECTS", DEFAULT_MAX_REDIRECTS)),
        help=f"Maximum number of redirects followed by one fetch. Default {DEFAULT_MAX_REDIRECTS}.",
    )

    parser.add_argument(
        "--preview-user-agent",
        type=str,
        default=os.getenv("SITE_STATUS_PREVIEW_USER_AGENT", DEFAULT_PREVIEW_USER_AGENT),
        help="User-Agent sent by the preview proxy.",
    )

    parser.add_argument(
        "--probe-user-agent",
        type=str,
        default=os.getenv("SITE_STATUS_PROBE_USER_AGENT", DEFAULT_PROBE_USER_AGENT),
        help="User-Agent sent by route probes.",
    )

    parser.add_argument(
        "-ft",
        "--fetch-timeout-ms",
        type=int,
        default=int(os.getenv("SITE_STATUS_FETCH_TIMEOUT_MS", DEFAULT_FETCH_TIMEOUT_MS)),
        help="Hard timeout in milliseconds of every outgoing HTTP request.\n"
        f"Defaults to SITE_STATUS_FETCH_TIMEOUT_MS, then {DEFAULT_FETCH_TIMEOUT_MS}.",
    )

    parser.add_argument(
        "--redirect-delay-min-ms",
        type=int,
        default=int(os.getenv("SITE_STATUS_REDIRECT_DELAY_MIN_MS", DEFAULT_REDIRECT_DELAY_MIN_MS)),
        help="Minimum pause in milliseconds before a redirect is followed.",
    )

    parser.add_argument(
        "--redirect-delay-jitter-ms",
        type=int,
        default=int(
            os.getenv("SITE_STATUS_REDIRECT_DELAY_JITTER_MS", DEFAULT_REDIRECT_DELAY_JITTER_MS)
        ),
        help="Upper bound in milliseconds of the random pause added to the minimum redirect delay.",
    )

    parser.add_argument(
        "--wait-for-full-load",
        type=str,
        default=os.getenv("SITE_STATUS_WAIT_FOR_FULL_LOAD", DEFAULT_WAIT_FOR_FULL_LOAD),
        help="If 'true', the preview returns a loader wrapper around a sandboxed frame\n"
        "instead of the sanitized page.",
    )

    parser.add_argument(
        "--load-timeout-ms",
        type=int,
        default=int(os.getenv("SITE_STATUS_LOAD_TIMEOUT_MS", DEFAULT_LOAD_TIMEOUT_MS)),
        help="How long the loader wrapper waits for the frame before showing an error.",
    )

    parser.add_argument(
        "--cache-seconds",
        type=int,
        default=int(os.getenv("SITE_STATUS_CACHE_SECONDS", DEFAULT_CACHE_SECONDS)),
        help="Public cache lifetime in seconds of a sanitized preview.",
    )

    parser.add_argument(
        "--stale-minutes",
        type=int,
        default=int(os.getenv("SITE_STATUS_STALE_MINUTES", DEFAULT_STALE_MINUTES)),
        help="Minimum age in minutes of a route's last check before it is probed again.",
    )

    parser.add_argument(
        "--request-delay-ms",
        type=int,
        default=int(os.getenv("SITE_STATUS_REQUEST_DELAY_MS", DEFAULT_REQUEST_DELAY_MS)),
        help="Pause in milliseconds between two probes issued by the autocheck client.",
    )

    parser.add_argument(
        "--reduced-frequency-factor",
        type=float,
        default=float(
            os.getenv("SITE_STATUS_REDUCED_FREQUENCY_FACTOR", DEFAULT_REDUCED_FREQUENCY_FACTOR)
        ),
        help="Multiplier applied to the probe pacing delay on constrained clients.",
    )

    parser.add_argument(
        "--constrained-client",
        type=str,
        default=os.getenv("SITE_STATUS_CONSTRAINED_CLIENT", DEFAULT_CONSTRAINED_CLIENT),
        help="If 'true', the autocheck client paces its probes with the reduced frequency factor.",
    )

    parser.add_argument(
        "--server-url",
        type=str,
        default=os.getenv("SITE_STATUS_SERVER_URL", DEFAULT_SERVER_URL),
        help="Base URL of the dashboard server the autocheck client talks to.",
    )

    # Parse the command-line arguments
    args: Any = parser.parse_args(argv)

    if args.db_pool_size < 1:
        parser.error("--db-pool-size must be at least 1")
    if args.db_command_timeout <= 0:
        parser.error("--db-command-timeout must be positive")
    if args.max_redirects < 0:
        parser.error("--max-redirects must not be negative")
    if args.reduced_frequency_factor < 1:
        parser.error("--reduced-frequency-factor must be at least 1")

    return StatusContext(
        command=args.command,
        site=args.site,
        dsn=args.dsn,
        instance_id=args.instance_id,
        environment=args.environment,
        logging_type=args.logging_type,
        logging_config_file=args.logging_config_file,
        host=args.host,
        port=args.port,
        projects_file=args.projects_file,
        db_pool_size=args.db_pool_size,
        db_ca_file=args.db_ca_file,
        db_command_timeout=args.db_command_timeout,
        max_redirects=args.max_redirects,
        preview_user_agent=args.preview_user_agent,
        probe_user_agent=args.probe_user_agent,
        fetch_timeout_ms=args.fetch_timeout_ms,
        redirect_delay_min_ms=args.redirect_delay_min_ms,
        redirect_delay_jitter_ms=args.redirect_delay_jitter_ms,
        wait_for_full_load=_as_bool(args.wait_for_full_load),
        load_timeout_ms=args.load_timeout_ms,
        cache_seconds=args.cache_seconds,
        stale_minutes=args.stale_minutes,
        request_delay_ms=args.request_delay_ms,
        reduced_frequency_factor=args.reduced_frequency_factor,
        constrained_client=_as_bool(args.constrained_client),
        server_url=args.server_url,
    )
