"""
Configuration context for the site status dashboard.

This module defines a data structure that holds all configuration parameters.
It serves as a central point for passing configuration throughout the application.
"""

from typing import NamedTuple

from site_status.config.constants import PRODUCTION_ENVIRONMENT


class StatusContext(NamedTuple):
    """
    A data structure containing all configuration parameters.

    This class is immutable and is created by parsing command-line arguments
    and environment variables.

    Attributes:
        command: What to run: "serve" starts the web server, "autocheck" runs the scheduler client.
        site: Project slug the autocheck client is limited to; empty means every project.
        dsn: Database connection string for PostgreSQL.
        instance_id: Unique identifier for this process, injected into every log record.
        environment: Deployment environment; administrative endpoints refuse in "production".
        logging_type: Type of logging configuration to use (dev, prod, or custom).
        logging_config_file: Path to custom logging configuration file (if logging_type is 'custom').
        host: Interface the web server binds to.
        port: Port the web server listens on.
        projects_file: Path to the JSON file describing the monitored projects.
        db_pool_size: Maximum number of connections in the database connection pool.
        db_ca_file: CA bundle used to verify the database server; empty leaves TLS to the DSN.
        db_command_timeout: Seconds after which a database query is cancelled.
        max_redirects: Maximum number of redirects followed by one fetch.
        preview_user_agent: User-Agent sent by the preview proxy.
        probe_user_agent: User-Agent sent by route probes.
        fetch_timeout_ms: Hard timeout of every outgoing request.
        redirect_delay_min_ms: Minimum pause before following a redirect.
        redirect_delay_jitter_ms: Upper bound of the random extra pause before following a redirect.
        wait_for_full_load: Whether the preview returns a loader wrapper instead of sanitized HTML.
        load_timeout_ms: How long the wrapper waits for the frame before showing the error state.
        cache_seconds: Public cache lifetime of a sanitized preview.
        stale_minutes: Staleness window of the client-side scheduler.
        request_delay_ms: Pacing delay between two client-triggered probes.
        reduced_frequency_factor: Multiplier applied to the pacing delay on constrained clients.
        constrained_client: Whether the scheduler runs on a bandwidth/CPU constrained client.
        server_url: Base URL of the dashboard server, used by the scheduler client.
    """

    command: str
    site: str
    dsn: str
    instance_id: str
    environment: str
    logging_type: str
    logging_config_file: str
    host: str
    port: int
    projects_file: str
    db_pool_size: int
    db_ca_file: str
    db_command_timeout: float
    max_redirects: int
    preview_user_agent: str
    probe_user_agent: str
    fetch_timeout_ms: int
    redirect_delay_min_ms: int
    redirect_delay_jitter_ms: int
    wait_for_full_load: bool
    load_timeout_ms: int
    cache_seconds: int
    stale_minutes: int
    request_delay_ms: int
    reduced_frequency_factor: float
    constrained_client: bool
    server_url: str

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == PRODUCTION_ENVIRONMENT
