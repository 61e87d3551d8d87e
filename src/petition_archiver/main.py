"""Main entry point for the archive workflow CLI."""

import asyncio
import socket
import sys
import uuid
from pathlib import Path
from typing import Optional

import click

from petition_archiver.config import load_config
from petition_archiver.exceptions import ConfigurationError
from petition_archiver.status import StatusCode
from utils.logging import configure_logging


@click.command()
@click.option(
    "--config",
    "-c",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)
@click.option("--job-id", help="Identifier of this invocation (random if omitted)")
@click.option("--server-name", help="Host name reported in logs (defaults to this host)")
@click.option("--worker-name", default="cli", show_default=True, help="Worker name reported in logs")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose output",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARN", "ERROR", "CRITICAL"]),
    help="Log level",
)
@click.option(
    "--log-format",
    default="console",
    type=click.Choice(["console", "json"], case_sensitive=False),
    help="Log format: 'console' for human-readable output, 'json' for structured logs",
)
@click.option("--quiet", "-q", is_flag=True, default=False, help="Do not print the run summary")
def main(
    config: Path,
    job_id: Optional[str],
    server_name: Optional[str],
    worker_name: str,
    verbose: bool,
    log_level: str,
    log_format: str,
    quiet: bool,
) -> None:
    """Archive closed petition signatures and validations.

    Moves records past the watermark from the processing tables into the
    archive tables, reconciles orphaned validations, and exits non-zero if
    the run did not complete.
    """
    effective_log_level = "DEBUG" if verbose else log_level
    logger = configure_logging(log_level=effective_log_level, log_format=log_format)
    logger = logger.bind(component="main")

    try:
        workflow_config = load_config(config)
    except ConfigurationError as e:
        logger.error("Configuration error", error=str(e))
        sys.exit(1)

    if verbose:
        logger.info("Configuration loaded successfully", version=workflow_config.version)

    from petition_archiver.workflow import ArchiveWorkflow

    workflow = ArchiveWorkflow(workflow_config, logger=logger)

    metrics_port = workflow_config.monitoring.metrics_port
    if workflow.metrics and metrics_port:
        try:
            workflow.metrics.start_metrics_server(port=metrics_port)
        except OSError as e:
            logger.warning(
                "Failed to start metrics server (non-critical)", port=metrics_port, error=str(e)
            )

    status = asyncio.run(
        workflow.run(
            job_id=job_id or uuid.uuid4().hex,
            server_name=server_name or socket.gethostname(),
            worker_name=worker_name,
        )
    )

    if not quiet and log_format == "console":
        from utils.output import print_summary

        print_summary(workflow.last_run)

    if status is not StatusCode.OK:
        sys.exit(1)


if __name__ == "__main__":
    main()
