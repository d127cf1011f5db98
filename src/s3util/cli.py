"""Command-line interface for the s3util tool."""

import asyncio
import logging
import sys
from typing import Any, List, Optional

import click
from dotenv import load_dotenv
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)

from s3util.config import AppConfig, Config, S3Config
from s3util.exceptions import S3UtilError, UsageError
from s3util.orchestrator import (
    AggregateOutcome,
    TransferOrchestrator,
    resolve_paths,
)
from s3util.planner import TransferJob
from s3util.storage import open_storage_client

logger: logging.Logger = logging.getLogger(__name__)

EPILOG: str = """\b
Examples:
    Copy a file to a bucket:       s3util foo.txt s3://mybucket/foo.txt
    Copy a directory to a prefix:  s3util . s3://mybucket/images
    Copy a file from a bucket:     s3util s3://mybucket/foo.txt foo.txt
    Copy everything under prefix:  s3util 's3://mybucket/logs/*' ./logs
"""


def setup_logging(level: str) -> None:
    """Configure rich-based logging for the application."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # Silence noisy loggers
    for logger_name in ["botocore", "aiobotocore", "urllib3"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


async def main_async(
    config: Config, source: str, destination: str, dry_run: bool = False
) -> Optional[AggregateOutcome]:
    """
    Asynchronously plan and execute the copy.

    Args:
        config (Config): The application configuration.
        source (str): The input path or S3 URI.
        destination (str): The output path or S3 URI.
        dry_run (bool): Only print the planned jobs.

    Returns:
        Optional[AggregateOutcome]: The outcome, or None for a dry run.
    """
    async with open_storage_client(config) as client:
        orchestrator: TransferOrchestrator = TransferOrchestrator(config.app, client)
        jobs: List[TransferJob] = await orchestrator.plan(source, destination)
        if dry_run:
            for job in jobs:
                click.echo(job.describe())
            return None

        progress: Progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeRemainingColumn(),
            transient=True,
        )
        task_id: TaskID = progress.add_task("Copying...", total=len(jobs))
        orchestrator.on_result = lambda _: progress.update(task_id, advance=1)
        with progress:
            return await orchestrator.transfer(jobs)


def report(outcome: AggregateOutcome) -> None:
    """Print the summary and one line per failed job to stderr."""
    if outcome.ok:
        logger.info(f"✅ Copied {outcome.succeeded} file(s).")
        return
    logger.error(
        f"{outcome.succeeded} of {outcome.total} file(s) copied, "
        f"{len(outcome.failed)} failed."
    )
    for failure in outcome.failed:
        click.echo(failure.reason, err=True)


@click.command(
    context_settings=dict(help_option_names=["-h", "--help"]), epilog=EPILOG
)
@click.argument("source", metavar="INPUT")
@click.argument("destination", metavar="OUTPUT")
@click.option(
    "-p",
    "--parallelism",
    type=click.IntRange(min=1),
    default=8,
    help="Number of concurrent transfers.",
    show_default=True,
)
@click.option(
    "--endpoint-url",
    default=None,
    help="S3 endpoint URL. Defaults to $S3UTIL_ENDPOINT_URL, then AWS.",
)
@click.option(
    "--region",
    default=None,
    help="Region name. Defaults to $S3UTIL_REGION, then us-east-1.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Print the planned transfers without copying anything.",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set the logging level.",
    show_default=True,
)
def cli(**kwargs: Any) -> None:
    """
    Copy a file or directory between the local disk and an S3 bucket.

    Exactly one of INPUT and OUTPUT must be an S3 URI (s3://bucket[/key]).
    A directory INPUT is uploaded recursively below the OUTPUT key. An INPUT
    key ending in * downloads every object with that prefix into the OUTPUT
    directory.

    Credentials are read from AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY,
    which may also be set in a .env file.
    """
    source: str = kwargs["source"]
    destination: str = kwargs["destination"]
    try:
        resolve_paths(source, destination)
    except UsageError as e:
        raise click.UsageError(str(e)) from e

    load_dotenv()
    setup_logging(kwargs["log_level"])

    try:
        config: Config = Config(
            storage=S3Config.from_env(
                endpoint_url=kwargs["endpoint_url"], region=kwargs["region"]
            ),
            app=AppConfig(parallelism=kwargs["parallelism"]),
        )
        outcome: Optional[AggregateOutcome] = asyncio.run(
            main_async(config, source, destination, kwargs["dry_run"])
        )
    except S3UtilError as e:
        logger.critical(f"A critical application error occurred: {e}")
        sys.exit(1)
    except Exception:
        logger.critical(
            "An unexpected error caused the application to fail:", exc_info=True
        )
        sys.exit(1)

    if outcome is None:
        return
    report(outcome)
    if not outcome.ok:
        sys.exit(1)


if __name__ == "__main__":
    cli()
