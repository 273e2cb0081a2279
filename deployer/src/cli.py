"""
run-pipeline - run a deployment pipeline from a YAML file.
"""

import logging
import os
import sys
from typing import Optional

import typer

from deployer.src.config import get_settings
from deployer.src.errors import ConfigurationError
from deployer.src.models.run import PipelineRun
from deployer.src.services.executor import execute_pipeline
from deployer.src.services.orchestrator import summarize
from deployer.src.services.pipeline_parser import parse_pipeline_file
from deployer.src.services.status_reporter import LoggingReporter, MultiReporter, RedisReporter

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_OTHER_STAGE = 1
EXIT_CONFIGURATION = 2
STAGE_EXIT_CODES = {
    "test": 10,
    "build": 11,
    "deploy": 12,
}

app = typer.Typer(
    name="run-pipeline",
    help="Run a test/build/deploy pipeline against a remote Docker host.",
    add_completion=False,
    pretty_exceptions_enable=False,
)

def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

def exit_code_for(run: PipelineRun) -> int:
    if run.succeeded:
        return EXIT_OK
    return STAGE_EXIT_CODES.get(run.failed_stage, EXIT_OTHER_STAGE)

@app.command()
def run_pipeline(
    config: str = typer.Option(..., "--config", "-c", help="Pipeline YAML file"),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Deadline for the whole run, in seconds"),
    report_redis: bool = typer.Option(False, "--report-redis", help="Also publish run events to Redis"),
):
    """Run the pipeline described by --config."""
    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        pipeline = parse_pipeline_file(config)
        reporter = LoggingReporter()
        if report_redis:
            reporter = MultiReporter([reporter, RedisReporter()])
        run = execute_pipeline(
            pipeline,
            base_dir=os.path.dirname(os.path.abspath(config)),
            reporter=reporter,
            timeout=timeout,
        )
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=EXIT_CONFIGURATION)

    typer.echo(f"Run {run.run_id}: {run.status.value}")
    for line in summarize(run):
        typer.echo(f"  {line}")

    raise typer.Exit(code=exit_code_for(run))

def main():
    app()

if __name__ == "__main__":
    main()
