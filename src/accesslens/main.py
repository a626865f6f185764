"""Main CLI entry point for AccessLens."""

import logging
import time
from typing import Optional
import typer
from pathlib import Path

app = typer.Typer(
    name="accesslens",
    help="AccessLens - Access Log Analysis Tool for CSV access-log exports",
    add_completion=True,
)

POLL_INTERVAL_SECONDS = 0.1


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s [%(threadName)s] %(name)s: %(message)s",
    )


@app.command()
def analyze(
    log_file: Path = typer.Argument(
        ...,
        help="Path to the CSV access log to analyze",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    top: int = typer.Option(
        10,
        "--top",
        "-t",
        min=1,
        help="Number of entries shown per ranking",
    ),
    geo: bool = typer.Option(
        False,
        "--geo/--no-geo",
        help="Resolve the geolocation of the top client IPs",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file path for the analysis report",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
) -> None:
    """Analyze a CSV access log and print traffic statistics."""
    from .core.exceptions import AnalysisError
    from .models import AnalysisStatus
    from .services.ingestion import LogFileIngester
    from .services.jobs import create_job_scheduler
    from .services.reporting import ReportingService, OutputConfig, ReportFormat

    _configure_logging(verbose)

    typer.echo(f"🔍 AccessLens analysis starting for: {log_file.name}")

    scheduler = create_job_scheduler()
    try:
        data, metadata = LogFileIngester().read_file(log_file)
        if verbose:
            typer.echo(f"   📏 File size: {metadata.file_size / 1024:.1f} KB ({metadata.encoding})")

        job_id = scheduler.submit(data)
        job = scheduler.get(job_id)
        typer.echo(f"   🆔 Analysis ID: {job_id}")

        last_position = None
        state = job.state
        while not state.status.is_terminal:
            if state.status == AnalysisStatus.QUEUED:
                position = scheduler.queue_position(job)
                if position != last_position:
                    typer.echo(f"   ⏳ Queued (position {position})")
                    last_position = position
            time.sleep(POLL_INTERVAL_SECONDS)
            state = job.state

        if state.status == AnalysisStatus.FAILED:
            typer.echo(f"❌ Analysis failed: {state.error_message}", err=True)
            raise typer.Exit(1)

        result = state.result
        typer.echo(f"✅ Analysis complete: {result.total_requests:,} requests, {result.error_count:,} parse errors")

        geo_info = None
        if geo:
            from .services.enrichment import create_geo_lookup_client

            with create_geo_lookup_client() as client:
                geo_info = client.lookup_top_ips(result.ip_counts, top)
                if verbose:
                    stats = client.get_statistics()
                    typer.echo(
                        f"   🌐 Geo lookups: {stats.lookups} | remote calls: {stats.remote_calls} "
                        f"| fallbacks: {stats.fallbacks}"
                    )

        config = OutputConfig(
            format=ReportFormat.FILE if output else ReportFormat.CONSOLE,
            file_path=output,
            top_n=top,
        )
        reporting_service = ReportingService(config)
        report_content = reporting_service.generate_report(result, geo_info=geo_info, verbose=verbose)

        if output:
            reporting_service.save_report(report_content, output)
            typer.echo(f"\n📄 Analysis report saved to: {output}")
        else:
            typer.echo("\n" + report_content)

    except AnalysisError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(1)
    finally:
        scheduler.shutdown(wait=False)


@app.command("init-config")
def init_config(
    path: Optional[Path] = typer.Option(
        None,
        "--path",
        "-p",
        help="Where to write the sample configuration (default: ~/.accesslens/config.yml)",
    ),
) -> None:
    """Write a sample configuration file."""
    from .core.config import config_manager

    target = path or config_manager.config_paths[0]
    config_manager.create_sample_config(target)
    typer.echo(f"📝 Sample configuration written to: {target}")


@app.command()
def version() -> None:
    """Show AccessLens version information."""
    from . import __version__
    typer.echo(f"AccessLens version: {__version__}")


def main() -> None:
    """Entry point for the CLI application."""
    app()


if __name__ == "__main__":
    main()
