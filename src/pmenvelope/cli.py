"""
Command-line interface for pmenvelope.

Provides commands for managing analysis parameters and analyzing
configuration series stored as JSON.
"""

import json
import logging

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path

import click
import tomli_w

from pydantic import TypeAdapter, ValidationError

from pmenvelope.analysis.envelope import EnvelopeBound
from pmenvelope.analysis.params import DEFAULT_PARAMS
from pmenvelope.analysis.service import EventAnalysisService
from pmenvelope.analysis.types import ConfigurationRecord, ConfigurationSummary
from pmenvelope.config import get_config_path, load_params, save_params
from pmenvelope.constants import Pollutant
from pmenvelope.logging_config import setup_logging

logger = logging.getLogger(__name__)

try:
    __version__ = get_version("pmenvelope")
except PackageNotFoundError:
    __version__ = "dev"

_SUMMARIES = TypeAdapter(list[ConfigurationSummary])


def version_callback(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Show version."""
    if not value or ctx.resilient_parsing:
        return
    click.echo(f"pmenvelope, version {__version__}")
    ctx.exit()


def read_records(path: Path) -> list[ConfigurationRecord]:
    """
    Parse a JSON list of configuration records.

    Records that fail validation (including misaligned series) are logged
    and skipped.

    Raises:
        click.ClickException: If the file is not a JSON list
    """
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{path} is not valid JSON: {e}") from e

    if not isinstance(raw, list):
        raise click.ClickException(f"{path} must contain a JSON list of records")

    records = []
    for i, item in enumerate(raw):
        try:
            records.append(ConfigurationRecord.model_validate(item))
        except ValidationError as e:
            logger.error(f"Skipping record {i}: {e}")
    return records


def _fmt(bound: EnvelopeBound | None) -> str:
    if bound is None:
        return "n/a"
    return f"{bound.mean:.2f} [{bound.lower:.2f}, {bound.upper:.2f}]"


def print_summary(summary: ConfigurationSummary) -> None:
    """Print a short human-readable report for one configuration."""
    click.echo(f"\n{summary.key.label} ({summary.num_samples} samples)")

    for pollutant in Pollutant:
        analysis = summary.pollutants[pollutant]
        bounds = analysis.response_bounds
        click.echo(f"  {pollutant.value}: {len(analysis.detection)} outdoor events")
        click.echo(f"    Peak reduction (%):       {_fmt(bounds['peak_reduction'])}")
        click.echo(
            f"    Integrated reduction (%): {_fmt(bounds['integrated_reduction'])}"
        )
        click.echo(f"    Lag time (h):             {_fmt(bounds['lag_time'])}")
        click.echo(f"    Recovery time (h):        {_fmt(bounds['recovery_time'])}")

    combined = summary.combined
    click.echo(f"  Combined: {len(combined.events)} outdoor events")
    click.echo(f"    Indoor events:            {_fmt(combined.total_events)}")
    click.echo(f"    Avg duration (h):         {_fmt(combined.avg_event_duration)}")

    if summary.intervention is not None:
        peak = _fmt(summary.intervention.response_bounds.get("peak_reduction"))
        click.echo(f"  Intervention: {len(summary.intervention.events)} events")
        click.echo(f"    Peak reduction (%):       {peak}")

    for notice in summary.notices:
        click.echo(f"  ⚠ {notice}")


@click.group()
@click.option(
    "--version",
    is_flag=True,
    callback=version_callback,
    expose_value=False,
    is_eager=True,
    help="Show version",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool) -> None:
    """pmenvelope: PM event detection and response envelopes"""
    setup_logging(verbose=verbose)


@cli.group()
def params() -> None:
    """Manage analysis parameters."""


@params.command("show")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Parameter file (default: ~/.pmenvelope/params.toml)",
)
def params_show(config_path: Path | None) -> None:
    """Show the resolved analysis parameters."""
    try:
        resolved = load_params(config_path)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"# Source: {config_path or get_config_path()}")
    click.echo(tomli_w.dumps(resolved.to_mapping()), nl=False)


@params.command("init")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Parameter file (default: ~/.pmenvelope/params.toml)",
)
@click.option("--force", is_flag=True, help="Overwrite existing parameters")
def params_init(config_path: Path | None, force: bool) -> None:
    """Write the default analysis parameters to the config file."""
    target = config_path or get_config_path()
    if target.exists() and not force:
        raise click.ClickException(
            f"{target} already exists. Use --force to overwrite parameters."
        )

    try:
        save_params(DEFAULT_PARAMS, config_path)
    except PermissionError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"✓ Wrote default parameters to {target}")


@cli.command()
@click.argument(
    "input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write full JSON results to this file",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Parameter file (default: ~/.pmenvelope/params.toml)",
)
@click.option("--workers", type=int, help="Parallel configurations (default: auto)")
def analyze(
    input_path: Path,
    output: Path | None,
    config_path: Path | None,
    workers: int | None,
) -> None:
    """Detect events and compute response envelopes for INPUT_PATH."""
    try:
        resolved = load_params(config_path)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    records = read_records(input_path)
    if not records:
        raise click.ClickException(f"No valid configuration records in {input_path}")

    click.echo(f"Analyzing {len(records)} configuration(s)...")
    service = EventAnalysisService(resolved)
    summaries = service.analyze_all(records, max_workers=workers)

    for summary in summaries:
        print_summary(summary)

    if output:
        output.write_bytes(_SUMMARIES.dump_json(summaries, indent=2))
        click.echo(f"\n✓ Results written to {output}")

    failed = len(records) - len(summaries)
    if failed:
        raise click.ClickException(f"{failed} configuration(s) could not be analyzed")
