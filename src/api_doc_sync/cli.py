"""CLI entry point for api-doc-sync."""

import json
import logging
from pathlib import Path

import click
import yaml
from pydantic import ValidationError

from api_doc_sync.config import DEFAULT_CONFIG_NAME, SyncConfig
from api_doc_sync.docs.annotations import ERROR_STATUS_CODES
from api_doc_sync.sync.models import SyncResult, Target
from api_doc_sync.sync.pipeline import synchronize


def _load_config(config_path: Path | None, app_root: Path | None) -> SyncConfig:
    """Load the config file, falling back to defaults when there is none."""
    if config_path is None:
        candidate = (app_root or Path(".")) / DEFAULT_CONFIG_NAME
        config_path = candidate if candidate.exists() else None

    if config_path is None:
        return SyncConfig()
    try:
        return SyncConfig.from_yaml(config_path)
    except (yaml.YAMLError, ValidationError) as e:
        raise click.ClickException(f"Invalid config {config_path}: {e}")


def _render(result: SyncResult, fmt: str) -> str:
    data = result.model_dump(mode="json")
    if fmt == "json":
        return json.dumps(data, indent=2, ensure_ascii=False)
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """API Doc Sync — extract endpoint metadata from application source."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("-c", "--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="YAML config file.")
@click.option("--app-root", default=None, type=click.Path(exists=True, file_okay=False, path_type=Path), help="Application root directory.")
@click.option("-t", "--target", "target_files", multiple=True, help="Source file to synchronize, relative to the app root.")
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Output file (stdout when omitted).")
@click.option("--format", "fmt", default="yaml", type=click.Choice(["yaml", "json"]), help="Output format.")
def sync(config_path: Path | None, app_root: Path | None, target_files: tuple[str, ...], output: Path | None, fmt: str):
    """Synchronize endpoint metadata for the configured targets."""
    config = _load_config(config_path, app_root)
    if app_root is not None:
        config.app_root = app_root
    if target_files:
        config.targets = [Target(file=f) for f in target_files]
    if not config.targets:
        raise click.UsageError("No targets given; use --target or a config file.")

    click.echo(f"Synchronizing {len(config.targets)} targets under {config.app_root}...", err=True)
    result = synchronize(
        config.app_root,
        config.targets,
        max_errors=config.max_errors,
        parse_tests=config.parse_tests,
    )
    for message in result.validation_errors:
        click.echo(f"  {message}", err=True)

    text = _render(result, fmt)
    if output is None:
        click.echo(text)
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
        click.echo(f"Result saved to {output}", err=True)

    if not result.complete:
        raise SystemExit(1)


@main.command("status-codes")
def status_codes():
    """Print the error code to HTTP status table."""
    for code, status in ERROR_STATUS_CODES.items():
        click.echo(f"{code:<20} {status}")
