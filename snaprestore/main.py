"""
snaprestore — CLI entrypoint.

Usage:
    snaprestore [-f] [-c] [-v] [-s <snapshot-id>] [<host>]
    python -m snaprestore.main --help
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from snaprestore import __version__
from snaprestore.core.observability.logging_config import setup_from_env


def _confirm(prompt: str) -> str | None:
    """Read one answer from the operator; None at end of input."""
    try:
        return click.prompt(prompt, default="", show_default=False, prompt_suffix=": ", err=True)
    except click.Abort:
        click.echo(err=True)
        return None


def _progress_to_stderr(message: str) -> None:
    click.echo(message, err=True)


def _fail(message: str, hint: str = "") -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    if hint:
        click.echo(f"   {hint}", err=True)
    sys.exit(1)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="snaprestore")
@click.option("--force", "-f", is_flag=True,
              help="Don't prompt for confirmation before restoring.")
@click.option("--config", "-c", "restore_settings", is_flag=True,
              help="Restore appliance settings and license.")
@click.option("--verbose", "-v", is_flag=True, help="Show restore tool output.")
@click.option("--snapshot", "-s", "snapshot_id", default=None, metavar="SNAPSHOT-ID",
              help="Snapshot to restore (default: current).")
@click.option(
    "--config-file",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to snaprestore.yml (default: auto-detect).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True,
              help="Print the run report as JSON.")
@click.argument("host", required=False)
def cli(
    force: bool,
    restore_settings: bool,
    verbose: bool,
    snapshot_id: str | None,
    config_file: str | None,
    as_json: bool,
    host: str | None,
) -> None:
    """Restore a snapshot onto an appliance.

    HOST defaults to restore_host from snaprestore.yml. A configured
    target must be in maintenance mode; the current snapshot is used
    unless -s is given.
    """
    setup_from_env(verbose)

    from snaprestore.core.config.loader import ConfigError, load_config
    from snaprestore.core.errors import RestoreError
    from snaprestore.core.use_cases.restore import build_request, run_restore

    try:
        config = load_config(Path(config_file) if config_file else None)
    except ConfigError as e:
        _fail(str(e))

    try:
        request = build_request(
            config,
            host=host,
            snapshot_id=snapshot_id,
            restore_settings=restore_settings,
            force=force,
            verbose=verbose,
        )
    except RestoreError as e:
        _fail(e.message, e.hint)

    result = run_restore(
        request,
        config,
        confirm=_confirm,
        # stdout carries only the JSON report
        progress=_progress_to_stderr if as_json else click.echo,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if not result.ok:
        _fail(result.error or "Restore failed", result.hint)


def main() -> None:
    """Console entry point: every failure, usage errors included, exits 1."""
    try:
        cli.main(prog_name="snaprestore", standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(1)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
