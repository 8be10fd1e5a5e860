"""wxsync CLI entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from wxsync import __version__
from wxsync.config import Settings, load_config
from wxsync.errors import WxsyncError

_LOG_FORMAT = "%(levelname)s: %(message)s"


class _EchoHandler(logging.Handler):
    """Log handler writing through ``click.echo`` to the current stderr."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    """Send wxsync log records to stderr; stdout may carry the descriptor."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING

    pkg_logger = logging.getLogger("wxsync")
    for handler in list(pkg_logger.handlers):
        pkg_logger.removeHandler(handler)
    handler = _EchoHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(level)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="wxsync")
@click.option(
    "-i",
    "--input",
    "input_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Input descriptor (default: standard input).",
)
@click.option(
    "-o",
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output descriptor (default: standard output).",
)
@click.option(
    "-s",
    "--source",
    "source_dir",
    default=None,
    help="Source directory to mirror (default: '.').",
)
@click.option(
    "-d",
    "--destination",
    "destination_id",
    default=None,
    help="Id of the Directory that maps to the source root (default: INSTALLDIR).",
)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML config file with source/destination/indent keys.",
)
@click.option("--indent", default=None, help="Indentation unit for the output ('' keeps layout).")
@click.option("--report", is_flag=True, help="Print a summary of changes to stderr.")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
def main(
    *,
    input_path: Path | None,
    output_path: Path | None,
    source_dir: str | None,
    destination_id: str | None,
    config_path: Path | None,
    indent: str | None,
    report: bool,
    verbose: bool,
    quiet: bool,
) -> None:
    """Reconcile a WiX descriptor with the files under a source directory.

    Directories and components whose files are gone are removed; new
    directories and files on disk get new Directory and Component entries
    built from the first component in the descriptor.
    """
    from wxsync.pipeline import run

    _configure_logging(verbose=verbose, quiet=quiet)

    try:
        settings = load_config(config_path) if config_path is not None else Settings()
        settings = settings.with_overrides(
            source_dir=source_dir,
            destination_id=destination_id,
            indent=indent,
        )
        result = run(settings, input_path=input_path, output_path=output_path)
    except WxsyncError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if report:
        from rich.console import Console

        from wxsync.report import render_report

        render_report(result, Console(stderr=True))


if __name__ == "__main__":
    main()
