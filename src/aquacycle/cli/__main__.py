"""Main CLI module for aquacycle."""

from __future__ import annotations

import sys

import click

from .process import cli as process_cli
from .series import cli as series_cli

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
EPILOG = """
Examples:
  aquacycle process view --start 2024-01-01 --end 2024-04-01       # Progress of a cycle
  aquacycle process validate --start 2025-03-01 --end 2025-06-01   # Check dates of a new cycle
  aquacycle process extend --start 2024-01-01 --end 2024-04-01 --days 10 --reason "disease delay"
  aquacycle process code "Ostión" --start 2025-01-15                # 202501OSTA
  aquacycle series build 1 2 3 --from 2024-05-01 --to 2024-05-02   # Downsampled series
  aquacycle series build 4 --from 2024-05-01 --to 2024-05-08 --json
""".strip()


@click.group(
    context_settings=CONTEXT_SETTINGS,
    help="aquacycle - cultivation process lifecycle and sensor series",
    epilog=EPILOG,
)
def cli() -> None:
    """Root CLI command."""


cli.add_command(process_cli, "process")
cli.add_command(series_cli, "series")


def main(args: list[str] | None = None) -> int:
    """CLI entry point returning the command's exit code."""
    try:
        normalized_args = list(args) if args is not None else None
        rv = cli.main(args=normalized_args, prog_name="aquacycle", standalone_mode=False)
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except click.Abort:
        click.echo("Aborted!", err=True)
        return 1
    except SystemExit as exc:
        return int(exc.code) if exc.code is not None else 0
    return int(rv) if isinstance(rv, int) else 0


if __name__ == "__main__":
    sys.exit(main())
