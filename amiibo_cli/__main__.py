"""
Console entry point for amiibo-cli.
Errors that escape a command are rendered as a panel instead of a traceback.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from amiibo_cli.cli.app import app
from amiibo_cli.cli.formatters import format_error_with_suggestions
from amiibo_cli.exceptions import AmiiboCliError

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

log = logging.getLogger("amiibo_cli")


def _report(console: Console, error: Exception, context: dict | None = None) -> None:
    console.print()
    console.print(format_error_with_suggestions(error, context))


def main() -> None:
    # Windows consoles default to a legacy code page; the tables use ✓ and ★
    if os.name == "nt":
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass

    console = Console(stderr=True)
    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]⚠️  Interrupted.[/yellow]")
        sys.exit(EXIT_INTERRUPTED)
    except AmiiboCliError as e:
        _report(console, e)
        sys.exit(EXIT_FAILURE)
    except Exception as e:
        _report(console, e, {"type": "Unexpected"})
        log.debug("Full traceback:", exc_info=True)
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
