"""
Entry point for the ``ipa-cli`` command.

Runs the typer app and turns the errors a command can end with into a short
message and exit status 1.
"""

import asyncio
import logging
import sys

import aiohttp
from rich.console import Console

from ipa_cli.cli.app import app
from ipa_cli.cli.formatters import format_error_with_suggestions
from ipa_cli.exceptions import IpaCliError, SessionExpiredError

log = logging.getLogger("ipa_cli")


def main() -> None:
    """Runs the CLI, reporting failures on stderr."""
    console = Console(stderr=True)

    try:
        app()
    except SessionExpiredError as e:
        # The session file was already saved without its identity
        console.print(f"[yellow]Session expired: {e}[/yellow]")
        console.print("Run [cyan]ipa-cli login[/cyan] and retry the command.")
        sys.exit(1)
    except IpaCliError as e:
        console.print(format_error_with_suggestions(e))
        sys.exit(1)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        console.print(format_error_with_suggestions(e, {"type": "Network"}))
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
