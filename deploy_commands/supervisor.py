"""
supervisor.py
=============
Top-level guard around a deploy command: any failure or interrupt is
reported on stderr and turned into a non-zero exit code.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum

import typer
from rich.console import Console
from rich.markup import escape

from deploy_commands.errors import DeployError

err_console = Console(stderr=True)

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"


@contextmanager
def supervised(command: str) -> Iterator[None]:
    try:
        yield
    except DeployError as e:
        err_console.print(f"[bold red]❌ {command} failed:[/bold red] {escape(e.message)}")
        raise typer.Exit(EXIT_FAILURE) from e
    except KeyboardInterrupt as e:
        err_console.print(f"[yellow]{command} interrupted[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED) from e
    except Exception as e:
        err_console.print(
            f"[bold red]❌ {command} failed unexpectedly:[/bold red] "
            f"{escape(type(e).__name__)}: {escape(str(e))}"
        )
        raise typer.Exit(EXIT_FAILURE) from e
