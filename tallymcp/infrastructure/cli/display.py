"""Rich console rendering for the CLI commands."""

import json
import logging
from typing import Any, Dict, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE, Box
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from tallymcp.domain.interfaces.user_interface import UserInterface

logger = logging.getLogger(__name__)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_json(self, data: Any, **kwargs: Any) -> None:
        """Pretty-prints a JSON-serializable value inside a panel.

        Args:
            data: The value to render.
            **kwargs: ``title`` for the panel header (default: "Result").
        """
        title = kwargs.get("title", "Result")
        text = json.dumps(data, indent=2, default=str)
        panel = Panel(
            JSON(text),
            title=f"[bold cyan]{title}[/bold cyan]",
            title_align="left",
            border_style="cyan",
            box=ROUNDED,
            padding=(0, 1),
        )
        self.console.print(panel)

    def display_key_values(self, values: Dict[str, Any], **kwargs: Any) -> None:
        """Renders a flat mapping as a two-column table."""
        table = Table(title=kwargs.get("title"), box=SIMPLE, border_style="cyan")
        table.add_column("Key", style="bold cyan")
        table.add_column("Value")
        for key, value in values.items():
            table.add_row(str(key), str(value))
        self.console.print(table)

    def _print_message(self, message: str, label: str, color: str, box: Box) -> None:
        self.console.print(Panel(
            Text(message, style="white"),
            title=f"[bold {color}]{label}[/bold {color}]",
            border_style=color,
            box=box,
            padding=(0, 1),
        ))

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
        """
        self._print_message(error_message, "Error", "red", HEAVY)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self._print_message(info_message, "Info", "blue", SIMPLE)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        self._print_message(warning_message, "Warning", "yellow", HEAVY)
