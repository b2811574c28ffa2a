"""Logging for schemabind: standard levels plus a few CLI display helpers."""

import json
import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler


class SchemaBindLogger(logging.Logger):
    """
    Logger that writes through Rich and offers CLI output helpers.

    Library modules only use the standard levels (debug, info, warning, error).
    The helpers (success, hint, key_value, list_item, rule) are meant for the CLI.
    """

    def __init__(self, name: str, level: int = logging.INFO) -> None:
        super().__init__(name, level)
        self.console = Console()

        handler = RichHandler(
            console=self.console,
            rich_tracebacks=True,
            show_time=True,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        self.addHandler(handler)

    def print(self, message: str) -> None:
        """Print a plain message (Rich markup allowed)."""
        self.console.print(message)

    def success(self, message: str) -> None:
        self.print(f"[green]✓[/green] {message}")

    def hint(self, message: str) -> None:
        self.print(f"[dim]{message}[/dim]")

    def rule(self, title: str, style: str = "bold blue") -> None:
        """
        Print a horizontal separator with a title.

        Args:
            title: Title text for the rule
            style: Rich style string (default: "bold blue")
        """
        self.console.rule(f"[{style}]{title}")

    def key_value(self, key: str, value: Any, key_style: str = "dim") -> None:
        self.print(f"[{key_style}]{key}:[/{key_style}] {value}")

    def list_item(self, text: str, prefix: str = "-") -> None:
        self.print(f"{prefix} {text}")

    def print_dict(self, data: dict[str, Any]) -> None:
        """Print a JSON-serializable dictionary with syntax highlighting."""
        self.console.print_json(json.dumps(data, indent=2))


def get_logger(name: str = "schemabind") -> SchemaBindLogger:
    """
    Get or create a schemabind logger instance.

    Args:
        name: Logger name (default: "schemabind")

    Returns:
        SchemaBindLogger instance
    """
    manager_class = logging.getLoggerClass()
    logging.setLoggerClass(SchemaBindLogger)
    try:
        logger = logging.getLogger(name)
    finally:
        logging.setLoggerClass(manager_class)

    if not isinstance(logger, SchemaBindLogger):
        raise TypeError(f"Logger '{name}' was created before schemabind could configure it")

    return logger
