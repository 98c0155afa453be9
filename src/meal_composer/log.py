"""Logging for the meal composer CLI.

Log records go to a Rich handler on a shared stderr console, which keeps
plans, shopping lists and cart payloads on stdout clean for piping. An
optional log file records everything at DEBUG, including CP-SAT search
progress from the scheduler.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from rich.console import Console

from meal_composer.errors import ValidationError

stderr_console = Console(stderr=True)

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_level(name: str) -> int:
    try:
        return LEVELS[name.strip().lower()]
    except KeyError:
        raise ValidationError(
            f"Unknown log level '{name}'. Choose from: {', '.join(LEVELS)}"
        ) from None


def setup_logging(level: str = "info", log_file: Path | None = None) -> None:
    """Route meal_composer logs to stderr and, optionally, a DEBUG log file."""
    from rich.logging import RichHandler

    console_level = parse_level(level)
    logger = logging.getLogger("meal_composer")
    logger.setLevel(logging.DEBUG if log_file is not None else console_level)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    rich_handler = RichHandler(
        console=stderr_console,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(console_level)
    logger.addHandler(rich_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s")
        )
        logger.addHandler(file_handler)


def solver_log_callback(logger: logging.Logger) -> Callable[[str], None]:
    """Forward CP-SAT search log lines to ``logger`` at DEBUG."""

    def forward(message: str) -> None:
        for line in message.splitlines():
            if line.strip():
                logger.debug("cp-sat: %s", line.rstrip())

    return forward
