"""Helpers shared by the fanout CLI commands."""

import functools
from pathlib import Path
from typing import Callable, Optional, TypeVar

import structlog
import typer

from fanout.models.config import FanoutConfig
from fanout.orchestration.orchestrator import SearchOrchestrator
from fanout.services.config_manager import DEFAULT_CONFIG_PATH, ConfigManager
from fanout.utils.exceptions import ConfigValidationError, FanoutError

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable)


def load_config(config_path: Optional[Path]) -> FanoutConfig:
    """Resolve the config for a command.

    With no --config the default location is tried, and built-in defaults
    apply when nothing is there. An explicit path must exist.

    Raises:
        typer.Exit: If the file is missing or invalid
    """
    manager = ConfigManager(str(config_path or DEFAULT_CONFIG_PATH))
    try:
        if config_path is None:
            return manager.load_or_default()
        return manager.load_config()
    except (FileNotFoundError, ConfigValidationError) as e:
        display_error(f"Configuration Error: {e}")
        raise typer.Exit(code=1)


def build_orchestrator(config: FanoutConfig) -> SearchOrchestrator:
    return SearchOrchestrator.from_config(config)


def handle_errors(func: F) -> F:
    """Turn uncaught errors into a red message and exit code 1.

    fanout errors (no matching providers, failed aggregation) are expected
    outcomes and logged as warnings; anything else is logged with its
    traceback.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except FanoutError as e:
            logger.warning("command_failed", error=str(e), error_type=type(e).__name__)
            display_error(f"Error: {e}")
            raise typer.Exit(code=1)
        except Exception as e:
            logger.exception("command_crashed")
            display_error(f"Unexpected error: {e}")
            raise typer.Exit(code=1)

    return wrapper  # type: ignore[return-value]


def display_success(message: str) -> None:
    typer.secho(message, fg=typer.colors.GREEN)


def display_warning(message: str) -> None:
    typer.secho(message, fg=typer.colors.YELLOW)


def display_error(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)


def display_info(message: str) -> None:
    typer.secho(message, fg=typer.colors.CYAN)
