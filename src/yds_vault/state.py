"""Application state container."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from rich.console import Console

from .settings import VaultSettings


@dataclass
class AppState:
    """Container for the CLI's settings and shared output handles.

    Passed to every command through the typer context to avoid global state.
    """

    settings: VaultSettings
    logger: logging.Logger
    console: Console = field(default_factory=Console)
