"""transloadify: convert the files of a directory with Transloadit.

Exports:
- app, main: Typer CLI entrypoints (from transloadify.cli)
- TransloaditClient: HTTP client for assemblies (from transloadify.client)
- ClientConfig, WatchOptions: configuration (from transloadify.config)
- Watcher: directory watcher publishing events (from transloadify.watcher)
- ChangeEvent, DoneEvent, ErrorEvent, EventStream, report_events: events (from transloadify.events)
- load_steps: template file parsing (from transloadify.steps)
- render_upstart, daemon_vars, build_command: daemon script (from transloadify.upstart)
"""

from .cli import app, main  # noqa: F401
from .client import TransloaditClient  # noqa: F401
from .config import ClientConfig, WatchOptions  # noqa: F401
from .events import (  # noqa: F401
    ChangeEvent,
    DoneEvent,
    ErrorEvent,
    EventStream,
    report_events,
)
from .steps import load_steps  # noqa: F401
from .upstart import build_command, daemon_vars, render_upstart  # noqa: F401
from .watcher import Watcher  # noqa: F401

__all__ = [
    "app",
    "main",
    "TransloaditClient",
    "ClientConfig",
    "WatchOptions",
    "Watcher",
    "ChangeEvent",
    "DoneEvent",
    "ErrorEvent",
    "EventStream",
    "report_events",
    "load_steps",
    "build_command",
    "daemon_vars",
    "render_upstart",
]

__version__ = "0.1.0"
