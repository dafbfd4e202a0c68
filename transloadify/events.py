"""Tagged events published by the watcher and the loop that reports them."""

import queue
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

from .models import AssemblyInfo


@dataclass(frozen=True)
class ChangeEvent:
    """A file was detected and its conversion is about to start."""
    path: Path


@dataclass(frozen=True)
class DoneEvent:
    """A file was converted and its results were stored."""
    path: Path
    assembly: AssemblyInfo

    @property
    def upload_name(self) -> str:
        if self.assembly.uploads and self.assembly.uploads[0].name:
            return self.assembly.uploads[0].name
        return self.path.name


@dataclass(frozen=True)
class ErrorEvent:
    """Something went wrong; the watcher keeps going."""
    error: BaseException
    path: Optional[Path] = None


Event = Union[ChangeEvent, DoneEvent, ErrorEvent]


class EventStream:
    """Thread-safe stream of events with an explicit end."""

    _END = object()

    def __init__(self) -> None:
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def put(self, event: Event) -> None:
        if self._closed.is_set():
            logging.debug(f"Event stream closed, dropping {event!r}")
            return
        self._queue.put(event)

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self._queue.put(self._END)

    def get(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Next event, or None once the stream has ended.

        Raises queue.Empty when ``timeout`` passes without an event.
        """
        item = self._queue.get(timeout=timeout)
        if item is self._END:
            # keep the marker for any other consumer
            self._queue.put(self._END)
            return None
        return item  # type: ignore[return-value]

    def __iter__(self) -> Iterator[Event]:
        while True:
            event = self.get()
            if event is None:
                return
            yield event


def describe(event: Event) -> str:
    if isinstance(event, ErrorEvent):
        return f"error: {event.error}"
    if isinstance(event, ChangeEvent):
        return f"Detected change for '{event.path}'. Starting conversion..."
    if isinstance(event, DoneEvent):
        return f"Successfully converted '{event.upload_name}'."
    raise TypeError(f"Unknown event: {event!r}")


def report_events(stream: EventStream) -> int:
    """Log every event until the stream ends; return how many were handled."""
    count = 0
    for event in stream:
        if isinstance(event, ErrorEvent):
            logging.error(describe(event))
        else:
            logging.info(describe(event))
        count += 1
    return count
