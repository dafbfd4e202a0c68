import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler

from .utils import is_within, should_ignore


class UploadHandler(FileSystemEventHandler):
    """Feeds new and changed files of the input directory to a worker pool."""

    def __init__(
        self,
        input_dir: Path,
        output_dir: Path,
        executor: ThreadPoolExecutor,
        process: Callable[[Path], None],
        exclude: Optional[Set[Path]] = None,
    ) -> None:
        super().__init__()
        self.input_dir = input_dir
        self.output_dir = output_dir
        self.executor = executor
        self.process = process
        self.exclude = {p.resolve() for p in (exclude or set())}
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._in_flight: Set[Path] = set()

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def should_process(self, path: Path) -> bool:
        if path.is_dir() or should_ignore(path):
            return False
        if path.resolve() in self.exclude:
            return False
        # Only skip the output dir when it differs from the input dir
        if self.output_dir != self.input_dir and is_within(path, self.output_dir):
            return False
        return True

    def submit_path(self, path: Path) -> bool:
        """Queue ``path`` for processing; False when skipped or already queued."""
        if not self.should_process(path):
            return False

        # Deduplicate submissions for the same path while it's in-flight
        with self._lock:
            if path in self._in_flight:
                logging.debug(f"Already processing, skipping duplicate event: {path}")
                return False
            self._in_flight.add(path)

        def _task():
            try:
                self.process(path)
            except Exception as e:
                logging.exception(f"Failed to process {path}: {e}")
            finally:
                with self._lock:
                    self._in_flight.discard(path)
                    self._idle.notify_all()

        try:
            self.executor.submit(_task)
        except RuntimeError:
            # executor already shut down
            with self._lock:
                self._in_flight.discard(path)
                self._idle.notify_all()
            raise
        return True

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is in flight; False if ``timeout`` passed first."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._in_flight, timeout=timeout)

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self.submit_path(Path(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self.submit_path(Path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        # Prefer destination path on moved events
        dest = getattr(event, "dest_path", None) or event.src_path
        dest_path = Path(dest)
        if is_within(dest_path, self.input_dir):
            self.submit_path(dest_path)


class TemplateFileHandler(FileSystemEventHandler):
    """Calls ``on_change`` whenever the template file is written or replaced."""

    def __init__(self, template_file: Path, on_change: Callable[[], None]) -> None:
        super().__init__()
        self.template_file = template_file.resolve()
        self.on_change = on_change

    def _matches(self, raw_path) -> bool:
        if not raw_path:
            return False
        return Path(raw_path).resolve() == self.template_file

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self.on_change()

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self.on_change()

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(getattr(event, "dest_path", None)):
            self.on_change()
