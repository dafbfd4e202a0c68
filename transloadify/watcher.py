"""Directory watcher that turns every new or changed file into an assembly.

Each file goes through one cycle on the worker pool:

    detected -> ChangeEvent -> upload + wait -> results downloaded
             -> original moved or deleted -> DoneEvent

Any failure along the way is published as an ErrorEvent instead and the
watcher carries on. Without ``watch`` the input directory is processed
once and the event stream is closed when the last file is finished.
"""

import shutil
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional

from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from .config import WatchOptions
from .events import ChangeEvent, DoneEvent, ErrorEvent, EventStream
from .exceptions import TemplateFileError, TransloadifyError
from .handlers import TemplateFileHandler, UploadHandler
from .models import AssemblyInfo
from .steps import load_steps
from .utils import original_filename, result_filename, wait_for_file_ready


class Watcher:
    def __init__(
        self,
        client,
        options: WatchOptions,
        events: Optional[EventStream] = None,
    ) -> None:
        self.client = client
        self.options = options
        self.events = events or EventStream()
        self._steps = options.steps
        self._steps_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._handler: Optional[UploadHandler] = None
        self._observer = None
        self._finisher: Optional[threading.Thread] = None
        self._stopping = threading.Event()

    @property
    def steps(self) -> Optional[dict]:
        with self._steps_lock:
            return self._steps

    @property
    def running(self) -> bool:
        return self._executor is not None and not self.events.closed

    # ---- lifecycle ----

    def start(self) -> "Watcher":
        if self._executor is not None:
            raise RuntimeError("Watcher already started")

        opts = self.options
        opts.output.mkdir(parents=True, exist_ok=True)

        exclude = {opts.template_file} if opts.template_file else set()
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, opts.workers), thread_name_prefix="transloadify-worker"
        )
        self._handler = UploadHandler(
            opts.input, opts.output, self._executor, self._process, exclude
        )

        if opts.watch:
            self._start_observer()

        if not opts.dont_process_dir:
            for path in self.scan():
                try:
                    self._handler.submit_path(path)
                except Exception as e:
                    logging.exception(f"Initial scan failed for {path}: {e}")
                    self.events.put(ErrorEvent(e, path))

        if not opts.watch:
            self._finisher = threading.Thread(
                target=self._finish_when_idle, name="transloadify-finisher", daemon=True
            )
            self._finisher.start()
        return self

    def stop(self) -> None:
        # in-flight assemblies stop polling and report an error
        self._stopping.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        self.events.close()

    def _start_observer(self) -> None:
        opts = self.options
        observer = PollingObserver() if opts.use_polling else Observer()
        observer.schedule(self._handler, str(opts.input), recursive=False)
        if opts.template_file and not opts.uses_template_id:
            observer.schedule(
                TemplateFileHandler(opts.template_file, self.reload_steps),
                str(opts.template_file.parent),
                recursive=False,
            )
        observer.start()
        self._observer = observer

    def _finish_when_idle(self) -> None:
        self._handler.wait_idle()
        self._executor.shutdown(wait=True)
        self.events.close()

    # ---- work ----

    def scan(self) -> List[Path]:
        """Files currently in the input directory, oldest name first."""
        return sorted(p for p in self.options.input.iterdir() if p.is_file())

    def reload_steps(self) -> None:
        path = self.options.template_file
        try:
            steps = load_steps(path)
        except TemplateFileError as e:
            self.events.put(ErrorEvent(e, path))
            return
        with self._steps_lock:
            self._steps = steps
        logging.info(f"Reloaded template file '{path}' (read {len(steps)} steps).")

    def _process(self, path: Path) -> None:
        opts = self.options
        if not wait_for_file_ready(path, retries=opts.retries, sleep_s=opts.ready_interval):
            if path.exists():
                logging.warning(f"File did not become ready: {path}")
                self.events.put(ChangeEvent(path))
                self.events.put(
                    ErrorEvent(TransloadifyError(f"File did not become ready: {path}"), path)
                )
            else:
                logging.debug(f"File vanished before processing: {path}")
            return

        self.events.put(ChangeEvent(path))
        try:
            if opts.uses_template_id:
                assembly = self.client.create_assembly(path, template_id=opts.template_id)
            else:
                assembly = self.client.create_assembly(path, steps=self.steps)
            assembly = self.client.wait_for_assembly(assembly, stop=self._stopping)
            self._store_results(assembly)
            self._handle_original(path)
        except Exception as e:
            self.events.put(ErrorEvent(e, path))
            return
        self.events.put(DoneEvent(path, assembly))

    def _store_results(self, assembly: AssemblyInfo) -> List[Path]:
        stored = []
        for step, results in assembly.results.items():
            for index, result in enumerate(results):
                dest = self.options.output / result_filename(step, index, result.name)
                self.client.download(result.url, dest)
                logging.debug(f"Wrote result -> {dest}")
                stored.append(dest)
        return stored

    def _handle_original(self, path: Path) -> None:
        if self.options.preserve:
            dest = self.options.output / original_filename(path)
            shutil.move(str(path), str(dest))
            logging.debug(f"Moved original -> {dest}")
        else:
            path.unlink()
