import sys
import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer

from .client import TransloaditClient
from .config import (
    DEFAULT_ENDPOINT,
    ClientConfig,
    WatchOptions,
    default_workers,
    resolve_template_source,
    validate_settings,
)
from .events import report_events
from .exceptions import ConfigError
from .steps import load_steps
from .upstart import daemon_vars, render_upstart


app = typer.Typer(add_completion=False)


def fatal(message: str) -> NoReturn:
    logging.critical(message)
    raise typer.Exit(code=1)


@app.command()
def main(
    key: Optional[str] = typer.Option(
        None, "--key", help="Auth key", envvar="TRANSLOADIT_KEY", show_envvar=True
    ),
    secret: Optional[str] = typer.Option(
        None, "--secret", help="Auth secret", envvar="TRANSLOADIT_SECRET", show_envvar=True
    ),
    input_dir: str = typer.Option(".", "--input", help="Input directory"),
    output_dir: Optional[str] = typer.Option(None, "--output", help="Output directory"),
    template: Optional[str] = typer.Option(
        None, "--template", help="Template's id to create assemblies with"
    ),
    template_file: Optional[str] = typer.Option(
        None, "--template-file", help="Path to local file containing template JSON"
    ),
    watch: bool = typer.Option(
        False, "--watch/--no-watch", help="Watch input directory for changes"
    ),
    preserve: bool = typer.Option(
        True,
        "--preserve/--no-preserve",
        help="Move input file as original into output directory",
    ),
    upstart: bool = typer.Option(
        False, "--upstart", help="Show an Upstart script for the specified config and exit"
    ),
    endpoint: str = typer.Option(
        DEFAULT_ENDPOINT, "--endpoint", help="Transloadit API endpoint", envvar="TRANSLOADIT_ENDPOINT"
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", help="Max number of files to upload concurrently"
    ),
    use_polling: Optional[bool] = typer.Option(
        None, "--poll/--no-poll", help="Force polling observer (auto if under /mnt)"
    ),
    loglevel: str = typer.Option(
        "INFO", "--loglevel", help="Logging level: DEBUG, INFO, WARNING, ERROR"
    ),
):
    """Convert every file in a directory with Transloadit.

    - Each file is uploaded as an assembly, using a template id or the steps of a local template file.
    - Results are written to the output directory; the original is moved there too unless --no-preserve.
    - With --watch the input directory keeps being watched for new or changed files.
    """
    # Logging
    logging.basicConfig(
        level=getattr(logging, loglevel.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        validate_settings(key, secret, input_dir, output_dir, template, template_file)
        template, template_path = resolve_template_source(template, template_file)
        steps = load_steps(template_path) if template_path else None

        input_path = Path(input_dir).expanduser().resolve()
        output_path = Path(output_dir).expanduser().resolve()
        if not input_path.is_dir():
            raise ConfigError(f"Input directory '{input_path}' does not exist")
        if input_path == output_path:
            raise ConfigError("Input and output directory must differ")

        config = ClientConfig(auth_key=key, auth_secret=secret, endpoint=endpoint)
    except ConfigError as e:
        fatal(str(e))

    # Auto-poll under /mnt to avoid inotify issues
    if use_polling is None:
        use_polling = str(input_path).startswith("/mnt/")

    options = WatchOptions(
        input=input_path,
        output=output_path,
        watch=watch,
        template_id=template,
        template_file=template_path,
        steps=steps,
        preserve=preserve,
        dont_process_dir=upstart,
        workers=workers or default_workers(),
        use_polling=use_polling,
    )

    if upstart:
        typer.echo(render_upstart(daemon_vars(options, config, sys.argv)))
        return

    logging.info(
        f"Converting all files in '{options.input}' and putting the result into '{options.output}'."
    )
    if watch:
        logging.info(f"Watching directory '{options.input}' for changes...")
    if options.template_id:
        logging.info(f"Using template with id '{options.template_id}'.")
    else:
        logging.info(
            f"Using template file '{options.template_file}' (read {len(options.steps)} steps)."
        )

    client = TransloaditClient(config)
    watcher = client.watch(options)
    watcher.start()
    try:
        report_events(watcher.events)
    except KeyboardInterrupt:
        logging.info("Stopping watcher...")
    finally:
        watcher.stop()
        client.close()


if __name__ == "__main__":
    app()
