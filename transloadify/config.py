"""Configuration for the Transloadit client and the directory watcher."""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlparse

from .exceptions import ConfigError


DEFAULT_ENDPOINT = "https://api2.transloadit.com"
CREDENTIALS_URL = "https://transloadit.com/accounts/credentials"


@dataclass(frozen=True)
class ClientConfig:
    """
    Settings for talking to the Transloadit API.

    Attributes:
        auth_key: Account auth key
        auth_secret: Account auth secret, used to sign requests
        endpoint: API base URL
        timeout: Per-request timeout in seconds
        poll_interval: Seconds between assembly status polls
        expires_in: Seconds a signed request stays valid
        assembly_timeout: Max seconds to wait for an assembly to finish
    """
    auth_key: str
    auth_secret: str
    endpoint: str = DEFAULT_ENDPOINT
    timeout: float = 60.0
    poll_interval: float = 1.0
    expires_in: int = 3600
    assembly_timeout: float = 3600.0

    def __post_init__(self):
        if not self.auth_key:
            raise ConfigError("Client requires an auth key")
        if not self.auth_secret:
            raise ConfigError("Client requires an auth secret")
        parsed = urlparse(self.endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigError(f"Invalid endpoint URL: {self.endpoint!r}")


@dataclass(frozen=True)
class WatchOptions:
    """
    What to watch and how to process it.

    Attributes:
        input: Directory whose files are converted
        output: Directory receiving results (and originals in preserve mode)
        watch: Keep watching for changes instead of a single pass
        template_id: Server-side template to create assemblies with
        template_file: Local JSON file holding the steps
        steps: Step list parsed from ``template_file``
        preserve: Move the original into ``output`` instead of deleting it
        dont_process_dir: Skip the initial pass over ``input``
        workers: Max number of files uploaded concurrently
        retries: Max readiness checks before a file is given up on
        ready_interval: Seconds between readiness checks
        use_polling: Use the polling observer instead of native events
    """
    input: Path
    output: Path
    watch: bool = False
    template_id: Optional[str] = None
    template_file: Optional[Path] = None
    steps: Optional[dict] = None
    preserve: bool = True
    dont_process_dir: bool = False
    workers: int = 1
    retries: int = 30
    ready_interval: float = 0.5
    use_polling: bool = False

    @property
    def uses_template_id(self) -> bool:
        return bool(self.template_id)


def default_workers() -> int:
    cpu = os.cpu_count() or 2
    return max(1, cpu // 2)


def validate_settings(
    auth_key: Optional[str],
    auth_secret: Optional[str],
    input_dir: Optional[str],
    output_dir: Optional[str],
    template_id: Optional[str],
    template_file: Optional[str],
) -> None:
    """Raise ConfigError for the first missing required setting."""
    if not auth_key:
        raise ConfigError(f"No TRANSLOADIT_KEY defined. Visit {CREDENTIALS_URL}")
    if not auth_secret:
        raise ConfigError(f"No TRANSLOADIT_SECRET defined. Visit {CREDENTIALS_URL}")
    if not input_dir:
        raise ConfigError("No input directory defined")
    if not output_dir:
        raise ConfigError("No output directory defined")
    if not template_id and not template_file:
        raise ConfigError("No template id or template file defined")


def resolve_template_source(
    template_id: Optional[str], template_file: Optional[str]
) -> Tuple[Optional[str], Optional[Path]]:
    """Pick the template source to use; a template id wins over a file."""
    if template_id and template_file:
        logging.warning(
            f"Both a template id and a template file were given; using template '{template_id}' and ignoring '{template_file}'"
        )
        return template_id, None
    if template_id:
        return template_id, None
    return None, Path(template_file).expanduser().resolve() if template_file else None
