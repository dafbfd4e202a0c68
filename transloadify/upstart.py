"""Upstart job definition so the watcher can run as a daemon.

Only renders text; installing it (e.g. into /etc/init/transloadify.conf)
is left to the user.
"""

import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

from .config import DEFAULT_ENDPOINT, ClientConfig, WatchOptions, default_workers


UNIXNAME = "transloadify"

UPSTART_TEMPLATE = """\
description {unixname}
author      "transloadit.com"

start on (local-filesystems and net-device-up IFACE!=lo)
stop on shutdown
respawn
respawn limit 20 5

# Max open files are @ 1024 by default. Bit few.
limit nofile 32768 32768

script
  set -e
  mkfifo /tmp/{unixname}-log-fifo
  ( logger -t {unixname} </tmp/{unixname}-log-fifo & )
  exec >/tmp/{unixname}-log-fifo
  rm /tmp/{unixname}-log-fifo
  exec bash -c "exec sudo -HEu{username} env \\
  \tPYTHONPATH={module_path} \\
  \tPATH={path} \\
  \tTRANSLOADIT_KEY={key} \\
  \tTRANSLOADIT_SECRET={secret} \\
  {cmd} 2>&1"
end script"""


@dataclass(frozen=True)
class DaemonVars:
    unixname: str
    username: str
    cmd: str
    path: str
    module_path: str
    key: str
    secret: str


def _quoted(flag: str, value) -> str:
    # Quotes are escaped since the command ends up inside bash -c "..."
    return f' {flag} \\"{value}\\"'


def program_name(argv: Sequence[str], executable: Optional[str] = None) -> str:
    """How this program was started, as something a daemon can re-run."""
    program = argv[0] if argv else UNIXNAME
    if Path(program).name == "__main__.py":
        return f"{executable or sys.executable} -m {UNIXNAME}"
    return program


def build_command(
    options: WatchOptions,
    argv: Sequence[str],
    endpoint: str = DEFAULT_ENDPOINT,
    executable: Optional[str] = None,
) -> str:
    """Rebuild the invocation for ``options``; always in watch mode."""
    cmd = program_name(argv, executable)
    if options.input:
        cmd += _quoted("--input", options.input)
    if options.output:
        cmd += _quoted("--output", options.output)
    if options.template_id:
        cmd += _quoted("--template", options.template_id)
    if options.template_file:
        cmd += _quoted("--template-file", options.template_file)
    if not options.preserve:
        cmd += " --no-preserve"
    # the CLI turns polling on by itself under /mnt
    auto_poll = str(options.input).startswith("/mnt/")
    if options.use_polling and not auto_poll:
        cmd += " --poll"
    elif auto_poll and not options.use_polling:
        cmd += " --no-poll"
    if options.workers != default_workers():
        cmd += f" --workers {options.workers}"
    if endpoint != DEFAULT_ENDPOINT:
        cmd += _quoted("--endpoint", endpoint)
    # Always use watch, otherwise a daemon makes no sense
    cmd += " --watch"
    return cmd


def daemon_vars(
    options: WatchOptions,
    config: ClientConfig,
    argv: Sequence[str],
    environ: Optional[Mapping[str, str]] = None,
) -> DaemonVars:
    env = os.environ if environ is None else environ
    return DaemonVars(
        unixname=UNIXNAME,
        username=env.get("USER", ""),
        cmd=build_command(options, argv, config.endpoint),
        path=env.get("PATH", ""),
        module_path=env.get("PYTHONPATH", ""),
        key=config.auth_key,
        secret=config.auth_secret,
    )


def render_upstart(variables: DaemonVars) -> str:
    return UPSTART_TEMPLATE.format(**asdict(variables))
