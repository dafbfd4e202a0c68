import time
import fnmatch
from pathlib import Path


# Names that are partial downloads, editor swap files and the like
IGNORE_PATTERNS = (".*", "*.tmp", "*.part", "*.crdownload", "*.swp", "*~")

ORIGINAL_PREFIX = "-original_0_"


def is_within(child: Path, parent: Path) -> bool:
    try:
        child.resolve().relative_to(parent.resolve())
        return True
    except Exception:
        return False


def should_ignore(path: Path) -> bool:
    return any(fnmatch.fnmatch(path.name, pattern) for pattern in IGNORE_PATTERNS)


def result_filename(step: str, index: int, name: str) -> str:
    """Name under which a step result is stored in the output directory."""
    return f"{step}_{index}_{Path(name).name}"


def original_filename(path: Path) -> str:
    """Name under which a preserved original is stored in the output directory."""
    return f"{ORIGINAL_PREFIX}{path.name}"


def wait_for_file_ready(path: Path, retries: int = 30, sleep_s: float = 0.5) -> bool:
    """Wait until a file is fully written and ready to read.

    Ready when it exists and its size is stable across two checks.
    Returns False when the file vanished or kept changing.
    """
    last_size = -1
    stable_count = 0

    for _ in range(max(1, retries)):
        if not path.exists():
            time.sleep(sleep_s)
            continue

        try:
            size = path.stat().st_size
        except FileNotFoundError:
            size = -1
        if size >= 0 and size == last_size:
            stable_count += 1
            if stable_count >= 2:  # two consecutive stable checks
                return True
        else:
            stable_count = 0

        last_size = size
        time.sleep(sleep_s)

    return False
