import json
import logging
from pathlib import Path

from .exceptions import TemplateFileError


def load_steps(path: Path) -> dict:
    """Read the step list from a local template file.

    The file holds either the steps object itself or a full template
    with a top-level ``"steps"`` key:

        {"steps": {"resize": {"robot": "/image/resize", "width": 100}}}

    Every step must be a JSON object.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise TemplateFileError(f"Unable to read template file {path}: {e}")

    try:
        content = json.loads(raw)
    except json.JSONDecodeError as e:
        raise TemplateFileError(f"Template file {path} is not valid JSON: {e}")

    if not isinstance(content, dict):
        raise TemplateFileError(f"Template file {path} must contain a JSON object")

    steps = content.get("steps", content)
    if not isinstance(steps, dict) or not steps:
        raise TemplateFileError(f"Template file {path} does not define any steps")

    for name, step in steps.items():
        if not isinstance(step, dict):
            raise TemplateFileError(
                f"Step '{name}' in template file {path} must be a JSON object"
            )

    logging.debug(f"Read {len(steps)} steps from {path}")
    return steps
