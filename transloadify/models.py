"""Data models for assemblies and the files they carry."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


ASSEMBLY_UPLOADING = "ASSEMBLY_UPLOADING"
ASSEMBLY_EXECUTING = "ASSEMBLY_EXECUTING"
ASSEMBLY_REPLAYING = "ASSEMBLY_REPLAYING"
ASSEMBLY_COMPLETED = "ASSEMBLY_COMPLETED"
ASSEMBLY_CANCELED = "ASSEMBLY_CANCELED"
REQUEST_ABORTED = "REQUEST_ABORTED"

IN_PROGRESS_STATES = frozenset(
    {ASSEMBLY_UPLOADING, ASSEMBLY_EXECUTING, ASSEMBLY_REPLAYING}
)


@dataclass(frozen=True)
class FileInfo:
    """
    An uploaded file or a step result as reported by the service.

    Attributes:
        name: Full file name, e.g. ``clip.mp4``
        basename: File name without extension
        ext: Extension without the leading dot
        size: Size in bytes
        mime: MIME type
        url: Download URL (the https one when the service offers it)
        step: Step that produced this file (``":original"`` for uploads)
    """
    name: str
    basename: str = ""
    ext: str = ""
    size: int = 0
    mime: str = ""
    url: str = ""
    step: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "FileInfo":
        """Create from an API response entry."""
        return cls(
            name=data.get("name") or "",
            basename=data.get("basename") or "",
            ext=data.get("ext") or "",
            size=int(data.get("size") or 0),
            mime=data.get("mime") or "",
            url=data.get("ssl_url") or data.get("url") or "",
            step=data.get("original_step") or data.get("field") or "",
        )


@dataclass(frozen=True)
class AssemblyInfo:
    """
    Status of one assembly.

    ``ok`` carries the service state code (``ASSEMBLY_COMPLETED`` etc.),
    ``error`` is set instead when the assembly failed.
    """
    assembly_id: str
    assembly_url: str
    ok: Optional[str] = None
    error: Optional[str] = None
    message: str = ""
    uploads: List[FileInfo] = field(default_factory=list)
    results: Dict[str, List[FileInfo]] = field(default_factory=dict)

    @property
    def is_completed(self) -> bool:
        return self.ok == ASSEMBLY_COMPLETED

    @property
    def is_in_progress(self) -> bool:
        return self.error is None and self.ok in IN_PROGRESS_STATES

    @property
    def is_canceled(self) -> bool:
        return self.ok in (ASSEMBLY_CANCELED, REQUEST_ABORTED)

    @classmethod
    def from_dict(cls, data: dict) -> "AssemblyInfo":
        """Create from an assembly status response."""
        results = {
            step: [FileInfo.from_dict(item) for item in (items or [])]
            for step, items in (data.get("results") or {}).items()
        }
        return cls(
            assembly_id=data.get("assembly_id") or "",
            assembly_url=data.get("assembly_ssl_url") or data.get("assembly_url") or "",
            ok=data.get("ok"),
            error=data.get("error"),
            message=data.get("message") or data.get("reason") or "",
            uploads=[FileInfo.from_dict(item) for item in (data.get("uploads") or [])],
            results=results,
        )
