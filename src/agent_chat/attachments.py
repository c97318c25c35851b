"""Attachment validation and upload-progress state.

A candidate file is validated once when it is selected; the bytes are read
only when the request payload is built.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
import mimetypes
from pathlib import Path

from .exceptions import AttachmentValidationError
from .models import FileInfo

LOGGER = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB

ALLOWED_FILE_TYPES: frozenset[str] = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain",
        "text/csv",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/json",
        "text/calendar",
        "image/png",
        "image/jpeg",
        "image/jpg",
    }
)

ACCEPTED_EXTENSIONS: tuple[str, ...] = (
    ".pdf", ".doc", ".docx", ".txt", ".csv", ".xlsx",
    ".json", ".ics", ".png", ".jpg", ".jpeg",
)  # fmt: skip

# Platform mime tables disagree on these; pin them.
_EXTENSION_TYPES: dict[str, str] = {
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ics": "text/calendar",
    ".json": "application/json",
    ".csv": "text/csv",
}

SIZE_ERROR = "File size must be less than 10MB"
TYPE_ERROR = (
    "Please select a valid file type (PDF, DOC, DOCX, TXT, CSV, XLSX, JSON, ICS, PNG, JPG)"
)


@dataclass(frozen=True)
class Attachment:
    """A file selected for upload.

    Either ``path`` or ``data`` supplies the content.
    """

    name: str
    size: int
    type: str
    path: Path | None = None
    data: bytes | None = None

    @classmethod
    def from_path(cls, path: str | Path) -> Attachment:
        """Describe a file on disk; raises ``AttachmentValidationError`` if missing."""
        resolved = Path(path).expanduser()
        try:
            resolved = resolved.resolve()
            if not resolved.is_file():
                raise AttachmentValidationError(f"Not a file: {path}")
            size = resolved.stat().st_size
        except OSError as exc:
            raise AttachmentValidationError(f"Unable to read {path}: {exc}") from exc
        return cls(
            name=resolved.name,
            size=size,
            type=guess_media_type(resolved.name),
            path=resolved,
        )

    @classmethod
    def from_bytes(cls, name: str, data: bytes, media_type: str | None = None) -> Attachment:
        return cls(
            name=name,
            size=len(data),
            type=media_type if media_type is not None else guess_media_type(name),
            data=data,
        )

    def read_bytes(self) -> bytes:
        """Return the whole file content (raises ``OSError`` on read failure)."""
        if self.data is not None:
            return self.data
        if self.path is None:
            raise OSError(f"Attachment {self.name!r} has no content source.")
        return self.path.read_bytes()

    @property
    def info(self) -> FileInfo:
        return FileInfo(name=self.name, size=self.size, type=self.type)


def guess_media_type(filename: str) -> str:
    suffix = Path(filename).suffix.lower()
    if suffix in _EXTENSION_TYPES:
        return _EXTENSION_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or ""


def validate_file(file: Attachment | FileInfo, max_size: int = MAX_FILE_SIZE) -> str | None:
    """Return a user-facing error for ``file`` or ``None`` when acceptable."""
    if file.size > max_size:
        return SIZE_ERROR
    if file.type not in ALLOWED_FILE_TYPES:
        return TYPE_ERROR
    return None


@dataclass(frozen=True)
class UploadState:
    progress: int = 0
    error: str | None = None

    @property
    def is_uploading(self) -> bool:
        return 0 < self.progress < 100


class UploadController:
    """Track the selected file, validation errors, and upload progress."""

    def __init__(self, max_file_size: int = MAX_FILE_SIZE) -> None:
        self.max_file_size = max_file_size
        self.selected_file: Attachment | None = None
        self.state = UploadState()
        self._listeners: list[Callable[[UploadState], None]] = []

    def on_change(self, callback: Callable[[UploadState], None]) -> None:
        """Register a callback invoked with every new ``UploadState``."""
        self._listeners.append(callback)

    def _set_state(self, state: UploadState) -> None:
        self.state = state
        for listener in self._listeners:
            listener(state)

    def select_file(self, file: Attachment) -> bool:
        """Validate and keep ``file``; on rejection record the error and return False."""
        LOGGER.info(
            "attachment.selected",
            extra={
                "event": "attachment.selected",
                "file_name": file.name,
                "type": file.type,
                "size_mb": round(file.size / 1024 / 1024, 2),
            },
        )
        error = validate_file(file, self.max_file_size)
        if error:
            LOGGER.warning(
                "attachment.rejected",
                extra={"event": "attachment.rejected", "file_name": file.name, "reason": error},
            )
            self._set_state(
                UploadState(progress=self.state.progress, error=error)
            )
            return False

        self.selected_file = file
        self._set_state(UploadState())
        return True

    def select_path(self, path: str | Path) -> bool:
        try:
            attachment = Attachment.from_path(path)
        except AttachmentValidationError as exc:
            self.set_error(str(exc))
            return False
        return self.select_file(attachment)

    def remove_file(self) -> None:
        LOGGER.info(
            "attachment.removed",
            extra={
                "event": "attachment.removed",
                "file_name": self.selected_file.name if self.selected_file else None,
            },
        )
        self.selected_file = None
        self._set_state(UploadState())

    def set_progress(self, progress: int) -> None:
        progress = max(0, min(100, int(progress)))
        self._set_state(
            UploadState(progress=progress, error=self.state.error)
        )

    def set_error(self, error: str | None) -> None:
        self._set_state(
            UploadState(progress=self.state.progress, error=error)
        )

    def clear_error(self) -> None:
        self._set_state(
            UploadState(progress=self.state.progress, error=None)
        )
