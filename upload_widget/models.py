"""
Module containing data models for the upload widget.
"""
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

MEGABYTE = 1024 * 1024


class FileTaskStatus(str, Enum):
    """Lifecycle states of a single file."""
    QUEUED = "QUEUED"
    UPLOADING = "UPLOADING"
    UPLOADED = "UPLOADED"
    ERROR = "ERROR"
    DELETING = "DELETING"


class SessionStatus(str, Enum):
    """Overall status of an upload session."""
    READY = "READY"
    UPLOADING = "UPLOADING"
    UPLOADED = "UPLOADED"
    ERROR = "ERROR"


class RejectionCode(str, Enum):
    """Reasons a drop zone refuses a file."""
    FILE_TOO_LARGE = "file-too-large"
    FILE_INVALID_TYPE = "file-invalid-type"
    FILE_TOO_SMALL = "file-too-small"
    TOO_MANY_FILES = "too-many-files"


@dataclass(frozen=True)
class FileDescriptor:
    """A file offered to the widget by a drop or browse action."""
    name: str
    size: int
    mime_type: str = ""
    path: Optional[Path] = None

    def __post_init__(self):
        """Validate the descriptor."""
        if not self.name:
            raise ValueError("name cannot be empty")
        if self.size < 0:
            raise ValueError(f"size cannot be negative: {self.size}")

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "FileDescriptor":
        """Build a descriptor for a file on disk.

        Args:
            path: Path to an existing file

        Returns:
            FileDescriptor with size and guessed mime type
        """
        path = Path(path)
        if not path.is_file():
            raise ValueError(f"{path} is not a file")
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            size=path.stat().st_size,
            mime_type=mime_type or "",
            path=path
        )


@dataclass(frozen=True)
class RejectedFile:
    """A file refused by drop validation, with every reason it was refused."""
    file: FileDescriptor
    codes: Tuple[str, ...]

    def __post_init__(self):
        if not self.codes:
            raise ValueError("a rejected file needs at least one code")

    @property
    def code(self) -> str:
        """The first rejection code, used for the displayed message."""
        code = self.codes[0]
        return code.value if isinstance(code, RejectionCode) else str(code)


@dataclass(frozen=True)
class UploadFile:
    """A single file handed to an upload client."""
    file_id: str
    file: FileDescriptor


@dataclass(frozen=True)
class ProgressEvent:
    """Bytes transferred so far for one upload request."""
    loaded: int
    total: int

    @property
    def percent(self) -> int:
        """Progress as an integer percentage, rounded half up."""
        if self.total <= 0:
            return 100
        value = int(self.loaded * 100 / self.total + 0.5)
        return max(0, min(100, value))


@dataclass(frozen=True)
class UploaderConfig:
    """Widget configuration supplied by the hosting app. May change at runtime."""
    max_upload_size_mb: float = 200
    multiple_files: bool = False
    accepted_types: Tuple[str, ...] = ()
    disabled: bool = False

    def __post_init__(self):
        if self.max_upload_size_mb < 0:
            raise ValueError(f"max_upload_size_mb cannot be negative: {self.max_upload_size_mb}")
        # Lists are accepted for convenience; store an immutable tuple.
        object.__setattr__(self, "accepted_types", tuple(self.accepted_types))

    @property
    def max_size_bytes(self) -> int:
        return int(self.max_upload_size_mb * MEGABYTE)

    @property
    def accepted_extensions(self) -> Tuple[str, ...]:
        """Accepted extensions, lowercased and without a leading dot."""
        return tuple(t.lower().lstrip(".") for t in self.accepted_types if t)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UploaderConfig":
        """Build a config from the host app's camelCase mapping."""
        defaults = cls()
        return cls(
            max_upload_size_mb=data.get("maxUploadSizeMb", defaults.max_upload_size_mb),
            multiple_files=bool(data.get("multipleFiles", defaults.multiple_files)),
            accepted_types=tuple(data.get("acceptedTypes", defaults.accepted_types)),
            disabled=bool(data.get("disabled", defaults.disabled))
        )


@dataclass(frozen=True)
class SessionPolicy:
    """Behaviours the hosting app may choose between.

    Attributes:
        fail_task_on_transfer_error: Move a task to ERROR when its upload fails.
            When False only the session-level message is set.
        cancel_on_reset: Cancel outstanding uploads on reset instead of
            abandoning them.
    """
    fail_task_on_transfer_error: bool = False
    cancel_on_reset: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionPolicy":
        defaults = cls()
        return cls(
            fail_task_on_transfer_error=bool(
                data.get("failTaskOnTransferError", defaults.fail_task_on_transfer_error)),
            cancel_on_reset=bool(data.get("cancelOnReset", defaults.cancel_on_reset))
        )


@dataclass(frozen=True)
class TaskSnapshot:
    """Read-only view of one file task."""
    id: str
    name: str
    size: int
    status: FileTaskStatus
    progress: Optional[int] = None
    error_message: Optional[str] = None


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of a whole session, emitted after every change."""
    widget_id: str
    status: SessionStatus
    error_message: Optional[str] = None
    tasks: Tuple[TaskSnapshot, ...] = field(default_factory=tuple)

    def get(self, file_id: str) -> Optional[TaskSnapshot]:
        for task in self.tasks:
            if task.id == file_id:
                return task
        return None

    def with_status(self, *statuses: FileTaskStatus) -> Tuple[TaskSnapshot, ...]:
        return tuple(t for t in self.tasks if t.status in statuses)

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(t.id for t in self.tasks)
