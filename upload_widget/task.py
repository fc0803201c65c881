"""
Module implementing the lifecycle of a single file in an upload session.
"""
import logging
import time
from typing import Dict, FrozenSet, Optional

from .exceptions import InvalidTransitionError
from .models import FileDescriptor, FileTaskStatus, TaskSnapshot
from .transfer import TransferHandle

logger = logging.getLogger(__name__)

S = FileTaskStatus

TRANSITIONS: Dict[FileTaskStatus, FrozenSet[FileTaskStatus]] = {
    S.QUEUED: frozenset({S.UPLOADING, S.DELETING}),
    S.UPLOADING: frozenset({S.UPLOADING, S.UPLOADED, S.ERROR, S.DELETING}),
    S.UPLOADED: frozenset({S.DELETING}),
    S.ERROR: frozenset({S.DELETING}),
    S.DELETING: frozenset(),
}

ACTIVE_STATUSES = frozenset({S.QUEUED, S.UPLOADING, S.UPLOADED})


def make_task_id(sequence: int, timestamp: Optional[float] = None) -> str:
    """Build a task id from a session sequence number and the current time."""
    millis = int((time.time() if timestamp is None else timestamp) * 1000)
    return f"{sequence}-{millis}"


class FileTask:
    """State machine for one file, from drop to removal."""

    def __init__(self, file_id: str, file: FileDescriptor,
                 status: FileTaskStatus = FileTaskStatus.QUEUED,
                 error_message: Optional[str] = None):
        if status not in (S.QUEUED, S.ERROR):
            raise ValueError(f"A file task starts QUEUED or ERROR, not {status.value}")
        self.id = file_id
        self.file = file
        self.status = status
        self.progress: Optional[int] = None
        self.error_message = error_message if status is S.ERROR else None
        self.handle: Optional[TransferHandle] = None
        # Set once an upload request was issued for this file.
        self.transmitted = False

    @classmethod
    def rejected(cls, file_id: str, file: FileDescriptor, error_message: str) -> "FileTask":
        return cls(file_id, file, status=S.ERROR, error_message=error_message)

    @property
    def name(self) -> str:
        return self.file.name

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def upload_outstanding(self) -> bool:
        return self.handle is not None and not self.handle.done()

    def _move(self, target: FileTaskStatus) -> None:
        if target not in TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.id, self.status.value, target.value)
        logger.debug(f"File {self.id} ({self.name}): {self.status.value} -> {target.value}")
        self.status = target
        if target is not S.UPLOADING:
            self.progress = None

    def start_upload(self, handle: TransferHandle) -> None:
        """QUEUED -> UPLOADING, taking ownership of the request handle."""
        self._move(S.UPLOADING)
        self.handle = handle
        self.progress = 0
        self.transmitted = True

    def update_progress(self, percent: int) -> bool:
        """Record upload progress.

        Returns:
            False when the task is no longer uploading and the event was ignored
        """
        if self.status is not S.UPLOADING:
            return False
        self.progress = max(0, min(100, int(percent)))
        return True

    def complete(self) -> None:
        """UPLOADING -> UPLOADED."""
        self._move(S.UPLOADED)
        self.handle = None

    def fail(self, message: str) -> None:
        """UPLOADING -> ERROR."""
        self._move(S.ERROR)
        self.handle = None
        self.error_message = message

    def begin_delete(self) -> None:
        """Move to DELETING, cancelling any outstanding upload first."""
        if self.upload_outstanding:
            self.handle.cancel()
        self._move(S.DELETING)
        self.handle = None

    def cancel_upload(self) -> bool:
        """Cancel the outstanding upload without changing state."""
        if not self.upload_outstanding:
            return False
        return self.handle.cancel()

    def snapshot(self) -> TaskSnapshot:
        return TaskSnapshot(
            id=self.id,
            name=self.name,
            size=self.file.size,
            status=self.status,
            progress=self.progress if self.status is S.UPLOADING else None,
            error_message=self.error_message if self.status is S.ERROR else None
        )

    def __repr__(self) -> str:
        return f"FileTask(id={self.id!r}, name={self.name!r}, status={self.status.value})"
