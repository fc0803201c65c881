"""
Exceptions raised and handled by the upload widget.
"""
from typing import Optional, Sequence

from .models import FileDescriptor


class UploadWidgetError(Exception):
    """Base class for upload widget errors."""


class ValidationError(UploadWidgetError):
    """A file was rejected before any network call."""

    def __init__(self, code: str, file: FileDescriptor, message: Optional[str] = None,
                 codes: Sequence[str] = ()):
        self.code = code
        self.codes = tuple(codes) or (code,)
        self.file = file
        super().__init__(message or f"{file.name} rejected: {code}")


class TransferError(UploadWidgetError):
    """An upload or delete request failed."""


class CancellationError(TransferError):
    """An upload request was cancelled by its owner."""


class NotFoundError(UploadWidgetError):
    """A delete referred to a file that is not in the session."""

    def __init__(self, file_id: str):
        self.file_id = file_id
        super().__init__("File not found. Please try again.")


class InvalidTransitionError(UploadWidgetError):
    """A file task was asked to move to a state it cannot reach."""

    def __init__(self, file_id: str, current: str, target: str):
        self.file_id = file_id
        self.current = current
        self.target = target
        super().__init__(f"File {file_id} cannot move from {current} to {target}")
