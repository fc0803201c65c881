from .client import S3UploadClient, UploadClient
from .models import (
    FileDescriptor,
    FileTaskStatus,
    RejectedFile,
    SessionPolicy,
    SessionSnapshot,
    SessionStatus,
    UploaderConfig,
)
from .session import UploadSessionManager
from .sizes import format_size
from .tracker import SessionTracker
from .validator import DropValidator

__version__ = "0.1.0"

__all__ = [
    "UploadSessionManager",
    "UploadClient",
    "S3UploadClient",
    "FileDescriptor",
    "FileTaskStatus",
    "RejectedFile",
    "SessionPolicy",
    "SessionSnapshot",
    "SessionStatus",
    "UploaderConfig",
    "SessionTracker",
    "DropValidator",
    "format_size",
]
