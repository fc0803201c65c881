"""
Module for tracking and logging the snapshots emitted by an upload session.
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from .models import FileTaskStatus, SessionSnapshot
from .session import UploadSessionManager
from .sizes import format_size

logger = logging.getLogger(__name__)


class SessionTracker:
    """Keeps the snapshot history of an upload session."""

    def __init__(self, log_dir: Optional[Path] = None, max_history: int = 1000):
        """Initialize the session tracker.

        Args:
            log_dir: Directory to store summary files. If None, keeps history in memory only.
            max_history: Number of snapshots kept in memory
        """
        self.log_dir = log_dir
        if log_dir:
            log_dir.mkdir(parents=True, exist_ok=True)

        self.max_history = max_history
        self.history: List[SessionSnapshot] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def latest(self) -> Optional[SessionSnapshot]:
        return self.history[-1] if self.history else None

    def attach(self, manager: UploadSessionManager) -> None:
        """Start recording snapshots from a session manager."""
        self.detach()
        self.history.append(manager.snapshot())
        self._unsubscribe = manager.subscribe(self.record)

    def detach(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def record(self, snapshot: SessionSnapshot) -> None:
        self.history.append(snapshot)
        if len(self.history) > self.max_history:
            del self.history[:len(self.history) - self.max_history]
        logger.debug(
            f"Widget {snapshot.widget_id}: {snapshot.status.value}, "
            f"{len(snapshot.tasks)} file(s)"
        )

    def status_trail(self, file_id: str) -> List[FileTaskStatus]:
        """Get the distinct statuses a file went through, in order."""
        trail: List[FileTaskStatus] = []
        for snapshot in self.history:
            task = snapshot.get(file_id)
            if task and (not trail or trail[-1] is not task.status):
                trail.append(task.status)
        return trail

    def _get_log_path(self, widget_id: str) -> Optional[Path]:
        """Get the path for the summary file of a widget session.

        Args:
            widget_id: Id of the widget

        Returns:
            Path to the log file, or None if logging to memory
        """
        if not self.log_dir:
            return None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return self.log_dir / f"session_{widget_id}_{timestamp}.json"

    def summary(self) -> dict:
        """Summarize the latest snapshot."""
        snapshot = self.latest
        if snapshot is None:
            return {}

        return {
            "timestamp": datetime.now().isoformat(),
            "widget_id": snapshot.widget_id,
            "status": snapshot.status.value,
            "error_message": snapshot.error_message,
            "total_files": len(snapshot.tasks),
            "uploaded": len(snapshot.with_status(FileTaskStatus.UPLOADED)),
            "failed": len(snapshot.with_status(FileTaskStatus.ERROR)),
            "files": [
                {
                    "id": task.id,
                    "name": task.name,
                    "size": format_size(task.size, "b"),
                    "status": task.status.value,
                    "error_message": task.error_message
                }
                for task in snapshot.tasks
            ]
        }

    def log_summary(self) -> Optional[Path]:
        """Log the summary of the latest snapshot.

        Returns:
            Path of the written summary file, None when logging to memory
        """
        data = self.summary()
        if not data:
            return None

        log_path = self._get_log_path(data["widget_id"])
        if log_path:
            with open(log_path, 'w') as f:
                json.dump(data, f, indent=2)

        logger.info(
            f"Widget {data['widget_id']}: {data['uploaded']}/{data['total_files']} "
            f"file(s) uploaded, {data['failed']} failed"
        )
        return log_path
