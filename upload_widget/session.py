"""
Module coordinating the file tasks of one upload widget.
"""
import asyncio
import logging
from contextlib import contextmanager
from functools import partial
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from .classifier import get_error_message
from .client import UploadClient
from .exceptions import CancellationError, NotFoundError, TransferError
from .models import (
    FileDescriptor,
    FileTaskStatus,
    ProgressEvent,
    RejectedFile,
    SessionPolicy,
    SessionSnapshot,
    SessionStatus,
    TaskSnapshot,
    UploaderConfig,
    UploadFile,
)
from .task import FileTask, make_task_id
from .transfer import TransferHandle

logger = logging.getLogger(__name__)

Listener = Callable[[SessionSnapshot], None]

UNKNOWN_ERROR_MESSAGE = "Unknown error"


class UploadSessionManager:
    """Owns the ordered file tasks of one widget and every change made to them.

    All methods must be called from the thread running the event loop.
    Uploads and deletes run as asyncio tasks; their outcomes come back
    through callbacks that only touch tasks still in the session.
    Listeners receive a new SessionSnapshot after every change.
    """

    def __init__(self, widget_id: str, client: UploadClient,
                 config: Optional[UploaderConfig] = None,
                 policy: Optional[SessionPolicy] = None):
        """Initialize the session manager.

        Args:
            widget_id: Id of the widget, sent with every request
            client: Transport performing uploads and deletes
            config: Initial widget configuration
            policy: Choices for transfer failures and reset
        """
        if not widget_id:
            raise ValueError("widget_id cannot be empty")
        self.widget_id = widget_id
        self.client = client
        self.policy = policy or SessionPolicy()
        self._config = config or UploaderConfig()
        self._tasks: List[FileTask] = []
        self._deletes: Dict[str, "asyncio.Task[bool]"] = {}
        self._sequence = 0
        self._error_message: Optional[str] = None
        self._listeners: List[Listener] = []
        self._batch_depth = 0
        self._dirty = False

    @property
    def config(self) -> UploaderConfig:
        return self._config

    @property
    def max_size_bytes(self) -> int:
        return self._config.max_size_bytes

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def status(self) -> SessionStatus:
        """Overall status derived from the session error and task states."""
        if self._error_message is not None:
            return SessionStatus.ERROR
        if any(t.status in (FileTaskStatus.QUEUED, FileTaskStatus.UPLOADING) for t in self._tasks):
            return SessionStatus.UPLOADING
        if self._tasks:
            return SessionStatus.UPLOADED
        return SessionStatus.READY

    def __len__(self) -> int:
        return len(self._tasks)

    def get(self, file_id: str) -> Optional[TaskSnapshot]:
        task = self._find(file_id)
        return task.snapshot() if task else None

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            widget_id=self.widget_id,
            status=self.status,
            error_message=self._error_message,
            tasks=tuple(task.snapshot() for task in self._tasks)
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for session snapshots.

        Args:
            listener: Called with a new snapshot after every change

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def configure(self, config: UploaderConfig) -> None:
        """Apply a new widget configuration.

        A new size limit only affects files classified afterwards. Moving
        from enabled to disabled resets the session.
        """
        previous = self._config
        self._config = config

        if previous.max_size_bytes != config.max_size_bytes:
            logger.info(
                f"Widget {self.widget_id}: size limit {previous.max_size_bytes} -> "
                f"{config.max_size_bytes} bytes"
            )

        with self._batch():
            if config.disabled and not previous.disabled:
                logger.info(f"Widget {self.widget_id} disabled, resetting session")
                self.reset()
            self._notify()

    def on_drop(self, accepted: Sequence[FileDescriptor],
                rejected: Sequence[RejectedFile] = ()) -> List[str]:
        """Handle files dropped on the widget.

        In single-file mode the first existing task is deleted before the
        drop is processed. When several files are rejected in single-file
        mode, the first of them is uploaded ahead of everything else and
        only the rest become ERROR tasks.

        Args:
            accepted: Files that passed drop validation
            rejected: Files that failed drop validation

        Returns:
            Ids of the tasks created, in session order
        """
        if self._config.disabled:
            logger.warning(f"Widget {self.widget_id} is disabled, ignoring drop")
            return []

        multiple_files = self._config.multiple_files
        rejected = list(rejected)
        created: List[str] = []

        with self._batch():
            if not multiple_files and self._tasks:
                self.delete(self._tasks[0].id)

            # The promoted file leads the session so the next drop replaces it.
            if len(rejected) > 1 and not multiple_files:
                promoted = rejected.pop(0)
                created.append(self._submit(promoted.file))

            for rejection in rejected:
                message = get_error_message(rejection.code, rejection.file, self.max_size_bytes)
                task = FileTask.rejected(self._next_id(), rejection.file, message)
                self._tasks.append(task)
                created.append(task.id)
                logger.info(f"Rejected {rejection.file.name}: {message}")

            for file in accepted:
                created.append(self._submit(file))

            self._notify()

        return created

    def delete(self, file_id: str) -> "Optional[asyncio.Task[bool]]":
        """Delete a file from the session.

        ERROR tasks that were never uploaded are removed at once. Any other
        task moves to DELETING, has its outstanding upload cancelled and is
        removed once the remote delete succeeds. Calling again while the
        remote delete is outstanding does nothing.

        Args:
            file_id: Id of the task to delete

        Returns:
            The remote delete task, or None when no remote call was needed
        """
        task = self._find(file_id)
        if task is None:
            error = NotFoundError(file_id)
            logger.warning(f"Delete requested for unknown file {file_id}")
            self._error_message = str(error)
            self._notify()
            return None

        if task.status is FileTaskStatus.ERROR and not task.transmitted:
            self._tasks.remove(task)
            logger.info(f"Removed rejected file {task.name} ({file_id})")
            self._notify()
            return None

        pending = self._deletes.get(file_id)
        if pending is not None and not pending.done():
            return pending

        if task.status is not FileTaskStatus.DELETING:
            task.begin_delete()

        pending = asyncio.ensure_future(self._remote_delete(task))
        self._deletes[file_id] = pending
        self._notify()
        return pending

    def reset(self) -> None:
        """Remove every task and return the session to READY."""
        tasks, self._tasks = self._tasks, []
        outstanding = [t for t in tasks if t.upload_outstanding]

        if self.policy.cancel_on_reset:
            for task in outstanding:
                task.cancel_upload()
        elif outstanding:
            logger.info(f"Abandoning {len(outstanding)} outstanding upload(s) on reset")

        self._error_message = None
        logger.info(f"Widget {self.widget_id}: session reset, {len(tasks)} file(s) dropped")
        self._notify()

    async def wait_idle(self) -> None:
        """Wait until no upload or delete of a current task is outstanding."""
        while True:
            waiters = [t.handle.wait() for t in self._tasks if t.upload_outstanding]
            waiters += [asyncio.wait([d]) for d in self._deletes.values() if not d.done()]
            if not waiters:
                return
            await asyncio.gather(*waiters)

    def _next_id(self) -> str:
        self._sequence += 1
        return make_task_id(self._sequence)

    def _find(self, file_id: str) -> Optional[FileTask]:
        for task in self._tasks:
            if task.id == file_id:
                return task
        return None

    def _submit(self, file: FileDescriptor) -> str:
        task = FileTask(self._next_id(), file)
        self._tasks.append(task)

        request = self.client.upload_files(
            self.widget_id,
            [UploadFile(file_id=task.id, file=file)],
            partial(self._on_progress, task.id)
        )
        handle = TransferHandle(task.id, request)
        task.start_upload(handle)
        handle.add_done_callback(self._on_upload_done)

        logger.info(f"Uploading {file.name} ({file.size} bytes) as {task.id}")
        return task.id

    def _on_progress(self, file_id: str, event: ProgressEvent) -> None:
        task = self._find(file_id)
        if task is None or not task.update_progress(event.percent):
            return
        self._notify()

    def _on_upload_done(self, handle: TransferHandle) -> None:
        task = self._find(handle.file_id)
        if task is None or task.handle is not handle:
            logger.debug(f"Ignoring completion of {handle.file_id}, no longer tracked")
            return

        try:
            handle.result()
        except CancellationError:
            logger.debug(f"Upload of {task.name} ({task.id}) cancelled")
            return
        except TransferError as e:
            message = str(e) or UNKNOWN_ERROR_MESSAGE
            logger.error(f"Error uploading {task.name} ({task.id}): {message}")
            self._error_message = message
            if self.policy.fail_task_on_transfer_error:
                task.fail(message)
            self._notify()
            return

        task.complete()
        logger.info(f"Uploaded {task.name} ({task.id})")
        self._notify()

    async def _remote_delete(self, task: FileTask) -> bool:
        try:
            await self.client.delete(self.widget_id, task.id)
        except Exception as e:
            logger.error(f"Error deleting {task.name} ({task.id}): {e}")
            if task in self._tasks:
                self._error_message = str(e) or UNKNOWN_ERROR_MESSAGE
                self._notify()
            return False
        finally:
            if self._deletes.get(task.id) is asyncio.current_task():
                del self._deletes[task.id]

        if task in self._tasks:
            self._tasks.remove(task)
            self._error_message = None
            logger.info(f"Deleted {task.name} ({task.id})")
            self._notify()
        return True

    @contextmanager
    def _batch(self) -> Iterator[None]:
        """Collapse the notifications of nested operations into one."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
        if self._batch_depth == 0 and self._dirty:
            self._notify()

    def _notify(self) -> None:
        if self._batch_depth:
            self._dirty = True
            return
        self._dirty = False

        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Error in snapshot listener for widget {self.widget_id}: {e}")
