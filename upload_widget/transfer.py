"""
Module wrapping an outstanding upload request in a cancellable handle.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List

from .exceptions import CancellationError, TransferError

logger = logging.getLogger(__name__)


class TransferHandle:
    """A single outstanding network request that its owner may cancel.

    Completion is reported once, to every registered callback, with the
    handle itself; ``result()`` then tells success, cancellation and
    failure apart.
    """

    def __init__(self, file_id: str, coro: Awaitable[None]):
        self.file_id = file_id
        self._cancel_requested = False
        self._callbacks: List[Callable[["TransferHandle"], None]] = []
        self._task = asyncio.ensure_future(coro)
        self._task.add_done_callback(self._on_done)

    @property
    def cancelled(self) -> bool:
        """True once cancellation was requested or the request ended cancelled."""
        if self._cancel_requested:
            return True
        if not self._task.done():
            return False
        if self._task.cancelled():
            return True
        return isinstance(self._task.exception(), CancellationError)

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> bool:
        """Request cancellation of the outstanding request.

        Returns:
            False if the request had already finished
        """
        if self._task.done():
            return False
        self._cancel_requested = True
        logger.debug(f"Cancelling transfer for {self.file_id}")
        return self._task.cancel()

    def add_done_callback(self, callback: Callable[["TransferHandle"], None]) -> None:
        if self._task.done():
            asyncio.get_running_loop().call_soon(callback, self)
        else:
            self._callbacks.append(callback)

    def result(self) -> None:
        """Get the outcome of a finished request.

        Raises:
            CancellationError: the request was cancelled
            TransferError: the request failed
        """
        if self.cancelled:
            raise CancellationError(f"Upload of {self.file_id} was cancelled")

        error = self._task.exception()
        if error is None:
            return
        if isinstance(error, TransferError):
            raise error
        raise TransferError(str(error)) from error

    def __await__(self):
        return self._wait().__await__()

    async def wait(self) -> None:
        """Wait for the request to finish without raising its outcome."""
        if not self._task.done():
            await asyncio.wait([self._task])

    async def _wait(self) -> None:
        await self.wait()
        self.result()

    def _on_done(self, task: "asyncio.Future[None]") -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Transfer for {self.file_id} ended with {task.exception()!r}")
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback(self)
            except Exception as e:
                logger.error(f"Error in transfer callback for {self.file_id}: {e}")
