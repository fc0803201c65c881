"""
Module for transferring files to and deleting them from remote storage.
"""
import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Callable, Dict, List, Sequence

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import CancellationError, TransferError
from .models import ProgressEvent, UploadFile

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class UploadClient(ABC):
    """Transport used by an upload session.

    Cancelling the task that awaits ``upload_files`` cancels the request.
    Implementations raise TransferError (or CancellationError) on failure.
    """

    @abstractmethod
    async def upload_files(self, widget_id: str, files: Sequence[UploadFile],
                           on_progress: ProgressCallback) -> None:
        """Upload files for a widget, reporting progress as bytes move."""

    @abstractmethod
    async def delete(self, widget_id: str, file_id: str) -> None:
        """Delete a previously uploaded file."""


class S3UploadClient(UploadClient):
    """Stores uploaded files in an S3 bucket."""

    def __init__(self, bucket: str, prefix: str = "", s3_client=None,
                 max_workers: int = 5):
        """Initialize the S3 upload client.

        Args:
            bucket: Destination bucket name
            prefix: Optional key prefix for every object
            s3_client: boto3 S3 client, created when omitted
            max_workers: Maximum number of concurrent transfer threads
        """
        if not bucket:
            raise ValueError("bucket cannot be empty")
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.s3_client = s3_client or boto3.client('s3')
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="s3-upload")
        self._uploads: Dict[str, "asyncio.Future[None]"] = {}

    def file_prefix(self, widget_id: str, file_id: str) -> str:
        """Key prefix under which a file's object is stored."""
        return "/".join(p for p in (self.prefix, widget_id, file_id) if p) + "/"

    def object_key(self, widget_id: str, upload: UploadFile) -> str:
        return self.file_prefix(widget_id, upload.file_id) + upload.file.name

    async def upload_files(self, widget_id: str, files: Sequence[UploadFile],
                           on_progress: ProgressCallback) -> None:
        loop = asyncio.get_running_loop()
        total = sum(upload.file.size for upload in files)
        cancelled = threading.Event()
        lock = threading.Lock()
        loaded = 0

        def report(current: int) -> None:
            if not cancelled.is_set():
                on_progress(ProgressEvent(loaded=current, total=total))

        def callback(bytes_amount: int) -> None:
            # Runs on transfer threads; raising aborts the transfer.
            nonlocal loaded
            if cancelled.is_set():
                raise CancellationError("Upload cancelled")
            with lock:
                loaded += bytes_amount
                current = loaded
            loop.call_soon_threadsafe(report, current)

        future = loop.run_in_executor(
            self._executor, self._upload_sync, widget_id, list(files), callback, cancelled
        )
        prefixes = [self.file_prefix(widget_id, upload.file_id) for upload in files]
        for prefix in prefixes:
            self._uploads[prefix] = future
        future.add_done_callback(partial(self._forget_upload, prefixes))

        try:
            await asyncio.shield(future)
        except asyncio.CancelledError:
            # The transfer thread stops at its next progress callback.
            cancelled.set()
            logger.info(f"Upload for widget {widget_id} cancelled")
            raise

    def _forget_upload(self, prefixes: List[str], future: "asyncio.Future[None]") -> None:
        if not future.cancelled() and future.exception() is not None:
            logger.debug(f"Transfer thread for {prefixes} ended with {future.exception()!r}")
        for prefix in prefixes:
            if self._uploads.get(prefix) is future:
                del self._uploads[prefix]

    def _upload_sync(self, widget_id: str, files: List[UploadFile],
                     callback: Callable[[int], None], cancelled: threading.Event) -> None:
        for upload in files:
            if cancelled.is_set():
                raise CancellationError("Upload cancelled")
            if upload.file.path is None:
                raise TransferError(f"No content available for {upload.file.name}")

            key = self.object_key(widget_id, upload)
            extra_args = {'ContentType': upload.file.mime_type} if upload.file.mime_type else {}
            try:
                with open(upload.file.path, 'rb') as f:
                    self.s3_client.upload_fileobj(
                        f,
                        self.bucket,
                        key,
                        ExtraArgs=extra_args,
                        Callback=callback
                    )
            except CancellationError:
                raise
            except (ClientError, BotoCoreError, S3UploadFailedError, OSError) as e:
                if cancelled.is_set():
                    raise CancellationError("Upload cancelled") from e
                logger.error(f"Error uploading {upload.file.name} to {key}: {e}")
                raise TransferError(str(e)) from e

            logger.info(f"Uploaded {upload.file.name} to s3://{self.bucket}/{key}")

    async def delete(self, widget_id: str, file_id: str) -> None:
        """Delete a file, after any transfer still writing it has stopped."""
        loop = asyncio.get_running_loop()
        upload = self._uploads.get(self.file_prefix(widget_id, file_id))
        if upload is not None and not upload.done():
            logger.info(f"Waiting for the transfer of {file_id} to stop before deleting")
            await asyncio.wait([upload])
        await loop.run_in_executor(self._executor, self._delete_sync, widget_id, file_id)

    def _delete_sync(self, widget_id: str, file_id: str) -> None:
        prefix = self.file_prefix(widget_id, file_id)
        try:
            response = self.s3_client.list_objects_v2(Bucket=self.bucket, Prefix=prefix)
            keys = [{'Key': obj['Key']} for obj in response.get('Contents', [])]
            if keys:
                self.s3_client.delete_objects(
                    Bucket=self.bucket,
                    Delete={'Objects': keys}
                )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error deleting {prefix} from {self.bucket}: {e}")
            raise TransferError(str(e)) from e

        logger.info(f"Deleted {len(keys)} object(s) under s3://{self.bucket}/{prefix}")

    def close(self) -> None:
        self._executor.shutdown(wait=False)
