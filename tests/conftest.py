"""
Test fixtures for the upload widget.
"""
import asyncio
from typing import Dict, List, Optional, Sequence, Tuple

import boto3
import pytest
from moto import mock_aws as moto_mock_aws

from upload_widget.client import ProgressCallback, S3UploadClient, UploadClient
from upload_widget.exceptions import CancellationError
from upload_widget.models import FileDescriptor, RejectedFile, UploaderConfig, UploadFile
from upload_widget.session import UploadSessionManager
from upload_widget.tracker import SessionTracker


class FakeUploadClient(UploadClient):
    """In-memory upload client whose requests the test finishes by hand.

    With ``auto_complete`` uploads succeed on the next loop iteration.
    Otherwise each upload waits until ``finish`` or ``fail`` is called for
    its file id.
    """

    def __init__(self, auto_complete: bool = True):
        self.auto_complete = auto_complete
        self.events: List[Tuple[str, str]] = []
        self.progress: Dict[str, ProgressCallback] = {}
        self.delete_error: Optional[Exception] = None
        self.delete_gate: Optional[asyncio.Future] = None
        self.cancel_gate: Optional[asyncio.Future] = None
        self._gates: Dict[str, asyncio.Future] = {}

    def _gate(self, file_id: str) -> asyncio.Future:
        if file_id not in self._gates:
            self._gates[file_id] = asyncio.get_running_loop().create_future()
        return self._gates[file_id]

    def finish(self, file_id: str) -> None:
        self._gate(file_id).set_result(None)

    def fail(self, file_id: str, error: Exception) -> None:
        self._gate(file_id).set_exception(error)

    def calls(self, kind: str) -> List[str]:
        return [file_id for event, file_id in self.events if event == kind]

    async def upload_files(self, widget_id: str, files: Sequence[UploadFile],
                           on_progress: ProgressCallback) -> None:
        file_id = files[0].file_id
        self.events.append(("upload", file_id))
        self.progress[file_id] = on_progress
        try:
            if self.auto_complete:
                await asyncio.sleep(0)
            else:
                await self._gate(file_id)
        except asyncio.CancelledError:
            self.events.append(("cancelled", file_id))
            if self.cancel_gate is not None:
                # Report the cancellation only once the test allows it.
                await self.cancel_gate
                raise CancellationError("cancelled")
            raise

    async def delete(self, widget_id: str, file_id: str) -> None:
        self.events.append(("delete", file_id))
        if self.delete_gate is not None:
            await self.delete_gate
        if self.delete_error is not None:
            raise self.delete_error


def make_file(name: str = "data.csv", size: int = 1024,
              mime_type: str = "text/csv") -> FileDescriptor:
    return FileDescriptor(name=name, size=size, mime_type=mime_type)


def make_rejection(name: str = "big.csv", code: str = "file-too-large",
                   size: int = 10 * 1024 * 1024, mime_type: str = "text/csv") -> RejectedFile:
    return RejectedFile(file=make_file(name, size, mime_type), codes=(code,))


async def settle(rounds: int = 5) -> None:
    """Let pending callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Keep boto3 away from real credentials."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def tmp_upload_dir(tmp_path):
    """Create a temporary directory for test files."""
    upload_dir = tmp_path / "uploads"
    upload_dir.mkdir()
    return upload_dir


@pytest.fixture
def tmp_log_dir(tmp_path):
    """Create a temporary directory for logs."""
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    return log_dir


@pytest.fixture
def mock_aws():
    """Mock S3 client using moto."""
    with moto_mock_aws():
        s3 = boto3.client('s3', region_name='us-east-1')
        # Create test bucket
        s3.create_bucket(Bucket='test-bucket')
        yield s3


@pytest.fixture
def s3_upload_client(mock_aws):
    """Create a test S3 upload client."""
    client = S3UploadClient("test-bucket", prefix="uploads", s3_client=mock_aws)
    yield client
    client.close()


@pytest.fixture
def fake_client():
    return FakeUploadClient()


@pytest.fixture
def manual_client():
    """Upload client whose uploads stay in flight until finished by the test."""
    return FakeUploadClient(auto_complete=False)


@pytest.fixture
def single_config():
    return UploaderConfig(max_upload_size_mb=200, multiple_files=False)


@pytest.fixture
def multi_config():
    return UploaderConfig(max_upload_size_mb=200, multiple_files=True)


@pytest.fixture
def manager(fake_client, multi_config):
    return UploadSessionManager("widget-1", fake_client, config=multi_config)


@pytest.fixture
def single_manager(fake_client, single_config):
    return UploadSessionManager("widget-1", fake_client, config=single_config)


@pytest.fixture
def manual_manager(manual_client, multi_config):
    return UploadSessionManager("widget-1", manual_client, config=multi_config)


@pytest.fixture
def session_tracker(tmp_log_dir):
    return SessionTracker(log_dir=tmp_log_dir)
