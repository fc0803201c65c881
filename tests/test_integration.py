"""
Integration tests for the upload widget.
"""
import argparse
import json
from unittest.mock import patch

import pytest

from upload_widget import cli
from upload_widget.models import FileTaskStatus, SessionStatus


def _upload_args(files, **overrides):
    args = dict(
        bucket="test-bucket",
        files=files,
        widget_id="widget-1",
        prefix="uploads",
        multiple=True,
        max_size_mb=None,
        accept=None,
        config=None,
        verbose=False,
        command="upload",
    )
    args.update(overrides)
    return argparse.Namespace(**args)


@pytest.mark.asyncio
async def test_run_upload_stores_accepted_files(mock_aws, tmp_upload_dir, tmp_log_dir):
    """Test the drop-validate-upload flow end to end against S3."""
    good = tmp_upload_dir / "good.csv"
    good.write_text("x" * 100)
    wrong_type = tmp_upload_dir / "notes.txt"
    wrong_type.write_text("hello")

    snapshot = await cli.run_upload(
        _upload_args([good, wrong_type], accept="csv"),
        {"logDir": str(tmp_log_dir)}
    )

    assert snapshot.status is SessionStatus.UPLOADED
    by_name = {task.name: task for task in snapshot.tasks}
    assert by_name["good.csv"].status is FileTaskStatus.UPLOADED
    assert by_name["notes.txt"].status is FileTaskStatus.ERROR
    assert by_name["notes.txt"].error_message == "text/plain files are not allowed."

    key = f"uploads/widget-1/{by_name['good.csv'].id}/good.csv"
    assert mock_aws.get_object(Bucket="test-bucket", Key=key)["Body"].read() == b"x" * 100
    assert len(list(tmp_log_dir.glob("session_widget-1_*.json"))) == 1


@pytest.mark.asyncio
async def test_run_upload_single_file_mode_takes_first_file(mock_aws, tmp_upload_dir):
    """Test that a multi-file drop on a single-file widget uploads only the first file."""
    paths = []
    for name in ("a.csv", "b.csv"):
        path = tmp_upload_dir / name
        path.write_text(name)
        paths.append(path)

    snapshot = await cli.run_upload(_upload_args(paths, multiple=False), {})

    statuses = {task.name: task.status for task in snapshot.tasks}
    assert statuses == {"a.csv": FileTaskStatus.UPLOADED, "b.csv": FileTaskStatus.ERROR}


def test_build_widget_config_prefers_command_line():
    config = {"maxUploadSizeMb": 50, "acceptedTypes": ["txt"], "multipleFiles": False}
    args = _upload_args([], max_size_mb=5, accept="csv, json", multiple=True)

    widget_config = cli.build_widget_config(args, config)

    assert widget_config.max_upload_size_mb == 5
    assert widget_config.accepted_extensions == ("csv", "json")
    assert widget_config.multiple_files is True


def test_build_widget_config_falls_back_to_file():
    config = {"maxUploadSizeMb": 50, "acceptedTypes": ["txt"], "multipleFiles": True}
    args = _upload_args([], multiple=False)

    widget_config = cli.build_widget_config(args, config)

    assert widget_config.max_size_bytes == 50 * 1024 * 1024
    assert widget_config.accepted_extensions == ("txt",)
    assert widget_config.multiple_files is True


def test_load_config_handles_missing_and_corrupt_files(tmp_path):
    assert cli.load_config(None) == {}
    assert cli.load_config(tmp_path / "missing.json") == {}

    corrupt = tmp_path / "corrupt.json"
    corrupt.write_text("invalid json{")
    assert cli.load_config(corrupt) == {}

    valid = tmp_path / "config.json"
    valid.write_text(json.dumps({"maxUploadSizeMb": 10, "cancelOnReset": False}))
    assert cli.load_config(valid) == {"maxUploadSizeMb": 10, "cancelOnReset": False}


def test_main_upload_prints_snapshot(mock_aws, tmp_upload_dir, capsys):
    path = tmp_upload_dir / "data.csv"
    path.write_text("1,2,3")
    argv = ["upload-widget", "upload", "test-bucket", str(path), "-w", "widget-9"]

    with patch("sys.argv", argv):
        cli.main()

    out = capsys.readouterr().out
    assert "Widget: widget-9" in out
    assert "Status: UPLOADED" in out
    assert "data.csv  UPLOADED" in out


def test_main_delete_removes_objects(mock_aws):
    mock_aws.put_object(Bucket="test-bucket", Key="widget-9/1-1/data.csv", Body=b"1")
    argv = ["upload-widget", "delete", "test-bucket", "widget-9", "1-1"]

    with patch("sys.argv", argv):
        cli.main()

    listing = mock_aws.list_objects_v2(Bucket="test-bucket", Prefix="widget-9/")
    assert listing.get("KeyCount", 0) == 0


def test_main_delete_fails_without_bucket(mock_aws):
    argv = ["upload-widget", "delete", "missing-bucket", "widget-9", "1-1"]

    with patch("sys.argv", argv):
        with pytest.raises(SystemExit) as excinfo:
            cli.main()
    assert excinfo.value.code == 1
