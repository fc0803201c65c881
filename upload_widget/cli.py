"""
Command-line interface for the upload widget.
"""
import argparse
import asyncio
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Optional

from .client import S3UploadClient
from .exceptions import TransferError
from .models import SessionPolicy, SessionSnapshot, SessionStatus, UploaderConfig
from .session import UploadSessionManager
from .sizes import describe_limits, format_size
from .tracker import SessionTracker
from .validator import DropValidator

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: Whether to enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def load_config(config_file: Optional[Path] = None) -> dict:
    """Load configuration from a JSON file.

    Args:
        config_file: Path to config file

    Returns:
        Dictionary of configuration values
    """
    if not config_file:
        return {}

    try:
        with open(config_file) as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Error loading config file: {e}")
        return {}


def build_widget_config(args: argparse.Namespace, config: dict) -> UploaderConfig:
    """Merge file configuration with command line overrides.

    Args:
        args: Command line arguments
        config: Values loaded from the config file

    Returns:
        UploaderConfig for the session
    """
    data = dict(config)
    if args.max_size_mb is not None:
        data['maxUploadSizeMb'] = args.max_size_mb
    if args.multiple:
        data['multipleFiles'] = True
    if args.accept:
        data['acceptedTypes'] = [t.strip() for t in args.accept.split(",") if t.strip()]
    return UploaderConfig.from_dict(data)


def print_snapshot(snapshot: SessionSnapshot) -> None:
    print(f"\nWidget: {snapshot.widget_id}")
    print(f"Status: {snapshot.status.value}")
    if snapshot.error_message:
        print(f"Error: {snapshot.error_message}")
    for task in snapshot.tasks:
        detail = task.error_message or format_size(task.size, "b")
        print(f"  {task.id}  {task.name}  {task.status.value}  {detail}")


async def run_upload(args: argparse.Namespace, config: dict) -> SessionSnapshot:
    """Drop the given files on a fresh session and wait for every upload."""
    widget_config = build_widget_config(args, config)
    client = S3UploadClient(args.bucket, prefix=args.prefix)
    manager = UploadSessionManager(
        args.widget_id or str(uuid.uuid4()),
        client,
        config=widget_config,
        policy=SessionPolicy.from_dict(config)
    )

    log_dir = config.get('logDir')
    tracker = SessionTracker(log_dir=Path(log_dir) if log_dir else None)
    tracker.attach(manager)

    headline, detail = describe_limits(
        widget_config.max_size_bytes,
        widget_config.accepted_extensions,
        widget_config.multiple_files
    )
    logger.info(f"{headline} ({detail})")

    try:
        accepted, rejected = DropValidator(widget_config).split_paths(args.files)
        manager.on_drop(accepted, rejected)
        await manager.wait_idle()
    finally:
        tracker.log_summary()
        tracker.detach()
        client.close()

    return manager.snapshot()


def handle_upload(args: argparse.Namespace) -> None:
    """Handle the upload command.

    Args:
        args: Command line arguments
    """
    snapshot = asyncio.run(run_upload(args, load_config(args.config)))
    print_snapshot(snapshot)
    if snapshot.status is SessionStatus.ERROR:
        sys.exit(1)


def handle_delete(args: argparse.Namespace) -> None:
    """Handle the delete command.

    Args:
        args: Command line arguments
    """
    client = S3UploadClient(args.bucket, prefix=args.prefix)
    try:
        asyncio.run(client.delete(args.widget_id, args.file_id))
    except TransferError as e:
        logger.error(f"Error deleting {args.file_id}: {e}")
        sys.exit(1)
    finally:
        client.close()
    logger.info(f"Deleted {args.file_id} from widget {args.widget_id}")


def main() -> None:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(description="File upload widget CLI")
    parser.add_argument('-v', '--verbose', action='store_true',
                        help="Enable verbose logging")
    parser.add_argument('-c', '--config', type=Path,
                        help="Path to config file")

    subparsers = parser.add_subparsers(dest='command', required=True)

    # Upload command
    upload_parser = subparsers.add_parser('upload',
                                          help="Drop files on a new upload session")
    upload_parser.add_argument('bucket', type=str,
                               help="Destination S3 bucket")
    upload_parser.add_argument('files', nargs='+', type=Path,
                               help="Files to upload")
    upload_parser.add_argument('-w', '--widget-id', type=str,
                               help="Custom widget ID")
    upload_parser.add_argument('-p', '--prefix', type=str, default="",
                               help="Key prefix inside the bucket")
    upload_parser.add_argument('-m', '--multiple', action='store_true',
                               help="Allow several files per session")
    upload_parser.add_argument('-s', '--max-size-mb', type=float,
                               help="Per-file size limit in megabytes")
    upload_parser.add_argument('-a', '--accept', type=str,
                               help="Comma separated list of accepted extensions")

    # Delete command
    delete_parser = subparsers.add_parser('delete',
                                          help="Delete an uploaded file")
    delete_parser.add_argument('bucket', type=str,
                               help="Destination S3 bucket")
    delete_parser.add_argument('widget_id', type=str,
                               help="Widget ID the file was uploaded for")
    delete_parser.add_argument('file_id', type=str,
                               help="File ID to delete")
    delete_parser.add_argument('-p', '--prefix', type=str, default="",
                               help="Key prefix inside the bucket")

    args = parser.parse_args()
    setup_logging(args.verbose)

    try:
        if args.command == 'upload':
            handle_upload(args)
        elif args.command == 'delete':
            handle_delete(args)

    except (ValueError, OSError) as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
