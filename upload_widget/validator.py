"""
Module for validating dropped files against the widget configuration.
"""
import logging
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple, Union

from .exceptions import ValidationError
from .models import FileDescriptor, RejectedFile, RejectionCode, UploaderConfig
from .sizes import get_file_extension

logger = logging.getLogger(__name__)


class DropValidator:
    """Splits a drop into accepted and rejected files."""

    def __init__(self, config: UploaderConfig, min_size_bytes: int = 0):
        """Initialize the validator.

        Args:
            config: Widget configuration providing size limit, types and mode
            min_size_bytes: Smallest file size accepted
        """
        self.config = config
        self.min_size_bytes = min_size_bytes

    def codes_for(self, file: FileDescriptor) -> List[RejectionCode]:
        """Get every reason a single file would be rejected."""
        codes = []
        extensions = self.config.accepted_extensions
        if extensions and get_file_extension(file.name).lower() not in extensions:
            codes.append(RejectionCode.FILE_INVALID_TYPE)
        if file.size > self.config.max_size_bytes:
            codes.append(RejectionCode.FILE_TOO_LARGE)
        if file.size < self.min_size_bytes:
            codes.append(RejectionCode.FILE_TOO_SMALL)
        return codes

    def check(self, file: FileDescriptor, too_many: bool = False) -> None:
        """Validate a single file.

        Args:
            file: File to validate
            too_many: Whether the file came in a drop with too many files

        Raises:
            ValidationError: carrying every failing code, the first as ``code``
        """
        codes = self.codes_for(file)
        if too_many:
            codes.insert(0, RejectionCode.TOO_MANY_FILES)
        if codes:
            raise ValidationError(codes[0].value, file, codes=[c.value for c in codes])

    def split(self, files: Sequence[FileDescriptor]
              ) -> Tuple[List[FileDescriptor], List[RejectedFile]]:
        """Split dropped files the way a drop zone does.

        In single-file mode a drop of more than one file rejects all of them
        with too-many-files.

        Args:
            files: Files in drop order

        Returns:
            Tuple of (accepted, rejected), each in drop order
        """
        too_many = not self.config.multiple_files and len(files) > 1
        accepted: List[FileDescriptor] = []
        rejected: List[RejectedFile] = []

        for file in files:
            try:
                self.check(file, too_many)
            except ValidationError as e:
                rejected.append(RejectedFile(file=file, codes=e.codes))
            else:
                accepted.append(file)

        if rejected:
            logger.info(f"Rejected {len(rejected)} of {len(files)} dropped file(s)")
        return accepted, rejected

    def split_paths(self, paths: Iterable[Union[str, Path]]
                    ) -> Tuple[List[FileDescriptor], List[RejectedFile]]:
        """Split files on disk, skipping paths that are not regular files."""
        files = []
        for path in paths:
            try:
                files.append(FileDescriptor.from_path(path))
            except ValueError as e:
                logger.error(f"Skipping {path}: {e}")
        return self.split(files)
