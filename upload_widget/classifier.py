"""
Module mapping drop validation failures to user-facing messages.
"""
from typing import Union

from .models import FileDescriptor, RejectionCode
from .sizes import format_size

UNEXPECTED_ERROR_MESSAGE = "Unexpected error. Please try again."


def get_error_message(code: Union[str, RejectionCode], file: FileDescriptor,
                      max_size_bytes: int) -> str:
    """Get the message shown for a rejected file.

    Args:
        code: Rejection code reported by drop validation
        file: The rejected file
        max_size_bytes: Size limit in force when the file was rejected

    Returns:
        Message to display next to the file
    """
    try:
        code = RejectionCode(code)
    except ValueError:
        return UNEXPECTED_ERROR_MESSAGE

    if code is RejectionCode.FILE_TOO_LARGE:
        return f"File must be {format_size(max_size_bytes, 'b')} or smaller."
    if code is RejectionCode.FILE_INVALID_TYPE:
        return f"{file.mime_type} files are not allowed."
    if code is RejectionCode.FILE_TOO_SMALL:
        return "File size is too small."
    if code is RejectionCode.TOO_MANY_FILES:
        return "Only one file is allowed."
    return UNEXPECTED_ERROR_MESSAGE

