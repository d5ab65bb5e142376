"""
Object name normalization and validation.

Whitespace in folder and file names becomes hyphens. A normalized name must
contain at least one letter, digit, or hyphen, otherwise it is rejected.
"""

import re
from typing import Tuple

from gcp_bucket.errors import InvalidName
from gcp_bucket.utils.logging import get_logger

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s")
_ALLOWED_CHARACTER = re.compile(r"[A-Za-z0-9-]")
_EXTENSION = re.compile(r"\.[^.]+$")


def normalize_name(name: str) -> str:
    """Replace every whitespace character with a hyphen."""
    return _WHITESPACE.sub("-", name)


def validate_name(field: str, name: str) -> None:
    """
    Validate a normalized name against the allow-list.

    Args:
        field: Which name is checked ("folderPath" or "fileName"), for errors
        name: Normalized name

    Raises:
        InvalidName: If the name is empty or has no allowed character
    """
    if not name or not _ALLOWED_CHARACTER.search(name):
        logger.error(f"Invalid {field}: {name!r}")
        raise InvalidName(field, name)


def object_location(folder_name: str, file_name: str) -> Tuple[str, str, str]:
    """
    Normalize and validate a folder/file pair.

    Returns:
        (normalized folder, normalized file name, object path)

    Raises:
        InvalidName: If either name fails validation

    Example:
        >>> object_location("my photos", "cat pic.jpg")
        ('my-photos', 'cat-pic.jpg', 'my-photos/cat-pic.jpg')
    """
    folder = normalize_name(folder_name)
    name = normalize_name(file_name)
    validate_name("folderPath", folder)
    validate_name("fileName", name)
    return folder, name, f"{folder}/{name}"


def has_extension(file_name: str) -> bool:
    return bool(_EXTENSION.search(file_name))


def replace_extension(file_name: str, extension: str) -> str:
    return _EXTENSION.sub(f".{extension}", file_name)
