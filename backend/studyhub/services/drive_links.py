"""
StudyHub Backend - Drive Link Canonicalizer
===========================================

What:  Turns a Google Drive share link into the direct-view URL stored as a
       material's thumbnail.
How:   Prefix-matches `https://drive.google.com/file/d/<fileId>` and rebuilds
       `https://drive.google.com/uc?export=view&id=<fileId>` from the id alone.
       Whatever follows the id in the submitted link (`/view`,
       `?usp=sharing`, ...) is discarded.
Who:   The create rule-set (thumbnail check) and MaterialService.update.

Pure functions, no I/O.

Examples:
    >>> canonicalize_thumbnail("https://drive.google.com/file/d/ABC123/view")
    'https://drive.google.com/uc?export=view&id=ABC123'
"""

import re
from typing import Any

from studyhub.exceptions import InvalidAssetLinkError

DRIVE_HOST = "drive.google.com"

# fileId is an opaque token of letters, digits, '-' and '_'.
DRIVE_FILE_URL = re.compile(r"^https://drive\.google\.com/file/d/([a-zA-Z0-9_-]+)")

CANONICAL_VIEW_URL = "https://" + DRIVE_HOST + "/uc?export=view&id={file_id}"


def extract_file_id(url: Any) -> str:
    """
    Return the drive file id embedded in `url`.

    Raises:
        InvalidAssetLinkError: `url` is not a string or does not start with
            the drive file-share prefix.
    """
    if not isinstance(url, str):
        raise InvalidAssetLinkError(context={"reason": "not_a_string"})

    match = DRIVE_FILE_URL.match(url.strip())
    if match is None:
        raise InvalidAssetLinkError(context={"reason": "pattern_mismatch"})
    return match.group(1)


def canonicalize_thumbnail(url: Any) -> str:
    """Return the canonical direct-view URL for a drive share link."""
    return CANONICAL_VIEW_URL.format(file_id=extract_file_id(url))
