"""Checks applied to an uploaded thesis document before it is stored.

A thesis is a single PDF no larger than MAX_DOCUMENT_SIZE_BYTES. Checks
return ``(ok, message)`` so the binder can collect them into one
ThesisValidationError.
"""

import os
import re
from typing import Callable, Optional, Sequence, Tuple

from ...config import get_settings

CheckResult = Tuple[bool, Optional[str]]

SUPPORTED_MIME_TYPES = {"application/pdf"}
SUPPORTED_EXTENSIONS = {".pdf"}
PDF_MAGIC = b"%PDF-"
MAX_FILENAME_LENGTH = 255

_UNSAFE_CHARS = re.compile(r"[^\w\s.-]")
_SEPARATOR_RUNS = re.compile(r"[\s_]+")


def max_document_size() -> int:
    return get_settings().MAX_DOCUMENT_SIZE_BYTES


def is_supported_mime_type(mime_type: Optional[str]) -> bool:
    """True for application/pdf, ignoring case and parameters.

    >>> is_supported_mime_type('application/pdf; charset=binary')
    True
    """
    if not mime_type:
        return False
    media_type = mime_type.partition(";")[0].strip().lower()
    return media_type in SUPPORTED_MIME_TYPES


def looks_like_pdf(head: bytes) -> bool:
    return head.startswith(PDF_MAGIC)


def validate_file_size(size_bytes: int, max_size: Optional[int] = None) -> CheckResult:
    limit = max_document_size() if max_size is None else max_size
    if size_bytes == 0:
        return False, "File is empty (0 bytes)"
    if size_bytes > limit:
        return False, f"File exceeds maximum size of {limit} bytes (got {size_bytes} bytes)"
    return True, None


# Ordered; the first failing rule is reported
_FILENAME_RULES: Sequence[Tuple[Callable[[str], bool], Callable[[str], str]]] = (
    (lambda name: len(name) > MAX_FILENAME_LENGTH,
     lambda name: f"Filename exceeds {MAX_FILENAME_LENGTH} characters (got {len(name)})"),
    (lambda name: ".." in name or "/" in name or "\\" in name,
     lambda name: "Filename contains path traversal or directory separators"),
    (lambda name: "\x00" in name,
     lambda name: "Filename contains null bytes"),
    (lambda name: any(ord(c) < 32 for c in name),
     lambda name: "Filename contains control characters"),
    (lambda name: os.path.splitext(name)[1].lower() not in SUPPORTED_EXTENSIONS,
     lambda name: "Only .pdf files are accepted"),
)


def validate_filename(filename: Optional[str]) -> CheckResult:
    """Reject names that are empty, unsafe as a path component, or not .pdf.

    >>> validate_filename('../../etc/passwd')
    (False, 'Filename contains path traversal or directory separators')
    """
    if not filename or not filename.strip():
        return False, "Filename cannot be empty"
    for broken, message in _FILENAME_RULES:
        if broken(filename):
            return False, message(filename)
    return True, None


def sanitize_filename(filename: str) -> str:
    """Reduce a client filename to a safe basename for object metadata.

    >>> sanitize_filename('my thesis (final).pdf')
    'my_thesis_final_.pdf'
    """
    name = _UNSAFE_CHARS.sub("_", os.path.basename(filename))
    name = _SEPARATOR_RUNS.sub("_", name)
    if len(name) > MAX_FILENAME_LENGTH:
        stem, ext = os.path.splitext(name)
        name = stem[: MAX_FILENAME_LENGTH - len(ext)] + ext
    return name
