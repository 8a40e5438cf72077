"""Documents domain module - upload validation and the object storage port"""

from .validation import (
    is_supported_mime_type,
    looks_like_pdf,
    validate_file_size,
    validate_filename,
    sanitize_filename,
    max_document_size,
    SUPPORTED_MIME_TYPES,
    SUPPORTED_EXTENSIONS,
)

__all__ = [
    "is_supported_mime_type",
    "looks_like_pdf",
    "validate_file_size",
    "validate_filename",
    "sanitize_filename",
    "max_document_size",
    "SUPPORTED_MIME_TYPES",
    "SUPPORTED_EXTENSIONS",
]
