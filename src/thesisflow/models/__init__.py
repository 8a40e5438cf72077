"""SQLAlchemy Models for ThesisFlow"""

from .base import Base, PortableJSONB, utcnow
from .thesis import Thesis
from .review_feedback import ReviewFeedbackEntry
from .audit_log import AuditLog

__all__ = [
    "Base",
    "PortableJSONB",
    "utcnow",
    "Thesis",
    "ReviewFeedbackEntry",
    "AuditLog",
]
