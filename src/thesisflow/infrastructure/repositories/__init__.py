from .thesis_repository import SqlAlchemyThesisRepository
from .feedback_repository import SqlAlchemyReviewFeedbackLog

__all__ = ["SqlAlchemyThesisRepository", "SqlAlchemyReviewFeedbackLog"]
