from .base import CRUDBase
from .review_session import CRUDReviewSession, crud_review_session

__all__ = [
    "CRUDBase",
    "CRUDReviewSession",
    "crud_review_session"
]
