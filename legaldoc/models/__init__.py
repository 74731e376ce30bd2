from .review_session import ReviewSession

__all__ = [
    "ReviewSession"
]
