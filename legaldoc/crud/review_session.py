from sqlalchemy.orm import Session

from legaldoc.crud.base import CRUDBase
from legaldoc.models.review_session import ReviewSession
from legaldoc.schemas.review import ReviewSessionCreate, ReviewSessionUpdate


class CRUDReviewSession(CRUDBase[ReviewSession, ReviewSessionCreate, ReviewSessionUpdate]):
    def get_by_tracking_id(self, db: Session, tracking_id: str) -> ReviewSession | None:
        """
        根据签名服务跟踪ID获取会话
        """
        return db.query(self.model).filter(
            self.model.tracking_id == tracking_id,
            self.model.deleted == False  # noqa: E712
        ).first()

    def get_multi_by_status(
        self,
        db: Session,
        *,
        status: str,
        skip: int = 0,
        limit: int = 100
    ) -> list[ReviewSession]:
        return (
            db.query(self.model)
            .filter(self.model.status == status, self.model.deleted == False)  # noqa: E712
            .order_by(self.model.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )


crud_review_session = CRUDReviewSession(ReviewSession)
