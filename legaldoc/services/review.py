"""
文档审阅会话服务

状态机:
    loading → rendered | error
    rendered ⇄ editing
    rendered → preparing → submitted | error
    error → preparing（用户重试） | rendered

每次编辑后完整重新渲染，页数与签名字段随之重新计算。
"""
from base64 import b64encode
from enum import Enum
from typing import Any

from sqlalchemy.orm import Session

from legaldoc.core.logger import get_logger
from legaldoc.crud.review_session import crud_review_session
from legaldoc.models.review_session import ReviewSession
from legaldoc.schemas.legal_document import DocumentVersion, LegalDocument, SignatoryInfo
from legaldoc.schemas.signature import SignatureFieldMetadata, SignatureSendResult, SignatureSubmission
from legaldoc.services.block_editor import TextBlockMapping, find_block_by_text, update_block_text
from legaldoc.services.document_ingestion import (
    DocumentValidationError,
    dump_document,
    ingest_document,
    require_block_document,
)
from legaldoc.services.export_utils import INVALID_DOCUMENT_MESSAGE, LEGACY_DOCUMENT_MESSAGE
from legaldoc.services.pdf_exporter import PdfExporter, pdf_exporter
from legaldoc.services.signature import SignatureService, SignatureServiceError, signature_service
from legaldoc.services.signature_fields import (
    clamp_fields_to_pages,
    fields_from_dicts,
    fields_to_dicts,
    reconcile_field_pages,
    to_signing_api_fields,
)

logger = get_logger(__name__)


class ReviewState(str, Enum):
    LOADING = "loading"
    RENDERED = "rendered"
    EDITING = "editing"
    PREPARING = "preparing"
    SUBMITTED = "submitted"
    ERROR = "error"


ALLOWED_TRANSITIONS: dict[ReviewState, set[ReviewState]] = {
    ReviewState.LOADING: {ReviewState.RENDERED, ReviewState.ERROR},
    ReviewState.RENDERED: {ReviewState.EDITING, ReviewState.PREPARING},
    ReviewState.EDITING: {ReviewState.RENDERED},
    ReviewState.PREPARING: {ReviewState.SUBMITTED, ReviewState.ERROR},
    ReviewState.SUBMITTED: set(),
    ReviewState.ERROR: {ReviewState.PREPARING, ReviewState.RENDERED},
}


class InvalidStateTransition(ValueError):
    """审阅会话状态不允许该操作"""

    def __init__(self, current: ReviewState, target: ReviewState):
        super().__init__(f"Cannot move review session from '{current.value}' to '{target.value}'")
        self.current = current
        self.target = target


class ReviewSessionNotFound(LookupError):
    """会话不存在或已删除"""


def check_transition(current: ReviewState | str, target: ReviewState) -> ReviewState:
    current = ReviewState(current)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStateTransition(current, target)
    return target


class ReviewService:
    """审阅会话编排：渲染、编辑、字段调整、提交签署"""

    def __init__(self, exporter: PdfExporter | None = None, signer: SignatureService | None = None):
        self.exporter = exporter or pdf_exporter
        self.signer = signer or signature_service

    def get_session(self, db: Session, session_id: str) -> ReviewSession:
        session = crud_review_session.get(db, id=session_id)
        if session is None:
            raise ReviewSessionNotFound(f"Review session not found: {session_id}")
        return session

    def get_by_tracking_id(self, db: Session, tracking_id: str) -> ReviewSession:
        session = crud_review_session.get_by_tracking_id(db, tracking_id)
        if session is None:
            raise ReviewSessionNotFound(f"No review session with tracking id: {tracking_id}")
        return session

    def list_sessions(
        self,
        db: Session,
        status: ReviewState | None = None,
        skip: int = 0,
        limit: int = 100
    ) -> list[ReviewSession]:
        if status is None:
            return crud_review_session.get_multi(db, skip=skip, limit=limit)
        return crud_review_session.get_multi_by_status(db, status=status.value, skip=skip, limit=limit)

    def delete_session(self, db: Session, session_id: str) -> ReviewSession:
        """逻辑删除"""
        self.get_session(db, session_id)
        logger.info(f"Deleting review session {session_id}")
        return crud_review_session.remove(db, id=session_id)

    def _update(self, db: Session, session: ReviewSession, **changes: Any) -> ReviewSession:
        return crud_review_session.update(db, db_obj=session, obj_in=changes)

    def _move(self, db: Session, session: ReviewSession, target: ReviewState, **changes: Any) -> ReviewSession:
        check_transition(session.status, target)
        logger.info(f"Review session {session.id}: {session.status} -> {target.value}")
        return self._update(db, session, status=target.value, **changes)

    def create_session(self, db: Session, document_payload: Any, form_data: dict[str, Any] | None = None) -> ReviewSession:
        """
        创建会话并完成首次渲染

        无效文档与旧版文档不会抛出，会话进入 error 状态并记录原因。
        """
        session = crud_review_session.create(db, obj_in={
            "status": ReviewState.LOADING.value,
            "document": document_payload if isinstance(document_payload, dict) else None,
            "form_data": form_data,
        })

        try:
            ingested = ingest_document(document_payload)
        except DocumentValidationError as e:
            logger.warning(f"Review session {session.id} received an invalid document: {e}")
            return self._move(db, session, ReviewState.ERROR, last_error=f"{INVALID_DOCUMENT_MESSAGE} ({e})")

        if ingested.is_legacy:
            return self._move(
                db, session, ReviewState.ERROR,
                document_version=DocumentVersion.LEGACY_ARTICLES.value,
                last_error=LEGACY_DOCUMENT_MESSAGE,
            )

        return self._render_into(db, session, ingested.document, ReviewState.RENDERED)

    def _render_into(
        self,
        db: Session,
        session: ReviewSession,
        document: LegalDocument,
        target: ReviewState,
        previous_fields: list[SignatureFieldMetadata] | None = None
    ) -> ReviewSession:
        result = self.exporter.render(document)
        fields = result.signature_fields

        # 用户拖动过的字段保留坐标，只重新计算页码
        if previous_fields and {f.id for f in previous_fields} == {f.id for f in fields}:
            fields = reconcile_field_pages(previous_fields, document.signatories, result.num_pages)

        return self._move(
            db, session, target,
            document=dump_document(document),
            document_version=DocumentVersion.BLOCKS.value,
            num_pages=result.num_pages,
            content_pages=result.content_pages,
            signature_fields=fields_to_dicts(fields),
            dirty=False,
            last_error=None,
        )

    def render_pdf(self, db: Session, session_id: str) -> bytes:
        """当前会话文档的 PDF；无效或旧版文档得到说明页"""
        session = self.get_session(db, session_id)
        return self.exporter.export(session.document).content

    def begin_edit(self, db: Session, session_id: str, clicked_text: str | None = None) -> tuple[ReviewSession, TextBlockMapping | None]:
        """进入编辑状态，可选地根据点击文本定位目标块"""
        session = self.get_session(db, session_id)
        check_transition(session.status, ReviewState.EDITING)

        target = None
        if clicked_text:
            target = find_block_by_text(clicked_text, require_block_document(session.document))
            if target is None:
                logger.info(f"No block matched clicked text in session {session.id}")

        return self._move(db, session, ReviewState.EDITING), target

    def cancel_edit(self, db: Session, session_id: str) -> ReviewSession:
        session = self.get_session(db, session_id)
        if session.status != ReviewState.EDITING.value:
            raise InvalidStateTransition(ReviewState(session.status), ReviewState.RENDERED)
        return self._move(db, session, ReviewState.RENDERED)

    def dismiss_error(self, db: Session, session_id: str) -> ReviewSession:
        """提交失败后放弃重试，重新渲染回到 rendered"""
        session = self.get_session(db, session_id)
        check_transition(session.status, ReviewState.RENDERED)
        document = require_block_document(session.document)
        previous = fields_from_dicts(session.signature_fields or [])
        return self._render_into(db, session, document, ReviewState.RENDERED, previous_fields=previous)

    def apply_edit(self, db: Session, session_id: str, path: list[int], text: str, is_title: bool = False) -> ReviewSession:
        """
        替换块文本并重新渲染

        Raises:
            InvalidStateTransition: 会话不在 editing 状态
            BlockPathError: 路径无效，会话保持 editing
        """
        session = self.get_session(db, session_id)
        if session.status != ReviewState.EDITING.value:
            raise InvalidStateTransition(ReviewState(session.status), ReviewState.RENDERED)

        document = require_block_document(session.document)
        updated = update_block_text(document, path, text, is_title=is_title)
        session = self._update(db, session, document=dump_document(updated), dirty=True)

        previous = fields_from_dicts(session.signature_fields or [])
        return self._render_into(db, session, updated, ReviewState.RENDERED, previous_fields=previous)

    def update_fields(self, db: Session, session_id: str, fields: list[SignatureFieldMetadata]) -> ReviewSession:
        """保存用户调整后的字段（PDF 点坐标），超出页数的钳制到最后一页"""
        session = self.get_session(db, session_id)
        if session.status not in (ReviewState.RENDERED.value, ReviewState.ERROR.value):
            raise InvalidStateTransition(ReviewState(session.status), ReviewState.RENDERED)

        signatory_count = len((session.document or {}).get("signatories") or [])
        kept = []
        for field in fields:
            if field.signatory_index >= signatory_count:
                logger.warning(f"Dropping field {field.id}: signatory {field.signatory_index} does not exist")
                continue
            kept.append(field)

        kept = clamp_fields_to_pages(kept, session.num_pages or 1)
        return self._update(db, session, signature_fields=fields_to_dicts(kept))

    def submit(
        self,
        db: Session,
        session_id: str,
        signatories: list[SignatoryInfo] | None = None
    ) -> tuple[ReviewSession, SignatureSendResult]:
        """
        提交签署

        字段只做 DPI 校正（72pt → 96px），与界面缩放无关。
        失败时会话进入 error 状态并重新抛出异常，由用户决定是否重试。
        """
        session = self.get_session(db, session_id)
        session = self._move(db, session, ReviewState.PREPARING, last_error=None)

        try:
            document = require_block_document(session.document)
            signers = signatories if signatories is not None else document.signatories
            if not signers:
                raise SignatureServiceError("At least one signatory is required")

            result = self.exporter.render(document)
            fields = fields_from_dicts(session.signature_fields or []) or result.signature_fields
            fields = [f for f in fields if f.signatory_index < len(signers)]
            fields = clamp_fields_to_pages(fields, result.num_pages)

            submission = SignatureSubmission(
                pdf_base64=b64encode(result.content).decode("ascii"),
                signatories=signers,
                signature_fields=to_signing_api_fields(fields),
                num_pages=result.num_pages,
                title=document.metadata.title,
            )
            sent = self.signer.send_for_signature(submission)
        except Exception as e:
            # 任何失败都进入 error，保留重试入口
            logger.error(f"Submission of review session {session.id} failed: {e}", exc_info=True)
            self._move(db, session, ReviewState.ERROR, last_error=str(e))
            raise

        session = self._move(
            db, session, ReviewState.SUBMITTED,
            tracking_id=sent.tracking_id,
            provider_document_id=sent.document_id,
        )
        return session, sent


# 全局服务实例
review_service = ReviewService()
