from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from legaldoc.api.v1.errors import DOMAIN_ERRORS, http_error
from legaldoc.core.database import get_db
from legaldoc.core.logger import get_logger
from legaldoc.models.review_session import ReviewSession
from legaldoc.schemas.review import (
    EditRequest,
    EditStartRequest,
    EditStartResponse,
    EditTarget,
    FieldsUpdateRequest,
    ReviewCreateRequest,
    ReviewSessionResponse,
    SubmitRequest,
)
from legaldoc.services.export_utils import sanitize_filename
from legaldoc.services.review import ReviewState, review_service

router = APIRouter()
logger = get_logger(__name__)


def _session_response(session: ReviewSession) -> dict:
    return ReviewSessionResponse.model_validate(session).model_dump(by_alias=True, mode="json")


@router.post("/")
async def create_review(request: ReviewCreateRequest, db: Session = Depends(get_db)):
    """
    创建审阅会话并完成首次渲染
    """
    try:
        session = review_service.create_session(db, request.document, request.form_data)
        return _session_response(session)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error creating review session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/")
async def list_reviews(
    status: ReviewState | None = Query(None, description="按状态过滤"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db)
):
    """
    获取审阅会话列表
    """
    sessions = review_service.list_sessions(db, status=status, skip=skip, limit=limit)
    return [_session_response(session) for session in sessions]


@router.get("/tracking/{tracking_id}")
async def get_review_by_tracking_id(tracking_id: str, db: Session = Depends(get_db)):
    """
    根据签名服务跟踪ID获取会话
    """
    try:
        return _session_response(review_service.get_by_tracking_id(db, tracking_id))
    except DOMAIN_ERRORS as e:
        raise http_error(e)


@router.get("/{session_id}")
async def get_review(session_id: str, db: Session = Depends(get_db)):
    """
    获取审阅会话
    """
    try:
        return _session_response(review_service.get_session(db, session_id))
    except DOMAIN_ERRORS as e:
        raise http_error(e)


@router.delete("/{session_id}")
async def delete_review(session_id: str, db: Session = Depends(get_db)):
    """
    删除审阅会话（逻辑删除）
    """
    try:
        review_service.delete_session(db, session_id)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    return {"message": "Review session deleted successfully"}


@router.get("/{session_id}/pdf")
async def get_review_pdf(session_id: str, db: Session = Depends(get_db)):
    """
    下载当前会话文档的 PDF
    """
    try:
        session = review_service.get_session(db, session_id)
        content = review_service.render_pdf(db, session_id)
    except DOMAIN_ERRORS as e:
        raise http_error(e)

    title = ((session.document or {}).get("metadata") or {}).get("title")
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{sanitize_filename(title)}.pdf"'}
    )


@router.post("/{session_id}/edit/start")
async def start_edit(session_id: str, request: EditStartRequest | None = None, db: Session = Depends(get_db)):
    """
    进入编辑状态，可选地根据点击文本定位块
    """
    try:
        clicked_text = request.clicked_text if request else None
        session, target = review_service.begin_edit(db, session_id, clicked_text)
    except DOMAIN_ERRORS as e:
        raise http_error(e)

    return EditStartResponse(
        session=ReviewSessionResponse.model_validate(session),
        target=EditTarget(
            block_id=target.block_id,
            path=target.path,
            text=target.text,
            type=target.type.value,
            is_title=target.is_title,
        ) if target else None,
    ).model_dump(by_alias=True, mode="json")


@router.post("/{session_id}/edit/cancel")
async def cancel_edit(session_id: str, db: Session = Depends(get_db)):
    """
    放弃编辑
    """
    try:
        return _session_response(review_service.cancel_edit(db, session_id))
    except DOMAIN_ERRORS as e:
        raise http_error(e)


@router.post("/{session_id}/edit")
async def apply_edit(session_id: str, request: EditRequest, db: Session = Depends(get_db)):
    """
    保存块文本修改并重新渲染
    """
    try:
        session = review_service.apply_edit(db, session_id, request.path, request.text, request.is_title)
        return _session_response(session)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error applying edit to session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/{session_id}/fields")
async def update_fields(session_id: str, request: FieldsUpdateRequest, db: Session = Depends(get_db)):
    """
    保存用户调整后的签名字段（PDF 点坐标）
    """
    try:
        return _session_response(review_service.update_fields(db, session_id, request.signature_fields))
    except DOMAIN_ERRORS as e:
        raise http_error(e)


@router.post("/{session_id}/reset")
async def reset_review(session_id: str, db: Session = Depends(get_db)):
    """
    提交失败后回到审阅状态
    """
    try:
        return _session_response(review_service.dismiss_error(db, session_id))
    except DOMAIN_ERRORS as e:
        raise http_error(e)


@router.post("/{session_id}/send")
def send_for_signature(session_id: str, request: SubmitRequest | None = None, db: Session = Depends(get_db)):
    """
    提交电子签名，失败后会话进入 error 状态，可再次调用重试
    """
    try:
        signatories = request.signatories if request else None
        session, result = review_service.submit(db, session_id, signatories)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    except ValueError as e:
        # 字段坐标非法
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(f"Error sending review session {session_id} for signature: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "session": _session_response(session),
        "result": result.model_dump(by_alias=True),
    }
