from fastapi import APIRouter, HTTPException

from legaldoc.api.v1.errors import http_error
from legaldoc.core.logger import get_logger
from legaldoc.schemas.signature import SignatureSubmission
from legaldoc.services.signature import SignatureServiceError, signature_service

router = APIRouter()
logger = get_logger(__name__)


@router.post("/rollout")
def rollout(submission: SignatureSubmission):
    """
    无会话的签署提交

    字段须已换算到 96 DPI 像素坐标；页码从1开始，由服务转换为从0开始。
    """
    try:
        result = signature_service.send_for_signature(submission)
        return result.model_dump(by_alias=True)
    except SignatureServiceError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error sending document for signature: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to prepare and send contract: {str(e)}")
