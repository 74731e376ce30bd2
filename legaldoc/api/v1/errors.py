from fastapi import HTTPException

from legaldoc.core.logger import get_logger
from legaldoc.services.block_editor import BlockPathError
from legaldoc.services.document_ingestion import DocumentValidationError
from legaldoc.services.drafting import DraftingError
from legaldoc.services.review import InvalidStateTransition, ReviewSessionNotFound
from legaldoc.services.signature import SignatureServiceError

logger = get_logger(__name__)

# 端点需要转换为 HTTP 错误的业务异常
DOMAIN_ERRORS = (
    DocumentValidationError,
    BlockPathError,
    InvalidStateTransition,
    ReviewSessionNotFound,
    SignatureServiceError,
    DraftingError,
)


def http_error(e: Exception) -> HTTPException:
    """业务异常 → HTTPException"""
    if isinstance(e, SignatureServiceError):
        logger.error(f"Signature service error: {e}")
        return HTTPException(status_code=502, detail={"message": str(e), "retryable": True})
    if isinstance(e, DraftingError):
        logger.error(f"Drafting error: {e}")
        return HTTPException(status_code=502, detail=str(e))
    if isinstance(e, ReviewSessionNotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidStateTransition):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, BlockPathError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, DocumentValidationError):
        return HTTPException(status_code=422, detail=str(e))
    logger.error(f"Unhandled error: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=str(e))
