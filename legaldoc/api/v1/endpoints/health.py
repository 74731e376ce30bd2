from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from legaldoc.core.config import settings
from legaldoc.core.database import get_db
from legaldoc.core.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/")
async def health_check(db: Session = Depends(get_db)) -> dict:
    """
    健康检查接口
    """
    # 检查数据库连接
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "unhealthy"

    return {
        "status": db_status,
        "version": settings.VERSION,
        "services": {
            "database": db_status,
            "drafting": "configured" if settings.OPENAI_API_KEY else "not_configured",
            "signature": "configured" if settings.SIGNATURE_CLIENT_ID else "not_configured",
        }
    }
