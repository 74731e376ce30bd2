from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from collections.abc import Iterator

from legaldoc.core.config import settings


def _engine_options(database_url: str) -> dict[str, Any]:
    """
    根据数据库类型生成引擎参数

    SQLite 不支持连接池大小参数，且需要允许跨线程使用连接
    """
    if database_url.startswith("sqlite"):
        return {
            "connect_args": {"check_same_thread": False},
            "echo": settings.DATABASE_ECHO,
        }
    return {
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "echo": settings.DATABASE_ECHO,
    }


# 创建数据库引擎
engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

# 创建会话工厂
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# 创建基础模型类
Base = declarative_base()


def get_db() -> Iterator[Session]:
    """
    获取数据库会话

    Yields:
        Session: SQLAlchemy数据库会话对象
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
