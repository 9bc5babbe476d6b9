"""
数据库会话管理

科研成果、审稿建议与状态历史共用一个引擎；接口层每个请求拿一个 Session，
服务层自行 commit，出错时由调用方 rollback。
"""
import logging
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.config import settings

logger = logging.getLogger(__name__)

_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

engine = create_engine(
    settings.DATABASE_URL,
    # SQLite 连接会被 FastAPI 的线程池跨线程使用
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    echo=settings.DEBUG,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """FastAPI 依赖：每个请求一个 Session，请求结束时关闭"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """建表（成果、审稿建议、状态历史）；已存在的表不动"""
    from app import models  # noqa: F401  注册 ORM 模型

    Base.metadata.create_all(bind=engine)
    logger.info("数据库表就绪: %s", ", ".join(sorted(Base.metadata.tables)))
