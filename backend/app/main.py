"""
科研成果申报门户后端

挂载 /api/research 路由（申报、审稿建议、重新提交），启动时建表。
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import contributions_router
from app.config import settings
from app.database import init_db

logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("启动 %s %s", settings.APP_NAME, settings.APP_VERSION)
    init_db()
    logger.info("可编辑状态: %s", ", ".join(settings.EDITABLE_STATUSES))
    if settings.PORTAL_API_BASE_URL:
        logger.info("远端门户 API: %s", settings.PORTAL_API_BASE_URL)

    yield

    logger.info("%s 已关闭", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="科研成果申报、审稿建议处理与重新提交",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(contributions_router)


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
        "contributions": contributions_router.prefix,
    }


@app.get("/api/health")
async def health_check(request: Request):
    logger.debug(
        "[health_check] from %s",
        request.client.host if request.client else "-",
    )
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """路由未映射的异常统一返回 500"""
    logger.exception(
        "[global_exception] path=%s method=%s error=%s",
        request.url.path,
        request.method,
        exc,
    )
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": str(exc),
            "message": "服务器内部错误",
        },
    )
