"""
API路由模块
"""
from app.api.contributions import router as contributions_router

__all__ = [
    "contributions_router",
]
