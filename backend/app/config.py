"""
应用配置管理
使用pydantic-settings进行环境变量管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """应用设置"""

    # 应用基本配置
    APP_NAME: str = "Research Contribution Portal"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./research_portal.db"

    # 远程门户 API（HttpContributionStore 使用）
    PORTAL_API_BASE_URL: str = "http://localhost:8000/api"
    PORTAL_API_TIMEOUT: float = 20.0
    PORTAL_API_TOKEN: str = ""

    # 允许编辑的工作流状态
    EDITABLE_STATUSES: List[str] = [
        "draft",
        "changes_required",
        "resubmitted",
    ]

    # CORS配置
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3000",
    ]

    # Pydantic v2配置
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


# 创建全局设置实例
settings = Settings()


def get_settings() -> Settings:
    """获取全局Settings单例"""
    return settings
