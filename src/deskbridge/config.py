"""应用配置管理."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用配置（环境变量）.

    只包含基础设施配置；各知识库的帮助中心凭证由调用方通过
    HelpdeskConfig 传入，这里不读取任何密钥.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 数据库
    database_url: str = "sqlite+aiosqlite:///./deskbridge.db"

    # 各平台每分钟请求上限
    zendesk_requests_per_minute: int = 700
    freshdesk_requests_per_minute: int = 80

    # HTTP 客户端
    http_timeout_seconds: float = 30.0
    freshdesk_page_size: int = 100

    # 日志
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """获取应用配置（带缓存）."""
    return Settings()
