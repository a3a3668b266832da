from functools import lru_cache
from pathlib import Path
from typing import Optional
import sys

from pydantic import AliasChoices, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url


class Settings(BaseSettings):
    """应用全局配置，所有可调参数集中于此，统一加载自环境变量。"""

    # -------------------- 基础应用配置 --------------------
    app_name: str = Field(default="ComicForge Page Generator API", description="FastAPI 文档标题")
    environment: str = Field(default="development", description="当前环境标识")
    debug: bool = Field(default=False, description="是否开启调试模式")
    logging_level: str = Field(
        default="INFO",
        env="LOGGING_LEVEL",
        description="应用日志级别",
    )

    # -------------------- 数据库配置 --------------------
    database_url: Optional[str] = Field(
        default=None,
        env="DATABASE_URL",
        description="完整的数据库连接串，填入后覆盖下方数据库配置"
    )
    db_provider: str = Field(
        default="sqlite",
        env="DB_PROVIDER",
        description="数据库类型，仅支持 mysql 或 sqlite"
    )
    mysql_host: str = Field(default="localhost", env="MYSQL_HOST", description="MySQL 主机名")
    mysql_port: int = Field(default=3306, env="MYSQL_PORT", description="MySQL 端口")
    mysql_user: str = Field(default="root", env="MYSQL_USER", description="MySQL 用户名")
    mysql_password: str = Field(default="", env="MYSQL_PASSWORD", description="MySQL 密码")
    mysql_database: str = Field(default="comicforge", env="MYSQL_DATABASE", description="MySQL 数据库名称")

    # -------------------- 图片生成服务（通义万象）配置 --------------------
    dashscope_api_key: Optional[str] = Field(
        default=None,
        env="DASHSCOPE_API_KEY",
        description="阿里云 DashScope API Key",
    )
    dashscope_base_url: HttpUrl = Field(
        default="https://dashscope.aliyuncs.com/api/v1/services/aigc/multimodal-generation/generation",
        env="DASHSCOPE_BASE_URL",
        validation_alias=AliasChoices("DASHSCOPE_BASE_URL", "DASHSCOPE_API_BASE_URL"),
        description="多模态生成接口地址",
    )
    image_model_name: str = Field(default="wan2.6-t2i", env="IMAGE_MODEL_NAME", description="文生图模型名称")
    image_negative_prompt: str = Field(
        default="模糊，低质量，变形，扭曲，文字，水印",
        env="IMAGE_NEGATIVE_PROMPT",
        description="页面生成使用的负面提示词",
    )
    image_size: str = Field(default="1280*1280", env="IMAGE_SIZE", description="生成图片尺寸")
    image_request_timeout: float = Field(
        default=180.0,
        gt=0,
        env="IMAGE_REQUEST_TIMEOUT",
        description="单次图片生成请求超时（秒）",
    )
    image_max_attempts: int = Field(
        default=2,
        ge=1,
        le=5,
        env="IMAGE_MAX_ATTEMPTS",
        description="单页最多尝试次数（含首次）",
    )
    image_retry_backoff_base: float = Field(
        default=1.0,
        ge=0.0,
        env="IMAGE_RETRY_BACKOFF_BASE",
        description="重试退避基数（秒），第n次重试等待 base*2^(n-1)",
    )

    # -------------------- 页面生成流水线配置 --------------------
    page_generation_interval: float = Field(
        default=2.0,
        ge=0.0,
        env="PAGE_GENERATION_INTERVAL",
        description="相邻两次图片生成请求的最小间隔（秒）",
    )
    page_generation_max_interval: float = Field(
        default=30.0,
        ge=0.0,
        env="PAGE_GENERATION_MAX_INTERVAL",
        description="服务限流时间隔可放大到的上限（秒）",
    )
    page_max_concurrent: int = Field(
        default=1,
        ge=1,
        le=3,
        env="PAGE_MAX_CONCURRENT",
        description="单次流水线同时在途的页面数，1 表示严格串行",
    )
    page_run_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        env="PAGE_RUN_TIMEOUT_SECONDS",
        description="单次流水线的最长运行时间，超时后不再启动新页面",
    )

    model_config = SettingsConfigDict(
        env_file=(".env", "backend/.env"),
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def _normalize_database_url(cls, value: Optional[str]) -> Optional[str]:
        """当环境变量中提供 DATABASE_URL 时，原样返回，便于自定义。"""
        return value.strip() if isinstance(value, str) and value.strip() else value

    @field_validator("db_provider", mode="before")
    @classmethod
    def _normalize_db_provider(cls, value: Optional[str]) -> str:
        """统一数据库类型大小写，并限制为受支持的驱动。"""
        candidate = (value or "sqlite").strip().lower()
        if candidate not in {"mysql", "sqlite"}:
            raise ValueError("DB_PROVIDER 仅支持 mysql 或 sqlite")
        return candidate

    @field_validator("logging_level", mode="before")
    @classmethod
    def _normalize_logging_level(cls, value: Optional[str]) -> str:
        """规范日志级别配置。"""
        candidate = (value or "INFO").strip().upper()
        valid_levels = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}
        if candidate not in valid_levels:
            raise ValueError("LOGGING_LEVEL 仅支持 CRITICAL/ERROR/WARNING/INFO/DEBUG/NOTSET")
        return candidate

    @property
    def sqlalchemy_database_uri(self) -> str:
        """生成 SQLAlchemy 兼容的异步连接串，数据库类型由 DB_PROVIDER 控制。"""
        if self.database_url:
            url = make_url(self.database_url)
            database = url.database or ""
            if url.get_backend_name() != "sqlite":
                database = database.strip("/")
            normalized = URL.create(
                drivername=url.drivername,
                username=url.username,
                password=url.password,
                host=url.host,
                port=url.port,
                database=database or None,
                query=url.query,
            )
            return normalized.render_as_string(hide_password=False)

        if self.db_provider == "sqlite":
            # SQLite 固定使用 storage/comicforge.db，并转换为绝对路径以避免运行目录差异
            db_path = (self.storage_dir / "comicforge.db").resolve()
            return f"sqlite+aiosqlite:///{db_path}"

        # MySQL 分支：统一对密码进行 URL 编码，避免特殊字符破坏连接串
        from urllib.parse import quote_plus

        encoded_password = quote_plus(self.mysql_password)
        database = (self.mysql_database or "").strip("/")
        return (
            f"mysql+asyncmy://{self.mysql_user}:{encoded_password}"
            f"@{self.mysql_host}:{self.mysql_port}/{database}"
        )

    @property
    def is_sqlite_backend(self) -> bool:
        """辅助属性：判断当前连接串是否指向 SQLite，用于差异化初始化流程。"""
        return make_url(self.sqlalchemy_database_uri).get_backend_name() == "sqlite"

    @property
    def storage_dir(self) -> Path:
        """存储目录根路径"""
        if getattr(sys, 'frozen', False):
            return Path(sys.executable).parent / "storage"
        return Path(__file__).resolve().parents[2] / "storage"


@lru_cache
def get_settings() -> Settings:
    """使用 LRU 缓存确保配置只初始化一次，减少 IO 与解析开销。"""
    return Settings()


def reload_settings() -> Settings:
    """重新加载配置，清除缓存并返回新的配置实例。

    用于热更新场景，当.env文件被修改后调用此函数可立即生效。
    同时会更新当前模块中的全局settings变量。
    """
    get_settings.cache_clear()
    new_settings = get_settings()

    current_module = sys.modules[__name__]
    setattr(current_module, 'settings', new_settings)

    return new_settings


settings = get_settings()
