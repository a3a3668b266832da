import logging
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import create_async_engine

from ..core.config import settings
from .. import models  # noqa: F401  确保所有模型注册到 Base.metadata
from .base import Base
from .session import engine

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """初始化数据库结构。漫画、卷、话、页、分镜数据由创作流程写入，这里只负责建表。"""

    await _ensure_database_exists()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("数据库表结构已初始化: %s", ", ".join(sorted(Base.metadata.tables)))


async def _ensure_database_exists() -> None:
    """在首次连接前确认数据库存在，针对不同驱动做最小化准备工作。"""
    url = make_url(settings.sqlalchemy_database_uri)

    if url.get_backend_name() == "sqlite":
        # SQLite 采用文件数据库，确保父目录存在即可；内存库无需处理
        if not url.database or url.database == ":memory:":
            return
        db_path = Path(url.database).expanduser()
        if not db_path.is_absolute():
            db_path = (settings.storage_dir.parent / db_path).resolve()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return

    database = (url.database or "").strip("/")
    if not database:
        return

    admin_url = URL.create(
        drivername=url.drivername,
        username=url.username,
        password=url.password,
        host=url.host,
        port=url.port,
        database=None,
        query=url.query,
    )

    admin_engine = create_async_engine(
        admin_url.render_as_string(hide_password=False),
        isolation_level="AUTOCOMMIT",
    )
    async with admin_engine.begin() as conn:
        await conn.execute(text(f"CREATE DATABASE IF NOT EXISTS `{database}`"))
    await admin_engine.dispose()
