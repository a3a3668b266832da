"""
数据库引擎与会话

页面状态由流水线在独立会话中逐页提交，读取层级时另用请求级会话，
因此 SQLite 下需要 WAL 与较长的锁等待，让读写可以交错进行。
"""

from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from ..core.config import settings

SQLITE_LOCK_TIMEOUT_SECONDS = 30

_SQLITE_PRAGMAS = (
    "PRAGMA foreign_keys=ON",
    "PRAGMA journal_mode=WAL",
    f"PRAGMA busy_timeout={SQLITE_LOCK_TIMEOUT_SECONDS * 1000}",
)


def _apply_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    cursor = dbapi_conn.cursor()
    try:
        for pragma in _SQLITE_PRAGMAS:
            cursor.execute(pragma)
    finally:
        cursor.close()


def build_engine(database_uri: str, echo: bool = False) -> AsyncEngine:
    """
    按数据库类型创建异步引擎

    - SQLite：不使用连接池，每个连接启用外键、WAL 和锁等待
    - MySQL：连接复用，取用前检查连接是否存活，一小时回收一次

    Args:
        database_uri: SQLAlchemy 连接串
        echo: 是否输出SQL日志

    Returns:
        AsyncEngine: 异步引擎
    """
    if make_url(database_uri).get_backend_name() != "sqlite":
        return create_async_engine(database_uri, echo=echo, pool_pre_ping=True, pool_recycle=3600)

    sqlite_engine = create_async_engine(
        database_uri,
        echo=echo,
        poolclass=NullPool,
        connect_args={"check_same_thread": False, "timeout": SQLITE_LOCK_TIMEOUT_SECONDS},
    )
    event.listen(sqlite_engine.sync_engine, "connect", _apply_sqlite_pragmas)
    return sqlite_engine


engine = build_engine(settings.sqlalchemy_database_uri, echo=settings.debug)

AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """请求级数据库会话（FastAPI 依赖项）"""
    async with AsyncSessionLocal() as session:
        yield session
