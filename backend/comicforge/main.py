"""FastAPI 应用入口，负责装配路由、依赖与生命周期管理。"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.logging_config import setup_logging, setup_exception_hook, log_startup_info
from .db.init_db import init_db
from .exceptions import ComicForgeException


# 重要：必须先配置 logging，再导入 api_router
# 否则 router 模块中的 logger 会在配置完成前被创建，导致日志无法正常输出
setup_logging()
setup_exception_hook()

from .api.routers import api_router  # noqa: E402
from .services.comic_generation import HTTPClientManager  # noqa: E402

log_startup_info()
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理：启动时初始化数据库；关闭时清理HTTP连接池"""
    await init_db()
    yield
    await HTTPClientManager.close_client()


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    version=APP_VERSION,
    lifespan=lifespan,
)


# 全局异常处理器：捕获所有业务异常并转换为HTTP响应
@app.exception_handler(ComicForgeException)
async def comicforge_exception_handler(request: Request, exc: ComicForgeException):
    """
    统一处理所有业务异常

    日志中会记录详细错误信息（detail），用户只看到友好的message。
    """
    logger.error(
        "业务异常 [%s %s]: %s (状态码: %d)",
        request.method,
        request.url.path,
        exc.detail,
        exc.status_code
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message}
    )


# 全局异常处理器：捕获所有未处理的异常
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """捕获所有未处理的异常，防止服务崩溃"""
    logger.critical(
        "未捕获的异常 [%s %s]: %s",
        request.method,
        request.url.path,
        str(exc),
        exc_info=exc,
    )
    for handler in logging.root.handlers:
        handler.flush()

    return JSONResponse(
        status_code=500,
        content={"detail": f"服务器内部错误: {type(exc).__name__}: {str(exc)}"}
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
@app.get("/api/health", tags=["Health"])
async def health_check():
    """健康检查接口，返回应用状态。"""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": APP_VERSION,
    }
