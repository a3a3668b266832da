"""
依赖注入模块

为路由装配图片生成相关服务。读取使用请求作用域的会话；
页面状态写入使用独立会话工厂，保证每页的写入单独提交。
"""

import logging

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..db.session import AsyncSessionLocal, get_session
from ..services.comic_generation import (
    AdaptiveRateLimiter,
    ComicCoverService,
    ComicHierarchyReader,
    ImageGenerationClient,
    PageGenerationPipeline,
    PageRunRegistry,
    PageStatusTracker,
)

logger = logging.getLogger(__name__)


def get_image_client() -> ImageGenerationClient:
    """获取图片生成客户端（使用全局共享的HTTP连接池）"""
    return ImageGenerationClient.from_settings(settings)


def get_run_registry() -> PageRunRegistry:
    return PageRunRegistry.get_instance()


async def get_hierarchy_reader(
    session: AsyncSession = Depends(get_session),
) -> ComicHierarchyReader:
    return ComicHierarchyReader(session)


async def get_page_generation_pipeline(
    reader: ComicHierarchyReader = Depends(get_hierarchy_reader),
    client: ImageGenerationClient = Depends(get_image_client),
) -> PageGenerationPipeline:
    """
    获取页面生成流水线

    速率限制器每次运行新建，间隔从配置的最小值开始。
    """
    return PageGenerationPipeline(
        reader=reader,
        client=client,
        tracker=PageStatusTracker(AsyncSessionLocal),
        rate_limiter=AdaptiveRateLimiter.from_settings(settings),
        max_concurrent=settings.page_max_concurrent,
    )


async def get_cover_service(
    session: AsyncSession = Depends(get_session),
    client: ImageGenerationClient = Depends(get_image_client),
) -> ComicCoverService:
    return ComicCoverService(session, client)
