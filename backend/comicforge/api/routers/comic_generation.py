"""
漫画图片生成API路由

- 页面图片批量生成（部分失败容忍，全部失败时返回500）
- 取消正在运行的页面生成
- 页面生成进度查询
- 封面生成
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...core.config import settings
from ...core.dependencies import (
    get_cover_service,
    get_hierarchy_reader,
    get_page_generation_pipeline,
    get_run_registry,
)
from ...core.constants import PipelineMessages
from ...exceptions import InvalidParameterError, ResourceNotFoundError
from ...schemas.comic_generation import (
    CoverGenerationData,
    CoverGenerationRequest,
    PageGenerationRequest,
    PageStatusItem,
)
from ...services.comic_generation import (
    CancellationToken,
    ComicCoverService,
    ComicHierarchyReader,
    PageGenerationPipeline,
    PageRunRegistry,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/comic/generate", tags=["comic-generation"])


# ==================== 页面图片生成 ====================

@router.post("/pages")
async def generate_pages(
    request: PageGenerationRequest,
    pipeline: PageGenerationPipeline = Depends(get_page_generation_pipeline),
    registry: PageRunRegistry = Depends(get_run_registry),
):
    """
    为漫画的所有页面生成图片

    至少一页成功即返回200，image_urls 中失败页面位置为空字符串；
    全部失败时返回500，并附带每页的失败原因。
    """
    if not request.comic_id:
        raise InvalidParameterError("请提供comicId", "comicId")

    token = CancellationToken.with_timeout(settings.page_run_timeout_seconds)
    with registry.track(request.comic_id, token):
        summary = await pipeline.run(request.comic_id, cancel_token=token)

    data = summary.to_payload()
    if not summary.success:
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": PipelineMessages.TOTAL_FAILURE,
                "detail": "; ".join(summary.errors),
                "data": data,
            },
        )

    return {"success": True, "data": data}


@router.post("/pages/{comic_id}/cancel")
async def cancel_page_generation(
    comic_id: int,
    registry: PageRunRegistry = Depends(get_run_registry),
):
    """取消漫画正在运行的页面生成，已在途的页面会继续完成"""
    if not registry.cancel(comic_id):
        raise ResourceNotFoundError("页面生成任务", f"comic_id={comic_id}")
    return {"success": True}


@router.get("/pages/{comic_id}/status")
async def get_page_status(
    comic_id: int,
    reader: ComicHierarchyReader = Depends(get_hierarchy_reader),
    registry: PageRunRegistry = Depends(get_run_registry),
):
    """按阅读顺序返回每页的生成状态"""
    hierarchy = await reader.load(comic_id)
    pages: List[PageStatusItem] = [
        PageStatusItem(
            page_id=page.page_id,
            page_number=page.page_number,
            volume_number=page.volume_number,
            episode_number=page.episode_number,
            status=page.status,
            image_url=page.image_url,
        )
        for page in hierarchy.pages
    ]
    return {
        "success": True,
        "data": {
            "comicId": comic_id,
            "running": registry.is_running(comic_id),
            "pages": [page.model_dump(by_alias=True) for page in pages],
        },
    }


# ==================== 封面生成 ====================

@router.post("/cover")
async def generate_cover(
    request: CoverGenerationRequest,
    service: ComicCoverService = Depends(get_cover_service),
):
    """根据标题与简介生成漫画封面"""
    result = await service.generate_cover(
        title=request.title,
        description=request.description,
        style=request.style,
        comic_id=request.comic_id,
    )
    data = CoverGenerationData(
        cover_url=result.cover_url,
        comic_id=result.comic_id,
        prompt=result.prompt,
    )
    return {"success": True, "data": data.model_dump(by_alias=True)}
