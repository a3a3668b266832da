"""
漫画封面生成服务

根据标题、简介与画风生成一张封面图；指定了已存在的漫画时同时写回其封面字段。
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ...core.constants import ComicConstants, PipelineMessages
from ...exceptions import ImageServiceError, InvalidParameterError
from ...repositories.comic_repository import ComicRepository
from .client import ImageGenerationClient
from .prompt_composer import compose_cover_prompt

logger = logging.getLogger(__name__)


@dataclass
class CoverResult:
    cover_url: str
    prompt: str
    comic_id: Optional[int] = None


class ComicCoverService:
    """封面生成服务"""

    def __init__(self, session: AsyncSession, client: ImageGenerationClient):
        self.session = session
        self.client = client
        self.comic_repo = ComicRepository(session)

    async def generate_cover(
        self,
        title: Optional[str],
        description: Optional[str],
        style: Optional[str] = None,
        comic_id: Optional[int] = None,
    ) -> CoverResult:
        """
        生成漫画封面

        封面不使用负面提示词，且只请求一次（客户端内部重试除外），失败直接报错。

        Raises:
            InvalidParameterError: 缺少标题或简介
            ImageServiceError: 图片生成失败
        """
        if not title or not description:
            raise InvalidParameterError("请提供标题和描述", "title/description")

        prompt = compose_cover_prompt(title, description, style or ComicConstants.DEFAULT_STYLE)
        outcome = await self.client.generate(prompt, negative_prompt="")
        if not outcome.success:
            logger.error("封面生成失败: comic_id=%s reason=%s", comic_id, outcome.message)
            raise ImageServiceError(PipelineMessages.COVER_FAILED, outcome.message)

        if comic_id is not None:
            comic = await self.comic_repo.get_by_id(comic_id)
            if comic is None:
                logger.warning("封面已生成但漫画不存在，未写回封面: comic_id=%d", comic_id)
            else:
                await self.comic_repo.update_fields(comic, cover_image=outcome.image_url)
                await self.session.commit()
                logger.info("漫画%d封面已更新", comic_id)

        return CoverResult(cover_url=outcome.image_url, prompt=prompt, comic_id=comic_id)
