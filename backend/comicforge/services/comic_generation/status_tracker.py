"""
页面状态跟踪

在每次生成前后写入页面的生命周期状态（成功时连同图片URL）。
状态写入是尽力而为的：任何一页写入失败只记录警告并返回False，
不会中断流水线对后续页面的处理。每次写入使用独立的会话并单独提交。
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...core.constants import PageStatus
from ...core.state_validators import coerce_page_status, validate_page_transition
from ...exceptions import InvalidStateTransitionError
from ...repositories.comic_repository import ComicPageRepository
from .models import PageOutcome

logger = logging.getLogger(__name__)


class PageStatusTracker:
    """页面状态写入器"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def mark_generating(self, page_id: int) -> bool:
        """标记页面开始生成"""
        return await self._write(page_id, PageStatus.GENERATING, None)

    async def mark_failed(self, page_id: int) -> bool:
        """直接标记页面失败（没有分镜的页面）"""
        return await self.record_outcome(page_id, PageOutcome.failed())

    async def record_outcome(self, page_id: int, outcome: PageOutcome) -> bool:
        """
        记录页面的最终结果

        published 写入图片URL；failed 清空图片URL。

        Returns:
            是否写入成功（状态未变化时视为成功）
        """
        return await self._write(page_id, outcome.status, outcome.image_url)

    async def _write(self, page_id: int, target: PageStatus, image_url: Optional[str]) -> bool:
        async with self.session_factory() as session:
            try:
                repo = ComicPageRepository(session)
                page = await repo.get_by_id(page_id)
                if page is None:
                    logger.warning("页面状态写入跳过，页面不存在: page_id=%d target=%s", page_id, target.value)
                    return False

                current = coerce_page_status(page.status)
                # 进入 generating 时清空旧图片URL，只有 published 才带URL
                new_url = None if target == PageStatus.GENERATING else image_url

                if current == target and page.status == target.value and page.image_url == new_url:
                    logger.debug("页面状态未变化，跳过写入: page_id=%d status=%s", page_id, target.value)
                    return True

                validate_page_transition(current, target)
                await repo.update_status(page, target.value, new_url)
                await session.commit()
            except InvalidStateTransitionError as exc:
                logger.warning("页面状态写入被拒绝: page_id=%d %s", page_id, exc.detail)
                return False
            except SQLAlchemyError:
                await session.rollback()
                logger.warning("页面状态写入失败: page_id=%d target=%s", page_id, target.value, exc_info=True)
                return False

        logger.debug("页面状态已更新: page_id=%d %s -> %s", page_id, current.value, target.value)
        return True
