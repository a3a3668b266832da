"""
漫画层级读取

按阅读顺序（卷 → 话 → 页 → 格）展开一部漫画的全部页面，
返回与ORM会话解耦的只读快照，供提示词组装和流水线使用。
"""

import logging
from collections import defaultdict
from typing import Dict, List

from sqlalchemy.ext.asyncio import AsyncSession

from ...core.constants import ComicConstants
from ...exceptions import ResourceNotFoundError
from ...repositories.comic_repository import (
    ComicPageRepository,
    ComicPanelRepository,
    ComicRepository,
)
from .models import ComicHierarchy, PageSnapshot, PanelSnapshot

logger = logging.getLogger(__name__)


class ComicHierarchyReader:
    """漫画层级读取器，只读，无副作用"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.comic_repo = ComicRepository(session)
        self.page_repo = ComicPageRepository(session)
        self.panel_repo = ComicPanelRepository(session)

    async def load(self, comic_id: int) -> ComicHierarchy:
        """
        加载漫画的全部页面及分镜

        没有分镜的页面同样会返回（panels 为空），由流水线显式记录失败。

        Args:
            comic_id: 漫画ID

        Returns:
            ComicHierarchy: 按阅读顺序排列的页面快照

        Raises:
            ResourceNotFoundError: 漫画不存在
        """
        comic = await self.comic_repo.get_by_id(comic_id)
        if comic is None:
            raise ResourceNotFoundError("漫画", f"ID={comic_id}")

        style = comic.style or ComicConstants.DEFAULT_STYLE

        rows = await self.page_repo.list_in_reading_order(comic_id)
        page_ids = [page.id for page, _, _ in rows]

        panels_by_page: Dict[int, List[PanelSnapshot]] = defaultdict(list)
        for panel in await self.panel_repo.list_by_page_ids(page_ids):
            panels_by_page[panel.page_id].append(
                PanelSnapshot(
                    panel_number=panel.panel_number,
                    scene_description=panel.scene_description,
                    dialogue=panel.dialogue,
                    narration=panel.narration,
                    emotion=panel.emotion,
                    camera_angle=panel.camera_angle,
                    characters=panel.characters,
                )
            )

        pages = tuple(
            PageSnapshot(
                page_id=page.id,
                page_number=page.page_number,
                volume_number=volume_number,
                episode_number=episode_number,
                layout=page.page_layout,
                status=page.status,
                image_url=page.image_url,
                panels=tuple(panels_by_page.get(page.id, ())),
            )
            for page, volume_number, episode_number in rows
        )

        logger.debug(
            "加载漫画层级: comic_id=%d style=%s pages=%d panels=%d",
            comic_id,
            style,
            len(pages),
            sum(page.panel_count for page in pages),
        )
        return ComicHierarchy(comic_id=comic_id, style=style, pages=pages)
