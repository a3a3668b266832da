"""
漫画数据访问层

提供漫画层级（漫画/卷/话/页/分镜）的读取，以及页面状态的写入。
所有列表查询都按序号升序返回，序号相同时按主键兜底，保证顺序确定。
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select

from .base import BaseRepository
from ..models.comic import Comic, ComicEpisode, ComicPage, ComicPanel, ComicVolume


class ComicRepository(BaseRepository[Comic]):
    """漫画Repository"""

    model = Comic

    async def get_by_id(self, comic_id: int) -> Optional[Comic]:
        return await self.get(id=comic_id)


class ComicPageRepository(BaseRepository[ComicPage]):
    """漫画页Repository"""

    model = ComicPage

    async def get_by_id(self, page_id: int) -> Optional[ComicPage]:
        return await self.get(id=page_id)

    async def list_in_reading_order(
        self,
        comic_id: int,
    ) -> List[Tuple[ComicPage, int, int]]:
        """
        按阅读顺序获取漫画的所有页面

        顺序为 卷序号 → 话序号 → 页序号，全部升序。

        Args:
            comic_id: 漫画ID

        Returns:
            (页面, 卷序号, 话序号) 元组列表
        """
        stmt = (
            select(ComicPage, ComicVolume.volume_number, ComicEpisode.episode_number)
            .join(ComicEpisode, ComicPage.episode_id == ComicEpisode.id)
            .join(ComicVolume, ComicEpisode.volume_id == ComicVolume.id)
            .where(ComicVolume.comic_id == comic_id)
            .order_by(
                ComicVolume.volume_number,
                ComicVolume.id,
                ComicEpisode.episode_number,
                ComicEpisode.id,
                ComicPage.page_number,
                ComicPage.id,
            )
        )
        result = await self.session.execute(stmt)
        return [(page, volume_number, episode_number) for page, volume_number, episode_number in result.all()]

    async def update_status(
        self,
        page: ComicPage,
        status: str,
        image_url: Optional[str],
    ) -> ComicPage:
        """
        写入页面状态与图片URL

        与 update_fields 不同，这里允许把 image_url 显式写成 None。
        """
        page.status = status
        page.image_url = image_url
        await self.session.flush()
        return page


class ComicPanelRepository(BaseRepository[ComicPanel]):
    """分镜格Repository"""

    model = ComicPanel

    async def list_by_page_ids(self, page_ids: Sequence[int]) -> Iterable[ComicPanel]:
        """
        批量获取多个页面的分镜，按 页面ID → 格序号 排序

        Args:
            page_ids: 页面ID列表

        Returns:
            分镜列表
        """
        if not page_ids:
            return []

        stmt = (
            select(ComicPanel)
            .where(ComicPanel.page_id.in_(page_ids))
            .order_by(ComicPanel.page_id, ComicPanel.panel_number, ComicPanel.id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
