"""集中导出 ORM 模型，确保 SQLAlchemy 元数据在初始化时被正确加载。"""

from .comic import (
    Comic,
    ComicEpisode,
    ComicPage,
    ComicPanel,
    ComicVolume,
)

__all__ = [
    "Comic",
    "ComicVolume",
    "ComicEpisode",
    "ComicPage",
    "ComicPanel",
]
