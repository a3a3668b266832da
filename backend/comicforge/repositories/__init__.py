"""Repository层"""

from .base import BaseRepository
from .comic_repository import ComicPageRepository, ComicPanelRepository, ComicRepository

__all__ = [
    "BaseRepository",
    "ComicRepository",
    "ComicPageRepository",
    "ComicPanelRepository",
]
