"""
漫画内容层级模型

漫画 → 卷 → 话 → 页 → 分镜格。
页面是图片生成与状态跟踪的单位；分镜格只作为提示词的输入，生成流程不会修改。
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.constants import PageStatus
from ..db.base import Base
from .mixins import TimestampsMixin


class Comic(TimestampsMixin, Base):
    """漫画基本信息"""

    __tablename__ = "comics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    style: Mapped[Optional[str]] = mapped_column(String(100))  # 画风，如 anime
    cover_image: Mapped[Optional[str]] = mapped_column(String(500))

    volumes: Mapped[list["ComicVolume"]] = relationship(
        back_populates="comic", cascade="all, delete-orphan", order_by="ComicVolume.volume_number"
    )


class ComicVolume(TimestampsMixin, Base):
    """漫画卷"""

    __tablename__ = "comic_volumes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    comic_id: Mapped[int] = mapped_column(ForeignKey("comics.id", ondelete="CASCADE"), nullable=False, index=True)
    volume_number: Mapped[int] = mapped_column(Integer, nullable=False)  # 第几卷
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    comic: Mapped["Comic"] = relationship(back_populates="volumes")
    episodes: Mapped[list["ComicEpisode"]] = relationship(
        back_populates="volume", cascade="all, delete-orphan", order_by="ComicEpisode.episode_number"
    )


class ComicEpisode(TimestampsMixin, Base):
    """漫画话"""

    __tablename__ = "comic_episodes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    comic_id: Mapped[int] = mapped_column(ForeignKey("comics.id", ondelete="CASCADE"), nullable=False, index=True)
    volume_id: Mapped[int] = mapped_column(
        ForeignKey("comic_volumes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    episode_number: Mapped[int] = mapped_column(Integer, nullable=False)  # 第几话
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    volume: Mapped["ComicVolume"] = relationship(back_populates="episodes")
    pages: Mapped[list["ComicPage"]] = relationship(
        back_populates="episode", cascade="all, delete-orphan", order_by="ComicPage.page_number"
    )


class ComicPage(TimestampsMixin, Base):
    """漫画页，图片生成的基本单位"""

    __tablename__ = "comic_pages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    episode_id: Mapped[int] = mapped_column(
        ForeignKey("comic_episodes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    page_number: Mapped[int] = mapped_column(Integer, nullable=False)  # 第几页
    page_layout: Mapped[Optional[str]] = mapped_column(String(50))  # 单格、双格、多格等
    image_url: Mapped[Optional[str]] = mapped_column(String(500))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PageStatus.PENDING.value)

    episode: Mapped["ComicEpisode"] = relationship(back_populates="pages")
    panels: Mapped[list["ComicPanel"]] = relationship(
        back_populates="page", cascade="all, delete-orphan", order_by="ComicPanel.panel_number"
    )


class ComicPanel(TimestampsMixin, Base):
    """分镜格，每格不单独出图，而是组合进页面提示词"""

    __tablename__ = "comic_panels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    page_id: Mapped[int] = mapped_column(ForeignKey("comic_pages.id", ondelete="CASCADE"), nullable=False, index=True)
    panel_number: Mapped[int] = mapped_column(Integer, nullable=False)  # 第几格

    scene_description: Mapped[Optional[str]] = mapped_column(Text)  # 画面描述
    dialogue: Mapped[Optional[str]] = mapped_column(Text)  # 对话
    narration: Mapped[Optional[str]] = mapped_column(Text)  # 旁白
    emotion: Mapped[Optional[str]] = mapped_column(String(50))  # 情感氛围
    camera_angle: Mapped[Optional[str]] = mapped_column(String(50))  # 镜头角度
    characters: Mapped[Optional[str]] = mapped_column(Text)  # 角色信息

    page: Mapped["ComicPage"] = relationship(back_populates="panels")
