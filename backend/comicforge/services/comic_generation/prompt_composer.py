"""
提示词组装

把页面的分镜数据拼成一段中文生图提示词。纯函数，不做任何IO，
相同的分镜、布局与风格永远得到逐字节相同的结果。
"""

from typing import List

from ...core.constants import ComicConstants
from ...exceptions import InvalidParameterError
from .models import PageSnapshot, PanelSnapshot


PANEL_PART_SEPARATOR = "，"
PANEL_SEPARATOR = "；"


def compose_panel_fragment(position: int, panel: PanelSnapshot) -> str:
    """
    组装单格描述

    Args:
        position: 该格在页面中的位置（从1开始）
        panel: 分镜格快照

    Returns:
        形如 "第1格，画面，对话："...""，旁白：...，紧张的氛围，特写，角色：..." 的片段
    """
    parts: List[str] = [f"第{position}格"]

    if panel.scene_description:
        parts.append(panel.scene_description)
    if panel.dialogue:
        parts.append(f'对话："{panel.dialogue}"')
    if panel.narration:
        parts.append(f"旁白：{panel.narration}")
    if panel.emotion:
        parts.append(f"{panel.emotion}的氛围")
    if panel.camera_angle:
        parts.append(panel.camera_angle)
    if panel.characters:
        parts.append(f"角色：{panel.characters}")

    return PANEL_PART_SEPARATOR.join(parts)


def compose_page_prompt(page: PageSnapshot, style: str) -> str:
    """
    组装整页提示词

    Raises:
        InvalidParameterError: 页面没有分镜
    """
    if not page.has_panels:
        raise InvalidParameterError(f"页面 {page.page_id} 没有分镜，无法生成提示词", "panels")

    panel_descriptions = PANEL_SEPARATOR.join(
        compose_panel_fragment(position, panel)
        for position, panel in enumerate(page.panels, start=1)
    )
    layout = page.layout or ComicConstants.DEFAULT_PAGE_LAYOUT

    return (
        f"漫画页面，{layout}，包含{page.panel_count}个分镜格子。{panel_descriptions}。"
        f"漫画风格，{style}风格，高质量，详细绘制，清晰画面，专业分镜布局"
    )


def compose_cover_prompt(title: str, description: str, style: str) -> str:
    """组装封面提示词"""
    return f"{title}，{description}，漫画封面，精美插画，{style}风格，高质量，详细绘制"
