"""
漫画图片生成接口的请求/响应模型

对外字段沿用前端使用的驼峰命名（comicId、imageUrl 等），内部使用下划线命名。
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PageGenerationRequest(BaseModel):
    """页面图片生成请求"""
    model_config = ConfigDict(populate_by_name=True)

    comic_id: Optional[int] = Field(default=None, alias="comicId", description="漫画ID")


class CoverGenerationRequest(BaseModel):
    """封面生成请求"""
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, description="漫画标题")
    description: Optional[str] = Field(default=None, description="漫画简介")
    style: str = Field(default="anime", description="画风")
    comic_id: Optional[int] = Field(default=None, alias="comicId", description="生成后写回封面的漫画ID")


class CoverGenerationData(BaseModel):
    """封面生成结果"""
    model_config = ConfigDict(populate_by_name=True)

    cover_url: str = Field(..., alias="coverUrl")
    comic_id: Optional[int] = Field(default=None, alias="comicId")
    prompt: str


class PageStatusItem(BaseModel):
    """页面生成进度"""
    model_config = ConfigDict(populate_by_name=True)

    page_id: int = Field(..., alias="pageId")
    page_number: int = Field(..., alias="pageNumber")
    volume_number: int = Field(..., alias="volumeNumber")
    episode_number: int = Field(..., alias="episodeNumber")
    status: str
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
