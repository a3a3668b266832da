"""
漫画图片生成模块

- hierarchy_reader: 按阅读顺序读取漫画层级
- prompt_composer: 页面/封面提示词组装
- client: 通义万象文生图客户端（含重试）
- rate_limiter: 自适应请求间隔
- status_tracker: 页面状态写入
- cancellation: 取消令牌与运行登记
- pipeline: 页面生成流水线
- cover_service: 封面生成
"""

from .cancellation import CancellationToken, PageRunRegistry
from .client import HTTPClientManager, ImageGenerationClient
from .cover_service import ComicCoverService, CoverResult
from .hierarchy_reader import ComicHierarchyReader
from .models import (
    ComicHierarchy,
    GenerationOutcome,
    PageGenerationSummary,
    PageOutcome,
    PageSnapshot,
    PanelSnapshot,
)
from .pipeline import PageGenerationPipeline
from .prompt_composer import compose_cover_prompt, compose_page_prompt, compose_panel_fragment
from .rate_limiter import AdaptiveRateLimiter
from .status_tracker import PageStatusTracker

__all__ = [
    "AdaptiveRateLimiter",
    "CancellationToken",
    "ComicCoverService",
    "ComicHierarchy",
    "ComicHierarchyReader",
    "CoverResult",
    "GenerationOutcome",
    "HTTPClientManager",
    "ImageGenerationClient",
    "PageGenerationPipeline",
    "PageGenerationSummary",
    "PageOutcome",
    "PageRunRegistry",
    "PageSnapshot",
    "PageStatusTracker",
    "PanelSnapshot",
    "compose_cover_prompt",
    "compose_page_prompt",
    "compose_panel_fragment",
]
