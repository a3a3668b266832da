"""
漫画页面生成的数据结构

层级快照（从数据库读取后与ORM会话解耦）、单次生成结果、页面最终结果与流水线汇总。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ...core.constants import (
    GenerationFailureReason,
    ImageServiceConstants,
    PageStatus,
    PipelineMessages,
)


# ==================== 层级快照 ====================

@dataclass(frozen=True)
class PanelSnapshot:
    """分镜格快照"""
    panel_number: int
    scene_description: Optional[str] = None
    dialogue: Optional[str] = None
    narration: Optional[str] = None
    emotion: Optional[str] = None
    camera_angle: Optional[str] = None
    characters: Optional[str] = None


@dataclass(frozen=True)
class PageSnapshot:
    """页面快照，分镜已按格序号排好"""
    page_id: int
    page_number: int
    volume_number: int
    episode_number: int
    layout: Optional[str] = None
    status: str = PageStatus.PENDING.value
    image_url: Optional[str] = None
    panels: Tuple[PanelSnapshot, ...] = ()

    @property
    def panel_count(self) -> int:
        return len(self.panels)

    @property
    def has_panels(self) -> bool:
        return bool(self.panels)


@dataclass(frozen=True)
class ComicHierarchy:
    """一部漫画按阅读顺序展开后的全部页面"""
    comic_id: int
    style: str
    pages: Tuple[PageSnapshot, ...] = ()

    @property
    def page_count(self) -> int:
        return len(self.pages)


# ==================== 生成结果 ====================

@dataclass
class GenerationOutcome:
    """单页调用图片生成服务的结果（可能包含多次重试）"""
    success: bool
    image_url: str = ""
    reason: Optional[GenerationFailureReason] = None
    status_code: Optional[int] = None
    error_message: str = ""
    attempts: int = 1
    throttled: bool = False

    @classmethod
    def succeeded(cls, image_url: str, status_code: int = 200) -> "GenerationOutcome":
        return cls(success=True, image_url=image_url, status_code=status_code)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "GenerationOutcome":
        return cls(
            success=False,
            reason=GenerationFailureReason.EXCEPTION,
            error_message=str(exc) or type(exc).__name__,
        )

    @property
    def retryable(self) -> bool:
        """网络异常、限流与服务端错误值得重试；参数错误和无效结果不重试"""
        if self.success:
            return False
        if self.reason == GenerationFailureReason.EXCEPTION:
            return True
        return (
            self.reason == GenerationFailureReason.API_CALL_FAILED
            and self.status_code in ImageServiceConstants.RETRYABLE_STATUS_CODES
        )

    @property
    def message(self) -> str:
        """面向调用方的失败描述"""
        if self.success:
            return ""
        if self.reason == GenerationFailureReason.API_CALL_FAILED:
            return PipelineMessages.API_CALL_FAILED.format(status_code=self.status_code)
        if self.reason == GenerationFailureReason.INVALID_RESULT:
            return PipelineMessages.INVALID_RESULT
        return self.error_message or PipelineMessages.UNKNOWN_ERROR


@dataclass(frozen=True)
class PageOutcome:
    """页面生成的最终状态，只能是 published（带URL）或 failed"""
    status: PageStatus
    image_url: Optional[str] = None

    def __post_init__(self):
        if self.status == PageStatus.PUBLISHED:
            if not self.image_url:
                raise ValueError("published 状态必须携带图片URL")
        elif self.status == PageStatus.FAILED:
            if self.image_url is not None:
                raise ValueError("failed 状态不能携带图片URL")
        else:
            raise ValueError(f"页面最终状态只能是 published 或 failed，收到: {self.status.value}")

    @classmethod
    def published(cls, image_url: str) -> "PageOutcome":
        return cls(status=PageStatus.PUBLISHED, image_url=image_url)

    @classmethod
    def failed(cls) -> "PageOutcome":
        return cls(status=PageStatus.FAILED)


@dataclass
class PageGenerationSummary:
    """一次流水线运行的汇总结果

    image_urls 与页面阅读顺序一一对应，失败位置为空字符串。
    """
    comic_id: int
    image_urls: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def page_count(self) -> int:
        return len(self.image_urls)

    @property
    def success_count(self) -> int:
        return sum(1 for url in self.image_urls if url)

    @property
    def success(self) -> bool:
        return self.success_count > 0

    def to_payload(self) -> Dict[str, Any]:
        """转换为接口返回的 data 字段；成功时没有错误则省略 errors"""
        payload: Dict[str, Any] = {
            "imageUrls": list(self.image_urls),
            "comicId": self.comic_id,
            "pageCount": self.page_count,
            "successCount": self.success_count,
        }
        if self.errors or not self.success:
            payload["errors"] = list(self.errors)
        if self.cancelled:
            payload["cancelled"] = True
        return payload
