"""
常量定义模块

集中管理应用中使用的所有常量，提升代码可维护性和可读性。
"""

from enum import Enum


class PageStatus(str, Enum):
    """漫画页面生命周期状态

    继承str使其可以直接与字符串比较，并可直接写入数据库字符串列。
    合法的状态转换见 core.state_validators。
    """
    PENDING = "pending"          # 等待生成
    GENERATING = "generating"    # 正在生成
    PUBLISHED = "published"      # 生成成功，已写入图片URL
    FAILED = "failed"            # 生成失败


class GenerationFailureReason(str, Enum):
    """单次图片生成失败原因"""
    EXCEPTION = "exception"              # 网络/传输异常
    API_CALL_FAILED = "api_call_failed"  # 非2xx状态码
    INVALID_RESULT = "invalid_result"    # 响应中缺少图片字段


class ComicConstants:
    """漫画相关常量"""

    DEFAULT_STYLE = "anime"  # 漫画未设置风格时的默认值
    DEFAULT_PAGE_LAYOUT = "多格布局"  # 页面未设置布局时的默认描述


class ImageServiceConstants:
    """图片生成服务相关常量"""

    # 请求参数
    PROMPT_EXTEND = True
    WATERMARK = False
    IMAGE_COUNT = 1

    # 需要重试的HTTP状态码（限流与服务端错误）
    RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
    # 视为服务限流信号的状态码
    THROTTLE_STATUS_CODES = frozenset({429, 503})

    # 错误响应正文在日志中保留的最大长度
    ERROR_BODY_PREVIEW_LENGTH = 500


class PipelineMessages:
    """流水线对外返回的文案"""

    NO_PANELS = "没有分镜信息"
    INVALID_RESULT = "API返回无效结果"
    API_CALL_FAILED = "API调用失败 ({status_code})"
    UNKNOWN_ERROR = "未知错误"
    CANCELLED = "已取消"
    TOTAL_FAILURE = "所有页面图片生成失败"
    COVER_FAILED = "封面生成失败"
