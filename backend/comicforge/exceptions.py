"""
统一异常体系

提供业务逻辑层的异常定义，避免直接使用HTTPException。
所有异常都会被全局异常处理器捕获并转换为HTTP响应。
"""

from typing import Optional


class ComicForgeException(Exception):
    """
    ComicForge基础异常类

    所有业务异常的基类，会被全局异常处理器捕获。

    Attributes:
        message: 错误消息（面向用户）
        status_code: HTTP状态码
        detail: 详细错误信息（可选，用于日志）
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        detail: Optional[str] = None
    ):
        self.message = message
        self.status_code = status_code
        self.detail = detail or message
        super().__init__(self.message)


# ==================== 4xx 客户端错误 ====================


class ResourceNotFoundError(ComicForgeException):
    """资源不存在（404）"""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource}不存在",
            status_code=404,
            detail=f"{resource}不存在: {identifier}"
        )


class InvalidParameterError(ComicForgeException):
    """参数错误（400）"""

    def __init__(self, message: str, parameter: Optional[str] = None):
        detail = f"参数错误: {parameter} - {message}" if parameter else message
        super().__init__(
            message=message,
            status_code=400,
            detail=detail
        )


class InvalidStateTransitionError(ComicForgeException):
    """非法状态转换（400）

    支持两种调用方式:
    1. InvalidStateTransitionError(message) - 简单消息
    2. InvalidStateTransitionError(current, target, allowed) - 详细状态转换信息
    """

    def __init__(
        self,
        current_status: str,
        target_status: Optional[str] = None,
        allowed: Optional[str] = None
    ):
        if target_status is None:
            message = current_status
            detail = current_status
        else:
            message = f"非法的状态转换: {current_status} → {target_status}"
            detail = f"{message}. 当前状态只能转换到: {allowed}"
        super().__init__(
            message=message,
            status_code=400,
            detail=detail
        )


class ConflictError(ComicForgeException):
    """资源冲突（409）"""

    def __init__(self, message: str):
        super().__init__(message=message, status_code=409)


# ==================== 5xx 服务端错误 ====================


class ImageServiceError(ComicForgeException):
    """图片生成服务错误（503）"""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=503,
            detail=f"图片生成服务错误: {detail or message}"
        )


# ==================== 业务逻辑异常 ====================


class NoPagesError(ComicForgeException):
    """漫画下没有任何页面（400）"""

    def __init__(self, comic_id: int):
        super().__init__(
            message="没有找到需要生成的页面",
            status_code=400,
            detail=f"漫画 {comic_id} 的所有卷/话下都没有页面"
        )
