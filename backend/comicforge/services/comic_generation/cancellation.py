"""
流水线取消控制

CancellationToken 在流水线每启动一页之前被检查；取消后已在途的页面照常完成，
之后的页面不再启动。PageRunRegistry 记录每部漫画当前正在运行的流水线，
保证同一部漫画同时只有一条流水线，并供取消接口查找对应的 token。
"""

import asyncio
import logging
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional

from ...exceptions import ConflictError

logger = logging.getLogger(__name__)


class CancellationToken:
    """取消令牌，支持主动取消与截止时间"""

    def __init__(
        self,
        deadline: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._event = asyncio.Event()
        self._deadline = deadline
        self._clock = clock
        self.reason: Optional[str] = None

    @classmethod
    def with_timeout(
        cls,
        seconds: Optional[float],
        clock: Callable[[], float] = time.monotonic,
    ) -> "CancellationToken":
        """创建带超时的令牌，seconds 为None时不设截止时间"""
        deadline = clock() + seconds if seconds else None
        return cls(deadline=deadline, clock=clock)

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and self._clock() >= self._deadline:
            self.cancel("timeout")
            return True
        return False


class PageRunRegistry:
    """正在运行的页面生成流水线登记表（单例）"""

    _instance: Optional["PageRunRegistry"] = None

    def __init__(self):
        self._runs: Dict[int, CancellationToken] = {}

    @classmethod
    def get_instance(cls) -> "PageRunRegistry":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """重置单例（仅用于测试）"""
        cls._instance = None

    def is_running(self, comic_id: int) -> bool:
        return comic_id in self._runs

    def register(self, comic_id: int, token: CancellationToken) -> None:
        if comic_id in self._runs:
            raise ConflictError(f"漫画 {comic_id} 的页面图片正在生成中")
        self._runs[comic_id] = token
        logger.debug("登记页面生成任务: comic_id=%d", comic_id)

    def unregister(self, comic_id: int, token: CancellationToken) -> None:
        if self._runs.get(comic_id) is token:
            del self._runs[comic_id]
            logger.debug("注销页面生成任务: comic_id=%d", comic_id)

    @contextmanager
    def track(self, comic_id: int, token: CancellationToken) -> Iterator[CancellationToken]:
        """
        在流水线运行期间登记令牌，结束后自动注销

        Raises:
            ConflictError: 该漫画已有正在运行的流水线
        """
        self.register(comic_id, token)
        try:
            yield token
        finally:
            self.unregister(comic_id, token)

    def cancel(self, comic_id: int) -> bool:
        """
        取消漫画当前的流水线

        Returns:
            是否找到并取消了正在运行的流水线
        """
        token = self._runs.get(comic_id)
        if token is None:
            return False
        token.cancel("user")
        logger.info("已请求取消漫画 %d 的页面图片生成", comic_id)
        return True
