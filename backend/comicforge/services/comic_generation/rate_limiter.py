"""
自适应速率限制器

控制相邻两次图片生成请求之间的最小间隔：
- 正常情况下间隔为 min_interval
- 服务端返回限流信号（429/503）时间隔按 backoff_factor 放大，直到 max_interval
- 之后每次正常返回按 recovery_factor 缩小，逐步回到 min_interval

第一次请求不等待；最后一次请求之后也不会产生额外等待。
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Optional

from ...core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class AdaptiveRateLimiter:
    """按请求间隔限流，间隔随服务端限流信号自适应调整"""

    # 触发限流时间隔至少放大到的值（秒），避免 min_interval 为0时无法退避
    THROTTLE_FLOOR_SECONDS = 1.0

    def __init__(
        self,
        min_interval: float,
        max_interval: float,
        backoff_factor: float = 2.0,
        recovery_factor: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval 不能小于0")
        if backoff_factor < 1:
            raise ValueError("backoff_factor 必须大于等于1")
        if not 0 < recovery_factor <= 1:
            raise ValueError("recovery_factor 必须在 (0, 1] 区间内")

        self.min_interval = min_interval
        self.max_interval = max(max_interval, min_interval)
        self.backoff_factor = backoff_factor
        self.recovery_factor = recovery_factor
        self._clock = clock
        self._sleep = sleep

        self._interval = min_interval
        self._last_event: Optional[float] = None
        self._lock: Optional[asyncio.Lock] = None

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "AdaptiveRateLimiter":
        config = config or default_settings
        return cls(
            min_interval=config.page_generation_interval,
            max_interval=config.page_generation_max_interval,
        )

    @property
    def current_interval(self) -> float:
        return self._interval

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def acquire(self) -> float:
        """
        等待到允许发出下一次请求的时刻

        Returns:
            实际等待的秒数
        """
        async with self._get_lock():
            waited = 0.0
            if self._last_event is not None:
                ready_at = self._last_event + self._interval
                waited = ready_at - self._clock()
                if waited > 0:
                    logger.debug("速率限制: 等待 %.2f 秒 (interval=%.2f)", waited, self._interval)
                    await self._sleep(waited)
                else:
                    waited = 0.0
            self._last_event = self._clock()
            return waited

    def release(self) -> None:
        """请求结束，下一次请求从此刻开始计算间隔"""
        now = self._clock()
        if self._last_event is None or now > self._last_event:
            self._last_event = now

    @asynccontextmanager
    async def slot(self):
        """
        上下文管理器，包住一次外部调用

        使用示例：
            async with limiter.slot():
                outcome = await client.generate(prompt)
            limiter.record_result(outcome.throttled)
        """
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    def record_result(self, throttled: bool) -> None:
        """根据服务端是否限流调整间隔"""
        previous = self._interval
        if throttled:
            widened = max(self._interval * self.backoff_factor, self.THROTTLE_FLOOR_SECONDS)
            self._interval = min(widened, self.max_interval)
            logger.warning("图片服务限流，请求间隔调整: %.2f -> %.2f 秒", previous, self._interval)
        elif self._interval > self.min_interval:
            self._interval = max(self.min_interval, self._interval * self.recovery_factor)
            logger.debug("请求间隔恢复: %.2f -> %.2f 秒", previous, self._interval)
