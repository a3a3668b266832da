"""
图片生成客户端

封装通义万象多模态生成接口的调用：
- 组装请求体（模型、提示词、负面提示词、固定生成参数）
- 对网络异常、限流与服务端错误做有限次数的指数退避重试
- 把每次调用归类为 成功 / exception / api_call_failed / invalid_result
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ...core.config import Settings, settings as default_settings
from ...core.constants import GenerationFailureReason, ImageServiceConstants
from .models import GenerationOutcome

logger = logging.getLogger(__name__)


# ============================================================================
# HTTP客户端管理（连接池复用）
# ============================================================================

class HTTPClientManager:
    """
    HTTP客户端管理器

    提供全局共享的httpx.AsyncClient，支持连接池复用。
    使用双重检查锁定模式确保只创建一次。
    """
    _client: Optional[httpx.AsyncClient] = None
    _lock: Optional[asyncio.Lock] = None

    @classmethod
    def _get_lock(cls) -> asyncio.Lock:
        """获取锁实例（必须在事件循环运行时调用）"""
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        return cls._lock

    @classmethod
    async def get_client(cls) -> httpx.AsyncClient:
        """获取共享的HTTP客户端（懒加载）"""
        if cls._client is not None:
            return cls._client

        async with cls._get_lock():
            if cls._client is None:
                cls._client = httpx.AsyncClient(
                    timeout=default_settings.image_request_timeout,
                    limits=httpx.Limits(
                        max_keepalive_connections=10,
                        max_connections=20,
                        keepalive_expiry=30.0,
                    ),
                )
                logger.info("HTTP客户端已创建，连接池配置: max_connections=20, keepalive=10")
        return cls._client

    @classmethod
    async def close_client(cls) -> None:
        """关闭HTTP客户端（应用关闭时调用）"""
        if cls._client is not None:
            await cls._client.aclose()
            cls._client = None
            logger.info("HTTP客户端已关闭")


def extract_image_url(payload: Any) -> Optional[str]:
    """从响应体中取出 output.choices[0].message.content[0].image，结构不符时返回None"""
    try:
        image = payload["output"]["choices"][0]["message"]["content"][0]["image"]
    except (KeyError, IndexError, TypeError):
        return None
    if isinstance(image, str) and image:
        return image
    return None


class ImageGenerationClient:
    """通义万象文生图客户端"""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        model: str,
        negative_prompt: str,
        size: str,
        timeout: float = 180.0,
        max_attempts: int = 2,
        backoff_base: float = 1.0,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        初始化客户端

        Args:
            api_key: DashScope API Key
            base_url: 多模态生成接口地址
            model: 模型名称
            negative_prompt: 默认负面提示词
            size: 图片尺寸，如 1280*1280
            timeout: 单次请求超时（秒）
            max_attempts: 最多尝试次数（含首次）
            backoff_base: 退避基数（秒）
            http_client: 指定的httpx客户端，不传则使用全局共享客户端
            sleep: 退避等待函数
        """
        if max_attempts < 1:
            raise ValueError("max_attempts 必须大于0")

        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.negative_prompt = negative_prompt
        self.size = size
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self._http_client = http_client
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        config: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "ImageGenerationClient":
        config = config or default_settings
        if not config.dashscope_api_key:
            logger.warning("未配置 DASHSCOPE_API_KEY，图片生成请求将被服务端拒绝")
        return cls(
            api_key=config.dashscope_api_key,
            base_url=str(config.dashscope_base_url),
            model=config.image_model_name,
            negative_prompt=config.image_negative_prompt,
            size=config.image_size,
            timeout=config.image_request_timeout,
            max_attempts=config.image_max_attempts,
            backoff_base=config.image_retry_backoff_base,
            http_client=http_client,
        )

    def build_payload(self, prompt: str, negative_prompt: Optional[str] = None) -> Dict[str, Any]:
        """组装请求体；negative_prompt 为None时使用默认值，传空字符串表示不使用负面提示词"""
        if negative_prompt is None:
            negative_prompt = self.negative_prompt
        return {
            "model": self.model,
            "input": {
                "messages": [
                    {"role": "user", "content": [{"text": prompt}]},
                ],
            },
            "parameters": {
                "negative_prompt": negative_prompt,
                "prompt_extend": ImageServiceConstants.PROMPT_EXTEND,
                "watermark": ImageServiceConstants.WATERMARK,
                "n": ImageServiceConstants.IMAGE_COUNT,
                "size": self.size,
            },
        }

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key or ''}",
        }

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return await HTTPClientManager.get_client()

    async def generate(self, prompt: str, negative_prompt: Optional[str] = None) -> GenerationOutcome:
        """
        生成一张图片

        可重试的失败（网络异常、429、5xx）最多尝试 max_attempts 次，
        第n次重试前等待 backoff_base * 2^(n-1) 秒。返回最后一次尝试的结果。

        Args:
            prompt: 提示词
            negative_prompt: 负面提示词，None 表示使用默认值

        Returns:
            GenerationOutcome: 生成结果，不会抛出网络异常
        """
        payload = self.build_payload(prompt, negative_prompt)
        throttled = False
        outcome: Optional[GenerationOutcome] = None

        for attempt in range(1, self.max_attempts + 1):
            outcome = await self._request_once(payload)

            throttled = throttled or outcome.throttled
            outcome.attempts = attempt
            outcome.throttled = throttled

            if outcome.success or not outcome.retryable or attempt >= self.max_attempts:
                break

            wait_time = self.backoff_base * (2 ** (attempt - 1))
            logger.warning(
                "图片生成失败，%.1f秒后重试 (attempt %d/%d): %s",
                wait_time,
                attempt,
                self.max_attempts,
                outcome.message,
            )
            if wait_time > 0:
                await self._sleep(wait_time)

        return outcome

    async def _request_once(self, payload: Dict[str, Any]) -> GenerationOutcome:
        """发送一次请求并归类结果"""
        client = await self._get_http_client()
        try:
            response = await client.post(
                self.base_url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("图片生成请求异常: %s: %s", type(exc).__name__, exc)
            return GenerationOutcome.from_exception(exc)

        if not response.is_success:
            logger.error(
                "图片生成API调用失败: status=%d body=%s",
                response.status_code,
                response.text[:ImageServiceConstants.ERROR_BODY_PREVIEW_LENGTH],
            )
            return GenerationOutcome(
                success=False,
                reason=GenerationFailureReason.API_CALL_FAILED,
                status_code=response.status_code,
                throttled=response.status_code in ImageServiceConstants.THROTTLE_STATUS_CODES,
            )

        try:
            data = response.json()
        except ValueError:
            logger.error(
                "图片生成API返回非JSON内容: %s",
                response.text[:ImageServiceConstants.ERROR_BODY_PREVIEW_LENGTH],
            )
            data = None

        image_url = extract_image_url(data)
        if not image_url:
            logger.error("图片生成API返回无效结果: status=%d", response.status_code)
            return GenerationOutcome(
                success=False,
                reason=GenerationFailureReason.INVALID_RESULT,
                status_code=response.status_code,
            )

        return GenerationOutcome.succeeded(image_url, status_code=response.status_code)
